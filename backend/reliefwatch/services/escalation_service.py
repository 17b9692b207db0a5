"""Time-based automatic escalation of unanswered SOS signals."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from reliefwatch.core.clock import as_utc, minutes_between, utcnow
from reliefwatch.core.errors import ConcurrentSignalUpdateError, SignalValidationError
from reliefwatch.core.escalation_policies import (
    DEFAULT_THRESHOLDS,
    MAX_ESCALATION_LEVEL,
    SYSTEM_ACTOR,
    DisasterRules,
    EscalationThresholds,
)
from reliefwatch.models.sos_signal import ESCALATABLE_STATUSES, SignalPriority, SosSignal
from reliefwatch.services.disaster_service import DisasterRepository, DisasterSynthesizer
from reliefwatch.services.notification_service import NotificationSink, guarded
from reliefwatch.services.signal_repository import SignalRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EscalationDecision:
    level: int
    reason: str


@dataclass
class EscalationPassResult:
    success: bool = True
    escalated_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    error: str | None = None


def evaluate_escalation(
    current_level: int,
    elapsed_minutes: float,
    thresholds: EscalationThresholds = DEFAULT_THRESHOLDS,
) -> EscalationDecision | None:
    """Highest level whose threshold has passed and which is above current_level."""
    minutes = round(elapsed_minutes)
    if elapsed_minutes >= thresholds.critical_minutes and current_level < 2:
        return EscalationDecision(2, f"Critical escalation: No resolution after {minutes} minutes")
    if elapsed_minutes >= thresholds.second_minutes and current_level < 1:
        return EscalationDecision(1, f"Second escalation: No response after {minutes} minutes")
    if elapsed_minutes >= thresholds.first_minutes and current_level < 1:
        return EscalationDecision(1, f"First escalation: No acknowledgment after {minutes} minutes")
    return None


def escalated_priority(current: SignalPriority, level: int) -> SignalPriority:
    """Priority after reaching `level`; never lower than current."""
    if level >= 2:
        return SignalPriority.CRITICAL
    if level == 1 and current in (SignalPriority.LOW, SignalPriority.MEDIUM):
        return SignalPriority.HIGH
    return current


def validate_signal(signal: SosSignal) -> None:
    if signal.location is None:
        raise SignalValidationError(f"Signal {signal.id} has no location")
    if not 0 <= signal.escalation_level <= MAX_ESCALATION_LEVEL:
        raise SignalValidationError(f"Signal {signal.id} has invalid escalation level {signal.escalation_level}")
    if signal.created_at is None:
        raise SignalValidationError(f"Signal {signal.id} has no creation time")


class EscalationEngine:
    """Evaluates candidate signals against the thresholds and records escalations."""

    def __init__(
        self,
        repository: SignalRepository,
        synthesizer: DisasterSynthesizer,
        notifier: NotificationSink,
        thresholds: EscalationThresholds = DEFAULT_THRESHOLDS,
    ) -> None:
        self.repository = repository
        self.synthesizer = synthesizer
        self.notifier = guarded(notifier)
        self.thresholds = thresholds

    def run_escalation_pass(self, now: datetime | None = None) -> EscalationPassResult:
        """
        Escalate every eligible signal once.

        Per-signal failures are logged and counted; only a failure to load the
        candidates makes the whole pass unsuccessful.
        """
        now = as_utc(now) or utcnow()
        logger.info("Starting auto-escalation pass")

        try:
            candidates = self.repository.find_escalation_candidates(now)
        except SQLAlchemyError as e:
            logger.exception("Escalation pass aborted: candidate query failed")
            self.repository.rollback()
            return EscalationPassResult(success=False, error=str(e))

        result = EscalationPassResult()
        for signal in candidates:
            signal_id = signal.id
            try:
                if self.escalate_signal(signal, now):
                    result.escalated_count += 1
            except SignalValidationError as e:
                logger.warning("Skipping signal %s: %s", signal_id, e)
                result.skipped_count += 1
            except (ConcurrentSignalUpdateError, SQLAlchemyError):
                logger.exception("Failed to escalate signal %s", signal_id)
                self.repository.rollback()
                result.failed_count += 1
            except Exception:
                logger.exception("Unexpected error escalating signal %s", signal_id)
                self.repository.rollback()
                result.failed_count += 1

        logger.info(
            "Escalation pass completed: escalated=%d failed=%d skipped=%d",
            result.escalated_count,
            result.failed_count,
            result.skipped_count,
        )
        return result

    def escalate_signal(self, signal: SosSignal, now: datetime) -> bool:
        """Apply the escalation due for one signal. Returns False if nothing was due."""
        if signal.status not in ESCALATABLE_STATUSES or signal.escalation_level >= MAX_ESCALATION_LEVEL:
            return False
        validate_signal(signal)

        decision = evaluate_escalation(
            signal.escalation_level,
            minutes_between(signal.created_at, now),
            self.thresholds,
        )
        if decision is None:
            return False

        previous_level = signal.escalation_level
        signal.escalation_level = decision.level
        signal.priority = escalated_priority(signal.priority, decision.level)
        signal.auto_escalated_at = now
        signal.add_note(SYSTEM_ACTOR, f"AUTO-ESCALATED: {decision.reason}", now)
        self.repository.save(signal, now)

        logger.info("Signal %s escalated to level %d", signal.id, decision.level)
        self.notifier.notify_escalation(signal, previous_level, decision.level, SYSTEM_ACTOR)

        if decision.level == MAX_ESCALATION_LEVEL:
            self.synthesizer.synthesize_for(signal, now)
        return True


def build_escalation_engine(
    db: Session,
    notifier: NotificationSink,
    thresholds: EscalationThresholds | None = None,
    rules: DisasterRules | None = None,
) -> EscalationEngine:
    """Wire an engine over one session."""
    thresholds = thresholds or EscalationThresholds.from_settings()
    repository = SignalRepository(db, thresholds)
    synthesizer = DisasterSynthesizer(repository, DisasterRepository(db), rules or DisasterRules.from_settings())
    return EscalationEngine(repository, synthesizer, notifier, thresholds)
