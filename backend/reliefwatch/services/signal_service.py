"""Responder-driven operations on SOS signals."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from reliefwatch.core.clock import as_utc, minutes_between, utcnow
from reliefwatch.core.errors import InvalidTransitionError
from reliefwatch.core.escalation_policies import MAX_ESCALATION_LEVEL, DisasterRules
from reliefwatch.models.sos_signal import SignalStatus, SosSignal
from reliefwatch.services.disaster_service import DisasterRepository, DisasterSynthesizer
from reliefwatch.services.escalation_service import escalated_priority
from reliefwatch.services.notification_service import NotificationSink, guarded
from reliefwatch.services.signal_repository import SignalRepository

logger = logging.getLogger(__name__)


def get_signal(db: Session, signal_id: int) -> SosSignal:
    return SignalRepository(db).get(signal_id)


def signal_metrics(signal: SosSignal) -> dict[str, int]:
    """Response / resolution delays in whole minutes, when known."""
    metrics = {}
    if signal.response_time:
        metrics["response_minutes"] = round(minutes_between(signal.created_at, signal.response_time))
    if signal.resolution_time:
        metrics["resolution_minutes"] = round(minutes_between(signal.created_at, signal.resolution_time))
    return metrics


def assign_responder(
    db: Session,
    notifier: NotificationSink,
    signal_id: int,
    responder_id: str,
    actor_id: str,
    notes: str | None = None,
    now: datetime | None = None,
) -> SosSignal:
    """Assign a responder. A pending signal becomes acknowledged."""
    now = as_utc(now) or utcnow()
    notifier = guarded(notifier)
    repo = SignalRepository(db)
    signal = repo.get(signal_id)
    if signal.status.is_terminal:
        raise InvalidTransitionError("Cannot assign a responder to a closed SOS signal")

    previous_status = signal.status
    signal.assigned_responder = responder_id
    if signal.status == SignalStatus.PENDING:
        signal.status = SignalStatus.ACKNOWLEDGED

    text = f"Assigned to responder: {responder_id}."
    if notes:
        text = f"{text} {notes}"
    signal.add_note(actor_id, text, now)
    repo.save(signal, now)

    notifier.notify_responder_assignment(signal, responder_id, actor_id)
    if signal.status != previous_status:
        notifier.notify_status_update(signal, previous_status, signal.status, actor_id)
    return signal


def update_status(
    db: Session,
    notifier: NotificationSink,
    signal_id: int,
    status: SignalStatus,
    actor_id: str,
    notes: str | None = None,
    now: datetime | None = None,
) -> SosSignal:
    """Change status, stamping first response / resolution times."""
    now = as_utc(now) or utcnow()
    notifier = guarded(notifier)
    repo = SignalRepository(db)
    signal = repo.get(signal_id)

    previous_status = signal.status
    signal.status = status
    if status == SignalStatus.RESPONDING and signal.response_time is None:
        signal.response_time = now
    if status == SignalStatus.RESOLVED and signal.resolution_time is None:
        signal.resolution_time = now

    text = f'Status changed from "{previous_status.value}" to "{status.value}"'
    if notes:
        text = f"{text}. {notes}"
    signal.add_note(actor_id, text, now)
    repo.save(signal, now)

    notifier.notify_status_update(signal, previous_status, status, actor_id)
    return signal


def manual_escalate(
    db: Session,
    notifier: NotificationSink,
    signal_id: int,
    level: int,
    actor_id: str,
    reason: str | None = None,
    now: datetime | None = None,
    rules: DisasterRules | None = None,
) -> SosSignal:
    """Escalate on a responder's request. Levels only go up."""
    now = as_utc(now) or utcnow()
    notifier = guarded(notifier)
    if not 0 <= level <= MAX_ESCALATION_LEVEL:
        raise InvalidTransitionError(f"Invalid escalation level (0-{MAX_ESCALATION_LEVEL})")

    repo = SignalRepository(db)
    signal = repo.get(signal_id)
    if signal.status.is_terminal:
        raise InvalidTransitionError("Cannot escalate a closed SOS signal")
    if level < signal.escalation_level:
        raise InvalidTransitionError(
            f"Cannot lower escalation level from {signal.escalation_level} to {level}"
        )

    previous_level = signal.escalation_level
    signal.escalation_level = level
    if level > 0 and signal.auto_escalated_at is None:
        signal.auto_escalated_at = now
    signal.priority = escalated_priority(signal.priority, level)
    signal.add_note(
        actor_id,
        f"Manually escalated to level {level}. Reason: {reason or 'No reason provided'}",
        now,
    )
    repo.save(signal, now)
    logger.info("Signal %s manually escalated to level %d by %s", signal_id, level, actor_id)

    notifier.notify_escalation(signal, previous_level, level, actor_id)
    if level == MAX_ESCALATION_LEVEL and previous_level < MAX_ESCALATION_LEVEL:
        synthesizer = DisasterSynthesizer(repo, DisasterRepository(db), rules or DisasterRules.from_settings())
        synthesizer.synthesize_for(signal, now)
    return signal
