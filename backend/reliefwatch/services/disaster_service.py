"""Disaster synthesis from correlated critical SOS activity."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from reliefwatch.core.clock import as_utc, utcnow
from reliefwatch.core.errors import SignalValidationError
from reliefwatch.core.escalation_policies import DEFAULT_DISASTER_RULES, SYSTEM_ACTOR, DisasterRules
from reliefwatch.models.disaster import Disaster, DisasterSeverity, DisasterStatus, DisasterType
from reliefwatch.models.sos_signal import SosSignal
from reliefwatch.services.geo_service import point_distance_km
from reliefwatch.services.signal_repository import SignalRepository

logger = logging.getLogger(__name__)

# Checked in order; first match wins
DISASTER_KEYWORDS: tuple[tuple[DisasterType, tuple[str, ...]], ...] = (
    (DisasterType.FLOOD, ("flood", "water", "rain")),
    (DisasterType.LANDSLIDE, ("landslide", "slide", "mud")),
    (DisasterType.CYCLONE, ("cyclone", "storm", "wind")),
)
DEFAULT_DISASTER_TYPE = DisasterType.FLOOD


def infer_disaster_type(messages: Iterable[str | None]) -> DisasterType:
    """Keyword match over all messages joined and lowercased."""
    text = " ".join(m for m in messages if m).lower()
    for disaster_type, keywords in DISASTER_KEYWORDS:
        if any(k in text for k in keywords):
            return disaster_type
    return DEFAULT_DISASTER_TYPE


def disaster_code_for(disaster: Disaster) -> str:
    return f"DIS-{as_utc(disaster.created_at).year:04d}-{disaster.id:06d}"


class DisasterRepository:
    """Disaster Store access."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def insert(self, disaster: Disaster) -> int:
        """Flush the disaster to get its id and code. The caller commits."""
        self.db.add(disaster)
        self.db.flush()
        disaster.disaster_code = disaster_code_for(disaster)
        return disaster.id


class DisasterSynthesizer:
    """Creates a disaster when a critical signal has enough corroborating neighbours."""

    def __init__(
        self,
        signals: SignalRepository,
        disasters: DisasterRepository,
        rules: DisasterRules = DEFAULT_DISASTER_RULES,
    ) -> None:
        self.signals = signals
        self.disasters = disasters
        self.rules = rules

    def synthesize_for(self, signal: SosSignal, now: datetime | None = None) -> Disaster | None:
        """
        Run synthesis for a signal that just reached critical level.

        Failures are logged and return None; the caller's escalation has already
        been committed and is not affected.
        """
        signal_id = signal.id
        try:
            return self._synthesize(signal, as_utc(now) or utcnow())
        except Exception:
            logger.exception("Auto disaster creation failed for signal %s", signal_id)
            self.signals.rollback()
            return None

    def find_corroborating(self, signal: SosSignal, now: datetime) -> list[SosSignal]:
        center = signal.location
        if center is None:
            raise SignalValidationError(f"Signal {signal.id} has no location")
        since = now - timedelta(hours=self.rules.lookback_hours)
        candidates = self.signals.find_active_near(center, self.rules.radius_km, since, exclude_id=signal.id)
        return [
            s for s in candidates
            if s.location is not None and point_distance_km(center, s.location) <= self.rules.radius_km
        ]

    def _synthesize(self, signal: SosSignal, now: datetime) -> Disaster | None:
        nearby = self.find_corroborating(signal, now)
        if len(nearby) < self.rules.min_nearby_signals:
            logger.debug("Signal %s has %d nearby signals; no disaster", signal.id, len(nearby))
            return None

        total = len(nearby) + 1
        disaster_type = infer_disaster_type([signal.message, *(s.message for s in nearby)])
        severity = DisasterSeverity.HIGH if total >= self.rules.high_severity_signals else DisasterSeverity.MEDIUM
        contributing_ids = [signal.id, *(s.id for s in nearby)]

        disaster = Disaster(
            title=f"Auto-detected {disaster_type.value} ({total} SOS signals)",
            type=disaster_type,
            severity=severity,
            description=f"Auto-generated from {total} SOS signals in vicinity. Initial report: {signal.message}",
            latitude=signal.latitude,
            longitude=signal.longitude,
            status=DisasterStatus.ACTIVE,
            created_at=now,
            updated_at=now,
        )
        disaster_id = self.disasters.insert(disaster)

        # disaster and link notes commit together
        for sid in contributing_ids:
            self.signals.append_note(sid, SYSTEM_ACTOR, f"Auto-linked to disaster event: {disaster_id}", now)
        self.signals.commit()

        logger.info("Auto-created disaster %s from %d SOS signals", disaster_id, total)
        return disaster
