"""Query/update adapter over stored SOS signals."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from reliefwatch.core.clock import utcnow
from reliefwatch.core.errors import ConcurrentSignalUpdateError, SignalNotFoundError
from reliefwatch.core.escalation_policies import DEFAULT_THRESHOLDS, MAX_ESCALATION_LEVEL, EscalationThresholds
from reliefwatch.models.sos_signal import (
    ACTIVE_STATUSES,
    ESCALATABLE_STATUSES,
    SignalNote,
    SignalPriority,
    SignalStatus,
    SosSignal,
)
from reliefwatch.services.geo_service import GeoPoint, bounding_box

logger = logging.getLogger(__name__)


class SignalRepository:
    """Signal Store access for the escalation engine, bound to one session."""

    def __init__(self, db: Session, thresholds: EscalationThresholds = DEFAULT_THRESHOLDS) -> None:
        self.db = db
        self.thresholds = thresholds

    def get(self, signal_id: int) -> SosSignal:
        signal = self.db.get(SosSignal, signal_id)
        if signal is None:
            raise SignalNotFoundError(signal_id)
        return signal

    def find_escalation_candidates(self, now: datetime) -> list[SosSignal]:
        """Unresolved signals below max level that are at least first-threshold old."""
        cutoff = now - timedelta(minutes=self.thresholds.first_minutes)
        stmt = (
            select(SosSignal)
            .where(
                SosSignal.status.in_(ESCALATABLE_STATUSES),
                SosSignal.escalation_level < MAX_ESCALATION_LEVEL,
                SosSignal.created_at <= cutoff,
            )
            .order_by(SosSignal.created_at, SosSignal.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_active_near(
        self,
        center: GeoPoint,
        radius_km: float,
        since: datetime,
        exclude_id: int | None = None,
    ) -> list[SosSignal]:
        """
        High/critical live signals created since `since` inside a lat/lng box around center.

        The box is a coarse pre-filter; exact distance is checked by the caller.
        """
        box = bounding_box(center, radius_km)
        stmt = select(SosSignal).where(
            SosSignal.priority.in_((SignalPriority.HIGH, SignalPriority.CRITICAL)),
            SosSignal.status.in_(ACTIVE_STATUSES),
            SosSignal.latitude.between(box.min_lat, box.max_lat),
            SosSignal.longitude.between(box.min_lng, box.max_lng),
            SosSignal.created_at >= since,
        )
        if exclude_id is not None:
            stmt = stmt.where(SosSignal.id != exclude_id)
        stmt = stmt.order_by(SosSignal.created_at, SosSignal.id)
        return list(self.db.execute(stmt).scalars().all())

    def find_active(self) -> list[SosSignal]:
        """All live signals, oldest first."""
        stmt = (
            select(SosSignal)
            .where(SosSignal.status.in_(ACTIVE_STATUSES))
            .order_by(SosSignal.created_at, SosSignal.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_escalated_since(self, since: datetime | None) -> list[SosSignal]:
        stmt = select(SosSignal).where(SosSignal.auto_escalated_at.is_not(None))
        if since is not None:
            stmt = stmt.where(SosSignal.auto_escalated_at >= since)
        return list(self.db.execute(stmt).scalars().all())

    def find_created_since(
        self,
        since: datetime | None,
        status: SignalStatus | None = None,
        priority: SignalPriority | None = None,
        newest_first: bool = True,
    ) -> list[SosSignal]:
        """Signals created inside a window, optionally narrowed by status / priority."""
        stmt = select(SosSignal)
        if since is not None:
            stmt = stmt.where(SosSignal.created_at >= since)
        if status is not None:
            stmt = stmt.where(SosSignal.status == status)
        if priority is not None:
            stmt = stmt.where(SosSignal.priority == priority)
        if newest_first:
            stmt = stmt.order_by(SosSignal.created_at.desc(), SosSignal.id.desc())
        else:
            stmt = stmt.order_by(SosSignal.created_at, SosSignal.id)
        return list(self.db.execute(stmt).scalars().all())

    def save(self, signal: SosSignal, now: datetime | None = None) -> SosSignal:
        """
        Persist a mutated signal in its own transaction.

        The version column makes the UPDATE conditional on the row being unchanged
        since it was read; a conflict raises ConcurrentSignalUpdateError.
        """
        signal_id = signal.id
        signal.updated_at = now or utcnow()
        self.db.add(signal)
        try:
            self.db.commit()
        except StaleDataError as e:
            self.db.rollback()
            raise ConcurrentSignalUpdateError(signal_id) from e
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return signal

    def append_note(self, signal_id: int, author_id: str, text: str, timestamp: datetime) -> SignalNote:
        """Insert a note row without touching the signal row itself."""
        note = SignalNote(signal_id=signal_id, author_id=author_id, text=text, timestamp=timestamp)
        self.db.add(note)
        return note

    def commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def rollback(self) -> None:
        self.db.rollback()
