"""SOS signal and audit note models."""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from reliefwatch.core.clock import utcnow
from reliefwatch.db.base import Base
from reliefwatch.services.geo_service import GeoPoint


class SignalPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return list(SignalPriority).index(self)


class SignalStatus(str, enum.Enum):
    PENDING = "pending"
    ACKNOWLEDGED = "acknowledged"
    RESPONDING = "responding"
    RESOLVED = "resolved"
    FALSE_ALARM = "false_alarm"

    @property
    def is_terminal(self) -> bool:
        return self in (SignalStatus.RESOLVED, SignalStatus.FALSE_ALARM)


# Statuses an automatic escalation may act on
ESCALATABLE_STATUSES = (SignalStatus.PENDING, SignalStatus.ACKNOWLEDGED)
# Statuses considered live for clustering / disaster correlation
ACTIVE_STATUSES = (SignalStatus.PENDING, SignalStatus.ACKNOWLEDGED, SignalStatus.RESPONDING)


def _enum_column(enum_cls: type[enum.Enum]) -> Enum:
    return Enum(
        enum_cls,
        native_enum=False,
        length=20,
        values_callable=lambda e: [m.value for m in e],
        validate_strings=True,
    )


class SosSignal(Base):
    """Emergency signal submitted by a citizen."""

    __tablename__ = "sos_signals"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    message: Mapped[str] = mapped_column(Text, nullable=False, default="")
    priority: Mapped[SignalPriority] = mapped_column(
        _enum_column(SignalPriority), nullable=False, default=SignalPriority.MEDIUM
    )
    status: Mapped[SignalStatus] = mapped_column(
        _enum_column(SignalStatus), nullable=False, default=SignalStatus.PENDING, index=True
    )
    escalation_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # 0 normal | 1 escalated | 2 critical
    assigned_responder: Mapped[str | None] = mapped_column(String(64), nullable=True)
    cluster_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    auto_escalated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    response_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolution_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    notes: Mapped[list[SignalNote]] = relationship(
        back_populates="signal",
        order_by="SignalNote.id",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def location(self) -> GeoPoint | None:
        if self.latitude is None or self.longitude is None:
            return None
        return GeoPoint(self.latitude, self.longitude)

    def add_note(self, author_id: str, text: str, timestamp: datetime) -> SignalNote:
        note = SignalNote(author_id=author_id, text=text, timestamp=timestamp)
        self.notes.append(note)
        return note


class SignalNote(Base):
    """Append-only audit entry attached to a signal."""

    __tablename__ = "sos_signal_notes"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    signal_id: Mapped[int] = mapped_column(
        ForeignKey("sos_signals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    author_id: Mapped[str] = mapped_column(String(64), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    signal: Mapped[SosSignal] = relationship(back_populates="notes")
