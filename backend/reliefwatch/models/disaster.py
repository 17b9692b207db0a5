"""Disaster model."""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from reliefwatch.core.clock import utcnow
from reliefwatch.db.base import Base


class DisasterType(str, enum.Enum):
    FLOOD = "flood"
    LANDSLIDE = "landslide"
    CYCLONE = "cyclone"
    FIRE = "fire"
    EARTHQUAKE = "earthquake"
    DROUGHT = "drought"
    TSUNAMI = "tsunami"


class DisasterSeverity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class DisasterStatus(str, enum.Enum):
    ACTIVE = "active"
    MONITORING = "monitoring"
    RESOLVED = "resolved"
    ARCHIVED = "archived"


def _enum_column(enum_cls: type[enum.Enum]) -> Enum:
    return Enum(enum_cls, native_enum=False, length=20, values_callable=lambda e: [m.value for m in e])


class Disaster(Base):
    """Disaster event, either authored by staff or synthesized from SOS activity."""

    __tablename__ = "disasters"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    disaster_code: Mapped[str | None] = mapped_column(String(20), nullable=True, unique=True)  # DIS-YYYY-NNNNNN
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[DisasterType] = mapped_column(_enum_column(DisasterType), nullable=False)
    severity: Mapped[DisasterSeverity] = mapped_column(_enum_column(DisasterSeverity), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[DisasterStatus] = mapped_column(
        _enum_column(DisasterStatus), nullable=False, default=DisasterStatus.ACTIVE
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
