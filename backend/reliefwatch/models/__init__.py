"""SQLAlchemy models."""

from __future__ import annotations

from reliefwatch.models.disaster import Disaster, DisasterSeverity, DisasterStatus, DisasterType
from reliefwatch.models.sos_signal import SignalNote, SignalPriority, SignalStatus, SosSignal

__all__ = [
    "Disaster",
    "DisasterSeverity",
    "DisasterStatus",
    "DisasterType",
    "SignalNote",
    "SignalPriority",
    "SignalStatus",
    "SosSignal",
]
