"""SOS escalation and disaster synthesis policy constants."""

from __future__ import annotations

from dataclasses import dataclass

from reliefwatch.core.config import Settings, settings

# Highest escalation level a signal can reach
MAX_ESCALATION_LEVEL = 2

# Identity recorded on notes written by the engine
SYSTEM_ACTOR = "system"

# ~0.018 degrees per 2 km, used for the bounding-box pre-filter
DEGREES_PER_KM = 0.009

# Default radius for dashboard clusters in kilometers
DEFAULT_CLUSTER_RADIUS_KM = 2.0


@dataclass(frozen=True)
class EscalationThresholds:
    """Minutes since creation after which each escalation fires."""

    first_minutes: int = 15
    second_minutes: int = 30
    critical_minutes: int = 45

    def __post_init__(self) -> None:
        if not 0 < self.first_minutes <= self.second_minutes <= self.critical_minutes:
            raise ValueError("Escalation thresholds must be positive and non-decreasing")

    @classmethod
    def from_settings(cls, s: Settings = settings) -> EscalationThresholds:
        return cls(
            first_minutes=s.escalation_first_minutes,
            second_minutes=s.escalation_second_minutes,
            critical_minutes=s.escalation_critical_minutes,
        )


@dataclass(frozen=True)
class DisasterRules:
    """When a critical signal's neighbourhood becomes a disaster."""

    radius_km: float = 2.0
    lookback_hours: float = 2
    min_nearby_signals: int = 2  # plus the trigger = 3 total
    high_severity_signals: int = 5

    @classmethod
    def from_settings(cls, s: Settings = settings) -> DisasterRules:
        return cls(
            radius_km=s.disaster_radius_km,
            lookback_hours=s.disaster_lookback_hours,
            min_nearby_signals=s.disaster_min_nearby_signals,
            high_severity_signals=s.disaster_high_severity_signals,
        )


DEFAULT_THRESHOLDS = EscalationThresholds()
DEFAULT_DISASTER_RULES = DisasterRules()
