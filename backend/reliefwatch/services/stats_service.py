"""Escalation statistics, dashboard counts and signal analytics over a time window."""

from __future__ import annotations

import enum
import math
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from reliefwatch.core.clock import as_utc, minutes_between, utcnow
from reliefwatch.models.sos_signal import SignalPriority, SignalStatus, SosSignal
from reliefwatch.services.signal_repository import SignalRepository


class TimeRange(str, enum.Enum):
    LAST_HOUR = "1h"
    LAST_6_HOURS = "6h"
    LAST_24_HOURS = "24h"
    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    ALL = "all"


TIME_RANGE_WINDOWS: dict[TimeRange, timedelta | None] = {
    TimeRange.LAST_HOUR: timedelta(hours=1),
    TimeRange.LAST_6_HOURS: timedelta(hours=6),
    TimeRange.LAST_24_HOURS: timedelta(days=1),
    TimeRange.LAST_7_DAYS: timedelta(days=7),
    TimeRange.LAST_30_DAYS: timedelta(days=30),
    TimeRange.ALL: None,
}

# Levels always present in the report, even when empty
REPORTED_LEVELS = (1, 2)


@dataclass
class LevelStats:
    count: int = 0
    avg_escalation_minutes: float = 0.0


def window_start(time_range: TimeRange, now: datetime) -> datetime | None:
    window = TIME_RANGE_WINDOWS[time_range]
    return None if window is None else now - window


def get_escalation_stats(
    db: Session,
    time_range: TimeRange = TimeRange.LAST_24_HOURS,
    now: datetime | None = None,
) -> dict[int, LevelStats]:
    """
    Count escalated signals and their mean time-to-escalation per level.

    Only signals whose auto_escalated_at falls inside the window are counted.
    An empty level reports zero for both figures.
    """
    now = as_utc(now) or utcnow()
    signals = SignalRepository(db).find_escalated_since(window_start(TimeRange(time_range), now))

    durations: dict[int, list[float]] = {level: [] for level in REPORTED_LEVELS}
    for s in signals:
        durations.setdefault(s.escalation_level, []).append(minutes_between(s.created_at, s.auto_escalated_at))

    return {
        level: LevelStats(
            count=len(values),
            avg_escalation_minutes=round(sum(values) / len(values), 2) if values else 0.0,
        )
        for level, values in sorted(durations.items())
    }


@dataclass
class DashboardStats:
    total: int = 0
    pending: int = 0
    acknowledged: int = 0
    responding: int = 0
    resolved: int = 0
    false_alarm: int = 0
    critical: int = 0
    high: int = 0
    escalated: int = 0


@dataclass
class Pagination:
    page: int
    limit: int
    total_count: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


@dataclass
class DashboardPage:
    signals: list[SosSignal]
    pagination: Pagination
    stats: DashboardStats


def dashboard_stats(signals: list[SosSignal]) -> DashboardStats:
    stats = DashboardStats(total=len(signals))
    for s in signals:
        setattr(stats, s.status.value, getattr(stats, s.status.value) + 1)
        if s.priority == SignalPriority.CRITICAL:
            stats.critical += 1
        elif s.priority == SignalPriority.HIGH:
            stats.high += 1
        if s.escalation_level > 0:
            stats.escalated += 1
    return stats


def get_dashboard(
    db: Session,
    time_range: TimeRange = TimeRange.LAST_24_HOURS,
    status: SignalStatus | None = None,
    priority: SignalPriority | None = None,
    page: int = 1,
    limit: int = 50,
    newest_first: bool = True,
    now: datetime | None = None,
) -> DashboardPage:
    """
    One page of signals created inside the window, plus counts over every match.

    The status / priority filters narrow both the page and the counts.
    """
    if page < 1 or limit < 1:
        raise ValueError("page and limit must be positive")
    now = as_utc(now) or utcnow()
    matches = SignalRepository(db).find_created_since(
        window_start(TimeRange(time_range), now), status, priority, newest_first
    )

    total = len(matches)
    total_pages = math.ceil(total / limit)
    start = (page - 1) * limit
    return DashboardPage(
        signals=matches[start:start + limit],
        pagination=Pagination(
            page=page,
            limit=limit,
            total_count=total,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        ),
        stats=dashboard_stats(matches),
    )


@dataclass
class SignalAnalytics:
    total_signals: int = 0
    resolved_signals: int = 0
    resolution_rate: float = 0.0  # percent
    avg_response_minutes: float = 0.0
    avg_resolution_minutes: float = 0.0
    escalated_count: int = 0
    priority_distribution: dict[str, int] = field(default_factory=dict)
    status_distribution: dict[str, int] = field(default_factory=dict)
    hourly_trends: list[tuple[int, int]] = field(default_factory=list)  # (UTC hour, count)


def _mean_minutes(pairs: list[tuple[datetime, datetime]]) -> float:
    if not pairs:
        return 0.0
    return round(sum(minutes_between(start, end) for start, end in pairs) / len(pairs), 2)


def get_signal_analytics(
    db: Session,
    time_range: TimeRange = TimeRange.LAST_24_HOURS,
    now: datetime | None = None,
) -> SignalAnalytics:
    """Resolution rate, response times and distributions for signals created inside the window."""
    now = as_utc(now) or utcnow()
    signals = SignalRepository(db).find_created_since(window_start(TimeRange(time_range), now), newest_first=False)
    if not signals:
        return SignalAnalytics()

    resolved = sum(1 for s in signals if s.status == SignalStatus.RESOLVED)
    hours = Counter(as_utc(s.created_at).hour for s in signals)
    return SignalAnalytics(
        total_signals=len(signals),
        resolved_signals=resolved,
        resolution_rate=round(resolved / len(signals) * 100, 1),
        avg_response_minutes=_mean_minutes([(s.created_at, s.response_time) for s in signals if s.response_time]),
        avg_resolution_minutes=_mean_minutes(
            [(s.created_at, s.resolution_time) for s in signals if s.resolution_time]
        ),
        escalated_count=sum(1 for s in signals if s.escalation_level > 0),
        priority_distribution=dict(Counter(s.priority.value for s in signals)),
        status_distribution=dict(Counter(s.status.value for s in signals)),
        hourly_trends=sorted(hours.items()),
    )
