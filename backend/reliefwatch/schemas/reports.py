"""Dashboard and analytics report schemas."""

from pydantic import BaseModel

from reliefwatch.models.sos_signal import SignalPriority, SignalStatus
from reliefwatch.schemas.sos import SosSignalResponse
from reliefwatch.services.stats_service import TimeRange


class DashboardStatsResponse(BaseModel):
    total: int
    pending: int
    acknowledged: int
    responding: int
    resolved: int
    false_alarm: int
    critical: int
    high: int
    escalated: int

    model_config = {"from_attributes": True}


class PaginationResponse(BaseModel):
    page: int
    limit: int
    total_count: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool

    model_config = {"from_attributes": True}


class DashboardFilters(BaseModel):
    time_range: TimeRange
    status: SignalStatus | None = None
    priority: SignalPriority | None = None
    sort_order: str


class DashboardResponse(BaseModel):
    signals: list[SosSignalResponse]
    pagination: PaginationResponse
    stats: DashboardStatsResponse
    filters: DashboardFilters


class HourlyCount(BaseModel):
    hour: int
    count: int


class AnalyticsResponse(BaseModel):
    time_range: TimeRange
    total_signals: int
    resolved_signals: int
    resolution_rate: float
    avg_response_minutes: float
    avg_resolution_minutes: float
    escalated_count: int
    priority_distribution: dict[str, int]
    status_distribution: dict[str, int]
    hourly_trends: list[HourlyCount]
