"""Escalation pass, statistics and cluster schemas."""

from pydantic import BaseModel

from reliefwatch.models.sos_signal import SignalPriority
from reliefwatch.services.stats_service import TimeRange


class EscalationPassResponse(BaseModel):
    success: bool
    escalated_count: int
    failed_count: int
    skipped_count: int
    error: str | None = None

    model_config = {"from_attributes": True}


class LevelStatsResponse(BaseModel):
    count: int
    avg_escalation_minutes: float

    model_config = {"from_attributes": True}


class EscalationStatsResponse(BaseModel):
    time_range: TimeRange
    levels: dict[int, LevelStatsResponse]


class GeoPointResponse(BaseModel):
    lat: float
    lng: float


class ClusterResponse(BaseModel):
    id: str
    center: GeoPointResponse
    priority: SignalPriority
    radius_km: float
    signal_ids: list[int]
    size: int
    status: str


class ClusterSummaryResponse(BaseModel):
    total_clusters: int
    total_signals: int
    clustered_signals: int
    average_cluster_size: float
    critical_clusters: int
    high_priority_clusters: int

    model_config = {"from_attributes": True}


class ClustersResponse(BaseModel):
    clusters: list[ClusterResponse]
    summary: ClusterSummaryResponse
