"""Admin SOS escalation, statistics and cluster API."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from reliefwatch.core.config import settings
from reliefwatch.core.errors import (
    ConcurrentSignalUpdateError,
    InvalidTransitionError,
    ReliefwatchError,
    SignalNotFoundError,
)
from reliefwatch.db.session import get_db
from reliefwatch.models.sos_signal import SignalPriority, SignalStatus
from reliefwatch.schemas.escalation import (
    ClusterResponse,
    ClustersResponse,
    ClusterSummaryResponse,
    EscalationPassResponse,
    EscalationStatsResponse,
    GeoPointResponse,
    LevelStatsResponse,
)
from reliefwatch.schemas.reports import (
    AnalyticsResponse,
    DashboardFilters,
    DashboardResponse,
    DashboardStatsResponse,
    HourlyCount,
    PaginationResponse,
)
from reliefwatch.schemas.sos import (
    AssignResponderRequest,
    ManualEscalationRequest,
    SignalMetrics,
    SosSignalDetailResponse,
    SosSignalResponse,
    StatusUpdateRequest,
)
from reliefwatch.services.cluster_service import get_active_clusters
from reliefwatch.services.escalation_service import build_escalation_engine
from reliefwatch.services.notification_service import SafeNotifier, get_notifier
from reliefwatch.services.signal_service import (
    assign_responder,
    get_signal,
    manual_escalate,
    signal_metrics,
    update_status,
)
from reliefwatch.services.stats_service import TimeRange, get_dashboard, get_escalation_stats, get_signal_analytics

router = APIRouter(prefix="/admin/sos", tags=["sos"])


def _raise_http(e: ReliefwatchError) -> None:
    if isinstance(e, SignalNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, ConcurrentSignalUpdateError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/escalation/run", response_model=EscalationPassResponse)
def run_escalation(
    request: Request,
    db: Session = Depends(get_db),
    notifier: SafeNotifier = Depends(get_notifier),
):
    """Run an escalation pass now, serialized with the scheduler's own ticks."""
    engine = build_escalation_engine(db, notifier)
    scheduler = request.app.state.escalation_scheduler
    return scheduler.trigger(engine.run_escalation_pass)


@router.get("/escalation/stats", response_model=EscalationStatsResponse)
def escalation_stats(
    time_range: TimeRange = Query(default=TimeRange.LAST_24_HOURS),
    db: Session = Depends(get_db),
):
    """Escalation counts and mean time-to-escalation per level."""
    stats = get_escalation_stats(db, time_range)
    return EscalationStatsResponse(
        time_range=time_range,
        levels={level: LevelStatsResponse.model_validate(s) for level, s in stats.items()},
    )


@router.get("/clusters", response_model=ClustersResponse)
def clusters(
    radius: float = Query(default=settings.cluster_default_radius_km, gt=0, le=500),
    db: Session = Depends(get_db),
):
    """Geographic clusters of live SOS signals."""
    found, summary = get_active_clusters(db, radius)
    return ClustersResponse(
        clusters=[
            ClusterResponse(
                id=c.id,
                center=GeoPointResponse(lat=c.center.lat, lng=c.center.lng),
                priority=c.priority,
                radius_km=c.radius_km,
                signal_ids=c.signal_ids,
                size=c.size,
                status=c.status,
            )
            for c in found
        ],
        summary=ClusterSummaryResponse.model_validate(summary),
    )


@router.get("/dashboard", response_model=DashboardResponse)
def dashboard(
    time_range: TimeRange = Query(default=TimeRange.LAST_24_HOURS),
    status_filter: SignalStatus | None = Query(default=None, alias="status"),
    priority: SignalPriority | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    sort_order: str = Query(default="desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
):
    """Paged signal list for the admin dashboard with status / priority counts."""
    result = get_dashboard(
        db, time_range, status_filter, priority, page, limit, newest_first=sort_order == "desc"
    )
    return DashboardResponse(
        signals=[SosSignalResponse.model_validate(s) for s in result.signals],
        pagination=PaginationResponse.model_validate(result.pagination),
        stats=DashboardStatsResponse.model_validate(result.stats),
        filters=DashboardFilters(
            time_range=time_range, status=status_filter, priority=priority, sort_order=sort_order
        ),
    )


@router.get("/analytics", response_model=AnalyticsResponse)
def analytics(
    time_range: TimeRange = Query(default=TimeRange.LAST_24_HOURS),
    db: Session = Depends(get_db),
):
    """Resolution rate, response times and distributions."""
    a = get_signal_analytics(db, time_range)
    return AnalyticsResponse(
        time_range=time_range,
        total_signals=a.total_signals,
        resolved_signals=a.resolved_signals,
        resolution_rate=a.resolution_rate,
        avg_response_minutes=a.avg_response_minutes,
        avg_resolution_minutes=a.avg_resolution_minutes,
        escalated_count=a.escalated_count,
        priority_distribution=a.priority_distribution,
        status_distribution=a.status_distribution,
        hourly_trends=[HourlyCount(hour=h, count=c) for h, c in a.hourly_trends],
    )


@router.get("/{signal_id}", response_model=SosSignalDetailResponse)
def signal_details(signal_id: int, db: Session = Depends(get_db)):
    """Signal with its audit notes and response metrics."""
    try:
        signal = get_signal(db, signal_id)
    except ReliefwatchError as e:
        _raise_http(e)
    base = SosSignalResponse.model_validate(signal)
    return SosSignalDetailResponse(**base.model_dump(), metrics=SignalMetrics(**signal_metrics(signal)))


@router.put("/{signal_id}/assign", response_model=SosSignalResponse)
def assign(
    signal_id: int,
    data: AssignResponderRequest,
    db: Session = Depends(get_db),
    notifier: SafeNotifier = Depends(get_notifier),
):
    """Assign a responder to a signal."""
    try:
        return assign_responder(db, notifier, signal_id, data.responder_id, data.actor_id, data.notes)
    except ReliefwatchError as e:
        _raise_http(e)


@router.put("/{signal_id}/status", response_model=SosSignalResponse)
def change_status(
    signal_id: int,
    data: StatusUpdateRequest,
    db: Session = Depends(get_db),
    notifier: SafeNotifier = Depends(get_notifier),
):
    """Update a signal's status."""
    try:
        return update_status(db, notifier, signal_id, data.status, data.actor_id, data.notes)
    except ReliefwatchError as e:
        _raise_http(e)


@router.post("/{signal_id}/escalate", response_model=SosSignalResponse)
def escalate(
    signal_id: int,
    data: ManualEscalationRequest,
    db: Session = Depends(get_db),
    notifier: SafeNotifier = Depends(get_notifier),
):
    """Manually escalate a signal."""
    try:
        return manual_escalate(db, notifier, signal_id, data.escalation_level, data.actor_id, data.reason)
    except ReliefwatchError as e:
        _raise_http(e)
