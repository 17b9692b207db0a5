"""Proximity clustering of live SOS signals for the dashboard."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from reliefwatch.core.escalation_policies import DEFAULT_CLUSTER_RADIUS_KM
from reliefwatch.models.sos_signal import SignalPriority, SosSignal
from reliefwatch.services.geo_service import GeoPoint, point_distance_km
from reliefwatch.services.signal_repository import SignalRepository

logger = logging.getLogger(__name__)


@dataclass
class ProximityCluster:
    """Ephemeral group of nearby signals; never persisted."""

    id: str
    center: GeoPoint
    priority: SignalPriority
    radius_km: float
    signal_ids: list[int] = field(default_factory=list)
    status: str = "active"

    @property
    def size(self) -> int:
        return len(self.signal_ids)


@dataclass
class ClusterSummary:
    total_clusters: int
    total_signals: int
    clustered_signals: int
    average_cluster_size: float
    critical_clusters: int
    high_priority_clusters: int


def compute_clusters(
    signals: Sequence[SosSignal],
    radius_km: float = DEFAULT_CLUSTER_RADIUS_KM,
) -> list[ProximityCluster]:
    """
    Greedy single-pass clustering in input order.

    Each unprocessed signal seeds a cluster and absorbs every other unprocessed
    signal within radius_km of the seed (not of the other members), so two
    members may be further than radius_km apart. Clusters come back sorted by
    priority, then member count, both descending; ties keep discovery order.
    """
    if radius_km <= 0:
        raise ValueError("radius_km must be positive")

    located = []
    for s in signals:
        if s.location is None:
            logger.warning("Signal %s has no location; excluded from clustering", s.id)
            continue
        located.append(s)

    clusters: list[ProximityCluster] = []
    processed: set[int] = set()

    for seed in located:
        if seed.id in processed:
            continue

        members = [seed]
        priority = seed.priority
        for other in located:
            if other.id == seed.id or other.id in processed:
                continue
            if point_distance_km(seed.location, other.location) <= radius_km:
                members.append(other)
                processed.add(other.id)
                if other.priority.rank > priority.rank:
                    priority = other.priority

        processed.add(seed.id)

        center = seed.location
        if len(members) > 1:
            center = GeoPoint(
                lat=sum(m.latitude for m in members) / len(members),
                lng=sum(m.longitude for m in members) / len(members),
            )

        clusters.append(
            ProximityCluster(
                id=f"cluster_{seed.id}",
                center=center,
                priority=priority,
                radius_km=radius_km,
                signal_ids=[m.id for m in members],
            )
        )

    clusters.sort(key=lambda c: (-c.priority.rank, -c.size))
    return clusters


def summarize_clusters(clusters: Sequence[ProximityCluster], total_signals: int) -> ClusterSummary:
    clustered = sum(c.size for c in clusters)
    return ClusterSummary(
        total_clusters=len(clusters),
        total_signals=total_signals,
        clustered_signals=clustered,
        average_cluster_size=round(clustered / len(clusters), 1) if clusters else 0.0,
        critical_clusters=sum(1 for c in clusters if c.priority == SignalPriority.CRITICAL),
        high_priority_clusters=sum(1 for c in clusters if c.priority == SignalPriority.HIGH),
    )


def get_active_clusters(
    db: Session,
    radius_km: float = DEFAULT_CLUSTER_RADIUS_KM,
) -> tuple[list[ProximityCluster], ClusterSummary]:
    """Cluster every live signal, oldest first."""
    signals = SignalRepository(db).find_active()
    clusters = compute_clusters(signals, radius_km)
    return clusters, summarize_clusters(clusters, len(signals))
