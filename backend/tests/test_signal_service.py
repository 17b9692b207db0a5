"""Responder operations: assignment, status changes, manual escalation."""

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from conftest import NOW
from reliefwatch.core.config import settings
from reliefwatch.core.clock import as_utc
from reliefwatch.core.errors import InvalidTransitionError, SignalNotFoundError
from reliefwatch.models import Disaster, SignalPriority, SignalStatus, SosSignal
from reliefwatch.services.signal_repository import SignalRepository
from reliefwatch.services.signal_service import (
    assign_responder,
    get_signal,
    manual_escalate,
    signal_metrics,
    update_status,
)


def _reload(db, signal_id):
    db.expire_all()
    return db.get(SosSignal, signal_id)


def test_get_missing_signal(db):
    with pytest.raises(SignalNotFoundError) as exc:
        get_signal(db, 9999)
    assert exc.value.signal_id == 9999


def test_assign_acknowledges_pending_signal(db, make_signal, notifier):
    signal = make_signal(timedelta(minutes=5), now=NOW)

    assign_responder(db, notifier, signal.id, "responder-7", "coordinator-1", "Boat team", now=NOW)

    s = _reload(db, signal.id)
    assert s.assigned_responder == "responder-7"
    assert s.status == SignalStatus.ACKNOWLEDGED
    assert [(n.author_id, n.text) for n in s.notes] == [
        ("coordinator-1", "Assigned to responder: responder-7. Boat team")
    ]
    assert notifier.calls == [
        ("assignment", signal.id, "responder-7", "coordinator-1"),
        ("status", signal.id, SignalStatus.PENDING, SignalStatus.ACKNOWLEDGED, "coordinator-1"),
    ]


def test_reassign_keeps_status(db, make_signal, notifier):
    signal = make_signal(status=SignalStatus.RESPONDING, assigned_responder="responder-1")

    assign_responder(db, notifier, signal.id, "responder-2", "coordinator-1")

    s = _reload(db, signal.id)
    assert s.status == SignalStatus.RESPONDING
    assert s.notes[0].text == "Assigned to responder: responder-2."
    assert [c[0] for c in notifier.calls] == ["assignment"]


@pytest.mark.parametrize("status", [SignalStatus.RESOLVED, SignalStatus.FALSE_ALARM])
def test_cannot_assign_closed_signal(db, make_signal, notifier, status):
    signal = make_signal(status=status)

    with pytest.raises(InvalidTransitionError):
        assign_responder(db, notifier, signal.id, "responder-7", "coordinator-1")
    assert notifier.calls == []


def test_status_update_stamps_response_and_resolution(db, make_signal, notifier):
    signal = make_signal(timedelta(minutes=30), now=NOW)

    update_status(db, notifier, signal.id, SignalStatus.RESPONDING, "responder-7", now=NOW)
    later = NOW + timedelta(minutes=40)
    update_status(db, notifier, signal.id, SignalStatus.RESOLVED, "responder-7", "Family evacuated", now=later)

    s = _reload(db, signal.id)
    assert as_utc(s.response_time) == NOW
    assert as_utc(s.resolution_time) == later
    assert [n.text for n in s.notes] == [
        'Status changed from "pending" to "responding"',
        'Status changed from "responding" to "resolved". Family evacuated',
    ]
    assert signal_metrics(s) == {"response_minutes": 30, "resolution_minutes": 70}
    assert notifier.calls[-1] == ("status", signal.id, SignalStatus.RESPONDING, SignalStatus.RESOLVED, "responder-7")


def test_response_time_is_only_stamped_once(db, make_signal, notifier):
    signal = make_signal(timedelta(minutes=30), now=NOW)

    update_status(db, notifier, signal.id, SignalStatus.RESPONDING, "r", now=NOW)
    update_status(db, notifier, signal.id, SignalStatus.ACKNOWLEDGED, "r", now=NOW + timedelta(minutes=1))
    update_status(db, notifier, signal.id, SignalStatus.RESPONDING, "r", now=NOW + timedelta(minutes=2))

    assert as_utc(_reload(db, signal.id).response_time) == NOW


def test_metrics_empty_for_new_signal(make_signal):
    assert signal_metrics(make_signal()) == {}


def test_resolved_signal_leaves_escalation(db, make_signal, notifier):
    signal = make_signal(timedelta(minutes=20), now=NOW)
    update_status(db, notifier, signal.id, SignalStatus.RESOLVED, "responder-7", now=NOW)

    assert SignalRepository(db).find_escalation_candidates(NOW + timedelta(hours=1)) == []


def test_manual_escalation(db, make_signal, notifier):
    signal = make_signal(timedelta(minutes=5), now=NOW, priority=SignalPriority.LOW)

    manual_escalate(db, notifier, signal.id, 1, "coordinator-1", "Child injured", now=NOW)

    s = _reload(db, signal.id)
    assert s.escalation_level == 1
    assert s.priority == SignalPriority.HIGH
    assert as_utc(s.auto_escalated_at) == NOW
    assert s.notes[0].text == "Manually escalated to level 1. Reason: Child injured"
    assert notifier.calls == [("escalation", signal.id, 0, 1, "coordinator-1")]


def test_manual_escalation_without_reason(db, make_signal, notifier):
    signal = make_signal()

    manual_escalate(db, notifier, signal.id, 2, "coordinator-1")

    s = _reload(db, signal.id)
    assert s.priority == SignalPriority.CRITICAL
    assert s.notes[0].text == "Manually escalated to level 2. Reason: No reason provided"


def test_manual_escalation_cannot_lower_level(db, make_signal, notifier):
    signal = make_signal(level=2, priority=SignalPriority.CRITICAL)

    with pytest.raises(InvalidTransitionError):
        manual_escalate(db, notifier, signal.id, 1, "coordinator-1")
    assert _reload(db, signal.id).escalation_level == 2


@pytest.mark.parametrize("level", [-1, 3])
def test_manual_escalation_level_range(db, make_signal, notifier, level):
    signal = make_signal()
    with pytest.raises(InvalidTransitionError):
        manual_escalate(db, notifier, signal.id, level, "coordinator-1")


def test_manual_escalation_of_closed_signal(db, make_signal, notifier):
    signal = make_signal(status=SignalStatus.RESOLVED)
    with pytest.raises(InvalidTransitionError):
        manual_escalate(db, notifier, signal.id, 1, "coordinator-1")


def test_manual_critical_escalation_synthesizes_disaster(db, make_signal, notifier):
    signal = make_signal(timedelta(minutes=5), now=NOW, message="Landslide buried houses")
    for i in range(2):
        make_signal(timedelta(minutes=10), now=NOW, lat=6.9275 + 0.001 * i, priority=SignalPriority.HIGH)

    manual_escalate(db, notifier, signal.id, 2, "coordinator-1", now=NOW)

    db.expire_all()
    disaster = db.execute(select(Disaster)).scalar_one()
    assert disaster.title == "Auto-detected landslide (3 SOS signals)"
    assert db.execute(select(func.count()).select_from(Disaster)).scalar() == 1


def test_manual_escalation_honours_configured_disaster_rules(db, make_signal, notifier, monkeypatch):
    monkeypatch.setattr(settings, "disaster_min_nearby_signals", 1)
    signal = make_signal(timedelta(minutes=5), now=NOW)
    make_signal(timedelta(minutes=10), now=NOW, lat=6.9275, priority=SignalPriority.HIGH)

    manual_escalate(db, notifier, signal.id, 2, "coordinator-1", now=NOW)

    db.expire_all()
    assert db.execute(select(func.count()).select_from(Disaster)).scalar() == 1


class ExplodingSink:
    def notify_escalation(self, *args):
        raise ConnectionError("push gateway down")

    notify_status_update = notify_escalation
    notify_responder_assignment = notify_escalation


def test_responder_ops_survive_bare_failing_sink(db, make_signal):
    signal = make_signal()

    assign_responder(db, ExplodingSink(), signal.id, "responder-7", "coordinator-1")
    update_status(db, ExplodingSink(), signal.id, SignalStatus.RESPONDING, "responder-7")
    manual_escalate(db, ExplodingSink(), signal.id, 1, "coordinator-1")

    s = _reload(db, signal.id)
    assert (s.status, s.escalation_level, len(s.notes)) == (SignalStatus.RESPONDING, 1, 3)
