"""Notification sinks, inbox API and WebSocket feed."""

import logging

from conftest import RecordingSink
from reliefwatch.core.ws_manager import ConnectionManager, ws_manager
from reliefwatch.models import SignalPriority, SignalStatus, SosSignal
from reliefwatch.services.notification_service import (
    InAppNotificationSink,
    SafeNotifier,
    WebSocketNotificationSink,
    in_app_notifications,
)


def _signal(signal_id=1, responder=None):
    return SosSignal(
        id=signal_id,
        latitude=6.9271,
        longitude=79.8612,
        message="Trapped by flood",
        priority=SignalPriority.HIGH,
        status=SignalStatus.PENDING,
        escalation_level=1,
        assigned_responder=responder,
    )


class RecordingManager:
    def __init__(self):
        self.published = []

    def publish(self, channel, event, data):
        self.published.append((channel, event, data))


def test_inbox_keeps_newest_entries():
    sink = InAppNotificationSink(history_limit=3)
    for level in range(5):
        sink.notify_escalation(_signal(level), 0, 1, "system")

    inbox = sink.list_for("dashboard")
    assert [n.signal_id for n in inbox] == [2, 3, 4]


def test_assigned_responder_gets_own_copy():
    sink = InAppNotificationSink()
    sink.notify_escalation(_signal(responder="responder-7"), 0, 1, "system")

    (dash,) = sink.list_for("dashboard")
    (mine,) = sink.list_for("responder-7")
    assert dash.type == mine.type == "sos_escalation"
    assert dash.title == "SOS #1 escalated to level 1"
    assert dash.data["previous_level"] == 0
    assert dash.id != mine.id

    assert sink.mark_read("responder-7", mine.id)
    assert mine.read and not dash.read


def test_inbox_read_and_delete():
    sink = InAppNotificationSink()
    sink.notify_status_update(_signal(), SignalStatus.PENDING, SignalStatus.RESPONDING, "responder-7")
    sink.notify_responder_assignment(_signal(), "responder-7", "coordinator-1")

    first, second = sink.list_for("dashboard")
    assert first.message == 'Status changed from "pending" to "responding" by responder-7.'
    assert second.type == "sos_assignment"
    assert sink.mark_read("dashboard", "missing") is False
    assert sink.mark_all_read("dashboard") == 2
    assert all(n.read for n in sink.list_for("dashboard"))

    assert sink.delete("dashboard", first.id) is first
    assert sink.delete("dashboard", first.id) is None
    assert sink.delete("nobody", first.id) is None
    assert sink.list_for("dashboard") == [second]


def test_websocket_sink_targets_dashboard_and_responder():
    manager = RecordingManager()
    sink = WebSocketNotificationSink(manager)

    sink.notify_escalation(_signal(responder="responder-7"), 0, 1, "system")
    sink.notify_status_update(_signal(), SignalStatus.PENDING, SignalStatus.RESOLVED, "r")

    assert [(c, e) for c, e, _ in manager.published] == [
        ("dashboard", "sos.escalated"),
        ("responder-7", "sos.escalated"),
        ("dashboard", "sos.status_updated"),
    ]
    assert manager.published[2][2]["previous_status"] == "pending"


def test_publish_without_subscribers_is_noop():
    manager = ConnectionManager()
    manager.publish("dashboard", "sos.escalated", {"signal_id": 1})
    assert manager.total_connections == 0
    assert manager.subscriber_count("dashboard") == 0


class BrokenSink:
    def notify_escalation(self, *args):
        raise RuntimeError("smtp down")

    def notify_status_update(self, *args):
        raise RuntimeError("smtp down")

    def notify_responder_assignment(self, *args):
        raise RuntimeError("smtp down")


def test_safe_notifier_isolates_each_sink(caplog):
    recorder = RecordingSink()
    notifier = SafeNotifier(BrokenSink(), recorder)

    with caplog.at_level(logging.ERROR):
        notifier.notify_escalation(_signal(), 0, 1, "system")
        notifier.notify_status_update(_signal(), SignalStatus.PENDING, SignalStatus.RESPONDING, "r")
        notifier.notify_responder_assignment(_signal(), "responder-7", "c")

    assert [c[0] for c in recorder.calls] == ["escalation", "status", "assignment"]
    assert caplog.text.count("via BrokenSink failed for signal 1") == 3


# ---------- API ----------


def test_inbox_endpoints(client):
    in_app_notifications.notify_escalation(_signal(responder="responder-7"), 0, 1, "system")
    in_app_notifications.notify_escalation(_signal(2, responder="responder-7"), 1, 2, "system")

    response = client.get("/notifications/responder-7")
    assert response.status_code == 200
    items = response.json()
    assert [n["signal_id"] for n in items] == [1, 2]
    assert items[0]["read"] is False

    assert client.put(f"/notifications/responder-7/{items[0]['id']}/read").status_code == 200
    unread = client.get("/notifications/responder-7", params={"unread_only": True}).json()
    assert [n["signal_id"] for n in unread] == [2]

    assert client.put("/notifications/responder-7/read-all").json() == {"marked": 2}
    assert client.get("/notifications/responder-7", params={"unread_only": True}).json() == []

    deleted = client.delete(f"/notifications/responder-7/{items[1]['id']}")
    assert deleted.status_code == 200
    assert deleted.json()["signal_id"] == 2
    assert len(client.get("/notifications/responder-7").json()) == 1


def test_inbox_unknown_notification(client):
    assert client.put("/notifications/dashboard/nope/read").status_code == 404
    assert client.delete("/notifications/dashboard/nope").status_code == 404
    assert client.get("/notifications/nobody").json() == []


def test_dashboard_socket_ping(client):
    with client.websocket_connect("/ws/dashboard") as ws:
        ws.send_text("ping")
        assert ws.receive_json() == {"event": "pong"}
        assert ws_manager.subscriber_count("dashboard") == 1


def test_dashboard_socket_receives_escalation(client, make_signal):
    signal = make_signal()

    with client.websocket_connect("/ws/dashboard") as ws:
        ws.send_text("ping")
        ws.receive_json()

        response = client.post(
            f"/admin/sos/{signal.id}/escalate",
            json={"escalation_level": 1, "actor_id": "coordinator-1", "reason": "Injured"},
        )
        assert response.status_code == 200

        message = ws.receive_json()
        assert message["event"] == "sos.escalated"
        assert message["data"]["signal_id"] == signal.id
        assert message["data"]["escalation_level"] == 1
        assert message["data"]["actor"] == "coordinator-1"


def test_responder_socket_receives_assignment(client, make_signal):
    signal = make_signal()

    with client.websocket_connect("/ws/responders/responder-7") as ws:
        ws.send_text("ping")
        ws.receive_json()

        client.put(
            f"/admin/sos/{signal.id}/assign",
            json={"responder_id": "responder-7", "actor_id": "coordinator-1"},
        )

        events = [ws.receive_json()["event"], ws.receive_json()["event"]]
        assert events == ["sos.assigned", "sos.status_updated"]
