"""Notification sinks for escalation, status and assignment events.

Delivery is best-effort: the engine calls sinks through SafeNotifier, which logs
and swallows any failure so a broken transport can never undo or delay a signal
state change.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from reliefwatch.core.clock import utcnow
from reliefwatch.core.config import settings
from reliefwatch.core.ws_manager import ConnectionManager, ws_manager
from reliefwatch.models.sos_signal import SignalStatus, SosSignal

logger = logging.getLogger(__name__)

DASHBOARD_CHANNEL = "dashboard"


class NotificationSink(Protocol):
    def notify_escalation(self, signal: SosSignal, previous_level: int, new_level: int, actor: str) -> None: ...

    def notify_status_update(
        self, signal: SosSignal, previous_status: SignalStatus, new_status: SignalStatus, actor: str
    ) -> None: ...

    def notify_responder_assignment(self, signal: SosSignal, responder_id: str, actor: str) -> None: ...


def signal_payload(signal: SosSignal) -> dict[str, Any]:
    return {
        "signal_id": signal.id,
        "priority": signal.priority.value,
        "status": signal.status.value,
        "escalation_level": signal.escalation_level,
        "latitude": signal.latitude,
        "longitude": signal.longitude,
        "message": signal.message,
        "assigned_responder": signal.assigned_responder,
    }


def _recipients(signal: SosSignal) -> list[str]:
    recipients = [DASHBOARD_CHANNEL]
    if signal.assigned_responder:
        recipients.append(signal.assigned_responder)
    return recipients


@dataclass
class Notification:
    type: str
    title: str
    message: str
    signal_id: int | None
    data: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=utcnow)
    read: bool = False


class InAppNotificationSink:
    """In-memory notification inbox per recipient, newest `history_limit` kept."""

    def __init__(self, history_limit: int = 50) -> None:
        self.history_limit = history_limit
        self._inboxes: dict[str, deque[Notification]] = {}
        self._lock = threading.Lock()

    def _store(self, recipient: str, notification: Notification) -> None:
        with self._lock:
            inbox = self._inboxes.setdefault(recipient, deque(maxlen=self.history_limit))
            inbox.append(notification)
        logger.debug("Stored notification for %s: %s", recipient, notification.title)

    def _fan_out(self, signal: SosSignal, **kwargs: Any) -> None:
        for recipient in _recipients(signal):
            # separate objects so read flags are per recipient
            self._store(recipient, Notification(signal_id=signal.id, **kwargs))

    def notify_escalation(self, signal: SosSignal, previous_level: int, new_level: int, actor: str) -> None:
        self._fan_out(
            signal,
            type="sos_escalation",
            title=f"SOS #{signal.id} escalated to level {new_level}",
            message=f"Escalated from level {previous_level} to {new_level} by {actor}. "
            f"Priority: {signal.priority.value}.",
            data={**signal_payload(signal), "previous_level": previous_level, "actor": actor},
        )

    def notify_status_update(
        self, signal: SosSignal, previous_status: SignalStatus, new_status: SignalStatus, actor: str
    ) -> None:
        self._fan_out(
            signal,
            type="sos_status_update",
            title=f"SOS #{signal.id} is now {new_status.value}",
            message=f'Status changed from "{previous_status.value}" to "{new_status.value}" by {actor}.',
            data={**signal_payload(signal), "previous_status": previous_status.value, "actor": actor},
        )

    def notify_responder_assignment(self, signal: SosSignal, responder_id: str, actor: str) -> None:
        self._fan_out(
            signal,
            type="sos_assignment",
            title=f"SOS #{signal.id} assigned",
            message=f"Assigned to responder {responder_id} by {actor}: {signal.message}",
            data={**signal_payload(signal), "actor": actor},
        )

    def list_for(self, recipient: str) -> list[Notification]:
        with self._lock:
            return list(self._inboxes.get(recipient, ()))

    def mark_read(self, recipient: str, notification_id: str) -> bool:
        with self._lock:
            for n in self._inboxes.get(recipient, ()):
                if n.id == notification_id:
                    n.read = True
                    return True
        return False

    def mark_all_read(self, recipient: str) -> int:
        with self._lock:
            inbox = self._inboxes.get(recipient, ())
            for n in inbox:
                n.read = True
            return len(inbox)

    def delete(self, recipient: str, notification_id: str) -> Notification | None:
        with self._lock:
            inbox = self._inboxes.get(recipient)
            if not inbox:
                return None
            for n in inbox:
                if n.id == notification_id:
                    inbox.remove(n)
                    return n
        return None

    def clear(self) -> None:
        with self._lock:
            self._inboxes.clear()


class WebSocketNotificationSink:
    """Pushes events to dashboard / responder WebSocket channels."""

    def __init__(self, manager: ConnectionManager = ws_manager) -> None:
        self.manager = manager

    def _publish(self, signal: SosSignal, event: str, data: dict[str, Any]) -> None:
        for channel in _recipients(signal):
            self.manager.publish(channel, event, data)

    def notify_escalation(self, signal: SosSignal, previous_level: int, new_level: int, actor: str) -> None:
        self._publish(signal, "sos.escalated", {**signal_payload(signal), "previous_level": previous_level, "actor": actor})

    def notify_status_update(
        self, signal: SosSignal, previous_status: SignalStatus, new_status: SignalStatus, actor: str
    ) -> None:
        self._publish(
            signal,
            "sos.status_updated",
            {**signal_payload(signal), "previous_status": previous_status.value, "actor": actor},
        )

    def notify_responder_assignment(self, signal: SosSignal, responder_id: str, actor: str) -> None:
        self._publish(signal, "sos.assigned", {**signal_payload(signal), "actor": actor})


class SafeNotifier:
    """Fans a notification out to several sinks, isolating each sink's failures."""

    def __init__(self, *sinks: NotificationSink) -> None:
        self.sinks = sinks

    def _call(self, method: str, signal: SosSignal, *args: Any) -> None:
        for sink in self.sinks:
            try:
                getattr(sink, method)(signal, *args)
            except Exception:
                logger.exception(
                    "Notification %s via %s failed for signal %s", method, type(sink).__name__, signal.id
                )

    def notify_escalation(self, signal: SosSignal, previous_level: int, new_level: int, actor: str) -> None:
        self._call("notify_escalation", signal, previous_level, new_level, actor)

    def notify_status_update(
        self, signal: SosSignal, previous_status: SignalStatus, new_status: SignalStatus, actor: str
    ) -> None:
        self._call("notify_status_update", signal, previous_status, new_status, actor)

    def notify_responder_assignment(self, signal: SosSignal, responder_id: str, actor: str) -> None:
        self._call("notify_responder_assignment", signal, responder_id, actor)


def guarded(notifier: NotificationSink) -> SafeNotifier:
    """Wrap a bare sink so its failures are logged instead of raised."""
    return notifier if isinstance(notifier, SafeNotifier) else SafeNotifier(notifier)


# Singleton inbox shared by the API and the scheduler
in_app_notifications = InAppNotificationSink(history_limit=settings.notification_history_limit)


def get_notifier() -> SafeNotifier:
    """Dependency for FastAPI: the default notification fan-out."""
    return SafeNotifier(in_app_notifications, WebSocketNotificationSink())
