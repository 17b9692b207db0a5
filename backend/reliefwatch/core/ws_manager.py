"""WebSocket connection manager for real-time dashboard events."""

import asyncio
import json
import logging
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks active WebSocket connections keyed by channel (dashboard or responder id)."""

    def __init__(self) -> None:
        # channel -> set of active websocket connections
        self._connections: dict[str, set[WebSocket]] = {}
        self._loop: asyncio.AbstractEventLoop | None = None

    async def connect(self, websocket: WebSocket, channel: str) -> None:
        await websocket.accept()
        self._loop = asyncio.get_running_loop()
        self._connections.setdefault(channel, set()).add(websocket)
        logger.info("WS connected: channel=%s (total=%s)", channel, self.total_connections)

    def disconnect(self, websocket: WebSocket, channel: str) -> None:
        conns = self._connections.get(channel)
        if conns:
            conns.discard(websocket)
            if not conns:
                del self._connections[channel]
        logger.info("WS disconnected: channel=%s (total=%s)", channel, self.total_connections)

    async def send_to_channel(self, channel: str, event: str, data: Any) -> None:
        """Send event to all connections on a channel."""
        conns = self._connections.get(channel, set())
        payload = json.dumps({"event": event, "data": data}, default=str)
        dead: list[WebSocket] = []
        for ws in list(conns):
            try:
                await ws.send_text(payload)
            except Exception:
                dead.append(ws)
        for ws in dead:
            conns.discard(ws)

    def publish(self, channel: str, event: str, data: Any) -> None:
        """Fire-and-forget send, callable from the event loop or from a worker thread."""
        loop = self._loop
        if loop is None or loop.is_closed() or not self.subscriber_count(channel):
            return
        coro = self.send_to_channel(channel, event, data)
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            loop.create_task(coro)
        else:
            asyncio.run_coroutine_threadsafe(coro, loop)

    def subscriber_count(self, channel: str) -> int:
        return len(self._connections.get(channel, ()))

    @property
    def total_connections(self) -> int:
        return sum(len(c) for c in self._connections.values())


# Singleton instance used across the app
ws_manager = ConnectionManager()
