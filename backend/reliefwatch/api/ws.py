"""WebSocket endpoints for live escalation events."""

from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from reliefwatch.core.ws_manager import ws_manager
from reliefwatch.services.notification_service import DASHBOARD_CHANNEL

logger = logging.getLogger(__name__)

router = APIRouter()


async def _serve(websocket: WebSocket, channel: str) -> None:
    await ws_manager.connect(websocket, channel)
    try:
        while True:
            # Keep connection alive; client can send pings
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text('{"event":"pong"}')
    except WebSocketDisconnect:
        pass
    finally:
        ws_manager.disconnect(websocket, channel)


@router.websocket("/ws/dashboard")
async def dashboard_socket(websocket: WebSocket):
    """
    Dashboard feed. Server pushes events: sos.escalated, sos.status_updated, sos.assigned
    """
    await _serve(websocket, DASHBOARD_CHANNEL)


@router.websocket("/ws/responders/{responder_id}")
async def responder_socket(websocket: WebSocket, responder_id: str):
    """Events for signals assigned to one responder."""
    await _serve(websocket, responder_id)
