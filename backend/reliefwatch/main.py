"""reliefwatch FastAPI application."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from reliefwatch.api import health, notifications, sos, ws
from reliefwatch.core.config import settings
from reliefwatch.services.scheduler import EscalationScheduler

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = EscalationScheduler(interval_minutes=settings.escalation_interval_minutes)
    app.state.escalation_scheduler = scheduler
    if settings.escalation_scheduler_enabled:
        scheduler.start()
    try:
        yield
    finally:
        scheduler.stop(wait=True)


app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(sos.router)
app.include_router(notifications.router)
app.include_router(ws.router)
