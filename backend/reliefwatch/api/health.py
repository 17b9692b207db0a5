"""Health check endpoint."""

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
def health(request: Request) -> dict:
    """Return API health status and whether the escalation scheduler is running."""
    scheduler = getattr(request.app.state, "escalation_scheduler", None)
    return {"status": "ok", "scheduler_running": bool(scheduler and scheduler.is_running)}
