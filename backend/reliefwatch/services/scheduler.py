"""Background driver running the escalation pass on a fixed interval."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from reliefwatch.db.session import SessionLocal
from reliefwatch.services.escalation_service import EscalationPassResult, build_escalation_engine
from reliefwatch.services.notification_service import get_notifier

logger = logging.getLogger(__name__)

PassRunner = Callable[[], EscalationPassResult]


def run_scheduled_escalation_pass() -> EscalationPassResult:
    """One tick: a fresh session, the default notifier, the configured thresholds."""
    db = SessionLocal()
    try:
        return build_escalation_engine(db, get_notifier()).run_escalation_pass()
    finally:
        db.close()


class EscalationScheduler:
    """
    Wraps APScheduler's BackgroundScheduler for the escalation pass.

    Runs once immediately on start, then every `interval_minutes`. Passes never
    overlap: a tick that finds a pass in progress is skipped, while on-demand
    triggers wait their turn.
    """

    JOB_ID = "sos-auto-escalation"

    def __init__(self, run_pass: PassRunner = run_scheduled_escalation_pass, interval_minutes: float = 5) -> None:
        if interval_minutes <= 0:
            raise ValueError("interval_minutes must be positive")
        self._run_pass = run_pass
        self.interval_minutes = interval_minutes
        self._scheduler: BackgroundScheduler | None = None
        self._lock = threading.Lock()
        self.last_result: EscalationPassResult | None = None

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        if self.is_running:
            logger.warning("Escalation scheduler already running")
            return

        self._scheduler = BackgroundScheduler(
            timezone=timezone.utc,
            job_defaults={"coalesce": True, "max_instances": 1},
        )
        self._scheduler.add_job(
            self._tick,
            IntervalTrigger(seconds=self.interval_minutes * 60, timezone=timezone.utc),
            id=self.JOB_ID,
            next_run_time=datetime.now(timezone.utc),
        )
        self._scheduler.start()
        logger.info("Escalation scheduler started with %s minute intervals", self.interval_minutes)

    def stop(self, wait: bool = True) -> None:
        """Shut down; with wait=True an in-flight pass finishes first."""
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
            logger.info("Escalation scheduler stopped")
        self._scheduler = None

    def trigger(self, run_pass: PassRunner | None = None) -> EscalationPassResult:
        """Run a pass now, after any pass already in progress."""
        with self._lock:
            return self._execute(run_pass or self._run_pass)

    def _tick(self) -> EscalationPassResult | None:
        if not self._lock.acquire(blocking=False):
            logger.warning("Previous escalation pass still running; skipping tick")
            return None
        try:
            return self._execute(self._run_pass)
        finally:
            self._lock.release()

    def _execute(self, run_pass: PassRunner) -> EscalationPassResult:
        try:
            result = run_pass()
        except Exception as e:
            logger.exception("Escalation pass crashed")
            result = EscalationPassResult(success=False, error=str(e))
        self.last_result = result
        return result
