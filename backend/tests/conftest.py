"""Pytest fixtures."""

import os

os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["ESCALATION_SCHEDULER_ENABLED"] = "false"

from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from reliefwatch.db.base import Base  # noqa: E402
from reliefwatch.db.session import SessionLocal, engine  # noqa: E402
from reliefwatch.main import app  # noqa: E402
from reliefwatch.models import Disaster, SignalNote, SignalPriority, SignalStatus, SosSignal  # noqa: E402, F401 - register for create_all
from reliefwatch.services.notification_service import in_app_notifications  # noqa: E402

# Fixed clock for engine tests
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

COLOMBO = (6.9271, 79.8612)


class RecordingSink:
    """Notification sink that remembers every call."""

    def __init__(self):
        self.calls = []

    def notify_escalation(self, signal, previous_level, new_level, actor):
        self.calls.append(("escalation", signal.id, previous_level, new_level, actor))

    def notify_status_update(self, signal, previous_status, new_status, actor):
        self.calls.append(("status", signal.id, previous_status, new_status, actor))

    def notify_responder_assignment(self, signal, responder_id, actor):
        self.calls.append(("assignment", signal.id, responder_id, actor))


@pytest.fixture(scope="session")
def setup_db():
    """Create tables once for test session."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(setup_db):
    """Session on the test database; all rows are wiped afterwards."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        with engine.begin() as conn:
            for table in reversed(Base.metadata.sorted_tables):
                conn.execute(table.delete())
        in_app_notifications.clear()


@pytest.fixture
def client(db):
    """Test client; the escalation scheduler is disabled via env."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def notifier():
    return RecordingSink()


@pytest.fixture
def make_signal(db):
    """Insert a signal created `age` before `now`."""

    def _make(
        age=timedelta(0),
        *,
        now=None,
        lat=COLOMBO[0],
        lng=COLOMBO[1],
        priority=SignalPriority.MEDIUM,
        status=SignalStatus.PENDING,
        level=0,
        message="Need help",
        auto_escalated_after=None,
        assigned_responder=None,
    ):
        now = now or datetime.now(timezone.utc)
        created_at = now - age
        signal = SosSignal(
            user_id="citizen-1",
            latitude=lat,
            longitude=lng,
            message=message,
            priority=priority,
            status=status,
            escalation_level=level,
            assigned_responder=assigned_responder,
            created_at=created_at,
            updated_at=created_at,
            auto_escalated_at=created_at + auto_escalated_after if auto_escalated_after is not None else None,
        )
        db.add(signal)
        db.commit()
        db.refresh(signal)
        return signal

    return _make
