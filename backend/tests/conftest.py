"""
Pytest configuration and fixtures for backend tests.

Provides shared fixtures for:
- In-memory SQLite sessions and the three stores
- A recording event publisher (no Redis needed)
- Schedule draft factories on a fixed clock
- A FastAPI TestClient with identity and session overrides
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import rendezvous.models  # noqa: F401  registers tables
from rendezvous.core.security import create_access_token
from rendezvous.repositories.notifications import NotificationStore
from rendezvous.repositories.reminders import ReminderScheduler
from rendezvous.repositories.schedules import ScheduleStore
from rendezvous.schemas import ScheduleDraft, ScheduleSnapshot
from rendezvous.services.events import EventPublisher


def epoch_ms(year, month, day, hour=0, minute=0) -> int:
    return int(datetime(year, month, day, hour, minute, tzinfo=timezone.utc).timestamp() * 1000)


# Scenario clock: a 10:00-11:00 meeting on 2024-01-01, planned at 08:00
START = epoch_ms(2024, 1, 1, 10)
END = epoch_ms(2024, 1, 1, 11)
NOW = epoch_ms(2024, 1, 1, 8)

OWNER = "owner-a"
BOB = "user-b"
CAROL = "user-c"


class RecordingPublisher(EventPublisher):
    """EventPublisher that keeps messages in memory instead of sending them to Redis."""

    def __init__(self):
        super().__init__(url="redis://unused")
        self.messages = []
        self.available = True

    def _publish(self, channel: str, message: dict) -> bool:
        self.messages.append((channel, message))
        return True

    def ping(self) -> bool:
        return self.available

    def of_type(self, message_type: str):
        return [m for _, m in self.messages if m["type"] == message_type]


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def engine():
    """In-memory SQLite engine shared by every connection of the test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session(engine):
    with Session(engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def schedule_store(session):
    return ScheduleStore(session)


@pytest.fixture
def notification_store(session):
    return NotificationStore(session)


@pytest.fixture
def reminders(session):
    return ReminderScheduler(session)


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def service(session, publisher):
    from rendezvous.services.schedules import ScheduleService

    return ScheduleService(session, publisher=publisher)


# ============================================================================
# Factories
# ============================================================================

@pytest.fixture
def make_draft():
    """Factory for schedule drafts on the scenario clock."""

    def _make_draft(**overrides):
        data = {
            "title": "Planning",
            "description": "Quarterly planning",
            "location": "Room 4",
            "start_time": START,
            "end_time": END,
            "participant_ids": [BOB, CAROL],
        }
        data.update(overrides)
        return ScheduleDraft(**data)

    return _make_draft


@pytest.fixture
def make_snapshot():
    """Factory for unsaved snapshots; responses default to PENDING for every participant."""

    def _make_snapshot(participants=None, responses=None, **overrides):
        participants = list(participants if participants is not None else [BOB, CAROL])
        status = {user_id: "PENDING" for user_id in participants}
        status.update(responses or {})
        data = {
            "owner_id": OWNER,
            "title": "Planning",
            "start_time": START,
            "end_time": END,
            "participants": participants,
            "participant_status": status,
        }
        data.update(overrides)
        return ScheduleSnapshot(**data)

    return _make_snapshot


# ============================================================================
# API Fixtures
# ============================================================================

@pytest.fixture
def app(session, publisher):
    from rendezvous.db import get_session
    from rendezvous.main import create_application
    from rendezvous.services.events import get_publisher

    application = create_application(use_lifespan=False)

    def _get_session():
        yield session

    application.dependency_overrides[get_session] = _get_session
    application.dependency_overrides[get_publisher] = lambda: publisher
    return application


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def auth_headers():
    def _auth_headers(user_id: str) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _auth_headers

