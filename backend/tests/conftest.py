"""
Pytest configuration and shared fixtures
"""
import os

# Keep tests away from Redis and the on-disk database
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_CACHE_URL", "")
os.environ.setdefault("ENABLE_REALTIME", "false")
os.environ.setdefault("RATE_LIMIT_STORAGE_URI", "memory://")
os.environ.setdefault("SECRET_KEY", "test-secret")

from datetime import datetime, timedelta
from typing import Generator
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from roombook.api.deps import get_clock, get_notifier
from roombook.core.cache import get_cache
from roombook.core.limiter import limiter
from roombook.core.locks import RoomLockRegistry
from roombook.core.security import create_access_token
from roombook.db import get_session, init_db
from roombook.main import app
from roombook.models import Room
from roombook.schemas import ReservationCreate
from roombook.services.access import AccessService
from roombook.services.reservations import ReservationService

# Friday; the first bookable Monday is 2030-01-07
NOW = datetime(2030, 1, 4, 12, 0)
MONDAY = datetime(2030, 1, 7)
SATURDAY = datetime(2030, 1, 12)
WORKDAYS = [1, 2, 3, 4, 5]


class FrozenClock:
    """Clock the tests move by hand."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, value: datetime) -> None:
        self.now = value

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingNotifier:
    """Notification sink that keeps every published event."""

    def __init__(self):
        self.events = []

    def publish(self, event, audience, payload):
        self.events.append((event.value, audience, payload))

    def names(self):
        return [name for name, _, _ in self.events]

    def for_audience(self, audience):
        return [name for name, target, _ in self.events if target == audience]


def at(day: datetime, hour: int, minute: int = 0) -> datetime:
    return day.replace(hour=hour, minute=minute)


@pytest.fixture(scope="function")
def engine():
    """In-memory database engine"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    SQLModel.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def file_engine(tmp_path):
    """File database for tests that use several threads and sessions"""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'roombook-test.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session(engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def locks():
    return RoomLockRegistry()


@pytest.fixture
def owner_id():
    return uuid4()


@pytest.fixture
def other_id():
    return uuid4()


def build_room(**overrides) -> Room:
    data = {
        "room_number": "301",
        "name": "Meeting room 301",
        "capacity": 10,
        "facilities": ["projector"],
        "operating_hours": {"start_time": "09:00", "end_time": "18:00", "weekdays": WORKDAYS},
    }
    data.update(overrides)
    return Room(**data)


@pytest.fixture
def room(session) -> Room:
    """Capacity 10, open Monday to Friday 09:00-18:00"""
    room = build_room()
    session.add(room)
    session.commit()
    session.refresh(room)
    return room


@pytest.fixture
def reservations(session, notifier, locks, clock) -> ReservationService:
    return ReservationService(session, notifier=notifier, locks=locks, clock=clock)


@pytest.fixture
def access(session, notifier, clock, reservations) -> AccessService:
    return AccessService(session, notifier=notifier, clock=clock, reservations=reservations)


@pytest.fixture
def booking_request(room):
    """Factory for create payloads on the default room"""

    def _make(start=None, end=None, attendees=5, **overrides):
        start = start or at(MONDAY, 10)
        end = end or start + timedelta(hours=1)
        data = {
            "room_id": room.id,
            "title": "Sprint review",
            "purpose": "Demo of the finished stories",
            "start_time": start,
            "end_time": end,
            "attendees": attendees,
        }
        data.update(overrides)
        return ReservationCreate(**data)

    return _make


@pytest.fixture
def confirmed_reservation(reservations, booking_request, owner_id):
    """Monday 10:00-11:00, confirmed"""
    reservation = reservations.create(booking_request(), owner_id)
    return reservations.confirm(reservation.id)


# ============== API fixtures ==============


@pytest.fixture(autouse=True)
def reset_shared_state():
    get_cache().clear()
    limiter.reset()
    yield


@pytest.fixture(scope="function")
def client(engine, notifier, clock):
    def override_get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _headers(user_id, role="user"):
    return {"Authorization": f"Bearer {create_access_token(user_id, role=role)}"}


@pytest.fixture
def owner_headers(owner_id):
    return _headers(owner_id)


@pytest.fixture
def other_headers(other_id):
    return _headers(other_id)


@pytest.fixture
def admin_headers():
    return _headers(uuid4(), role="admin")
