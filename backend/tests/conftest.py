"""Shared test fixtures."""
import os

# Must be set before inspection_booking.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("STAFF_API_KEY", "test-staff-key")

from datetime import date, datetime, timezone

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from inspection_booking.database import build_engine, get_db, init_db
from inspection_booking.models import Centers, ServiceTypes
from inspection_booking.services.working_hours import dump_working_hours, parse_working_hours

STAFF_KEY = "test-staff-key"

# 2030-01-07 is a Monday
MONDAY = date(2030, 1, 7)
NOW = datetime(2030, 1, 1, 9, 0, tzinfo=timezone.utc)

MONDAY_MORNING = {"mon": [{"start": "08:00", "end": "12:00"}]}


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite, so threads in one test share the database."""
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def fake_redis(monkeypatch):
    """In-memory Redis used by the event emitter."""
    client = fakeredis.FakeRedis(decode_responses=True)
    monkeypatch.setattr("inspection_booking.redis_client.redis_client", client)
    return client


@pytest.fixture
def service(db) -> ServiceTypes:
    obj = ServiceTypes(name="Periodic inspection", duration_minutes=20, is_active=True)
    db.add(obj)
    db.commit()
    return obj


@pytest.fixture
def make_center(db, service):
    """Factory for centers offering ``service``."""
    def _create(
        working_hours=None,
        capacity: int = 2,
        slot_minutes: int = 20,
        tz: str = "UTC",
        name: str = "Casablanca Nord",
    ) -> Centers:
        hours = MONDAY_MORNING if working_hours is None else working_hours
        center = Centers(
            name=name,
            city="Casablanca",
            address="12 Bd Zerktouni",
            lat=33.5731,
            lng=-7.5898,
            capacity_per_slot=capacity,
            slot_duration_minutes=slot_minutes,
            working_hours=dump_working_hours(parse_working_hours(hours)),
            timezone=tz,
            is_active=True,
        )
        center.services = [service]
        db.add(center)
        db.commit()
        db.refresh(center)
        return center
    return _create


@pytest.fixture
def center(make_center) -> Centers:
    """Monday 08:00-12:00, 20 minute slots, capacity 2, UTC."""
    return make_center()


@pytest.fixture
def client(session_factory, fake_redis, monkeypatch):
    from inspection_booking.main import app
    from inspection_booking.config import settings
    from inspection_booking.redis_client import get_redis

    monkeypatch.setattr(settings, "staff_api_key", STAFF_KEY)

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_redis] = lambda: fake_redis
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def staff_headers():
    return {"X-Staff-Key": STAFF_KEY}
