"""Shared fixtures: fresh in-memory SQLite per test, fake Redis, API client.

Invariants:
    - Env defaults are set before slotswap is imported (Settings needs them)
    - Every test gets its own database; StaticPool keeps the single
      in-memory connection alive across sessions
    - The API client shares the test's database and cache through
      dependency overrides
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from slotswap.database import get_db, init_db, make_engine
from slotswap.dependencies import get_cache
from slotswap.main import app
from slotswap.models import SlotState, Users
from slotswap.routers.internal import require_local_caller
from slotswap.services.swaps import AvailabilityCache, SlotStore, SwapCacheConfig, SwapCoordinator

from .fake_redis import FakeRedis
from .helpers import BASE_TIME


@pytest.fixture
def engine():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    init_db(bind=engine)
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
def fake_redis():
    return FakeRedis()


@pytest.fixture
def cache(fake_redis):
    return AvailabilityCache(fake_redis, SwapCacheConfig(slots_ttl_seconds=900, swaps_ttl_seconds=600))


@pytest.fixture
def coordinator(db, cache):
    return SwapCoordinator(db, cache)


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(name: str | None = None) -> Users:
        counter["n"] += 1
        name = name or f"User {counter['n']}"
        user = Users(name=name, email=f"{name.lower().replace(' ', '.')}@example.com")
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def make_slot(db):
    counter = {"n": 0}

    def _make(owner: Users, state: SlotState = SlotState.OFFERED, title: str | None = None, hours_from_base: int | None = None):
        counter["n"] += 1
        offset = hours_from_base if hours_from_base is not None else counter["n"]
        start = BASE_TIME + timedelta(hours=offset)
        slot = SlotStore(db).create(
            owner_id=owner.id,
            title=title or f"Slot {counter['n']}",
            start=start,
            end=start + timedelta(hours=1),
            state=state,
        )
        db.commit()
        return slot

    return _make


@pytest.fixture
def client(session_factory, cache):
    """API client bound to the test database and fake Redis."""
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[require_local_caller] = lambda: None

    yield TestClient(app)

    app.dependency_overrides.clear()