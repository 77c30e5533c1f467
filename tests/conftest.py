"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os
from datetime import UTC, date, datetime, timedelta

# ---------------------------------------------------------------------------
# Ensure a valid SUPABASE_JWT_SECRET is always set for test runs.
# This must happen before any import of syntora.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("SUPABASE_JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from syntora.config import GamificationConfig  # noqa: E402
from syntora.database.models import Base, GamingStats  # noqa: E402
from syntora.services.gamification_service import GamificationService  # noqa: E402
from syntora.services.notifications import NotificationHub  # noqa: E402


class FakeClock:
    """Settable clock handed to the service in place of ``datetime.now``."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)

    def set_date(self, day: date, hour: int = 12) -> None:
        self.now = datetime(day.year, day.month, day.day, hour, tzinfo=UTC)


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Syntora tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in ``run_db``).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a transactional session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


@pytest.fixture
def cfg() -> GamificationConfig:
    return GamificationConfig()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 1, 12, 0, tzinfo=UTC))


@pytest.fixture
def hub() -> NotificationHub:
    return NotificationHub(capacity=10)


@pytest.fixture
def service(db_engine, cfg, hub, clock) -> GamificationService:
    return GamificationService(db_engine, cfg, hub=hub, clock=clock)


def seed_stats(engine: Engine, user_id: str = "user-1", **values) -> None:
    """Insert a gaming_stats row with explicit values (defaults otherwise)."""
    values.setdefault("last_active_date", "2024-01-01")
    with Session(engine) as session:
        session.add(GamingStats(user_id=user_id, **values))
        session.commit()


def make_token(
    sub: str = "user-1", audience: str = "authenticated", secret: str | None = None,
) -> str:
    """Create a session JWT.  Usable as both a fixture helper and a factory."""
    import jwt

    from syntora.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode(
        {"sub": sub, "aud": audience, "role": "authenticated"},
        secret or JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(service):
    """FastAPI TestClient wired to the in-memory service."""
    from fastapi.testclient import TestClient

    from syntora.api.deps import get_service
    from syntora.api.main import app

    app.dependency_overrides[get_service] = lambda: service
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
