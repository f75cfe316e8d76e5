"""Pytest fixtures — file-backed SQLite database and a recording Plex client."""
import os
import threading
from datetime import datetime, time, timezone

# Must be set before guardarr.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ["ENFORCER_ENABLED"] = "false"

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from guardarr.database import Base, get_db
from guardarr.dependencies import get_enforcer
from guardarr.main import app

# Import all models so they register with Base.metadata
from guardarr.models.user import User
from guardarr.models.rule import Rule, UserRule
from guardarr.models.bypass import TemporaryBypass  # noqa: F401
from guardarr.models.applied_restriction import AppliedRestriction  # noqa: F401
from guardarr.models.activity import ActivityLog  # noqa: F401
from guardarr.models.setting import Setting
from guardarr.services.applied_state import AppliedStateTracker
from guardarr.services.enforcer import Enforcer
from guardarr.services.settings_service import ADMIN_TOKEN_KEY, TIMEZONE_KEY

SQLITE_URL = "sqlite:///./test.db"
TOKEN = "test-admin-token"

# Monday 2026-10-19
MONDAY_2100 = datetime(2026, 10, 19, 21, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock the tests move by hand."""

    def __init__(self, now: datetime = MONDAY_2100):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now


class FakePlexClient:
    """Records every remote call; accounts in ``failing`` get False back."""

    def __init__(self):
        self.calls: list[tuple] = []
        self.failing: set[str] = set()
        self._lock = threading.Lock()

    def apply_filter(self, plex_id, movie_filter, tv_filter, token):
        with self._lock:
            self.calls.append(("apply", plex_id, movie_filter, tv_filter))
        return plex_id not in self.failing

    def clear_filter(self, plex_id, token):
        with self._lock:
            self.calls.append(("clear", plex_id))
        return plex_id not in self.failing

    def calls_for(self, plex_id: str) -> list[tuple]:
        return [c for c in self.calls if c[1] == plex_id]

    def reset(self) -> None:
        self.calls.clear()


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})

    # Enable WAL mode for better concurrency
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db(session_factory):
    """Yield a database session, closed after the test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def plex():
    return FakePlexClient()


@pytest.fixture
def tracker():
    return AppliedStateTracker()


@pytest.fixture
def enforcer(session_factory, plex, tracker, clock):
    return Enforcer(session_factory, plex, tracker, clock=clock, max_workers=2)


@pytest.fixture(scope="function")
def client(session_factory, enforcer):
    """FastAPI TestClient with the database and enforcer dependencies overridden."""

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_enforcer] = lambda: enforcer
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers: seed rows directly through the session
# ---------------------------------------------------------------------------
def configure(db, token: str = TOKEN, tz: str = "UTC") -> None:
    """Store the admin token and timezone settings."""
    for key, value in ((ADMIN_TOKEN_KEY, token), (TIMEZONE_KEY, tz)):
        row = db.get(Setting, key)
        if row is None:
            db.add(Setting(key=key, value=value))
        else:
            row.value = value
    db.commit()


def create_user(db, username: str = "kid", plex_id: str = "1001", **kwargs) -> User:
    user = User(plex_id=plex_id, plex_username=username, **kwargs)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_rule(
    db,
    name: str = "School night",
    start: time = time(20, 0),
    end: time = time(7, 0),
    days=("mon", "tue", "wed", "thu", "sun"),
    **kwargs,
) -> Rule:
    kwargs.setdefault("blocked_ratings", ["R", "NC-17"])
    kwargs.setdefault("blocked_tv_ratings", ["TV-MA"])
    rule = Rule(name=name, start_time=start, end_time=end, days=list(days), **kwargs)
    db.add(rule)
    db.commit()
    db.refresh(rule)
    return rule


def assign(db, user: User, rule: Rule) -> None:
    db.add(UserRule(user_id=user.user_id, rule_id=rule.rule_id))
    db.commit()
