"""
Shared test fixtures.

Each test gets its own SQLite database file under tmp_path.
A file (not :memory:) is used because the document store opens
a fresh session per atomic attempt, and some tests interleave
two users' sessions.
"""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from fincontrol.api import recurring as recurring_api
from fincontrol.api.deps import get_clock, get_store
from fincontrol.context import RecordingNotifier, UserContext
from fincontrol.main import app
from fincontrol.models.base import Base, get_db
from fincontrol.store import DocumentStore

FIXED_NOW = datetime(2026, 10, 15, 12, 0, tzinfo=timezone.utc)
TODAY = "2026-10-15"


class FrozenClock:
    """Clock that only moves when a test moves it."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def store(session_factory):
    return DocumentStore(session_factory)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def ctx(store, notifier, clock):
    """Context for the default test user."""
    return UserContext(store, "user-1", notifier=notifier, clock=clock)


@pytest.fixture
def make_ctx(store, clock):
    """Build contexts for additional users sharing the same store and clock."""
    def factory(uid: str) -> UserContext:
        return UserContext(store, uid, notifier=RecordingNotifier(), clock=clock)
    return factory


@pytest.fixture
def set_profile(store):
    """Write a user profile document directly."""
    def write(uid: str, **fields):
        def body(txn):
            txn.set(f"users/{uid}", fields, merge=True)
        store.atomic(body)
    return write


@pytest.fixture
def client(store, session_factory, clock):
    """
    Provide a test client bound to the test database.

    The document store, the raw session and the server clock are
    overridden, and the per-user scheduler registry is reset.
    """
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_clock] = lambda: clock
    recurring_api._schedulers.clear()
    yield TestClient(app)
    app.dependency_overrides.clear()
    recurring_api._schedulers.clear()
