"""Pytest fixtures: a file-backed SQLite store per test, wired services and an API client."""
import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from eventpulse.config import Settings
from eventpulse.container import build_services
from eventpulse.database import Base, make_engine
from eventpulse.exceptions import StoreUnavailable
from eventpulse.main import create_app
from eventpulse.schemas.event import EventDraft, EventRecord
from eventpulse.schemas.user import UserRecord
from eventpulse.services.document_store import EVENTS, NOTIFICATIONS, USERS, SqlDocumentStore

# No pacing, no settling delay, worker driven by hand
TEST_SETTINGS = Settings(
    NOTIFICATION_BATCH_DELAY_MS=0,
    VERIFICATION_SETTLE_SECONDS=0,
    OUTBOX_WORKER_ENABLED=False,
)

BASE_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
EVENT_DATE = datetime(2026, 12, 1, 19, 0, tzinfo=timezone.utc)


def run(coro):
    """Drive a coroutine to completion from a synchronous test."""
    return asyncio.run(coro)


@pytest.fixture(scope="function")
def db_engine(tmp_path):
    """Create a fresh SQLite database file for each test."""
    engine = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def store(db_engine):
    return SqlDocumentStore(sessionmaker(autocommit=False, autoflush=False, bind=db_engine))


@pytest.fixture(scope="function")
def services(store):
    return build_services(store, config=TEST_SETTINGS)


@pytest.fixture(scope="function")
def flaky(store):
    return FlakyStore(store)


@pytest.fixture(scope="function")
def flaky_services(flaky):
    return build_services(flaky, config=TEST_SETTINGS)


@pytest.fixture(scope="function")
def client(services):
    """FastAPI TestClient around the per-test services, background worker off."""
    app = create_app(services=services, start_worker=False)
    with TestClient(app) as c:
        yield c


# ---------------------------------------------------------------------------
# Failure injection
# ---------------------------------------------------------------------------
class FlakyStore:
    """Wraps a store and fails selected calls with StoreUnavailable.

    ``failing`` holds (operation, collection) pairs that always fail,
    ``fail_notifications_for`` holds user ids whose notification creates
    fail and ``fail_updates_for`` holds record ids whose updates fail.
    ``strip_fields`` maps a collection to field names removed from the
    documents it returns, to simulate records that no longer fit the schema.
    Every call is recorded in ``calls``.
    """

    def __init__(self, inner):
        self.inner = inner
        self.failing: set[tuple[str, str]] = set()
        self.fail_notifications_for: set[str] = set()
        self.fail_updates_for: set[str] = set()
        self.strip_fields: dict[str, set[str]] = {}
        self.calls: list[tuple[str, str]] = []

    def _strip(self, collection: str, doc: dict) -> dict:
        dropped = self.strip_fields.get(collection, set())
        return {k: v for k, v in doc.items() if k not in dropped}

    def _check(self, op: str, collection: str) -> None:
        self.calls.append((op, collection))
        if (op, collection) in self.failing:
            raise StoreUnavailable(f"injected {op} failure on {collection}")

    async def create(self, collection, data, record_id=None):
        self._check("create", collection)
        if collection == NOTIFICATIONS and data.get("userId") in self.fail_notifications_for:
            raise StoreUnavailable(f"injected write failure for user {data['userId']}")
        return await self.inner.create(collection, data, record_id=record_id)

    async def get(self, collection, record_id):
        self._check("get", collection)
        return self._strip(collection, await self.inner.get(collection, record_id))

    async def update(self, collection, record_id, data):
        self._check("update", collection)
        if record_id in self.fail_updates_for:
            raise StoreUnavailable(f"injected update failure for {record_id}")
        return await self.inner.update(collection, record_id, data)

    async def delete(self, collection, record_id):
        self._check("delete", collection)
        return await self.inner.delete(collection, record_id)

    async def list(self, collection, query=None):
        self._check("list", collection)
        return [self._strip(collection, doc) for doc in await self.inner.list(collection, query)]

    async def count(self, collection, query=None):
        self._check("count", collection)
        return await self.inner.count(collection, query)


# ---------------------------------------------------------------------------
# Helpers: seed records straight into the store
# ---------------------------------------------------------------------------
async def seed_users(store, count: int, prefix: str = "user", role: str = "user") -> list[UserRecord]:
    """Create ``count`` users with strictly increasing createdAt."""
    users = []
    for i in range(count):
        doc = await store.create(USERS, {
            "accountId": f"{prefix}-acct-{i + 1}",
            "username": f"{prefix}{i + 1}",
            "role": role,
            "createdAt": BASE_TIME + timedelta(seconds=i),
        })
        users.append(UserRecord.model_validate(doc))
    return users


async def seed_admin(store, name: str = "admin", push_token: Optional[str] = None) -> UserRecord:
    doc = await store.create(USERS, {
        "accountId": f"{name}-acct",
        "username": name,
        "role": "admin",
        "pushToken": push_token,
        "createdAt": BASE_TIME - timedelta(days=1),
    })
    return UserRecord.model_validate(doc)


async def seed_event(store, admin_id: str = "admin-id", name: str = "Launch Party") -> EventRecord:
    doc = await store.create(EVENTS, {
        "name": name,
        "description": "Celebrate the release",
        "date": EVENT_DATE,
        "venue": "Main Hall",
        "createdBy": admin_id,
        "status": "active",
    })
    return EventRecord.model_validate(doc)


def make_draft(name: str = "Launch Party") -> EventDraft:
    return EventDraft(name=name, description="Celebrate the release", date=EVENT_DATE, venue="Main Hall")
