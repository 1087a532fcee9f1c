"""Tests for the per-user notification inbox and stats."""
from datetime import timedelta

import pytest

from eventpulse.database import utcnow
from eventpulse.exceptions import RecordNotFound
from eventpulse.services.document_store import NOTIFICATIONS
from tests.conftest import run, seed_users


async def seed_notification(store, user_id, title="New Event: X", created_at=None, is_read=False):
    data = {"userId": user_id, "title": title, "isRead": is_read}
    if created_at is not None:
        data["createdAt"] = created_at
    return await store.create(NOTIFICATIONS, data)


class TestReadState:
    def test_list_newest_first(self, store, services):
        now = utcnow()
        run(seed_notification(store, "u1", title="old", created_at=now - timedelta(hours=2)))
        run(seed_notification(store, "u1", title="new", created_at=now))
        run(seed_notification(store, "u2", title="other user"))

        titles = [n.title for n in run(services.inbox.list_for_user("u1"))]
        assert titles == ["new", "old"]

    def test_unread_count_follows_mark_read(self, store, services):
        first = run(seed_notification(store, "u1"))
        run(seed_notification(store, "u1"))
        assert run(services.inbox.unread_count("u1")) == 2

        marked = run(services.inbox.mark_read(first["id"]))
        assert marked.is_read
        assert run(services.inbox.unread_count("u1")) == 1

    def test_delete(self, store, services):
        doc = run(seed_notification(store, "u1"))
        run(services.inbox.delete(doc["id"]))
        assert run(services.inbox.list_for_user("u1")) == []
        with pytest.raises(RecordNotFound):
            run(services.inbox.mark_read(doc["id"]))


class TestStats:
    def test_stats(self, store, services):
        run(seed_users(store, 3))
        run(seed_notification(store, "u1", is_read=True))
        run(seed_notification(store, "u1"))
        run(seed_notification(store, "u2"))
        run(seed_notification(store, "u3", created_at=utcnow() - timedelta(days=10)))

        stats = run(services.inbox.stats())

        assert stats.total_users == 3
        assert stats.total_notifications == 4
        assert stats.unread_notifications == 3
        assert stats.recent_notifications == 3
        assert stats.read_rate == 25.0

    def test_stats_when_empty(self, services):
        stats = run(services.inbox.stats())
        assert stats.total_notifications == 0
        assert stats.read_rate == 0.0
