"""Notification read state: the per-user inbox consumed by the mobile client."""
import logging
from datetime import timedelta

from eventpulse.database import utcnow
from eventpulse.schemas.base import parse_record, parse_records
from eventpulse.schemas.notification import NotificationRecord, NotificationStats
from eventpulse.services.document_store import NOTIFICATIONS, USERS, DocumentStore, Query

logger = logging.getLogger(__name__)

RECENT_WINDOW = timedelta(days=7)


class NotificationInbox:
    """Single-record operations; store errors propagate unchanged."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def list_for_user(self, user_id: str) -> list[NotificationRecord]:
        docs = await self.store.list(
            NOTIFICATIONS, Query().equal("userId", user_id).order_desc("createdAt")
        )
        return parse_records(NotificationRecord, NOTIFICATIONS, docs)

    async def unread_count(self, user_id: str) -> int:
        # Recomputed on every call, never cached
        return await self.store.count(
            NOTIFICATIONS, Query().equal("userId", user_id).equal("isRead", False)
        )

    async def mark_read(self, notification_id: str) -> NotificationRecord:
        doc = await self.store.update(NOTIFICATIONS, notification_id, {"isRead": True})
        return parse_record(NotificationRecord, NOTIFICATIONS, doc)

    async def delete(self, notification_id: str) -> None:
        await self.store.delete(NOTIFICATIONS, notification_id)
        logger.info("Deleted notification %s", notification_id)

    async def stats(self) -> NotificationStats:
        total_users = await self.store.count(USERS)
        total = await self.store.count(NOTIFICATIONS)
        unread = await self.store.count(NOTIFICATIONS, Query().equal("isRead", False))
        recent = await self.store.count(
            NOTIFICATIONS, Query().greater_than("createdAt", utcnow() - RECENT_WINDOW)
        )
        read_rate = round((total - unread) / total * 100, 2) if total else 0.0
        return NotificationStats(
            total_users=total_users,
            total_notifications=total,
            unread_notifications=unread,
            recent_notifications=recent,
            read_rate=read_rate,
        )
