"""Delivery verifier: reconciles expected recipients with stored notifications.

This is a pull-based check, not a transactional guarantee. It re-reads the
user directory and the notifications of one event and reports who is
missing. Run it after a settling delay so in-flight batches have landed.
"""
import logging
from dataclasses import dataclass, field

from eventpulse.exceptions import DirectoryUnavailable, MalformedRecord, StoreUnavailable, VerificationIncomplete
from eventpulse.schemas.base import parse_records
from eventpulse.schemas.notification import NotificationRecord
from eventpulse.schemas.user import UserRecord
from eventpulse.services.directory import UserDirectory
from eventpulse.services.document_store import NOTIFICATIONS, DocumentStore, Query

logger = logging.getLogger(__name__)


@dataclass
class VerificationResult:
    event_id: str
    ok: bool
    total_users: int
    total_notified: int
    missing: list[UserRecord] = field(default_factory=list)

    @property
    def missing_ids(self) -> set[str]:
        return {user.id for user in self.missing}


class DeliveryVerifier:
    def __init__(self, store: DocumentStore, directory: UserDirectory):
        self.store = store
        self.directory = directory

    async def verify(self, event_id: str) -> VerificationResult:
        """Compute ``missing = users - notified users`` for an event.

        Raises VerificationIncomplete when ground truth cannot be read.
        """
        try:
            users = await self.directory.list_all_users()
            notified = await self.notified_user_ids(event_id)
        except (DirectoryUnavailable, StoreUnavailable, MalformedRecord) as exc:
            logger.error("Verification of event %s could not read ground truth: %s", event_id, exc)
            raise VerificationIncomplete(event_id, exc) from exc

        missing = [user for user in users if user.id not in notified]
        result = VerificationResult(
            event_id=event_id,
            ok=not missing,
            total_users=len(users),
            total_notified=len(users) - len(missing),
            missing=missing,
        )
        if result.ok:
            logger.info("Event %s: all %d users received notifications", event_id, result.total_users)
        else:
            logger.warning(
                "Event %s: %d of %d users missing notifications: %s",
                event_id, len(missing), result.total_users,
                ", ".join(user.username for user in missing[:20]),
            )
        return result

    async def notified_user_ids(self, event_id: str) -> set[str]:
        page_size = self.directory.page_size
        base = Query().equal("eventId", event_id).order_asc("createdAt")
        notified: set[str] = set()
        offset = 0
        while True:
            docs = await self.store.list(NOTIFICATIONS, base.limit(page_size).offset(offset))
            for notification in parse_records(NotificationRecord, NOTIFICATIONS, docs):
                notified.add(notification.user_id)
            if len(docs) < page_size:
                return notified
            offset += page_size
