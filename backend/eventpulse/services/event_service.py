"""Event service: admin-only event creation and event lookup.

Responsibilities:
- Authorization: only admins create events
- Event persistence, then hand-off of the fan-out to the outbox
- Local alert for the creator's own device

Creating an event succeeds as soon as the event record is written. Anything
after that point (enqueueing the fan-out, the local alert) is logged on
failure and never raised to the caller.
"""
import logging
from typing import Optional

from eventpulse.exceptions import EventPulseError
from eventpulse.models.event import EventStatus
from eventpulse.models.outbox_task import TaskKind
from eventpulse.schemas.base import parse_record, parse_records
from eventpulse.schemas.event import EventDraft, EventRecord
from eventpulse.services.document_store import EVENTS, DocumentStore, Query
from eventpulse.services.outbox import Outbox
from eventpulse.services.push import LocalNotifier, build_local_event_alert
from eventpulse.services.user_service import UserService

logger = logging.getLogger(__name__)


class EventService:
    def __init__(
        self,
        store: DocumentStore,
        users: UserService,
        outbox: Outbox,
        local_notifier: Optional[LocalNotifier] = None,
    ):
        self.store = store
        self.users = users
        self.outbox = outbox
        self.local_notifier = local_notifier

    async def create_event_and_notify(self, draft: EventDraft, admin_id: str) -> EventRecord:
        """Persist an event and schedule notifications to every user."""
        admin = await self.users.require_admin(admin_id)

        doc = await self.store.create(EVENTS, {
            "name": draft.name,
            "description": draft.description,
            "date": draft.date,
            "venue": draft.venue,
            "createdBy": admin.id,
            "status": EventStatus.active.value,
        })
        event = parse_record(EventRecord, EVENTS, doc)
        logger.info("Created event '%s' (%s) by admin %s", event.name, event.id, admin.username)

        try:
            await self.outbox.enqueue(TaskKind.fanout, {"eventId": event.id})
        except EventPulseError:
            logger.exception(
                "Event %s created but its fan-out could not be queued; run verify-and-resend", event.id,
            )

        if self.local_notifier is not None:
            alert = build_local_event_alert(event)
            try:
                await self.local_notifier.schedule(alert.title, alert.body, alert.data)
            except Exception:
                # The creator's alert is cosmetic; the event already exists
                logger.exception("Local alert for event %s failed", event.id)

        return event

    async def get_event(self, event_id: str) -> EventRecord:
        return parse_record(EventRecord, EVENTS, await self.store.get(EVENTS, event_id))

    async def list_events(self) -> list[EventRecord]:
        docs = await self.store.list(EVENTS, Query().order_desc("createdAt"))
        return parse_records(EventRecord, EVENTS, docs)

    async def search_events(self, text: str) -> list[EventRecord]:
        docs = await self.store.list(EVENTS, Query().search("name", text).order_desc("createdAt"))
        return parse_records(EventRecord, EVENTS, docs)

