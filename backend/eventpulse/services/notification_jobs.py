"""Outbox task handlers for event notifications.

``fanout`` notifies every user about an event and then schedules a
``verify`` task after the settling delay. ``verify`` reconciles and resends
to whoever is still missing.
"""
import logging
from datetime import timedelta

from eventpulse.database import utcnow
from eventpulse.exceptions import DirectoryUnavailable
from eventpulse.models.outbox_task import TaskKind
from eventpulse.schemas.base import parse_record
from eventpulse.schemas.event import EventRecord
from eventpulse.schemas.outbox import OutboxTaskRecord
from eventpulse.services.document_store import EVENTS, DocumentStore
from eventpulse.services.fanout import FanOutOrchestrator
from eventpulse.services.outbox import Outbox
from eventpulse.services.resend import ResendCoordinator

logger = logging.getLogger(__name__)


class NotificationJobs:
    def __init__(
        self,
        store: DocumentStore,
        outbox: Outbox,
        orchestrator: FanOutOrchestrator,
        resend: ResendCoordinator,
        settle_seconds: float = 2.0,
    ):
        self.store = store
        self.outbox = outbox
        self.orchestrator = orchestrator
        self.resend = resend
        self.settle_seconds = settle_seconds

    def handlers(self) -> dict:
        return {
            TaskKind.fanout.value: self.handle_fanout,
            TaskKind.verify.value: self.handle_verify,
        }

    async def handle_fanout(self, task: OutboxTaskRecord) -> None:
        event_id = task.payload["eventId"]
        event = parse_record(EventRecord, EVENTS, await self.store.get(EVENTS, event_id))
        report = await self.orchestrator.fan_out(event)
        if report.aborted:
            # Nothing was written; let the outbox retry the whole fan-out
            raise DirectoryUnavailable(report.error)
        await self.outbox.enqueue(
            TaskKind.verify,
            {"eventId": event_id},
            run_after=utcnow() + timedelta(seconds=self.settle_seconds),
        )

    async def handle_verify(self, task: OutboxTaskRecord) -> None:
        event_id = task.payload["eventId"]
        report = await self.resend.resend_missing(event_id)
        if report.failed:
            logger.warning(
                "Event %s still has %d undelivered notifications after resend",
                event_id, report.failed,
            )
