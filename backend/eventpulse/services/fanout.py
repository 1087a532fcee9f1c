"""Fan-out orchestrator: notifies every registered user about a new event."""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from eventpulse.exceptions import DirectoryUnavailable
from eventpulse.schemas.event import EventRecord
from eventpulse.schemas.user import UserRecord
from eventpulse.services.directory import UserDirectory
from eventpulse.services.notification_writer import NotificationWriter, WriteFailed
from eventpulse.services.push import PushGateway, build_push_messages

logger = logging.getLogger(__name__)


@dataclass
class FanOutReport:
    event_id: str
    total_users: int = 0
    created: int = 0
    failed: int = 0
    push_prepared: int = 0
    aborted: bool = False
    error: Optional[str] = None
    failures: list[WriteFailed] = field(default_factory=list)


class FanOutOrchestrator:
    """Directory paging, then batched writes, then push payloads.

    Never raises for delivery problems: an unreadable directory aborts the
    run before any write and is reported with ``aborted=True``.
    """

    def __init__(
        self,
        directory: UserDirectory,
        writer: NotificationWriter,
        push_gateway: Optional[PushGateway] = None,
    ):
        self.directory = directory
        self.writer = writer
        self.push_gateway = push_gateway

    async def fan_out(self, event: EventRecord) -> FanOutReport:
        logger.info("Starting notification fan-out for event '%s' (%s)", event.name, event.id)
        try:
            users = await self.directory.list_all_users()
        except DirectoryUnavailable as exc:
            logger.error("Fan-out for event %s aborted, no notifications written: %s", event.id, exc)
            return FanOutReport(event_id=event.id, aborted=True, error=str(exc))

        report = FanOutReport(event_id=event.id, total_users=len(users))
        if not users:
            logger.info("No users found to notify for event %s", event.id)
            return report

        result = await self.writer.write_notifications(event, users)
        report.created = result.created
        report.failed = result.failed
        report.failures = result.failures

        if self.push_gateway is not None:
            delivered = [user for user in users if user.id in result.created_ids]
            report.push_prepared = await self._send_push(event, delivered)

        logger.info(
            "Fan-out for event %s finished: %d users, %d created, %d failed",
            event.id, report.total_users, report.created, report.failed,
        )
        return report

    async def _send_push(self, event: EventRecord, users: list[UserRecord]) -> int:
        messages = build_push_messages(event, users)
        if not messages:
            logger.info("No push tokens registered among %d notified users", len(users))
            return 0
        results = await asyncio.gather(
            *(self.push_gateway.send(m.token, m.title, m.body, m.data) for m in messages),
            return_exceptions=True,
        )
        sent = 0
        for message, outcome in zip(messages, results):
            if isinstance(outcome, Exception):
                logger.warning("Push hand-off failed for token %s...: %s", message.token[:12], outcome)
            else:
                sent += 1
        return sent
