"""Resend coordinator: re-runs the writer for exactly the users a verification found missing."""
import logging
from dataclasses import dataclass
from typing import Optional

from eventpulse.schemas.base import parse_record
from eventpulse.schemas.event import EventRecord
from eventpulse.services.document_store import EVENTS, DocumentStore
from eventpulse.services.notification_writer import NotificationWriter
from eventpulse.services.verification import DeliveryVerifier, VerificationResult

logger = logging.getLogger(__name__)


@dataclass
class ResendReport:
    event_id: str
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0


class ResendCoordinator:
    def __init__(self, store: DocumentStore, verifier: DeliveryVerifier, writer: NotificationWriter):
        self.store = store
        self.verifier = verifier
        self.writer = writer

    async def resend_missing(
        self, event_id: str, verification: Optional[VerificationResult] = None,
    ) -> ResendReport:
        """Notify users missing a notification for the event.

        Users already notified are excluded by the verification, so calling
        this twice in a row attempts nothing the second time. A verification
        computed by the caller may be passed in to avoid re-reading the store.
        """
        if verification is None:
            verification = await self.verifier.verify(event_id)
        if verification.ok:
            logger.info("All users already notified for event %s", event_id)
            return ResendReport(event_id=event_id)

        event = parse_record(EventRecord, EVENTS, await self.store.get(EVENTS, event_id))
        result = await self.writer.write_notifications(event, verification.missing)
        report = ResendReport(
            event_id=event_id,
            attempted=len(verification.missing),
            succeeded=result.created,
            failed=result.failed,
        )
        logger.info(
            "Resent notifications for event %s: %d attempted, %d succeeded",
            event_id, report.attempted, report.succeeded,
        )
        return report
