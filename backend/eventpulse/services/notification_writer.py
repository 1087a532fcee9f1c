"""Notification writer: batched, paced creation of per-user event notifications.

Recipients are split into fixed-size batches. The creates of one batch run
concurrently and the writer waits for all of them to settle before pausing
and starting the next batch. A failed create is recorded on the result and
never aborts its siblings or the remaining batches.

Notification ids are derived from (event id, user id), so writing the same
pair twice finds the existing record instead of creating a duplicate.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Iterable, Union

from eventpulse.exceptions import DuplicateRecord, EventPulseError
from eventpulse.schemas.event import EventRecord
from eventpulse.schemas.user import UserRecord
from eventpulse.services.document_store import NOTIFICATIONS, DocumentStore

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10
DEFAULT_BATCH_DELAY = 0.5

NOTIFICATION_NAMESPACE = uuid.UUID("6f1c2a9e-3b7d-5e41-9c8a-2d4f0b7e1a63")


def notification_id(event_id: str, user_id: str) -> str:
    """Deterministic notification id for a (event, user) pair."""
    return str(uuid.uuid5(NOTIFICATION_NAMESPACE, f"{event_id}:{user_id}"))


def event_notification_title(event: EventRecord) -> str:
    return f"New Event: {event.name}"


def build_notification(event: EventRecord, user: UserRecord) -> dict:
    return {
        "userId": user.id,
        "eventId": event.id,
        "title": event_notification_title(event),
        "description": event.description,
        "eventVenue": event.venue,
        "date": event.date,
        "isRead": False,
    }


@dataclass(frozen=True)
class Created:
    user_id: str
    notification_id: str
    already_existed: bool = False


@dataclass(frozen=True)
class WriteFailed:
    recipient: UserRecord
    cause: str

    @property
    def user_id(self) -> str:
        return self.recipient.id


Outcome = Union[Created, WriteFailed]


@dataclass
class BatchResult:
    """Per-recipient outcome of a write, keyed by user id. Order is not meaningful."""

    outcomes: dict[str, Outcome] = field(default_factory=dict)

    @property
    def created_ids(self) -> set[str]:
        return {uid for uid, outcome in self.outcomes.items() if isinstance(outcome, Created)}

    @property
    def failures(self) -> list[WriteFailed]:
        return [outcome for outcome in self.outcomes.values() if isinstance(outcome, WriteFailed)]

    @property
    def failed_ids(self) -> set[str]:
        return {failure.user_id for failure in self.failures}

    @property
    def created(self) -> int:
        return len(self.created_ids)

    @property
    def failed(self) -> int:
        return len(self.failures)

    def record(self, outcome: Outcome) -> None:
        self.outcomes[outcome.user_id] = outcome

    def merge(self, other: "BatchResult") -> None:
        self.outcomes.update(other.outcomes)


class NotificationWriter:
    """Creates one notification per recipient for an event."""

    def __init__(
        self,
        store: DocumentStore,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay: float = DEFAULT_BATCH_DELAY,
        sleep=asyncio.sleep,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.store = store
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self._sleep = sleep

    def batches(self, recipients: Iterable[UserRecord]) -> list[list[UserRecord]]:
        unique = list({user.id: user for user in recipients}.values())
        return [unique[i:i + self.batch_size] for i in range(0, len(unique), self.batch_size)]

    async def write_notifications(self, event: EventRecord, recipients: Iterable[UserRecord]) -> BatchResult:
        result = BatchResult()
        batches = self.batches(recipients)
        logger.info("Sending notifications for event %s in %d batches", event.id, len(batches))

        for index, batch in enumerate(batches, start=1):
            outcomes = await asyncio.gather(
                *(self._write_one(event, user) for user in batch), return_exceptions=True,
            )
            batch_result = BatchResult()
            for user, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    if not isinstance(outcome, Exception):
                        raise outcome
                    logger.warning(
                        "Failed to notify user %s for event %s: %r", user.username, event.id, outcome,
                    )
                    outcome = WriteFailed(user, repr(outcome))
                batch_result.record(outcome)
            logger.info(
                "Batch %d/%d completed: %d successful, %d failed",
                index, len(batches), batch_result.created, batch_result.failed,
            )
            result.merge(batch_result)

            # Pacing only; the service rate-limits bursts of creates
            if index < len(batches) and self.batch_delay > 0:
                await self._sleep(self.batch_delay)

        return result

    async def _write_one(self, event: EventRecord, user: UserRecord) -> Outcome:
        record_id = notification_id(event.id, user.id)
        try:
            await self.store.create(NOTIFICATIONS, build_notification(event, user), record_id=record_id)
        except DuplicateRecord:
            logger.debug("User %s already notified for event %s", user.id, event.id)
            return Created(user.id, record_id, already_existed=True)
        except EventPulseError as exc:
            logger.warning("Failed to notify user %s for event %s: %s", user.username, event.id, exc)
            return WriteFailed(user, str(exc))
        return Created(user.id, record_id)
