"""Push and local alert payloads handed to the delivery collaborators.

Actual transport (Expo push service, FCM) lives outside this service. The
default gateway and local notifier only log the prepared payloads.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol

from eventpulse.schemas.event import EventRecord
from eventpulse.schemas.user import UserRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PushMessage:
    token: str
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)


class PushGateway(Protocol):
    async def send(self, token: str, title: str, body: str, data: dict[str, Any]) -> None: ...


class LocalNotifier(Protocol):
    async def schedule(self, title: str, body: str, data: dict[str, Any]) -> None: ...


def build_push_messages(event: EventRecord, users: Iterable[UserRecord]) -> list[PushMessage]:
    """One message per user with a registered push token."""
    data = {
        "eventId": event.id,
        "type": "new_event",
        "eventName": event.name,
        "eventVenue": event.venue,
        "eventDate": event.date.isoformat(),
    }
    return [
        PushMessage(
            token=user.push_token,
            title=f"New Event: {event.name}",
            body=f"{event.description} at {event.venue}",
            data=dict(data),
        )
        for user in users
        if user.push_token
    ]


def build_local_event_alert(event: EventRecord) -> PushMessage:
    """Immediate alert for the creator's own device (no token needed)."""
    return PushMessage(
        token="",
        title=f"New Event: {event.name}",
        body=f"{event.description} on {event.date.isoformat()} at {event.venue}",
        data={"eventId": event.id, "type": "new_event"},
    )


class LoggingPushGateway:
    """Logs prepared push payloads; wire delivery is handled elsewhere."""

    async def send(self, token: str, title: str, body: str, data: dict[str, Any]) -> None:
        logger.info("Push payload prepared for token %s...: %s", token[:12], title)


class LoggingLocalNotifier:
    async def schedule(self, title: str, body: str, data: dict[str, Any]) -> None:
        logger.info("Local alert scheduled: %s", title)
