"""Domain exceptions raised by the store client and the notification services.

Per-item failures inside batch operations are not exceptions; they are
recorded as data on the reports (see ``WriteFailed`` and ``RepairFailed``).
"""
from typing import Any, Optional


class EventPulseError(Exception):
    """Base class for all domain errors."""


class StoreUnavailable(EventPulseError):
    """The backing document store could not complete a request."""


class RecordNotFound(EventPulseError):
    def __init__(self, collection: str, record_id: Any):
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"{collection} record {record_id!r} not found")


class DuplicateRecord(EventPulseError):
    def __init__(self, collection: str, record_id: Any):
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"{collection} record {record_id!r} already exists")


class MalformedRecord(EventPulseError):
    """A document read from the store does not match its record schema."""

    def __init__(self, collection: str, record_id: Optional[Any], errors: list):
        self.collection = collection
        self.record_id = record_id
        self.errors = errors
        super().__init__(f"malformed {collection} record {record_id!r}: {errors}")


class PermissionDenied(EventPulseError):
    """The acting user lacks the role required for the operation."""


class DirectoryUnavailable(EventPulseError):
    """User enumeration failed part-way; no partial result is returned."""


class VerificationIncomplete(EventPulseError):
    """Ground truth for a delivery check could not be fetched."""

    def __init__(self, event_id: str, cause: BaseException):
        self.event_id = event_id
        self.cause = cause
        super().__init__(f"could not verify notifications for event {event_id}: {cause}")
