"""Event ORM model: community events announced to every user."""
import uuid
import enum
from sqlalchemy import Column, String, Text, DateTime, Enum as SAEnum
from eventpulse.database import Base, utcnow


class EventStatus(str, enum.Enum):
    active = "active"
    cancelled = "cancelled"


class Event(Base):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    date = Column(DateTime(timezone=True), nullable=False)
    venue = Column(String(255), nullable=False)
    created_by = Column(String(36), nullable=False)  # user id, not enforced by the store
    status = Column(SAEnum(EventStatus, native_enum=False), nullable=False, default=EventStatus.active)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
