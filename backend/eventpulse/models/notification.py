"""Notification ORM model: one row per (user, event) delivered by the fan-out."""
import uuid
from sqlalchemy import Column, String, Text, Boolean, DateTime, Index
from eventpulse.database import Base, utcnow


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_event_id", "event_id"),
        Index("ix_notifications_user_read", "user_id", "is_read"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False)
    event_id = Column(String(36), nullable=True)  # null for non-event notifications
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    event_venue = Column(String(255), nullable=True)
    date = Column(DateTime(timezone=True), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
