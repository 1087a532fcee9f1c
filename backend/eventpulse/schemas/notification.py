"""Pydantic schemas for Notifications."""
from __future__ import annotations
from datetime import datetime
from typing import Optional

from eventpulse.schemas.base import DocumentModel


class NotificationRecord(DocumentModel):
    id: str
    user_id: str
    event_id: Optional[str] = None
    title: str
    description: str = ""
    event_venue: Optional[str] = None
    date: Optional[datetime] = None
    is_read: bool = False
    created_at: Optional[datetime] = None


class UnreadCount(DocumentModel):
    user_id: str
    unread: int


class NotificationStats(DocumentModel):
    total_users: int
    total_notifications: int
    unread_notifications: int
    recent_notifications: int
    read_rate: float
