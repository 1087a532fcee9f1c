"""Pydantic schemas for Events."""
from __future__ import annotations
from datetime import datetime
from typing import Optional

from eventpulse.schemas.base import DocumentModel


class EventDraft(DocumentModel):
    name: str
    description: str = ""
    date: datetime
    venue: str


class EventCreate(EventDraft):
    admin_id: str


class EventRecord(DocumentModel):
    id: str
    name: str
    description: str = ""
    date: datetime
    venue: str
    created_by: str
    status: str = "active"
    created_at: Optional[datetime] = None
