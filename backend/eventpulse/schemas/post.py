"""Pydantic schemas for video posts."""
from __future__ import annotations
from datetime import datetime
from typing import Any, Optional

from eventpulse.schemas.base import DocumentModel


class PostRecord(DocumentModel):
    id: str
    title: str
    thumbnail: Optional[str] = None
    video: Optional[str] = None
    prompt: Optional[str] = None
    # Left untyped: bad creator values are classified by the diagnostician
    creator: Any = None
    created_at: Optional[datetime] = None


class PostCreate(DocumentModel):
    title: str
    thumbnail: Optional[str] = None
    video: Optional[str] = None
    prompt: Optional[str] = None
    creator: str


class CreatorSummary(DocumentModel):
    id: Optional[str] = None
    username: str
    avatar: Optional[str] = None


class PostOut(DocumentModel):
    id: str
    title: str
    thumbnail: Optional[str] = None
    video: Optional[str] = None
    prompt: Optional[str] = None
    creator: CreatorSummary
    created_at: Optional[datetime] = None
