"""Pydantic schema for outbox tasks."""
from __future__ import annotations
from datetime import datetime
from typing import Any, Optional

from eventpulse.schemas.base import DocumentModel


class OutboxTaskRecord(DocumentModel):
    id: str
    kind: str
    payload: dict[str, Any] = {}
    status: str = "pending"
    attempts: int = 0
    run_after: datetime
    claimed_at: Optional[datetime] = None
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None
