"""Pydantic schemas for Users."""
from __future__ import annotations
from datetime import datetime
from typing import Optional, Literal

from eventpulse.schemas.base import DocumentModel


class UserRecord(DocumentModel):
    id: str
    account_id: str
    username: str
    email: Optional[str] = None
    avatar: Optional[str] = None
    role: Literal["user", "admin"] = "user"
    push_token: Optional[str] = None
    last_token_update: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class PublicUser(DocumentModel):
    """Listing view of a user; contact details and device tokens stay private."""

    id: str
    account_id: str
    username: str
    avatar: Optional[str] = None
    role: Literal["user", "admin"] = "user"
    created_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, user: UserRecord) -> PublicUser:
        return cls.model_validate(user.model_dump(include=set(cls.model_fields)))


class UserCreate(DocumentModel):
    account_id: str
    username: str
    email: Optional[str] = None
    avatar: Optional[str] = None


class PushTokenUpdate(DocumentModel):
    push_token: str


class RoleUpdate(DocumentModel):
    actor_id: str
    target_account_id: str
    role: Literal["user", "admin"]
