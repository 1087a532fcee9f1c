"""Pydantic schemas for the administrative verification and repair tools."""
from __future__ import annotations
from typing import Any, Optional

from eventpulse.schemas.base import DocumentModel
from eventpulse.schemas.user import PublicUser


class VerificationOut(DocumentModel):
    event_id: str
    ok: bool
    total_users: int
    total_notified: int
    missing: list[PublicUser] = []


class ResendOut(DocumentModel):
    event_id: str
    attempted: int
    succeeded: int
    failed: int


class VerifyAndResendOut(DocumentModel):
    verification: VerificationOut
    resend: ResendOut


class OrphanOut(DocumentModel):
    record_id: str
    reason: str
    creator: Any = None


class DiagnosisOut(DocumentModel):
    total_records: int
    valid: int
    valid_by_alias: int
    orphaned: list[OrphanOut] = []


class RepairRequest(DocumentModel):
    fallback_user_id: str


class RepairErrorOut(DocumentModel):
    record_id: str
    cause: str


class RepairOut(DocumentModel):
    attempted: int
    fixed: int
    errors: list[RepairErrorOut] = []
    diagnosis: Optional[DiagnosisOut] = None
