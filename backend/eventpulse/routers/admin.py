"""Administrative routes: delivery verification, resend, and creator repair.

These are manual tools; nothing here runs automatically.
"""
import logging
from fastapi import APIRouter, Depends

from eventpulse.container import Services, get_services
from eventpulse.schemas.admin import (
    DiagnosisOut,
    OrphanOut,
    RepairErrorOut,
    RepairOut,
    RepairRequest,
    ResendOut,
    VerificationOut,
    VerifyAndResendOut,
)
from eventpulse.schemas.user import PublicUser
from eventpulse.services.references import Diagnosis
from eventpulse.services.resend import ResendReport
from eventpulse.services.verification import VerificationResult

logger = logging.getLogger(__name__)
router = APIRouter()


def _verification_out(result: VerificationResult) -> VerificationOut:
    return VerificationOut(
        event_id=result.event_id,
        ok=result.ok,
        total_users=result.total_users,
        total_notified=result.total_notified,
        missing=[PublicUser.from_record(user) for user in result.missing],
    )


def _resend_out(report: ResendReport) -> ResendOut:
    return ResendOut(
        event_id=report.event_id,
        attempted=report.attempted,
        succeeded=report.succeeded,
        failed=report.failed,
    )


def _diagnosis_out(diagnosis: Diagnosis) -> DiagnosisOut:
    return DiagnosisOut(
        total_records=diagnosis.total_records,
        valid=diagnosis.valid,
        valid_by_alias=diagnosis.valid_by_alias,
        orphaned=[
            OrphanOut(record_id=o.record_id, reason=o.reason.value, creator=o.creator)
            for o in diagnosis.orphaned
        ],
    )


@router.get("/events/{event_id}/verification", response_model=VerificationOut)
async def verify_event(event_id: str, services: Services = Depends(get_services)):
    """Compare all users against the notifications stored for an event."""
    await services.events.get_event(event_id)
    return _verification_out(await services.verifier.verify(event_id))


@router.post("/events/{event_id}/verify-and-resend", response_model=VerifyAndResendOut)
async def verify_and_resend(event_id: str, services: Services = Depends(get_services)):
    """Verify delivery for an event and resend to the users who were missed."""
    await services.events.get_event(event_id)
    verification = await services.verifier.verify(event_id)
    report = await services.resend.resend_missing(event_id, verification=verification)
    return VerifyAndResendOut(
        verification=_verification_out(verification),
        resend=_resend_out(report),
    )


@router.post("/diagnosis", response_model=DiagnosisOut)
async def run_diagnosis(services: Services = Depends(get_services)):
    """Classify the creator reference of a sample of recent posts."""
    return _diagnosis_out(await services.diagnostician.diagnose())


@router.post("/repair", response_model=RepairOut)
async def run_repair(payload: RepairRequest, services: Services = Depends(get_services)):
    """Diagnose, then reassign every orphaned post to the fallback user."""
    diagnosis = await services.diagnostician.diagnose()
    report = await services.diagnostician.repair(diagnosis, payload.fallback_user_id)
    return RepairOut(
        attempted=report.attempted,
        fixed=report.fixed,
        errors=[RepairErrorOut(record_id=e.record_id, cause=e.cause) for e in report.errors],
        diagnosis=_diagnosis_out(diagnosis),
    )
