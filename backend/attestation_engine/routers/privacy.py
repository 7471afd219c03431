"""
Attestation Engine 1.0 - Privacy Router
Right-to-know export, right-to-be-forgotten deletion, verification history.
Every route is restricted to the subject's owner.
"""
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import get_current_auth_id, get_settings
from ..config import Settings
from ..database import get_db
from ..errors import AttestationEngineError
from ..services.privacy import SubjectDataService, SubjectErasureService, parse_subject_id
from .common import forbidden, http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subjects", tags=["privacy"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class DeletionSummaryResponse(BaseModel):
    """Per-step result of a deletion request."""
    subject_id: str
    secrets_deleted: bool
    events_anonymized: int
    payments_anonymized: int
    account_deleted: bool
    completed_at: Optional[str] = None
    step_outcomes: dict
    failed_steps: List[str]


class VerificationHistoryEvent(BaseModel):
    compliance_event_id: str
    counterparty_company_name: Optional[str] = None
    counterparty_reference_code: str
    age_verified: bool
    address_verified: bool
    address_match_confidence: Optional[float] = None
    verified_at: str
    chain_transaction_hash: Optional[str] = None


class VerificationHistoryResponse(BaseModel):
    subject_id: str
    total_verifications: int
    verification_events: List[VerificationHistoryEvent]


# =============================================================================
# HELPERS
# =============================================================================

def _owned_subject_id(data_service: SubjectDataService, auth_id: str, subject_id: str) -> str:
    """Canonical subject id, after checking the caller owns it."""
    try:
        subject_id = parse_subject_id(subject_id)
        owned = data_service.validate_ownership(auth_id, subject_id)
    except AttestationEngineError as e:
        raise http_error(e)
    if not owned:
        logger.warning(f"Ownership check failed for subject {subject_id}")
        raise forbidden()
    return subject_id


# =============================================================================
# ROUTES
# =============================================================================

@router.post("/{subject_id}/privacy/export")
async def export_subject_data(
    subject_id: str,
    db: Session = Depends(get_db),
    auth_id: str = Depends(get_current_auth_id),
):
    """
    Right-to-know export.

    Account, verification history and payment history. Encrypted identity
    data is never exported.
    """
    service = SubjectDataService.from_session(db)
    subject_id = _owned_subject_id(service, auth_id, subject_id)

    try:
        return service.export_subject_data(subject_id).to_dict()
    except AttestationEngineError as e:
        raise http_error(e)


@router.post("/{subject_id}/privacy/delete", response_model=DeletionSummaryResponse)
def delete_subject_data(
    subject_id: str,
    db: Session = Depends(get_db),
    auth_id: str = Depends(get_current_auth_id),
    settings: Settings = Depends(get_settings),
):
    """
    Right-to-be-forgotten.

    Always answers 200 with the per-step summary once ownership is proven;
    failed steps are listed in failed_steps. Declared sync so the step
    retries back off in the threadpool.
    """
    subject_id = _owned_subject_id(SubjectDataService.from_session(db), auth_id, subject_id)

    try:
        summary = SubjectErasureService.from_session(db, settings).delete_subject_data(subject_id)
    except AttestationEngineError as e:
        raise http_error(e)
    return DeletionSummaryResponse(**summary.to_dict())


@router.get("/{subject_id}/verification-history", response_model=VerificationHistoryResponse)
async def get_verification_history(
    subject_id: str,
    db: Session = Depends(get_db),
    auth_id: str = Depends(get_current_auth_id),
):
    """Which counterparties verified this subject, and when (newest first)."""
    service = SubjectDataService.from_session(db)
    subject_id = _owned_subject_id(service, auth_id, subject_id)

    try:
        events = service.verification_history(subject_id)
    except AttestationEngineError as e:
        raise http_error(e)

    return VerificationHistoryResponse(
        subject_id=subject_id,
        total_verifications=len(events),
        verification_events=[VerificationHistoryEvent(**e.to_dict()) for e in events],
    )
