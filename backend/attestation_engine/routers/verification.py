"""
Attestation Engine 1.0 - Verification Router
Counterparty-facing age and address verification.
"""
from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..auth import get_current_counterparty, get_settings
from ..config import Settings
from ..database import get_db
from ..errors import AttestationEngineError
from ..models.attestation import VerifiedAddress
from ..models.db_models import CounterpartyAccountDB, ensure_utc
from ..services.attestation import DEFAULT_AGE_THRESHOLD
from ..services.privacy import address_confidence
from ..services.storage import ComplianceEventLedger
from ..services.verification_service import VerificationService
from .common import http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/verifications", tags=["verifications"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class ShippingAddress(BaseModel):
    street: str
    unit: Optional[str] = None
    city: str
    state: str
    postal_code: str
    country: str = "US"


class VerifySubjectRequest(BaseModel):
    """Request to verify one subject for the calling counterparty."""
    subject_id: str
    shipping_address: ShippingAddress
    age_threshold: int = Field(DEFAULT_AGE_THRESHOLD, ge=0)


class VerifySubjectResponse(BaseModel):
    compliance_event_id: str
    verification_result: str  # PASS / FAIL
    age_verified: bool
    address_verified: bool
    address_match_confidence: Optional[float] = None
    age_commitment: str
    address_commitment: str
    chain_anchor_info: Optional[dict] = None


class ComplianceEventResponse(BaseModel):
    compliance_event_id: str
    subject_reference_code: str
    counterparty_reference_code: str
    age_verified: bool
    address_verified: bool
    address_match_confidence: Optional[float] = None
    verification_payload: dict
    chain_anchor_info: Optional[dict] = None
    created_at: str


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_verification_service(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> VerificationService:
    """Service wired with the collaborators registered on the app."""
    try:
        return VerificationService.from_session(
            db,
            settings,
            anchor_service=request.app.state.anchor_service,
            matcher=request.app.state.address_matcher,
        )
    except ValueError as e:
        logger.error(f"Verification service unavailable: {e}")
        raise HTTPException(status_code=503, detail="Encryption is not configured")


# =============================================================================
# ROUTES
# =============================================================================

@router.post("", response_model=VerifySubjectResponse)
async def verify_subject(
    request: VerifySubjectRequest,
    counterparty: CounterpartyAccountDB = Depends(get_current_counterparty),
    service: VerificationService = Depends(get_verification_service),
):
    """
    Verify a subject's age and shipping address.

    Produces fresh commitments and records a compliance event, whether the
    result is PASS or FAIL.
    """
    address = VerifiedAddress(**request.shipping_address.model_dump())

    try:
        outcome = service.verify_subject_for_counterparty(
            counterparty_id=counterparty.id,
            subject_id=request.subject_id,
            shipping_address=address,
            age_threshold=request.age_threshold,
        )
    except AttestationEngineError as e:
        raise http_error(e)

    return VerifySubjectResponse(**outcome.to_dict())


@router.get("/{event_id}", response_model=ComplianceEventResponse)
async def get_verification(
    event_id: str,
    counterparty: CounterpartyAccountDB = Depends(get_current_counterparty),
    db: Session = Depends(get_db),
):
    """Get a compliance event requested by the calling counterparty."""
    try:
        event = ComplianceEventLedger(db).get(event_id)
    except AttestationEngineError as e:
        raise http_error(e)

    # Other counterparties' events are indistinguishable from missing ones
    if event.counterparty_ref != counterparty.id:
        raise HTTPException(status_code=404, detail="compliance_events not found")

    return ComplianceEventResponse(
        compliance_event_id=event.id,
        subject_reference_code=event.subject_reference_code,
        counterparty_reference_code=event.counterparty_reference_code,
        age_verified=event.age_verified,
        address_verified=event.address_verified,
        address_match_confidence=address_confidence(event.verification_payload),
        verification_payload=event.verification_payload,
        chain_anchor_info=event.chain_anchor_info,
        created_at=ensure_utc(event.created_at).isoformat(),
    )
