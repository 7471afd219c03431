"""
Attestation Data Contracts

Tagged payload records for age and address commitments, plus the ephemeral
identity attributes they are derived from.
Timestamps are injected by the generator, never produced in contracts.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional, Union

from dateutil.parser import isoparse

from ..errors import InvalidPayload


AGE_POLICY_ID = "age-verification-v1"
ADDRESS_POLICY_ID = "address-verification-v1"


# =============================================================================
# IDENTITY ATTRIBUTES (decrypted in-process only, never persisted in plaintext)
# =============================================================================

@dataclass(frozen=True)
class VerifiedAddress:
    """Normalized postal address as returned by the identity provider."""
    street: str
    city: str
    state: str
    postal_code: str
    unit: Optional[str] = None
    country: str = "US"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "street": self.street,
            "unit": self.unit,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "VerifiedAddress":
        try:
            return cls(
                street=data["street"],
                city=data["city"],
                state=data["state"],
                postal_code=data.get("postal_code") or data["zip"],
                unit=data.get("unit"),
                country=data.get("country", "US"),
            )
        except KeyError as e:
            raise InvalidPayload(f"Address is missing field: {e.args[0]}") from e


@dataclass(frozen=True)
class IdentityAttributes:
    """Decrypted identity attributes of one subject."""
    date_of_birth: date
    address: Optional[VerifiedAddress] = None
    document_type: Optional[str] = None
    document_number: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date_of_birth": self.date_of_birth.isoformat(),
            "address": self.address.to_dict() if self.address else None,
            "document_type": self.document_type,
            "document_number": self.document_number,
        }

    @classmethod
    def from_provider(cls, data: Mapping[str, Any]) -> "IdentityAttributes":
        """
        Build from an identity-provider payload (or from to_dict() output).

        date_of_birth may be an ISO date string or a date.
        """
        dob = data.get("date_of_birth")
        if dob is None:
            raise InvalidPayload("Identity attributes are missing date_of_birth")
        if isinstance(dob, str):
            try:
                dob = isoparse(dob).date()
            except ValueError as e:
                raise InvalidPayload(f"Unparseable date_of_birth: {dob!r}") from e
        elif isinstance(dob, datetime):
            dob = dob.date()

        address = data.get("address")
        return cls(
            date_of_birth=dob,
            address=VerifiedAddress.from_dict(address) if address else None,
            document_type=data.get("document_type"),
            document_number=data.get("document_number"),
        )


@dataclass(frozen=True)
class AddressMatchResult:
    """Outcome of the external address matcher."""
    verified: bool
    confidence: float

    def __post_init__(self):
        if isinstance(self.confidence, bool) or not isinstance(self.confidence, (int, float)):
            raise InvalidPayload(f"match confidence must be a number, got {self.confidence!r}")
        # 1 and 1.0 must serialize (and commit) identically
        object.__setattr__(self, "confidence", float(self.confidence))
        if not 0.0 <= self.confidence <= 1.0:
            raise InvalidPayload(f"match confidence must be within 0..1, got {self.confidence}")


# =============================================================================
# COMMITMENT PAYLOADS
# =============================================================================

@dataclass(frozen=True)
class AgeCommitmentPayload:
    """Claim data committed for an age-over-threshold attestation."""
    age_threshold: int
    age_meets_threshold: bool
    birth_date_commitment: str
    verification_timestamp: str
    policy_id: str = AGE_POLICY_ID

    def to_dict(self) -> Dict[str, Any]:
        return {
            "age_threshold": self.age_threshold,
            "age_meets_threshold": self.age_meets_threshold,
            "birth_date_commitment": self.birth_date_commitment,
            "verification_timestamp": self.verification_timestamp,
            "policy_id": self.policy_id,
        }


@dataclass(frozen=True)
class AddressCommitmentPayload:
    """Claim data committed for an address-match attestation."""
    address_verified: bool
    match_confidence: float
    verified_address_commitment: str
    verification_timestamp: str
    policy_id: str = ADDRESS_POLICY_ID

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address_verified": self.address_verified,
            "match_confidence": float(self.match_confidence),
            "verified_address_commitment": self.verified_address_commitment,
            "verification_timestamp": self.verification_timestamp,
            "policy_id": self.policy_id,
        }


CommitmentPayload = Union[AgeCommitmentPayload, AddressCommitmentPayload]


@dataclass(frozen=True)
class AttestationResult:
    """
    Verified claim plus its commitment.

    Created once per verification request and never mutated; compliance
    events embed it by value.
    """
    verified: bool
    commitment: str
    commitment_payload: CommitmentPayload
    generated_at: datetime
    match_confidence: Optional[float] = None

    @property
    def policy_id(self) -> str:
        return self.commitment_payload.policy_id

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "verified": self.verified,
            "commitment": self.commitment,
            "commitment_payload": self.commitment_payload.to_dict(),
            "generated_at": self.generated_at.isoformat(),
        }
        if self.match_confidence is not None:
            data["match_confidence"] = self.match_confidence
        return data


@dataclass(frozen=True)
class VerificationOutcome:
    """Result returned to a counterparty after a verification request."""
    compliance_event_id: str
    age: AttestationResult
    address: AttestationResult
    chain_anchor_info: Optional[Dict[str, Any]] = None

    @property
    def passed(self) -> bool:
        return self.age.verified and self.address.verified

    def to_dict(self) -> Dict[str, Any]:
        return {
            "compliance_event_id": self.compliance_event_id,
            "verification_result": "PASS" if self.passed else "FAIL",
            "age_verified": self.age.verified,
            "address_verified": self.address.verified,
            "address_match_confidence": self.address.match_confidence,
            "age_commitment": self.age.commitment,
            "address_commitment": self.address.commitment,
            "chain_anchor_info": self.chain_anchor_info,
        }
