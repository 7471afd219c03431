"""
Credential bundle issuance and claim projections.

The bundle is the claim set stored (encrypted) next to the identity
attributes. Reading a claim back never recomputes it.
"""

from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from ...errors import MalformedCredential
from ...models.attestation import AttestationResult
from .generator import DEFAULT_AGE_THRESHOLD, calculate_age


ISSUED_AGE_THRESHOLDS = (18, 21, 65)
CREDENTIAL_TYPE = "AgeAddressCredential"


def build_credential_bundle(
    subject_id: str,
    age_attestation: AttestationResult,
    date_of_birth,
    address_attestation: Optional[AttestationResult] = None,
    issuer: str = "attestation-engine",
) -> Dict[str, Any]:
    """
    Issue the credential bundle for a freshly verified subject.

    One age_over_N claim per issued threshold, all evaluated at the same
    instant as the age attestation.
    """
    issued_at: datetime = age_attestation.generated_at
    age = calculate_age(date_of_birth, issued_at.date())

    subject: Dict[str, Any] = {
        f"age_over_{threshold}": age >= threshold for threshold in ISSUED_AGE_THRESHOLDS
    }
    subject["address_verified"] = bool(address_attestation and address_attestation.verified)
    subject["identity_verified"] = True
    subject["verification_date"] = issued_at.isoformat()

    commitments = {"age": age_attestation.commitment}
    if address_attestation is not None:
        commitments["address"] = address_attestation.commitment

    return {
        "verifiable_credential": {
            "type": CREDENTIAL_TYPE,
            "subject_id": subject_id,
            "issuer": issuer,
            "issuance_date": issued_at.isoformat(),
            "credential_subject": subject,
            "commitments": commitments,
        }
    }


def _credential_subject(credential: Mapping[str, Any]) -> Mapping[str, Any]:
    try:
        subject = credential["verifiable_credential"]["credential_subject"]
    except (KeyError, TypeError) as e:
        raise MalformedCredential("Credential has no credential_subject") from e
    if not isinstance(subject, Mapping):
        raise MalformedCredential("credential_subject is not an object")
    return subject


def _boolean_claim(credential: Mapping[str, Any], claim: str) -> bool:
    subject = _credential_subject(credential)
    if claim not in subject:
        raise MalformedCredential(f"Credential is missing claim '{claim}'")
    value = subject[claim]
    if not isinstance(value, bool):
        raise MalformedCredential(f"Claim '{claim}' is not a boolean")
    return value


def verify_age_from_credential(credential: Mapping[str, Any], threshold: int = DEFAULT_AGE_THRESHOLD) -> bool:
    """Read the stored age_over_<threshold> claim."""
    return _boolean_claim(credential, f"age_over_{threshold}")


def verify_address_from_credential(credential: Mapping[str, Any]) -> Dict[str, bool]:
    """Read the stored address_verified claim."""
    return {"verified": _boolean_claim(credential, "address_verified")}
