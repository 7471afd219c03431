"""
Age / Address Attestation Generator

Commits already-decided claims. No I/O.

Computing the real-world claim (age from a birth date, address match from an
external matcher) stays separate from committing it, so the commitment stays a
pure function and the policy side can change on its own.
"""

from datetime import date, datetime, timezone
from typing import Optional

from ...errors import InvalidPayload
from ...models.attestation import (
    AddressCommitmentPayload,
    AddressMatchResult,
    AgeCommitmentPayload,
    AttestationResult,
    IdentityAttributes,
    VerifiedAddress,
)
from ..commitments import commitment_hash


DEFAULT_AGE_THRESHOLD = 18

AGE_PAYLOAD_FIELDS = ("age_threshold", "age_meets_threshold", "birth_date_commitment",
                      "verification_timestamp", "policy_id")
ADDRESS_PAYLOAD_FIELDS = ("address_verified", "match_confidence", "verified_address_commitment",
                          "verification_timestamp", "policy_id")


def calculate_age(date_of_birth: date, today: date) -> int:
    """
    Whole years between date_of_birth and today.

    Subtract years, then take one off if this year's birthday hasn't come yet.
    A Feb 29 birthday is reached on Mar 1 in non-leap years.
    """
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


def _resolve_now(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def generate_age_commitment(
    identity: IdentityAttributes,
    threshold: int = DEFAULT_AGE_THRESHOLD,
    now: Optional[datetime] = None,
    salt: Optional[str] = None,
) -> AttestationResult:
    """
    Attest that the subject is at least `threshold` years old.

    Args:
        identity: Decrypted identity attributes (only date_of_birth is read)
        threshold: Minimum age in whole years
        now: Evaluation time (default: current UTC time)
        salt: Optional secret mixed into the birth-date commitment

    Returns:
        AttestationResult whose commitment covers the full AgeCommitmentPayload
    """
    if isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 0:
        raise InvalidPayload(f"age threshold must be a non-negative integer, got {threshold!r}")
    if identity.date_of_birth is None:
        raise InvalidPayload("Identity attributes are missing date_of_birth")

    now = _resolve_now(now)
    age = calculate_age(identity.date_of_birth, now.date())
    verified = age >= threshold

    birth_claim = {"date": identity.date_of_birth.isoformat()}
    if salt:
        birth_claim["salt"] = salt

    payload = AgeCommitmentPayload(
        age_threshold=threshold,
        age_meets_threshold=verified,
        birth_date_commitment=commitment_hash(birth_claim),
        verification_timestamp=now.isoformat(),
    )
    return AttestationResult(
        verified=verified,
        commitment=commitment_hash(payload.to_dict(), required_fields=AGE_PAYLOAD_FIELDS),
        commitment_payload=payload,
        generated_at=now,
    )


def generate_address_commitment(
    verified_address: VerifiedAddress,
    match_result: AddressMatchResult,
    now: Optional[datetime] = None,
) -> AttestationResult:
    """
    Commit an address match decided elsewhere.

    verified and match_confidence are passed through untouched.
    """
    if verified_address is None:
        raise InvalidPayload("No verified address on file")

    now = _resolve_now(now)
    payload = AddressCommitmentPayload(
        address_verified=match_result.verified,
        match_confidence=match_result.confidence,
        verified_address_commitment=commitment_hash(verified_address.to_dict()),
        verification_timestamp=now.isoformat(),
    )
    return AttestationResult(
        verified=match_result.verified,
        commitment=commitment_hash(payload.to_dict(), required_fields=ADDRESS_PAYLOAD_FIELDS),
        commitment_payload=payload,
        generated_at=now,
        match_confidence=match_result.confidence,
    )
