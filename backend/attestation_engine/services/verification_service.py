"""
Verification Service

Two entry points:
- record_identity_verification: consumes the identity provider's attributes
  once, issues the credential bundle and stores both encrypted.
- verify_subject_for_counterparty: decrypts the stored attributes, produces
  fresh age/address attestations for one counterparty request, and appends
  a compliance event.

Plaintext identity attributes only ever live in memory.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..config import Settings
from ..errors import NotFound, VerificationRefused
from ..models.attestation import (
    AddressMatchResult,
    IdentityAttributes,
    VerificationOutcome,
    VerifiedAddress,
)
from ..models.db_models import VerificationStatus, ensure_utc, utcnow
from .address_matching import AddressMatcher, NormalizedAddressMatcher
from .anchoring import ChainAnchorService
from .attestation import (
    DEFAULT_AGE_THRESHOLD,
    build_credential_bundle,
    generate_address_commitment,
    generate_age_commitment,
)
from .encryption import SecretCipher
from .privacy.erasure import parse_subject_id
from .storage import (
    ComplianceEventLedger,
    CounterpartyAccountStore,
    SubjectAccountStore,
    SubjectSecretStore,
)


logger = logging.getLogger(__name__)


class VerificationService:
    """
    Issues credentials and answers counterparty verification requests.

    Usage:
        service = VerificationService.from_session(db, settings)
        outcome = service.verify_subject_for_counterparty(cp_id, subject_id, address)
    """

    def __init__(
        self,
        account_store: SubjectAccountStore,
        counterparty_store: CounterpartyAccountStore,
        secret_store: SubjectSecretStore,
        compliance_ledger: ComplianceEventLedger,
        cipher: SecretCipher,
        matcher: Optional[AddressMatcher] = None,
        commitment_salt: Optional[str] = None,
        validity_days: int = 365,
    ):
        self.account_store = account_store
        self.counterparty_store = counterparty_store
        self.secret_store = secret_store
        self.compliance_ledger = compliance_ledger
        self.cipher = cipher
        self.matcher = matcher or NormalizedAddressMatcher()
        self.commitment_salt = commitment_salt
        self.validity_days = validity_days

    @classmethod
    def from_session(
        cls,
        db: Session,
        settings: Settings,
        anchor_service: Optional[ChainAnchorService] = None,
        matcher: Optional[AddressMatcher] = None,
    ) -> "VerificationService":
        return cls(
            account_store=SubjectAccountStore(db),
            counterparty_store=CounterpartyAccountStore(db),
            secret_store=SubjectSecretStore(db),
            compliance_ledger=ComplianceEventLedger(db, anchor_service=anchor_service),
            cipher=SecretCipher.from_settings(settings),
            matcher=matcher,
            commitment_salt=settings.commitment_salt,
            validity_days=settings.verification_validity_days,
        )

    # =========================================================================
    # CREDENTIAL ISSUANCE
    # =========================================================================

    def record_identity_verification(
        self,
        subject_id: str,
        identity: IdentityAttributes,
        session_ref: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Store a completed identity verification.

        Encrypts the identity attributes and the freshly issued credential
        bundle, then marks the subject VERIFIED for validity_days.

        Returns:
            The credential bundle (no plaintext attributes)
        """
        subject_id = parse_subject_id(subject_id)
        now = now or utcnow()
        self.account_store.get(subject_id)

        age = generate_age_commitment(identity, DEFAULT_AGE_THRESHOLD, now=now, salt=self.commitment_salt)
        address = None
        if identity.address is not None:
            # The provider verified this address against the identity document
            address = generate_address_commitment(
                identity.address, AddressMatchResult(verified=True, confidence=1.0), now=now
            )
        bundle = build_credential_bundle(subject_id, age, identity.date_of_birth, address)

        self.secret_store.create(
            subject_id=subject_id,
            encrypted_identity_attributes=self.cipher.encrypt_json(identity.to_dict()),
            encrypted_credential_bundle=self.cipher.encrypt_json(bundle),
            key_id=self.cipher.key_id,
            session_ref=session_ref,
        )
        self.account_store.set_verification_status(
            subject_id, VerificationStatus.VERIFIED, validity_days=self.validity_days, at=now
        )

        logger.info(f"Identity verification recorded for subject {subject_id}")
        return bundle

    # =========================================================================
    # COUNTERPARTY VERIFICATION
    # =========================================================================

    def verify_subject_for_counterparty(
        self,
        counterparty_id: str,
        subject_id: str,
        shipping_address: VerifiedAddress,
        age_threshold: int = DEFAULT_AGE_THRESHOLD,
        now: Optional[datetime] = None,
    ) -> VerificationOutcome:
        """
        Verify a subject's age and shipping address for one counterparty.

        Raises:
            InvalidSubjectId: subject_id is not a UUID
            NotFound: unknown subject or counterparty
            VerificationRefused: subject not verified, expired, or no usable secrets
        """
        subject_id = parse_subject_id(subject_id)
        now = now or utcnow()

        counterparty = self.counterparty_store.get(counterparty_id)
        subject = self.account_store.get(subject_id)
        self._check_verification_status(subject, now)

        try:
            secrets = self.secret_store.get(subject_id)
        except NotFound as e:
            raise VerificationRefused("no_secrets", f"No identity data on file for subject {subject_id}") from e

        identity = IdentityAttributes.from_provider(
            self.cipher.decrypt_json(secrets.encrypted_identity_attributes)
        )
        if identity.address is None:
            raise VerificationRefused("no_address", f"No verified address on file for subject {subject_id}")

        age = generate_age_commitment(identity, age_threshold, now=now, salt=self.commitment_salt)
        match = self.matcher.match(identity.address, shipping_address)
        address = generate_address_commitment(identity.address, match, now=now)

        event = self.compliance_ledger.append(
            subject_ref=subject.id,
            counterparty_ref=counterparty.id,
            subject_reference_code=subject.subject_reference_code,
            counterparty_reference_code=counterparty.counterparty_reference_code,
            verification_payload={"age": age.to_dict(), "address": address.to_dict()},
            age_verified=age.verified,
            address_verified=address.verified,
            created_at=now,
        )

        outcome = VerificationOutcome(
            compliance_event_id=event.id,
            age=age,
            address=address,
            chain_anchor_info=event.chain_anchor_info,
        )
        logger.info(
            f"Verification for counterparty {counterparty.id} subject {subject_id}: "
            f"{'PASS' if outcome.passed else 'FAIL'} (confidence={match.confidence})"
        )
        return outcome

    @staticmethod
    def _check_verification_status(subject, now: datetime) -> None:
        if subject.verification_status != VerificationStatus.VERIFIED:
            raise VerificationRefused(
                "not_verified", f"Subject {subject.id} is not verified ({subject.verification_status.value})"
            )
        expires_at = ensure_utc(subject.verification_expires_at)
        if expires_at is not None and expires_at <= ensure_utc(now):
            raise VerificationRefused("expired", f"Verification of subject {subject.id} expired at {expires_at.isoformat()}")
