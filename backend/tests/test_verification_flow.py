"""
End-to-end verification flow over an in-memory database.

Subject born 1990-05-15 completes identity verification, a counterparty
verifies them (address match confidence 0.95), the subject exports their
data, then asks to be forgotten. The compliance event outlives the account.
"""
from datetime import date, datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from attestation_engine.config import Settings
from attestation_engine.database import build_engine, build_session_factory, init_db
from attestation_engine.errors import NotFound, VerificationRefused
from attestation_engine.models.attestation import AddressMatchResult, IdentityAttributes, VerifiedAddress
from attestation_engine.models.db_models import VerificationStatus
from attestation_engine.services.anchoring import ChainAnchor
from attestation_engine.services.attestation import verify_age_from_credential
from attestation_engine.services.privacy import SubjectDataService, SubjectErasureService
from attestation_engine.services.storage import (
    ComplianceEventLedger,
    CounterpartyAccountStore,
    SubjectAccountStore,
    SubjectSecretStore,
)
from attestation_engine.services.verification_service import VerificationService


ISSUED_AT = datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc)
VERIFIED_AT = datetime(2024, 6, 2, 15, 30, tzinfo=timezone.utc)

HOME = VerifiedAddress(street="742 Evergreen Terrace", city="Springfield", state="OR", postal_code="97403")


@pytest.fixture
def settings():
    return Settings(database_url="sqlite://", encryption_key="test-master-key", verification_validity_days=365)


@pytest.fixture
def db(settings):
    engine = build_engine(settings)
    init_db(engine)
    session = build_session_factory(engine)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def accounts(db):
    subject = SubjectAccountStore(db).create(auth_id="auth-subject", first_name="Homer")
    counterparty = CounterpartyAccountStore(db).create(auth_id="auth-dealer", company_name="Springfield Wines")
    return subject, counterparty


@pytest.fixture
def matcher():
    mock_matcher = MagicMock()
    mock_matcher.match.return_value = AddressMatchResult(verified=True, confidence=0.95)
    return mock_matcher


@pytest.fixture
def identity():
    return IdentityAttributes(date_of_birth=date(1990, 5, 15), address=HOME, document_type="drivers_license")


# =============================================================================
# TEST: FULL SCENARIO
# =============================================================================

class TestVerificationScenario:
    """Issuance -> counterparty verification -> export -> erasure."""

    def test_end_to_end(self, db, settings, accounts, matcher, identity):
        subject, counterparty = accounts
        subject_id, reference_code = subject.id, subject.subject_reference_code
        service = VerificationService.from_session(db, settings, matcher=matcher)

        bundle = service.record_identity_verification(subject.id, identity, session_ref="idv-1", now=ISSUED_AT)
        assert verify_age_from_credential(bundle, 21) is True

        outcome = service.verify_subject_for_counterparty(
            counterparty.id, subject.id, HOME, age_threshold=21, now=VERIFIED_AT
        )
        assert outcome.passed is True
        assert outcome.age.verified is True
        assert outcome.address.match_confidence == 0.95
        assert outcome.to_dict()["verification_result"] == "PASS"
        matcher.match.assert_called_once_with(HOME, HOME)

        # Subject sees the verification in their export
        export = SubjectDataService.from_session(db).export_subject_data(subject.id)
        assert len(export.verification_events) == 1
        item = export.verification_events[0]
        assert item.compliance_event_id == outcome.compliance_event_id
        assert item.counterparty_company_name == "Springfield Wines"
        assert item.address_match_confidence == 0.95
        assert item.verified_at == VERIFIED_AT

        # Right to be forgotten
        summary = SubjectErasureService.from_session(db, settings).delete_subject_data(subject_id)
        assert summary.secrets_deleted is True
        assert summary.events_anonymized == 1
        assert summary.account_deleted is True
        db.expire_all()

        # The counterparty's audit trail survives, unlinked
        event = ComplianceEventLedger(db).get(outcome.compliance_event_id)
        assert event.subject_ref is None
        assert event.subject_reference_code == reference_code
        assert event.counterparty_reference_code == counterparty.counterparty_reference_code
        assert event.age_verified is True
        assert event.address_verified is True
        assert event.verification_payload["address"]["match_confidence"] == 0.95
        assert event.verification_payload["age"]["commitment"] == outcome.age.commitment

        with pytest.raises(NotFound):
            service.verify_subject_for_counterparty(counterparty.id, subject_id, HOME, now=VERIFIED_AT)

    def test_identity_attributes_encrypted_at_rest(self, db, settings, accounts, identity):
        subject, _ = accounts
        VerificationService.from_session(db, settings).record_identity_verification(
            subject.id, identity, now=ISSUED_AT
        )

        record = SubjectSecretStore(db).get(subject.id)
        assert "1990-05-15" not in record.encrypted_identity_attributes
        assert "Evergreen" not in record.encrypted_identity_attributes
        assert record.encryption_key_id == settings.encryption_key_id

        account = SubjectAccountStore(db).get(subject.id)
        assert account.verification_status == VerificationStatus.VERIFIED

    def test_failed_verification_is_still_recorded(self, db, settings, accounts, identity):
        subject, counterparty = accounts
        service = VerificationService.from_session(db, settings)
        service.record_identity_verification(subject.id, identity, now=ISSUED_AT)

        elsewhere = VerifiedAddress(street="1 Other Rd", city="Shelbyville", state="OR", postal_code="97000")
        outcome = service.verify_subject_for_counterparty(counterparty.id, subject.id, elsewhere, now=VERIFIED_AT)

        assert outcome.passed is False
        assert outcome.address.verified is False
        assert ComplianceEventLedger(db).get(outcome.compliance_event_id).address_verified is False

    def test_age_threshold_not_met(self, db, settings, accounts, identity):
        subject, counterparty = accounts
        service = VerificationService.from_session(db, settings)
        service.record_identity_verification(subject.id, identity, now=ISSUED_AT)

        outcome = service.verify_subject_for_counterparty(
            counterparty.id, subject.id, HOME, age_threshold=65, now=VERIFIED_AT
        )
        assert outcome.age.verified is False
        assert outcome.address.verified is True

    def test_anchor_info_returned(self, db, settings, accounts, identity):
        subject, counterparty = accounts
        anchor_service = MagicMock()
        anchor_service.anchor.return_value = ChainAnchor(network="polygon", tx_hash="0xfeed", block_number=7)
        service = VerificationService.from_session(db, settings, anchor_service=anchor_service)
        service.record_identity_verification(subject.id, identity, now=ISSUED_AT)

        outcome = service.verify_subject_for_counterparty(counterparty.id, subject.id, HOME, now=VERIFIED_AT)

        assert outcome.chain_anchor_info["tx_hash"] == "0xfeed"
        history = SubjectDataService.from_session(db).verification_history(subject.id)
        assert history[0].chain_transaction_hash == "0xfeed"


# =============================================================================
# TEST: REFUSALS
# =============================================================================

class TestVerificationRefused:
    """Subjects that cannot be verified."""

    def test_unverified_subject(self, db, settings, accounts):
        subject, counterparty = accounts
        service = VerificationService.from_session(db, settings)

        with pytest.raises(VerificationRefused) as exc:
            service.verify_subject_for_counterparty(counterparty.id, subject.id, HOME, now=VERIFIED_AT)
        assert exc.value.reason == "not_verified"

    def test_expired_verification(self, db, settings, accounts, identity):
        subject, counterparty = accounts
        service = VerificationService.from_session(db, settings)
        service.record_identity_verification(subject.id, identity, now=ISSUED_AT)

        with pytest.raises(VerificationRefused) as exc:
            service.verify_subject_for_counterparty(
                counterparty.id, subject.id, HOME, now=ISSUED_AT + timedelta(days=366)
            )
        assert exc.value.reason == "expired"

    def test_missing_secrets(self, db, settings, accounts, identity):
        subject, counterparty = accounts
        service = VerificationService.from_session(db, settings)
        service.record_identity_verification(subject.id, identity, now=ISSUED_AT)
        SubjectSecretStore(db).delete(subject.id)

        with pytest.raises(VerificationRefused) as exc:
            service.verify_subject_for_counterparty(counterparty.id, subject.id, HOME, now=VERIFIED_AT)
        assert exc.value.reason == "no_secrets"

    def test_unknown_counterparty(self, db, settings, accounts):
        subject, _ = accounts
        with pytest.raises(NotFound):
            VerificationService.from_session(db, settings).verify_subject_for_counterparty(
                "no-such-counterparty", subject.id, HOME, now=VERIFIED_AT
            )
