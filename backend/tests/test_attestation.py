"""
Tests for the attestation generator, credential projections and address matcher.

1. Age boundaries (birthday, day before, Feb 29)
2. Age commitment payload shape and threshold validation
3. Address attestation passes matcher results through untouched
4. Credential bundle claims and MalformedCredential
5. Default normalized address matcher
"""
from datetime import date, datetime, timezone

import pytest
from dateutil.relativedelta import relativedelta

from attestation_engine.errors import InvalidPayload, MalformedCredential
from attestation_engine.models.attestation import (
    ADDRESS_POLICY_ID,
    AGE_POLICY_ID,
    AddressMatchResult,
    IdentityAttributes,
    VerifiedAddress,
)
from attestation_engine.services.address_matching import NormalizedAddressMatcher
from attestation_engine.services.attestation import (
    build_credential_bundle,
    calculate_age,
    generate_address_commitment,
    generate_age_commitment,
    verify_address_from_credential,
    verify_age_from_credential,
)
from attestation_engine.services.commitments import commitment_hash


@pytest.fixture
def address():
    return VerifiedAddress(street="123 Main Street", unit="Apt 4", city="Austin", state="TX", postal_code="78701")


def at_midday(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# TEST: AGE CALCULATION
# =============================================================================

class TestCalculateAge:
    """Whole-year age, birthday inclusive."""

    def test_on_birthday(self):
        dob = date(2000, 6, 15)
        assert calculate_age(dob, dob + relativedelta(years=18)) == 18

    def test_day_before_birthday(self):
        dob = date(2000, 6, 15)
        assert calculate_age(dob, dob + relativedelta(years=18, days=-1)) == 17

    def test_day_after_birthday(self):
        dob = date(2000, 6, 15)
        assert calculate_age(dob, dob + relativedelta(years=18, days=1)) == 18

    def test_leap_day_birth_in_non_leap_year(self):
        """Feb 29 births turn a year older on Mar 1 of non-leap years."""
        dob = date(2004, 2, 29)
        assert calculate_age(dob, date(2022, 2, 28)) == 17
        assert calculate_age(dob, date(2022, 3, 1)) == 18

    def test_leap_day_birth_in_leap_year(self):
        dob = date(2004, 2, 29)
        assert calculate_age(dob, date(2024, 2, 28)) == 19
        assert calculate_age(dob, date(2024, 2, 29)) == 20


# =============================================================================
# TEST: AGE COMMITMENT
# =============================================================================

class TestAgeCommitment:
    """generate_age_commitment."""

    def test_boundary_verified_on_18th_birthday(self):
        dob = date(2000, 6, 15)
        identity = IdentityAttributes(date_of_birth=dob)

        on_birthday = generate_age_commitment(identity, 18, now=at_midday(dob + relativedelta(years=18)))
        day_before = generate_age_commitment(
            identity, 18, now=at_midday(dob + relativedelta(years=18, days=-1))
        )

        assert on_birthday.verified is True
        assert day_before.verified is False

    def test_payload_shape(self):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        identity = IdentityAttributes(date_of_birth=date(1990, 5, 15))

        result = generate_age_commitment(identity, 21, now=now)
        payload = result.commitment_payload.to_dict()

        assert payload["age_threshold"] == 21
        assert payload["age_meets_threshold"] is True
        assert payload["birth_date_commitment"] == commitment_hash({"date": "1990-05-15"})
        assert payload["verification_timestamp"] == now.isoformat()
        assert payload["policy_id"] == AGE_POLICY_ID
        assert result.commitment == commitment_hash(payload)
        assert result.policy_id == AGE_POLICY_ID
        assert result.generated_at == now

    def test_deterministic_for_fixed_time(self):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        identity = IdentityAttributes(date_of_birth=date(1990, 5, 15))
        assert generate_age_commitment(identity, now=now).commitment == \
            generate_age_commitment(identity, now=now).commitment

    def test_naive_now_treated_as_utc(self):
        identity = IdentityAttributes(date_of_birth=date(1990, 5, 15))
        naive = generate_age_commitment(identity, now=datetime(2024, 1, 1))
        aware = generate_age_commitment(identity, now=datetime(2024, 1, 1, tzinfo=timezone.utc))
        assert naive.commitment == aware.commitment

    def test_salt_changes_birth_date_commitment(self):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        identity = IdentityAttributes(date_of_birth=date(1990, 5, 15))
        plain = generate_age_commitment(identity, now=now)
        salted = generate_age_commitment(identity, now=now, salt="pepper")
        assert plain.commitment_payload.birth_date_commitment != salted.commitment_payload.birth_date_commitment
        assert plain.verified == salted.verified

    @pytest.mark.parametrize("threshold", [-1, True, "18", 18.0])
    def test_invalid_threshold(self, threshold):
        identity = IdentityAttributes(date_of_birth=date(1990, 5, 15))
        with pytest.raises(InvalidPayload):
            generate_age_commitment(identity, threshold)

    def test_zero_threshold_allowed(self):
        identity = IdentityAttributes(date_of_birth=date(2024, 1, 1))
        result = generate_age_commitment(identity, 0, now=datetime(2024, 1, 1, tzinfo=timezone.utc))
        assert result.verified is True


# =============================================================================
# TEST: ADDRESS COMMITMENT
# =============================================================================

class TestAddressCommitment:
    """generate_address_commitment never second-guesses the matcher."""

    def test_confidence_passthrough(self, address):
        result = generate_address_commitment(address, AddressMatchResult(verified=True, confidence=0.97))

        assert result.verified is True
        assert result.match_confidence == 0.97
        assert result.commitment_payload.match_confidence == 0.97
        assert result.commitment_payload.verified_address_commitment == commitment_hash(address.to_dict())
        assert result.policy_id == ADDRESS_POLICY_ID

    def test_unverified_match_stays_unverified(self, address):
        result = generate_address_commitment(address, AddressMatchResult(verified=False, confidence=0.97))
        assert result.verified is False
        assert result.commitment_payload.address_verified is False
        assert result.match_confidence == 0.97

    def test_commitment_covers_payload(self, address):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        result = generate_address_commitment(address, AddressMatchResult(True, 0.95), now=now)
        assert result.commitment == commitment_hash(result.commitment_payload.to_dict())
        assert result.to_dict()["match_confidence"] == 0.95

    @pytest.mark.parametrize("confidence", [-0.1, 1.5])
    def test_confidence_out_of_range(self, confidence):
        with pytest.raises(InvalidPayload):
            AddressMatchResult(verified=True, confidence=confidence)

    def test_missing_address(self):
        with pytest.raises(InvalidPayload):
            generate_address_commitment(None, AddressMatchResult(True, 1.0))

    def test_integer_confidence_commits_like_float(self, address):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        as_int = generate_address_commitment(address, AddressMatchResult(True, 1), now=now)
        as_float = generate_address_commitment(address, AddressMatchResult(True, 1.0), now=now)

        assert AddressMatchResult(True, 1).confidence == 1.0
        assert isinstance(AddressMatchResult(False, 0).confidence, float)
        assert as_int.commitment == as_float.commitment


# =============================================================================
# TEST: CREDENTIALS
# =============================================================================

class TestCredentialBundle:
    """Issued claims and their read-only projections."""

    def _bundle(self, dob: date, now: datetime, with_address: bool = True):
        identity = IdentityAttributes(date_of_birth=dob)
        age = generate_age_commitment(identity, now=now)
        address = None
        if with_address:
            address = generate_address_commitment(
                VerifiedAddress("1 Elm St", "Austin", "TX", "78701"), AddressMatchResult(True, 1.0), now=now
            )
        return build_credential_bundle("subject-1", age, dob, address)

    def test_age_claims(self):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        bundle = self._bundle(date(2004, 6, 1), now)  # 19

        assert verify_age_from_credential(bundle) is True
        assert verify_age_from_credential(bundle, 21) is False
        assert verify_age_from_credential(bundle, 65) is False

    def test_address_and_identity_claims(self):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        bundle = self._bundle(date(1990, 5, 15), now)
        subject = bundle["verifiable_credential"]["credential_subject"]

        assert verify_address_from_credential(bundle) == {"verified": True}
        assert subject["identity_verified"] is True
        assert subject["verification_date"] == now.isoformat()
        assert set(bundle["verifiable_credential"]["commitments"]) == {"age", "address"}

    def test_no_address_attestation(self):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        bundle = self._bundle(date(1990, 5, 15), now, with_address=False)
        assert verify_address_from_credential(bundle) == {"verified": False}
        assert "address" not in bundle["verifiable_credential"]["commitments"]

    def test_unissued_threshold_is_malformed(self):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        bundle = self._bundle(date(1990, 5, 15), now)
        with pytest.raises(MalformedCredential):
            verify_age_from_credential(bundle, 30)

    def test_non_boolean_claim_is_malformed(self):
        credential = {"verifiable_credential": {"credential_subject": {"age_over_18": "yes"}}}
        with pytest.raises(MalformedCredential):
            verify_age_from_credential(credential)

    def test_missing_subject_is_malformed(self):
        with pytest.raises(MalformedCredential):
            verify_address_from_credential({"verifiable_credential": {}})
        with pytest.raises(MalformedCredential):
            verify_address_from_credential({})


# =============================================================================
# TEST: IDENTITY ATTRIBUTES
# =============================================================================

class TestIdentityAttributes:
    """Parsing of identity-provider payloads."""

    def test_from_provider_parses_iso_date_and_zip(self):
        identity = IdentityAttributes.from_provider({
            "date_of_birth": "1990-05-15",
            "address": {"street": "1 Elm St", "city": "Austin", "state": "TX", "zip": "78701"},
        })
        assert identity.date_of_birth == date(1990, 5, 15)
        assert identity.address.postal_code == "78701"

    def test_round_trip_through_to_dict(self, address):
        identity = IdentityAttributes(date_of_birth=date(1990, 5, 15), address=address, document_type="passport")
        assert IdentityAttributes.from_provider(identity.to_dict()) == identity

    def test_missing_date_of_birth(self):
        with pytest.raises(InvalidPayload):
            IdentityAttributes.from_provider({"address": None})

    def test_unparseable_date_of_birth(self):
        with pytest.raises(InvalidPayload):
            IdentityAttributes.from_provider({"date_of_birth": "not-a-date"})

    def test_address_missing_field(self):
        with pytest.raises(InvalidPayload):
            VerifiedAddress.from_dict({"street": "1 Elm St", "city": "Austin"})


# =============================================================================
# TEST: ADDRESS MATCHER
# =============================================================================

class TestNormalizedAddressMatcher:
    """Default matcher: weighted component comparison."""

    def test_exact_match(self, address):
        result = NormalizedAddressMatcher().match(address, address)
        assert result.verified is True
        assert result.confidence == 1.0

    def test_abbreviations_and_case(self, address):
        candidate = VerifiedAddress(street="123 main st.", unit="apt 4", city="AUSTIN", state="tx",
                                    postal_code="78701-1234")
        result = NormalizedAddressMatcher().match(address, candidate)
        assert result.confidence == 1.0

    def test_unit_mismatch_still_verified(self, address):
        candidate = VerifiedAddress(street="123 Main St", unit="Apt 5", city="Austin", state="TX",
                                    postal_code="78701")
        result = NormalizedAddressMatcher().match(address, candidate)
        assert result.confidence == 0.9
        assert result.verified is True

    def test_different_city_not_verified(self, address):
        candidate = VerifiedAddress(street="123 Main St", unit="Apt 4", city="Dallas", state="TX",
                                    postal_code="78701")
        result = NormalizedAddressMatcher().match(address, candidate)
        assert result.confidence == 0.8
        assert result.verified is False

    def test_nothing_matches_is_float_zero(self, address):
        candidate = VerifiedAddress(street="9 Elm Rd", unit="Suite 12", city="Dallas", state="OK",
                                    postal_code="73301")
        result = NormalizedAddressMatcher().match(address, candidate)
        assert result.confidence == 0.0
        assert isinstance(result.confidence, float)
        assert result.verified is False
