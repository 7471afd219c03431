"""Attestation Engine 1.0 - Data Models"""
from .attestation import (
    AGE_POLICY_ID, ADDRESS_POLICY_ID,
    VerifiedAddress, IdentityAttributes, AddressMatchResult,
    AgeCommitmentPayload, AddressCommitmentPayload, AttestationResult,
    VerificationOutcome,
)
from .privacy import (
    ErasureStep, ERASURE_ORDER, StepOutcome, DeletionSummary,
    VerificationHistoryItem, PaymentHistoryItem, DataExport,
)

__all__ = [
    "AGE_POLICY_ID", "ADDRESS_POLICY_ID",
    "VerifiedAddress", "IdentityAttributes", "AddressMatchResult",
    "AgeCommitmentPayload", "AddressCommitmentPayload", "AttestationResult",
    "VerificationOutcome",
    "ErasureStep", "ERASURE_ORDER", "StepOutcome", "DeletionSummary",
    "VerificationHistoryItem", "PaymentHistoryItem", "DataExport",
]
