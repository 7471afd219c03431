"""
Privacy Request Contracts

Results of right-to-be-forgotten and right-to-know requests.
Neither is persisted; the erasure summary is logged.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class ErasureStep(str, Enum):
    """Ordered steps of a deletion request."""
    DELETE_SECRETS = "delete_secrets"
    ANONYMIZE_EVENTS = "anonymize_events"
    ANONYMIZE_PAYMENTS = "anonymize_payments"
    DELETE_ACCOUNT = "delete_account"


ERASURE_ORDER = (
    ErasureStep.DELETE_SECRETS,
    ErasureStep.ANONYMIZE_EVENTS,
    ErasureStep.ANONYMIZE_PAYMENTS,
    ErasureStep.DELETE_ACCOUNT,
)


class StepOutcome(str, Enum):
    COMPLETED = "completed"
    NOT_FOUND = "not_found"  # nothing left to delete; soft success
    FAILED = "failed"


@dataclass
class DeletionSummary:
    """
    Per-request erasure report.

    Callers needing certainty must inspect the individual fields;
    the request itself always "succeeds".
    """
    subject_id: str
    secrets_deleted: bool = False
    events_anonymized: int = 0
    payments_anonymized: int = 0
    account_deleted: bool = False
    completed_at: Optional[datetime] = None
    step_outcomes: Dict[ErasureStep, StepOutcome] = field(default_factory=dict)

    @property
    def failed_steps(self) -> List[ErasureStep]:
        return [step for step in ERASURE_ORDER if self.step_outcomes.get(step) == StepOutcome.FAILED]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject_id": self.subject_id,
            "secrets_deleted": self.secrets_deleted,
            "events_anonymized": self.events_anonymized,
            "payments_anonymized": self.payments_anonymized,
            "account_deleted": self.account_deleted,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "step_outcomes": {step.value: outcome.value for step, outcome in self.step_outcomes.items()},
            "failed_steps": [step.value for step in self.failed_steps],
        }


@dataclass(frozen=True)
class VerificationHistoryItem:
    compliance_event_id: str
    counterparty_company_name: Optional[str]
    counterparty_reference_code: str
    age_verified: bool
    address_verified: bool
    address_match_confidence: Optional[float]
    verified_at: datetime
    chain_transaction_hash: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "compliance_event_id": self.compliance_event_id,
            "counterparty_company_name": self.counterparty_company_name,
            "counterparty_reference_code": self.counterparty_reference_code,
            "age_verified": self.age_verified,
            "address_verified": self.address_verified,
            "address_match_confidence": self.address_match_confidence,
            "verified_at": self.verified_at.isoformat(),
            "chain_transaction_hash": self.chain_transaction_hash,
        }


@dataclass(frozen=True)
class PaymentHistoryItem:
    payment_id: str
    transaction_type: str
    amount_cents: int
    status: str
    payment_timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "payment_id": self.payment_id,
            "transaction_type": self.transaction_type,
            "amount_cents": self.amount_cents,
            "status": self.status,
            "payment_timestamp": self.payment_timestamp.isoformat(),
        }


@dataclass(frozen=True)
class DataExport:
    """
    Right-to-know export.

    Encrypted secrets are never part of an export, even to their owner.
    """
    subject_id: str
    subject_reference_code: str
    subject_account: Dict[str, Any]
    verification_events: List[VerificationHistoryItem]
    payment_history: List[PaymentHistoryItem]
    exported_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject_account": self.subject_account,
            "verification_history": {
                "subject_id": self.subject_id,
                "subject_reference_code": self.subject_reference_code,
                "total_verifications": len(self.verification_events),
                "verification_events": [e.to_dict() for e in self.verification_events],
            },
            "payment_history": [p.to_dict() for p in self.payment_history],
            "exported_at": self.exported_at.isoformat(),
        }
