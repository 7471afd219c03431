"""
Right-to-know export and ownership checks.

The export reads the subject account and the ledgers. It never touches the
secret store: encrypted identity attributes are not handed out, not even to
their owner.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from ...errors import InvalidSubjectId
from ...models.db_models import (
    ComplianceEventDB,
    SubjectAccountDB,
    ensure_utc,
    utcnow,
)
from ...models.privacy import DataExport, PaymentHistoryItem, VerificationHistoryItem
from ..storage import (
    ComplianceEventLedger,
    CounterpartyAccountStore,
    PaymentLedger,
    SubjectAccountStore,
)
from .erasure import parse_subject_id


logger = logging.getLogger(__name__)


def address_confidence(verification_payload: Optional[Mapping[str, Any]]) -> Optional[float]:
    """match_confidence of the address attestation embedded in an event payload."""
    if not isinstance(verification_payload, Mapping):
        return None
    address = verification_payload.get("address")
    if not isinstance(address, Mapping):
        return None
    return address.get("match_confidence")


def _chain_tx_hash(chain_anchor_info: Optional[Mapping[str, Any]]) -> Optional[str]:
    if not chain_anchor_info:
        return None
    return chain_anchor_info.get("tx_hash")


def _enum_value(value) -> Any:
    return getattr(value, "value", value)


class SubjectDataService:
    """
    Export and ownership checks for one subject.

    Usage:
        service = SubjectDataService.from_session(db)
        export = service.export_subject_data(subject_id)
    """

    def __init__(
        self,
        account_store: SubjectAccountStore,
        compliance_ledger: ComplianceEventLedger,
        payment_ledger: PaymentLedger,
        counterparty_store: CounterpartyAccountStore,
    ):
        self.account_store = account_store
        self.counterparty_store = counterparty_store
        self.compliance_ledger = compliance_ledger
        self.payment_ledger = payment_ledger

    @classmethod
    def from_session(cls, db: Session) -> "SubjectDataService":
        return cls(
            account_store=SubjectAccountStore(db),
            compliance_ledger=ComplianceEventLedger(db),
            payment_ledger=PaymentLedger(db),
            counterparty_store=CounterpartyAccountStore(db),
        )

    # =========================================================================
    # OWNERSHIP
    # =========================================================================

    def validate_ownership(self, auth_id: str, subject_id: str) -> bool:
        """
        True only when exactly one subject account has this id and auth id.

        Malformed ids never match. StorageError propagates.
        """
        if not auth_id:
            return False
        try:
            subject_id = parse_subject_id(subject_id)
        except InvalidSubjectId:
            return False
        return len(self.account_store.find_owned(auth_id, subject_id)) == 1

    # =========================================================================
    # EXPORT
    # =========================================================================

    def verification_history(self, subject_id: str) -> List[VerificationHistoryItem]:
        """Verification events linked to the subject, newest first."""
        events = self.compliance_ledger.list_by_subject(subject_id)
        names = self._counterparty_names(events)
        return [self._history_item(event, names) for event in events]

    def export_subject_data(self, subject_id: str) -> DataExport:
        """
        Collect everything held about a subject.

        Raises NotFound when the account does not exist.
        """
        subject_id = parse_subject_id(subject_id)
        account = self.account_store.get(subject_id)
        events = self.verification_history(subject_id)
        payments = [
            PaymentHistoryItem(
                payment_id=p.id,
                transaction_type=_enum_value(p.transaction_type),
                amount_cents=p.amount_cents,
                status=_enum_value(p.status),
                payment_timestamp=ensure_utc(p.payment_timestamp),
            )
            for p in self.payment_ledger.list_by_subject(subject_id)
        ]

        logger.info(f"Exported data for subject {subject_id}: {len(events)} events, {len(payments)} payments")
        return DataExport(
            subject_id=subject_id,
            subject_reference_code=account.subject_reference_code,
            subject_account=self._account_dict(account),
            verification_events=events,
            payment_history=payments,
            exported_at=utcnow(),
        )

    def _counterparty_names(self, events: List[ComplianceEventDB]) -> Dict[str, str]:
        return self.counterparty_store.company_names(e.counterparty_ref for e in events)

    @staticmethod
    def _history_item(event: ComplianceEventDB, names: Dict[str, str]) -> VerificationHistoryItem:
        return VerificationHistoryItem(
            compliance_event_id=event.id,
            counterparty_company_name=names.get(event.counterparty_ref),
            counterparty_reference_code=event.counterparty_reference_code,
            age_verified=event.age_verified,
            address_verified=event.address_verified,
            address_match_confidence=address_confidence(event.verification_payload),
            verified_at=ensure_utc(event.created_at),
            chain_transaction_hash=_chain_tx_hash(event.chain_anchor_info),
        )

    @staticmethod
    def _account_dict(account: SubjectAccountDB) -> Dict[str, Any]:
        def iso(value):
            value = ensure_utc(value)
            return value.isoformat() if value else None

        return {
            "id": account.id,
            "first_name": account.first_name,
            "last_name": account.last_name,
            "phone": account.phone,
            "subject_reference_code": account.subject_reference_code,
            "verification_status": _enum_value(account.verification_status),
            "verified_at": iso(account.verified_at),
            "verification_expires_at": iso(account.verification_expires_at),
            "created_at": iso(account.created_at),
        }
