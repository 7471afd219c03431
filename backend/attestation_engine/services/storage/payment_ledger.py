"""
Payment Ledger

Payment history rows. Status (with provider info) is the only thing a
provider webhook may change; anonymization only nulls subject_ref.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from ...errors import NotFound
from ...models.db_models import PaymentEventDB, PaymentStatus, TransactionType, new_time_ordered_id, utcnow
from .base import SessionStore


class PaymentLedger(SessionStore):

    def append(
        self,
        subject_ref: Optional[str],
        counterparty_ref: Optional[str],
        customer_reference_code: str,
        transaction_type: TransactionType,
        amount_cents: int,
        payment_provider_info: Optional[Dict[str, Any]] = None,
        payment_timestamp: Optional[datetime] = None,
    ) -> PaymentEventDB:
        """Record a payment in PENDING state; the provider webhook settles it."""
        payment_timestamp = payment_timestamp or utcnow()
        with self._guard("create payment event"):
            payment = PaymentEventDB(
                id=new_time_ordered_id(payment_timestamp),
                subject_ref=subject_ref,
                counterparty_ref=counterparty_ref,
                customer_reference_code=customer_reference_code,
                transaction_type=transaction_type,
                amount_cents=amount_cents,
                status=PaymentStatus.PENDING,
                payment_provider_info=payment_provider_info,
                payment_timestamp=payment_timestamp,
            )
            self.db.add(payment)
            self.db.commit()
        return payment

    def update_status(
        self,
        payment_id: str,
        status: PaymentStatus,
        provider_info: Optional[Dict[str, Any]] = None,
    ) -> PaymentEventDB:
        with self._guard("update payment status"):
            payment = self.db.query(PaymentEventDB).filter(PaymentEventDB.id == payment_id).first()
            if payment is None:
                raise NotFound("payment_events", payment_id)
            payment.status = status
            if provider_info is not None:
                payment.payment_provider_info = provider_info
            self.db.commit()
        return payment

    def list_by_subject(self, subject_id: str) -> List[PaymentEventDB]:
        """Payment history of a subject, newest first."""
        with self._guard("get subject payment history"):
            return (
                self.db.query(PaymentEventDB)
                .filter(PaymentEventDB.subject_ref == subject_id)
                .order_by(PaymentEventDB.payment_timestamp.desc(), PaymentEventDB.id.desc())
                .all()
            )

    def list_by_counterparty(self, counterparty_id: str) -> List[PaymentEventDB]:
        with self._guard("get counterparty payment history"):
            return (
                self.db.query(PaymentEventDB)
                .filter(PaymentEventDB.counterparty_ref == counterparty_id)
                .order_by(PaymentEventDB.payment_timestamp.desc(), PaymentEventDB.id.desc())
                .all()
            )

    def anonymize_for_subject(self, subject_id: str) -> int:
        """Null subject_ref on the subject's payments. Returns rows updated."""
        with self._guard("anonymize payments"):
            updated = self.db.query(PaymentEventDB).filter(
                PaymentEventDB.subject_ref == subject_id
            ).update({PaymentEventDB.subject_ref: None}, synchronize_session=False)
            self.db.commit()
        return updated
