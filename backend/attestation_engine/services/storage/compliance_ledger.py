"""
Compliance Event Ledger

Append-only record of every verification transaction.

MANDATORY CONSTRAINTS:
- verification_payload, age_verified, address_verified, created_at are never updated
- Reference codes are never nulled; they are the durable audit trail
- Anonymization only nulls subject_ref
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ...errors import NotFound
from ...models.db_models import ComplianceEventDB, new_time_ordered_id, utcnow
from ..anchoring import ChainAnchorService, anchor_best_effort
from .base import SessionStore


logger = logging.getLogger(__name__)


class ComplianceEventLedger(SessionStore):
    """Append/read/anonymize over compliance_events."""

    def __init__(self, db: Session, anchor_service: Optional[ChainAnchorService] = None):
        super().__init__(db)
        self.anchor_service = anchor_service

    def append(
        self,
        subject_ref: Optional[str],
        counterparty_ref: Optional[str],
        subject_reference_code: str,
        counterparty_reference_code: str,
        verification_payload: Dict[str, Any],
        age_verified: bool,
        address_verified: bool,
        created_at: Optional[datetime] = None,
    ) -> ComplianceEventDB:
        """
        Append one compliance event.

        The ledger assigns a time-ordered id. When an anchor service is
        configured the record is anchored first, best effort; an anchor
        failure stores the event with chain_anchor_info = None.
        """
        created_at = created_at or utcnow()
        event_id = new_time_ordered_id(created_at)

        anchor_info = anchor_best_effort(self.anchor_service, {
            "compliance_event_id": event_id,
            "subject_reference_code": subject_reference_code,
            "counterparty_reference_code": counterparty_reference_code,
            "verification_payload": verification_payload,
            "age_verified": age_verified,
            "address_verified": address_verified,
            "created_at": created_at,
        })

        with self._guard("create compliance event"):
            event = ComplianceEventDB(
                id=event_id,
                subject_ref=subject_ref,
                counterparty_ref=counterparty_ref,
                subject_reference_code=subject_reference_code,
                counterparty_reference_code=counterparty_reference_code,
                verification_payload=verification_payload,
                age_verified=age_verified,
                address_verified=address_verified,
                chain_anchor_info=anchor_info,
                created_at=created_at,
            )
            self.db.add(event)
            self.db.commit()

        logger.info(f"Compliance event {event_id} recorded (anchored={anchor_info is not None})")
        return event

    def get(self, event_id: str) -> ComplianceEventDB:
        with self._guard("get compliance event"):
            event = self.db.query(ComplianceEventDB).filter(ComplianceEventDB.id == event_id).first()
        if event is None:
            raise NotFound("compliance_events", event_id)
        return event

    def list_by_subject(self, subject_id: str) -> List[ComplianceEventDB]:
        """Verification history of a subject, newest first."""
        with self._guard("get subject verification history"):
            return (
                self.db.query(ComplianceEventDB)
                .filter(ComplianceEventDB.subject_ref == subject_id)
                .order_by(ComplianceEventDB.created_at.desc(), ComplianceEventDB.id.desc())
                .all()
            )

    def list_by_counterparty(self, counterparty_id: str) -> List[ComplianceEventDB]:
        """Verification history of a counterparty, newest first."""
        with self._guard("get counterparty verification history"):
            return (
                self.db.query(ComplianceEventDB)
                .filter(ComplianceEventDB.counterparty_ref == counterparty_id)
                .order_by(ComplianceEventDB.created_at.desc(), ComplianceEventDB.id.desc())
                .all()
            )

    def anonymize_for_subject(self, subject_id: str) -> int:
        """Null subject_ref on every event of the subject. Returns rows updated."""
        with self._guard("anonymize compliance events"):
            updated = self.db.query(ComplianceEventDB).filter(
                ComplianceEventDB.subject_ref == subject_id
            ).update({ComplianceEventDB.subject_ref: None}, synchronize_session=False)
            self.db.commit()
        return updated
