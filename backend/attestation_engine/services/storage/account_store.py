"""
Account Stores

Subject and counterparty account rows. get/delete raise NotFound when no row
matched, which callers can tell apart from StorageError.
"""

import secrets
from datetime import datetime, timedelta
from typing import Dict, List, Optional
from uuid import uuid4

from ...errors import NotFound
from ...models.db_models import (
    CounterpartyAccountDB,
    SubjectAccountDB,
    VerificationStatus,
    utcnow,
)
from .base import SessionStore


def new_reference_code(prefix: str) -> str:
    """Pseudonymous reference code, e.g. SUB-3F9A0C21D7E4."""
    return f"{prefix}-{secrets.token_hex(6).upper()}"


class SubjectAccountStore(SessionStore):
    """Subject (buyer) accounts."""

    def create(
        self,
        auth_id: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> SubjectAccountDB:
        with self._guard("create subject account"):
            account = SubjectAccountDB(
                id=str(uuid4()),
                auth_id=auth_id,
                first_name=first_name,
                last_name=last_name,
                phone=phone,
                subject_reference_code=new_reference_code("SUB"),
                verification_status=VerificationStatus.PENDING,
            )
            self.db.add(account)
            self.db.commit()
        return account

    def get(self, subject_id: str) -> SubjectAccountDB:
        with self._guard("get subject account"):
            account = self.db.query(SubjectAccountDB).filter(SubjectAccountDB.id == subject_id).first()
        if account is None:
            raise NotFound("subject_accounts", subject_id)
        return account

    def get_by_auth(self, auth_id: str) -> SubjectAccountDB:
        with self._guard("get subject account by auth"):
            account = self.db.query(SubjectAccountDB).filter(SubjectAccountDB.auth_id == auth_id).first()
        if account is None:
            raise NotFound("subject_accounts", auth_id)
        return account

    def find_owned(self, auth_id: str, subject_id: str) -> List[SubjectAccountDB]:
        """All accounts matching both the auth id and the subject id."""
        with self._guard("look up subject ownership"):
            return self.db.query(SubjectAccountDB).filter(
                SubjectAccountDB.id == subject_id,
                SubjectAccountDB.auth_id == auth_id,
            ).all()

    def set_verification_status(
        self,
        subject_id: str,
        status: VerificationStatus,
        validity_days: Optional[int] = None,
        at: Optional[datetime] = None,
    ) -> SubjectAccountDB:
        account = self.get(subject_id)
        with self._guard("update subject verification status"):
            account.verification_status = status
            if status == VerificationStatus.VERIFIED:
                account.verified_at = at or utcnow()
                if validity_days:
                    account.verification_expires_at = account.verified_at + timedelta(days=validity_days)
            self.db.commit()
        return account

    def delete(self, subject_id: str) -> None:
        with self._guard("delete subject account"):
            deleted = self.db.query(SubjectAccountDB).filter(
                SubjectAccountDB.id == subject_id
            ).delete(synchronize_session=False)
            self.db.commit()
        if not deleted:
            raise NotFound("subject_accounts", subject_id)


class CounterpartyAccountStore(SessionStore):
    """Counterparty (dealer) accounts."""

    def create(self, auth_id: str, company_name: str) -> CounterpartyAccountDB:
        with self._guard("create counterparty account"):
            account = CounterpartyAccountDB(
                id=str(uuid4()),
                auth_id=auth_id,
                company_name=company_name,
                counterparty_reference_code=new_reference_code("CP"),
            )
            self.db.add(account)
            self.db.commit()
        return account

    def get(self, counterparty_id: str) -> CounterpartyAccountDB:
        with self._guard("get counterparty account"):
            account = self.db.query(CounterpartyAccountDB).filter(
                CounterpartyAccountDB.id == counterparty_id
            ).first()
        if account is None:
            raise NotFound("counterparty_accounts", counterparty_id)
        return account

    def get_by_auth(self, auth_id: str) -> CounterpartyAccountDB:
        with self._guard("get counterparty account by auth"):
            account = self.db.query(CounterpartyAccountDB).filter(
                CounterpartyAccountDB.auth_id == auth_id
            ).first()
        if account is None:
            raise NotFound("counterparty_accounts", auth_id)
        return account

    def company_names(self, counterparty_ids) -> Dict[str, str]:
        """company_name keyed by counterparty id, for the ids that exist."""
        ids = {cid for cid in counterparty_ids if cid}
        if not ids:
            return {}
        with self._guard("get counterparty names"):
            rows = self.db.query(CounterpartyAccountDB.id, CounterpartyAccountDB.company_name).filter(
                CounterpartyAccountDB.id.in_(sorted(ids))
            ).all()
        return {row.id: row.company_name for row in rows}
