"""
Store adapters.

Thin contracts over the relational store. Failures surface as StorageError,
"no rows matched" as NotFound.
"""

from .base import SessionStore
from .account_store import SubjectAccountStore, CounterpartyAccountStore, new_reference_code
from .secret_store import SubjectSecretStore
from .compliance_ledger import ComplianceEventLedger
from .payment_ledger import PaymentLedger

__all__ = [
    "SessionStore",
    "SubjectAccountStore",
    "CounterpartyAccountStore",
    "new_reference_code",
    "SubjectSecretStore",
    "ComplianceEventLedger",
    "PaymentLedger",
]
