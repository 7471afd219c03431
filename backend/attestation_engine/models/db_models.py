"""
Attestation Engine 1.0 - SQLAlchemy ORM Models

Accounts, encrypted subject secrets, and the two append-only ledgers
(compliance events and payment events).
"""
import os
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID

from sqlalchemy import Column, String, Integer, DateTime, Text, JSON, ForeignKey, Enum as SQLEnum, Boolean
from ..database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def new_time_ordered_id(at: Optional[datetime] = None) -> str:
    """
    UUIDv7-layout identifier: 48-bit millisecond timestamp, then random bits.

    Ids sort in creation order, which keeps ledger pagination stable.
    """
    millis = int(ensure_utc(at or utcnow()).timestamp() * 1000)
    rand = int.from_bytes(os.urandom(10), "big")
    value = (millis & ((1 << 48) - 1)) << 80
    value |= 0x7 << 76                       # version
    value |= ((rand >> 68) & 0xFFF) << 64    # rand_a
    value |= 0b10 << 62                      # variant
    value |= rand & ((1 << 62) - 1)          # rand_b
    return str(UUID(int=value))


# =============================================================================
# ENUMS
# =============================================================================

class VerificationStatus(str, Enum):
    """Identity verification state of a subject account."""
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"
    EXPIRED = "expired"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    AUTHORIZED = "authorized"
    COMPLETED = "completed"
    REFUNDED = "refunded"
    FAILED = "failed"


class TransactionType(str, Enum):
    """What a payment event paid for."""
    SUBJECT_VERIFICATION = "subject_verification"
    COUNTERPARTY_SUBSCRIPTION = "counterparty_subscription"
    COUNTERPARTY_OVERAGE = "counterparty_overage"


# =============================================================================
# ACCOUNTS
# =============================================================================

class SubjectAccountDB(Base):
    """Verified person (buyer) account."""
    __tablename__ = "subject_accounts"

    id = Column(String(36), primary_key=True)  # UUID
    auth_id = Column(String(255), unique=True, nullable=False, index=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    phone = Column(String(20), nullable=True)

    # Stable pseudonym copied into ledger rows; survives account deletion
    subject_reference_code = Column(String(32), unique=True, nullable=False, index=True)

    verification_status = Column(SQLEnum(VerificationStatus), nullable=False, default=VerificationStatus.PENDING)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    verification_expires_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class CounterpartyAccountDB(Base):
    """Dealer / merchant requesting verifications."""
    __tablename__ = "counterparty_accounts"

    id = Column(String(36), primary_key=True)  # UUID
    auth_id = Column(String(255), unique=True, nullable=False, index=True)
    company_name = Column(String(255), nullable=False)
    counterparty_reference_code = Column(String(32), unique=True, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


# =============================================================================
# ENCRYPTED SECRETS
# =============================================================================

class SubjectSecretDB(Base):
    """
    Encrypted identity attributes + credential bundle.

    Exactly one row per subject. Insert-only; removed only by explicit erasure.
    """
    __tablename__ = "subject_secrets"

    id = Column(String(36), primary_key=True)  # UUID
    subject_id = Column(String(36), ForeignKey("subject_accounts.id"), unique=True, nullable=False, index=True)
    encrypted_identity_attributes = Column(Text, nullable=False)
    encrypted_credential_bundle = Column(Text, nullable=False)
    encryption_key_id = Column(String(64), nullable=False)
    verification_session_ref = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


# =============================================================================
# LEDGERS (append-only; only the direct foreign keys may be nulled)
# =============================================================================

class ComplianceEventDB(Base):
    """Immutable record of one verification transaction."""
    __tablename__ = "compliance_events"

    id = Column(String(36), primary_key=True)  # time-ordered UUID
    subject_ref = Column(String(36), ForeignKey("subject_accounts.id", ondelete="SET NULL"), nullable=True, index=True)
    counterparty_ref = Column(String(36), ForeignKey("counterparty_accounts.id", ondelete="SET NULL"), nullable=True, index=True)
    subject_reference_code = Column(String(32), nullable=False, index=True)
    counterparty_reference_code = Column(String(32), nullable=False, index=True)

    verification_payload = Column(JSON, nullable=False)
    age_verified = Column(Boolean, nullable=False)
    address_verified = Column(Boolean, nullable=False)

    # {"network": ..., "tx_hash": ..., "block_number": ...}
    chain_anchor_info = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)


class PaymentEventDB(Base):
    """Payment history row. Status is the only field webhooks may change."""
    __tablename__ = "payment_events"

    id = Column(String(36), primary_key=True)  # time-ordered UUID
    subject_ref = Column(String(36), ForeignKey("subject_accounts.id", ondelete="SET NULL"), nullable=True, index=True)
    counterparty_ref = Column(String(36), ForeignKey("counterparty_accounts.id", ondelete="SET NULL"), nullable=True, index=True)
    customer_reference_code = Column(String(32), nullable=False, index=True)

    transaction_type = Column(SQLEnum(TransactionType), nullable=False)
    amount_cents = Column(Integer, nullable=False)
    status = Column(SQLEnum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    payment_provider_info = Column(JSON, nullable=True)

    payment_timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
