"""
Age / address attestation.

Pure generation of commitments plus read-only projections of stored credentials.
"""

from .generator import (
    DEFAULT_AGE_THRESHOLD,
    calculate_age,
    generate_age_commitment,
    generate_address_commitment,
)
from .credentials import (
    build_credential_bundle,
    verify_age_from_credential,
    verify_address_from_credential,
)

__all__ = [
    "DEFAULT_AGE_THRESHOLD",
    "calculate_age",
    "generate_age_commitment",
    "generate_address_commitment",
    "build_credential_bundle",
    "verify_age_from_credential",
    "verify_address_from_credential",
]
