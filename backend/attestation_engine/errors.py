"""
Attestation Engine 1.0 - Error Taxonomy

Every component propagates these untouched, except the right-to-be-forgotten
orchestrator, which records them in its DeletionSummary instead.
"""


class AttestationEngineError(Exception):
    """Base class for all engine errors."""
    pass


class InvalidPayload(AttestationEngineError):
    """Commitment input is missing a required field or is not canonicalizable."""
    pass


class MalformedCredential(AttestationEngineError):
    """A stored credential lacks an expected claim or cannot be decoded."""
    pass


class StorageError(AttestationEngineError):
    """An external store operation failed (network, constraint, timeout)."""
    pass


class NotFound(AttestationEngineError):
    """No rows matched. Deliberately NOT a StorageError."""

    def __init__(self, resource: str, key: str):
        self.resource = resource
        self.key = key
        super().__init__(f"{resource} not found: {key}")


class InvalidSubjectId(AttestationEngineError, ValueError):
    """Subject identifier is not a well-formed UUID."""
    pass


class VerificationRefused(AttestationEngineError):
    """Subject cannot be verified (not verified, expired, or no secrets on file)."""

    def __init__(self, reason: str, detail: str = ""):
        self.reason = reason
        super().__init__(detail or reason)
