"""
Attestation Engine 1.0 - Configuration
Environment-driven settings, built once at process startup and passed
explicitly to the app factory, the database layer and the services.
"""
import os
from dataclasses import dataclass
from typing import Optional


DEFAULT_DATABASE_URL = f"postgresql://{os.getenv('USER', 'postgres')}@localhost:5432/attestation_engine"


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration."""
    database_url: str = DEFAULT_DATABASE_URL
    jwt_secret_key: str = "attestation-engine-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    encryption_key: Optional[str] = None
    encryption_key_id: str = "master-v1"
    commitment_salt: Optional[str] = None
    verification_validity_days: int = 365

    # Right-to-be-forgotten step retries (StorageError only)
    step_retry_attempts: int = 3
    step_retry_base_delay: float = 0.2

    # PostgreSQL statement timeout; a timed-out step fails like any other
    db_statement_timeout_ms: Optional[int] = None

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        timeout = os.getenv("DB_STATEMENT_TIMEOUT_MS")
        return cls(
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            jwt_secret_key=os.getenv("JWT_SECRET_KEY", cls.jwt_secret_key),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", cls.jwt_algorithm),
            encryption_key=os.getenv("ENCRYPTION_KEY"),
            encryption_key_id=os.getenv("ENCRYPTION_KEY_ID", cls.encryption_key_id),
            commitment_salt=os.getenv("COMMITMENT_SALT") or None,
            verification_validity_days=int(os.getenv("VERIFICATION_VALIDITY_DAYS", "365")),
            step_retry_attempts=int(os.getenv("STEP_RETRY_ATTEMPTS", "3")),
            step_retry_base_delay=float(os.getenv("STEP_RETRY_BASE_DELAY", "0.2")),
            db_statement_timeout_ms=int(timeout) if timeout else None,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
