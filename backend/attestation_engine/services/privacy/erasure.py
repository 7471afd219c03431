"""
Subject Erasure Service

Right-to-be-forgotten for a subject. Best-effort, ordered, per-step isolated:
1. Delete encrypted secrets
2. Anonymize compliance events (null subject_ref)
3. Anonymize payment events (null subject_ref)
4. Delete the subject account

There is no cross-store transaction. Each step commits on its own; a failed
step is recorded in the DeletionSummary and never stops the later ones.
Reference codes stay on the ledgers, so the audit trail survives.
"""

import logging
import time
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from ...config import Settings
from ...errors import InvalidSubjectId, NotFound, StorageError
from ...models.db_models import utcnow
from ...models.privacy import DeletionSummary, ErasureStep, StepOutcome
from ..storage import ComplianceEventLedger, PaymentLedger, SubjectAccountStore, SubjectSecretStore


logger = logging.getLogger(__name__)


def parse_subject_id(subject_id: str) -> str:
    """Canonical string form of a subject UUID. InvalidSubjectId otherwise."""
    try:
        return str(UUID(str(subject_id)))
    except (ValueError, AttributeError, TypeError) as e:
        raise InvalidSubjectId(f"Subject id is not a UUID: {subject_id!r}") from e


class SubjectErasureService:
    """
    Runs deletion requests against injected store adapters.

    Usage:
        service = SubjectErasureService.from_session(db, settings)
        summary = service.delete_subject_data(subject_id)
    """

    def __init__(
        self,
        secret_store: SubjectSecretStore,
        compliance_ledger: ComplianceEventLedger,
        payment_ledger: PaymentLedger,
        account_store: SubjectAccountStore,
        retry_attempts: int = 3,
        retry_base_delay: float = 0.2,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.secret_store = secret_store
        self.compliance_ledger = compliance_ledger
        self.payment_ledger = payment_ledger
        self.account_store = account_store
        self.retry_attempts = max(1, retry_attempts)
        self.retry_base_delay = retry_base_delay
        self.sleep = sleep

    @classmethod
    def from_session(cls, db: Session, settings: Optional[Settings] = None) -> "SubjectErasureService":
        settings = settings or Settings()
        return cls(
            secret_store=SubjectSecretStore(db),
            compliance_ledger=ComplianceEventLedger(db),
            payment_ledger=PaymentLedger(db),
            account_store=SubjectAccountStore(db),
            retry_attempts=settings.step_retry_attempts,
            retry_base_delay=settings.step_retry_base_delay,
        )

    def delete_subject_data(self, subject_id: str) -> DeletionSummary:
        """
        Erase a subject's personal data.

        Never raises for store failures; inspect the returned summary.
        Raises InvalidSubjectId when subject_id is not a UUID.
        """
        subject_id = parse_subject_id(subject_id)
        summary = DeletionSummary(subject_id=subject_id)

        # Step 1: Secrets
        outcome, _ = self._run_step(ErasureStep.DELETE_SECRETS, subject_id,
                                    lambda: self.secret_store.delete(subject_id))
        summary.step_outcomes[ErasureStep.DELETE_SECRETS] = outcome
        summary.secrets_deleted = outcome == StepOutcome.COMPLETED

        # Step 2: Compliance events
        outcome, count = self._run_step(ErasureStep.ANONYMIZE_EVENTS, subject_id,
                                        lambda: self.compliance_ledger.anonymize_for_subject(subject_id))
        summary.step_outcomes[ErasureStep.ANONYMIZE_EVENTS] = outcome
        summary.events_anonymized = count or 0

        # Step 3: Payments
        outcome, count = self._run_step(ErasureStep.ANONYMIZE_PAYMENTS, subject_id,
                                        lambda: self.payment_ledger.anonymize_for_subject(subject_id))
        summary.step_outcomes[ErasureStep.ANONYMIZE_PAYMENTS] = outcome
        summary.payments_anonymized = count or 0

        # Step 4: Account
        outcome, _ = self._run_step(ErasureStep.DELETE_ACCOUNT, subject_id,
                                    lambda: self.account_store.delete(subject_id))
        summary.step_outcomes[ErasureStep.DELETE_ACCOUNT] = outcome
        summary.account_deleted = outcome == StepOutcome.COMPLETED

        summary.completed_at = utcnow()

        if summary.failed_steps:
            failed = ", ".join(step.value for step in summary.failed_steps)
            logger.warning(f"Deletion for subject {subject_id} finished with failed steps: {failed}")
        else:
            logger.info(
                f"Deletion for subject {subject_id} complete: "
                f"secrets_deleted={summary.secrets_deleted} "
                f"events_anonymized={summary.events_anonymized} "
                f"payments_anonymized={summary.payments_anonymized} "
                f"account_deleted={summary.account_deleted}"
            )
        return summary

    def _run_step(self, step: ErasureStep, subject_id: str, action: Callable[[], Optional[int]]):
        """
        Execute one step. Returns (outcome, result).

        StorageError is retried with exponential backoff. NotFound is a soft
        success. Any other failure is recorded without retry.
        """
        for attempt in range(1, self.retry_attempts + 1):
            try:
                result = action()
                logger.info(f"Erasure step {step.value} complete for subject {subject_id}")
                return StepOutcome.COMPLETED, result
            except NotFound:
                logger.info(f"Erasure step {step.value}: nothing to delete for subject {subject_id}")
                return StepOutcome.NOT_FOUND, None
            except StorageError as e:
                if attempt < self.retry_attempts:
                    delay = self.retry_base_delay * (2 ** (attempt - 1))
                    logger.warning(
                        f"Erasure step {step.value} failed for subject {subject_id} "
                        f"(attempt {attempt}/{self.retry_attempts}), retrying in {delay:.2f}s: {e}"
                    )
                    self.sleep(delay)
                    continue
                logger.error(f"Erasure step {step.value} failed for subject {subject_id}: {e}")
                return StepOutcome.FAILED, None
            except Exception as e:
                logger.error(f"Erasure step {step.value} failed for subject {subject_id}: {e}")
                return StepOutcome.FAILED, None
        return StepOutcome.FAILED, None
