"""
Subject Secret Store

Insert-only storage of encrypted identity attributes and credential bundles,
one row per subject.
"""

from typing import Optional
from uuid import uuid4

from ...errors import NotFound
from ...models.db_models import SubjectSecretDB
from .base import SessionStore


class SubjectSecretStore(SessionStore):
    """CRUD over subject_secrets, keyed by subject id."""

    def create(
        self,
        subject_id: str,
        encrypted_identity_attributes: str,
        encrypted_credential_bundle: str,
        key_id: str,
        session_ref: Optional[str] = None,
    ) -> SubjectSecretDB:
        """
        Store the encrypted secrets of a newly verified subject.

        A second record for the same subject violates the unique constraint
        and surfaces as StorageError.
        """
        with self._guard("create subject secrets"):
            record = SubjectSecretDB(
                id=str(uuid4()),
                subject_id=subject_id,
                encrypted_identity_attributes=encrypted_identity_attributes,
                encrypted_credential_bundle=encrypted_credential_bundle,
                encryption_key_id=key_id,
                verification_session_ref=session_ref,
            )
            self.db.add(record)
            self.db.commit()
        return record

    def get(self, subject_id: str) -> SubjectSecretDB:
        with self._guard("get subject secrets"):
            record = self.db.query(SubjectSecretDB).filter(
                SubjectSecretDB.subject_id == subject_id
            ).first()
        if record is None:
            raise NotFound("subject_secrets", subject_id)
        return record

    def delete(self, subject_id: str) -> None:
        """Remove the subject's secrets. NotFound when nothing matched."""
        with self._guard("delete subject secrets"):
            deleted = self.db.query(SubjectSecretDB).filter(
                SubjectSecretDB.subject_id == subject_id
            ).delete(synchronize_session=False)
            self.db.commit()
        if not deleted:
            raise NotFound("subject_secrets", subject_id)
