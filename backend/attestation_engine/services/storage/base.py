"""
Shared session handling for store adapters.

Adapters translate SQLAlchemy failures into StorageError and roll the
session back so the next caller starts clean. NotFound passes through as-is.
Every write commits its own transaction; the stores are independent.
"""

from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...errors import StorageError


class SessionStore:
    """Base class for adapters over a request-scoped Session."""

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _guard(self, action: str):
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError(f"Failed to {action}: {e}") from e
