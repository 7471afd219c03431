"""
Error mapping shared by the routers.
"""
import logging

from fastapi import HTTPException, status

from ..errors import (
    AttestationEngineError,
    InvalidPayload,
    InvalidSubjectId,
    MalformedCredential,
    NotFound,
    StorageError,
    VerificationRefused,
)

logger = logging.getLogger(__name__)


def http_error(e: AttestationEngineError) -> HTTPException:
    """HTTPException for an engine error."""
    if isinstance(e, NotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{e.resource} not found")
    if isinstance(e, VerificationRefused):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail={"reason": e.reason, "message": str(e)})
    if isinstance(e, (InvalidSubjectId, InvalidPayload)):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    if isinstance(e, StorageError):
        logger.error(f"Storage failure: {e}")
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Storage unavailable")
    if isinstance(e, MalformedCredential):
        logger.error(f"Unreadable stored credential: {e}")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error")


def forbidden() -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not the owner of this subject")
