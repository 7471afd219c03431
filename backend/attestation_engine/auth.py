"""
Attestation Engine 1.0 - Authentication Utilities
JWT tokens and auth dependencies.

Identities are issued by an external auth provider; the token subject ("sub")
is the provider's auth id, which accounts reference via auth_id.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from .config import Settings
from .database import get_db
from .errors import NotFound, StorageError
from .models.db_models import CounterpartyAccountDB
from .services.storage import CounterpartyAccountStore

ACCESS_TOKEN_EXPIRE_HOURS = 24

ROLE_SUBJECT = "subject"
ROLE_COUNTERPARTY = "counterparty"

# Bearer token security
security = HTTPBearer()


def create_access_token(settings: Settings, auth_id: str, role: str = ROLE_SUBJECT) -> str:
    """Create a JWT access token with role claim."""
    expire = datetime.now(timezone.utc) + timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS)
    to_encode = {
        "sub": auth_id,
        "role": role,
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(settings: Settings, token: str) -> Optional[dict]:
    """Decode and validate a JWT token. Expired or tampered tokens give None."""
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_current_auth_id(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    settings: Settings = Depends(get_settings),
) -> str:
    """
    Dependency returning the authenticated caller's auth id.
    Validates the JWT; ownership of resources is checked per route.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_token(settings, credentials.credentials)
    if payload is None:
        raise credentials_exception

    auth_id: str = payload.get("sub")
    if auth_id is None:
        raise credentials_exception

    return auth_id


async def get_current_counterparty(
    auth_id: str = Depends(get_current_auth_id),
    db: Session = Depends(get_db),
) -> CounterpartyAccountDB:
    """
    Dependency resolving the caller's counterparty account.
    Use this on counterparty-only routes.
    """
    try:
        return CounterpartyAccountStore(db).get_by_auth(auth_id)
    except NotFound:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Counterparty access required"
        )
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
