# PURPOSE: resolve the calling owner from a Bearer JWT.
# Tokens are issued by an external identity service; `sub` carries the owner UUID.
# create_access_token() exists for local tooling and tests.

from datetime import datetime, timedelta, timezone
from typing import Any, Dict
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from .config import settings

bearer_scheme = HTTPBearer(auto_error=False)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def create_access_token(owner_id: UUID, *, extra: Dict[str, Any] | None = None) -> str:
    """Sign a short-lived token for `owner_id` (dev/test helper)."""
    payload: Dict[str, Any] = {**(extra or {}), "sub": str(owner_id)}
    payload["exp"] = _now_utc() + timedelta(minutes=settings.JWT_EXPIRE_MIN)
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_owner_id(token: str) -> UUID | None:
    """Return the owner UUID from a valid token, or None if invalid/expired."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
    subject = payload.get("sub")
    if not subject:
        return None
    try:
        return UUID(str(subject))
    except ValueError:
        return None


def get_current_owner(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),  # noqa: B008
) -> UUID:
    """Owner from the Bearer token; without a token fall back to the bootstrap dev owner."""
    cred_error = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        dev_owner = getattr(request.app.state, "dev_owner_id", None)
        if dev_owner is None:
            raise cred_error
        return dev_owner

    owner_id = decode_owner_id(credentials.credentials)
    if owner_id is None:
        raise cred_error
    return owner_id
