#!/usr/bin/env python
#
#
# ----------------------------------------------------------------------------
"""
Security utilities
==================
- JWT access token creation/verification
- Viewer permissions carried in the token (``perms`` claim)
- FastAPI dependency resolving the current viewer

Who is granted which permission is decided by whoever issues the tokens; this
module only reads them.
"""
# ----------------------------------------------------------------------------

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt


# -----------------------------------------------------------------------------

from .config import get_settings

# ----------------------------------------------------------------------------
# Permissions
# ----------------------------------------------------------------------------

SEE_IP = "comment.see_ip"
SEE_BANNED_MEDIA = "media.see_banned"
SEE_HIDDEN_MEDIA = "media.see_hidden"

PERMISSIONS = frozenset({SEE_IP, SEE_BANNED_MEDIA, SEE_HIDDEN_MEDIA})


@dataclass(frozen=True)
class Viewer:
    subject: str | None = None
    permissions: frozenset[str] = field(default_factory=frozenset)

    def has_access(self, permission: str) -> bool:
        return permission in self.permissions

    @classmethod
    def anonymous(cls) -> "Viewer":
        return cls()

    @classmethod
    def trusted(cls) -> "Viewer":
        """Internal callers (scripts, workers) that see everything."""
        return cls(subject="system", permissions=PERMISSIONS)


# ----------------------------------------------------------------------------
# JWT tokens
# ----------------------------------------------------------------------------

# tokens are issued elsewhere; this service only reads the Authorization header
_bearer_optional = HTTPBearer(auto_error=False)


# ----------------------------------------------------------------------------

def create_access_token(subject: str | int, permissions: Iterable[str] = (), extra: dict | None = None) -> str:
    s = get_settings()
    expire = datetime.now(tz=timezone.utc) + timedelta(minutes=s.access_token_expire_minutes)
    payload: dict[str, Any] = {
        "sub": str(subject),
        "exp": expire,
        "type": "access",
        "perms": sorted(set(permissions)),
    }
    if extra:
        payload.update(extra)
    return jwt.encode(payload, s.secret_key, algorithm=s.algorithm)


# ----------------------------------------------------------------------------

def decode_token(token: str) -> dict[str, Any]:
    s = get_settings()
    try:
        payload = jwt.decode(token, s.secret_key, algorithms=[s.algorithm])
        if payload.get("sub") is None:
            raise _credentials_error()
        return payload
    except JWTError:
        raise _credentials_error()


# -----------------------------------------------------------------------------

def _credentials_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


# ----------------------------------------------------------------------------

def viewer_from_payload(payload: dict[str, Any]) -> Viewer:
    perms = payload.get("perms") or []
    return Viewer(
        subject=payload["sub"],
        permissions=frozenset(p for p in perms if p in PERMISSIONS),
    )


# ----------------------------------------------------------------------------
# FastAPI dependency
# ----------------------------------------------------------------------------

async def get_viewer(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_optional),
) -> Viewer:
    """Anonymous unless a valid access token is presented."""
    if credentials is None or not credentials.credentials:
        return Viewer.anonymous()
    try:
        payload = decode_token(credentials.credentials)
    except HTTPException:
        return Viewer.anonymous()
    if payload.get("type") != "access":
        return Viewer.anonymous()
    return viewer_from_payload(payload)


# ----------------------------------------------------------------------------
