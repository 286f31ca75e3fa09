"""Bearer token guards for admin-only routes.

Access tokens are issued by the identity service; this API only verifies the
signature and reads the ``sub`` and ``role`` claims.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

import jwt
from fastapi import Depends, Header, HTTPException, status

from storefront.settings import AppSettings, get_settings

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class AuthenticatedUser:
    user_id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _extract_bearer_token(authorization: str | None) -> str:
    raw = (authorization or "").strip()
    if not raw:
        raise _unauthorized("Unauthorized - No access token provided")

    parts = raw.split(" ", 1)
    if len(parts) != 2:
        raise _unauthorized("Invalid Authorization header format.")

    scheme, token = parts[0].strip().lower(), parts[1].strip()
    if scheme != "bearer" or not token:
        raise _unauthorized("Authorization must be: Bearer <token>.")
    return token


def build_access_token(
    *,
    user_id: str,
    role: str = "customer",
    expires_in_seconds: int = 15 * 60,
    settings: AppSettings | None = None,
) -> str:
    """Mint an access token with the claims this API expects."""

    settings = settings or get_settings()
    issued_at = int(time.time())
    payload = {
        "sub": user_id,
        "role": role,
        "type": "access",
        "iat": issued_at,
        "exp": issued_at + expires_in_seconds,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: AppSettings | None = None) -> AuthenticatedUser:
    settings = settings or get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError as exc:
        raise _unauthorized("Unauthorized - Access token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise _unauthorized("Unauthorized - Invalid access token") from exc

    if payload.get("type") != "access" or not payload.get("sub"):
        raise _unauthorized("Unauthorized - Invalid access token")
    return AuthenticatedUser(user_id=str(payload["sub"]), role=str(payload.get("role", "")))


async def get_bearer_token(authorization: str | None = Header(default=None)) -> str:
    return _extract_bearer_token(authorization)


async def get_current_user(
    access_token: str = Depends(get_bearer_token),
    settings: AppSettings = Depends(get_settings),
) -> AuthenticatedUser:
    return decode_access_token(access_token, settings)


async def require_admin(
    user: AuthenticatedUser = Depends(get_current_user),
) -> AuthenticatedUser:
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied - Admin only",
        )
    return user


__all__ = [
    "ADMIN_ROLE",
    "AuthenticatedUser",
    "build_access_token",
    "decode_access_token",
    "get_current_user",
    "require_admin",
]
