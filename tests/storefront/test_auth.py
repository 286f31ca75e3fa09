"""Tests for bearer token verification and the admin guard."""

from __future__ import annotations

import jwt
import pytest
from fastapi import HTTPException, status

from storefront.auth import (
    AuthenticatedUser,
    _extract_bearer_token,
    build_access_token,
    decode_access_token,
    require_admin,
)
from storefront.settings import AppSettings


@pytest.fixture
def auth_settings() -> AppSettings:
    return AppSettings(jwt_secret="test-secret", jwt_algorithm="HS256")


def test_round_trip_preserves_subject_and_role(auth_settings: AppSettings) -> None:
    token = build_access_token(user_id="user-1", role="admin", settings=auth_settings)

    user = decode_access_token(token, auth_settings)

    assert user == AuthenticatedUser(user_id="user-1", role="admin")
    assert user.is_admin


@pytest.mark.parametrize(
    "header",
    [None, "", "Bearer", "Token abc", "Bearer   "],
)
def test_malformed_authorization_header_is_unauthorized(header: str | None) -> None:
    with pytest.raises(HTTPException) as excinfo:
        _extract_bearer_token(header)

    assert excinfo.value.status_code == status.HTTP_401_UNAUTHORIZED
    assert excinfo.value.headers == {"WWW-Authenticate": "Bearer"}


def test_bearer_scheme_is_case_insensitive() -> None:
    assert _extract_bearer_token("bearer abc.def") == "abc.def"


def test_expired_token_is_rejected(auth_settings: AppSettings) -> None:
    token = build_access_token(user_id="user-1", expires_in_seconds=-5, settings=auth_settings)

    with pytest.raises(HTTPException) as excinfo:
        decode_access_token(token, auth_settings)

    assert excinfo.value.status_code == status.HTTP_401_UNAUTHORIZED
    assert "expired" in excinfo.value.detail


def test_token_signed_with_other_secret_is_rejected(auth_settings: AppSettings) -> None:
    foreign = build_access_token(
        user_id="user-1", role="admin", settings=AppSettings(jwt_secret="someone-else")
    )

    with pytest.raises(HTTPException) as excinfo:
        decode_access_token(foreign, auth_settings)

    assert excinfo.value.detail == "Unauthorized - Invalid access token"


def test_refresh_tokens_are_not_access_tokens(auth_settings: AppSettings) -> None:
    token = jwt.encode(
        {"sub": "user-1", "role": "admin", "type": "refresh"},
        auth_settings.jwt_secret,
        algorithm=auth_settings.jwt_algorithm,
    )

    with pytest.raises(HTTPException):
        decode_access_token(token, auth_settings)


@pytest.mark.asyncio
async def test_require_admin_rejects_customers() -> None:
    with pytest.raises(HTTPException) as excinfo:
        await require_admin(AuthenticatedUser(user_id="user-2", role="customer"))

    assert excinfo.value.status_code == status.HTTP_403_FORBIDDEN
    assert excinfo.value.detail == "Access denied - Admin only"


@pytest.mark.asyncio
async def test_require_admin_passes_admins_through() -> None:
    admin = AuthenticatedUser(user_id="user-3", role="admin")

    assert await require_admin(admin) is admin
