# Overview: Signing and verification of access/refresh credentials (PyJWT, HS256).

"""
Credential Signing Service

Both tokens embed the same identity claims:

    sub   principal id (string, as PyJWT requires)
    kind  "employee" | "customer"
    role  staff role, absent for customers
    bid   branch id (tenant scope), absent for super-admin
    sid   session id; the handle that makes the token revocable
    typ   "access" | "refresh"

WHY typ: a refresh token must never be accepted as a bearer credential and
vice versa, even though both are signed with the same key.

SECURITY: every verification failure (expired, malformed, bad signature,
wrong typ) collapses to one UnauthorizedError so callers cannot tell them
apart.
"""

from __future__ import annotations

from datetime import timedelta

import jwt
from flask import current_app

from ..errors import UnauthorizedError
from wellpos.time_utils import utcnow, as_aware

TOKEN_ACCESS = "access"
TOKEN_REFRESH = "refresh"


def _secret() -> str:
    return current_app.config["JWT_SECRET_KEY"]


def _algorithm() -> str:
    return current_app.config.get("JWT_ALGORITHM", "HS256")


def _encode(claims: dict, token_type: str, ttl_seconds: int) -> str:
    now = as_aware(utcnow())
    payload = dict(claims)
    payload.update({
        "typ": token_type,
        "iat": now,
        "exp": now + timedelta(seconds=ttl_seconds),
    })
    return jwt.encode(payload, _secret(), algorithm=_algorithm())


def build_claims(
    principal_id: int,
    principal_kind: str,
    session_id: str,
    role: str | None = None,
    branch_id: int | None = None,
) -> dict:
    claims = {"sub": str(principal_id), "kind": principal_kind, "sid": session_id}
    if role is not None:
        claims["role"] = role
    if branch_id is not None:
        claims["bid"] = branch_id
    return claims


def issue_token_pair(claims: dict, refresh_ttl_seconds: int) -> dict:
    """
    Sign an access/refresh pair for one session.

    Access lifetime is the same for every principal kind (ACCESS_TOKEN_TTL_SECONDS);
    refresh lifetime equals the session lifetime passed in.
    """
    access_ttl = int(current_app.config["ACCESS_TOKEN_TTL_SECONDS"])
    return {
        "access_token": _encode(claims, TOKEN_ACCESS, access_ttl),
        "refresh_token": _encode(claims, TOKEN_REFRESH, refresh_ttl_seconds),
        "token_type": "Bearer",
        "expires_in": access_ttl,
    }


def decode_token(token: str, expected_type: str) -> dict:
    """Verify signature, expiry and token type. Raises UnauthorizedError."""
    if not token:
        raise UnauthorizedError("Invalid token")
    try:
        claims = jwt.decode(
            token,
            _secret(),
            algorithms=[_algorithm()],
            options={"require": ["exp", "sub", "sid", "typ"]},
        )
    except jwt.PyJWTError:
        raise UnauthorizedError("Invalid token")

    if claims.get("typ") != expected_type:
        raise UnauthorizedError("Invalid token")
    try:
        claims["sub"] = int(claims["sub"])
    except (TypeError, ValueError):
        raise UnauthorizedError("Invalid token")
    return claims
