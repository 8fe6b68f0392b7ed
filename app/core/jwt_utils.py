"""
JWT Token Utilities

This module mints and reads the access/refresh token pair handed out by the auth flows
(sign-up, sign-in, refresh). It never touches the session store; persisting the refresh
token is the caller's job.

Flow:
1. A credential is verified -> issue_token_pair() mints both tokens from a TokenClaims
2. Protected endpoints read the access token -> decode_access_token() (see dependencies.py)
3. /auth/refresh-token reads the refresh token -> read_unverified_claims() for the device
   binding check, then verify_refresh_token() for signature and expiry

Each token contains:
- userId, role (comma-joined role tags), status, signAddress
- deviceId / platform when the session is bound to a device
- type: "access" or "refresh"
- jti: unique token id, so two pairs minted in the same second still differ
- iat / exp: issued at and expiration timestamps

Access and refresh tokens are signed with independent secrets.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt

from app.core.config import settings
from app.core.errors import AuthError, ErrorKind
from app.schemas.auth import TokenClaims, TokenPair

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


if not settings.ACCESS_TOKEN_SECRET:
    raise RuntimeError("ACCESS_TOKEN_SECRET is not configured")
if not settings.REFRESH_TOKEN_SECRET:
    raise RuntimeError("REFRESH_TOKEN_SECRET is not configured")


def _encode(claims: TokenClaims, token_type: str, secret: str, expire_seconds: int) -> str:
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = claims.to_payload()
    payload.update({
        "type": token_type,
        "jti": uuid.uuid4().hex,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expire_seconds)).timestamp()),
    })
    return jwt.encode(payload, secret, algorithm=settings.ENCODE_ALGORITHM)


def issue_token_pair(claims: TokenClaims) -> TokenPair:
    """
    Mint an access/refresh token pair for a claim set.

    Args:
        claims: Identity, roles, status and optional device binding to embed

    Returns:
        TokenPair with both compact JWT strings

    Raises:
        ValueError: If claims.user_id is empty
    """
    if not claims.user_id:
        raise ValueError("user_id is required")

    return TokenPair(
        access_token=_encode(
            claims, ACCESS_TOKEN_TYPE, settings.ACCESS_TOKEN_SECRET, settings.ACCESS_TOKEN_EXPIRE_SECONDS
        ),
        refresh_token=_encode(
            claims, REFRESH_TOKEN_TYPE, settings.REFRESH_TOKEN_SECRET, settings.REFRESH_TOKEN_EXPIRE_SECONDS
        ),
    )


def _decode(token: str, secret: str, token_type: str) -> TokenClaims:
    if not token:
        raise AuthError(ErrorKind.UNAUTHORIZED, "Missing token")

    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[settings.ENCODE_ALGORITHM],
            options={"require": ["exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthError(ErrorKind.UNAUTHORIZED, "Token expired")
    except jwt.InvalidTokenError:
        raise AuthError(ErrorKind.UNAUTHORIZED, "Invalid token")

    if payload.get("type") != token_type or "userId" not in payload:
        raise AuthError(ErrorKind.UNAUTHORIZED, "Invalid token payload")

    try:
        return TokenClaims.from_payload(payload)
    except ValueError:
        raise AuthError(ErrorKind.UNAUTHORIZED, "Invalid token payload")


def decode_access_token(token: str) -> TokenClaims:
    """
    Verify and decode an access token (signature, expiry, type).

    Raises:
        AuthError UNAUTHORIZED: If the token is missing, expired, invalid or malformed
    """
    return _decode(token, settings.ACCESS_TOKEN_SECRET, ACCESS_TOKEN_TYPE)


def verify_refresh_token(token: str) -> TokenClaims:
    """
    Verify and decode a refresh token (signature, expiry, type).

    Raises:
        AuthError UNAUTHORIZED: If the token is expired, invalid or malformed
    """
    return _decode(token, settings.REFRESH_TOKEN_SECRET, REFRESH_TOKEN_TYPE)


def read_unverified_claims(token: str) -> Dict[str, Any]:
    """
    Read a token's payload without checking signature or expiry.

    Only for checks that must give the same answer whether or not the token is still
    valid (the refresh device binding). Never use the result to authenticate.
    """
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError:
        raise AuthError(ErrorKind.UNAUTHORIZED, "Invalid token")
