"""
FastAPI Authentication Dependencies
This module provides FastAPI dependency functions that can be injected into route handlers.
Usage in endpoints:
    @router.post("/logout")
    async def logout(identity: IdentityContext = Depends(get_identity)):
        # identity.user_id / device_id / platform come from the bearer access token
        ...
Flow:
1. Client sends request with Authorization: Bearer <token> header
2. FastAPI calls get_identity() dependency
3. _extract_token() extracts token from header
4. decode_access_token() validates the JWT (from jwt_utils.py)
5. Returns the IdentityContext to the route handler
"""

from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import sessionmaker

from app.core.config import settings
from app.core.errors import AuthError, ErrorKind
from app.core.jwt_utils import decode_access_token
from app.db.session import get_session_factory
from app.schemas.auth import IdentityContext
from app.services.auth_service import AuthService
from app.services.session_store import SqlSessionStore
from app.services.user_directory import SqlUserDirectory


def _extract_token(authorization: Optional[str]) -> str:
    """
    Extract JWT token from Authorization header.
    Supports both "Bearer <token>" and plain token formats.
    Raises:
        AuthError UNAUTHORIZED: If Authorization header is missing or invalid
    """
    if not authorization:
        raise AuthError(ErrorKind.UNAUTHORIZED, "Authorization header missing")

    authorization = authorization.strip()
    if authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
    else:
        token = authorization
    if not token:
        raise AuthError(ErrorKind.UNAUTHORIZED, "Invalid authorization header")

    return token


def get_identity(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> IdentityContext:
    """
    Identity of the caller from a valid access token.
    """
    claims = decode_access_token(_extract_token(authorization))
    return IdentityContext(user_id=claims.user_id, device_id=claims.device_id, platform=claims.platform)


def get_auth_service(session_factory: sessionmaker = Depends(get_session_factory)) -> AuthService:
    return AuthService(
        users=SqlUserDirectory(session_factory),
        sessions=SqlSessionStore(session_factory),
    )


def get_client_ip(request: Request) -> Optional[str]:
    """
    Caller IP stored on the session. X-Forwarded-For is client controlled, so its first hop
    is only used when TRUST_PROXY_HEADERS is set.
    """
    if settings.TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None

