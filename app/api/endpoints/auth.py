from typing import List, Optional

from fastapi import Depends, Query, status

from app.core.dependencies import get_auth_service, get_client_ip, get_identity
from app.core.router_decorated import APIRouter
from app.schemas.auth import (
    AuthResponse,
    ChallengeResponse,
    IdentityContext,
    LogoutRequest,
    RefreshTokenRequest,
    ResetPasswordRequest,
    SignInRequest,
    SignUpRequest,
)
from app.schemas.my_base_model import Message
from app.services.auth_service import AuthService

router = APIRouter()
group_tags: List[str] = ["Auth"]


@router.get(
    "/challenge",
    tags=group_tags,
    response_model=ChallengeResponse,
    status_code=status.HTTP_200_OK,
)
async def get_challenge(
    address: str = Query(..., min_length=1, description="Wallet address that will sign the message"),
    service: AuthService = Depends(get_auth_service),
) -> ChallengeResponse:
    """Message the wallet has to sign for sign-in, valid until the end of the current hour."""
    return service.challenge(address.strip())


@router.post(
    "/sign-up",
    tags=group_tags,
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
)
async def sign_up(
    body: SignUpRequest,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Create an account with a username and optional password / wallet address."""
    return await service.sign_up(body)


@router.post(
    "/sign-in",
    tags=group_tags,
    response_model=AuthResponse,
    status_code=status.HTTP_200_OK,
)
async def sign_in(
    body: SignInRequest,
    ip_address: Optional[str] = Depends(get_client_ip),
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """
    Sign in with a password, a wallet signature of the current challenge, or both.
    Replaces the user's device-less session.
    """
    return await service.sign_in(body, ip_address)


@router.post(
    "/refresh-token",
    tags=group_tags,
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
)
async def refresh_token(
    body: RefreshTokenRequest,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Exchange a stored refresh token for a new token pair bound to the caller's device."""
    return await service.refresh(body)


@router.post(
    "/logout",
    tags=group_tags,
    response_model=Message,
    status_code=status.HTTP_200_OK,
)
async def logout(
    body: LogoutRequest,
    identity: IdentityContext = Depends(get_identity),
    service: AuthService = Depends(get_auth_service),
) -> Message:
    return await service.logout(body.device_id, identity)


@router.post(
    "/reset-password",
    tags=group_tags,
    response_model=Message,
    status_code=status.HTTP_200_OK,
)
async def reset_password(
    body: ResetPasswordRequest,
    identity: IdentityContext = Depends(get_identity),
    service: AuthService = Depends(get_auth_service),
) -> Message:
    """Change the password of the signed-in user. Existing sessions stay valid."""
    return await service.reset_password(identity.user_id, body)
