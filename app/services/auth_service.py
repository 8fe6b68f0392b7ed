"""
Session rotation protocol: sign-up, sign-in, refresh, logout and password reset.

Per (user, device, platform) key a session goes NONE -> ACTIVE (record stored) ->
REVOKED (record deleted). Sign-up and sign-in upsert the device-less key, refresh writes
a fresh row for the caller's device, logout deletes the caller's exact key.

Concurrency notes:
- every directory/store call and every bcrypt call is an await point running on the
  thread pool, so one slow hash does not hold up other requests
- two concurrent sign-ins for the same user race on the device-less key, the last write
  wins
- two concurrent refreshes with the same refresh token can both pass the lookup before
  either writes, so both succeed and mint independent pairs
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from app.core import jwt_utils
from app.core.config import settings
from app.core.errors import AuthError, DuplicateKeyError, ErrorKind
from app.core.passwords import hash_password_async, verify_password_async
from app.core.wallet_auth import (
    ChallengeMessage,
    build_challenge,
    trust_domain,
    verify_challenge_signature,
)
from app.schemas.auth import (
    AuthPayload,
    AuthResponse,
    ChallengeInfo,
    ChallengePayload,
    ChallengeResponse,
    IdentityContext,
    RefreshTokenRequest,
    ResetPasswordRequest,
    SignInRequest,
    SignUpRequest,
    TokenClaims,
    TokenPair,
)
from app.schemas.my_base_model import Message
from app.schemas.user import DEFAULT_STATUS, Role, UserRecord
from app.services.session_store import SessionKey, SessionStore
from app.services.user_directory import UserDirectory

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _same_address(left: Optional[str], right: Optional[str]) -> bool:
    # hex addresses compare case-insensitively (EIP-55 checksum casing is cosmetic)
    if left is None or right is None:
        return left is None and right is None
    return left.strip().lower() == right.strip().lower()


def claims_for(user: UserRecord, device_id: Optional[str] = None, platform: Optional[str] = None) -> TokenClaims:
    return TokenClaims(
        user_id=user.id,
        role=user.roles,
        status=user.status,
        sign_address=user.sign_address,
        device_id=device_id,
        platform=platform,
    )


class AuthService:
    def __init__(
        self,
        users: UserDirectory,
        sessions: SessionStore,
        *,
        frontend_url: Optional[str] = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.users = users
        self.sessions = sessions
        self.domain, self.origin = trust_domain(frontend_url)
        self.clock = clock

    # ------------------------------------------------------------------
    # wallet challenge
    # ------------------------------------------------------------------

    def current_challenge(self, address: str) -> ChallengeMessage:
        return build_challenge(address, domain=self.domain, uri=self.origin, now=self.clock())

    def challenge(self, address: str) -> ChallengeResponse:
        message = self.current_challenge(address)
        return ChallengeResponse(
            status=200,
            payload=ChallengePayload(
                message=message.prepare_message(),
                challenge=ChallengeInfo(
                    domain=message.domain,
                    address=message.address,
                    statement=message.statement,
                    uri=message.uri,
                    version=message.version,
                    chain_id=message.chain_id,
                    nonce=message.nonce,
                    issued_at=message.issued_at,
                ),
            ),
        )

    # ------------------------------------------------------------------
    # sign-up
    # ------------------------------------------------------------------

    async def sign_up(self, data: SignUpRequest) -> AuthResponse:
        if await self.users.find_by_username(data.username) is not None:
            raise AuthError(ErrorKind.ALREADY_EXISTS)
        if data.sign_address and await self.users.find_by_sign_address(data.sign_address) is not None:
            raise AuthError(ErrorKind.ALREADY_EXISTS)

        fields = {
            "username": data.username,
            "sign_address": data.sign_address,
            "password": await hash_password_async(data.password) if data.password else None,
            "role": [Role.MEMBER.value],
            "status": DEFAULT_STATUS,
        }
        try:
            user = await self.users.create(fields)
        except DuplicateKeyError:
            # lost a race against another sign-up with the same username or address
            raise AuthError(ErrorKind.ALREADY_EXISTS)
        except Exception:
            logger.exception("User creation failed for username %s", data.username)
            raise AuthError(ErrorKind.CREATION_FAILED)

        auth = jwt_utils.issue_token_pair(claims_for(user))
        await self.sessions.upsert_by_key(SessionKey(user_id=user.id), auth.refresh_token, None)

        logger.info("User signed up: %s", user.id)
        return AuthResponse(status=201, payload=AuthPayload(auth=auth, user=user.public()))

    # ------------------------------------------------------------------
    # sign-in
    # ------------------------------------------------------------------

    async def sign_in(self, data: SignInRequest, ip_address: Optional[str] = None) -> AuthResponse:
        user = await self.users.find_by_username(data.username)
        if user is None:
            raise AuthError(ErrorKind.INVALID_CREDENTIALS)

        # a bound wallet must be the one presented, whatever the password says
        if user.sign_address and not _same_address(user.sign_address, data.sign_address):
            logger.info("Sign-in address mismatch for user %s", user.id)
            raise AuthError(ErrorKind.ADDRESS_MISMATCH)

        if data.password is None and not data.signed_sig:
            raise AuthError(ErrorKind.INVALID_CREDENTIALS)

        if data.password is not None:
            if not await verify_password_async(data.password, user.password or ""):
                logger.info("Failed password sign-in for user %s", user.id)
                raise AuthError(ErrorKind.INVALID_CREDENTIALS)

        if data.signed_sig:
            # signature alone only proves wallet ownership; it logs in only an account
            # bound to that wallet
            if data.password is None and not user.sign_address:
                raise AuthError(ErrorKind.INVALID_CREDENTIALS)
            if not data.sign_address:
                raise AuthError(ErrorKind.SIGNATURE_INVALID)
            message = self.current_challenge(data.sign_address)
            if not verify_challenge_signature(message, data.signed_sig, domain=self.domain):
                logger.info("Failed wallet sign-in for user %s", user.id)
                raise AuthError(ErrorKind.SIGNATURE_INVALID)

        auth = await self._set_auth(user, ip_address)
        logger.info("User signed in: %s", user.id)
        return AuthResponse(status=200, payload=AuthPayload(auth=auth, user=user.public()))

    async def _set_auth(self, user: UserRecord, ip_address: Optional[str]) -> TokenPair:
        auth = jwt_utils.issue_token_pair(claims_for(user))
        await self.sessions.upsert_by_key(SessionKey(user_id=user.id), auth.refresh_token, ip_address)
        return auth

    # ------------------------------------------------------------------
    # refresh
    # ------------------------------------------------------------------

    async def refresh(self, data: RefreshTokenRequest) -> AuthResponse:
        session = await self.sessions.find_by_refresh_token(data.refresh_token)
        if session is None:
            raise AuthError(ErrorKind.REFRESH_TOKEN_INVALID)

        # device binding is checked before validity so a mismatch is always FORBIDDEN
        presented = jwt_utils.read_unverified_claims(data.refresh_token)
        if data.device_id != presented.get("deviceId"):
            logger.info("Refresh device mismatch for user %s", session.user_id)
            raise AuthError(ErrorKind.FORBIDDEN)

        jwt_utils.verify_refresh_token(data.refresh_token)

        user = await self.users.find_by_id(session.user_id)
        if user is None:
            raise AuthError(ErrorKind.USER_NOT_FOUND)

        auth = jwt_utils.issue_token_pair(claims_for(user, data.device_id, data.platform))
        stored_token = (
            data.refresh_token if settings.SESSION_STORE_PRESENTED_REFRESH_TOKEN else auth.refresh_token
        )
        try:
            await self.sessions.insert(
                SessionKey.for_device(user.id, data.device_id, data.platform), stored_token, None
            )
        except DuplicateKeyError:
            raise AuthError(ErrorKind.CONFLICT)

        logger.info("Tokens refreshed for user %s", user.id)
        return AuthResponse(status=201, payload=AuthPayload(auth=auth, user=user.public()))

    # ------------------------------------------------------------------
    # logout
    # ------------------------------------------------------------------

    async def logout(self, device_id: Optional[str], identity: IdentityContext) -> Message:
        if device_id != identity.device_id:
            raise AuthError(ErrorKind.UNAUTHORIZED)

        deleted = await self.sessions.delete_by_key(
            SessionKey.for_device(identity.user_id, identity.device_id, identity.platform)
        )
        logger.info("User %s logged out, %s session(s) removed", identity.user_id, deleted)
        return Message(status=200, message="Success")

    # ------------------------------------------------------------------
    # reset password
    # ------------------------------------------------------------------

    async def reset_password(self, user_id: str, data: ResetPasswordRequest) -> Message:
        user = await self.users.find_by_id(user_id)
        if user is None:
            raise AuthError(ErrorKind.USER_NOT_FOUND)

        if not await verify_password_async(data.old_password, user.password or ""):
            raise AuthError(ErrorKind.UNAUTHORIZED)

        hashed = await hash_password_async(data.new_password)
        await self.users.update(user.id, {"password": hashed})

        logger.info("Password updated for user %s", user.id)
        return Message(status=200, message="Password updated successfully")
