import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.my_base_model import CustomBaseModel
from app.schemas.user import Role, UserPublic

PASSWORD_PATTERN = re.compile(r"(?=.*[0-9])(?=.*[a-z])(?=.*[A-Z])[0-9a-zA-Z!@#$%^&*]{6,}")
PASSWORD_MAX_BYTES = 72  # bcrypt input limit


def check_password_policy(value: str) -> str:
    if len(value.encode()) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes")
    if not PASSWORD_PATTERN.fullmatch(value):
        raise ValueError(
            "Password must be at least 6 characters and contain a digit, "
            "a lower-case and an upper-case letter"
        )
    return value


@dataclass(frozen=True)
class TokenClaims:
    """Claim set carried by access and refresh tokens.

    Roles are kept as a set here; they are joined into a single string only when written
    into a token and split again when a token is decoded.
    """

    user_id: str
    role: FrozenSet[Role]
    status: str
    sign_address: Optional[str] = None
    device_id: Optional[str] = None
    platform: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "userId": self.user_id,
            "role": ",".join(sorted(role.value for role in self.role)),
            "status": self.status,
            "signAddress": self.sign_address,
        }
        if self.device_id is not None:
            payload["deviceId"] = self.device_id
        if self.platform is not None:
            payload["platform"] = self.platform
        return payload

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "TokenClaims":
        raw_roles = payload.get("role") or ""
        return cls(
            user_id=str(payload["userId"]),
            role=frozenset(Role(part) for part in raw_roles.split(",") if part),
            status=payload.get("status") or "",
            sign_address=payload.get("signAddress"),
            device_id=payload.get("deviceId"),
            platform=payload.get("platform"),
        )


class IdentityContext(CustomBaseModel):
    """Identity established from a validated access token"""

    user_id: str
    device_id: Optional[str] = None
    platform: Optional[str] = None


# requests

class _CamelRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SignUpRequest(_CamelRequest):
    """Request model for username sign-up - input validation"""

    username: str = Field(..., min_length=1, max_length=64, description="Username, unique regardless of case")
    password: Optional[str] = Field(default=None, description="Plain password")
    sign_address: Optional[str] = Field(default=None, alias="signAddress", description="Wallet address to bind")

    @field_validator("password")
    @classmethod
    def _password_policy(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return check_password_policy(value)


class SignInRequest(_CamelRequest):
    """Request model for sign-in with a password, a wallet signature, or both"""

    username: str = Field(..., min_length=1, max_length=64, description="Username (any case)")
    password: Optional[str] = Field(default=None, description="Plain password")
    sign_address: Optional[str] = Field(default=None, alias="signAddress", description="Wallet address")
    signed_sig: Optional[str] = Field(default=None, alias="signedSig", description="Signature of the challenge message")


class RefreshTokenRequest(_CamelRequest):
    device_id: Optional[str] = Field(default=None, alias="deviceId")
    platform: Optional[str] = Field(default=None)
    refresh_token: str = Field(..., min_length=1, alias="refreshToken")


class LogoutRequest(_CamelRequest):
    device_id: Optional[str] = Field(default=None, alias="deviceId")


class ResetPasswordRequest(_CamelRequest):
    old_password: str = Field(..., min_length=1, alias="oldPassword")
    new_password: str = Field(..., alias="newPassword")

    @field_validator("new_password")
    @classmethod
    def _password_policy(cls, value: str) -> str:
        return check_password_policy(value)


# responses

class TokenPair(CustomBaseModel):
    access_token: str
    refresh_token: str


class AuthPayload(CustomBaseModel):
    auth: TokenPair
    user: UserPublic


class AuthResponse(CustomBaseModel):
    """Response envelope for sign-up, sign-in and refresh"""

    status: int = 200
    payload: AuthPayload


class ChallengeInfo(CustomBaseModel):
    domain: str
    address: str
    statement: str
    uri: str
    version: str
    chain_id: int
    nonce: str
    issued_at: datetime


class ChallengePayload(CustomBaseModel):
    message: str
    challenge: ChallengeInfo


class ChallengeResponse(CustomBaseModel):
    status: int = 200
    payload: ChallengePayload
