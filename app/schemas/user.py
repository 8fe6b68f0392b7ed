from datetime import datetime
from enum import Enum
from typing import FrozenSet, List, Optional

from pydantic import Field, field_validator

from app.schemas.my_base_model import CustomBaseModel


class Role(str, Enum):
    MEMBER = "member"
    ADMIN = "admin"


DEFAULT_STATUS = "active"


def username_key(username: str) -> str:
    """Uniqueness key of a username: full Unicode case folding, so "Émile" and "ÉMILE" collide."""
    return username.casefold()


def normalize_address(address: Optional[str]) -> Optional[str]:
    """Stored form of a wallet address. Hex addresses are case-insensitive (EIP-55 casing is cosmetic)."""
    if address is None:
        return None
    return address.strip().lower() or None


class UserPublic(CustomBaseModel):
    """User as returned to clients, never carries the password hash"""

    id: str
    username: str
    sign_address: Optional[str] = None
    role: List[Role] = []
    status: str = DEFAULT_STATUS
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserRecord(UserPublic):
    """User as read from the user directory, including the stored password hash"""

    password: Optional[str] = Field(default=None, exclude=True)

    @field_validator("role", mode="before")
    @classmethod
    def _roles_from_storage(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [part for part in value.split(",") if part]
        return value

    @property
    def roles(self) -> FrozenSet[Role]:
        return frozenset(self.role)

    def public(self) -> UserPublic:
        return UserPublic.model_validate(self.model_dump(exclude={"password"}))
