"""
Error model for the authentication core.

Every failure the auth flows can report is one of the ErrorKind members below. Each kind
carries the HTTP status it surfaces as; the user-facing text comes from the localization
tables (see localization.py) so the same error renders in the caller's language.

Anything that is not an AuthError is unanticipated and is turned into
SOMETHING_WENT_WRONG at the router boundary (router_decorated.py).
"""

from enum import Enum
from typing import Optional

from fastapi import status


class ErrorKind(str, Enum):
    ALREADY_EXISTS = "already_exists"
    CREATION_FAILED = "creation_failed"
    INVALID_CREDENTIALS = "invalid_credentials"
    ADDRESS_MISMATCH = "address_mismatch"
    SIGNATURE_INVALID = "signature_invalid"
    REFRESH_TOKEN_INVALID = "refresh_token_invalid"
    FORBIDDEN = "forbidden"
    UNAUTHORIZED = "unauthorized"
    CONFLICT = "conflict"
    USER_NOT_FOUND = "user_not_found"
    SOMETHING_WENT_WRONG = "something_went_wrong"

    @property
    def http_status(self) -> int:
        return ERROR_STATUS[self]


ERROR_STATUS = {
    ErrorKind.ALREADY_EXISTS: status.HTTP_409_CONFLICT,
    ErrorKind.CREATION_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.ADDRESS_MISMATCH: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.SIGNATURE_INVALID: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.REFRESH_TOKEN_INVALID: status.HTTP_404_NOT_FOUND,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.USER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.SOMETHING_WENT_WRONG: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class AuthError(Exception):
    """Tagged error raised by the auth flows: (kind, http_status, message)."""

    def __init__(self, kind: ErrorKind, message: Optional[str] = None) -> None:
        # imported here, localization imports ErrorKind from this module
        from app.core.localization import format_message

        self.kind = kind
        self.detail = message
        self.message = message or format_message(kind)
        super().__init__(self.message)

    @property
    def http_status(self) -> int:
        return self.kind.http_status

    def localized(self, language: str) -> str:
        """Message in the given language; an explicit message is returned as is."""
        from app.core.localization import format_message

        return self.detail or format_message(self.kind, language)

    def __repr__(self) -> str:
        return f"AuthError(kind={self.kind.value!r}, status={self.http_status})"


class DuplicateKeyError(Exception):
    """A persistence write hit a unique constraint."""
