"""
User directory used by the auth flows.

Only the lookups and writes the authentication core needs: case-insensitive username
lookup, lookup by wallet address or id, creation at sign-up and field updates (password
reset). Every call opens its own ORM session and runs on the thread pool so the event
loop is free while the database works.

Usernames are matched on their case-folded key and wallet addresses are stored
lower-cased, so both uniqueness constraints ignore case. Duplicates raise
DuplicateKeyError so callers can tell them apart from other persistence failures.
"""

import logging
from typing import Any, Dict, Optional, Protocol

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from app.core.errors import DuplicateKeyError
from app.models.users import User
from app.schemas.user import UserRecord, normalize_address, username_key

logger = logging.getLogger(__name__)


class UserDirectory(Protocol):
    async def find_by_username(self, username: str) -> Optional[UserRecord]: ...

    async def find_by_sign_address(self, sign_address: str) -> Optional[UserRecord]: ...

    async def find_by_id(self, user_id: str) -> Optional[UserRecord]: ...

    async def create(self, fields: Dict[str, Any]) -> UserRecord: ...

    async def update(self, user_id: str, fields: Dict[str, Any]) -> Optional[UserRecord]: ...


def _to_record(user: Optional[User]) -> Optional[UserRecord]:
    return UserRecord.model_validate(user) if user is not None else None


def _normalized(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Derive the stored identity columns: username_key from username, lower-cased sign_address."""
    fields = dict(fields)
    if "username" in fields:
        fields["username_key"] = username_key(fields["username"])
    if "sign_address" in fields:
        fields["sign_address"] = normalize_address(fields["sign_address"])
    return fields


class SqlUserDirectory:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    # sync implementations, run on the thread pool

    def _find_by_username(self, username: str) -> Optional[UserRecord]:
        # exact match on the case-folded key, never LIKE / substring
        with self._session_factory() as db:
            user = db.query(User).filter(User.username_key == username_key(username)).first()
            return _to_record(user)

    def _find_by_sign_address(self, sign_address: str) -> Optional[UserRecord]:
        with self._session_factory() as db:
            user = db.query(User).filter(User.sign_address == normalize_address(sign_address)).first()
            return _to_record(user)

    def _find_by_id(self, user_id: str) -> Optional[UserRecord]:
        with self._session_factory() as db:
            return _to_record(db.get(User, user_id))

    def _create(self, fields: Dict[str, Any]) -> UserRecord:
        with self._session_factory() as db:
            user = User(**_normalized(fields))
            db.add(user)
            self._commit(db)
            db.refresh(user)
            return _to_record(user)

    def _update(self, user_id: str, fields: Dict[str, Any]) -> Optional[UserRecord]:
        with self._session_factory() as db:
            user = db.get(User, user_id)
            if user is None:
                return None
            for key, value in _normalized(fields).items():
                setattr(user, key, value)
            self._commit(db)
            db.refresh(user)
            return _to_record(user)

    @staticmethod
    def _commit(db: Session) -> None:
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.info("User write hit a unique constraint: %s", e.orig)
            raise DuplicateKeyError(str(e.orig)) from e

    # async interface

    async def find_by_username(self, username: str) -> Optional[UserRecord]:
        return await run_in_threadpool(self._find_by_username, username)

    async def find_by_sign_address(self, sign_address: str) -> Optional[UserRecord]:
        return await run_in_threadpool(self._find_by_sign_address, sign_address)

    async def find_by_id(self, user_id: str) -> Optional[UserRecord]:
        return await run_in_threadpool(self._find_by_id, user_id)

    async def create(self, fields: Dict[str, Any]) -> UserRecord:
        return await run_in_threadpool(self._create, fields)

    async def update(self, user_id: str, fields: Dict[str, Any]) -> Optional[UserRecord]:
        return await run_in_threadpool(self._update, user_id, fields)
