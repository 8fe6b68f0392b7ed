"""
Session store: one refresh-token record per (user, device, platform).

Operations:
- upsert_by_key: create or overwrite in place (sign-up / sign-in)
- find_by_refresh_token: lookup by the stored token value, returns only the key
- insert: write a fresh row for a key, replacing any row the key already had (refresh)
- delete_by_key: remove the exact key (logout), returns the number of rows removed

There is no locking. Two writers racing on the same key both succeed and the last write
wins: an upsert that loses the insert race is retried as an update.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from app.core.errors import DuplicateKeyError
from app.models.auth import DEFAULT_DEVICE, DEFAULT_PLATFORM, AuthSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionKey:
    user_id: str
    device_id: str = DEFAULT_DEVICE
    platform: str = DEFAULT_PLATFORM

    @classmethod
    def for_device(cls, user_id: str, device_id: Optional[str], platform: Optional[str]) -> "SessionKey":
        """Key for a possibly device-less flow, missing parts fall back to the sentinels."""
        return cls(user_id=user_id, device_id=device_id or DEFAULT_DEVICE, platform=platform or DEFAULT_PLATFORM)

    def as_filter(self) -> dict:
        return {"user_id": self.user_id, "device_id": self.device_id, "platform": self.platform}


class SessionStore(Protocol):
    async def upsert_by_key(self, key: SessionKey, refresh_token: str, ip_address: Optional[str] = None) -> None: ...

    async def find_by_refresh_token(self, refresh_token: str) -> Optional[SessionKey]: ...

    async def insert(self, key: SessionKey, refresh_token: str, ip_address: Optional[str] = None) -> None: ...

    async def delete_by_key(self, key: SessionKey) -> int: ...


class SqlSessionStore:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def _upsert_by_key(self, key: SessionKey, refresh_token: str, ip_address: Optional[str]) -> None:
        for attempt in range(2):
            with self._session_factory() as db:
                row = db.query(AuthSession).filter_by(**key.as_filter()).first()
                if row is None:
                    db.add(AuthSession(**key.as_filter(), refresh_token=refresh_token, ip_address=ip_address))
                else:
                    row.refresh_token = refresh_token
                    row.ip_address = ip_address
                try:
                    db.commit()
                    return
                except IntegrityError as e:
                    db.rollback()
                    # another writer inserted the key first, overwrite it on the next pass
                    logger.info("Session upsert lost insert race for user %s (attempt %s)", key.user_id, attempt + 1)
                    last_error = e
        raise DuplicateKeyError(str(last_error.orig)) from last_error

    def _find_by_refresh_token(self, refresh_token: str) -> Optional[SessionKey]:
        with self._session_factory() as db:
            row = (
                db.query(AuthSession.user_id, AuthSession.device_id, AuthSession.platform)
                .filter(AuthSession.refresh_token == refresh_token)
                .first()
            )
            if row is None:
                return None
            return SessionKey(user_id=row.user_id, device_id=row.device_id, platform=row.platform)

    def _insert(self, key: SessionKey, refresh_token: str, ip_address: Optional[str]) -> None:
        with self._session_factory() as db:
            db.query(AuthSession).filter_by(**key.as_filter()).delete(synchronize_session=False)
            db.add(AuthSession(**key.as_filter(), refresh_token=refresh_token, ip_address=ip_address))
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                raise DuplicateKeyError(str(e.orig)) from e

    def _delete_by_key(self, key: SessionKey) -> int:
        with self._session_factory() as db:
            deleted = db.query(AuthSession).filter_by(**key.as_filter()).delete(synchronize_session=False)
            db.commit()
            return deleted

    async def upsert_by_key(self, key: SessionKey, refresh_token: str, ip_address: Optional[str] = None) -> None:
        await run_in_threadpool(self._upsert_by_key, key, refresh_token, ip_address)

    async def find_by_refresh_token(self, refresh_token: str) -> Optional[SessionKey]:
        return await run_in_threadpool(self._find_by_refresh_token, refresh_token)

    async def insert(self, key: SessionKey, refresh_token: str, ip_address: Optional[str] = None) -> None:
        await run_in_threadpool(self._insert, key, refresh_token, ip_address)

    async def delete_by_key(self, key: SessionKey) -> int:
        return await run_in_threadpool(self._delete_by_key, key)
