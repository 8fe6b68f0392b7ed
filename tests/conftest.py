import asyncio
import os
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Generator, List, Optional

# settings are read at import time, configure them before importing the app
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")
os.environ.setdefault("ACCESS_TOKEN_SECRET", "test-access-secret-0123456789abcdef")
os.environ.setdefault("REFRESH_TOKEN_SECRET", "test-refresh-secret-0123456789abcdef")
os.environ.setdefault("FRONTEND_URL", "https://app.acme.test")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from app.models.auth import AuthSession  # noqa: F401
from app.models.users import User  # noqa: F401
from app.core.dependencies import get_auth_service
from app.core.errors import DuplicateKeyError
from app.db.base import Base
from app.db.session import get_session_factory
from app.schemas.user import UserRecord, normalize_address, username_key
from app.services.auth_service import AuthService
from app.services.session_store import SessionKey, SqlSessionStore
from app.services.user_directory import SqlUserDirectory

FRONTEND_URL = "https://app.acme.test"
# fixed clock for wallet challenges: 10:42:17 UTC -> issuedAt 10:00:00.000Z
FIXED_NOW = datetime(2024, 5, 1, 10, 42, 17, 123000, tzinfo=timezone.utc)
STRONG_PASSWORD = "Abc123!"


# Create in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite://"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture(autouse=True)
def db_tables() -> Generator:
    """Fresh tables for every test"""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory() -> sessionmaker:
    return TestingSessionLocal


def override_get_session_factory() -> sessionmaker:
    """Override database dependency for testing"""
    return TestingSessionLocal


def override_get_auth_service() -> AuthService:
    return AuthService(
        users=SqlUserDirectory(TestingSessionLocal),
        sessions=SqlSessionStore(TestingSessionLocal),
        frontend_url=FRONTEND_URL,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def client() -> TestClient:
    """Create a test client for the FastAPI application"""
    app.dependency_overrides[get_session_factory] = override_get_session_factory
    app.dependency_overrides[get_auth_service] = override_get_auth_service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# in-memory collaborators for protocol level tests
# ---------------------------------------------------------------------------

class InMemoryUserDirectory:
    """Dict backed user directory; yields to the loop on every call like the real one"""

    def __init__(self) -> None:
        self.users: Dict[str, UserRecord] = {}
        self.fail_create_with: Optional[Exception] = None

    async def find_by_username(self, username: str) -> Optional[UserRecord]:
        await asyncio.sleep(0)
        for user in self.users.values():
            if username_key(user.username) == username_key(username):
                return user
        return None

    async def find_by_sign_address(self, sign_address: str) -> Optional[UserRecord]:
        await asyncio.sleep(0)
        for user in self.users.values():
            if user.sign_address is not None and user.sign_address == normalize_address(sign_address):
                return user
        return None

    async def find_by_id(self, user_id: str) -> Optional[UserRecord]:
        await asyncio.sleep(0)
        return self.users.get(user_id)

    async def create(self, fields: Dict[str, Any]) -> UserRecord:
        await asyncio.sleep(0)
        if self.fail_create_with is not None:
            raise self.fail_create_with
        fields = {**fields, "sign_address": normalize_address(fields.get("sign_address"))}
        for user in self.users.values():
            if username_key(user.username) == username_key(fields["username"]):
                raise DuplicateKeyError("username")
            if fields["sign_address"] and user.sign_address == fields["sign_address"]:
                raise DuplicateKeyError("sign_address")
        now = datetime.now(timezone.utc)
        user = UserRecord(id=str(uuid.uuid4()), created_at=now, updated_at=now, **fields)
        self.users[user.id] = user
        return user

    async def update(self, user_id: str, fields: Dict[str, Any]) -> Optional[UserRecord]:
        await asyncio.sleep(0)
        user = self.users.get(user_id)
        if user is None:
            return None
        if "sign_address" in fields:
            fields = {**fields, "sign_address": normalize_address(fields["sign_address"])}
        updated = user.model_copy(update=fields)
        self.users[user_id] = updated
        return updated


class InMemorySessionStore:
    """Dict backed session store keyed by SessionKey, records the order of writes"""

    def __init__(self) -> None:
        self.rows: Dict[SessionKey, Dict[str, Any]] = {}
        self.writes: List[str] = []

    async def upsert_by_key(self, key: SessionKey, refresh_token: str, ip_address: Optional[str] = None) -> None:
        await asyncio.sleep(0)
        self.rows[key] = {"refresh_token": refresh_token, "ip_address": ip_address}
        self.writes.append(refresh_token)

    async def find_by_refresh_token(self, refresh_token: str) -> Optional[SessionKey]:
        await asyncio.sleep(0)
        for key, row in self.rows.items():
            if row["refresh_token"] == refresh_token:
                return key
        return None

    async def insert(self, key: SessionKey, refresh_token: str, ip_address: Optional[str] = None) -> None:
        await asyncio.sleep(0)
        self.rows[key] = {"refresh_token": refresh_token, "ip_address": ip_address}
        self.writes.append(refresh_token)

    async def delete_by_key(self, key: SessionKey) -> int:
        await asyncio.sleep(0)
        return 1 if self.rows.pop(key, None) is not None else 0


@pytest.fixture
def fake_users() -> InMemoryUserDirectory:
    return InMemoryUserDirectory()


@pytest.fixture
def fake_sessions() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def auth_service(fake_users, fake_sessions) -> AuthService:
    return AuthService(fake_users, fake_sessions, frontend_url=FRONTEND_URL, clock=lambda: FIXED_NOW)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def frontend_domain() -> str:
    return "app.acme.test"


@pytest.fixture
def strong_password() -> str:
    return STRONG_PASSWORD
