"""
Shared test fixtures for the UnityLink session test suite.

Every test gets its own in-memory SQLite engine (aiosqlite + StaticPool),
so stored sessions never leak between tests.
"""

import os
import sys
from typing import AsyncGenerator

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["SESSION_DB_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-for-the-session-suite"
os.environ["API_BASE_URL"] = ""
os.environ["CORS_ORIGINS"] = '["*"]'

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine

from unitylink.api.v1.endpoints.auth import limiter
from unitylink.core.exceptions import AuthError
from unitylink.core.security import SecretBox
from unitylink.db.session import build_engine, build_session_factory, create_tables
from unitylink.main import SessionContainer, app, attach_session
from unitylink.services.auth_session import AuthSessionManager
from unitylink.services.remote import MockUserService, RemoteAuthResult
from unitylink.services.role_directory import RoleDirectory
from unitylink.services.storage import SecureSessionStore

MOCK_PASSWORD = "password123"

# Rate limits would trip across tests sharing the same client address
limiter.enabled = False


class FakeUserService:
    """Scripted remote service: returns the configured records or raises."""

    def __init__(self, record: dict | None = None, token: str = "tok-123"):
        self.record = record if record is not None else {"id": "1", "name": "Alice", "role": "board"}
        self.token = token
        self.error: Exception | None = None
        self.logout_error: Exception | None = None
        self.users: list[dict] = []
        self.calls: list[tuple] = []

    async def login(self, credential: str, password: str) -> RemoteAuthResult:
        self.calls.append(("login", credential))
        if self.error is not None:
            raise self.error
        return RemoteAuthResult(self.token, dict(self.record))

    async def register(self, credential: str, password: str, name: str | None = None) -> RemoteAuthResult:
        self.calls.append(("register", credential, name))
        if self.error is not None:
            raise self.error
        return RemoteAuthResult(self.token, {**self.record, "email": credential, "name": name})

    async def logout(self) -> None:
        self.calls.append(("logout",))
        if self.logout_error is not None:
            raise self.logout_error

    async def list_users(self) -> list[dict]:
        return [dict(u) for u in self.users]

    async def update_user_role(self, user_id: str, role: str) -> dict:
        for user in self.users:
            if str(user["id"]) == user_id:
                user["role"] = role
                return dict(user)
        raise AuthError("User not found")


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    test_engine = build_engine("sqlite+aiosqlite:///:memory:")
    await create_tables(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def store(session_factory) -> SecureSessionStore:
    return SecureSessionStore(session_factory, SecretBox())


@pytest.fixture
def fake_service() -> FakeUserService:
    return FakeUserService()


@pytest.fixture
def mock_service() -> MockUserService:
    return MockUserService(MOCK_PASSWORD)


@pytest.fixture
async def manager(fake_service, store) -> AuthSessionManager:
    session_manager = AuthSessionManager(fake_service, store)
    await session_manager.initialize()
    return session_manager


@pytest.fixture
async def async_client(engine, store, mock_service) -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app and the offline user service."""
    session_manager = AuthSessionManager(mock_service, store)
    await session_manager.initialize()
    attach_session(
        app,
        SessionContainer(
            engine=engine,
            store=store,
            service=mock_service,
            manager=session_manager,
            directory=RoleDirectory(mock_service, session_manager),
        ),
    )
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
