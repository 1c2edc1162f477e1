"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

import callsync.calls.models  # noqa: F401
import callsync.notifications.models  # noqa: F401
import callsync.numbers.models  # noqa: F401
from callsync.auth.jwt import JWTService
from callsync.auth.models import User
from callsync.calls.dependencies import get_gateway
from callsync.config import Settings
from callsync.main import create_app
from callsync.numbers.models import PhoneNumber
from callsync.realtime.hub import RealtimePushHub
from callsync.shared.database import DatabaseManager, get_database_manager, get_db_session
from callsync.telephony.config import ProviderType, TelephonyConfig
from callsync.telephony.factory import get_telephony_config
from callsync.telephony.mock_adapter import MockProviderGateway

T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Settable clock passed as ``now_fn``."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeTransport:
    """Stand-in for a WebSocket registered with the push hub."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[str] = []
        self.closed_with: int | None = None
        self.fail = fail

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise ConnectionError("socket is gone")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.closed_with = code


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        app_env="dev",
        debug=True,
        database_url="sqlite+aiosqlite:///:memory:",
        jwt_secret_key="test-secret-key-for-testing-only",
    )


@pytest.fixture
def telephony_config() -> TelephonyConfig:
    return TelephonyConfig(
        provider_type=ProviderType.MOCK,
        telnyx_api_key="KEY_TEST",
        telnyx_connection_id="conn-test-1",
        webhook_base_url="https://dashboard.example.com",
    )


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest_asyncio.fixture
async def db_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Create a file-backed SQLite engine (one connection per session)."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'callsync.db'}", echo=False)

    await DatabaseManager(engine=engine).create_all()

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def database_manager(db_engine: AsyncEngine) -> DatabaseManager:
    return DatabaseManager(database_url="sqlite+aiosqlite://", engine=db_engine)


async def _add_user(session: AsyncSession, email: str) -> User:
    user = User(id=uuid4(), email=email, name=email.split("@")[0])
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    return await _add_user(db_session, "owner@example.com")


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await _add_user(db_session, "other@example.com")


@pytest_asyncio.fixture
async def voice_number(db_session: AsyncSession, test_user: User) -> PhoneNumber:
    """A number owned by test_user with voice enabled."""
    number = PhoneNumber(
        owner_id=test_user.id,
        phone_number="+15551230000",
        provider_number_id="pn-1",
        connection_id="conn-test-1",
    )
    db_session.add(number)
    await db_session.commit()
    await db_session.refresh(number)
    return number


@pytest_asyncio.fixture
async def unconnected_number(db_session: AsyncSession, test_user: User) -> PhoneNumber:
    """A number owned by test_user that was never attached to a connection."""
    number = PhoneNumber(
        owner_id=test_user.id,
        phone_number="+15559990000",
        provider_number_id="pn-2",
        connection_id=None,
    )
    db_session.add(number)
    await db_session.commit()
    await db_session.refresh(number)
    return number


@pytest.fixture
def gateway() -> MockProviderGateway:
    return MockProviderGateway()


@pytest.fixture
def push_hub() -> RealtimePushHub:
    return RealtimePushHub(ping_interval_seconds=30)


@pytest.fixture
def token_for(test_settings: Settings, monkeypatch: pytest.MonkeyPatch) -> Any:
    """Build access tokens signed with the test secret."""
    monkeypatch.setenv("JWT_SECRET_KEY", test_settings.jwt_secret_key)

    def _token(user: User) -> str:
        return JWTService(test_settings).create_access_token(user.id, user.email)

    return _token


@pytest.fixture
def auth_headers(token_for: Any, test_user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {token_for(test_user)}"}


@pytest.fixture
def app(
    database_manager: DatabaseManager,
    gateway: MockProviderGateway,
    telephony_config: TelephonyConfig,
    push_hub: RealtimePushHub,
) -> Any:
    """Application wired to the test database, mock gateway and hub."""
    application = create_app()
    application.state.push_hub = push_hub

    async def _override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        async for session in database_manager.get_session():
            yield session

    application.dependency_overrides[get_db_session] = _override_get_db_session
    application.dependency_overrides[get_database_manager] = lambda: database_manager
    application.dependency_overrides[get_gateway] = lambda: gateway
    application.dependency_overrides[get_telephony_config] = lambda: telephony_config
    return application


@pytest_asyncio.fixture
async def async_client(app: Any) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
