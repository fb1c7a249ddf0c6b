"""
Shared test fixtures for the auth service test suite.

Each test gets its own in-memory SQLite database (aiosqlite + StaticPool)
and recording doubles for the notification and SMS collaborators.
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
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.pop("OTP_DEMO_CODE", None)

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.api.v1.deps import get_db, get_notifier, get_sms_gateway, get_token_service
from app.core.passwords import get_password_hash
from app.core.permissions import permissions_for
from app.core.security import TokenConfig, TokenService
from app.db.base import Base
from app.main import app
from app.models.user import User
from helpers import TEST_SECRET, RecordingNotifier, RecordingSms


# ── Database ────────────────────────────────────────────────────────
@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with session_factory() as session:
        yield session


# ── Collaborators ───────────────────────────────────────────────────
@pytest.fixture
def token_service() -> TokenService:
    return TokenService(TokenConfig(secret_key=TEST_SECRET))


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def sms() -> RecordingSms:
    return RecordingSms()


@pytest.fixture
async def async_client(
    session_factory, token_service, notifier, sms
) -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_token_service] = lambda: token_service
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_sms_gateway] = lambda: sms

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Accounts ────────────────────────────────────────────────────────
@pytest.fixture
def make_account(session_factory, token_service):
    """Insert an account directly and return ``(user, auth_headers)``."""

    async def _make(
        account_kind: str = "buyer",
        *,
        role: str | None = None,
        email: str | None = None,
        phone: str | None = None,
        password: str = "Secret123",
        status: str = "active",
    ) -> tuple[User, dict[str, str]]:
        async with session_factory() as session:
            user = User(
                name=f"{role or account_kind} user",
                email=email or f"{role or account_kind}@example.com",
                phone=phone,
                username=(email or f"{role or account_kind}@example.com").split("@")[0]
                if account_kind == "staff"
                else None,
                hashed_password=get_password_hash(password),
                account_kind=account_kind,
                role=role,
                permissions=list(permissions_for(role)) if role else [],
                status=status,
            )
            session.add(user)
            await session.commit()
            await session.refresh(user)
        token = token_service.issue(user.id, user.account_kind, user.role)
        return user, {"Authorization": f"Bearer {token}"}

    return _make
