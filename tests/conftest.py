"""
Pytest configuration and shared fixtures.

This file provides common fixtures for all tests.
"""

import os

# Settings are built at import time, so the environment must be in place first
os.environ.setdefault("ACCESS_TOKEN_SECRET", "test-access-secret-0123456789abcdef0123")
os.environ.setdefault("REFRESH_TOKEN_SECRET", "test-refresh-secret-0123456789abcdef012")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("DB_AUTO_CREATE", "false")

from collections.abc import AsyncGenerator, Awaitable, Callable  # noqa: E402
from datetime import datetime  # noqa: E402

import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from nac_api.config import Settings, UserRole, settings  # noqa: E402
from nac_api.core.auth import get_settings  # noqa: E402
from nac_api.core.database import get_db, init_db  # noqa: E402
from nac_api.core.security import get_password_hash  # noqa: E402
from nac_api.main import app as main_app  # noqa: E402
from nac_api.models.device import Devices  # noqa: E402
from nac_api.models.user import Users  # noqa: E402
from nac_api.services.tokens import TokenService  # noqa: E402

TEST_PASSWORD = "Password123"


@pytest.fixture
def test_settings() -> Settings:
    """
    Settings used by services and the app under test.

    Tests that need a different policy build their own copy:
        config = test_settings.model_copy(update={"MAX_DEVICES_PER_USER": 2})
    """
    return settings.model_copy(update={"BCRYPT_ROUNDS": 4})


@pytest.fixture(scope="function")
async def engine():
    """
    Create a fresh in-memory SQLite engine for each test function.

    StaticPool keeps a single connection so every session sees the same
    in-memory database.
    """
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(test_engine)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture(scope="function")
async def db_session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a new database session for each test."""
    async_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_maker() as session:
        yield session

        # Cleanup - rollback any changes left uncommitted by the test
        await session.rollback()


@pytest.fixture(scope="function")
def app(db_session: AsyncSession, test_settings: Settings) -> FastAPI:
    """
    Create FastAPI app with test database session and settings.

    This overrides the database and settings dependencies.
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    main_app.dependency_overrides[get_db] = override_get_db
    main_app.dependency_overrides[get_settings] = lambda: test_settings

    yield main_app

    main_app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """
    Create async HTTP client for testing API endpoints.

    Usage:
        async def test_endpoint(client):
            response = await client.get("/api/users/profile")
            assert response.status_code == 401
    """
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# =============================================================================
# Test Data Fixtures
# =============================================================================


@pytest.fixture
def make_user(
    db_session: AsyncSession, test_settings: Settings
) -> Callable[..., Awaitable[Users]]:
    """
    Factory for committed users with a known password (TEST_PASSWORD).

    Usage:
        async def test_something(make_user):
            user = await make_user("S1001", status="blocked")
    """

    async def _make_user(
        student_id: str,
        *,
        password: str = TEST_PASSWORD,
        role: str = UserRole.STUDENT,
        status: str = "active",
        name: str | None = None,
    ) -> Users:
        user = Users(
            student_id=student_id,
            name=name or f"User {student_id}",
            email=f"{student_id.lower()}@example.edu",
            role=role,
            status=status,
            password_hash=get_password_hash(password, test_settings.BCRYPT_ROUNDS),
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_device(db_session: AsyncSession) -> Callable[..., Awaitable[Devices]]:
    """Factory for committed devices owned by a given user."""

    async def _make_device(
        owner: Users,
        mac_address: str,
        *,
        ip_address: str | None = "10.0.0.1",
        status: str = "active",
        bound_at: datetime | None = None,
    ) -> Devices:
        device = Devices(
            mac_address=mac_address,
            ip_address=ip_address,
            status=status,
            user_id=owner.user_id,  # type: ignore[arg-type]
        )
        if bound_at is not None:
            device.bound_at = bound_at
        db_session.add(device)
        await db_session.commit()
        await db_session.refresh(device)
        return device

    return _make_device


@pytest.fixture
async def student(make_user) -> Users:
    return await make_user("S1001")


@pytest.fixture
async def admin_user(make_user) -> Users:
    return await make_user("A0001", role=UserRole.ADMIN)


@pytest.fixture
def auth_headers(test_settings: Settings) -> Callable[[Users], dict[str, str]]:
    """Build a bearer Authorization header for a user."""

    def _auth_headers(user: Users) -> dict[str, str]:
        token = TokenService(test_settings).issue_access_token(user)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest.fixture
def admin_headers(admin_user: Users, auth_headers) -> dict[str, str]:
    return auth_headers(admin_user)
