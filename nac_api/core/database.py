"""
Database configuration and session management
"""

import asyncio
from collections.abc import AsyncGenerator, Awaitable
from typing import Any, TypeVar

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlmodel import SQLModel

from nac_api.config import Settings, settings
from nac_api.core.errors import UpstreamTimeoutError

T = TypeVar("T")


def build_engine(config: Settings) -> AsyncEngine:
    """Create the async engine; pool sizing only applies to server databases."""
    engine_kwargs: dict[str, Any] = {"echo": config.DB_ECHO, "pool_pre_ping": True}
    if not config.DATABASE_URL.startswith("sqlite"):
        engine_kwargs.update(
            {
                "pool_size": config.DB_POOL_SIZE,
                "max_overflow": config.DB_MAX_OVERFLOW,
                "pool_recycle": 3600,  # MariaDB wait_timeout is 8 hours
            }
        )
    return create_async_engine(config.DATABASE_URL, **engine_kwargs)


engine = build_engine(settings)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database sessions.

    Usage in FastAPI:
        @router.get("/devices")
        async def list_devices(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create all tables registered on SQLModel.metadata."""
    import nac_api.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def with_timeout(operation: Awaitable[T], config: Settings) -> T:
    """
    Await a store operation, bounded by DB_OPERATION_TIMEOUT_SECONDS.

    Raises:
        UpstreamTimeoutError: if the operation does not complete in time
    """
    try:
        async with asyncio.timeout(config.DB_OPERATION_TIMEOUT_SECONDS):
            return await operation
    except TimeoutError as exc:
        raise UpstreamTimeoutError("Storage operation timed out") from exc
