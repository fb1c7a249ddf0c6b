"""
Async SQLAlchemy engine & session factory (asyncpg / aiosqlite drivers).
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings


def engine_options(database_url: str, timeout: float) -> dict:
    """Engine keyword arguments for *database_url*.

    On Postgres *timeout* bounds pool checkout, connection setup and every
    statement (asyncpg ``command_timeout``).
    """
    engine_args: dict = {
        "echo": False,
        "pool_pre_ping": True,
    }

    if "postgresql" in database_url:
        engine_args.update(
            {
                "pool_size": 20,
                "max_overflow": 10,
                "pool_recycle": 300,
                "pool_timeout": timeout,
                "connect_args": {"timeout": timeout, "command_timeout": timeout},
            }
        )
    return engine_args


engine = create_async_engine(
    settings.DATABASE_URL,
    **engine_options(settings.DATABASE_URL, settings.DB_TIMEOUT_SECONDS),
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)
