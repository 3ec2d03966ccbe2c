"""Database engine and session helpers."""

import logging
from collections.abc import AsyncIterator

from sqlalchemy.engine import make_url
from sqlalchemy.engine.url import URL
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from .config import settings

logger = logging.getLogger(__name__)

SUPPORTED_ASYNC_DIALECTS = {"postgresql+asyncpg", "sqlite+aiosqlite"}
DRIVER_COERCIONS = {
    "postgres": "postgresql+asyncpg",
    "postgresql": "postgresql+asyncpg",
    "sqlite": "sqlite+aiosqlite",
}


def resolve_async_database_url(raw_url: str) -> str:
    """Map the connection string handed out by Supabase (or a local Postgres) to asyncpg."""
    url = make_url(raw_url)
    drivername = url.drivername.lower()
    if drivername in SUPPORTED_ASYNC_DIALECTS:
        return raw_url

    base_driver = drivername.split("+", 1)[0]
    target_driver = DRIVER_COERCIONS.get(base_driver)
    if not target_driver:
        raise ValueError(
            f"Unsupported database dialect '{url.drivername}'. "
            "Use PostgreSQL (asyncpg, e.g. a hosted Supabase database) or SQLite with aiosqlite for tests."
        )

    coerced_url: URL = url.set(drivername=target_driver)
    return coerced_url.render_as_string(hide_password=False)


class Base(DeclarativeBase):
    pass


DATABASE_URL = resolve_async_database_url(settings.database_url)

engine = create_async_engine(
    DATABASE_URL,
    echo=settings.debug,
    pool_pre_ping=not DATABASE_URL.startswith("sqlite"),
)
AsyncSessionLocal = async_sessionmaker(
    engine,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncIterator[AsyncSession]:
    """Yield a request-scoped session; anything left uncommitted on error is rolled back."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except SQLAlchemyError:
            logger.exception("Database error; rolling back session")
            await session.rollback()
            raise
