"""Database engines and session factories for the local and Core stores."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from migrator.config import Settings


class LocalBase(DeclarativeBase):
    """Declarative base for tables in the local mapping store."""

    pass


class CoreBase(DeclarativeBase):
    """Declarative base for tables in the Core store."""

    pass


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine(url: str, settings: Settings) -> AsyncEngine:
    """Create an async engine with the configured timeouts and pool sizes."""
    kwargs: dict[str, Any] = {"echo": settings.database_echo}

    if url.startswith("sqlite"):
        database = make_url(url).database
        if database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)
        kwargs["connect_args"] = {"timeout": settings.database_timeout}
    else:
        kwargs["pool_size"] = settings.database_pool_size
        kwargs["max_overflow"] = settings.database_max_overflow
        kwargs["pool_timeout"] = settings.database_timeout
        kwargs["pool_pre_ping"] = True
        if "asyncpg" in url:
            kwargs["connect_args"] = {
                "timeout": settings.database_timeout,
                "command_timeout": settings.database_timeout,
            }

    engine = create_async_engine(url, **kwargs)
    if url.startswith("sqlite"):
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory used by every unit of work."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@dataclass
class Stores:
    """Engines and session factories for one migrator run."""

    local_engine: AsyncEngine
    core_engine: AsyncEngine
    local_sessions: async_sessionmaker[AsyncSession]
    core_sessions: async_sessionmaker[AsyncSession]

    async def dispose(self) -> None:
        await self.local_engine.dispose()
        await self.core_engine.dispose()


def create_stores(settings: Settings) -> Stores:
    """Build both stores from settings."""
    local_engine = create_engine(settings.local_database_url, settings)
    core_engine = create_engine(settings.core_database_url, settings)
    return Stores(
        local_engine=local_engine,
        core_engine=core_engine,
        local_sessions=create_session_maker(local_engine),
        core_sessions=create_session_maker(core_engine),
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create local mapping store tables if they do not exist.

    Core tables are owned by Core and are never created here.
    """
    # Register local models on the metadata
    import migrator.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(LocalBase.metadata.create_all)
