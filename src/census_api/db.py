"""
Database handle: async engine, bounded connection pool and session factory.

One `Database` is built per process (see `census_api.api.lifespan`) and handed
to request handlers through `get_db`; nothing here is a module-level singleton.
"""
from typing import AsyncIterator

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from loguru import logger

from .config import Settings


def convert_to_async_url(database_url: str) -> str:
    """Convert a plain database URL to its async driver equivalent."""
    if database_url.startswith(("postgresql+asyncpg://", "sqlite+aiosqlite://")):
        return database_url
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql+asyncpg://", 1)
    if database_url.startswith("sqlite://"):
        return database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    raise ValueError(f"Unsupported database URL scheme: {database_url}")


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Owns the engine and session factory for one database."""

    def __init__(self, settings: Settings):
        self.url = convert_to_async_url(settings.database_url)
        self.is_sqlite = self.url.startswith("sqlite")

        engine_args = {"echo": settings.echo_sql}
        if not self.is_sqlite:
            engine_args.update(
                pool_size=settings.pool_size,
                max_overflow=settings.max_overflow,
                pool_timeout=settings.pool_timeout,
                pool_pre_ping=True,
            )
        self.engine = create_async_engine(self.url, **engine_args)

        if self.is_sqlite:
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

        self.session_maker = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> "Database":
        return cls(Settings(database_url=database_url, echo_sql=echo))

    async def dispose(self) -> None:
        logger.info("Closing database pool")
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Dependency to get database session."""
    async with request.app.state.db.session_maker() as session:
        yield session
