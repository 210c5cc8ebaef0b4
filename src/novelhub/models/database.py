"""Async database connection management.

Provides the SQLAlchemy async engine and session factory. The ``Database``
object owns its connection state so the health probe can ask it directly
whether the service is running degraded.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from novelhub.api.exceptions import DatabaseUnavailableError
from novelhub.core.config import Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def utcnow() -> datetime:
    return datetime.now(UTC)


class Database:
    """Engine, session factory and connection status for one database."""

    def __init__(
        self,
        database_url: str,
        create_tables: bool = True,
        **engine_kwargs: Any,
    ) -> None:
        """Initialize database engine and session factory.

        Args:
            database_url: Async connection URL (postgresql+asyncpg://...)
            create_tables: Create missing tables on connect
            **engine_kwargs: Additional arguments passed to create_async_engine
        """
        engine_kwargs.setdefault("echo", False)
        engine_kwargs.setdefault("pool_pre_ping", True)

        self.url = database_url
        self.create_tables = create_tables
        self._engine: AsyncEngine = create_async_engine(database_url, **engine_kwargs)
        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        self._connected = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        """Build a database from application settings."""
        url = settings.async_database_url
        engine_kwargs: dict[str, Any] = {}
        # SQLite pools take no sizing options
        if not make_url(url).get_backend_name().startswith("sqlite"):
            engine_kwargs["pool_size"] = settings.database_pool_size
            engine_kwargs["max_overflow"] = settings.database_max_overflow
        return cls(url, create_tables=settings.database_create_tables, **engine_kwargs)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @property
    def is_connected(self) -> bool:
        return self._connected

    def health(self) -> str:
        """Report connection status for the health probe."""
        return "connected" if self._connected else "disconnected"

    async def connect(self) -> bool:
        """Ping the server and create tables when configured.

        Returns:
            True if the database is reachable, False otherwise.
        """
        try:
            async with self._engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
                if self.create_tables:
                    await conn.run_sync(Base.metadata.create_all)
        except Exception as e:
            logger.error("Database connection failed: %s", e)
            self._connected = False
            return False

        self._connected = True
        logger.info("Database connected: %s", self._engine.url.render_as_string(hide_password=True))
        return True

    async def connect_with_retry(
        self,
        retries: int = 5,
        interval: float = 5.0,
        delay_first: bool = False,
    ) -> bool:
        """Try to connect a fixed number of times with a fixed backoff.

        Never raises; on exhaustion the service keeps running in degraded
        mode and data routes fail per request.
        """
        if delay_first:
            await asyncio.sleep(interval)
        for attempt in range(1, retries + 1):
            if await self.connect():
                return True
            if attempt < retries:
                logger.warning(
                    "Database connection attempt %d/%d failed, retrying in %.0fs",
                    attempt,
                    retries,
                    interval,
                )
                await asyncio.sleep(interval)

        logger.warning("Running in degraded mode: database is not connected")
        return False

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Provide an async session, rolling back on error.

        Raises:
            DatabaseUnavailableError: If the database never connected.
        """
        if not self._connected:
            raise DatabaseUnavailableError()
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self) -> None:
        """Close database connections.

        Should be called during application shutdown.
        """
        await self._engine.dispose()
        self._connected = False
