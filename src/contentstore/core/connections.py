"""Connection management for the content store.

This module provides:
- SQLAlchemy async engine with connection pooling
- One DatabaseGateway (one connection, one transaction) per logical operation
- SQLite pragmas for concurrent reads with writes

Usage:
    from contentstore.core.connections import ConnectionManager, ConnectionConfig

    config = ConnectionConfig(database_url="sqlite+aiosqlite:///./content.db")
    manager = ConnectionManager(config)
    await manager.initialize()

    # Run one logical operation over one connection
    async with manager.gateway() as db:
        rows = await db.query(select(table))

    await manager.close()
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from contentstore.core.config import Settings
from contentstore.core.logging import get_logger
from contentstore.storage.gateway import DatabaseGateway

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = get_logger(__name__)


@dataclass
class ConnectionConfig:
    """Connection configuration for SQLAlchemy.

    Attributes:
        database_url: SQLAlchemy async database URL
        pool_size: Connection pool size (ignored by SQLite)
        max_overflow: Maximum overflow connections beyond pool_size
        pool_timeout: Seconds to wait for a connection from pool
        sqlite_timeout: SQLite busy timeout in seconds
        echo_sql: Whether to echo SQL statements (for debugging)
    """

    database_url: str

    # SQLAlchemy pool settings
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: float = 30.0
    sqlite_timeout: float = 30.0

    # Debug
    echo_sql: bool = False

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> ConnectionConfig:
        """Create config from application settings.

        Args:
            settings: Loaded application settings
            **kwargs: Override any config attributes

        Returns:
            ConnectionConfig for settings.database_url
        """
        kwargs.setdefault("echo_sql", settings.echo_sql)
        return cls(database_url=settings.database_url, **kwargs)

    @classmethod
    def in_memory(cls, **kwargs: Any) -> ConnectionConfig:
        """Create config for an in-memory SQLite database (useful for testing)."""
        return cls(database_url="sqlite+aiosqlite:///:memory:", **kwargs)

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


@dataclass
class ConnectionManager:
    """Async connection management for the content store.

    Provides:
    - A pooled SQLAlchemy async engine
    - gateway(): a DatabaseGateway bound to one connection and one transaction
    - Proper cleanup on close

    Each logical operation (a save, a sync, a reconciliation) runs over a
    single gateway, so its statements never interleave with another
    operation on the same connection.
    """

    config: ConnectionConfig
    _engine: AsyncEngine | None = field(default=None, init=False, repr=False)
    _initialized: bool = field(default=False, init=False, repr=False)
    _init_lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    async def initialize(self) -> None:
        """Create the engine and its connection pool.

        Safe to call multiple times (idempotent).

        Raises:
            RuntimeError: If initialization fails
        """
        async with self._init_lock:
            if self._initialized:
                return

            try:
                self._init_sqlalchemy()
                self._initialized = True
            except Exception as e:
                await self.close()
                raise RuntimeError(f"Failed to initialize connections: {e}") from e

    def _init_sqlalchemy(self) -> None:
        """Initialize SQLAlchemy async engine with connection pool."""
        if self.config.is_sqlite:
            # SQLite pools are chosen by the dialect (StaticPool for :memory:)
            self._engine = create_async_engine(
                self.config.database_url,
                echo=self.config.echo_sql,
            )

            sqlite_timeout = self.config.sqlite_timeout

            @event.listens_for(self._engine.sync_engine, "connect")
            def configure_sqlite(dbapi_conn: Any, connection_record: Any) -> None:
                cursor = dbapi_conn.cursor()
                cursor.execute(f"PRAGMA busy_timeout={int(sqlite_timeout * 1000)}")
                cursor.close()

        else:
            self._engine = create_async_engine(
                self.config.database_url,
                echo=self.config.echo_sql,
                pool_size=self.config.pool_size,
                max_overflow=self.config.max_overflow,
                pool_timeout=self.config.pool_timeout,
                pool_pre_ping=True,
            )

        logger.debug("engine_created", dialect=self._engine.dialect.name)

    def _ensure_initialized(self) -> None:
        """Raise if not initialized."""
        if not self._initialized:
            raise RuntimeError(
                "ConnectionManager not initialized. Call await manager.initialize() first."
            )

    @asynccontextmanager
    async def gateway(self) -> AsyncGenerator[DatabaseGateway]:
        """Open one connection in a transaction and wrap it in a gateway.

        Commits when the block exits normally, rolls back on error.

        Yields:
            DatabaseGateway bound to the connection

        Raises:
            RuntimeError: If manager not initialized

        Example:
            async with manager.gateway() as db:
                await db.insert(table, {"slug": "hello"})
        """
        self._ensure_initialized()
        assert self._engine is not None

        async with self._engine.begin() as conn:
            yield DatabaseGateway(conn)

    @property
    def engine(self) -> AsyncEngine:
        """Get the SQLAlchemy async engine.

        Raises:
            RuntimeError: If manager not initialized
        """
        self._ensure_initialized()
        assert self._engine is not None
        return self._engine

    async def close(self) -> None:
        """Dispose of the engine and its pool.

        Safe to call multiple times.
        """
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
        self._initialized = False
