"""Engine management for the PostgreSQL bulk loader.

The loader itself accepts any SQLAlchemy Engine or Connection running on the
psycopg 3 driver. This module builds such an engine from settings for
applications that do not already own one.

Usage:
    from bulkload.core.connections import ConnectionConfig, ConnectionManager

    config = ConnectionConfig.from_settings()
    manager = ConnectionManager(config)
    manager.initialize()

    with manager.connection_scope() as conn:
        conn.exec_driver_sql("SELECT 1")

    manager.close()
"""

from __future__ import annotations

import threading
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import Connection, make_url

from bulkload.core.config import Settings, get_settings
from bulkload.core.exceptions import UnsupportedConnectionError

SUPPORTED_DRIVER = "psycopg"


@dataclass
class ConnectionConfig:
    """Connection configuration for the SQLAlchemy engine.

    Attributes:
        database_url: SQLAlchemy URL using the postgresql+psycopg driver
        pool_size: SQLAlchemy connection pool size
        max_overflow: Maximum overflow connections beyond pool_size
        pool_timeout: Seconds to wait for a connection from pool
        echo_sql: Whether to echo SQL statements (for debugging)
    """

    database_url: str
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: float = 30.0
    echo_sql: bool = False

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **kwargs: Any) -> ConnectionConfig:
        """Create config from application settings.

        Args:
            settings: Settings instance (defaults to get_settings())
            **kwargs: Override any config attributes

        Returns:
            ConnectionConfig populated from settings
        """
        settings = settings or get_settings()
        values: dict[str, Any] = {
            "database_url": settings.database_url,
            "pool_size": settings.pool_size,
            "max_overflow": settings.max_overflow,
            "pool_timeout": settings.pool_timeout,
            "echo_sql": settings.echo_sql,
        }
        values.update(kwargs)
        return cls(**values)


def create_bulk_engine(config: ConnectionConfig) -> Engine:
    """Create a pooled engine suitable for binary COPY.

    Raises:
        UnsupportedConnectionError: If the URL does not select the psycopg driver
    """
    url = make_url(config.database_url)
    if url.get_backend_name() != "postgresql" or url.get_driver_name() != SUPPORTED_DRIVER:
        raise UnsupportedConnectionError(
            f"database_url must use postgresql+{SUPPORTED_DRIVER}, got {url.drivername}"
        )
    return create_engine(
        url,
        echo=config.echo_sql,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        pool_timeout=config.pool_timeout,
        pool_pre_ping=True,
    )


@dataclass
class ConnectionManager:
    """Owns one pooled engine for the lifetime of an application.

    Thread Safety:
    - initialize() is serialized via _init_lock
    - Connections: one per caller, checked out from the pool
    """

    config: ConnectionConfig
    _engine: Engine | None = field(default=None, init=False, repr=False)
    _init_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def initialize(self) -> None:
        """Create the engine. Safe to call multiple times (idempotent)."""
        with self._init_lock:
            if self._engine is None:
                self._engine = create_bulk_engine(self.config)

    @property
    def engine(self) -> Engine:
        """Get the SQLAlchemy engine.

        Raises:
            RuntimeError: If manager not initialized
        """
        if self._engine is None:
            raise RuntimeError("ConnectionManager not initialized. Call manager.initialize() first.")
        return self._engine

    @contextmanager
    def connection_scope(self) -> Generator[Connection]:
        """Check out a connection and return it to the pool afterwards."""
        conn = self.engine.connect()
        try:
            yield conn
        finally:
            conn.close()

    def close(self) -> None:
        """Dispose of the pool. Safe to call multiple times."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None


# Convenience for simple scripts
_default_manager: ConnectionManager | None = None


def get_connection_manager(config: ConnectionConfig | None = None) -> ConnectionManager:
    """Get or create a default ConnectionManager.

    Creates a singleton manager on first call.
    """
    global _default_manager

    if _default_manager is None:
        _default_manager = ConnectionManager(config or ConnectionConfig.from_settings())
        _default_manager.initialize()

    return _default_manager


def close_default_manager() -> None:
    """Close the default ConnectionManager if it exists."""
    global _default_manager

    if _default_manager is not None:
        _default_manager.close()
        _default_manager = None


__all__ = [
    "ConnectionConfig",
    "ConnectionManager",
    "close_default_manager",
    "create_bulk_engine",
    "get_connection_manager",
]
