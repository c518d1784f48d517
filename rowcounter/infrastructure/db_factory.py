"""
Database connection factory utilities for rowcounter.

Provides centralized management of the PostgreSQL connection pool shared by
all workers, with proper lifecycle management. The PoolManager singleton
ensures resources are properly cleaned up on application exit.

Also builds the per-worker row store factory for the configured backend and
includes retry logic for transient connection failures using tenacity.
"""

from __future__ import annotations

import atexit
import threading
from typing import Callable, Optional

import psycopg
from psycopg import Connection
from psycopg_pool import ConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from rowcounter.config import Settings, get_settings
from rowcounter.infrastructure.memory_store import InMemoryRowStore
from rowcounter.infrastructure.postgres_store import PostgresRowStore
from rowcounter.infrastructure.row_store import RowStore
from rowcounter.utils.logging import get_logger

log = get_logger(__name__)


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN string from settings."""
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


class PoolManager:
    """
    Thread-safe singleton for managing the database connection pool.

    Handles lifecycle management with automatic cleanup via atexit hook.
    """

    _instance: Optional["PoolManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "PoolManager":
        """Create or return the singleton instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._sync_pool: Optional[ConnectionPool] = None
                # Register cleanup on exit
                atexit.register(cls._instance.close_all)
            return cls._instance

    def get_sync_pool(self, min_size: int = 1, max_size: int = 10) -> ConnectionPool:
        """
        Get or create the synchronous connection pool.

        Parameters
        ----------
        min_size : int
            Minimum number of idle connections to keep.
        max_size : int
            Maximum total connections in the pool.

        Returns
        -------
        ConnectionPool
            The managed sync pool instance.
        """
        with self._lock:
            if self._sync_pool is None:
                self._sync_pool = ConnectionPool(
                    conninfo=build_dsn(), min_size=min_size, max_size=max_size, open=True
                )
            elif self._sync_pool.max_size < max_size:
                log.info(
                    "Growing connection pool",
                    extra={"from_size": self._sync_pool.max_size, "to_size": max_size},
                )
                self._sync_pool.resize(min_size=min(self._sync_pool.min_size, max_size), max_size=max_size)
            return self._sync_pool

    def close_all(self) -> None:
        """
        Close the managed pool and release resources.

        This is called automatically on exit via atexit hook.
        """
        with self._lock:
            if self._sync_pool is not None:
                try:
                    self._sync_pool.close()
                except psycopg.Error:
                    log.warning("Failed to close connection pool", exc_info=True)
                finally:
                    self._sync_pool = None


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def get_sync_connection(dsn: Optional[str] = None) -> Connection:
    """
    Acquire a dedicated synchronous connection with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection errors.
    Use this for one-off checks; workers go through the pool.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    return psycopg.connect(dsn or build_dsn())


def get_sync_pool(min_size: int = 1, max_size: int = 10) -> ConnectionPool:
    """Get or create the synchronous connection pool via PoolManager."""
    manager = PoolManager()
    return manager.get_sync_pool(min_size=min_size, max_size=max_size)


def build_store_factory(
    settings: Optional[Settings] = None,
    memory_store: Optional[InMemoryRowStore] = None,
    sessions: int = 0,
) -> Callable[[], RowStore]:
    """
    Return a callable opening one store session per worker.

    The memory backend hands every worker the same shared store; the postgres
    backend gives each worker its own pooled connection, held until the
    session closes. The pool is sized for at least `sessions` concurrent
    sessions, so open workers never wait on each other for a connection.
    """
    settings = settings or get_settings()
    backend = settings.store_backend.lower()

    if backend == "memory":
        store = memory_store or InMemoryRowStore(
            page_size=settings.page_size, fail_on_multipage=settings.fail_on_multipage
        )
        return lambda: store

    if backend == "postgres":
        max_size = max(settings.db_pool_max_size, sessions)
        if max_size > settings.db_pool_max_size:
            log.warning(
                "DB_POOL_MAX_SIZE below concurrent sessions; pool enlarged",
                extra={"db_pool_max_size": settings.db_pool_max_size, "sessions": sessions},
            )
        pool = get_sync_pool(min_size=min(settings.db_pool_min_size, max_size), max_size=max_size)
        return lambda: PostgresRowStore(
            pool,
            keyspace=settings.keyspace,
            page_size=settings.page_size,
            statement_timeout_ms=settings.db_statement_timeout_ms,
            fail_on_multipage=settings.fail_on_multipage,
        )

    raise ValueError(f"Unknown store backend '{settings.store_backend}'. Available: memory, postgres")


__all__ = [
    "PoolManager",
    "build_dsn",
    "build_store_factory",
    "get_sync_connection",
    "get_sync_pool",
]
