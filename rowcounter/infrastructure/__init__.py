"""
Infrastructure package for rowcounter.

Centralizes row-store connectivity concerns (store contract, PostgreSQL and
in-memory backends, pooling). Keep this layer focused on I/O and resource
management, decoupled from counter strategy logic.
"""

from rowcounter.infrastructure.db_factory import (
    build_dsn,
    build_store_factory,
    get_sync_connection,
    get_sync_pool,
)
from rowcounter.infrastructure.memory_store import InMemoryRowStore
from rowcounter.infrastructure.postgres_store import PostgresRowStore
from rowcounter.infrastructure.row_store import Delete, RowStore, SchemaOptions, Upsert

__all__ = [
    "Delete",
    "InMemoryRowStore",
    "PostgresRowStore",
    "RowStore",
    "SchemaOptions",
    "Upsert",
    "build_dsn",
    "build_store_factory",
    "get_sync_connection",
    "get_sync_pool",
]
