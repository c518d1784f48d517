"""
Error taxonomy for counter operations.

Every failure of a row-store call is reported as exactly one of:

- DefiniteFailure: the store rejected the request; it did not happen.
- IndeterminateOutcome: no success response, but the request may have applied
  server-side (timeout, lost connection, unavailable replica).
- MultipageReadError: a single-partition read was served in several pages,
  which breaks the isolation the aggregation protocol depends on.

Driver exceptions are translated at the adapter boundary via `classify_error`.
Nothing here retries; retry policy belongs to whoever drives the operations.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator, Optional

import psycopg
from psycopg_pool import PoolClosed, PoolTimeout, TooManyRequests


class StoreError(Exception):
    """Base class for row-store failures surfaced to counter callers."""

    definite: bool = False

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


class DefiniteFailure(StoreError):
    """The request was rejected and had no effect."""

    definite = True


class IndeterminateOutcome(StoreError):
    """The request may or may not have been applied."""

    definite = False


class MultipageReadError(StoreError):
    """A single-partition read came back fragmented across pages."""

    definite = False

    def __init__(self, table: str, partition_key: object, pages: int, rows: int) -> None:
        super().__init__(
            f"Multipaging violates operation isolation: {table}[{partition_key}] "
            f"returned {rows} rows in {pages} pages"
        )
        self.table = table
        self.partition_key = partition_key
        self.pages = pages
        self.rows = rows


# Raised before the request reaches the server.
_NEVER_SENT = (PoolTimeout, PoolClosed, TooManyRequests)

# SQLSTATE class 40: the server rolled the transaction back. psycopg derives
# 40001, 40002 and 40P01 from OperationalError, not TransactionRollback, so the
# class is matched on the code. 40003 (completion unknown) is the exception.
_ROLLBACK_CLASS = "40"
_COMPLETION_UNKNOWN = "40003"

_REJECTED = (
    psycopg.ProgrammingError,
    psycopg.DataError,
    psycopg.IntegrityError,
    psycopg.NotSupportedError,
)


def _rolled_back(exc: BaseException) -> bool:
    sqlstate = getattr(exc, "sqlstate", None) or ""
    return sqlstate.startswith(_ROLLBACK_CLASS) and sqlstate != _COMPLETION_UNKNOWN


def classify_error(exc: BaseException) -> StoreError:
    """Map a driver exception onto the definite/indeterminate taxonomy."""
    if isinstance(exc, StoreError):
        return exc
    message = f"{type(exc).__name__}: {exc}"
    if isinstance(exc, _NEVER_SENT + _REJECTED) or _rolled_back(exc):
        return DefiniteFailure(message, cause=exc)
    # QueryCanceled (statement timeout), lost connections, admin shutdowns and
    # anything unrecognised may have been applied.
    return IndeterminateOutcome(message, cause=exc)


@contextmanager
def translate_errors() -> Generator[None, None, None]:
    """Re-raise driver and socket errors as StoreError subclasses."""
    try:
        yield
    except StoreError:
        raise
    except (psycopg.Error, OSError) as exc:
        raise classify_error(exc) from exc


__all__ = [
    "StoreError",
    "DefiniteFailure",
    "IndeterminateOutcome",
    "MultipageReadError",
    "classify_error",
    "translate_errors",
]
