"""
Classification of raw storage-engine exceptions.

SQLAlchemy surfaces every driver failure as a `DBAPIError` subclass (and a few
ORM-level conditions as `NoResultFound` / `StaleDataError`). This module turns
those into a closed set of `StorageErrorKind` labels. The labels are internal:
`mapper.database_error_from` turns them into the public `DatabaseError` with the
right HTTP status and code.

Classification order:
  1. ORM conditions (no row / stale row) -> RECORD_NOT_FOUND
  2. Postgres SQLSTATE (`pgcode` / `sqlstate` on the DBAPI exception)
  3. Exception type (IntegrityError, pool TimeoutError, DisconnectionError, ...)
  4. Message heuristics (SQLite and other drivers without SQLSTATE)
"""
import logging
from enum import Enum

from sqlalchemy.exc import (
    DBAPIError,
    DisconnectionError,
    IntegrityError,
    InterfaceError,
    NoResultFound,
    OperationalError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.orm.exc import StaleDataError

logger = logging.getLogger(__name__)


class StorageErrorKind(str, Enum):
    UNIQUE_VIOLATION = "UNIQUE_VIOLATION"
    NOT_NULL_VIOLATION = "NOT_NULL_VIOLATION"
    FOREIGN_KEY_VIOLATION = "FOREIGN_KEY_VIOLATION"
    CHECK_VIOLATION = "CHECK_VIOLATION"
    RECORD_NOT_FOUND = "RECORD_NOT_FOUND"
    UNREACHABLE = "UNREACHABLE"
    TIMEOUT = "TIMEOUT"
    UNKNOWN = "UNKNOWN"


# =================================================================================================================
# Postgres error code mapping
# =================================================================================================================

# https://www.postgresql.org/docs/current/errcodes-appendix.html
class PostgresErrorCodes(str, Enum):
    UNIQUE_VIOLATION = "23505"
    NOT_NULL_VIOLATION = "23502"
    FOREIGN_KEY_VIOLATION = "23503"
    CHECK_VIOLATION = "23514"
    QUERY_CANCELED = "57014"            # statement_timeout
    LOCK_NOT_AVAILABLE = "55P03"        # lock_timeout
    ADMIN_SHUTDOWN = "57P01"
    CANNOT_CONNECT_NOW = "57P03"
    TOO_MANY_CONNECTIONS = "53300"


PGCODE_KIND_MAP = {
    PostgresErrorCodes.UNIQUE_VIOLATION: StorageErrorKind.UNIQUE_VIOLATION,
    PostgresErrorCodes.NOT_NULL_VIOLATION: StorageErrorKind.NOT_NULL_VIOLATION,
    PostgresErrorCodes.FOREIGN_KEY_VIOLATION: StorageErrorKind.FOREIGN_KEY_VIOLATION,
    PostgresErrorCodes.CHECK_VIOLATION: StorageErrorKind.CHECK_VIOLATION,
    PostgresErrorCodes.QUERY_CANCELED: StorageErrorKind.TIMEOUT,
    PostgresErrorCodes.LOCK_NOT_AVAILABLE: StorageErrorKind.TIMEOUT,
    PostgresErrorCodes.ADMIN_SHUTDOWN: StorageErrorKind.UNREACHABLE,
    PostgresErrorCodes.CANNOT_CONNECT_NOW: StorageErrorKind.UNREACHABLE,
    PostgresErrorCodes.TOO_MANY_CONNECTIONS: StorageErrorKind.UNREACHABLE,
}

# Class 08 - Connection Exception
_PG_CONNECTION_CLASS = "08"


def _match_any(msg: str, keywords: list[str]) -> bool:
    return any(keyword in msg for keyword in keywords)


def get_pgcode(orig: object) -> str | None:
    """SQLSTATE of a DBAPI exception (psycopg: `pgcode`/`sqlstate`, asyncpg adapter: `pgcode`)."""
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def _classify_from_postgres_diag(orig) -> tuple[StorageErrorKind | None, str | None]:
    """
    Classify a Postgres error from its SQLSTATE and diagnostics.
    """
    pgcode = get_pgcode(orig)
    if not pgcode:
        return None, None

    diag = getattr(orig, "diag", None)
    constraint_name = getattr(diag, "constraint_name", None) if diag else None

    kind = PGCODE_KIND_MAP.get(pgcode)
    if kind is None and str(pgcode).startswith(_PG_CONNECTION_CLASS):
        kind = StorageErrorKind.UNREACHABLE

    if kind is not None:
        logger.debug(
            "storage.postgres_diagnostic",
            extra={"pgcode": pgcode, "constraint_name": constraint_name, "kind": kind.value},
        )
        return kind, constraint_name

    logger.warning(
        "storage.unknown_pgcode",
        extra={"pgcode": pgcode, "constraint_name": constraint_name},
    )
    return StorageErrorKind.UNKNOWN, constraint_name


def _classify_integrity_message(msg: str) -> StorageErrorKind:
    """
    Classify an integrity error from its message (SQLite, MySQL, ...).
    """
    normalized = msg.lower()

    if _match_any(normalized, ["unique constraint", "unique failed", "unique violation", "duplicate"]):
        return StorageErrorKind.UNIQUE_VIOLATION

    if _match_any(normalized, ["not null constraint", "not null", "null value in column"]):
        return StorageErrorKind.NOT_NULL_VIOLATION

    if _match_any(normalized, ["foreign key constraint", "foreign key", "is not present in table"]):
        return StorageErrorKind.FOREIGN_KEY_VIOLATION

    if _match_any(normalized, ["check constraint", "check failed"]):
        return StorageErrorKind.CHECK_VIOLATION

    logger.warning("storage.unknown_integrity_message", extra={"message_snippet": (msg or "")[:200]})
    return StorageErrorKind.UNKNOWN


def _classify_operational_message(msg: str) -> StorageErrorKind:
    normalized = msg.lower()

    if _match_any(normalized, ["timeout", "timed out", "canceling statement", "database is locked"]):
        return StorageErrorKind.TIMEOUT

    if _match_any(normalized, [
        "could not connect",
        "connection refused",
        "connection reset",
        "server closed the connection",
        "unable to open database",
        "no route to host",
        "name or service not known",
        "connection is closed",
    ]):
        return StorageErrorKind.UNREACHABLE

    return StorageErrorKind.UNKNOWN


def classify_integrity_error(exc: IntegrityError) -> tuple[StorageErrorKind, str | None]:
    """
    Classify a SQLAlchemy IntegrityError into a constraint kind.

    Returns:
        (kind, constraint_name if the driver reports it)
    """
    kind, constraint_name = _classify_from_postgres_diag(exc.orig)
    if kind is not None:
        return kind, constraint_name

    return _classify_integrity_message(str(exc.orig)), None


def classify_storage_error(exc: BaseException) -> tuple[StorageErrorKind, str | None]:
    """
    Classify any exception raised while talking to the database.

    Returns:
        (kind, constraint_name or None). Unrecognized failures are
        `StorageErrorKind.UNKNOWN`.
    """
    if isinstance(exc, (NoResultFound, StaleDataError)):
        return StorageErrorKind.RECORD_NOT_FOUND, None

    if isinstance(exc, IntegrityError):
        return classify_integrity_error(exc)

    if isinstance(exc, PoolTimeoutError):
        return StorageErrorKind.TIMEOUT, None

    if isinstance(exc, DisconnectionError):
        return StorageErrorKind.UNREACHABLE, None

    if isinstance(exc, DBAPIError):
        kind, constraint_name = _classify_from_postgres_diag(exc.orig)
        if kind is not None and kind is not StorageErrorKind.UNKNOWN:
            return kind, constraint_name

        if exc.connection_invalidated:
            return StorageErrorKind.UNREACHABLE, None

        if isinstance(exc, (OperationalError, InterfaceError)):
            return _classify_operational_message(str(exc.orig)), None

        return StorageErrorKind.UNKNOWN, constraint_name

    # Driver-level failures that escaped SQLAlchemy's wrapping (asyncpg command
    # timeouts, refused sockets while opening the pool, ...)
    if isinstance(exc, TimeoutError):
        return StorageErrorKind.TIMEOUT, None

    if isinstance(exc, ConnectionError):
        return StorageErrorKind.UNREACHABLE, None

    return StorageErrorKind.UNKNOWN, None


def storage_code_of(exc: BaseException, kind: StorageErrorKind) -> str:
    """The vendor code when the driver exposes one, else the kind label."""
    orig = getattr(exc, "orig", None)
    pgcode = get_pgcode(orig) if orig is not None else None
    return str(pgcode) if pgcode else kind.value
