"""
Map classified storage failures onto the public `DatabaseError`.

`database_error_from()` is the single place where a raw storage exception gets
its HTTP status and error code; both the repository layer (via
`db_error_handler`) and the boundary normalizer go through it.
"""
import re
import logging
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.exc import IntegrityError

from .base import AppError, DatabaseError
from .integrity_classifier import (
    StorageErrorKind,
    classify_storage_error,
    storage_code_of,
)

logger = logging.getLogger(__name__)


# kind -> (status_code, error_code); kinds missing here become 500 DATABASE_ERROR
STORAGE_KIND_TO_STATUS: dict[StorageErrorKind, tuple[int, str]] = {
    StorageErrorKind.UNIQUE_VIOLATION: (409, "UNIQUE_CONSTRAINT_VIOLATION"),
    StorageErrorKind.RECORD_NOT_FOUND: (404, "RECORD_NOT_FOUND"),
    StorageErrorKind.FOREIGN_KEY_VIOLATION: (400, "FOREIGN_KEY_CONSTRAINT"),
    StorageErrorKind.NOT_NULL_VIOLATION: (400, "NULL_CONSTRAINT_VIOLATION"),
    StorageErrorKind.CHECK_VIOLATION: (400, "CHECK_CONSTRAINT_VIOLATION"),
    StorageErrorKind.UNREACHABLE: (503, "DATABASE_UNREACHABLE"),
    StorageErrorKind.TIMEOUT: (504, "DATABASE_TIMEOUT"),
}


# -----------------------
# Column extraction helpers
# -----------------------

def _extract_columns_postgres(msg: str) -> list[str] | None:
    """
    Extract column names from Postgres messages:
      - 'null value in column "email" violates not-null constraint'
      - 'DETAIL:  Key (email)=(a@b.com) already exists.'
    """
    m = re.search(r'null value in column "(?P<col>[^"]+)"', msg, flags=re.IGNORECASE)
    if m:
        return [m.group("col")]

    m = re.search(r'key \((?P<cols>[^)]+)\)=', msg, flags=re.IGNORECASE)
    if m:
        return [c.strip().strip('"') for c in m.group("cols").split(",")]

    return None


def _extract_columns_sqlite(msg: str) -> list[str] | None:
    # 'UNIQUE constraint failed: customer.reference_number'
    # 'NOT NULL constraint failed: user.email'
    m = re.search(r'(?:UNIQUE|NOT NULL) constraint failed: (?P<cols>.+)$', msg, flags=re.IGNORECASE | re.MULTILINE)
    if m:
        return [c.split('.')[-1].strip() for c in re.split(r',\s*', m.group("cols"))]

    return None


def extract_columns_from_integrity(exc: IntegrityError) -> list[str] | None:
    """
    Best-effort extraction of the offending column names (Postgres, SQLite).
    """
    msg = str(exc.orig) if exc.orig is not None else str(exc)
    if not msg:
        return None

    return _extract_columns_postgres(msg) or _extract_columns_sqlite(msg)


# -----------------------
# Mapper
# -----------------------

def _describe(kind: StorageErrorKind, entity: str, columns: list[str] | None, operation: str) -> str:
    """Client-safe message; never contains raw driver text or values."""
    fields = f" for field(s): {', '.join(columns)}" if columns else ""

    if kind is StorageErrorKind.UNIQUE_VIOLATION:
        return f"{entity} already exists{fields}"
    if kind is StorageErrorKind.NOT_NULL_VIOLATION:
        return f"Missing required field(s) for {entity}{': ' + ', '.join(columns) if columns else ''}"
    if kind is StorageErrorKind.FOREIGN_KEY_VIOLATION:
        return f"{entity} references a record that does not exist{fields}"
    if kind is StorageErrorKind.CHECK_VIOLATION:
        return f"{entity} business rule violated (check constraint)"
    if kind is StorageErrorKind.RECORD_NOT_FOUND:
        return f"{entity} record not found"
    if kind is StorageErrorKind.UNREACHABLE:
        return "Database is unreachable"
    if kind is StorageErrorKind.TIMEOUT:
        return f"Database timeout during {operation}"
    return f"Database error during {operation}"


def database_error_from(
    exc: BaseException,
    operation: str,
    entity: str | None = None,
    *,
    request_id: str | None = None,
    extra_metadata: dict[str, Any] | None = None,
) -> DatabaseError:
    """
    Build the `DatabaseError` for a raw storage exception.

    Args:
        exc: the exception raised by SQLAlchemy / the driver.
        operation: operation description, e.g. "create customer".
        entity: entity name used in messages and metadata.
        request_id: correlation id of the failing call.
        extra_metadata: additional context (ids, tier, ...).

    Returns:
        DatabaseError whose status/code follow STORAGE_KIND_TO_STATUS.
    """
    kind, constraint_name = classify_storage_error(exc)
    columns = extract_columns_from_integrity(exc) if isinstance(exc, IntegrityError) else None
    status_code, error_code = STORAGE_KIND_TO_STATUS.get(kind, (500, "DATABASE_ERROR"))

    metadata: dict[str, Any] = {
        "operation": operation,
        "storage_code": storage_code_of(exc, kind),
    }
    if entity:
        metadata["entity"] = entity
    if columns:
        metadata["fields"] = columns
    if extra_metadata:
        metadata.update(extra_metadata)

    log_extra = {
        "operation": operation,
        "entity": entity,
        "kind": kind.value,
        "fields": columns,
        "constraint": constraint_name,
    }
    if status_code < 500:
        # expected client-level conditions (duplicates, bad references)
        logger.info("mapper.storage_client_error", extra=log_extra)
    else:
        logger.error("mapper.storage_server_error", extra=log_extra, exc_info=exc)

    return DatabaseError(
        _describe(kind, entity or "Record", columns, operation),
        status_code=status_code,
        error_code=error_code,
        metadata=metadata,
        request_id=request_id,
    )


# -----------------------
# Async context manager to DRY error handling in repositories
# -----------------------
@asynccontextmanager
async def db_error_handler(
    operation: str,
    entity: str | None = None,
    *,
    request_id: str | None = None,
    extra_metadata: dict[str, Any] | None = None,
):
    """
    Usage:
        async with db_error_handler("create customer", "customer", request_id=rid):
            ... DB ops ...

    Taxonomy errors raised inside the block propagate unchanged; anything else
    is wrapped into a `DatabaseError` chained to the original exception.
    The session is left as-is: rollback belongs to whoever owns the transaction.
    """
    try:
        yield
    except AppError:
        raise
    except Exception as exc:
        raise database_error_from(
            exc,
            operation,
            entity,
            request_id=request_id,
            extra_metadata=extra_metadata,
        ) from exc
