"""
Declarative base shared by every ORM model of the service.

The naming convention gives every constraint a deterministic name, which keeps
migrations stable and lets the storage error classifier report a readable
constraint name (e.g. `uq_customer_reference_number`).
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


Base.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    """
    `created_at` / `updated_at` columns.

    Defaults are computed in Python (microsecond precision on every backend)
    rather than with `func.now()`, whose resolution on SQLite is one second.
    The repository overwrites `updated_at` on every update.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False
    )
