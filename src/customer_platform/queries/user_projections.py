"""
Hand-written projection queries for users of an account / of a customer.

Each (relation, tier) pair has its own SQL: the header tier only selects
identity columns, summary adds contact and role columns, detail adds the parent
entities. Only rows whose status is active at every joined level are returned,
ordered by last name then first name.

The queries bypass `EntityRepository` but share its conventions: the caller's
session, the `db.operation` sink, and `DatabaseError` wrapping.
"""
from __future__ import annotations

import logging
import time
from enum import Enum
from itertools import groupby
from typing import Any, Awaitable, Callable

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from customer_platform.core.logging.filters import get_request_id
from customer_platform.core.logging.operations import (
    OperationKind,
    OperationSink,
    log_database_operation,
)
from customer_platform.exceptions.base import ValidationError
from customer_platform.exceptions.mapper import db_error_handler
from customer_platform.models.status import ACTIVE_STATUS
from customer_platform.validators.repository_validators import require_present

logger = logging.getLogger(__name__)

Row = dict[str, Any]


class ProjectionTier(str, Enum):
    HEADER = "header"
    SUMMARY = "summary"
    DETAIL = "detail"

    @classmethod
    def parse(cls, value: "ProjectionTier | str") -> "ProjectionTier":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            allowed = ", ".join(t.value for t in cls)
            raise ValidationError.for_field("tier", value, f"must be one of: {allowed}") from None


class UserRelation(str, Enum):
    ACCOUNT = "account"
    CUSTOMER = "customer"


# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

USERS_BY_ACCOUNT_HEADER = text("""
    SELECT u.user_id, u.first_name, u.last_name
    FROM "user" u
    INNER JOIN user_has_account uha ON u.user_id = uha.user_id
    INNER JOIN account a ON uha.account_id = a.account_id
    WHERE a.account_id = :parent_id
      AND u.status = :active
      AND uha.status = :active
      AND a.status = :active
    ORDER BY u.last_name, u.first_name
""")

USERS_BY_ACCOUNT_SUMMARY = text("""
    SELECT u.user_id, u.first_name, u.last_name,
           u.email, u.designation, u.is_customer
    FROM "user" u
    INNER JOIN user_has_account uha ON u.user_id = uha.user_id
    INNER JOIN account a ON uha.account_id = a.account_id
    WHERE a.account_id = :parent_id
      AND u.status = :active
      AND uha.status = :active
      AND a.status = :active
    ORDER BY u.last_name, u.first_name
""")

USERS_BY_ACCOUNT_DETAIL = text("""
    SELECT u.user_id, u.first_name, u.last_name,
           u.email, u.phone_number, u.designation, u.status, u.is_customer,
           c.customer_name, a.account_name, a.account_id
    FROM "user" u
    INNER JOIN customer c ON u.customer_id = c.customer_id
    INNER JOIN user_has_account uha ON u.user_id = uha.user_id
    INNER JOIN account a ON uha.account_id = a.account_id
    WHERE a.account_id = :parent_id
      AND u.status = :active
      AND uha.status = :active
      AND c.status = :active
      AND a.status = :active
    ORDER BY u.last_name, u.first_name
""")

USERS_BY_CUSTOMER_HEADER = text("""
    SELECT u.user_id, u.first_name, u.last_name
    FROM "user" u
    INNER JOIN customer c ON u.customer_id = c.customer_id
    WHERE c.customer_id = :parent_id
      AND u.status = :active
      AND c.status = :active
    ORDER BY u.last_name, u.first_name
""")

USERS_BY_CUSTOMER_SUMMARY = text("""
    SELECT u.user_id, u.first_name, u.last_name,
           u.email, u.designation, u.is_customer
    FROM "user" u
    INNER JOIN customer c ON u.customer_id = c.customer_id
    WHERE c.customer_id = :parent_id
      AND u.status = :active
      AND c.status = :active
    ORDER BY u.last_name, u.first_name
""")

# One row per (user, active account); folded into one row per user in Python,
# which keeps the query portable (no JSON aggregation functions).
USERS_BY_CUSTOMER_DETAIL = text("""
    SELECT u.user_id, u.first_name, u.last_name,
           u.email, u.phone_number, u.designation, u.status, u.is_customer,
           c.customer_name, c.customer_id,
           a.account_id AS acc_account_id,
           a.account_name AS acc_account_name,
           a.account_type AS acc_account_type,
           a.parent_account_id AS acc_parent_account_id
    FROM "user" u
    INNER JOIN customer c ON u.customer_id = c.customer_id
    LEFT JOIN user_has_account uha ON u.user_id = uha.user_id
      AND uha.status = :active
    LEFT JOIN account a ON uha.account_id = a.account_id
      AND a.status = :active
    WHERE c.customer_id = :parent_id
      AND u.status = :active
      AND c.status = :active
    ORDER BY u.last_name, u.first_name, u.user_id, a.account_name
""")

_ACCOUNT_COLUMNS = {
    "acc_account_id": "account_id",
    "acc_account_name": "account_name",
    "acc_account_type": "account_type",
    "acc_parent_account_id": "parent_account_id",
}


def _to_row(mapping) -> Row:
    row = dict(mapping)
    # raw SQL bypasses column types: SQLite hands booleans back as 0/1
    if row.get("is_customer") is not None:
        row["is_customer"] = bool(row["is_customer"])
    return row


def fold_accounts(rows: list[Row]) -> list[Row]:
    """
    Collapse consecutive (user, account) rows into one row per user with an
    `accounts` list ordered by account name (empty when the user has none).
    """
    folded: list[Row] = []
    for _, group in groupby(rows, key=lambda r: r["user_id"]):
        group_rows = list(group)
        person = {k: v for k, v in group_rows[0].items() if k not in _ACCOUNT_COLUMNS}
        accounts = [
            {target: r[source] for source, target in _ACCOUNT_COLUMNS.items()}
            for r in group_rows
            if r["acc_account_id"] is not None
        ]
        person["accounts"] = sorted(accounts, key=lambda a: a["account_name"] or "")
        folded.append(person)
    return folded


QueryMethod = Callable[[Any, AsyncSession], Awaitable[list[Row]]]


class UserProjectionQueries:
    """
    Users-by-account and users-by-customer reads in three projection tiers.

    Args:
        sink: operation-logging sink `(operation, entity, duration_ms, request_id)`.
    """

    def __init__(self, sink: OperationSink = log_database_operation):
        self._sink = sink
        self._dispatch: dict[tuple[UserRelation, ProjectionTier], QueryMethod] = {
            (UserRelation.ACCOUNT, ProjectionTier.HEADER): self._users_by_account_header,
            (UserRelation.ACCOUNT, ProjectionTier.SUMMARY): self._users_by_account_summary,
            (UserRelation.ACCOUNT, ProjectionTier.DETAIL): self._users_by_account_detail,
            (UserRelation.CUSTOMER, ProjectionTier.HEADER): self._users_by_customer_header,
            (UserRelation.CUSTOMER, ProjectionTier.SUMMARY): self._users_by_customer_summary,
            (UserRelation.CUSTOMER, ProjectionTier.DETAIL): self._users_by_customer_detail,
        }
        missing = {(r, t) for r in UserRelation for t in ProjectionTier} - set(self._dispatch)
        if missing:
            raise RuntimeError(f"projection queries missing for: {sorted(missing)}")

    async def find_users_by_account(self, account_id: Any, tier: ProjectionTier | str,
                                    session: AsyncSession, request_id: str | None = None) -> list[Row]:
        """
        Active users linked to an active account through an active association.

        header: user_id, first_name, last_name
        summary: + email, designation, is_customer
        detail: + phone_number, status, customer_name, account_name, account_id
        """
        return await self._run(UserRelation.ACCOUNT, account_id, tier, session, request_id)

    async def find_users_by_customer(self, customer_id: Any, tier: ProjectionTier | str,
                                     session: AsyncSession, request_id: str | None = None) -> list[Row]:
        """
        Active users of an active customer.

        header: user_id, first_name, last_name
        summary: + email, designation, is_customer
        detail: + phone_number, status, customer_name, customer_id and
                `accounts` (active accounts of the user, ordered by name)
        """
        return await self._run(UserRelation.CUSTOMER, customer_id, tier, session, request_id)

    async def _run(self, relation: UserRelation, parent_id: Any, tier: ProjectionTier | str,
                   session: AsyncSession, request_id: str | None) -> list[Row]:
        require_present(**{f"{relation.value}_id": parent_id, "session": session})
        tier = ProjectionTier.parse(tier)
        request_id = request_id or get_request_id()
        query = self._dispatch[(relation, tier)]

        start = time.perf_counter()
        try:
            async with db_error_handler(
                f"find users by {relation.value} {tier.value}",
                "user",
                request_id=request_id,
                extra_metadata={"relation": relation.value, "tier": tier.value, "identifier": parent_id},
            ):
                rows = await query(parent_id, session)
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            try:
                self._sink(OperationKind.SELECT_PROJECTION.value, f"user+{relation.value}", duration_ms, request_id)
            except Exception:  # noqa: BLE001 - a failing sink must not change the query outcome
                logger.warning("queries.operation_sink_failed", exc_info=True)

        logger.debug(
            "queries.users_projection",
            extra={"relation": relation.value, "tier": tier.value, "rows": len(rows)},
        )
        return rows

    @staticmethod
    async def _fetch(query, parent_id: Any, session: AsyncSession) -> list[Row]:
        result = await session.execute(query, {"parent_id": parent_id, "active": ACTIVE_STATUS})
        return [_to_row(m) for m in result.mappings().all()]

    async def _users_by_account_header(self, account_id: Any, session: AsyncSession) -> list[Row]:
        return await self._fetch(USERS_BY_ACCOUNT_HEADER, account_id, session)

    async def _users_by_account_summary(self, account_id: Any, session: AsyncSession) -> list[Row]:
        return await self._fetch(USERS_BY_ACCOUNT_SUMMARY, account_id, session)

    async def _users_by_account_detail(self, account_id: Any, session: AsyncSession) -> list[Row]:
        return await self._fetch(USERS_BY_ACCOUNT_DETAIL, account_id, session)

    async def _users_by_customer_header(self, customer_id: Any, session: AsyncSession) -> list[Row]:
        return await self._fetch(USERS_BY_CUSTOMER_HEADER, customer_id, session)

    async def _users_by_customer_summary(self, customer_id: Any, session: AsyncSession) -> list[Row]:
        return await self._fetch(USERS_BY_CUSTOMER_SUMMARY, customer_id, session)

    async def _users_by_customer_detail(self, customer_id: Any, session: AsyncSession) -> list[Row]:
        rows = await self._fetch(USERS_BY_CUSTOMER_DETAIL, customer_id, session)
        return fold_accounts(rows)
