"""
Generic entity repository.

One `EntityRepository` serves one entity (table) and offers the same CRUD and
pagination contract for every entity of the schema; the only per-entity input is
the primary-key column, resolved through `repositories.entities`.

The repository holds no session. Every call receives the caller's
`AsyncSession`, and the repository only flushes: commit, rollback and the
transaction lifetime belong to the caller. Instances are therefore immutable
after construction and safe to share (see `RepositoryRegistry`).

Error contract:
  - missing arguments / unknown fields -> ValidationError (422)
  - update/delete of a missing row     -> NotFoundError (404, metadata resource + identifier)
  - any storage failure                -> DatabaseError tagged with the operation,
                                          status/code remapped per storage condition
  - find_by_id of a missing row        -> None (not an error)
"""
from __future__ import annotations

import logging
import math
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, fields as dataclass_fields
from typing import Any, Generic, Mapping, Sequence, Type, TypeVar

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from customer_platform.core.logging.filters import get_request_id
from customer_platform.core.logging.operations import (
    OperationKind,
    OperationSink,
    log_database_operation,
)
from customer_platform.database.base import Base, utc_now
from customer_platform.exceptions.base import NotFoundError, ValidationError
from customer_platform.exceptions.mapper import db_error_handler
from customer_platform.validators.repository_validators import (
    mapped_attribute_names,
    require_known_fields,
    require_positive_int,
    require_present,
)

from .entities import EntityDescriptor, resolve_model

ModelType = TypeVar("ModelType", bound=Base)

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 50

WhereSpec = Mapping[str, Any] | ColumnElement | Sequence[ColumnElement] | None
OrderBySpec = str | Sequence[str] | Mapping[str, str] | None


@dataclass(frozen=True)
class PageOptions:
    """
    Options of `find_all`.

    - page: 1-based page number
    - limit: page size
    - where: {field: value} equality filters, or SQLAlchemy expressions
    - order_by: "field", "-field" (descending), a list of those, or {field: "asc"|"desc"}
    """

    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    where: Any = None
    order_by: Any = None

    @classmethod
    def coerce(cls, options: "PageOptions | Mapping[str, Any] | None",
               default_limit: int = DEFAULT_LIMIT) -> "PageOptions":
        if options is None:
            return cls(limit=default_limit)
        if isinstance(options, PageOptions):
            return options
        if not isinstance(options, Mapping):
            raise ValidationError.for_field("options", repr(options), "must be a mapping or PageOptions")

        allowed = {f.name for f in dataclass_fields(cls)}
        unknown = sorted(set(options) - allowed)
        if unknown:
            raise ValidationError.for_field("options", unknown, f"Unknown option(s): {', '.join(unknown)}")

        values = {k: v for k, v in options.items() if v is not None}
        values.setdefault("limit", default_limit)
        return cls(**values)


@dataclass(frozen=True)
class PaginationResult(Generic[ModelType]):
    """
    One page of records. The derived values are computed from
    (page, limit, total_count), never stored separately.
    """

    data: list[ModelType] = field(default_factory=list)
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    total_count: int = 0

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.limit)

    @property
    def has_next(self) -> bool:
        return self.page * self.limit < self.total_count

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    def pagination(self) -> dict[str, Any]:
        return {
            "page": self.page,
            "limit": self.limit,
            "totalCount": self.total_count,
            "totalPages": self.total_pages,
            "hasNext": self.has_next,
            "hasPrev": self.has_prev,
        }


class EntityRepository(Generic[ModelType]):
    """
    CRUD + pagination over one entity.

    Args:
        entity_name: table name of the entity ("customer", "user", ...).
        model: mapped class; resolved from the entity name when omitted.
        sink: operation-logging callable `(operation, entity, duration_ms, request_id)`.
        default_limit: page size used by `find_all` when none is given.

    Raises:
        ValidationError: empty entity name, no model for it, or a model without
            the resolved primary-key column.
    """

    def __init__(
        self,
        entity_name: str,
        model: Type[ModelType] | None = None,
        *,
        sink: OperationSink = log_database_operation,
        default_limit: int = DEFAULT_LIMIT,
    ):
        require_present(entity_name=entity_name)

        self.descriptor = EntityDescriptor.for_entity(entity_name)
        self.model: Type[ModelType] = model if model is not None else resolve_model(entity_name)
        self._sink = sink
        self._default_limit = default_limit

        if self.descriptor.primary_key_field not in mapped_attribute_names(self.model):
            raise ValidationError.for_field(
                "primary_key_field",
                self.descriptor.primary_key_field,
                f"{self.model.__name__} has no column '{self.descriptor.primary_key_field}'",
            )

    @property
    def entity_name(self) -> str:
        return self.descriptor.name

    @property
    def primary_key_field(self) -> str:
        return self.descriptor.primary_key_field

    @property
    def _pk(self):
        return getattr(self.model, self.descriptor.primary_key_field)

    def __repr__(self) -> str:
        return f"<EntityRepository(entity={self.entity_name!r}, primary_key={self.primary_key_field!r})>"

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------

    def _emit(self, kind: OperationKind, duration_ms: float, request_id: str | None) -> None:
        try:
            self._sink(kind.value, self.entity_name, duration_ms, request_id)
        except Exception:  # noqa: BLE001 - a failing sink must not change the operation outcome
            logger.warning(
                "repo.operation_sink_failed",
                extra={"entity": self.entity_name, "operation": kind.value},
                exc_info=True,
            )

    @asynccontextmanager
    async def _operation(self, kind: OperationKind, description: str, request_id: str | None,
                         metadata: dict[str, Any] | None = None):
        """Time the block, wrap storage failures, report to the sink."""
        start = time.perf_counter()
        try:
            async with db_error_handler(
                description,
                self.entity_name,
                request_id=request_id,
                extra_metadata=metadata,
            ):
                yield
        finally:
            self._emit(kind, (time.perf_counter() - start) * 1000, request_id)

    def _where_clauses(self, where: WhereSpec) -> list[ColumnElement]:
        if where is None:
            return []

        if isinstance(where, ColumnElement):
            return [where]

        if isinstance(where, Mapping):
            require_known_fields(self.model, self.entity_name, where.keys(), argument="where")
            clauses = []
            for name, value in where.items():
                column = getattr(self.model, name)
                clauses.append(column.is_(None) if value is None else column == value)
            return clauses

        if isinstance(where, Sequence) and not isinstance(where, str) and all(
            isinstance(clause, ColumnElement) for clause in where
        ):
            return list(where)

        raise ValidationError.for_field("where", repr(where), "must be a mapping of field values or SQL expressions")

    def _order_clauses(self, order_by: OrderBySpec) -> list:
        if order_by is None:
            return [self._pk.asc()]

        if isinstance(order_by, str):
            order_by = [order_by]

        if isinstance(order_by, Mapping):
            items = [(name, str(direction).lower()) for name, direction in order_by.items()]
        else:
            items = [
                (name[1:], "desc") if name.startswith("-") else (name, "asc")
                for name in order_by
            ]

        allowed = mapped_attribute_names(self.model)
        clauses = []
        ordered_fields = set()
        for name, direction in items:
            if direction not in ("asc", "desc"):
                raise ValidationError.for_field("order_by", direction, "direction must be 'asc' or 'desc'")
            if name not in allowed:
                logger.warning(
                    "repo.find_all.ignored_order_field",
                    extra={"entity": self.entity_name, "field": name},
                )
                continue
            column = getattr(self.model, name)
            clauses.append(column.desc() if direction == "desc" else column.asc())
            ordered_fields.add(name)

        # stable pages: always finish with the primary key
        if self.primary_key_field not in ordered_fields:
            clauses.append(self._pk.asc())
        return clauses

    # ------------------------------------------------------------------
    # public operations
    # ------------------------------------------------------------------

    async def find_by_id(self, entity_id: Any, session: AsyncSession,
                         request_id: str | None = None) -> ModelType | None:
        """
        Get an entity by its primary key.

        Returns:
            The entity, or None when no row matches.

        Raises:
            ValidationError: `entity_id` or `session` missing.
            DatabaseError: storage failure ("find <entity> by ID").
        """
        require_present(entity_id=entity_id, session=session)
        request_id = request_id or get_request_id()

        async with self._operation(
            OperationKind.SELECT,
            f"find {self.entity_name} by ID",
            request_id,
            {"identifier": entity_id},
        ):
            result = await session.execute(select(self.model).where(self._pk == entity_id))
            return result.scalar_one_or_none()

    async def create(self, data: Mapping[str, Any], session: AsyncSession,
                     request_id: str | None = None) -> ModelType:
        """
        Insert one record built from `data` (column attribute names only) and
        return it with generated values (primary key, defaults) loaded.

        Raises:
            ValidationError: missing `data`/`session`, or unknown fields.
            DatabaseError: storage failure; duplicates come back as 409
                UNIQUE_CONSTRAINT_VIOLATION, bad references as 400 FOREIGN_KEY_CONSTRAINT.
        """
        require_present(data=data, session=session)
        if not isinstance(data, Mapping):
            raise ValidationError.for_field("data", repr(data), "must be a mapping of field values")
        require_known_fields(self.model, self.entity_name, data.keys())
        request_id = request_id or get_request_id()

        logger.debug(
            "repo.create.start",
            extra={"entity": self.entity_name, "provided_keys": sorted(data.keys())},
        )

        async with self._operation(OperationKind.INSERT, f"create {self.entity_name}", request_id):
            entity = self.model(**data)
            session.add(entity)
            await session.flush()
            await session.refresh(entity)

        logger.info(
            "repo.create.success",
            extra={"entity": self.entity_name, "id": getattr(entity, self.primary_key_field, None)},
        )
        return entity

    async def update_by_id(self, entity_id: Any, data: Mapping[str, Any], session: AsyncSession,
                           request_id: str | None = None) -> ModelType:
        """
        Update the fields in `data` on the row with primary key `entity_id`.

        `updated_at` is always set to the current time, replacing any value in
        `data`. The row is re-read after the UPDATE so the returned entity
        reflects stored state.

        Raises:
            ValidationError: missing argument or unknown fields.
            NotFoundError: no row has that primary key.
            DatabaseError: any other storage failure ("update <entity>").
        """
        require_present(entity_id=entity_id, data=data, session=session)
        if not isinstance(data, Mapping):
            raise ValidationError.for_field("data", repr(data), "must be a mapping of field values")
        require_known_fields(self.model, self.entity_name, data.keys())
        request_id = request_id or get_request_id()

        values = dict(data)
        if "updated_at" in mapped_attribute_names(self.model):
            values["updated_at"] = utc_now()

        async with self._operation(
            OperationKind.UPDATE,
            f"update {self.entity_name}",
            request_id,
            {"identifier": entity_id},
        ):
            if values:
                stmt = (
                    update(self.model)
                    .where(self._pk == entity_id)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                result = await session.execute(stmt)
                matched = result.rowcount
            else:
                matched = await session.scalar(
                    select(func.count()).select_from(self.model).where(self._pk == entity_id)
                )

            if not matched:
                raise NotFoundError.for_resource(self.entity_name, entity_id, request_id=request_id)

            refreshed = await session.execute(
                select(self.model)
                .where(self._pk == entity_id)
                .execution_options(populate_existing=True)
            )
            entity = refreshed.scalar_one()

        logger.info(
            "repo.update.success",
            extra={"entity": self.entity_name, "id": entity_id, "fields": sorted(data.keys())},
        )
        return entity

    async def delete_by_id(self, entity_id: Any, session: AsyncSession,
                           request_id: str | None = None) -> ModelType:
        """
        Hard-delete the row with primary key `entity_id` and return it (detached).

        Only this row is deleted: rows of other entities that still reference
        it make the database raise a foreign-key violation, which surfaces as a
        400 DatabaseError. Soft deletes are an `update_by_id(id, {"status": ...})` decision of the caller.

        Raises:
            ValidationError: missing `entity_id` or `session`.
            NotFoundError: no row has that primary key.
            DatabaseError: any other storage failure ("delete <entity>").
        """
        require_present(entity_id=entity_id, session=session)
        request_id = request_id or get_request_id()

        async with self._operation(
            OperationKind.DELETE,
            f"delete {self.entity_name}",
            request_id,
            {"identifier": entity_id},
        ):
            result = await session.execute(select(self.model).where(self._pk == entity_id))
            entity = result.scalar_one_or_none()
            if entity is None:
                raise NotFoundError.for_resource(self.entity_name, entity_id, request_id=request_id)

            await session.execute(
                delete(self.model)
                .where(self._pk == entity_id)
                .execution_options(synchronize_session=False)
            )
            session.expunge(entity)

        logger.info("repo.delete.success", extra={"entity": self.entity_name, "id": entity_id})
        return entity

    async def find_all(self, options: PageOptions | Mapping[str, Any] | None, session: AsyncSession,
                       request_id: str | None = None) -> PaginationResult[ModelType]:
        """
        One page of records plus the total count for the same filter.

        The window query and the count query run one after the other on the
        caller's session; outside a repeatable-read transaction a concurrent
        write can make `total_count` disagree slightly with `data`.

        Raises:
            ValidationError: missing session, page/limit < 1, unknown filter field.
            DatabaseError: storage failure ("find all <entity>").
        """
        require_present(session=session)
        opts = PageOptions.coerce(options, self._default_limit)
        page = require_positive_int("page", opts.page)
        limit = require_positive_int("limit", opts.limit)
        conditions = self._where_clauses(opts.where)
        order = self._order_clauses(opts.order_by)
        skip = (page - 1) * limit
        request_id = request_id or get_request_id()

        async with self._operation(OperationKind.SELECT_PAGINATED, f"find all {self.entity_name}", request_id):
            rows = await session.execute(
                select(self.model).where(*conditions).order_by(*order).offset(skip).limit(limit)
            )
            data = list(rows.scalars().all())
            total = await session.scalar(
                select(func.count()).select_from(self.model).where(*conditions)
            )

        return PaginationResult(data=data, page=page, limit=limit, total_count=int(total or 0))

    async def count(self, where: WhereSpec, session: AsyncSession,
                    request_id: str | None = None) -> int:
        """
        Number of rows matching `where` (all rows when None).

        Raises:
            ValidationError: missing session or unknown filter field.
            DatabaseError: storage failure ("count <entity>").
        """
        require_present(session=session)
        conditions = self._where_clauses(where)
        request_id = request_id or get_request_id()

        async with self._operation(OperationKind.COUNT, f"count {self.entity_name}", request_id):
            total = await session.scalar(
                select(func.count()).select_from(self.model).where(*conditions)
            )
        return int(total or 0)
