"""
Customer service: business operations of the customer microservice on top of
the generic repositories and the user projection queries.

Write operations own their transaction (`database.session.transaction`);
repository calls inside only flush.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from customer_platform.database.session import transaction
from customer_platform.exceptions.base import NotFoundError, ValidationError
from customer_platform.models import Customer, RecordStatus
from customer_platform.queries.user_projections import ProjectionTier, UserProjectionQueries
from customer_platform.repositories.entity_repository import EntityRepository, PaginationResult
from customer_platform.repositories.registry import RepositoryRegistry
from customer_platform.validators.repository_validators import is_absent

logger = logging.getLogger(__name__)

REQUIRED_CUSTOMER_FIELDS = ("customer_name", "customer_class", "status", "reference_number")


class CustomerService:
    def __init__(self, registry: RepositoryRegistry, queries: UserProjectionQueries,
                 service_name: str = "customer-service"):
        self.registry = registry
        self.queries = queries
        self.service_name = service_name

    @property
    def customers(self) -> EntityRepository[Customer]:
        return self.registry.get_repository("customer")

    async def create_customer(self, data: Mapping[str, Any], session: AsyncSession,
                              request_id: str | None = None) -> Customer:
        """
        Create a customer in its own transaction.

        Raises:
            ValidationError: one of REQUIRED_CUSTOMER_FIELDS is missing.
            DatabaseError: e.g. 409 UNIQUE_CONSTRAINT_VIOLATION on a reused reference number.
        """
        for field in REQUIRED_CUSTOMER_FIELDS:
            if is_absent(data.get(field)):
                raise ValidationError.for_field(field, data.get(field), "is required", request_id=request_id)

        async with transaction(session):
            customer = await self.customers.create(data, session, request_id)

        logger.info(
            "customer.created",
            extra={"customer_id": customer.customer_id, "reference_number": customer.reference_number},
        )
        return customer

    async def get_customer(self, customer_id: int, session: AsyncSession,
                           request_id: str | None = None) -> Customer:
        customer = await self.customers.find_by_id(customer_id, session, request_id)
        if customer is None:
            raise NotFoundError.for_resource("customer", customer_id, request_id=request_id)
        return customer

    async def list_customers(self, session: AsyncSession, *, page: int = 1, limit: int | None = None,
                             status: str | None = None, order_by: str | Sequence[str] | None = None,
                             request_id: str | None = None) -> PaginationResult[Customer]:
        options: dict[str, Any] = {"page": page, "limit": limit, "order_by": order_by}
        if status is not None:
            options["where"] = {"status": status}
        return await self.customers.find_all(options, session, request_id)

    async def update_customer(self, customer_id: int, data: Mapping[str, Any], session: AsyncSession,
                              request_id: str | None = None) -> Customer:
        async with transaction(session):
            customer = await self.customers.update_by_id(customer_id, data, session, request_id)
        logger.info("customer.updated", extra={"customer_id": customer_id, "fields": sorted(data.keys())})
        return customer

    async def delete_customer(self, customer_id: int, session: AsyncSession,
                              request_id: str | None = None) -> Customer:
        """Soft delete: the customer stays stored with status INACTIVE."""
        async with transaction(session):
            customer = await self.customers.update_by_id(
                customer_id, {"status": RecordStatus.INACTIVE.value}, session, request_id
            )
        logger.info("customer.deactivated", extra={"customer_id": customer_id})
        return customer

    async def get_users_by_account(self, account_id: int, tier: ProjectionTier | str, session: AsyncSession,
                                   request_id: str | None = None) -> list[dict[str, Any]]:
        return await self.queries.find_users_by_account(account_id, tier, session, request_id)

    async def get_users_by_customer(self, customer_id: int, tier: ProjectionTier | str, session: AsyncSession,
                                    request_id: str | None = None) -> list[dict[str, Any]]:
        return await self.queries.find_users_by_customer(customer_id, tier, session, request_id)

    async def health_check(self, session: AsyncSession) -> dict[str, Any]:
        """
        Probe the database with `SELECT 1`.

        Returns:
            {"healthy", "service", "database": "connected"|"disconnected", "timestamp"}
        """
        timestamp = datetime.now(timezone.utc).isoformat()
        try:
            await session.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError):
            logger.warning("customer.health_check_failed", exc_info=True)
            return {
                "healthy": False,
                "service": self.service_name,
                "database": "disconnected",
                "timestamp": timestamp,
            }

        return {
            "healthy": True,
            "service": self.service_name,
            "database": "connected",
            "timestamp": timestamp,
        }
