"""
Customer API endpoints.

CRUD over customers plus the user projection reads (users of an account, users
of a customer) in header / summary / detail tiers. Errors are raised as
taxonomy errors and answered by `error_handlers`.
"""
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from customer_platform.database.session import get_async_session
from customer_platform.queries.user_projections import ProjectionTier
from customer_platform.services.customer_service import CustomerService

from . import schemas
from .dependencies import get_current_request_id, get_customer_service

router = APIRouter(tags=["customers"])


@router.post("/customers", response_model=schemas.Customer, status_code=status.HTTP_201_CREATED)
async def create_customer_endpoint(
    payload: schemas.CustomerCreate,
    session: AsyncSession = Depends(get_async_session),
    service: CustomerService = Depends(get_customer_service),
    request_id: str | None = Depends(get_current_request_id),
):
    return await service.create_customer(payload.model_dump(), session, request_id)


@router.get("/customers", response_model=schemas.CustomerPage)
async def list_customers_endpoint(
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    status_filter: str | None = Query(None, alias="status"),
    order_by: str | None = Query(None, description="comma separated fields, '-' prefix for descending"),
    session: AsyncSession = Depends(get_async_session),
    service: CustomerService = Depends(get_customer_service),
    request_id: str | None = Depends(get_current_request_id),
):
    fields = [f.strip() for f in order_by.split(",") if f.strip()] if order_by else None
    result = await service.list_customers(
        session, page=page, limit=limit, status=status_filter, order_by=fields, request_id=request_id
    )
    return {"data": result.data, "pagination": result.pagination()}


@router.get("/customers/{customer_id}", response_model=schemas.Customer)
async def get_customer_endpoint(
    customer_id: int,
    session: AsyncSession = Depends(get_async_session),
    service: CustomerService = Depends(get_customer_service),
    request_id: str | None = Depends(get_current_request_id),
):
    return await service.get_customer(customer_id, session, request_id)


@router.put("/customers/{customer_id}", response_model=schemas.Customer)
async def update_customer_endpoint(
    customer_id: int,
    payload: schemas.CustomerUpdate,
    session: AsyncSession = Depends(get_async_session),
    service: CustomerService = Depends(get_customer_service),
    request_id: str | None = Depends(get_current_request_id),
):
    return await service.update_customer(customer_id, payload.model_dump(exclude_unset=True), session, request_id)


@router.delete("/customers/{customer_id}", response_model=schemas.Customer)
async def delete_customer_endpoint(
    customer_id: int,
    session: AsyncSession = Depends(get_async_session),
    service: CustomerService = Depends(get_customer_service),
    request_id: str | None = Depends(get_current_request_id),
):
    return await service.delete_customer(customer_id, session, request_id)


@router.get("/accounts/{account_id}/users/{tier}", response_model=list[schemas.UserProjection])
async def get_users_by_account_endpoint(
    account_id: int,
    tier: ProjectionTier,
    session: AsyncSession = Depends(get_async_session),
    service: CustomerService = Depends(get_customer_service),
    request_id: str | None = Depends(get_current_request_id),
):
    return await service.get_users_by_account(account_id, tier, session, request_id)


@router.get("/customers/{customer_id}/users/{tier}", response_model=list[schemas.UserProjection])
async def get_users_by_customer_endpoint(
    customer_id: int,
    tier: ProjectionTier,
    session: AsyncSession = Depends(get_async_session),
    service: CustomerService = Depends(get_customer_service),
    request_id: str | None = Depends(get_current_request_id),
):
    return await service.get_users_by_customer(customer_id, tier, session, request_id)


@router.get("/health", response_model=schemas.HealthStatus)
async def health_endpoint(
    response: Response,
    session: AsyncSession = Depends(get_async_session),
    service: CustomerService = Depends(get_customer_service),
):
    health = await service.health_check(session)
    if not health["healthy"]:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return health
