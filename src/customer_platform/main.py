"""
Application factory.

Run with:
    uvicorn customer_platform.main:create_app --factory
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from customer_platform.api.v1 import register_exception_handlers, router
from customer_platform.config import Settings, get_settings
from customer_platform.core.logging import RequestIDMiddleware, setup_logging, stop_queue_logging
from customer_platform.database.session import get_engine
from customer_platform.exceptions import ErrorNormalizer
from customer_platform.queries import UserProjectionQueries
from customer_platform.repositories import RepositoryRegistry
from customer_platform.services import CustomerService
from customer_platform.utils.logging import get_project_version

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("app.startup", extra={"service": app.state.settings.SERVICE_NAME})
    yield
    logger.info("app.shutdown", extra={"service": app.state.settings.SERVICE_NAME})
    # only dispose an engine that was actually created
    if get_engine.cache_info().currsize:
        await get_engine().dispose()
    stop_queue_logging()


def create_app(settings: Settings | None = None, *, configure_logging: bool = True) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: defaults to `get_settings()`.
        configure_logging: False leaves the logging setup to the caller (tests).
    """
    settings = settings or get_settings()
    if configure_logging:
        setup_logging(settings)

    app = FastAPI(title=settings.SERVICE_NAME, version=get_project_version(), lifespan=lifespan)

    registry = RepositoryRegistry(default_limit=settings.DEFAULT_PAGE_LIMIT)
    queries = UserProjectionQueries()
    app.state.settings = settings
    app.state.normalizer = ErrorNormalizer(development=settings.is_development)
    app.state.registry = registry
    app.state.queries = queries
    app.state.customer_service = CustomerService(registry, queries, service_name=settings.SERVICE_NAME)

    app.add_middleware(RequestIDMiddleware)
    register_exception_handlers(app)
    app.include_router(router, prefix=API_PREFIX)
    return app
