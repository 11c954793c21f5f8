from fastapi import Request

from customer_platform.core.logging.filters import get_request_id
from customer_platform.services.customer_service import CustomerService


def get_customer_service(request: Request) -> CustomerService:
    # built once by the app factory
    return request.app.state.customer_service


def get_current_request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None) or get_request_id()
