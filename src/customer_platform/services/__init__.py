from .customer_service import CustomerService, REQUIRED_CUSTOMER_FIELDS

__all__ = ["CustomerService", "REQUIRED_CUSTOMER_FIELDS"]
