from .customers import router
from .error_handlers import register_exception_handlers

__all__ = ["router", "register_exception_handlers"]
