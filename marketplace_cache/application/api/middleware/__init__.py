from .error_handler import ErrorHandlingMiddleware, register_exception_handlers
from .request_id import request_id_middleware

__all__ = [
    "ErrorHandlingMiddleware",
    "register_exception_handlers",
    "request_id_middleware",
]
