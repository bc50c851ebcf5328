"""
Error Handling - Exception Handlers and Catch-All Middleware
============================================================

STATUS MAPPING:
---------------
    MarketplaceError subclasses → exc.status_code (400 validation,
                                  502/504 data source, 500 otherwise)
    anything unhandled          → 500 (middleware)

Every MarketplaceError response body is ``exc.to_dict()``, carrying the
request ID so clients can quote it when reporting a failure.

Cache failures never reach this layer; the cache client absorbs them.
"""

import traceback
from collections.abc import Callable

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from marketplace_cache.core.config.constants import HEADER_REQUEST_ID
from marketplace_cache.core.exceptions import MarketplaceError
from marketplace_cache.core.logging.logger import get_logger, get_request_id

logger = get_logger(__name__)


async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    """Render any MarketplaceError with the status its class declares."""
    if exc.request_id is None:
        exc.request_id = get_request_id()

    log = logger.info if exc.status_code < 500 else logger.error
    log(
        "Request failed",
        path=request.url.path,
        status_code=exc.status_code,
        error_type=type(exc).__name__,
        message=exc.message,
        details=exc.details,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers={HEADER_REQUEST_ID: exc.request_id or ""},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the handler for the MarketplaceError hierarchy."""
    app.add_exception_handler(MarketplaceError, marketplace_error_handler)


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Last line of defense for exceptions no handler claimed.

    Logs full details server-side and returns a generic 500 body; tracebacks
    are included only when ``include_traceback`` is set (development).
    """

    def __init__(self, app, include_traceback: bool = False):
        super().__init__(app)
        self.include_traceback = include_traceback

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)

        except Exception as e:
            method = request.method
            path = request.url.path
            error_type = type(e).__name__

            logger.error(
                f"Unhandled exception in request: {method} {path}",
                method=method,
                path=path,
                error_type=error_type,
                error_message=str(e),
                exc_info=True,
            )

            error_response = {
                "error": "internal_server_error",
                "message": "An unexpected error occurred while processing your request",
                "error_type": error_type,
                "request_id": get_request_id(),
            }

            if self.include_traceback:
                error_response["traceback"] = traceback.format_exc()
                error_response["detail"] = str(e)

            return JSONResponse(status_code=500, content=error_response)
