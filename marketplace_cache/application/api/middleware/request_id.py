"""
Request ID Middleware

Reads X-Request-ID (or generates a UUID4), binds it to the logging context for
the duration of the request, and echoes it on the response.
"""

import uuid

from fastapi import Request

from marketplace_cache.core.config.constants import HEADER_REQUEST_ID
from marketplace_cache.core.logging.logger import clear_request_id, set_request_id


async def request_id_middleware(request: Request, call_next):
    """Inject a request ID into all requests for log correlation."""
    request_id = request.headers.get(HEADER_REQUEST_ID) or str(uuid.uuid4())
    set_request_id(request_id)

    try:
        response = await call_next(request)
        response.headers[HEADER_REQUEST_ID] = request_id
        return response

    finally:
        clear_request_id()
