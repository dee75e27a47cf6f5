"""
Correlation id middleware

Reads ``X-Request-ID`` (or generates a UUID4 when it is missing), exposes it
as ``request.state.request_id``, binds it into the structlog context so every
log record of the request carries it, and echoes it back in the response
header of the same name.
"""
import time
import uuid

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Assign or propagate a per-request correlation id"""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            start = time.perf_counter()
            response = await call_next(request)
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            logger.info(
                f"{request.method} {request.url.path} {response.status_code} {duration_ms}ms",
                meta={"method": request.method, "path": request.url.path,
                      "status": response.status_code, "duration_ms": duration_ms},
            )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
