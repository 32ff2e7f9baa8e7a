"""HTTP middleware for request ID propagation and access logging.

The middleware:
- Accepts incoming X-Request-ID header or generates a UUID
- Stores request_id in contextvars for access throughout the request lifecycle
- Injects request_id and total duration into response headers
- Emits one ``http.request`` access log line per request
- Clears context after request completion to prevent context leaks

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from app.core.config import settings
from app.core.logging import clear_request_id, set_request_id

logger = logging.getLogger("app.access")


def client_address(request: Request) -> str:
    """Source address of the request as seen by the server."""
    return request.client.host if request.client else "unknown"


async def request_id_middleware(request: Request, call_next) -> Response:
    """HTTP middleware for request ID generation, propagation and access logs.

    If the client provides an X-Request-ID header (configurable via
    LOG_REQUEST_ID_HEADER), that value is used. Otherwise, a new UUID is
    generated. The ID is propagated back in the response headers and stored in
    contextvars for log correlation.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The response from the next handler with request_id and
            duration headers added.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "http.request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": round(duration_ms, 2),
                "client": client_address(request),
                "user_agent": request.headers.get("user-agent"),
            },
        )
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
