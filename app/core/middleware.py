"""HTTP middleware for request ID propagation and correlation.

Every request/response pair carries a request id so rate limiting decisions,
fail-open incidents and errors can be correlated in the logs.

The middleware:
- Accepts the incoming request id header or generates a UUID
- Stores request_id in contextvars for the duration of the request
- Injects request_id and total duration into the response headers
- Copies quota headers onto responses a route built itself

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from app.core.config import settings
from app.core.logging import reset_request_id, set_request_id
from app.core.rate_limit import decision_headers

# Request ids are echoed back in headers and logs; cap what clients can inject
MAX_REQUEST_ID_LENGTH = 128


async def request_id_middleware(request: Request, call_next) -> Response:
    """Propagate a correlation id through the request lifecycle.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The downstream response with request id and duration headers.
    """

    header_name = settings.log.request_id_header
    incoming = request.headers.get(header_name, "")
    request_id = incoming[:MAX_REQUEST_ID_LENGTH] if incoming else str(uuid.uuid4())

    token = set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        reset_request_id(token)

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    for name, value in decision_headers(request).items():
        response.headers.setdefault(name, value)
    return response
