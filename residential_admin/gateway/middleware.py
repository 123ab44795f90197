"""
Residential Admin - Security Middleware

Request/response middleware for:
- Request ID injection for tracing (reused from X-Request-ID when sent)
- Security headers
- One access log line per request with its duration
"""

import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from residential_admin.logger import get_logger


logger = get_logger("gateway.access")

MAX_REQUEST_ID_LENGTH = 128


class SecurityMiddleware(BaseHTTPMiddleware):
    """
    Security-focused middleware for all incoming requests.

    Responsibilities:
    1. Set request.state.request_id and echo it as X-Request-ID
    2. Add security headers to the response
    3. Log method, path, status and duration
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process each request through security pipeline."""
        incoming = request.headers.get("X-Request-ID", "")
        request_id = incoming[:MAX_REQUEST_ID_LENGTH] if incoming else str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Cache-Control"] = "no-store"

        logger.info(
            "%s %s -> %d (%.1f ms) [%s]",
            request.method, request.url.path, response.status_code, duration_ms, request_id,
        )

        return response
