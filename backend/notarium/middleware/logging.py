"""
Notarium Backend: Access Log Middleware
=========================================

What:  One log line per request: method, path, status, duration, request id,
       and the X-User-ID the request acted as.
How:   Level follows the status: 5xx → ERROR, 4xx → WARNING, else INFO.
       /health is skipped, probes hit it every few seconds.

Request bodies are never logged; note content and extracted text may hold
personal data.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from notarium.middleware.request_id import request_id_var

logger = logging.getLogger("notarium.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path == "/health":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        status = response.status_code
        if status >= 500:
            level = logging.ERROR
        elif status >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO

        rid = request_id_var.get("") or getattr(request.state, "request_id", "")
        user = request.headers.get("X-User-ID", "-")
        logger.log(
            level,
            "%s %s %d %.1fms [%s] user=%s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            user,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
            },
        )
        return response
