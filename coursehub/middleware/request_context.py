"""Request context middleware.

Every request gets an id (the caller's ``X-Request-ID`` header, or a new
UUID) that is stored in a ContextVar and stamped on every log record
emitted while the request is handled.  The id is echoed back in the
response header, and one summary line is logged per request with its
method, path, status and duration.

The authenticated user, once ``require_user`` has resolved it, is kept in
a second ContextVar so service log lines can be correlated per user.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")
user_id_var: ContextVar[str] = ContextVar("user_id", default="-")


class _RequestContextFilter(logging.Filter):
    """Copies the request context ContextVars onto each LogRecord."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get("-")  # type: ignore[attr-defined]
        if not hasattr(record, "user_id"):
            record.user_id = user_id_var.get("-")  # type: ignore[attr-defined]
        return True


# Filters on the root logger only see records logged to the root logger
# itself, so the filter is attached to the root handlers as well.
_context_filter = _RequestContextFilter()


def install_context_filter() -> None:
    root = logging.getLogger()
    for handler in root.handlers:
        if not any(isinstance(f, _RequestContextFilter) for f in handler.filters):
            handler.addFilter(_context_filter)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assigns a request id, times the request, and logs a summary line."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request_token = request_id_var.set(req_id)
        user_token = user_id_var.set("-")

        start = time.monotonic()
        try:
            response = await call_next(request)
            duration_ms = round((time.monotonic() - start) * 1000, 1)

            logger.info(
                "%s %s → %d (%.1fms)",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                extra={
                    "request_id": req_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                },
            )
        finally:
            request_id_var.reset(request_token)
            user_id_var.reset(user_token)

        response.headers["X-Request-ID"] = req_id
        return response
