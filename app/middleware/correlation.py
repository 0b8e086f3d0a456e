"""
Correlation ID tracking for request and sweep tracing.

HTTP requests get their IDs from the X-Correlation-ID / X-Request-ID headers
(or freshly generated ones). Background Red Zone sweeps open their own scope
so every log line of one sweep shares a correlation ID.

Usage:
    from app.middleware.correlation import get_request_id, correlation_scope

    with correlation_scope("sweep"):
        ...
"""

import uuid
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Callable, Iterator

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

# Async-safe, isolated per request / per task
correlation_id_ctx: ContextVar[str] = ContextVar("correlation_id", default="")
request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")


def generate_id() -> str:
    """Generate a short unique ID suitable for logging."""
    return str(uuid.uuid4())[:12]


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Extracts or generates correlation/request IDs for every HTTP request
    and echoes them back in the response headers.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID") or generate_id()
        request_id = request.headers.get("X-Request-ID") or generate_id()

        correlation_id_ctx.set(correlation_id)
        request_id_ctx.set(request_id)
        request.state.correlation_id = correlation_id
        request.state.request_id = request_id

        response = await call_next(request)

        response.headers["X-Correlation-ID"] = correlation_id
        response.headers["X-Request-ID"] = request_id
        return response


@contextmanager
def correlation_scope(prefix: str) -> Iterator[str]:
    """Bind a fresh correlation ID for non-HTTP work such as a scheduled sweep."""
    scope_id = f"{prefix}-{generate_id()}"
    corr_token = correlation_id_ctx.set(scope_id)
    req_token = request_id_ctx.set(scope_id)
    try:
        yield scope_id
    finally:
        correlation_id_ctx.reset(corr_token)
        request_id_ctx.reset(req_token)


def get_correlation_id() -> str:
    """Get the current correlation ID from context."""
    return correlation_id_ctx.get() or "unknown"


def get_request_id() -> str:
    """Get the current request ID from context."""
    return request_id_ctx.get() or "unknown"


class CorrelationLogFilter(logging.Filter):
    """Injects correlation IDs into log records for the root handler format."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        record.request_id = get_request_id()
        return True
