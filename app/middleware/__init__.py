"""
Middleware modules for the Customer Success API.

Provides correlation ID tracking for requests and background sweeps.
"""

from .correlation import (
    CorrelationIdMiddleware,
    CorrelationLogFilter,
    correlation_id_ctx,
    correlation_scope,
    request_id_ctx,
)

__all__ = [
    "CorrelationIdMiddleware",
    "CorrelationLogFilter",
    "correlation_id_ctx",
    "correlation_scope",
    "request_id_ctx",
]
