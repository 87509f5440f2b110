"""
Observability Middleware.

Every ledger API call gets a correlation ID (taken from `X-Correlation-ID`
or generated) that lives in request-scoped context for the whole call. The
log filter below stamps it on every record, so an atomic-unit rollback, a
stale-view warning or a front-desk notification can be traced back to the
request that caused it.
"""

import time
import uuid
import logging
from contextvars import ContextVar
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

CORRELATION_HEADER = "X-Correlation-ID"

# Configure structured logger
logger = logging.getLogger("gym")

_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> Optional[str]:
    """Correlation ID of the request being served, None outside a request."""
    return _correlation_id.get()


class CorrelationIdFilter(logging.Filter):
    """Adds `correlation_id` to every record passing through a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "correlation_id", None) is None:
            record.correlation_id = get_correlation_id() or "-"
        return True


def install_log_correlation(handlers) -> None:
    for handler in handlers:
        if not any(isinstance(f, CorrelationIdFilter) for f in handler.filters):
            handler.addFilter(CorrelationIdFilter())


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        # 1. Generate or extract Correlation ID, visible to everything downstream
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        token = _correlation_id.set(correlation_id)

        start_time = time.time()
        try:
            response = await call_next(request)
        finally:
            _correlation_id.reset(token)

        process_time = (time.time() - start_time) * 1000  # ms

        response.headers[CORRELATION_HEADER] = correlation_id
        response.headers["X-Process-Time"] = str(process_time)

        # 2. Structured Log
        log_data = {
            "correlation_id": correlation_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round(process_time, 2),
            "ip": request.client.host if request.client else "unknown"
        }

        # Ledger conflicts (409) are front-desk mistakes, not service faults
        if response.status_code >= 500:
            logger.error("Request Failed", extra=log_data)
        elif response.status_code >= 400:
            logger.warning("Request Error", extra=log_data)
        else:
            logger.info("Request API", extra=log_data)

        return response
