"""FastAPI middleware for request logging and trace IDs."""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

TRACE_HEADER = "X-Request-ID"

# Polled by load balancers; logged at debug level
QUIET_PATHS = frozenset({"/health"})


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log every HTTP request with timing, bound to a per-request trace ID.

    The trace ID comes from an incoming X-Request-ID header (so one ID can
    follow a request from the web client) or is generated, and is echoed on
    the response. Streamed (SSE) responses are timed to their first byte.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        trace_id = request.headers.get(TRACE_HEADER) or uuid.uuid4().hex
        request.state.trace_id = trace_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            trace_id=trace_id,
            method=request.method,
            path=request.url.path,
        )
        log = structlog.get_logger()
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            log.exception("request_failed", error_type=type(e).__name__)
            raise

        emit = log.debug if request.url.path in QUIET_PATHS else log.info
        emit(
            "request",
            status=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
            streamed=response.headers.get("content-type", "").startswith("text/event-stream"),
        )

        response.headers[TRACE_HEADER] = trace_id
        return response
