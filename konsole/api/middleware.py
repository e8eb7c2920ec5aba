"""Per-request correlation ids and access logging."""

import time
from uuid import uuid4

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

CORRELATION_HEADER = "X-Correlation-Id"

logger = structlog.get_logger(__name__)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Tag every request with a correlation id.

    An incoming ``X-Correlation-Id`` is reused, otherwise a UUID4 is
    generated. The id, method and path are bound to the structlog context so
    forwarding logs carry them, the id is echoed in the response header, and
    one ``request_completed`` entry records status and latency.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid4())
        request.state.correlation_id = correlation_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id,
            http_method=request.method,
            http_path=request.url.path,
        )

        start_time = time.perf_counter()
        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id

        logger.info(
            "request_completed",
            status_code=response.status_code,
            latency_ms=int((time.perf_counter() - start_time) * 1000),
        )
        return response
