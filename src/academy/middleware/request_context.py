"""Per-request logging context and access log."""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-Id"

logger = structlog.get_logger()


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind request id, method and path to every log line of a request.

    The id is taken from the incoming header when present and echoed back,
    so admin dashboard errors can be matched to server logs.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - started) * 1000, 1)

        # Health probes are polled constantly
        if not request.url.path.startswith(("/health", "/ready")):
            logger.info("request_completed", status=response.status_code, duration_ms=elapsed_ms)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
