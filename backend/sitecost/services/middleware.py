"""Request timing and tracing middleware for SiteCost."""
import time
import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("sitecost-api.middleware")

SKIP_LOG_PATHS = {"/health"}
DEFAULT_SLOW_REQUEST_MS = 2000.0


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with an X-Request-ID, times it, and logs one line.

    Rollup and dashboard endpoints fan out into many sequential store queries
    with no per-query timeout, so a request slower than ``slow_request_ms``
    is logged at WARNING to make a slow sub-query visible.
    """

    def __init__(self, app, slow_request_ms: float = DEFAULT_SLOW_REQUEST_MS):
        super().__init__(app)
        self.slow_request_ms = slow_request_ms

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start_time = time.perf_counter()
        request.state.request_id = request_id

        response: Response = await call_next(request)

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(duration_ms)

        if request.url.path in SKIP_LOG_PATHS:
            return response

        extra = {
            "http_method": request.method,
            "http_path": request.url.path,
            "http_status": response.status_code,
            "request_id": request_id,
            "duration_ms": duration_ms,
        }
        if duration_ms > self.slow_request_ms:
            logger.warning("slow request", extra=extra)
        else:
            logger.info("request completed", extra=extra)
        return response
