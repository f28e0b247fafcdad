"""
Per-request access log for the quotes API.

Only method, path, status and timing are recorded. Query strings carry user
ids and symbol lists, so they never reach the log.
"""
import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

# Polled by load balancers; keep them out of INFO.
QUIET_PATHS = frozenset({"/health"})


def _level_for(path: str, status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.DEBUG if path in QUIET_PATHS else logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
        response.headers["X-Response-Time-Ms"] = f"{elapsed_ms:.1f}"

        logger.log(
            _level_for(path, response.status_code),
            "%s %s -> %s in %.1fms",
            request.method, path, response.status_code, elapsed_ms,
            extra={"http_method": request.method, "path": path, "status": response.status_code, "duration_ms": elapsed_ms},
        )
        return response
