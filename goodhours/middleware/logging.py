"""Request logging with a per-request correlation id."""
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger("goodhours.requests")

CORRELATION_HEADER = "X-Correlation-ID"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with a correlation id and log its outcome.

    An incoming ``X-Correlation-ID`` header is reused so ids can be followed
    across services; otherwise a fresh one is minted. The id is exposed on
    ``request.state.correlation_id`` for error handlers and echoed back.
    """

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = int((time.perf_counter() - start) * 1000)
            logger.exception(
                f"{request.method} {request.url.path} failed after {duration_ms}ms "
                f"correlation_id={correlation_id}"
            )
            raise
        duration_ms = int((time.perf_counter() - start) * 1000)
        response.headers[CORRELATION_HEADER] = correlation_id
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"({duration_ms}ms) correlation_id={correlation_id}"
        )
        return response
