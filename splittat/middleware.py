"""
Middleware components for request handling and logging.

Binds a request ID to the logging context for every request, echoes it in
the ``X-Request-ID`` response header and logs request timing, flagging slow
requests.
"""

import time
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .config import settings
from .logging_config import clear_request_id, get_logger, set_request_id

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for request and response logging.

    Logs every request with method, path, status code and duration, using
    the caller's request ID when one is supplied.
    """

    def __init__(self, app: ASGIApp, slow_request_threshold_ms: Optional[float] = None) -> None:
        """
        Initialize request logging middleware.

        Args:
            app: ASGI application instance
            slow_request_threshold_ms: Duration above which a request is
                logged as a warning
        """
        super().__init__(app)
        self.slow_request_threshold_ms = (
            slow_request_threshold_ms
            if slow_request_threshold_ms is not None
            else settings.SLOW_REQUEST_THRESHOLD_MS
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER) or None)
        request.state.request_id = request_id

        start_time = time.perf_counter()
        logger.debug(
            "Request started",
            method=request.method,
            path=request.url.path,
            client_host=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)

            duration_ms = (time.perf_counter() - start_time) * 1000
            response.headers[REQUEST_ID_HEADER] = request_id

            fields = dict(
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )
            if duration_ms > self.slow_request_threshold_ms:
                logger.warning("Slow request", **fields)
            else:
                logger.info("Request completed", **fields)
            return response
        except Exception as exc:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                "Request failed",
                method=request.method,
                path=request.url.path,
                duration_ms=round(duration_ms, 2),
                error=str(exc),
            )
            raise
        finally:
            clear_request_id()
