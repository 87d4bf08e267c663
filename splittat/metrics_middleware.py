"""
Prometheus request tracking.

Every request is recorded with its method, matched route template and final
status code. Requests that blow up before a response exists count as 500.
"""

import time
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

UNMATCHED_ROUTE = "unmatched"
SKIPPED_PATHS = frozenset({"/metrics"})


def route_template(request: Request) -> str:
    """``/api/receipts/{receipt_id}`` rather than the concrete path, so ids add no series."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or UNMATCHED_ROUTE


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    Feeds request count and latency into ``track_func``.

    ``track_func`` is called with ``method``, ``endpoint``, ``status_code``
    and ``duration`` (seconds) keyword arguments. Scrapes of ``/metrics``
    are not tracked.
    """

    def __init__(self, app: ASGIApp, track_func: Callable[..., None]) -> None:
        super().__init__(app)
        self.track_func = track_func

    async def dispatch(self, request: Request, call_next):
        if request.url.path in SKIPPED_PATHS:
            return await call_next(request)

        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            self.track_func(
                method=request.method,
                endpoint=route_template(request),
                status_code=status_code,
                duration=time.perf_counter() - start,
            )
