"""Middleware for monitoring HTTP requests."""

import time
from typing import Awaitable, Callable

from fastapi import Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response as StarletteResponse

from src.metrics import APPLICATION_ERRORS, REQUEST_COUNT, REQUEST_DURATION


def endpoint_label(request: Request) -> str:
    """Route template (``/restaurants/{restaurant_id}/menu``) rather than the
    concrete path, so ids do not explode label cardinality."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class MetricsMiddleware(BaseHTTPMiddleware):
    """Count requests and observe their duration per route."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> StarletteResponse:
        start_time = time.perf_counter()

        response = await call_next(request)

        endpoint = endpoint_label(request)
        REQUEST_COUNT.labels(
            method=request.method,
            endpoint=endpoint,
            status=response.status_code,
        ).inc()
        REQUEST_DURATION.labels(
            method=request.method,
            endpoint=endpoint,
        ).observe(time.perf_counter() - start_time)

        return response


class ErrorTrackingMiddleware(BaseHTTPMiddleware):
    """Count 5xx responses and unhandled exceptions."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> StarletteResponse:
        try:
            response = await call_next(request)
        except Exception:
            APPLICATION_ERRORS.labels(
                type="unhandled_exception",
                endpoint=endpoint_label(request),
            ).inc()
            raise

        if response.status_code >= 500:
            APPLICATION_ERRORS.labels(
                type="http_5xx",
                endpoint=endpoint_label(request),
            ).inc()
        return response


def metrics_endpoint() -> Response:
    """Prometheus exposition of the default registry."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
