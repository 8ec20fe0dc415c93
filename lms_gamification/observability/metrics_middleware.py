"""
FastAPI middleware for automatic Prometheus metrics collection.

This middleware automatically tracks:
- Request counts by endpoint, method, and status code
- Request latency histograms
- Requests in progress (concurrent requests)
"""

import logging
import time
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from lms_gamification.observability.metrics import (
    http_requests_total,
    http_request_duration_seconds,
    http_requests_in_progress,
)

logger = logging.getLogger(__name__)

# Path segments followed by a free-form identifier
_ID_PARENTS = {"users": "{user_id}"}


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    Middleware to collect Prometheus metrics for HTTP requests.

    Automatically tracks:
    - Total requests (counter) by method, endpoint, status
    - Request duration (histogram) by method, endpoint
    - Requests in progress (gauge) by method, endpoint
    """

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        method = request.method
        path = self._normalize_path(request.url.path)

        http_requests_in_progress.labels(method=method, endpoint=path).inc()
        start_time = time.time()

        try:
            response = await call_next(request)
            status_code = response.status_code

        except Exception as e:
            logger.error(f"Request failed: {e}", exc_info=True)
            status_code = 500
            raise

        finally:
            http_requests_in_progress.labels(method=method, endpoint=path).dec()

            duration = time.time() - start_time

            http_requests_total.labels(
                method=method, endpoint=path, status=status_code
            ).inc()

            http_request_duration_seconds.labels(
                method=method, endpoint=path
            ).observe(duration)

        return response

    def _normalize_path(self, path: str) -> str:
        """
        Normalize request path to reduce cardinality.

        For example:
        - /api/v1/users/alice/stats -> /api/v1/users/{user_id}/stats
        - /api/v1/items/123 -> /api/v1/items/{id}

        Args:
            path: The raw request path

        Returns:
            Normalized path pattern
        """
        if path in ["/metrics", "/api/health", "/"]:
            return path

        parts = path.strip("/").split("/")

        normalized_parts = []
        previous = None
        for part in parts:
            if previous in _ID_PARENTS:
                normalized_parts.append(_ID_PARENTS[previous])
            elif part.isdigit():
                normalized_parts.append("{id}")
            elif self._is_uuid(part):
                normalized_parts.append("{uuid}")
            else:
                normalized_parts.append(part)
            previous = part

        return "/" + "/".join(normalized_parts)

    def _is_uuid(self, value: str) -> bool:
        """Check if a string looks like a UUID (8-4-4-4-12 hex digits)"""
        parts = value.split("-")
        if len(parts) != 5:
            return False

        try:
            for part in parts:
                int(part, 16)
            return True
        except ValueError:
            return False


def setup_metrics_middleware(app):
    """
    Add Prometheus metrics middleware to FastAPI application.

    Args:
        app: FastAPI application instance
    """
    from lms_gamification.config import ENABLE_METRICS

    if not ENABLE_METRICS:
        logger.info("Metrics collection is disabled (ENABLE_METRICS=false)")
        return

    app.add_middleware(PrometheusMiddleware)
    logger.info("Prometheus metrics middleware added to FastAPI")
