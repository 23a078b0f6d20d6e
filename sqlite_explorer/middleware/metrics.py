"""Prometheus metrics middleware for HTTP request instrumentation.

Collects HTTP request metrics:
- Request count by method, endpoint, status code
- Request duration histogram
- In-flight requests gauge
"""

import time
import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from sqlite_explorer.metrics import (
    REQUEST_COUNT,
    REQUEST_DURATION,
    REQUEST_IN_FLIGHT,
)

logger = structlog.get_logger()

# Literal path segments that follow a collection name but are not ids
_NAMED_ENDPOINTS = {
    "databases": {"upload", "current", "close", "favorites"},
    "saved": set(),
    "favorite": set(),
    "tables": set(),
    "preferences": {"bulk", "theme", "editor", "initialize"},
}

_PLACEHOLDERS = {
    "databases": "{database_id}",
    "saved": "{query_id}",
    "favorite": "{query_id}",
    "tables": "{table}",
    "preferences": "{key}",
}


def normalize_path(path: str) -> str:
    """
    Normalize path for metrics labels to avoid high cardinality.

    Replaces dynamic path segments (ids, table names, preference keys)
    with placeholders.

    Examples:
        /databases/12 -> /databases/{database_id}
        /databases/12/tables/users/schema ->
            /databases/{database_id}/tables/{table}/schema
        /databases/upload -> /databases/upload
        /preferences/editor.fontSize -> /preferences/{key}
    """
    parts = path.strip("/").split("/")
    normalized = []

    i = 0
    while i < len(parts):
        part = parts[i]

        if part in _PLACEHOLDERS and i + 1 < len(parts):
            next_part = parts[i + 1]
            normalized.append(part)
            if next_part in _NAMED_ENDPOINTS[part]:
                normalized.append(next_part)
            else:
                normalized.append(_PLACEHOLDERS[part])
            i += 2
            continue

        normalized.append(part)
        i += 1

    return "/" + "/".join(normalized) if normalized else "/"


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Middleware that collects Prometheus metrics for HTTP requests.

    Metrics collected:
    - sqlite_explorer_requests_total: Counter by method, endpoint, status_code
    - sqlite_explorer_request_duration_seconds: Histogram by method, endpoint
    - sqlite_explorer_requests_in_flight: Gauge by method
    """

    # Endpoints to skip (internal/debug endpoints)
    SKIP_PATHS = {"/metrics", "/docs", "/redoc", "/openapi.json"}

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        method = request.method

        if request.url.path in self.SKIP_PATHS:
            return await call_next(request)

        endpoint = normalize_path(request.url.path)

        REQUEST_IN_FLIGHT.labels(method=method).inc()
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            status_code = str(response.status_code)
        except Exception:
            status_code = "500"
            raise
        finally:
            duration = time.perf_counter() - start_time
            REQUEST_DURATION.labels(method=method, endpoint=endpoint).observe(duration)
            REQUEST_COUNT.labels(
                method=method,
                endpoint=endpoint,
                status_code=status_code
            ).inc()
            REQUEST_IN_FLIGHT.labels(method=method).dec()

        return response
