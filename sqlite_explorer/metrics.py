"""Prometheus metrics definitions for the SQLite Explorer API.

This module defines all Prometheus metrics used for observability:
- HTTP request metrics (count, duration, in-flight)
- Control database metrics (queries, duration)
- Query execution metrics (by statement kind and outcome)
- Upload metrics
- Catalog gauges (known databases, history size, saved queries)
"""

import platform
import time
from prometheus_client import Counter, Histogram, Gauge, Info
from prometheus_client import ProcessCollector

# ProcessCollector only works on Linux (uses /proc filesystem)
if platform.system() == "Linux":
    try:
        ProcessCollector()
    except ValueError:
        pass  # Already registered on the default registry

# =============================================================================
# Service Health Metrics
# =============================================================================

SERVICE_UP = Gauge(
    "sqlite_explorer_up",
    "Whether the SQLite Explorer API is up (1) or down (0)"
)

SERVICE_START_TIME = Gauge(
    "sqlite_explorer_start_time_seconds",
    "Unix timestamp when the service started"
)

_start_time = time.time()
SERVICE_START_TIME.set(_start_time)
SERVICE_UP.set(1)

# =============================================================================
# HTTP Request Metrics
# =============================================================================

REQUEST_COUNT = Counter(
    "sqlite_explorer_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status_code"]
)

REQUEST_DURATION = Histogram(
    "sqlite_explorer_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

REQUEST_IN_FLIGHT = Gauge(
    "sqlite_explorer_requests_in_flight",
    "Number of HTTP requests currently being processed",
    ["method"]
)

# =============================================================================
# Error Metrics
# =============================================================================

ERROR_COUNT = Counter(
    "sqlite_explorer_errors_total",
    "Total number of errors by type",
    ["type", "endpoint"]
)

# =============================================================================
# Control DB Metrics
# =============================================================================

CONTROL_QUERIES_TOTAL = Counter(
    "sqlite_explorer_control_queries_total",
    "Total control database queries",
    ["operation"]  # read, write
)

CONTROL_QUERY_DURATION = Histogram(
    "sqlite_explorer_control_query_duration_seconds",
    "Control database query duration in seconds",
    ["operation"],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5]
)

CONTROL_CONNECTIONS_ACTIVE = Gauge(
    "sqlite_explorer_control_connections_active",
    "Active connections to the control database"
)

# =============================================================================
# Query Execution Metrics
# =============================================================================

QUERY_EXECUTIONS_TOTAL = Counter(
    "sqlite_explorer_query_executions_total",
    "Total user SQL executions",
    ["kind", "status"]  # kind: read, write; status: success, error
)

QUERY_EXECUTION_DURATION = Histogram(
    "sqlite_explorer_query_execution_duration_seconds",
    "User SQL execution duration in seconds",
    ["kind"],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0, 60.0, 300.0]
)

ACTIVE_CONNECTION = Gauge(
    "sqlite_explorer_active_connection",
    "Whether a data file is currently open (1) or not (0)"
)

# =============================================================================
# Upload Metrics
# =============================================================================

UPLOADS_TOTAL = Counter(
    "sqlite_explorer_uploads_total",
    "Total database uploads",
    ["status"]  # success, rejected, error
)

UPLOAD_BYTES_TOTAL = Counter(
    "sqlite_explorer_upload_bytes_total",
    "Total bytes of accepted uploads"
)

UPLOAD_DURATION = Histogram(
    "sqlite_explorer_upload_duration_seconds",
    "Upload pipeline duration in seconds",
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0]
)

# =============================================================================
# Catalog Metrics
# =============================================================================

DATABASES_TOTAL = Gauge(
    "sqlite_explorer_databases_total",
    "Number of catalogued data files"
)

HISTORY_ENTRIES_TOTAL = Gauge(
    "sqlite_explorer_history_entries_total",
    "Number of query history entries"
)

SAVED_QUERIES_TOTAL = Gauge(
    "sqlite_explorer_saved_queries_total",
    "Number of saved queries"
)

STORAGE_SIZE_BYTES = Gauge(
    "sqlite_explorer_storage_size_bytes",
    "Storage size in bytes",
    ["type"]  # control, databases
)

# =============================================================================
# Service Info
# =============================================================================

SERVICE_INFO = Info(
    "sqlite_explorer_service",
    "SQLite Explorer API service information"
)


def set_service_info(version: str, duckdb_version: str, sqlite_version: str) -> None:
    """Set service info labels."""
    SERVICE_INFO.info({
        "version": version,
        "duckdb_version": duckdb_version,
        "sqlite_version": sqlite_version,
    })
