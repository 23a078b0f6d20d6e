"""Prometheus metrics endpoint router.

Exposes /metrics for Prometheus scraping and refreshes the catalog and
storage gauges on each scrape.
"""

import sqlite3
from pathlib import Path

import duckdb
import structlog
from fastapi import APIRouter
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from sqlite_explorer.dependencies import AppContext, Context
from sqlite_explorer.metrics import (
    DATABASES_TOTAL,
    HISTORY_ENTRIES_TOTAL,
    SAVED_QUERIES_TOTAL,
    STORAGE_SIZE_BYTES,
    set_service_info,
)

logger = structlog.get_logger()

router = APIRouter(tags=["metrics"])


def get_directory_size(path: Path) -> int:
    """Calculate total size of all files in a directory recursively."""
    total = 0
    if path.exists():
        for item in path.rglob("*"):
            if item.is_file():
                try:
                    total += item.stat().st_size
                except OSError:
                    # File removed between listing and stat
                    continue
    return total


def collect_storage_metrics(ctx: AppContext) -> None:
    """Refresh catalog and storage gauges."""
    try:
        DATABASES_TOTAL.set(ctx.metadata.count_databases())
        HISTORY_ENTRIES_TOTAL.set(ctx.history.count_history())
        SAVED_QUERIES_TOTAL.set(ctx.history.count_saved_queries())

        control_path = Path(ctx.settings.control_db_path)
        if control_path.exists():
            STORAGE_SIZE_BYTES.labels(type="control").set(control_path.stat().st_size)

        STORAGE_SIZE_BYTES.labels(type="databases").set(
            get_directory_size(Path(ctx.settings.databases_dir))
        )
    except (duckdb.Error, OSError) as e:
        logger.error("metrics_collection_failed", error=str(e))


@router.get(
    "/metrics",
    response_class=PlainTextResponse,
    summary="Prometheus metrics endpoint",
    description="Returns metrics in Prometheus text format for scraping.",
)
async def get_metrics(ctx: Context):
    set_service_info(
        version=ctx.settings.api_version,
        duckdb_version=duckdb.__version__,
        sqlite_version=sqlite3.sqlite_version,
    )
    collect_storage_metrics(ctx)

    return PlainTextResponse(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
