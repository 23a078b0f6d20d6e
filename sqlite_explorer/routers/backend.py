"""Health check endpoint."""

from pathlib import Path

import structlog
from fastapi import APIRouter, HTTPException, status

from sqlite_explorer.database import utcnow
from sqlite_explorer.dependencies import Context
from sqlite_explorer.models.responses import ErrorResponse, HealthResponse

logger = structlog.get_logger()
router = APIRouter(tags=["backend"])


def _check_path_accessible(path: Path) -> bool:
    """Check if a path exists and is accessible."""
    try:
        return path.exists() and path.is_dir()
    except OSError:
        return False


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"model": ErrorResponse}},
    summary="Health check",
    description="Check if the service is running and storage is accessible.",
)
async def health_check(ctx: Context) -> HealthResponse:
    path_status = {
        name: _check_path_accessible(Path(path))
        for name, path in ctx.settings.storage_paths.items()
    }
    all_healthy = all(path_status.values())

    logger.info(
        "health_check",
        status="ok" if all_healthy else "unhealthy",
        path_status=path_status,
    )

    if not all_healthy:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "error": "storage_unavailable",
                "message": "One or more storage paths are not accessible",
                "details": path_status,
            },
        )

    return HealthResponse(
        status="ok",
        timestamp=utcnow().isoformat() + "Z",
        version=ctx.settings.api_version,
        storage_available=True,
        details=path_status,
    )
