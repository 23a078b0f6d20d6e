"""User preference endpoints."""

from typing import Any

import structlog
from fastapi import APIRouter, Body

from sqlite_explorer.dependencies import Context
from sqlite_explorer.errors import ValidationError
from sqlite_explorer.models.responses import (
    ErrorResponse,
    PreferenceSet,
    PreferencesResponse,
    SuccessResponse,
)

logger = structlog.get_logger()
router = APIRouter(prefix="/preferences", tags=["preferences"])


def stringify(value: Any) -> str:
    """Preference values are stored as text; booleans as 'true'/'false'."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@router.get("", response_model=PreferencesResponse, summary="All preferences")
async def get_preferences(ctx: Context) -> dict:
    return {"preferences": ctx.metadata.all_preferences()}


@router.post(
    "",
    response_model=SuccessResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Set a preference",
)
async def set_preference(request: PreferenceSet, ctx: Context) -> dict:
    if not request.key or request.value is None:
        raise ValidationError("Key and value are required")
    ctx.metadata.set_preference(request.key, stringify(request.value))
    return {"success": True}


@router.post(
    "/bulk",
    response_model=SuccessResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Set several preferences",
)
async def set_preferences_bulk(ctx: Context, values: dict[str, Any] = Body(...)) -> dict:
    if not values:
        raise ValidationError("At least one preference is required")
    if any(not key or value is None for key, value in values.items()):
        raise ValidationError("Every preference needs a key and a value")

    ctx.metadata.set_preferences({key: stringify(value) for key, value in values.items()})
    return {"success": True}


@router.get("/theme", response_model=PreferencesResponse, summary="Theme preferences")
async def get_theme_preferences(ctx: Context) -> dict:
    return {"preferences": ctx.metadata.preferences_with_prefix("theme.")}


@router.get("/editor", response_model=PreferencesResponse, summary="Editor preferences")
async def get_editor_preferences(ctx: Context) -> dict:
    return {"preferences": ctx.metadata.preferences_with_prefix("editor.")}


@router.post("/initialize", response_model=SuccessResponse, summary="Initialize defaults")
async def initialize_preferences(ctx: Context) -> dict:
    ctx.metadata.initialize_default_preferences()
    return {"success": True}


@router.delete("/{key}", response_model=SuccessResponse, summary="Delete a preference")
async def delete_preference(key: str, ctx: Context) -> dict:
    ctx.metadata.delete_preference(key)
    return {"success": True}
