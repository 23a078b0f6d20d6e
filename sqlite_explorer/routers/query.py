"""Query endpoints: execution, history, analytics and saved queries."""

import structlog
from fastapi import APIRouter, Query

from sqlite_explorer.dependencies import Context
from sqlite_explorer.errors import NoConnectionError, NotFoundError, ValidationError
from sqlite_explorer.models.responses import (
    AnalyticsResponse,
    ErrorResponse,
    FavoriteResponse,
    HistoryResponse,
    QueryRequest,
    SavedQueryCreate,
    SavedQueryListResponse,
    SavedQueryResponse,
    SavedQueryUpdate,
    SuccessResponse,
)

logger = structlog.get_logger()
router = APIRouter(prefix="/query", tags=["query"])


@router.post(
    "",
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Execute SQL",
    description=(
        "Run one statement against the open database. Reads return "
        "`{results, columns}`, writes return `{changes, lastInsertId}`."
    ),
)
async def execute_query(request: QueryRequest, ctx: Context) -> dict:
    if not ctx.connections.is_open():
        raise NoConnectionError()
    return ctx.executor.run(request.sql).to_response()


@router.get("/history", response_model=HistoryResponse, summary="Recent query history")
async def get_history(
    ctx: Context,
    limit: int | None = Query(default=None, ge=1, le=1000),
) -> dict:
    return {"history": ctx.history.recent(limit or ctx.settings.history_default_limit)}


@router.get("/saved", response_model=SavedQueryListResponse, summary="List saved queries")
async def list_saved_queries(ctx: Context) -> dict:
    return {"queries": ctx.history.list_saved()}


@router.post(
    "/save",
    response_model=SavedQueryResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Save a query",
)
async def save_query(request: SavedQueryCreate, ctx: Context) -> dict:
    saved = ctx.history.save_query(
        name=request.name,
        query=request.query,
        description=request.description,
        database_path=request.database_path,
        tags=request.tags,
        favorite=request.favorite,
    )
    return {"query": saved}


@router.put(
    "/saved/{query_id}",
    response_model=SavedQueryResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Update a saved query",
)
async def update_saved_query(query_id: int, request: SavedQueryUpdate, ctx: Context) -> dict:
    saved = ctx.history.update_saved(
        query_id,
        name=request.name,
        query=request.query,
        description=request.description,
        database_path=request.database_path,
        tags=request.tags,
        favorite=request.favorite,
    )
    if saved is None:
        raise NotFoundError(f"Saved query {query_id} not found")
    return {"query": saved}


@router.delete(
    "/saved/{query_id}",
    response_model=SuccessResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Delete a saved query",
)
async def delete_saved_query(query_id: int, ctx: Context) -> dict:
    if not ctx.history.delete_saved(query_id):
        raise NotFoundError(f"Saved query {query_id} not found")
    return {"success": True}


@router.post(
    "/favorite/{query_id}",
    response_model=FavoriteResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Toggle favorite",
)
async def toggle_favorite(query_id: int, ctx: Context) -> dict:
    favorite = ctx.history.toggle_favorite(query_id)
    if favorite is None:
        raise NotFoundError(f"Saved query {query_id} not found")
    return {"isFavorite": favorite}


@router.get(
    "/search",
    response_model=SavedQueryListResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Search saved queries",
)
async def search_saved_queries(ctx: Context, term: str | None = None) -> dict:
    if not term or not term.strip():
        raise ValidationError("Search term is required")
    return {"queries": ctx.history.search(term.strip())}


@router.get("/analytics", response_model=AnalyticsResponse, summary="Query analytics")
async def query_analytics(
    ctx: Context,
    days: int = Query(default=30, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
) -> dict:
    return {
        "popular": ctx.history.popular(window_days=days, top_n=limit),
        "slow": ctx.history.slow(top_n=limit),
        "timeRange": {"days": days, "limit": limit},
    }
