"""Data file endpoints: upload, catalog, open/close and per-file queries."""

from pathlib import Path
from typing import Any

import structlog
from fastapi import APIRouter, File, UploadFile

from sqlite_explorer.connection import list_tables, open_data_file, table_schema
from sqlite_explorer.dependencies import AppContext, Context
from sqlite_explorer.errors import NotFoundError, ValidationError
from sqlite_explorer.models.responses import (
    CatalogResponse,
    ConnectionResponse,
    DatabaseListResponse,
    DatabaseResponse,
    DatabaseUpdate,
    ErrorResponse,
    QueryRequest,
    SchemaResponse,
    SuccessResponse,
    TablesResponse,
)

logger = structlog.get_logger()
router = APIRouter(prefix="/databases", tags=["databases"])


def _get_record(ctx: AppContext, database_id: int) -> dict[str, Any]:
    record = ctx.metadata.find_by_id(database_id)
    if record is None:
        raise NotFoundError(f"Database {database_id} not found")
    return record


# Literal paths are registered before /{database_id} so they are not
# captured by the id parameter.


@router.get("", response_model=DatabaseListResponse, summary="List databases")
async def list_databases(ctx: Context) -> dict:
    return {"databases": ctx.metadata.list_databases()}


@router.get("/favorites", response_model=DatabaseListResponse, summary="List favorite databases")
async def list_favorite_databases(ctx: Context) -> dict:
    return {"databases": ctx.metadata.list_favorites()}


@router.post(
    "/upload",
    response_model=DatabaseResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Upload a SQLite database",
    description=(
        "Store, validate and catalog an uploaded file, then open it. "
        "A missing file is a 400; any later failure is a 500 with details."
    ),
)
async def upload_database(ctx: Context, file: UploadFile | None = File(None)) -> dict:
    if file is None:
        raise ValidationError("No file provided")

    logger.info("upload_received", filename=file.filename, size_bytes=file.size)

    # The multipart parser has already spooled the body; copy it in chunks
    record = ctx.uploads.accept(file.file, file.filename)
    ctx.connections.open(record["path"], record["name"], record["id"])
    return {"database": record}


@router.get(
    "/current",
    response_model=ConnectionResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Current connection",
)
async def current_database(ctx: Context) -> dict:
    return {"connection": ctx.connections.current_summary().to_dict()}


@router.post("/close", response_model=SuccessResponse, summary="Close current connection")
async def close_database(ctx: Context) -> dict:
    ctx.connections.close()
    return {"success": True}


@router.get(
    "/{database_id}",
    response_model=DatabaseResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get database",
)
async def get_database(database_id: int, ctx: Context) -> dict:
    return {"database": _get_record(ctx, database_id)}


@router.put(
    "/{database_id}",
    response_model=DatabaseResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Update database",
)
async def update_database(database_id: int, request: DatabaseUpdate, ctx: Context) -> dict:
    record = ctx.metadata.update(
        database_id,
        name=request.name,
        notes=request.notes,
        is_favorite=request.is_favorite,
    )
    if record is None:
        raise NotFoundError(f"Database {database_id} not found")
    return {"database": record}


@router.delete(
    "/{database_id}",
    response_model=SuccessResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Delete database",
    description="Delete the stored file and its catalog record.",
)
async def delete_database(database_id: int, ctx: Context) -> dict:
    record = _get_record(ctx, database_id)

    if ctx.connections.is_open() and ctx.connections.current_summary().path == record["path"]:
        ctx.connections.close()

    deleted = ctx.uploads.discard(record)
    logger.info("database_deleted", id=database_id, deleted=deleted)
    return {"success": deleted}


@router.post(
    "/{database_id}/open",
    response_model=ConnectionResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Open database",
    description="Make a catalogued database the active connection.",
)
async def open_database(database_id: int, ctx: Context) -> dict:
    record = _get_record(ctx, database_id)
    summary = ctx.connections.open(record["path"], record["name"], record["id"])
    ctx.metadata.touch(database_id)
    return {"connection": summary.to_dict()}


@router.post(
    "/{database_id}/rescan",
    response_model=DatabaseResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Rescan database",
)
async def rescan_database(database_id: int, ctx: Context) -> dict:
    return {"database": ctx.uploads.rescan(database_id)}


@router.get(
    "/{database_id}/catalog",
    response_model=CatalogResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Stored table catalog",
)
async def get_catalog(database_id: int, ctx: Context) -> dict:
    _get_record(ctx, database_id)
    return {"tables": ctx.metadata.catalog(database_id)}


@router.get(
    "/{database_id}/tables",
    response_model=TablesResponse,
    responses={404: {"model": ErrorResponse}},
    summary="List tables",
)
async def get_tables(database_id: int, ctx: Context) -> dict:
    record = _get_record(ctx, database_id)
    with open_data_file(Path(record["path"]), read_only=True) as conn:
        return {"tables": list_tables(conn)}


@router.get(
    "/{database_id}/tables/{table_name}/schema",
    response_model=SchemaResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Table schema",
)
async def get_table_schema(database_id: int, table_name: str, ctx: Context) -> dict:
    record = _get_record(ctx, database_id)
    with open_data_file(Path(record["path"]), read_only=True) as conn:
        return {"table": table_name, "schema": table_schema(conn, table_name)}


@router.post(
    "/{database_id}/query",
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Query a database",
    description="Run one statement against a catalogued database without opening it.",
)
async def query_database(database_id: int, request: QueryRequest, ctx: Context) -> dict:
    record = _get_record(ctx, database_id)
    outcome = ctx.executor.run_on_file(record, request.sql)
    return outcome.to_response()
