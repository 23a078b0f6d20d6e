"""Request and response models for API endpoints."""

from typing import Any

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service status: 'ok' or 'unhealthy'")
    timestamp: str = Field(description="Server time (ISO)")
    version: str = Field(description="API version")
    storage_available: bool = Field(description="Whether storage paths are accessible")
    details: dict[str, bool] | None = Field(
        default=None, description="Detailed status of each storage path"
    )


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str = Field(description="Error type")
    message: str = Field(description="Error message")
    details: Any = Field(default=None, description="Engine message or additional details")


class SuccessResponse(BaseModel):
    success: bool = True


# ============================================
# Database (data file) models
# ============================================


class DatabaseRecord(BaseModel):
    """Catalog record of an uploaded data file."""

    id: int = Field(description="Record identifier")
    name: str = Field(description="Original filename")
    path: str = Field(description="Storage path of the data file")
    size: int = Field(description="File size in bytes at the last scan")
    table_count: int = Field(description="Number of user tables at the last scan")
    is_favorite: bool = Field(default=False, description="Favorite flag")
    notes: str | None = Field(default=None, description="Free-form notes")
    schema_cache: list[dict[str, Any]] | None = Field(
        default=None, description="Tables and columns captured at the last scan"
    )
    schema_updated_at: str | None = Field(default=None, description="Last catalog refresh (ISO)")
    last_accessed: str | None = Field(default=None, description="Last access timestamp (ISO)")
    created_at: str | None = Field(default=None, description="Creation timestamp (ISO)")


class DatabaseResponse(BaseModel):
    database: DatabaseRecord


class DatabaseListResponse(BaseModel):
    databases: list[DatabaseRecord]


class DatabaseUpdate(BaseModel):
    """Request to update a catalog record."""

    name: str | None = Field(default=None, description="Updated display name")
    notes: str | None = Field(default=None, description="Updated notes")
    is_favorite: bool | None = Field(default=None, description="Updated favorite flag")


class ConnectionSummary(BaseModel):
    """The currently open data file."""

    path: str
    name: str
    size: int
    tables: list[str]
    last_accessed: str
    database_id: int | None = None


class ConnectionResponse(BaseModel):
    connection: ConnectionSummary


class TablesResponse(BaseModel):
    tables: list[str]


class ColumnInfo(BaseModel):
    """One PRAGMA table_info row."""

    cid: int
    name: str
    type: str | None = None
    notnull: int
    dflt_value: Any = None
    pk: int


class SchemaResponse(BaseModel):
    table: str
    schema_: list[ColumnInfo] = Field(alias="schema", serialization_alias="schema")


class CatalogColumn(BaseModel):
    name: str
    type: str
    nullable: bool
    primary_key: bool
    default_value: str | None = None


class CatalogTable(BaseModel):
    name: str
    column_count: int
    row_count: int | None = None
    columns: list[CatalogColumn]


class CatalogResponse(BaseModel):
    tables: list[CatalogTable]


# ============================================
# Query models
# ============================================


class QueryRequest(BaseModel):
    sql: str | None = Field(default=None, description="SQL statement to execute")


class HistoryEntry(BaseModel):
    id: int
    query: str
    database_name: str
    database_path: str
    executed_at: str
    execution_time_ms: int
    success: bool
    error_message: str | None = None
    results_path: str | None = None


class HistoryResponse(BaseModel):
    history: list[HistoryEntry]


class SavedQueryCreate(BaseModel):
    """Request to save a query."""

    name: str = Field(min_length=1, description="Display name")
    query: str = Field(min_length=1, description="SQL text")
    description: str | None = None
    database_path: str | None = Field(default=None, description="Data file the query targets")
    tags: list[str] = Field(default_factory=list)
    favorite: bool = False


class SavedQueryUpdate(BaseModel):
    name: str | None = None
    query: str | None = None
    description: str | None = None
    database_path: str | None = None
    tags: list[str] | None = None
    favorite: bool | None = None


class SavedQuery(BaseModel):
    id: int
    name: str
    description: str | None = None
    query: str
    database_path: str | None = None
    tags: list[str] = Field(default_factory=list)
    favorite: bool = False
    created_at: str | None = None
    updated_at: str | None = None


class SavedQueryResponse(BaseModel):
    query: SavedQuery


class SavedQueryListResponse(BaseModel):
    queries: list[SavedQuery]


class FavoriteResponse(BaseModel):
    isFavorite: bool


class PopularQuery(BaseModel):
    normalized_query: str
    query: str
    count: int
    avg_time_ms: float | None = None
    last_executed_at: str | None = None


class TimeRange(BaseModel):
    days: int
    limit: int


class AnalyticsResponse(BaseModel):
    popular: list[PopularQuery]
    slow: list[HistoryEntry]
    timeRange: TimeRange


# ============================================
# Preference models
# ============================================


class PreferenceSet(BaseModel):
    key: str | None = None
    value: Any = None


class PreferencesResponse(BaseModel):
    preferences: dict[str, str]
