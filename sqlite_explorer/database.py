"""Control database management - ControlDB connections and MetadataStore.

The control database is a single DuckDB file holding the catalog of uploaded
SQLite data files, their table/column catalog, query history, saved queries
and user preferences. User data files themselves are never stored here.

database_tables.database_id and database_columns.table_id reference their
parent rows but carry no FOREIGN KEY clause: DuckDB checks a parent delete
against committed index state, so children and parent cannot be removed in
one transaction. MetadataStore owns the references instead and writes the
catalog and its cascade atomically.
"""

import json
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator

import duckdb
import structlog

from sqlite_explorer import metrics
from sqlite_explorer.errors import StorageError, ValidationError

logger = structlog.get_logger()


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (control DB stores TIMESTAMP)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_json(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError):
            return None
    return value


# ============================================
# Schema definitions
# ============================================

CONTROL_SCHEMA = """
-- Catalog of uploaded data files
CREATE SEQUENCE IF NOT EXISTS database_metadata_seq;

CREATE TABLE IF NOT EXISTS database_metadata (
    id BIGINT DEFAULT nextval('database_metadata_seq') PRIMARY KEY,
    name VARCHAR NOT NULL,
    path VARCHAR NOT NULL UNIQUE,
    size BIGINT NOT NULL,
    table_count INTEGER NOT NULL,
    last_accessed TIMESTAMP NOT NULL,
    is_favorite BOOLEAN NOT NULL DEFAULT false,
    notes VARCHAR,
    schema_cache JSON,
    schema_updated_at TIMESTAMP,
    created_at TIMESTAMP NOT NULL
);

-- Tables found in each data file at the last scan
-- database_id -> database_metadata.id
CREATE SEQUENCE IF NOT EXISTS database_tables_seq;

CREATE TABLE IF NOT EXISTS database_tables (
    id BIGINT DEFAULT nextval('database_tables_seq') PRIMARY KEY,
    database_id BIGINT NOT NULL,
    table_name VARCHAR NOT NULL,
    column_count INTEGER NOT NULL,
    row_count BIGINT,
    created_at TIMESTAMP NOT NULL
);

-- Columns of each catalogued table
-- table_id -> database_tables.id
CREATE SEQUENCE IF NOT EXISTS database_columns_seq;

CREATE TABLE IF NOT EXISTS database_columns (
    id BIGINT DEFAULT nextval('database_columns_seq') PRIMARY KEY,
    table_id BIGINT NOT NULL,
    name VARCHAR NOT NULL,
    type VARCHAR NOT NULL,
    nullable BOOLEAN NOT NULL,
    primary_key BOOLEAN NOT NULL,
    default_value VARCHAR,
    created_at TIMESTAMP NOT NULL
);

-- Query history (append-only audit log)
-- database_name/database_path are copied, not referenced: history outlives
-- the catalog record it was run against.
CREATE SEQUENCE IF NOT EXISTS query_history_seq;

CREATE TABLE IF NOT EXISTS query_history (
    id BIGINT DEFAULT nextval('query_history_seq') PRIMARY KEY,
    query VARCHAR NOT NULL,
    database_name VARCHAR NOT NULL,
    database_path VARCHAR NOT NULL,
    executed_at TIMESTAMP NOT NULL,
    execution_time_ms INTEGER NOT NULL,
    success BOOLEAN NOT NULL,
    error_message VARCHAR,
    results_path VARCHAR
);

CREATE INDEX IF NOT EXISTS idx_query_history_database_path ON query_history(database_path);

-- Saved queries
CREATE SEQUENCE IF NOT EXISTS saved_queries_seq;

CREATE TABLE IF NOT EXISTS saved_queries (
    id BIGINT DEFAULT nextval('saved_queries_seq') PRIMARY KEY,
    name VARCHAR NOT NULL,
    description VARCHAR,
    query VARCHAR NOT NULL,
    database_path VARCHAR,
    tags JSON,
    favorite BOOLEAN NOT NULL DEFAULT false,
    created_at TIMESTAMP NOT NULL,
    updated_at TIMESTAMP NOT NULL
);

-- User preferences (key/value, upsert semantics)
CREATE SEQUENCE IF NOT EXISTS user_preferences_seq;

CREATE TABLE IF NOT EXISTS user_preferences (
    id BIGINT DEFAULT nextval('user_preferences_seq') PRIMARY KEY,
    key VARCHAR NOT NULL UNIQUE,
    value VARCHAR NOT NULL,
    updated_at TIMESTAMP NOT NULL
);
"""

DEFAULT_PREFERENCES: dict[str, str] = {
    "theme.mode": "system",
    "theme.accentColor": "blue",
    "editor.fontSize": "14",
    "editor.tabSize": "2",
    "editor.wordWrap": "true",
    "editor.lineNumbers": "true",
    "query.historyLimit": "50",
}


class ControlDB:
    """
    Connection management for the control database file.

    Every operation opens a short-lived DuckDB connection; DuckDB shares one
    database instance per file within the process.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)

    def initialize(self) -> None:
        """Create the control database file and schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = duckdb.connect(str(self.db_path))
        try:
            conn.execute(CONTROL_SCHEMA)
            logger.info("control_db_schema_created", path=str(self.db_path))
        finally:
            conn.close()

    @contextmanager
    def connection(self) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        """
        Get a connection to the control database.

        Usage:
            with control_db.connection() as conn:
                conn.execute("SELECT * FROM database_metadata")
        """
        metrics.CONTROL_CONNECTIONS_ACTIVE.inc()
        conn = duckdb.connect(str(self.db_path))
        try:
            yield conn
        finally:
            conn.close()
            metrics.CONTROL_CONNECTIONS_ACTIVE.dec()

    @contextmanager
    def transaction(self) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        """
        Run a block of statements atomically.

        Commits when the block exits normally, rolls back and re-raises on
        any exception so callers never observe a half-written row.
        """
        start_time = time.time()
        with self.connection() as conn:
            conn.begin()
            try:
                yield conn
            except BaseException:
                conn.rollback()
                raise
            else:
                conn.commit()
            finally:
                duration = time.time() - start_time
                metrics.CONTROL_QUERIES_TOTAL.labels(operation="write").inc()
                metrics.CONTROL_QUERY_DURATION.labels(operation="write").observe(duration)

    def execute(self, query: str, params: list | None = None) -> list[tuple]:
        """Execute a read query and return results."""
        start_time = time.time()
        try:
            with self.connection() as conn:
                if params:
                    return conn.execute(query, params).fetchall()
                return conn.execute(query).fetchall()
        finally:
            duration = time.time() - start_time
            metrics.CONTROL_QUERIES_TOTAL.labels(operation="read").inc()
            metrics.CONTROL_QUERY_DURATION.labels(operation="read").observe(duration)

    def execute_one(self, query: str, params: list | None = None) -> tuple | None:
        """Execute a query and return single result."""
        results = self.execute(query, params)
        return results[0] if results else None

    def execute_write(self, query: str, params: list | None = None) -> int:
        """Execute a write query (INSERT, UPDATE, DELETE) and return affected rows."""
        start_time = time.time()
        try:
            with self.connection() as conn:
                if params:
                    result = conn.execute(query, params).fetchone()
                else:
                    result = conn.execute(query).fetchone()
                return result[0] if result else 0
        finally:
            duration = time.time() - start_time
            metrics.CONTROL_QUERIES_TOTAL.labels(operation="write").inc()
            metrics.CONTROL_QUERY_DURATION.labels(operation="write").observe(duration)


class MetadataStore:
    """
    Catalog of uploaded data files plus their table/column catalog and the
    user preference store.

    Read operations log failures and return None/empty so callers that can
    tolerate absence never see control-database errors. Writes that the
    upload path depends on raise StorageError instead.
    """

    def __init__(self, control_db: ControlDB) -> None:
        self._db = control_db

    # ========================================
    # Data file records
    # ========================================

    def create(
        self,
        name: str,
        path: str,
        size: int,
        table_count: int,
        is_favorite: bool = False,
        notes: str | None = None,
        schema_cache: Any = None,
    ) -> dict[str, Any]:
        """
        Register a new data file.

        Insert and re-select happen inside one transaction so the returned
        record is exactly what was committed.
        """
        now = utcnow()
        try:
            with self._db.transaction() as conn:
                existing = conn.execute(
                    "SELECT id FROM database_metadata WHERE path = ?", [path]
                ).fetchone()
                if existing:
                    raise ValidationError(
                        f"A database is already registered at {path}",
                        details={"id": existing[0], "path": path},
                    )

                inserted = conn.execute(
                    """
                    INSERT INTO database_metadata (
                        name, path, size, table_count, last_accessed,
                        is_favorite, notes, schema_cache, schema_updated_at, created_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    RETURNING id
                    """,
                    [
                        name, path, size, table_count, now,
                        is_favorite, notes,
                        json.dumps(schema_cache) if schema_cache is not None else None,
                        now if schema_cache is not None else None,
                        now,
                    ],
                ).fetchone()

                row = conn.execute(
                    "SELECT * FROM database_metadata WHERE id = ?", [inserted[0]]
                ).fetchone()
                if row is None:
                    raise StorageError(f"Failed to retrieve inserted record {inserted[0]}")
        except duckdb.Error as e:
            logger.error("database_metadata_create_failed", path=path, error=str(e))
            raise StorageError("Failed to create database metadata", details=str(e)) from e

        logger.info("database_metadata_created", id=row[0], name=name, path=path)
        return self._row_to_record(row)

    def upsert(
        self,
        name: str,
        path: str,
        size: int,
        table_count: int,
        is_favorite: bool | None = None,
        notes: str | None = None,
        tables: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        """
        Insert a record for ``path`` or refresh the existing one.

        An existing record keeps its favorite flag and notes unless new
        values are supplied. When ``tables`` is given, the table/column
        catalog is replaced in the same transaction.
        """
        now = utcnow()
        try:
            with self._db.transaction() as conn:
                existing = conn.execute(
                    "SELECT id FROM database_metadata WHERE path = ?", [path]
                ).fetchone()

                if existing:
                    record_id = existing[0]
                    conn.execute(
                        """
                        UPDATE database_metadata SET
                            name = ?,
                            size = ?,
                            table_count = ?,
                            is_favorite = COALESCE(?, is_favorite),
                            notes = COALESCE(?, notes),
                            last_accessed = ?
                        WHERE id = ?
                        """,
                        [name, size, table_count, is_favorite, notes, now, record_id],
                    )
                else:
                    record_id = conn.execute(
                        """
                        INSERT INTO database_metadata (
                            name, path, size, table_count, last_accessed,
                            is_favorite, notes, created_at
                        )
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                        RETURNING id
                        """,
                        [
                            name, path, size, table_count, now,
                            bool(is_favorite), notes, now,
                        ],
                    ).fetchone()[0]

                if tables is not None:
                    self._write_catalog(conn, record_id, tables, now)

                row = conn.execute(
                    "SELECT * FROM database_metadata WHERE id = ?", [record_id]
                ).fetchone()
        except duckdb.Error as e:
            logger.error("database_metadata_upsert_failed", path=path, error=str(e))
            raise StorageError("Failed to save database metadata", details=str(e)) from e

        logger.info(
            "database_metadata_upserted",
            id=record_id,
            path=path,
            created=existing is None,
        )
        return self._row_to_record(row)

    def find_by_id(self, record_id: int) -> dict[str, Any] | None:
        """Get a record by id, None on miss."""
        try:
            row = self._db.execute_one(
                "SELECT * FROM database_metadata WHERE id = ?", [record_id]
            )
        except duckdb.Error as e:
            logger.error("database_metadata_find_failed", id=record_id, error=str(e))
            return None
        return self._row_to_record(row)

    def find_by_path(self, path: str) -> dict[str, Any] | None:
        """Get a record by storage path, None on miss."""
        try:
            row = self._db.execute_one(
                "SELECT * FROM database_metadata WHERE path = ?", [path]
            )
        except duckdb.Error as e:
            logger.error("database_metadata_find_failed", path=path, error=str(e))
            return None
        return self._row_to_record(row)

    def list_databases(self) -> list[dict[str, Any]]:
        """List all records, most recently accessed first."""
        try:
            rows = self._db.execute(
                "SELECT * FROM database_metadata ORDER BY last_accessed DESC, id DESC"
            )
        except duckdb.Error as e:
            logger.error("database_metadata_list_failed", error=str(e))
            return []
        return [self._row_to_record(row) for row in rows]

    def list_favorites(self) -> list[dict[str, Any]]:
        """List favorite records, most recently accessed first."""
        try:
            rows = self._db.execute(
                """
                SELECT * FROM database_metadata
                WHERE is_favorite = true
                ORDER BY last_accessed DESC, id DESC
                """
            )
        except duckdb.Error as e:
            logger.error("database_metadata_list_favorites_failed", error=str(e))
            return []
        return [self._row_to_record(row) for row in rows]

    def update(
        self,
        record_id: int,
        name: str | None = None,
        notes: str | None = None,
        is_favorite: bool | None = None,
        size: int | None = None,
        table_count: int | None = None,
    ) -> dict[str, Any] | None:
        """
        Apply the supplied fields and refresh last_accessed.

        Returns the updated record, or None if it does not exist or the
        update failed.
        """
        updates = []
        params: list[Any] = []

        if name is not None:
            updates.append("name = ?")
            params.append(name)
        if notes is not None:
            updates.append("notes = ?")
            params.append(notes)
        if is_favorite is not None:
            updates.append("is_favorite = ?")
            params.append(is_favorite)
        if size is not None:
            updates.append("size = ?")
            params.append(size)
        if table_count is not None:
            updates.append("table_count = ?")
            params.append(table_count)

        updates.append("last_accessed = ?")
        params.append(utcnow())
        params.append(record_id)

        query = f"UPDATE database_metadata SET {', '.join(updates)} WHERE id = ?"
        try:
            changed = self._db.execute_write(query, params)
        except duckdb.Error as e:
            logger.error("database_metadata_update_failed", id=record_id, error=str(e))
            return None

        if not changed:
            return None

        logger.info("database_metadata_updated", id=record_id)
        return self.find_by_id(record_id)

    def touch(self, record_id: int) -> dict[str, Any] | None:
        """Refresh last_accessed only."""
        return self.update(record_id)

    def delete(self, record_id: int) -> bool:
        """
        Delete a record and its table/column catalog.

        All three deletes share one transaction:
        1. database_columns (-> database_tables)
        2. database_tables (-> database_metadata)
        3. database_metadata
        """
        try:
            with self._db.transaction() as conn:
                self._delete_catalog(conn, record_id)
                deleted = conn.execute(
                    "DELETE FROM database_metadata WHERE id = ?", [record_id]
                ).fetchone()[0]
        except duckdb.Error as e:
            logger.error("database_metadata_delete_failed", id=record_id, error=str(e))
            return False

        logger.info("database_metadata_deleted", id=record_id, deleted=bool(deleted))
        return bool(deleted)

    # ========================================
    # Table / column catalog
    # ========================================

    def replace_schema(self, record_id: int, tables: list[dict[str, Any]]) -> bool:
        """
        Replace the table/column catalog and schema cache of a record.

        ``tables`` is the output of connection.describe_tables(): one dict
        per table with name, row_count and PRAGMA table_info columns.
        Returns False for an unknown record; a failed write rolls back and
        raises StorageError, leaving the previous catalog in place.
        """
        try:
            with self._db.transaction() as conn:
                exists = conn.execute(
                    "SELECT 1 FROM database_metadata WHERE id = ?", [record_id]
                ).fetchone()
                if not exists:
                    return False
                self._write_catalog(conn, record_id, tables, utcnow())
        except duckdb.Error as e:
            logger.error("schema_catalog_refresh_failed", id=record_id, error=str(e))
            raise StorageError("Failed to store table catalog", details=str(e)) from e

        logger.info("schema_catalog_refreshed", id=record_id, table_count=len(tables))
        return True

    def _delete_catalog(self, conn: duckdb.DuckDBPyConnection, record_id: int) -> None:
        conn.execute(
            """
            DELETE FROM database_columns
            WHERE table_id IN (
                SELECT id FROM database_tables WHERE database_id = ?
            )
            """,
            [record_id],
        )
        conn.execute("DELETE FROM database_tables WHERE database_id = ?", [record_id])

    def _write_catalog(
        self,
        conn: duckdb.DuckDBPyConnection,
        record_id: int,
        tables: list[dict[str, Any]],
        now: datetime,
    ) -> None:
        """Swap in a new catalog on ``conn``; the caller owns the transaction."""
        self._delete_catalog(conn, record_id)

        for table in tables:
            table_id = conn.execute(
                """
                INSERT INTO database_tables (
                    database_id, table_name, column_count, row_count, created_at
                )
                VALUES (?, ?, ?, ?, ?)
                RETURNING id
                """,
                [
                    record_id, table["name"], len(table["columns"]),
                    table.get("row_count"), now,
                ],
            ).fetchone()[0]

            for column in table["columns"]:
                conn.execute(
                    """
                    INSERT INTO database_columns (
                        table_id, name, type, nullable, primary_key,
                        default_value, created_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        table_id, column["name"], column["type"] or "",
                        not column["notnull"], bool(column["pk"]),
                        column["dflt_value"], now,
                    ],
                )

        conn.execute(
            """
            UPDATE database_metadata
            SET schema_cache = ?, schema_updated_at = ?
            WHERE id = ?
            """,
            [json.dumps(tables), now, record_id],
        )

    def catalog(self, record_id: int) -> list[dict[str, Any]]:
        """Return the catalogued tables of a record with their columns."""
        try:
            table_rows = self._db.execute(
                """
                SELECT id, table_name, column_count, row_count
                FROM database_tables
                WHERE database_id = ?
                ORDER BY table_name
                """,
                [record_id],
            )
            column_rows = self._db.execute(
                """
                SELECT c.table_id, c.name, c.type, c.nullable, c.primary_key, c.default_value
                FROM database_columns c
                JOIN database_tables t ON t.id = c.table_id
                WHERE t.database_id = ?
                ORDER BY c.table_id, c.id
                """,
                [record_id],
            )
        except duckdb.Error as e:
            logger.error("schema_catalog_read_failed", id=record_id, error=str(e))
            return []

        columns: dict[int, list[dict[str, Any]]] = {}
        for table_id, name, col_type, nullable, primary_key, default_value in column_rows:
            columns.setdefault(table_id, []).append({
                "name": name,
                "type": col_type,
                "nullable": nullable,
                "primary_key": primary_key,
                "default_value": default_value,
            })

        return [
            {
                "name": table_name,
                "column_count": column_count,
                "row_count": row_count,
                "columns": columns.get(table_id, []),
            }
            for table_id, table_name, column_count, row_count in table_rows
        ]

    # ========================================
    # Preferences
    # ========================================

    def set_preference(self, key: str, value: str) -> None:
        """Insert or overwrite a preference value."""
        self._db.execute_write(
            """
            INSERT INTO user_preferences (key, value, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT (key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            [key, value, utcnow()],
        )
        logger.info("preference_set", key=key)

    def set_preferences(self, values: dict[str, str]) -> None:
        """Set several preferences in one transaction."""
        now = utcnow()
        with self._db.transaction() as conn:
            for key, value in values.items():
                conn.execute(
                    """
                    INSERT INTO user_preferences (key, value, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT (key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    [key, value, now],
                )
        logger.info("preferences_set", keys=sorted(values))

    def get_preference(self, key: str) -> str | None:
        try:
            row = self._db.execute_one(
                "SELECT value FROM user_preferences WHERE key = ?", [key]
            )
        except duckdb.Error as e:
            logger.error("preference_read_failed", key=key, error=str(e))
            return None
        return row[0] if row else None

    def all_preferences(self) -> dict[str, str]:
        try:
            rows = self._db.execute(
                "SELECT key, value FROM user_preferences ORDER BY key"
            )
        except duckdb.Error as e:
            logger.error("preferences_read_failed", error=str(e))
            return {}
        return {key: value for key, value in rows}

    def preferences_with_prefix(self, prefix: str) -> dict[str, str]:
        """Preferences whose key starts with ``prefix`` (e.g. 'theme.')."""
        try:
            rows = self._db.execute(
                """
                SELECT key, value FROM user_preferences
                WHERE starts_with(key, ?)
                ORDER BY key
                """,
                [prefix],
            )
        except duckdb.Error as e:
            logger.error("preferences_read_failed", prefix=prefix, error=str(e))
            return {}
        return {key: value for key, value in rows}

    def delete_preference(self, key: str) -> bool:
        deleted = self._db.execute_write(
            "DELETE FROM user_preferences WHERE key = ?", [key]
        )
        logger.info("preference_deleted", key=key, deleted=bool(deleted))
        return bool(deleted)

    def initialize_default_preferences(self) -> list[str]:
        """Insert defaults for keys that are not set yet; returns keys added."""
        now = utcnow()
        added = []
        with self._db.transaction() as conn:
            existing = {
                row[0] for row in conn.execute("SELECT key FROM user_preferences").fetchall()
            }
            for key, value in DEFAULT_PREFERENCES.items():
                if key in existing:
                    continue
                conn.execute(
                    "INSERT INTO user_preferences (key, value, updated_at) VALUES (?, ?, ?)",
                    [key, value, now],
                )
                added.append(key)
        logger.info("default_preferences_initialized", added=added)
        return added

    # ========================================
    # Count methods (for metrics)
    # ========================================

    def count_databases(self) -> int:
        result = self._db.execute_one("SELECT COUNT(*) FROM database_metadata")
        return result[0] if result else 0

    def _row_to_record(self, row: tuple | None) -> dict[str, Any] | None:
        """
        Convert database row to record dictionary.

        Schema: id(0), name(1), path(2), size(3), table_count(4),
                last_accessed(5), is_favorite(6), notes(7), schema_cache(8),
                schema_updated_at(9), created_at(10)
        """
        if row is None:
            return None

        return {
            "id": row[0],
            "name": row[1],
            "path": row[2],
            "size": row[3],
            "table_count": row[4],
            "last_accessed": _iso(row[5]),
            "is_favorite": row[6],
            "notes": row[7],
            "schema_cache": _parse_json(row[8]),
            "schema_updated_at": _iso(row[9]),
            "created_at": _iso(row[10]),
        }
