"""Query history, analytics and saved queries.

History entries copy the data file name/path at execution time, so they
survive deletion of the catalog record they were run against.
"""

import json
from datetime import timedelta
from typing import Any

import duckdb
import structlog

from sqlite_explorer.database import ControlDB, _iso, _parse_json, utcnow

logger = structlog.get_logger()


class HistoryRecorder:
    """Append-only query history plus the saved query store."""

    def __init__(self, control_db: ControlDB) -> None:
        self._db = control_db

    # ========================================
    # History
    # ========================================

    def record(
        self,
        query: str,
        database_name: str,
        database_path: str,
        execution_time_ms: int,
        success: bool,
        error_message: str | None = None,
        results_path: str | None = None,
    ) -> int | None:
        """
        Append a history entry and return its id.

        A failure to record never fails the query it describes: it is logged
        and None is returned.
        """
        try:
            row = self._db.execute_one(
                """
                INSERT INTO query_history (
                    query, database_name, database_path, executed_at,
                    execution_time_ms, success, error_message, results_path
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                RETURNING id
                """,
                [
                    query, database_name, database_path, utcnow(),
                    execution_time_ms, success, error_message, results_path,
                ],
            )
        except duckdb.Error as e:
            logger.error(
                "query_history_record_failed",
                database_path=database_path,
                error=str(e),
            )
            return None
        return row[0] if row else None

    def recent(self, limit: int = 50) -> list[dict[str, Any]]:
        """Most recent entries first."""
        try:
            rows = self._db.execute(
                """
                SELECT * FROM query_history
                ORDER BY executed_at DESC, id DESC
                LIMIT ?
                """,
                [limit],
            )
        except duckdb.Error as e:
            logger.error("query_history_read_failed", error=str(e))
            return []
        return [self._row_to_history_dict(row) for row in rows]

    def popular(self, window_days: int = 30, top_n: int = 10) -> list[dict[str, Any]]:
        """
        Most frequently run queries within the window.

        Queries are grouped by their normalized text: trimmed, whitespace
        runs collapsed to one space, lower-cased.
        """
        since = utcnow() - timedelta(days=window_days)
        try:
            rows = self._db.execute(
                r"""
                SELECT
                    lower(trim(regexp_replace(query, '\s+', ' ', 'g'))) AS normalized_query,
                    arg_max(query, executed_at) AS query,
                    COUNT(*) AS count,
                    AVG(execution_time_ms) AS avg_time_ms,
                    MAX(executed_at) AS last_executed_at
                FROM query_history
                WHERE executed_at >= ?
                GROUP BY normalized_query
                ORDER BY count DESC, last_executed_at DESC
                LIMIT ?
                """,
                [since, top_n],
            )
        except duckdb.Error as e:
            logger.error("query_analytics_failed", kind="popular", error=str(e))
            return []

        return [
            {
                "normalized_query": normalized,
                "query": query,
                "count": count,
                "avg_time_ms": round(avg_time, 2) if avg_time is not None else None,
                "last_executed_at": _iso(last_executed),
            }
            for normalized, query, count, avg_time, last_executed in rows
        ]

    def slow(self, top_n: int = 10) -> list[dict[str, Any]]:
        """Slowest entries first."""
        try:
            rows = self._db.execute(
                """
                SELECT * FROM query_history
                ORDER BY execution_time_ms DESC, executed_at DESC
                LIMIT ?
                """,
                [top_n],
            )
        except duckdb.Error as e:
            logger.error("query_analytics_failed", kind="slow", error=str(e))
            return []
        return [self._row_to_history_dict(row) for row in rows]

    def count_history(self) -> int:
        result = self._db.execute_one("SELECT COUNT(*) FROM query_history")
        return result[0] if result else 0

    # ========================================
    # Saved queries
    # ========================================

    def save_query(
        self,
        name: str,
        query: str,
        description: str | None = None,
        database_path: str | None = None,
        tags: list[str] | None = None,
        favorite: bool = False,
    ) -> dict[str, Any]:
        """Store a named query and return the stored row."""
        now = utcnow()
        with self._db.transaction() as conn:
            query_id = conn.execute(
                """
                INSERT INTO saved_queries (
                    name, description, query, database_path, tags,
                    favorite, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                RETURNING id
                """,
                [
                    name, description, query, database_path,
                    json.dumps(tags or []), favorite, now, now,
                ],
            ).fetchone()[0]
            row = conn.execute(
                "SELECT * FROM saved_queries WHERE id = ?", [query_id]
            ).fetchone()

        logger.info("saved_query_created", id=query_id, name=name)
        return self._row_to_saved_dict(row)

    def list_saved(self) -> list[dict[str, Any]]:
        """Favorites first, then most recently updated."""
        try:
            rows = self._db.execute(
                "SELECT * FROM saved_queries ORDER BY favorite DESC, updated_at DESC, id DESC"
            )
        except duckdb.Error as e:
            logger.error("saved_queries_read_failed", error=str(e))
            return []
        return [self._row_to_saved_dict(row) for row in rows]

    def get_saved(self, query_id: int) -> dict[str, Any] | None:
        try:
            row = self._db.execute_one(
                "SELECT * FROM saved_queries WHERE id = ?", [query_id]
            )
        except duckdb.Error as e:
            logger.error("saved_queries_read_failed", id=query_id, error=str(e))
            return None
        return self._row_to_saved_dict(row) if row else None

    def update_saved(
        self,
        query_id: int,
        name: str | None = None,
        query: str | None = None,
        description: str | None = None,
        database_path: str | None = None,
        tags: list[str] | None = None,
        favorite: bool | None = None,
    ) -> dict[str, Any] | None:
        """Apply the supplied fields; None if the saved query does not exist."""
        updates = []
        params: list[Any] = []

        if name is not None:
            updates.append("name = ?")
            params.append(name)
        if query is not None:
            updates.append("query = ?")
            params.append(query)
        if description is not None:
            updates.append("description = ?")
            params.append(description)
        if database_path is not None:
            updates.append("database_path = ?")
            params.append(database_path)
        if tags is not None:
            updates.append("tags = ?")
            params.append(json.dumps(tags))
        if favorite is not None:
            updates.append("favorite = ?")
            params.append(favorite)

        updates.append("updated_at = ?")
        params.append(utcnow())
        params.append(query_id)

        changed = self._db.execute_write(
            f"UPDATE saved_queries SET {', '.join(updates)} WHERE id = ?", params
        )
        if not changed:
            return None

        logger.info("saved_query_updated", id=query_id)
        return self.get_saved(query_id)

    def delete_saved(self, query_id: int) -> bool:
        deleted = self._db.execute_write(
            "DELETE FROM saved_queries WHERE id = ?", [query_id]
        )
        logger.info("saved_query_deleted", id=query_id, deleted=bool(deleted))
        return bool(deleted)

    def toggle_favorite(self, query_id: int) -> bool | None:
        """Flip the favorite flag; returns the new value or None if unknown."""
        row = self._db.execute_one(
            """
            UPDATE saved_queries
            SET favorite = NOT favorite, updated_at = ?
            WHERE id = ?
            RETURNING favorite
            """,
            [utcnow(), query_id],
        )
        if row is None:
            return None
        logger.info("saved_query_favorite_toggled", id=query_id, favorite=row[0])
        return row[0]

    def search(self, term: str) -> list[dict[str, Any]]:
        """Case-insensitive substring match on name, description or query text."""
        needle = term.lower()
        try:
            rows = self._db.execute(
                """
                SELECT * FROM saved_queries
                WHERE contains(lower(name), ?)
                   OR contains(lower(coalesce(description, '')), ?)
                   OR contains(lower(query), ?)
                ORDER BY favorite DESC, updated_at DESC, id DESC
                """,
                [needle, needle, needle],
            )
        except duckdb.Error as e:
            logger.error("saved_queries_search_failed", term=term, error=str(e))
            return []
        return [self._row_to_saved_dict(row) for row in rows]

    def count_saved_queries(self) -> int:
        result = self._db.execute_one("SELECT COUNT(*) FROM saved_queries")
        return result[0] if result else 0

    def _row_to_history_dict(self, row: tuple) -> dict[str, Any]:
        """
        Schema: id(0), query(1), database_name(2), database_path(3),
                executed_at(4), execution_time_ms(5), success(6),
                error_message(7), results_path(8)
        """
        return {
            "id": row[0],
            "query": row[1],
            "database_name": row[2],
            "database_path": row[3],
            "executed_at": _iso(row[4]),
            "execution_time_ms": row[5],
            "success": row[6],
            "error_message": row[7],
            "results_path": row[8],
        }

    def _row_to_saved_dict(self, row: tuple) -> dict[str, Any]:
        """
        Schema: id(0), name(1), description(2), query(3), database_path(4),
                tags(5), favorite(6), created_at(7), updated_at(8)
        """
        return {
            "id": row[0],
            "name": row[1],
            "description": row[2],
            "query": row[3],
            "database_path": row[4],
            "tags": _parse_json(row[5]) or [],
            "favorite": row[6],
            "created_at": _iso(row[7]),
            "updated_at": _iso(row[8]),
        }
