"""SQL execution against data files.

Statements are classified as reads (rows are returned) or writes (changes
are committed and counted). Every execution, successful or not, produces
exactly one query history entry.
"""

import sqlite3
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterator

import structlog

from sqlite_explorer import metrics
from sqlite_explorer.connection import ConnectionManager, open_data_file
from sqlite_explorer.errors import ExecutionError, ValidationError
from sqlite_explorer.history import HistoryRecorder

logger = structlog.get_logger()


class StatementKind(str, Enum):
    READ = "read"
    WRITE = "write"


READ_KEYWORDS = {"select", "values", "pragma", "explain"}

# Statements that can follow a WITH clause
CTE_BODY_KEYWORDS = {"select", "insert", "update", "delete", "replace"}

_QUOTES = {"'": "'", '"': '"', "`": "`", "[": "]"}


def _tokens(sql: str) -> Iterator[str]:
    """
    Yield lower-cased keywords/identifiers and punctuation.

    Whitespace, comments and quoted literals/identifiers are skipped.
    """
    i = 0
    n = len(sql)
    while i < n:
        ch = sql[i]

        if ch.isspace():
            i += 1
        elif sql.startswith("--", i):
            end = sql.find("\n", i)
            i = n if end == -1 else end + 1
        elif sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            i = n if end == -1 else end + 2
        elif ch in _QUOTES:
            closing = _QUOTES[ch]
            i += 1
            while i < n:
                if sql[i] == closing:
                    # Doubled quote is an escaped quote
                    if closing != "]" and i + 1 < n and sql[i + 1] == closing:
                        i += 2
                        continue
                    break
                i += 1
            i += 1
        elif ch.isalpha() or ch == "_":
            start = i
            while i < n and (sql[i].isalnum() or sql[i] in "_$"):
                i += 1
            yield sql[start:i].lower()
        else:
            yield ch
            i += 1


def classify_statement(sql: str) -> StatementKind:
    """
    Decide whether a statement returns rows.

    >>> classify_statement("  select 1")
    <StatementKind.READ: 'read'>
    >>> classify_statement("insert into t values (1)")
    <StatementKind.WRITE: 'write'>
    """
    tokens = _tokens(sql)
    first = next(tokens, None)

    if first in READ_KEYWORDS:
        return StatementKind.READ

    if first == "with":
        depth = 0
        for token in tokens:
            if token == "(":
                depth += 1
            elif token == ")":
                depth -= 1
            elif depth == 0 and token in CTE_BODY_KEYWORDS:
                return StatementKind.READ if token == "select" else StatementKind.WRITE

    return StatementKind.WRITE


def _json_value(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return f"<BLOB: {len(value)} bytes>"
    return value


@dataclass
class QueryOutcome:
    """Result of one execution: rows for reads, change counts for writes."""

    kind: StatementKind
    rows: list[dict[str, Any]] = field(default_factory=list)
    columns: list[str] = field(default_factory=list)
    changes: int = 0
    last_insert_id: int | None = None
    execution_time_ms: int = 0

    def to_response(self) -> dict[str, Any]:
        if self.kind is StatementKind.READ:
            return {
                "results": self.rows,
                "columns": self.columns,
                "executionTimeMs": self.execution_time_ms,
            }
        return {
            "changes": self.changes,
            "lastInsertId": self.last_insert_id,
            "executionTimeMs": self.execution_time_ms,
        }


def execute_statement(conn: sqlite3.Connection, sql: str, kind: StatementKind) -> QueryOutcome:
    """Execute one statement; engine errors propagate as sqlite3 exceptions."""
    changes_before = conn.total_changes
    cursor = conn.cursor()
    try:
        cursor.execute(sql)
        if kind is StatementKind.READ:
            names = [d[0] for d in cursor.description] if cursor.description else []
            rows = [
                dict(zip(names, (_json_value(v) for v in row)))
                for row in cursor.fetchall()
            ]
            return QueryOutcome(
                kind=kind,
                rows=rows,
                columns=list(rows[0].keys()) if rows else [],
            )

        # RETURNING rows must be consumed before the commit
        cursor.fetchall()
        conn.commit()
        return QueryOutcome(
            kind=kind,
            changes=conn.total_changes - changes_before,
            last_insert_id=cursor.lastrowid,
        )
    except (sqlite3.Error, sqlite3.Warning):
        if conn.in_transaction:
            conn.rollback()
        raise
    finally:
        cursor.close()


class QueryExecutor:
    """Runs user SQL and records each run in query history."""

    def __init__(self, connections: ConnectionManager, history: HistoryRecorder) -> None:
        self._connections = connections
        self._history = history

    def run(self, sql: str | None) -> QueryOutcome:
        """Run against the active connection."""
        with self._connections.connection() as (conn, summary):
            self._validate(sql)
            return self._run(conn, sql, summary.name, summary.path)

    def run_on_file(self, record: dict[str, Any], sql: str | None) -> QueryOutcome:
        """Run against a catalogued file through a one-off connection."""
        self._validate(sql)
        with open_data_file(Path(record["path"])) as conn:
            return self._run(conn, sql, record["name"], record["path"])

    def _validate(self, sql: str | None) -> None:
        if not sql or not sql.strip():
            raise ValidationError("No SQL query provided")

    def _run(self, conn: sqlite3.Connection, sql: str, name: str, path: str) -> QueryOutcome:
        kind = classify_statement(sql)
        start_time = time.time()

        try:
            outcome = execute_statement(conn, sql, kind)
        except (sqlite3.Error, sqlite3.Warning) as e:
            duration = time.time() - start_time
            duration_ms = int(duration * 1000)
            self._history.record(
                query=sql,
                database_name=name,
                database_path=path,
                execution_time_ms=duration_ms,
                success=False,
                error_message=str(e),
            )
            metrics.QUERY_EXECUTIONS_TOTAL.labels(kind=kind.value, status="error").inc()
            metrics.QUERY_EXECUTION_DURATION.labels(kind=kind.value).observe(duration)
            logger.warning(
                "query_failed",
                database=name,
                kind=kind.value,
                duration_ms=duration_ms,
                error=str(e),
            )
            raise ExecutionError("Failed to execute query", details=str(e)) from e

        duration = time.time() - start_time
        outcome.execution_time_ms = int(duration * 1000)
        self._history.record(
            query=sql,
            database_name=name,
            database_path=path,
            execution_time_ms=outcome.execution_time_ms,
            success=True,
        )
        metrics.QUERY_EXECUTIONS_TOTAL.labels(kind=kind.value, status="success").inc()
        metrics.QUERY_EXECUTION_DURATION.labels(kind=kind.value).observe(duration)
        logger.info(
            "query_executed",
            database=name,
            kind=kind.value,
            rows=len(outcome.rows),
            changes=outcome.changes,
            duration_ms=outcome.execution_time_ms,
        )
        return outcome
