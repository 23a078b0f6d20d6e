"""Data file connections.

A data file is a user-uploaded SQLite database. ConnectionManager holds the
single active connection the interactive query endpoint runs against; the
module-level helpers open one-off connections for catalog and stateless
queries.
"""

import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Generator

import structlog

from sqlite_explorer.database import utcnow
from sqlite_explorer.errors import CorruptFileError, NoConnectionError, NotFoundError
from sqlite_explorer.metrics import ACTIVE_CONNECTION

logger = structlog.get_logger()

SQLITE_HEADER = b"SQLite format 3\x00"

USER_TABLES_QUERY = (
    "SELECT name FROM sqlite_master "
    "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' "
    "ORDER BY name"
)

# Every table row in the file's catalog, sqlite_sequence and friends included
CATALOG_TABLE_COUNT_QUERY = "SELECT COUNT(*) FROM sqlite_master WHERE type = 'table'"


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def verify_database_file(path: Path) -> None:
    """Raise NotFoundError/CorruptFileError unless ``path`` looks like SQLite."""
    if not path.is_file():
        raise NotFoundError(f"Database file not found: {path}")

    with open(path, "rb") as f:
        header = f.read(len(SQLITE_HEADER))
    if header != SQLITE_HEADER:
        raise CorruptFileError(
            f"Not a SQLite database: {path.name}",
            details="missing SQLite header",
        )


@contextmanager
def open_data_file(
    path: Path | str, read_only: bool = False
) -> Generator[sqlite3.Connection, None, None]:
    """
    Open a one-off connection to a data file.

    The header is verified before connecting so a missing file is never
    silently created as an empty database.
    """
    path = Path(path)
    verify_database_file(path)

    uri = path.resolve().as_uri() + ("?mode=ro" if read_only else "?mode=rw")
    try:
        conn = sqlite3.connect(uri, uri=True, check_same_thread=False)
    except sqlite3.Error as e:
        raise CorruptFileError(f"Cannot open database {path.name}", details=str(e)) from e

    try:
        yield conn
    finally:
        conn.close()


def list_tables(conn: sqlite3.Connection) -> list[str]:
    """User tables, excluding SQLite internal ``sqlite_%`` tables."""
    try:
        return [row[0] for row in conn.execute(USER_TABLES_QUERY).fetchall()]
    except sqlite3.DatabaseError as e:
        raise CorruptFileError("Cannot read table list", details=str(e)) from e


def count_tables(conn: sqlite3.Connection) -> int:
    """Number of tables a direct sqlite_master query reports."""
    try:
        return conn.execute(CATALOG_TABLE_COUNT_QUERY).fetchone()[0]
    except sqlite3.DatabaseError as e:
        raise CorruptFileError("Cannot read table list", details=str(e)) from e


def table_schema(conn: sqlite3.Connection, table: str) -> list[dict[str, Any]]:
    """PRAGMA table_info rows for ``table``."""
    if table not in list_tables(conn):
        raise NotFoundError(f"Table not found: {table}")

    rows = conn.execute(f"PRAGMA table_info({quote_identifier(table)})").fetchall()
    return [
        {
            "cid": cid,
            "name": name,
            "type": col_type,
            "notnull": notnull,
            "dflt_value": dflt_value,
            "pk": pk,
        }
        for cid, name, col_type, notnull, dflt_value, pk in rows
    ]


def describe_tables(conn: sqlite3.Connection) -> list[dict[str, Any]]:
    """Every user table with its row count and columns."""
    tables = []
    for name in list_tables(conn):
        try:
            row_count = conn.execute(
                f"SELECT COUNT(*) FROM {quote_identifier(name)}"
            ).fetchone()[0]
        except sqlite3.DatabaseError as e:
            # Virtual tables whose module is not loaded cannot be counted
            logger.warning("table_row_count_failed", table=name, error=str(e))
            row_count = None
        tables.append({
            "name": name,
            "row_count": row_count,
            "columns": table_schema(conn, name),
        })
    return tables


@dataclass
class DataFileSummary:
    """Cached description of the open data file."""

    path: str
    name: str
    size: int
    tables: list[str] = field(default_factory=list)
    last_accessed: datetime = field(default_factory=utcnow)
    database_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["last_accessed"] = self.last_accessed.isoformat()
        return data


class ConnectionManager:
    """
    Owns the at-most-one active data file connection.

    Opening a file closes the previous one first. The lock serializes open,
    close and query use of the shared handle.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._conn: sqlite3.Connection | None = None
        self._summary: DataFileSummary | None = None

    def open(
        self,
        path: Path | str,
        display_name: str | None = None,
        database_id: int | None = None,
    ) -> DataFileSummary:
        path = Path(path)
        with self._lock:
            self.close()

            verify_database_file(path)
            conn = sqlite3.connect(str(path), check_same_thread=False)
            try:
                tables = list_tables(conn)
            except CorruptFileError:
                conn.close()
                raise

            summary = DataFileSummary(
                path=str(path),
                name=display_name or path.name,
                size=path.stat().st_size,
                tables=tables,
                database_id=database_id,
            )
            self._conn = conn
            self._summary = summary
            ACTIVE_CONNECTION.set(1)

        logger.info(
            "data_file_opened",
            path=str(path),
            name=summary.name,
            table_count=len(tables),
        )
        return summary

    def close(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            path = self._summary.path if self._summary else None
            self._conn.close()
            self._conn = None
            self._summary = None
            ACTIVE_CONNECTION.set(0)
        logger.info("data_file_closed", path=path)

    def is_open(self) -> bool:
        return self._conn is not None

    def current_summary(self) -> DataFileSummary:
        summary = self._summary
        if summary is None:
            raise NoConnectionError()
        return summary

    @contextmanager
    def connection(self) -> Generator[tuple[sqlite3.Connection, DataFileSummary], None, None]:
        """
        Hold the lock and yield the active handle with its summary.

        Usage:
            with manager.connection() as (conn, summary):
                conn.execute("SELECT 1")
        """
        with self._lock:
            if self._conn is None or self._summary is None:
                raise NoConnectionError()
            yield self._conn, self._summary
