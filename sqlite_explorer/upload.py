"""Upload pipeline: store, validate and register uploaded data files.

Flow:
1. Check the extension
2. Stream the body to ``<databases_dir>/<timestampMs>-<name>`` (exclusive
   create), enforcing the size limit while writing
3. Open read-only, count the tables and read the table catalog
4. Upsert the catalog record together with its table/column catalog

Every failure after step 2 removes the written file. A missing file is a
ValidationError; anything that stops an upload later is an UploadError.
"""

import re
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, BinaryIO, Generator

import structlog

from sqlite_explorer import metrics
from sqlite_explorer.config import Settings
from sqlite_explorer.connection import (
    count_tables,
    describe_tables,
    open_data_file,
    verify_database_file,
)
from sqlite_explorer.database import MetadataStore
from sqlite_explorer.errors import (
    CorruptFileError,
    ExplorerError,
    NotFoundError,
    StorageError,
    UploadError,
    ValidationError,
)

logger = structlog.get_logger()

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")

# Attempts at a unique storage name before giving up
MAX_NAME_ATTEMPTS = 100

CHUNK_SIZE = 64 * 1024


def sanitize_filename(original_name: str) -> str:
    """Strip directories and replace characters unsafe in a storage name."""
    name = Path(original_name.replace("\\", "/")).name
    return _UNSAFE_CHARS.sub("_", name) or "upload.db"


@contextmanager
def _remove_on_failure(path: Path) -> Generator[None, None, None]:
    try:
        yield
    except BaseException:
        path.unlink(missing_ok=True)
        logger.info("upload_file_removed", path=str(path))
        raise


class UploadPipeline:
    """Turns an uploaded stream into a catalogued data file."""

    def __init__(self, settings: Settings, metadata: MetadataStore) -> None:
        self._settings = settings
        self._metadata = metadata

    @property
    def databases_dir(self) -> Path:
        return Path(self._settings.databases_dir)

    def accept(self, source: BinaryIO, original_name: str | None) -> dict[str, Any]:
        """
        Store, validate and register an upload; returns the catalog record.

        ``source`` is read in chunks, so the body is never held in memory.
        """
        if not original_name:
            raise ValidationError("No file provided")

        start_time = time.time()
        try:
            record, path = self._store(source, original_name)
        except ExplorerError as e:
            status = "error" if isinstance(e, StorageError) else "rejected"
            metrics.UPLOADS_TOTAL.labels(status=status).inc()
            logger.warning(
                "upload_failed",
                filename=original_name,
                error=e.error,
                reason=e.message,
                details=e.details,
            )
            raise UploadError(e) from e
        except Exception:
            metrics.UPLOADS_TOTAL.labels(status="error").inc()
            raise

        duration = time.time() - start_time
        metrics.UPLOADS_TOTAL.labels(status="success").inc()
        metrics.UPLOAD_BYTES_TOTAL.inc(record["size"])
        metrics.UPLOAD_DURATION.observe(duration)

        logger.info(
            "upload_accepted",
            id=record["id"],
            filename=original_name,
            path=str(path),
            size_bytes=record["size"],
            table_count=record["table_count"],
            duration_ms=int(duration * 1000),
        )
        return record

    def rescan(self, record_id: int) -> dict[str, Any]:
        """Re-read a catalogued file and refresh size, table count and catalog."""
        record = self._metadata.find_by_id(record_id)
        if record is None:
            raise NotFoundError(f"Database {record_id} not found")

        path = Path(record["path"])
        tables, table_count = self._inspect(path)

        updated = self._metadata.upsert(
            name=record["name"],
            path=record["path"],
            size=path.stat().st_size,
            table_count=table_count,
            tables=tables,
        )

        logger.info("database_rescanned", id=record_id, table_count=table_count)
        return updated

    def discard(self, record: dict[str, Any]) -> bool:
        """Delete a record and its stored file."""
        path = Path(record["path"])
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete {path.name}", details=str(e)) from e
        return self._metadata.delete(record["id"])

    def _store(self, source: BinaryIO, original_name: str) -> tuple[dict[str, Any], Path]:
        self._check_extension(original_name)

        path, size = self._write(source, original_name)
        with _remove_on_failure(path):
            tables, table_count = self._inspect(path)
            record = self._metadata.upsert(
                name=original_name,
                path=str(path),
                size=size,
                table_count=table_count,
                tables=tables,
            )
        return record, path

    def _check_extension(self, original_name: str) -> None:
        extension = Path(original_name).suffix.lower()
        if extension not in self._settings.allowed_extensions:
            raise ValidationError(
                "Invalid file type. Please upload a SQLite database file.",
                details={"allowed_extensions": self._settings.allowed_extensions},
            )

    def _write(self, source: BinaryIO, original_name: str) -> tuple[Path, int]:
        """Create the file exclusively, retrying with a numeric suffix on collision."""
        safe_name = sanitize_filename(original_name)
        timestamp_ms = int(time.time() * 1000)

        try:
            self.databases_dir.mkdir(parents=True, exist_ok=True)
            for attempt in range(MAX_NAME_ATTEMPTS):
                if attempt == 0:
                    candidate = self.databases_dir / f"{timestamp_ms}-{safe_name}"
                else:
                    candidate = self.databases_dir / f"{timestamp_ms}-{attempt}-{safe_name}"
                try:
                    f = open(candidate, "xb")
                except FileExistsError:
                    continue
                with _remove_on_failure(candidate), f:
                    size = self._copy(source, f)
                return candidate, size
        except OSError as e:
            logger.error("upload_write_failed", filename=original_name, error=str(e))
            raise StorageError("Failed to store uploaded file", details=str(e)) from e

        raise StorageError(f"Could not allocate a storage name for {safe_name}")

    def _copy(self, source: BinaryIO, target: BinaryIO) -> int:
        max_bytes = self._settings.max_upload_bytes
        size = 0
        while chunk := source.read(CHUNK_SIZE):
            size += len(chunk)
            if size > max_bytes:
                raise ValidationError(
                    "File too large",
                    details={"max_upload_bytes": max_bytes},
                )
            target.write(chunk)

        if size == 0:
            raise ValidationError("Uploaded file is empty")
        return size

    def _inspect(self, path: Path) -> tuple[list[dict[str, Any]], int]:
        """Table catalog and the file's own table count."""
        verify_database_file(path)
        try:
            with open_data_file(path, read_only=True) as conn:
                return describe_tables(conn), count_tables(conn)
        except sqlite3.DatabaseError as e:
            raise CorruptFileError(f"Cannot read {path.name}", details=str(e)) from e
