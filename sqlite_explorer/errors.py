"""Typed errors raised by the explorer core.

Each error carries a short machine-readable ``error`` code, a human message,
optional engine-level ``details`` and the HTTP status the API boundary maps
it to.
"""

from typing import Any


class ExplorerError(Exception):
    """Base class for all errors raised by the explorer core."""

    status_code: int = 500
    error: str = "internal_error"

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.error,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(ExplorerError):
    """Bad or missing upload, malformed input."""

    status_code = 400
    error = "validation_error"


class NotFoundError(ExplorerError):
    """Unknown record id, table or file path."""

    status_code = 404
    error = "not_found"


class NoConnectionError(NotFoundError):
    """No data file is currently open."""

    status_code = 400
    error = "no_database_loaded"

    def __init__(self, message: str = "No database loaded", details: Any = None):
        super().__init__(message, details)


class ExecutionError(ExplorerError):
    """The SQL engine rejected the statement."""

    status_code = 500
    error = "query_failed"


class StorageError(ExplorerError):
    """Filesystem write/read failure in the managed storage directory."""

    status_code = 500
    error = "storage_error"


class CorruptFileError(ExplorerError):
    """The bytes on disk are not a usable SQLite database."""

    status_code = 500
    error = "corrupt_database"


class UploadError(ExplorerError):
    """
    An upload was received but could not be accepted.

    Wraps the validation, corrupt-file or storage error that stopped the
    upload; its message becomes ``details``. A missing file is reported as
    a plain ValidationError instead.
    """

    status_code = 500
    error = "upload_failed"

    def __init__(self, cause: ExplorerError):
        super().__init__("Failed to upload database", details=cause.message)
        self.cause = cause
