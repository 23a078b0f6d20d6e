"""Application configuration using pydantic-settings."""

from pathlib import Path
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be configured via:
    1. Environment variables prefixed with SQLITE_EXPLORER_
       (e.g., SQLITE_EXPLORER_DATA_DIR=/my/path)
    2. .env file in the project root

    Storage paths are derived from data_dir by default but can be overridden.
    """

    model_config = SettingsConfigDict(
        env_prefix="SQLITE_EXPLORER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # API settings
    api_title: str = "SQLite Explorer API"
    api_version: str = "0.1.0"
    debug: bool = False  # SQLITE_EXPLORER_DEBUG=true enables /docs and console logs

    # Server settings
    host: str = "0.0.0.0"
    port: int = 3001

    # CORS: "*" in development, the web UI origin otherwise
    cors_origins: list[str] = ["*"]

    # Storage paths - all derived from data_dir by default
    data_dir: Path = Path("./storage")

    # These can be overridden, but default to subdirs of data_dir
    databases_dir: Path | None = None
    control_db_path: Path | None = None

    # Upload limits
    max_upload_bytes: int = 100 * 1024 * 1024  # 100MB
    allowed_extensions: list[str] = [".db", ".sqlite", ".sqlite3", ".db3"]

    # Query history
    history_default_limit: int = 50

    @model_validator(mode="after")
    def set_default_paths(self) -> "Settings":
        """Set default paths based on data_dir if not explicitly provided."""
        if self.databases_dir is None:
            self.databases_dir = self.data_dir / "databases"
        if self.control_db_path is None:
            self.control_db_path = self.data_dir / "control.duckdb"
        return self

    @property
    def storage_paths(self) -> dict[str, Path]:
        """Return all storage paths for health check validation."""
        return {
            "data_dir": self.data_dir,
            "databases_dir": self.databases_dir,
        }


# Global settings instance
settings = Settings()
