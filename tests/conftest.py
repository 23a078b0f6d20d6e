"""Pytest configuration and fixtures."""

import sqlite3
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from sqlite_explorer.config import Settings
from sqlite_explorer.dependencies import AppContext
from sqlite_explorer.main import create_app


USERS_SCHEMA = [
    "CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL, email TEXT DEFAULT 'n/a')",
    "CREATE TABLE orders (id INTEGER PRIMARY KEY AUTOINCREMENT, user_id INTEGER, total REAL)",
    "INSERT INTO users (name, email) VALUES ('alice', 'alice@example.com'), ('bob', NULL)",
    "INSERT INTO orders (user_id, total) VALUES (1, 9.5)",
]


def create_sqlite_db(path: Path, statements: list[str]) -> Path:
    """Create a SQLite file at ``path`` by running ``statements``."""
    conn = sqlite3.connect(str(path))
    try:
        for statement in statements:
            conn.execute(statement)
        conn.commit()
    finally:
        conn.close()
    return path


def catalog_table_count(path: Path) -> int:
    """Count every table row straight from the file's sqlite_master."""
    conn = sqlite3.connect(str(path))
    try:
        return conn.execute(
            "SELECT COUNT(*) FROM sqlite_master WHERE type = 'table'"
        ).fetchone()[0]
    finally:
        conn.close()


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings pointing at a temporary data directory."""
    return Settings(data_dir=tmp_path / "data", debug=False)


@pytest.fixture
def app_context(test_settings: Settings):
    """Initialized application context without the HTTP layer."""
    context = AppContext.create(test_settings)
    context.initialize()
    yield context
    context.shutdown()


@pytest.fixture
def client(test_settings: Settings):
    """Test client running the app lifespan against temporary storage."""
    app = create_app(test_settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def sample_db(tmp_path: Path) -> Path:
    """SQLite file with two user tables (plus sqlite_sequence)."""
    return create_sqlite_db(tmp_path / "sample.db", USERS_SCHEMA)


@pytest.fixture
def empty_db(tmp_path: Path) -> Path:
    """Valid SQLite file with no user tables."""
    return create_sqlite_db(
        tmp_path / "empty.sqlite",
        ["CREATE TABLE scratch (x)", "DROP TABLE scratch"],
    )


@pytest.fixture
def uploaded(client: TestClient, sample_db: Path) -> dict:
    """Upload sample_db through the API and return the catalog record."""
    with open(sample_db, "rb") as f:
        response = client.post(
            "/databases/upload",
            files={"file": ("sample.db", f, "application/octet-stream")},
        )
    assert response.status_code == 200, response.text
    return response.json()["database"]
