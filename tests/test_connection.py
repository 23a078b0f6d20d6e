"""Tests for data file connections."""

import sqlite3

import pytest

from sqlite_explorer.connection import (
    ConnectionManager,
    count_tables,
    describe_tables,
    list_tables,
    open_data_file,
    table_schema,
)
from sqlite_explorer.errors import CorruptFileError, NoConnectionError, NotFoundError
from tests.conftest import create_sqlite_db


class TestConnectionManager:
    """Tests for the single active connection."""

    def test_open_reads_user_tables(self, sample_db):
        manager = ConnectionManager()
        summary = manager.open(sample_db, "sample.db", database_id=7)

        assert manager.is_open()
        assert summary.name == "sample.db"
        assert summary.tables == ["orders", "users"]
        assert summary.size == sample_db.stat().st_size
        assert summary.database_id == 7
        manager.close()

    def test_open_returns_the_current_summary(self, sample_db):
        manager = ConnectionManager()

        summary = manager.open(sample_db)

        assert manager.current_summary() is summary
        with manager.connection() as (_, held):
            assert held is summary
        manager.close()

    def test_current_summary_without_connection(self):
        manager = ConnectionManager()

        with pytest.raises(NoConnectionError):
            manager.current_summary()

    def test_connection_without_open_raises(self):
        manager = ConnectionManager()

        with pytest.raises(NoConnectionError):
            with manager.connection():
                pass

    def test_second_open_closes_first(self, sample_db, empty_db):
        manager = ConnectionManager()
        manager.open(sample_db)
        with manager.connection() as (first_conn, _):
            pass

        summary = manager.open(empty_db)

        assert summary.path == str(empty_db)
        assert summary.tables == []
        with pytest.raises(sqlite3.ProgrammingError):
            first_conn.execute("SELECT 1")
        manager.close()

    def test_close_is_idempotent(self, sample_db):
        manager = ConnectionManager()
        manager.open(sample_db)

        manager.close()
        manager.close()

        assert not manager.is_open()
        with pytest.raises(NoConnectionError):
            manager.current_summary()

    def test_open_missing_file(self, tmp_path):
        manager = ConnectionManager()

        with pytest.raises(NotFoundError):
            manager.open(tmp_path / "missing.db")

        assert not manager.is_open()
        assert not (tmp_path / "missing.db").exists()

    def test_open_corrupt_file(self, tmp_path):
        path = tmp_path / "corrupt.db"
        path.write_bytes(b"this is not a database at all" * 10)
        manager = ConnectionManager()

        with pytest.raises(CorruptFileError):
            manager.open(path)

        assert not manager.is_open()

    def test_summary_to_dict(self, sample_db):
        manager = ConnectionManager()
        data = manager.open(sample_db).to_dict()

        assert data["tables"] == ["orders", "users"]
        assert isinstance(data["last_accessed"], str)
        manager.close()


class TestCatalogHelpers:
    """Tests for table listing and schema helpers."""

    def test_list_tables_excludes_internal_tables(self, sample_db):
        with open_data_file(sample_db, read_only=True) as conn:
            tables = list_tables(conn)

        assert "sqlite_sequence" not in tables
        assert tables == ["orders", "users"]

    def test_count_tables_includes_internal_tables(self, tmp_path):
        path = create_sqlite_db(
            tmp_path / "seq.db",
            [
                "CREATE TABLE events (id INTEGER PRIMARY KEY AUTOINCREMENT, kind TEXT)",
                "INSERT INTO events (kind) VALUES ('start')",
            ],
        )

        with open_data_file(path, read_only=True) as conn:
            assert list_tables(conn) == ["events"]
            assert count_tables(conn) == 2

    def test_table_schema(self, sample_db):
        with open_data_file(sample_db, read_only=True) as conn:
            columns = table_schema(conn, "users")

        assert [c["name"] for c in columns] == ["id", "name", "email"]
        id_col, name_col, email_col = columns
        assert id_col["pk"] == 1
        assert id_col["type"] == "INTEGER"
        assert name_col["notnull"] == 1
        assert email_col["dflt_value"] == "'n/a'"

    def test_table_schema_unknown_table(self, sample_db):
        with open_data_file(sample_db, read_only=True) as conn:
            with pytest.raises(NotFoundError):
                table_schema(conn, "nope")

    def test_table_schema_quotes_identifier(self, tmp_path):
        path = create_sqlite_db(tmp_path / "odd.db", ['CREATE TABLE "we""ird" (a INT)'])

        with open_data_file(path, read_only=True) as conn:
            columns = table_schema(conn, 'we"ird')

        assert [c["name"] for c in columns] == ["a"]

    def test_describe_tables_counts_rows(self, sample_db):
        with open_data_file(sample_db, read_only=True) as conn:
            tables = {t["name"]: t for t in describe_tables(conn)}

        assert tables["users"]["row_count"] == 2
        assert tables["orders"]["row_count"] == 1
        assert len(tables["users"]["columns"]) == 3

    def test_read_only_connection_rejects_writes(self, sample_db):
        with open_data_file(sample_db, read_only=True) as conn:
            with pytest.raises(sqlite3.OperationalError):
                conn.execute("DELETE FROM users")

    def test_open_data_file_missing(self, tmp_path):
        with pytest.raises(NotFoundError):
            with open_data_file(tmp_path / "nope.db"):
                pass
