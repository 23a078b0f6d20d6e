"""Tests for 'databases' commands."""

import sqlite3

import respx
from httpx import Response
from typer.testing import CliRunner

from sqlite_explorer_cli.main import app

runner = CliRunner()

RECORD = {
    "id": 1,
    "name": "sales.db",
    "path": "/storage/databases/1700000000000-sales.db",
    "size": 8192,
    "table_count": 2,
    "is_favorite": False,
    "notes": None,
    "last_accessed": "2024-01-01T10:30:00.123456",
    "created_at": "2024-01-01T10:30:00.123456",
}


class TestDatabasesList:
    """Tests for 'databases list' command."""

    @respx.mock
    def test_list(self, mock_config):
        respx.get("http://test-api/databases").mock(
            return_value=Response(200, json={"databases": [RECORD]})
        )

        result = runner.invoke(app, ["databases", "list"])

        assert result.exit_code == 0
        assert "sales.db" in result.stdout
        assert "8.0 KB" in result.stdout
        assert "Total: 1" in result.stdout

    @respx.mock
    def test_list_empty(self, mock_config):
        respx.get("http://test-api/databases").mock(
            return_value=Response(200, json={"databases": []})
        )

        result = runner.invoke(app, ["databases", "list"])

        assert result.exit_code == 0
        assert "No databases found" in result.stdout

    @respx.mock
    def test_list_favorites_json(self, mock_config):
        route = respx.get("http://test-api/databases/favorites").mock(
            return_value=Response(200, json={"databases": [RECORD]})
        )

        result = runner.invoke(app, ["--json", "databases", "list", "--favorites"])

        assert result.exit_code == 0
        assert route.called
        assert '"sales.db"' in result.stdout


class TestDatabasesUpload:
    """Tests for 'databases upload' command."""

    @respx.mock
    def test_upload(self, mock_config, tmp_path):
        path = tmp_path / "sales.db"
        sqlite3.connect(str(path)).execute("CREATE TABLE t (a)").connection.close()
        route = respx.post("http://test-api/databases/upload").mock(
            return_value=Response(200, json={"database": RECORD})
        )

        result = runner.invoke(app, ["databases", "upload", str(path)])

        assert result.exit_code == 0
        assert "Database uploaded: sales.db" in result.stdout
        assert "Database ID: 1" in result.stdout
        assert route.called

    @respx.mock
    def test_upload_rejected(self, mock_config, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("hello")
        respx.post("http://test-api/databases/upload").mock(
            return_value=Response(
                500,
                json={
                    "error": "upload_failed",
                    "message": "Failed to upload database",
                    "details": "Invalid file type. Please upload a SQLite database file.",
                },
            )
        )

        result = runner.invoke(app, ["databases", "upload", str(path)])

        assert result.exit_code == 1
        assert "Invalid file type" in result.output

    def test_upload_missing_file(self, mock_config, tmp_path):
        result = runner.invoke(app, ["databases", "upload", str(tmp_path / "nope.db")])

        assert result.exit_code != 0


class TestDatabaseTables:
    """Tests for 'databases tables' and 'databases schema'."""

    @respx.mock
    def test_tables(self, mock_config):
        respx.get("http://test-api/databases/1/tables").mock(
            return_value=Response(200, json={"tables": ["orders", "users"]})
        )

        result = runner.invoke(app, ["databases", "tables", "1"])

        assert result.exit_code == 0
        assert "orders" in result.stdout
        assert "users" in result.stdout

    @respx.mock
    def test_schema(self, mock_config):
        respx.get("http://test-api/databases/1/tables/users/schema").mock(
            return_value=Response(
                200,
                json={
                    "table": "users",
                    "schema": [
                        {"cid": 0, "name": "id", "type": "INTEGER", "notnull": 0, "dflt_value": None, "pk": 1},
                        {"cid": 1, "name": "email", "type": "TEXT", "notnull": 1, "dflt_value": None, "pk": 0},
                    ],
                },
            )
        )

        result = runner.invoke(app, ["databases", "schema", "1", "users"])

        assert result.exit_code == 0
        assert "INTEGER" in result.stdout
        assert "email" in result.stdout

    @respx.mock
    def test_missing_database(self, mock_config):
        respx.get("http://test-api/databases/9/tables").mock(
            return_value=Response(
                404,
                json={"error": "not_found", "message": "Database 9 not found", "details": None},
            )
        )

        result = runner.invoke(app, ["databases", "tables", "9"])

        assert result.exit_code == 1
        assert "Database 9 not found" in result.output


class TestConnectionCommands:
    """Tests for 'databases open', 'current' and 'delete'."""

    @respx.mock
    def test_open(self, mock_config):
        respx.post("http://test-api/databases/1/open").mock(
            return_value=Response(
                200,
                json={
                    "connection": {
                        "path": RECORD["path"],
                        "name": "sales.db",
                        "size": 8192,
                        "tables": ["orders", "users"],
                        "last_accessed": "2024-01-01T10:30:00",
                        "database_id": 1,
                    }
                },
            )
        )

        result = runner.invoke(app, ["databases", "open", "1"])

        assert result.exit_code == 0
        assert "Opened sales.db (2 tables)" in result.stdout

    @respx.mock
    def test_current_without_connection(self, mock_config):
        respx.get("http://test-api/databases/current").mock(
            return_value=Response(
                400,
                json={"error": "no_database_loaded", "message": "No database loaded", "details": None},
            )
        )

        result = runner.invoke(app, ["databases", "current"])

        assert result.exit_code == 1
        assert "No database loaded" in result.output

    @respx.mock
    def test_delete_with_force(self, mock_config):
        route = respx.delete("http://test-api/databases/1").mock(
            return_value=Response(200, json={"success": True})
        )

        result = runner.invoke(app, ["databases", "delete", "1", "--force"])

        assert result.exit_code == 0
        assert route.called
        assert "Database 1 deleted" in result.stdout

    @respx.mock
    def test_delete_aborted(self, mock_config):
        route = respx.delete("http://test-api/databases/1")

        result = runner.invoke(app, ["databases", "delete", "1"], input="n\n")

        assert result.exit_code == 1
        assert not route.called
