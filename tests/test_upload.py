"""Tests for the upload pipeline."""

import io
from pathlib import Path

import pytest

from sqlite_explorer.errors import (
    CorruptFileError,
    NotFoundError,
    StorageError,
    UploadError,
    ValidationError,
)
from sqlite_explorer.upload import CHUNK_SIZE, sanitize_filename
from tests.conftest import catalog_table_count, create_sqlite_db


def stored_files(app_context) -> list[Path]:
    return sorted(Path(app_context.settings.databases_dir).iterdir())


def accept_file(app_context, path: Path, name: str | None = None) -> dict:
    with open(path, "rb") as f:
        return app_context.uploads.accept(f, name or path.name)


class TestAccept:
    """Tests for UploadPipeline.accept."""

    def test_accept_registers_record(self, app_context, sample_db):
        record = accept_file(app_context, sample_db)

        stored = Path(record["path"])
        assert stored.parent == Path(app_context.settings.databases_dir)
        assert stored.name.endswith("-sample.db")
        assert stored.name.split("-", 1)[0].isdigit()
        assert record["name"] == "sample.db"
        assert record["is_favorite"] is False

    def test_table_count_matches_catalog_query(self, app_context, sample_db):
        # orders uses AUTOINCREMENT, so the file also holds sqlite_sequence
        record = accept_file(app_context, sample_db)

        assert record["table_count"] == catalog_table_count(Path(record["path"])) == 3

    def test_size_round_trip(self, app_context, sample_db):
        data = sample_db.read_bytes()

        record = app_context.uploads.accept(io.BytesIO(data), "sample.db")

        assert record["size"] == len(data)
        assert Path(record["path"]).stat().st_size == len(data)
        assert Path(record["path"]).read_bytes() == data

    def test_body_larger_than_one_chunk(self, app_context, tmp_path):
        big = create_sqlite_db(
            tmp_path / "big.db",
            [
                "CREATE TABLE blobs (data BLOB)",
                f"INSERT INTO blobs VALUES (zeroblob({CHUNK_SIZE * 3}))",
            ],
        )

        record = accept_file(app_context, big)

        assert record["size"] == big.stat().st_size > CHUNK_SIZE
        assert Path(record["path"]).read_bytes() == big.read_bytes()

    def test_empty_database(self, app_context, empty_db):
        record = accept_file(app_context, empty_db)

        assert record["table_count"] == 0
        assert record["is_favorite"] is False

    def test_schema_catalog_is_stored(self, app_context, sample_db):
        record = accept_file(app_context, sample_db)

        assert [t["name"] for t in record["schema_cache"]] == ["orders", "users"]
        assert record["schema_updated_at"] is not None
        catalog = {t["name"]: t for t in app_context.metadata.catalog(record["id"])}
        assert catalog["users"]["column_count"] == 3
        assert catalog["users"]["row_count"] == 2

    @pytest.mark.parametrize("name", [None, ""])
    def test_missing_file_is_a_validation_error(self, app_context, name):
        with pytest.raises(ValidationError) as exc_info:
            app_context.uploads.accept(io.BytesIO(b"x"), name)

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "No file provided"

    @pytest.mark.parametrize("name", ["data.csv", "notes.txt", "archive", "db.sqlite.bak"])
    def test_rejects_unknown_extension(self, app_context, sample_db, name):
        with pytest.raises(UploadError) as exc_info:
            accept_file(app_context, sample_db, name)

        assert exc_info.value.status_code == 500
        assert isinstance(exc_info.value.cause, ValidationError)
        assert "Invalid file type" in exc_info.value.details
        assert stored_files(app_context) == []

    @pytest.mark.parametrize("name", ["UPPER.DB", "x.sqlite3", "x.db3"])
    def test_accepts_extensions_case_insensitively(self, app_context, sample_db, name):
        record = accept_file(app_context, sample_db, name)

        assert record["name"] == name

    def test_rejects_empty_body(self, app_context):
        with pytest.raises(UploadError) as exc_info:
            app_context.uploads.accept(io.BytesIO(b""), "empty.db")

        assert "empty" in exc_info.value.details
        assert stored_files(app_context) == []

    def test_rejects_oversized_body_while_streaming(self, app_context, sample_db):
        data = sample_db.read_bytes()
        app_context.settings.max_upload_bytes = len(data) - 1
        source = io.BytesIO(data + b"\x00" * CHUNK_SIZE * 4)

        with pytest.raises(UploadError) as exc_info:
            app_context.uploads.accept(source, "sample.db")

        assert "too large" in exc_info.value.details
        # Reading stopped at the first chunk past the limit
        assert source.tell() < len(source.getvalue())
        assert stored_files(app_context) == []

    def test_corrupt_file_is_removed(self, app_context):
        with pytest.raises(UploadError) as exc_info:
            app_context.uploads.accept(io.BytesIO(b"definitely not sqlite" * 100), "broken.db")

        assert exc_info.value.status_code == 500
        assert isinstance(exc_info.value.cause, CorruptFileError)
        assert stored_files(app_context) == []
        assert app_context.metadata.list_databases() == []

    def test_registration_failure_removes_file(self, app_context, sample_db, monkeypatch):
        def failing_upsert(**kwargs):
            raise StorageError("control database unavailable")

        monkeypatch.setattr(app_context.metadata, "upsert", failing_upsert)

        with pytest.raises(UploadError) as exc_info:
            accept_file(app_context, sample_db)

        assert isinstance(exc_info.value.cause, StorageError)
        assert stored_files(app_context) == []

    def test_same_name_twice_gets_distinct_paths(self, app_context, sample_db):
        first = accept_file(app_context, sample_db)
        second = accept_file(app_context, sample_db)

        assert first["path"] != second["path"]
        assert first["id"] != second["id"]
        assert len(stored_files(app_context)) == 2

    def test_directory_components_are_stripped(self, app_context, sample_db):
        record = accept_file(app_context, sample_db, "../../etc/evil.db")

        stored = Path(record["path"])
        assert stored.parent == Path(app_context.settings.databases_dir)
        assert stored.name.endswith("-evil.db")


class TestRescan:
    """Tests for UploadPipeline.rescan."""

    def test_rescan_picks_up_new_tables(self, app_context, sample_db):
        record = accept_file(app_context, sample_db)
        create_sqlite_db(Path(record["path"]), ["CREATE TABLE extra (a INT)"])

        rescanned = app_context.uploads.rescan(record["id"])

        assert rescanned["id"] == record["id"]
        assert rescanned["table_count"] == catalog_table_count(Path(record["path"])) == 4
        assert rescanned["size"] == Path(record["path"]).stat().st_size
        assert "extra" in [t["name"] for t in rescanned["schema_cache"]]
        assert "extra" in [t["name"] for t in app_context.metadata.catalog(record["id"])]

    def test_rescan_unknown_record(self, app_context):
        with pytest.raises(NotFoundError):
            app_context.uploads.rescan(999)

    def test_rescan_keeps_favorite(self, app_context, sample_db):
        record = accept_file(app_context, sample_db)
        app_context.metadata.update(record["id"], is_favorite=True, notes="keep me")

        rescanned = app_context.uploads.rescan(record["id"])

        assert rescanned["is_favorite"] is True
        assert rescanned["notes"] == "keep me"


class TestDiscard:
    def test_discard_removes_file_and_record(self, app_context, sample_db):
        record = accept_file(app_context, sample_db)

        assert app_context.uploads.discard(record) is True

        assert not Path(record["path"]).exists()
        assert app_context.metadata.find_by_id(record["id"]) is None
        assert app_context.metadata.catalog(record["id"]) == []


class TestSanitizeFilename:
    @pytest.mark.parametrize(
        "original,expected",
        [
            ("plain.db", "plain.db"),
            ("with space.db", "with_space.db"),
            ("dir/sub/file.sqlite", "file.sqlite"),
            ("C:\\Users\\me\\file.db", "file.db"),
            ("ünïcödé.db", "_n_c_d_.db"),
        ],
    )
    def test_sanitize(self, original, expected):
        assert sanitize_filename(original) == expected
