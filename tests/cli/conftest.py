"""Fixtures for CLI tests."""

import pytest


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep CLI tests away from the real ~/.sqlite-explorer directory."""
    config_dir = tmp_path / ".sqlite-explorer"
    config_file = config_dir / "config.yaml"
    monkeypatch.setattr("sqlite_explorer_cli.config.CONFIG_DIR", config_dir)
    monkeypatch.setattr("sqlite_explorer_cli.config.CONFIG_FILE", config_file)
    monkeypatch.setattr("sqlite_explorer_cli.commands.config_cmd.CONFIG_FILE", config_file)
    monkeypatch.delenv("SQLITE_EXPLORER_URL", raising=False)
    return config_file


@pytest.fixture
def mock_config(monkeypatch):
    """Point the CLI at a mocked API via the environment."""
    monkeypatch.setenv("SQLITE_EXPLORER_URL", "http://test-api")
