"""Configuration management for the SQLite Explorer CLI."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any
import os

import yaml


CONFIG_DIR = Path.home() / ".sqlite-explorer"
CONFIG_FILE = CONFIG_DIR / "config.yaml"

DEFAULT_URL = "http://localhost:3001"


@dataclass
class CLIConfig:
    """CLI configuration."""

    url: str = DEFAULT_URL
    timeout: float = 60.0

    @classmethod
    def load(cls) -> "CLIConfig":
        """Load configuration from file and environment.

        Priority (highest to lowest):
        1. Environment variable SQLITE_EXPLORER_URL
        2. Config file (~/.sqlite-explorer/config.yaml)
        3. Defaults
        """
        config = cls()

        if CONFIG_FILE.exists():
            try:
                with open(CONFIG_FILE) as f:
                    data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError):
                data = {}
            config.url = data.get("url") or config.url
            if data.get("timeout"):
                config.timeout = float(data["timeout"])

        if env_url := os.environ.get("SQLITE_EXPLORER_URL"):
            config.url = env_url

        return config

    def save(self) -> None:
        """Save configuration to file."""
        CONFIG_DIR.mkdir(parents=True, exist_ok=True)

        with open(CONFIG_FILE, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False)

    def set_value(self, key: str, value: str) -> None:
        """Set a configuration value and persist it."""
        key_normalized = key.lower().replace("-", "_")

        if key_normalized == "url":
            self.url = value.rstrip("/")
        elif key_normalized == "timeout":
            try:
                self.timeout = float(value)
            except ValueError:
                raise ValueError(f"Timeout must be a number of seconds: {value}")
        else:
            raise ValueError(f"Unknown config key: {key}")

        self.save()

    def get_value(self, key: str) -> str:
        """Get a configuration value."""
        key_normalized = key.lower().replace("-", "_")

        if key_normalized == "url":
            return self.url
        elif key_normalized == "timeout":
            return str(self.timeout)
        else:
            raise ValueError(f"Unknown config key: {key}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "timeout": self.timeout,
        }

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []
        if not self.url:
            errors.append("URL not configured. Use: sqlite-explorer config set url <url>")
        elif not self.url.startswith(("http://", "https://")):
            errors.append(f"URL must start with http:// or https://: {self.url}")
        return errors


def get_config() -> CLIConfig:
    """Get the current configuration."""
    return CLIConfig.load()
