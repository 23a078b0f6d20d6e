"""HTTP client for the SQLite Explorer API."""

from pathlib import Path
from typing import Any

import httpx
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn

from .config import CLIConfig, get_config


class APIError(Exception):
    """API error with status code, error code and details."""

    def __init__(
        self,
        status_code: int,
        message: str,
        error: str | None = None,
        details: Any = None,
    ):
        self.status_code = status_code
        self.message = message
        self.error = error
        self.details = details
        super().__init__(f"[{status_code}] {message}")


class ExplorerClient:
    """HTTP client for the SQLite Explorer API."""

    def __init__(self, config: CLIConfig | None = None, verbose: bool = False):
        self.config = config or get_config()
        self.verbose = verbose
        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.config.url,
                timeout=self.config.timeout,
            )
        return self._client

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            self._client.close()
            self._client = None

    def __enter__(self) -> "ExplorerClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def _handle_response(self, response: httpx.Response) -> dict[str, Any]:
        """Handle API response, raising APIError if not successful."""
        if self.verbose:
            print(f"  -> {response.status_code} ({response.elapsed.total_seconds():.2f}s)")

        if response.status_code >= 400:
            try:
                error_data = response.json()
            except ValueError:
                raise APIError(
                    response.status_code,
                    response.text or f"HTTP {response.status_code}",
                )

            if isinstance(error_data.get("detail"), list):
                # FastAPI request validation errors
                raise APIError(
                    response.status_code,
                    "Invalid request",
                    error="request_validation",
                    details=error_data["detail"],
                )
            raise APIError(
                response.status_code,
                error_data.get("message") or str(error_data.get("detail", response.text)),
                error=error_data.get("error"),
                details=error_data.get("details"),
            )

        try:
            return response.json()
        except ValueError:
            return {}

    def get(self, path: str, params: dict | None = None) -> dict[str, Any]:
        """Make GET request."""
        if self.verbose:
            print(f"GET {path}")
        response = self.client.get(path, params=params)
        return self._handle_response(response)

    def post(
        self,
        path: str,
        json_data: dict | None = None,
        params: dict | None = None,
    ) -> dict[str, Any]:
        """Make POST request with JSON body and optional query params."""
        if self.verbose:
            print(f"POST {path}")
        response = self.client.post(path, json=json_data, params=params)
        return self._handle_response(response)

    def put(self, path: str, json_data: dict | None = None) -> dict[str, Any]:
        """Make PUT request."""
        if self.verbose:
            print(f"PUT {path}")
        response = self.client.put(path, json=json_data)
        return self._handle_response(response)

    def delete(self, path: str) -> dict[str, Any]:
        """Make DELETE request."""
        if self.verbose:
            print(f"DELETE {path}")
        response = self.client.delete(path)
        return self._handle_response(response)

    def upload_database(self, file_path: Path, show_progress: bool = True) -> dict[str, Any]:
        """Upload a SQLite file to /databases/upload using multipart form data."""
        if self.verbose:
            print("POST /databases/upload (file upload)")

        file_size = file_path.stat().st_size

        with open(file_path, "rb") as f:
            files = {"file": (file_path.name, f, "application/octet-stream")}

            if show_progress and file_size > 1024 * 1024:  # Show progress for files > 1MB
                with Progress(
                    SpinnerColumn(),
                    TextColumn("[progress.description]{task.description}"),
                    BarColumn(),
                ) as progress:
                    task = progress.add_task(f"Uploading {file_path.name}", total=file_size)
                    response = self.client.post("/databases/upload", files=files)
                    progress.update(task, completed=file_size)
            else:
                response = self.client.post("/databases/upload", files=files)

        return self._handle_response(response)


def get_client(verbose: bool = False) -> ExplorerClient:
    """Get a configured API client."""
    config = get_config()
    errors = config.validate()
    if errors:
        raise ValueError("\n".join(errors))
    return ExplorerClient(config, verbose=verbose)
