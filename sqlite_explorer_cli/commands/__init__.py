"""CLI command groups."""

from contextlib import contextmanager
from typing import Generator

import typer

from ..client import APIError, ExplorerClient, get_client
from ..output import print_error, print_info


@contextmanager
def api_session(verbose: bool = False) -> Generator[ExplorerClient, None, None]:
    """Yield a configured client; API and config errors exit with status 1."""
    try:
        client = get_client(verbose=verbose)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1)

    try:
        yield client
    except APIError as e:
        print_error(e.message)
        if e.details:
            print_info(f"Details: {e.details}")
        raise typer.Exit(1)
    finally:
        client.close()
