"""Main CLI entry point for the SQLite Explorer CLI."""

from typing import Optional

import typer

from . import __version__


app = typer.Typer(
    name="sqlite-explorer",
    help="CLI tool for the SQLite Explorer API",
    no_args_is_help=True,
)


class GlobalState:
    json_output: bool = False
    verbose: bool = False


state = GlobalState()


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        print(f"sqlite-explorer version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    json_output: bool = typer.Option(
        False, "--json", "-j",
        help="Output as JSON instead of tables"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Show debug information"
    ),
    version: Optional[bool] = typer.Option(
        None, "--version", "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit"
    ),
) -> None:
    """SQLite Explorer CLI - upload, browse and query SQLite databases."""
    state.json_output = json_output
    state.verbose = verbose


# Import and register command groups
from .commands import config_cmd, databases, preferences, query

app.add_typer(config_cmd.app, name="config")
app.add_typer(databases.app, name="databases")
app.add_typer(query.app, name="query")
app.add_typer(preferences.app, name="prefs")


if __name__ == "__main__":
    app()
