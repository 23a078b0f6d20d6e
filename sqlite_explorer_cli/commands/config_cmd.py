"""Configuration management commands."""

import typer

from ..config import CONFIG_FILE, get_config
from ..main import state
from ..output import print_dict, print_error, print_json, print_success


app = typer.Typer(help="Configuration management", no_args_is_help=True)


@app.command("set")
def set_config(
    key: str = typer.Argument(..., help="Configuration key (url, timeout)"),
    value: str = typer.Argument(..., help="Configuration value"),
) -> None:
    """Set a configuration value.

    Supported keys:
    - url: SQLite Explorer API URL
    - timeout: request timeout in seconds

    Configuration is saved to ~/.sqlite-explorer/config.yaml
    """
    try:
        config = get_config()
        config.set_value(key, value)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1)

    if state.json_output:
        print_json({"success": True, "key": key, "file": str(CONFIG_FILE)})
    else:
        print_success(f"Configuration updated: {key} = {config.get_value(key)}")
        print_success(f"Saved to: {CONFIG_FILE}")


@app.command("get")
def get_config_value(
    key: str = typer.Argument(..., help="Configuration key (url, timeout)"),
) -> None:
    """Print one configuration value."""
    try:
        value = get_config().get_value(key)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1)

    if state.json_output:
        print_json({key: value})
    else:
        print(value)


@app.command("show")
def show_config() -> None:
    """Show current configuration.

    SQLITE_EXPLORER_URL overrides the url stored in the config file.
    """
    config = get_config()

    if state.json_output:
        print_json(config.to_dict())
        return

    print_dict(config.to_dict(), title="Current Configuration")
    if CONFIG_FILE.exists():
        print_success(f"\nConfig file: {CONFIG_FILE}")
    else:
        print_error(f"\nConfig file not found: {CONFIG_FILE}")
