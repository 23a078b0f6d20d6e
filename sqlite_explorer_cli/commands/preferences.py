"""Preference commands."""

from typing import Optional

import typer

from . import api_session
from ..main import state
from ..output import print_json, print_success, print_table


app = typer.Typer(
    name="prefs",
    help="Manage user preferences",
    no_args_is_help=True,
)


@app.command("list")
def list_preferences(
    group: Optional[str] = typer.Option(None, "--group", "-g", help="Only 'theme' or 'editor' preferences"),
) -> None:
    """List preferences."""
    path = f"/preferences/{group}" if group in ("theme", "editor") else "/preferences"

    with api_session(state.verbose) as client:
        preferences = client.get(path).get("preferences", {})

    if state.json_output:
        print_json({"preferences": preferences})
    elif not preferences:
        print("No preferences set")
    else:
        print_table(
            [{"Key": key, "Value": value} for key, value in preferences.items()],
            title="Preferences",
        )


@app.command("set")
def set_preference(
    key: str = typer.Argument(..., help="Preference key, e.g. editor.fontSize"),
    value: str = typer.Argument(..., help="Preference value"),
) -> None:
    """Set a preference."""
    with api_session(state.verbose) as client:
        result = client.post("/preferences", {"key": key, "value": value})

    if state.json_output:
        print_json(result)
    else:
        print_success(f"{key} = {value}")


@app.command("delete")
def delete_preference(
    key: str = typer.Argument(..., help="Preference key"),
) -> None:
    """Delete a preference."""
    with api_session(state.verbose) as client:
        result = client.delete(f"/preferences/{key}")

    if state.json_output:
        print_json(result)
    else:
        print_success(f"Deleted {key}")
