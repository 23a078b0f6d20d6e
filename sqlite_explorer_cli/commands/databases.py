"""Database (data file) commands."""

from pathlib import Path

import typer

from . import api_session
from ..main import state
from ..output import (
    format_bytes,
    print_dict,
    print_info,
    print_json,
    print_success,
    print_table,
)


app = typer.Typer(
    name="databases",
    help="Upload, list and open SQLite databases",
    no_args_is_help=True,
)


@app.command("list")
def list_databases(
    favorites: bool = typer.Option(False, "--favorites", "-f", help="Only favorite databases"),
) -> None:
    """List catalogued databases, most recently accessed first."""
    path = "/databases/favorites" if favorites else "/databases"

    with api_session(state.verbose) as client:
        databases = client.get(path).get("databases", [])

    if state.json_output:
        print_json({"databases": databases})
        return

    if not databases:
        print("No databases found")
        return

    table_data = [
        {
            "ID": db["id"],
            "Name": db["name"],
            "Size": format_bytes(db.get("size", 0)),
            "Tables": db.get("table_count", 0),
            "Favorite": db.get("is_favorite", False),
            "Last accessed": (db.get("last_accessed") or "")[:19],
        }
        for db in databases
    ]
    print_table(
        table_data,
        columns=["ID", "Name", "Size", "Tables", "Favorite", "Last accessed"],
        title=f"Databases (Total: {len(databases)})",
    )


@app.command("upload")
def upload_database(
    file: Path = typer.Argument(..., help="SQLite file to upload", exists=True, file_okay=True, dir_okay=False),
) -> None:
    """Upload a SQLite file; the server opens it as the current database."""
    with api_session(state.verbose) as client:
        database = client.upload_database(file, show_progress=not state.json_output)["database"]

    if state.json_output:
        print_json(database)
    else:
        print_success(
            f"Database uploaded: {database['name']} ({format_bytes(database['size'])}, "
            f"{database['table_count']} tables)\n"
            f"Database ID: {database['id']}"
        )


@app.command("tables")
def list_tables(
    database_id: int = typer.Argument(..., help="Database ID"),
) -> None:
    """List tables of a database."""
    with api_session(state.verbose) as client:
        tables = client.get(f"/databases/{database_id}/tables").get("tables", [])

    if state.json_output:
        print_json({"tables": tables})
    elif not tables:
        print(f"No tables found in database {database_id}")
    else:
        print_table([{"Table": name} for name in tables], title=f"Tables in database {database_id}")


@app.command("schema")
def table_schema(
    database_id: int = typer.Argument(..., help="Database ID"),
    table: str = typer.Argument(..., help="Table name"),
) -> None:
    """Show the columns of a table."""
    with api_session(state.verbose) as client:
        schema = client.get(f"/databases/{database_id}/tables/{table}/schema").get("schema", [])

    if state.json_output:
        print_json({"table": table, "schema": schema})
        return

    print_table(
        [
            {
                "#": col["cid"],
                "Column": col["name"],
                "Type": col.get("type") or "",
                "Not null": bool(col.get("notnull")),
                "Default": col.get("dflt_value"),
                "PK": bool(col.get("pk")),
            }
            for col in schema
        ],
        columns=["#", "Column", "Type", "Not null", "Default", "PK"],
        title=f"Schema of {table}",
    )


@app.command("open")
def open_database(
    database_id: int = typer.Argument(..., help="Database ID"),
) -> None:
    """Make a database the current connection."""
    with api_session(state.verbose) as client:
        connection = client.post(f"/databases/{database_id}/open")["connection"]

    if state.json_output:
        print_json(connection)
    else:
        print_success(f"Opened {connection['name']} ({len(connection['tables'])} tables)")


@app.command("current")
def current_database() -> None:
    """Show the current connection."""
    with api_session(state.verbose) as client:
        connection = client.get("/databases/current")["connection"]

    if state.json_output:
        print_json(connection)
    else:
        print_dict(connection, title="Current database")


@app.command("delete")
def delete_database(
    database_id: int = typer.Argument(..., help="Database ID"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
) -> None:
    """Delete a database file and its catalog record."""
    if not force and not state.json_output:
        typer.confirm(f"Delete database {database_id}?", abort=True)

    with api_session(state.verbose) as client:
        result = client.delete(f"/databases/{database_id}")

    if state.json_output:
        print_json(result)
    elif result.get("success"):
        print_success(f"Database {database_id} deleted")
    else:
        print_info(f"Database {database_id} was already gone")
