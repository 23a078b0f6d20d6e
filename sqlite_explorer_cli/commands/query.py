"""Query commands: run SQL, history, saved queries and analytics."""

from typing import Optional

import typer

from . import api_session
from ..main import state
from ..output import print_json, print_query_result, print_table


app = typer.Typer(
    name="query",
    help="Run SQL and inspect query history",
    no_args_is_help=True,
)


@app.command("run")
def run_query(
    sql: str = typer.Argument(..., help="SQL statement"),
    database: Optional[int] = typer.Option(
        None, "--database", "-d",
        help="Run against this database ID instead of the current connection",
    ),
) -> None:
    """Execute one SQL statement."""
    path = f"/databases/{database}/query" if database is not None else "/query"

    with api_session(state.verbose) as client:
        result = client.post(path, {"sql": sql})

    if state.json_output:
        print_json(result)
    else:
        print_query_result(result)


@app.command("history")
def query_history(
    limit: int = typer.Option(20, "--limit", "-l", help="Number of entries"),
) -> None:
    """Show recent query history."""
    with api_session(state.verbose) as client:
        history = client.get("/query/history", params={"limit": limit}).get("history", [])

    if state.json_output:
        print_json({"history": history})
        return

    print_table(
        [
            {
                "ID": entry["id"],
                "Query": entry["query"],
                "Database": entry["database_name"],
                "Time (ms)": entry["execution_time_ms"],
                "OK": entry["success"],
                "Executed": (entry.get("executed_at") or "")[:19],
            }
            for entry in history
        ],
        columns=["ID", "Query", "Database", "Time (ms)", "OK", "Executed"],
        title="Query history",
    )


@app.command("saved")
def saved_queries(
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Filter by text"),
) -> None:
    """List saved queries."""
    with api_session(state.verbose) as client:
        if search:
            queries = client.get("/query/search", params={"term": search}).get("queries", [])
        else:
            queries = client.get("/query/saved").get("queries", [])

    if state.json_output:
        print_json({"queries": queries})
        return

    print_table(
        [
            {
                "ID": q["id"],
                "Name": q["name"],
                "Query": q["query"],
                "Tags": ", ".join(q.get("tags") or []),
                "Favorite": q.get("favorite", False),
            }
            for q in queries
        ],
        columns=["ID", "Name", "Query", "Tags", "Favorite"],
        title="Saved queries",
    )


@app.command("save")
def save_query(
    name: str = typer.Argument(..., help="Name of the saved query"),
    sql: str = typer.Argument(..., help="SQL text"),
    description: Optional[str] = typer.Option(None, "--description", help="Description"),
    tag: list[str] = typer.Option([], "--tag", "-t", help="Tag (repeatable)"),
) -> None:
    """Save a query for later."""
    with api_session(state.verbose) as client:
        saved = client.post(
            "/query/save",
            {"name": name, "query": sql, "description": description, "tags": tag},
        )["query"]

    if state.json_output:
        print_json(saved)
    else:
        print(f"Saved query {saved['id']}: {saved['name']}")


@app.command("analytics")
def query_analytics(
    days: int = typer.Option(30, "--days", help="Window for popular queries"),
    limit: int = typer.Option(10, "--limit", "-l", help="Entries per list"),
) -> None:
    """Show popular and slow queries."""
    with api_session(state.verbose) as client:
        result = client.get("/query/analytics", params={"days": days, "limit": limit})

    if state.json_output:
        print_json(result)
        return

    print_table(
        [
            {
                "Query": p["query"],
                "Count": p["count"],
                "Avg (ms)": p["avg_time_ms"],
                "Last run": (p.get("last_executed_at") or "")[:19],
            }
            for p in result.get("popular", [])
        ],
        columns=["Query", "Count", "Avg (ms)", "Last run"],
        title=f"Popular queries (last {days} days)",
    )
    print_table(
        [
            {
                "Query": s["query"],
                "Database": s["database_name"],
                "Time (ms)": s["execution_time_ms"],
            }
            for s in result.get("slow", [])
        ],
        columns=["Query", "Database", "Time (ms)"],
        title="Slowest queries",
    )
