"""Command line interface for inspecting crossroute routes."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer

from crossroute.persistence import get_repository

app = typer.Typer(help="CLI for crossroute route executions")

route_app = typer.Typer(help="Commands for inspecting persisted routes")

app.add_typer(route_app, name="route")


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", help="Logging level for crossroute"),
) -> None:
    """crossroute CLI entry point."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@route_app.command("list")
def route_list() -> None:
    """
    List all persisted routes with their current status.

    The status is aggregated over the route's steps: NOT_STARTED, PENDING,
    ACTION_REQUIRED, CHAIN_SWITCH_REQUIRED, DONE, FAILED or CANCELLED.

    Example:
        crossroute route list
        # Output: 0x4f1c...e2    DONE
        #         0x9a03...17    ACTION_REQUIRED
    """
    repo = get_repository()
    routes = asyncio.run(repo.list_routes())
    if not routes:
        typer.echo("No routes found")
        return
    for record in routes:
        typer.echo(f"{record.route_id}\t{record.status}")


@route_app.command("show")
def route_show(route_id: str) -> None:
    """
    Show the execution ledger of a route.

    Prints every step with its execution status and the processes it went
    through, including transaction hashes and errors.

    Example:
        crossroute route show 0x4f1c...e2
        # Output: Route 0x4f1c...e2: PENDING
        #         - step-1 (1 -> 137): DONE
        #             TOKEN_ALLOWANCE: DONE
        #             CROSS_CHAIN: DONE 0xabc...
        #             RECEIVING_CHAIN: PENDING
    """
    repo = get_repository()
    record = asyncio.run(repo.get_route(route_id))
    if record is None:
        typer.echo("Route not found")
        raise typer.Exit(code=1)
    route = record.to_route()
    typer.echo(f"Route {route.id}: {record.status}")
    for step in route.steps:
        action = step.action
        status = step.execution.status.value if step.execution else "NOT_STARTED"
        typer.echo(
            f"- {step.id} ({action.from_chain_id} -> {action.to_chain_id}): {status}"
        )
        if step.execution is None:
            continue
        for process in step.execution.process:
            line = f"    {process.type.value}: {process.status.value}"
            if process.tx_hash:
                line += f" {process.tx_hash}"
            typer.echo(line)
            if process.error is not None:
                typer.secho(
                    f"      error {process.error.code}: {process.error.message}",
                    fg=typer.colors.RED,
                )


@route_app.command("export")
def route_export(
    route_id: str,
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write the route to this file instead of stdout"
    ),
) -> None:
    """
    Export a route, including its execution ledger, as JSON.

    The output can be fed back to ``RouteExecutionManager.resume_route``
    after ``Route.from_json``.

    Example:
        crossroute route export 0x4f1c...e2 -o route.json
    """
    repo = get_repository()
    record = asyncio.run(repo.get_route(route_id))
    if record is None:
        typer.echo("Route not found")
        raise typer.Exit(code=1)
    data = json.dumps(record.data, indent=2)
    if output is None:
        typer.echo(data)
        return
    output.write_text(data)
    typer.echo(f"Route {route_id} written to {output}")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
