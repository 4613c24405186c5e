"""
CLI commands for the local bridging server.

Thin wrappers over ``ConnectionOrchestrator.start_server`` and the
server health monitor.
"""

from __future__ import annotations

import json
import sys

import click

from smconnect.ui.cli.common import echo_outcome, get_orchestrator


@click.group()
def server() -> None:
    """Local server — health and start."""


@server.command("status")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def server_status(ctx: click.Context, as_json: bool) -> None:
    """Check the server record, process and port."""
    orchestrator = get_orchestrator(ctx)
    health = orchestrator.monitor.check_server_status()

    if as_json:
        click.echo(json.dumps(health.to_dict(), indent=2))
        sys.exit(0 if health.running else 1)
        return

    if health.running:
        click.secho(f"✅ Server is running (PID: {health.pid}, Port: {health.port})", fg="green")
        return

    click.secho(f"❌ Server is NOT running: {health.error}", fg="red")
    if health.pid is not None:
        click.echo(f"   Process {health.pid}: {'alive' if health.process_alive else 'dead'}")
    if health.port is not None:
        state = "open" if health.port_reachable else "closed"
        click.echo(f"   Port {health.port}: {state}")
    click.echo(f"   Record: {orchestrator.paths.server_record}")
    sys.exit(1)


@server.command("start")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def server_start(ctx: click.Context, as_json: bool) -> None:
    """Ask AWS Toolkit to start the server, then re-check."""
    echo_outcome(get_orchestrator(ctx).start_server(), as_json)
