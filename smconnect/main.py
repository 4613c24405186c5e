"""
SageMaker Space Connector — CLI entrypoint.

Usage:
    smconnect --help
    smconnect status
    smconnect connect
    python -m smconnect.main diagnose --json
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from smconnect import __version__
from smconnect.core.observability.logging_config import (
    ENV_LOG_FILE,
    ENV_LOG_FILE_LEVEL,
    resolve_level,
    setup_logging,
)
from smconnect.ui.cli.common import echo_outcome, get_orchestrator


@click.group()
@click.version_option(version=__version__, prog_name="smconnect")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to smconnect.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """SageMaker Space Connector — check, repair and open remote connections."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    setup_logging(
        level=resolve_level(debug, verbose, quiet, os.environ),
        log_file=os.environ.get(ENV_LOG_FILE),
        log_file_level=os.environ.get(ENV_LOG_FILE_LEVEL),
        quiet_third_party=not debug,
    )


def _mark(passed: bool) -> str:
    return "✅" if passed else "❌"


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show prerequisites and local server status."""
    report = get_orchestrator(ctx).status()

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        sys.exit(0 if report.ok else 1)
        return

    for notice in report.notices:
        click.secho(f"⚠️  {notice}", fg="yellow")

    p = report.prerequisites
    click.secho("\n📋 Prerequisites", fg="cyan", bold=True)
    click.echo(f"   {_mark(p.tool_installed)} AWS CLI")
    click.echo(f"   {_mark(p.bridge_plugin_installed)} Session Manager Plugin")
    ext = p.remote_extension
    label = f" ({ext.extension_id})" if ext.installed else ""
    click.echo(f"   {_mark(ext.installed)} Remote-SSH extension{label}")
    click.echo(f"   {_mark(p.ssh_config_has_host)} SSH config host entry")
    click.echo(f"   {_mark(p.toolkit_installed)} AWS Toolkit")

    s = report.server
    click.secho("\n🖥️  Local server", fg="cyan", bold=True)
    if s.running:
        click.secho(f"   ✅ Running (PID: {s.pid}, Port: {s.port})", fg="green")
    else:
        click.secho(f"   ❌ Not running: {s.error}", fg="red")

    if report.hints:
        click.echo()
        click.secho("   To fix:", fg="white", bold=True)
        for hint in report.hints:
            click.echo(f"     • {hint}")
    click.echo()

    if not report.ok:
        sys.exit(1)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def diagnose(ctx: click.Context, as_json: bool) -> None:
    """Run every check and recommend fixes."""
    report = get_orchestrator(ctx).diagnose()

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        sys.exit(0 if report.ok else 1)
        return

    icons = {"healthy": "✅", "degraded": "⚠️ ", "unhealthy": "❌", "unknown": "❔"}
    click.secho("\n🩺 SageMaker connection diagnostics", fg="cyan", bold=True)
    for i, component in enumerate(report.components, 1):
        icon = icons.get(component.status, "❔")
        click.echo(f"   {i}. {icon} {component.name}: {component.message}")
        for issue in component.details.get("issues", []):
            line = f" (line {issue['line']})" if issue.get("line") else ""
            click.echo(f"         • {issue['kind']}{line}: {issue['message']}")

    if report.recommendations:
        click.echo()
        click.secho("   Recommendations:", fg="white", bold=True)
        for i, rec in enumerate(report.recommendations, 1):
            click.echo(f"     {i}. {rec}")

    color = {"healthy": "green", "degraded": "yellow"}.get(report.status, "red")
    click.echo()
    click.secho(f"   Overall: {report.status}", fg=color, bold=True)
    click.echo()

    if not report.ok:
        sys.exit(1)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def connect(ctx: click.Context, as_json: bool) -> None:
    """Verify the server twice, then open the remote connection."""
    echo_outcome(get_orchestrator(ctx).connect(), as_json)


@cli.command("quick-start")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def quick_start(ctx: click.Context, as_json: bool) -> None:
    """Apply safe repairs, clear stale host keys, then connect."""
    echo_outcome(get_orchestrator(ctx).quick_start(), as_json)


@cli.command()
@click.option("--arn", "space_arn", default=None, help="Space (or app) ARN to connect to.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def setup(ctx: click.Context, space_arn: str | None, as_json: bool) -> None:
    """Check required tools and create the SSH host entry."""
    echo_outcome(get_orchestrator(ctx).setup(space_arn), as_json)


# ── Register sub-command groups from smconnect/ui/cli/ ──────────

from smconnect.ui.cli.server import server
from smconnect.ui.cli.ssh_config import ssh_config
from smconnect.ui.cli.fix import fix
from smconnect.ui.cli.arn import arn

cli.add_command(server)
cli.add_command(ssh_config)
cli.add_command(fix)
cli.add_command(arn)


if __name__ == "__main__":
    cli()
