"""
CLI commands for repairs.

Every write is preceded by a timestamped backup and recorded in the
repair ledger (``smconnect fix history``).
"""

from __future__ import annotations

import json
import sys

import click

from smconnect.core.errors import ConnectorError
from smconnect.ui.cli.common import echo_fix_record, echo_fix_records, fail, get_orchestrator


@click.group()
def fix() -> None:
    """Repairs — ARN conversion, SSH config, code wrapper."""


@fix.command("arn")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def fix_arn(ctx: click.Context, as_json: bool) -> None:
    """Add the app→space ARN conversion to the connection script."""
    try:
        record = get_orchestrator(ctx).fix_arn_conversion()
    except ConnectorError as e:
        fail(e, as_json)

    if as_json:
        click.echo(json.dumps(record.to_dict(), indent=2))
        return
    echo_fix_record(record)


@fix.command("ssh-config")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def fix_ssh_config(ctx: click.Context, as_json: bool) -> None:
    """Apply every automatic SSH config repair."""
    try:
        records = get_orchestrator(ctx).fix_ssh_config()
    except ConnectorError as e:
        fail(e, as_json)

    echo_fix_records(records, as_json)


@fix.command("code-wrapper")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def fix_code_wrapper(ctx: click.Context, as_json: bool) -> None:
    """Install a `code` wrapper that forwards --folder-uri to Cursor."""
    orchestrator = get_orchestrator(ctx)
    try:
        record = orchestrator.fix_code_wrapper()
    except ConnectorError as e:
        fail(e, as_json)

    if as_json:
        click.echo(json.dumps(record.to_dict(), indent=2))
        return
    echo_fix_record(record)
    wrapper_dir = orchestrator.paths.code_wrapper.parent
    click.echo(f"   → Put {wrapper_dir} at the start of PATH, then restart the editor.")


@fix.command("all")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def fix_all(ctx: click.Context, as_json: bool) -> None:
    """Apply every repair; each one runs even if another fails."""
    report = get_orchestrator(ctx).fix_all()

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        sys.exit(0 if report.ok else 1)
        return

    click.secho("🔧 Applying all fixes", fg="cyan", bold=True)
    for record in report.records:
        echo_fix_record(record)
    for item in report.skipped:
        click.secho(f"   ⏭️  {item['fix']}: {item['reason']}", fg="yellow")
    for item in report.failures:
        click.secho(f"   ❌ {item['fix']}: {item['error']}", fg="red")
        click.echo(f"      → {item['next_action']}")

    if report.next_steps:
        click.echo()
        click.secho("   Next steps:", fg="white", bold=True)
        for i, step in enumerate(report.next_steps, 1):
            click.echo(f"     {i}. {step}")
    click.echo()

    if not report.ok:
        sys.exit(1)


@fix.command("history")
@click.option("-n", "count", default=20, type=int, help="Number of entries.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def fix_history(ctx: click.Context, count: int, as_json: bool) -> None:
    """Show recently applied repairs."""
    from smconnect.core.persistence.audit import RepairLedger

    orchestrator = get_orchestrator(ctx)
    entries = RepairLedger(orchestrator.paths.ledger_file).read_recent(count)

    if as_json:
        click.echo(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
        return

    if not entries:
        click.secho("No repairs recorded.", fg="yellow")
        return

    for entry in entries:
        click.secho(f"  {entry.timestamp[:19]}", fg="yellow", nl=False)
        click.echo(f"  {entry.fix_kind:<16} {entry.message}")
        if entry.backup_path:
            click.echo(f"{'':23}backup: {entry.backup_path}")
    click.echo()
