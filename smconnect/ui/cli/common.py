"""
Shared CLI plumbing — orchestrator lookup and outcome rendering.
"""

from __future__ import annotations

import json
import sys
from typing import NoReturn

import click

from smconnect.core.errors import ConnectorError
from smconnect.core.models.outcome import ConnectionOutcome
from smconnect.core.models.ssh import FixRecord


def get_orchestrator(ctx: click.Context):
    """Orchestrator for this invocation (built once, from smconnect.yml).

    Tests pass a ready-made orchestrator via ``obj={"orchestrator": ...}``.
    """
    orchestrator = ctx.obj.get("orchestrator")
    if orchestrator is None:
        from smconnect.core.config.loader import load_settings
        from smconnect.core.engine.orchestrator import build_orchestrator

        try:
            settings = load_settings(ctx.obj.get("config_path"))
        except ConnectorError as e:
            fail(e)
        orchestrator = build_orchestrator(settings)
        ctx.obj["orchestrator"] = orchestrator
    return orchestrator


def fail(err: ConnectorError, as_json: bool = False) -> NoReturn:
    if as_json:
        click.echo(json.dumps(err.to_dict(), indent=2))
    else:
        click.secho(f"❌ {err.message}", fg="red")
        click.echo(f"   → {err.next_action}")
    sys.exit(1)


def echo_outcome(outcome: ConnectionOutcome, as_json: bool) -> None:
    """Print an outcome; exit 1 when it is an abort."""
    if as_json:
        click.echo(json.dumps(outcome.to_dict(), indent=2))
        if not outcome.ok:
            sys.exit(1)
        return

    for notice in outcome.notices:
        click.secho(f"⚠️  {notice}", fg="yellow")

    if outcome.ok:
        click.secho(f"✅ {outcome.message}", fg="green", bold=True)
    else:
        click.secho(f"❌ {outcome.message}", fg="red", bold=True)
        click.secho(f"   [{outcome.kind.value}]", fg="bright_black")

    if outcome.manual_steps:
        click.echo("   Connect manually:")
        for i, step in enumerate(outcome.manual_steps, 1):
            click.echo(f"     {i}. {step}")

    if outcome.next_action:
        click.echo(f"   → {outcome.next_action}")

    if not outcome.ok:
        sys.exit(1)


def echo_fix_record(record: FixRecord) -> None:
    if record.failed:
        click.secho(f"   ❌ {record.message}: {record.error}", fg="red")
        if record.next_action:
            click.echo(f"      → {record.next_action}")
        return
    if record.already_applied:
        click.secho(f"   ✓ {record.message}", fg="bright_black")
        return
    click.secho(f"   ✅ {record.message}", fg="green")
    if record.backup_path:
        click.echo(f"      backup: {record.backup_path}")


def echo_fix_records(records: list[FixRecord], as_json: bool) -> None:
    """Print a batch of fix records; exit 1 when any of them failed."""
    if as_json:
        click.echo(json.dumps([r.to_dict() for r in records], indent=2))
    else:
        for record in records:
            echo_fix_record(record)
    if any(r.failed for r in records):
        sys.exit(1)
