"""
CLI commands for the SSH config host entry.

Thin wrappers over ``SshConfigManager``; only the connector's own
``Host`` block is ever rewritten.
"""

from __future__ import annotations

import json
import sys

import click

from smconnect.core.errors import ConfigMissing, ConnectorError
from smconnect.core.models.ssh import FIXABLE_KINDS, IssueKind
from smconnect.core.services import codec
from smconnect.core.services.ssh_config import parse_host_block
from smconnect.ui.cli.common import echo_fix_records, fail, get_orchestrator


@click.group("ssh-config")
def ssh_config() -> None:
    """SSH config — show, validate, fix and create the host entry."""


@ssh_config.command("show")
@click.option("--alias", default=None, help="Host alias (default: from smconnect.yml).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def show(ctx: click.Context, alias: str | None, as_json: bool) -> None:
    """Print the host block."""
    orchestrator = get_orchestrator(ctx)
    alias = alias or orchestrator.alias
    try:
        entry = parse_host_block(orchestrator.ssh.read_config(), alias)
    except ConnectorError as e:
        fail(e, as_json)

    if entry is None:
        fail(ConfigMissing(f"SSH config has no 'Host {alias}' block"), as_json)

    if as_json:
        data = entry.model_dump(mode="json", exclude={"lines"})
        data["missing_fields"] = entry.missing_fields
        click.echo(json.dumps(data, indent=2))
        return

    click.secho(f"# {orchestrator.paths.ssh_config}:{entry.start_line + 1}", fg="bright_black")
    click.echo("".join(entry.lines), nl=False)
    if entry.duplicate_count:
        click.secho(
            f"⚠️  {entry.duplicate_count} more 'Host {alias}' block(s) follow; they are ignored",
            fg="yellow",
        )


@ssh_config.command("validate")
@click.option("--alias", default=None, help="Host alias (default: from smconnect.yml).")
@click.option("--arn", "space_arn", default=None, help="Expected space ARN (checks HostName).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def validate(
    ctx: click.Context, alias: str | None, space_arn: str | None, as_json: bool
) -> None:
    """Report known defects of the host block."""
    orchestrator = get_orchestrator(ctx)
    alias = alias or orchestrator.alias
    try:
        entry, issues = orchestrator.ssh.check_file(
            alias, space_arn or orchestrator.settings.space_arn
        )
    except ConnectorError as e:
        fail(e, as_json)

    if entry is None:
        fail(ConfigMissing(f"SSH config has no 'Host {alias}' block"), as_json)

    if as_json:
        click.echo(json.dumps({
            "alias": alias,
            "valid": not issues,
            "issues": [i.model_dump(mode="json") for i in issues],
        }, indent=2))
        sys.exit(0 if not issues else 1)
        return

    if not issues:
        click.secho(f"✅ Host {alias} is valid", fg="green", bold=True)
        return

    click.secho(f"❌ Host {alias}: {len(issues)} issue(s)", fg="red", bold=True)
    for issue in issues:
        line = f"line {issue.line}: " if issue.line else ""
        tag = " (fixable)" if issue.fixable else ""
        click.echo(f"   • [{issue.kind.value}] {line}{issue.message}{tag}")
    if any(i.fixable for i in issues):
        click.echo("   → Run 'smconnect ssh-config fix'")
    sys.exit(1)


@ssh_config.command("fix")
@click.option("--alias", default=None, help="Host alias (default: from smconnect.yml).")
@click.option(
    "--kind",
    "kinds",
    multiple=True,
    type=click.Choice([k.value for k in FIXABLE_KINDS]),
    help="Only apply these fixes (default: all).",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def fix(ctx: click.Context, alias: str | None, kinds: tuple[str, ...], as_json: bool) -> None:
    """Repair the host block (backup first)."""
    orchestrator = get_orchestrator(ctx)
    alias = alias or orchestrator.alias
    try:
        if kinds:
            records = [
                orchestrator.ssh.apply_fix_to_file(IssueKind(kind), alias) for kind in kinds
            ]
        else:
            records = orchestrator.ssh.fix_all_in_file(alias)
    except ConnectorError as e:
        fail(e, as_json)

    echo_fix_records(records, as_json)


@ssh_config.command("setup")
@click.option("--alias", default=None, help="Host alias (default: from smconnect.yml).")
@click.option("--arn", "space_arn", default=None, help="Space (or app) ARN.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def setup(ctx: click.Context, alias: str | None, space_arn: str | None, as_json: bool) -> None:
    """Append a host block for the space (no-op when it exists)."""
    orchestrator = get_orchestrator(ctx)
    alias = alias or orchestrator.alias
    space_arn = space_arn or orchestrator.settings.space_arn
    if not space_arn:
        fail(ConfigMissing("No space ARN given", "Pass --arn or set space_arn in smconnect.yml"), as_json)

    try:
        resource = codec.normalize_to_space(space_arn)
        record = orchestrator.ssh.setup_host_in_file(alias, resource)
    except ConnectorError as e:
        fail(e, as_json)

    if as_json:
        data = record.to_dict()
        data["hostname"] = codec.encode(resource)
        click.echo(json.dumps(data, indent=2))
        return

    if record.already_applied:
        click.secho(f"✓ {record.message}", fg="bright_black")
        return
    click.secho(f"✅ {record.message}", fg="green", bold=True)
    click.echo(f"   HostName {codec.encode(resource)}")
    if record.backup_path:
        click.echo(f"   backup: {record.backup_path}")
