"""
CLI commands for resource identifiers.

Pure conversions, no collaborators needed.
"""

from __future__ import annotations

import json

import click

from smconnect.core.errors import ConnectorError
from smconnect.core.services import codec
from smconnect.ui.cli.common import fail


@click.group()
def arn() -> None:
    """ARN helpers — normalize and encode to SSH hostnames."""


@arn.command("normalize")
@click.argument("value")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def arn_normalize(value: str, as_json: bool) -> None:
    """Convert an app ARN to its space ARN."""
    try:
        resource = codec.normalize_to_space(value)
    except ConnectorError as e:
        fail(e, as_json)

    if as_json:
        click.echo(json.dumps({
            "input": value,
            "space_arn": str(resource),
            "domain": resource.domain,
            "space": resource.space_name,
        }, indent=2))
        return
    click.echo(str(resource))


@arn.command("encode")
@click.argument("value")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def arn_encode(value: str, as_json: bool) -> None:
    """Encode an ARN (or decode an sm_lc_arn_ hostname)."""
    try:
        if codec.is_encoded_hostname(value):
            resource = codec.decode(value)
            hostname = value
        else:
            resource = codec.normalize_to_space(value)
            hostname = codec.encode(resource)
    except ConnectorError as e:
        fail(e, as_json)

    if as_json:
        click.echo(json.dumps({
            "input": value,
            "space_arn": str(resource),
            "hostname": hostname,
        }, indent=2))
        return
    click.echo(hostname if hostname != value else str(resource))
