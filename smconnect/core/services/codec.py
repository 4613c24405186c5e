"""
ARN ↔ hostname codec.

The bridge addresses a Space through an SSH hostname token with a fixed
grammar:

    sm_lc_arn_._aws_._sagemaker_._{region}._{account}_._space__{domain}__{space}

Underscores are structural separators in that grammar, so components
containing ``_`` are rejected instead of being passed through. App ARNs
(``app/<domain>/<space>/<app-type>/<app-name>``) are accepted and
normalized to their Space first.
"""

from __future__ import annotations

import re

from smconnect.core.errors import ConversionFailed
from smconnect.core.models.arn import ResourceIdentifier, ResourceType

HOSTNAME_PREFIX = "sm_lc_arn_"

_HOSTNAME_RE = re.compile(
    r"^sm_lc_arn_\._(?P<partition>[^_]+)_\._sagemaker_\._(?P<region>[^_]+)\."
    r"_(?P<account>[^_]+)_\._space__(?P<domain>[^_]+)__(?P<space>[^_]+)$"
)


def parse_arn(text: str) -> ResourceIdentifier:
    """Parse a SageMaker space or app ARN.

    Raises:
        ConversionFailed: On any structural problem.
    """
    if not isinstance(text, str) or not text.strip():
        raise ConversionFailed("Empty resource identifier")

    parts = text.strip().split(":")
    if len(parts) != 6 or parts[0] != "arn":
        raise ConversionFailed(
            f"Malformed ARN (expected 6 ':'-separated segments, got {len(parts)}): {text}"
        )

    _, partition, service, region, account, resource = parts
    if service != "sagemaker":
        raise ConversionFailed(f"Not a SageMaker ARN (service '{service}'): {text}")
    if not region or not account:
        raise ConversionFailed(f"ARN is missing region or account: {text}")

    type_name, _, path = resource.partition("/")
    try:
        resource_type = ResourceType(type_name)
    except ValueError:
        raise ConversionFailed(
            f"Unsupported resource type '{type_name}' (expected space or app): {text}"
        ) from None

    segments = tuple(path.split("/")) if path else ()
    if len(segments) < 2 or not all(segments[:2]):
        raise ConversionFailed(
            f"ARN resource path needs <domain>/<space>: {text}"
        )

    return ResourceIdentifier(
        partition=partition,
        service=service,
        region=region,
        account=account,
        resource_type=resource_type,
        resource_path=segments,
    )


def _coerce(resource: ResourceIdentifier | str) -> ResourceIdentifier:
    if isinstance(resource, ResourceIdentifier):
        return resource
    return parse_arn(resource)


def normalize_to_space(resource: ResourceIdentifier | str) -> ResourceIdentifier:
    """Reduce an app identifier to its Space. Spaces pass through unchanged."""
    rid = _coerce(resource)
    if rid.resource_type == ResourceType.SPACE:
        return rid
    return rid.model_copy(
        update={
            "resource_type": ResourceType.SPACE,
            "resource_path": rid.resource_path[:2],
        }
    )


def encode(resource: ResourceIdentifier | str) -> str:
    """Encode a (space-normalized) identifier as the bridge hostname token.

    Raises:
        ConversionFailed: If a component is empty or contains ``_``.
    """
    rid = normalize_to_space(resource)
    components = {
        "partition": rid.partition,
        "region": rid.region,
        "account": rid.account,
        "domain": rid.domain,
        "space name": rid.space_name,
    }
    for label, value in components.items():
        if not value:
            raise ConversionFailed(f"ARN {label} is empty: {rid}")
        if "_" in value:
            raise ConversionFailed(
                f"ARN {label} '{value}' contains '_', which is a separator "
                f"in the hostname grammar"
            )

    return (
        f"{HOSTNAME_PREFIX}._{rid.partition}_._sagemaker_._{rid.region}."
        f"_{rid.account}_._space__{rid.domain}__{rid.space_name}"
    )


def decode(hostname: str) -> ResourceIdentifier:
    """Best-effort inverse of :func:`encode` (always yields a Space).

    Raises:
        ConversionFailed: If the token does not follow the grammar.
    """
    match = _HOSTNAME_RE.match(hostname.strip())
    if not match:
        raise ConversionFailed(f"Not a SageMaker hostname token: {hostname}")
    return ResourceIdentifier(
        partition=match["partition"],
        region=match["region"],
        account=match["account"],
        resource_type=ResourceType.SPACE,
        resource_path=(match["domain"], match["space"]),
    )


def is_encoded_hostname(value: str) -> bool:
    return value.startswith(HOSTNAME_PREFIX)
