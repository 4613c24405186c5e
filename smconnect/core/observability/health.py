"""
Diagnostic health — aggregate connector health from components.

Each check turns one fact (code wrapper, remote extension, SSH config,
server, connection script, profile mapping) into a ``ComponentHealth``.
``SystemHealth`` rolls them up and carries the recommendations shown
at the end of ``smconnect diagnose``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from smconnect.adapters.shell.filesystem import FilesystemAdapter
from smconnect.core.models.prerequisites import RemoteExtension
from smconnect.core.models.server import ServerHealth
from smconnect.core.models.ssh import Issue, SshHostEntry
from smconnect.core.services.code_wrapper import CodeWrapperStatus

logger = logging.getLogger(__name__)

HEALTHY = "healthy"
DEGRADED = "degraded"
UNHEALTHY = "unhealthy"
UNKNOWN = "unknown"


@dataclass
class ComponentHealth:
    """Health of a single component."""

    name: str
    status: str = UNKNOWN  # healthy, degraded, unhealthy, unknown
    message: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "message": self.message,
            "details": self.details,
        }


@dataclass
class SystemHealth:
    """Aggregate health plus what to do about it."""

    status: str = HEALTHY
    timestamp: str = ""
    components: list[ComponentHealth] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.timestamp:
            self.timestamp = datetime.now(UTC).isoformat()

    def add(self, component: ComponentHealth) -> None:
        self.components.append(component)
        self._recalculate()

    def recommend(self, text: str) -> None:
        if text not in self.recommendations:
            self.recommendations.append(text)

    def get(self, name: str) -> ComponentHealth | None:
        for component in self.components:
            if component.name == name:
                return component
        return None

    def _recalculate(self) -> None:
        statuses = [c.status for c in self.components]
        if any(s == UNHEALTHY for s in statuses):
            self.status = UNHEALTHY
        elif any(s == DEGRADED for s in statuses):
            self.status = DEGRADED
        elif all(s == HEALTHY for s in statuses):
            self.status = HEALTHY
        else:
            self.status = UNKNOWN

    @property
    def ok(self) -> bool:
        return self.status != UNHEALTHY

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "timestamp": self.timestamp,
            "components": [c.to_dict() for c in self.components],
            "recommendations": list(self.recommendations),
        }


# ── Individual checks ───────────────────────────────────────────


def check_code_wrapper(status: CodeWrapperStatus) -> ComponentHealth:
    return ComponentHealth(
        name="code_wrapper",
        status=UNHEALTHY if status.has_issue else HEALTHY,
        message=status.message,
        details={"code_path": status.code_path},
    )


def check_wrapper_on_path(on_path: bool, wrapper_dir: str) -> ComponentHealth:
    if on_path:
        return ComponentHealth(
            name="path",
            status=HEALTHY,
            message=f"{wrapper_dir} is in PATH",
        )
    return ComponentHealth(
        name="path",
        status=DEGRADED,
        message=f"{wrapper_dir} is NOT in PATH",
        details={"wrapper_dir": wrapper_dir},
    )


def check_editor_install(filesystem: FilesystemAdapter, executable: Path) -> ComponentHealth:
    if filesystem.exists(executable):
        return ComponentHealth(
            name="editor",
            status=HEALTHY,
            message=f"Cursor found at: {executable}",
        )
    return ComponentHealth(
        name="editor",
        status=DEGRADED,
        message="Cursor not found at expected location",
        details={"expected": str(executable)},
    )


def check_remote_extension(ext: RemoteExtension) -> ComponentHealth:
    if ext.installed:
        return ComponentHealth(
            name="remote_extension",
            status=HEALTHY,
            message=f"Remote-SSH extension is installed ({ext.extension_id})",
            details={"variant": ext.variant.value, "extension_id": ext.extension_id},
        )
    return ComponentHealth(
        name="remote_extension",
        status=UNHEALTHY,
        message="Remote-SSH extension NOT installed; it is required for remote connections",
    )


def check_ssh_config(
    exists: bool,
    entry: SshHostEntry | None,
    issues: list[Issue],
    alias: str,
) -> ComponentHealth:
    if not exists:
        return ComponentHealth(
            name="ssh_config",
            status=DEGRADED,
            message="SSH config not found",
        )
    if entry is None:
        return ComponentHealth(
            name="ssh_config",
            status=DEGRADED,
            message=f"No 'Host {alias}' entry found",
        )
    if issues:
        fixable = any(i.fixable for i in issues)
        return ComponentHealth(
            name="ssh_config",
            status=DEGRADED if fixable else UNHEALTHY,
            message=f"Host {alias} has {len(issues)} issue(s)",
            details={"issues": [i.model_dump(mode="json") for i in issues]},
        )
    return ComponentHealth(
        name="ssh_config",
        status=HEALTHY,
        message=f"Host {alias} is configured",
        details={"hostname": entry.hostname},
    )


def check_server(health: ServerHealth) -> ComponentHealth:
    if health.running:
        return ComponentHealth(
            name="server",
            status=HEALTHY,
            message=f"Server is running (PID: {health.pid}, Port: {health.port})",
            details=health.to_dict(),
        )
    return ComponentHealth(
        name="server",
        status=UNHEALTHY,
        message=f"Server is NOT running: {health.error}",
        details=health.to_dict(),
    )


def check_arn_conversion(applied: bool | None) -> ComponentHealth:
    if applied is None:
        return ComponentHealth(
            name="arn_conversion",
            status=DEGRADED,
            message="Connection script not found (server hasn't started yet)",
        )
    if applied:
        return ComponentHealth(
            name="arn_conversion",
            status=HEALTHY,
            message="ARN conversion fix is applied",
        )
    return ComponentHealth(
        name="arn_conversion",
        status=UNHEALTHY,
        message="ARN conversion fix NOT applied",
    )


def check_profile_mapping(filesystem: FilesystemAdapter, mapping_path: Path) -> ComponentHealth:
    """Count the space profiles the toolkit has recorded."""
    receipt = filesystem.read(mapping_path)
    if not receipt.ok:
        if receipt.metadata.get("missing"):
            return ComponentHealth(
                name="profile_mapping",
                status=DEGRADED,
                message="Mapping file not found (will be created when server starts)",
            )
        return ComponentHealth(
            name="profile_mapping",
            status=DEGRADED,
            message=f"Mapping file unreadable: {receipt.error}",
        )
    try:
        data = json.loads(receipt.output)
    except json.JSONDecodeError:
        return ComponentHealth(
            name="profile_mapping",
            status=DEGRADED,
            message="Mapping file exists but could not parse",
        )
    profiles = data.get("localCredential") if isinstance(data, dict) else None
    count = len(profiles) if isinstance(profiles, dict) else 0
    return ComponentHealth(
        name="profile_mapping",
        status=HEALTHY,
        message=f"Found {count} profile(s)",
        details={"profiles": count},
    )


def check_toolkit(installed: bool) -> ComponentHealth:
    if installed:
        return ComponentHealth(
            name="toolkit",
            status=HEALTHY,
            message="AWS Toolkit is installed",
        )
    return ComponentHealth(
        name="toolkit",
        status=UNHEALTHY,
        message="AWS Toolkit is NOT installed",
    )
