"""
Prerequisite snapshot — independent boolean facts about the host.

Computed fresh on every check. ``all_passed`` is derived, never stored.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class HostVariant(StrEnum):
    """Which editor flavour hosts the remote-SSH extension."""

    PRIMARY = "primary"        # Cursor (anysphere.remote-ssh)
    ALTERNATE = "alternate"    # VS Code (ms-vscode-remote.remote-ssh)
    NONE = "none"


class RemoteExtension(BaseModel):
    """Detected remote-SSH extension."""

    variant: HostVariant = HostVariant.NONE
    extension_id: str | None = None

    @property
    def installed(self) -> bool:
        return self.variant != HostVariant.NONE


class PrerequisiteSet(BaseModel):
    """Snapshot of the facts a connection depends on."""

    tool_installed: bool = False
    bridge_plugin_installed: bool = False
    remote_extension: RemoteExtension = Field(default_factory=RemoteExtension)
    ssh_config_has_host: bool = False
    toolkit_installed: bool = False

    @property
    def all_passed(self) -> bool:
        return (
            self.tool_installed
            and self.bridge_plugin_installed
            and self.remote_extension.variant != HostVariant.NONE
            and self.ssh_config_has_host
        )

    @property
    def errors(self) -> list[str]:
        """One message per missing required fact."""
        errors = []
        if not self.tool_installed:
            errors.append("AWS CLI not found")
        if not self.bridge_plugin_installed:
            errors.append("Session Manager Plugin not found")
        if not self.remote_extension.installed:
            errors.append("Remote-SSH extension not found")
        if not self.ssh_config_has_host:
            errors.append("SSH config host entry not found")
        return errors

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        data["all_passed"] = self.all_passed
        data["errors"] = self.errors
        return data
