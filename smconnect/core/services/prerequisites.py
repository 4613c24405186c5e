"""
Prerequisite verifier — independent, read-only checks.

Each fact is probed on its own and a failing probe only makes that
fact ``False``; the others are still reported. Nothing is cached:
tools get installed and configs get written between invocations.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from smconnect.adapters.base import ExtensionCatalog
from smconnect.adapters.shell.command import ShellCommandAdapter
from smconnect.adapters.shell.filesystem import FilesystemAdapter
from smconnect.core.config.paths import TOOLKIT_EXTENSION_ID, ConnectorPaths
from smconnect.core.models.prerequisites import HostVariant, PrerequisiteSet, RemoteExtension
from smconnect.core.services.ssh_config import parse_host_block

logger = logging.getLogger(__name__)

PRIMARY_REMOTE_EXTENSION = "anysphere.remote-ssh"
ALTERNATE_REMOTE_EXTENSION = "ms-vscode-remote.remote-ssh"
DEPRECATED_EXTENSION = "SumukhP-dev.sagemaker-remote-connection"

# Install hints shown next to each missing fact.
INSTALL_HINTS = {
    "tool_installed": "Install the AWS CLI: https://aws.amazon.com/cli/",
    "bridge_plugin_installed": (
        "Install the Session Manager Plugin: https://docs.aws.amazon.com/systems-manager/"
        "latest/userguide/session-manager-working-with-install-plugin.html"
    ),
    "remote_extension": (
        "Install a Remote-SSH extension: anysphere.remote-ssh (Cursor) "
        "or ms-vscode-remote.remote-ssh (VS Code)"
    ),
    "ssh_config_has_host": "Run 'smconnect setup --arn <space-arn>'",
    "toolkit_installed": f"Install the AWS Toolkit extension: {TOOLKIT_EXTENSION_ID}",
}


def _has_extension(installed: list[str], ext_id: str) -> bool:
    wanted = ext_id.lower()
    return any(e.lower() == wanted for e in installed)


@dataclass
class PrerequisiteVerifier:
    """Probe every prerequisite fact."""

    shell: ShellCommandAdapter
    filesystem: FilesystemAdapter
    extensions: ExtensionCatalog
    paths: ConnectorPaths
    alias: str = "sagemaker"

    def check_tool(self) -> bool:
        receipt = self.shell.run(["aws", "--version"])
        logger.debug("aws --version ok=%s", receipt.ok)
        return receipt.ok

    def check_bridge_plugin(self) -> bool:
        if self.filesystem.exists(self.paths.plugin_default):
            return True
        return self.shell.run(["session-manager-plugin", "--version"]).ok

    def _installed_extensions(self) -> list[str]:
        try:
            return list(self.extensions.list_extensions())
        except Exception as e:
            logger.warning("Cannot list editor extensions: %s", e)
            return []

    def check_remote_extension(self) -> RemoteExtension:
        """Detect the remote-SSH extension; Cursor's wins when both exist."""
        installed = self._installed_extensions()
        if _has_extension(installed, PRIMARY_REMOTE_EXTENSION):
            return RemoteExtension(
                variant=HostVariant.PRIMARY, extension_id=PRIMARY_REMOTE_EXTENSION
            )
        if _has_extension(installed, ALTERNATE_REMOTE_EXTENSION):
            return RemoteExtension(
                variant=HostVariant.ALTERNATE, extension_id=ALTERNATE_REMOTE_EXTENSION
            )
        return RemoteExtension()

    def check_ssh_config(self) -> bool:
        receipt = self.filesystem.read(self.paths.ssh_config)
        if not receipt.ok:
            return False
        return parse_host_block(receipt.output, self.alias) is not None

    def check_toolkit(self) -> bool:
        return _has_extension(self._installed_extensions(), TOOLKIT_EXTENSION_ID)

    def deprecated_extension_installed(self) -> bool:
        return _has_extension(self._installed_extensions(), DEPRECATED_EXTENSION)

    def check_all(self) -> PrerequisiteSet:
        """Fresh snapshot of every fact."""
        result = PrerequisiteSet(
            tool_installed=self.check_tool(),
            bridge_plugin_installed=self.check_bridge_plugin(),
            remote_extension=self.check_remote_extension(),
            ssh_config_has_host=self.check_ssh_config(),
            toolkit_installed=self.check_toolkit(),
        )
        logger.info(
            "Prerequisites: all_passed=%s missing=%s",
            result.all_passed,
            ", ".join(result.errors) or "none",
        )
        return result
