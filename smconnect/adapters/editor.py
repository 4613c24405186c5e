"""
Editor adapter — the editor CLI as a command registry.

When the connector runs from a terminal there is no in-process command
registry, so this adapter exposes one backed by the ``cursor`` / ``code``
executables:

    - installed extensions come from ``<editor> --list-extensions``
    - a remote-SSH connect verb is listed when its editor has the
      matching remote-SSH extension, and is invoked as
      ``<editor> --remote ssh-remote+<host> <folder>``

An editor embedding the engine passes its own CommandRegistry instead.
"""

from __future__ import annotations

import logging

from smconnect.adapters.base import Adapter
from smconnect.adapters.shell.command import ShellCommandAdapter
from smconnect.core.models.receipt import Receipt

logger = logging.getLogger(__name__)

# editor executable → (remote-SSH extension, verb it services)
EDITOR_VERBS: dict[str, tuple[str, str]] = {
    "cursor": ("anysphere.remote-ssh", "remote-ssh.connectToHost"),
    "code": ("ms-vscode-remote.remote-ssh", "remote-ssh.connect"),
}


class EditorAdapter(Adapter):
    """Extensions + command registry over the editor CLIs."""

    def __init__(
        self,
        shell: ShellCommandAdapter,
        editors: tuple[str, ...] = ("cursor", "code"),
        remote_folder: str = "/home/sagemaker-user",
    ):
        self._shell = shell
        self._editors = editors
        self._remote_folder = remote_folder

    @property
    def name(self) -> str:
        return "editor"

    def is_available(self) -> bool:
        return bool(self.available_editors())

    def available_editors(self) -> list[str]:
        return [e for e in self._editors if self._shell.which(e)]

    def _extensions_of(self, editor: str) -> list[str]:
        receipt = self._shell.run([editor, "--list-extensions"])
        if not receipt.ok:
            logger.debug("Cannot list %s extensions: %s", editor, receipt.error)
            return []
        return [line.strip() for line in receipt.output.splitlines() if line.strip()]

    def list_extensions(self) -> list[str]:
        """Union of extensions installed in every available editor."""
        seen: list[str] = []
        for editor in self.available_editors():
            for ext in self._extensions_of(editor):
                if ext.lower() not in (s.lower() for s in seen):
                    seen.append(ext)
        return seen

    def _verb_map(self) -> dict[str, str]:
        """verb → editor executable that can service it."""
        verbs: dict[str, str] = {}
        for editor in self.available_editors():
            ext_id, verb = EDITOR_VERBS.get(editor, ("", ""))
            if not verb:
                continue
            installed = {e.lower() for e in self._extensions_of(editor)}
            if ext_id.lower() in installed:
                verbs.setdefault(verb, editor)
        return verbs

    def list_commands(self) -> list[str]:
        return list(self._verb_map())

    def execute(self, command_id: str, *args: str) -> Receipt:
        editor = self._verb_map().get(command_id)
        if editor is None:
            return Receipt.failure(
                adapter=self.name,
                operation=command_id,
                error=f"Command not available: {command_id}",
            )
        if not args:
            return Receipt.failure(
                adapter=self.name,
                operation=command_id,
                error="A host alias is required",
            )
        host = args[0]
        logger.info("Opening %s on ssh-remote+%s", editor, host)
        receipt = self._shell.run(
            [editor, "--remote", f"ssh-remote+{host}", self._remote_folder]
        )
        receipt.adapter = self.name
        receipt.operation = command_id
        return receipt
