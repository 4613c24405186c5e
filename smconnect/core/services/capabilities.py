"""
Capability resolver — pick the connect verb before invoking anything.

The two supported hosts (Cursor and VS Code) expose overlapping but
different command namespaces, and invoking a verb that is not there is
a silent no-op. Resolution is a pure lookup: walk the variant's
preference list and return the first verb present in the registry.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from smconnect.core.models.prerequisites import HostVariant


@dataclass(frozen=True)
class ConnectVerb:
    """A command that (eventually) opens the remote connection.

    ``manual`` verbs only open a picker; the user still has to choose
    the host, so the caller must also show manual steps.
    """

    command_id: str
    takes_host: bool = True
    manual: bool = False


# variant-specific verbs first, generic fallbacks last
CONNECT_PREFERENCES: dict[HostVariant, tuple[ConnectVerb, ...]] = {
    HostVariant.PRIMARY: (
        ConnectVerb("remote-ssh.connectToHost"),
        ConnectVerb("remote-ssh.connect"),
        ConnectVerb("opensshremotes.connectToHost"),
        ConnectVerb("opensshremotes.connect"),
        ConnectVerb("opensshremotes.addNewSshHost", takes_host=False, manual=True),
    ),
    HostVariant.ALTERNATE: (
        ConnectVerb("remote-ssh.connect"),
        ConnectVerb("remote.SSH.connect"),
        ConnectVerb("remote-ssh.connectToHost"),
    ),
    HostVariant.NONE: (),
}

# AWS Toolkit commands that can make it (re)start the local server.
SERVER_START_COMMANDS = (
    "aws.sagemaker.connectToNotebookSpace",
    "aws.sagemaker.openNotebook",
    "aws.sagemaker.connectToSpace",
)


def resolve_connect_verb(
    variant: HostVariant | str,
    registered: Iterable[str],
) -> ConnectVerb | None:
    """Best connect verb for the variant, or None when nothing matches."""
    available = set(registered)
    for verb in CONNECT_PREFERENCES.get(HostVariant(variant), ()):
        if verb.command_id in available:
            return verb
    return None


def resolve_first(candidates: Iterable[str], registered: Iterable[str]) -> str | None:
    """First candidate command present in the registry."""
    available = set(registered)
    for command_id in candidates:
        if command_id in available:
            return command_id
    return None


def manual_connect_steps(alias: str) -> list[str]:
    """Steps for connecting by hand when no verb can be invoked."""
    return [
        "Open the Command Palette (F1 or Ctrl+Shift+P)",
        'Type: "Remote-SSH: Connect to Host"',
        f'Select or type "{alias}" and press Enter',
    ]
