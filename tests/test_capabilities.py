"""
Tests for the capability resolver.
"""

from smconnect.core.models.prerequisites import HostVariant
from smconnect.core.services.capabilities import (
    SERVER_START_COMMANDS,
    manual_connect_steps,
    resolve_connect_verb,
    resolve_first,
)


class TestResolveConnectVerb:
    def test_primary_prefers_connect_to_host(self):
        verb = resolve_connect_verb(
            HostVariant.PRIMARY, ["remote-ssh.connect", "remote-ssh.connectToHost"]
        )
        assert verb.command_id == "remote-ssh.connectToHost"
        assert verb.takes_host

    def test_primary_falls_back_to_openssh_verbs(self):
        verb = resolve_connect_verb(HostVariant.PRIMARY, ["opensshremotes.connect"])
        assert verb.command_id == "opensshremotes.connect"

    def test_primary_picker_is_manual(self):
        verb = resolve_connect_verb(HostVariant.PRIMARY, ["opensshremotes.addNewSshHost"])
        assert verb.manual
        assert not verb.takes_host

    def test_alternate_prefers_connect(self):
        verb = resolve_connect_verb(
            HostVariant.ALTERNATE, ["remote-ssh.connectToHost", "remote-ssh.connect"]
        )
        assert verb.command_id == "remote-ssh.connect"

    def test_alternate_legacy_verb(self):
        verb = resolve_connect_verb("alternate", ["remote.SSH.connect"])
        assert verb.command_id == "remote.SSH.connect"

    def test_nothing_registered(self):
        assert resolve_connect_verb(HostVariant.PRIMARY, []) is None

    def test_none_variant_resolves_nothing(self):
        assert resolve_connect_verb(HostVariant.NONE, ["remote-ssh.connect"]) is None

    def test_unrelated_commands_ignored(self):
        assert resolve_connect_verb(HostVariant.ALTERNATE, ["workbench.action.reloadWindow"]) is None


class TestResolveFirst:
    def test_first_registered_wins(self):
        registered = list(reversed(SERVER_START_COMMANDS))
        assert resolve_first(SERVER_START_COMMANDS, registered) == SERVER_START_COMMANDS[0]

    def test_none_when_absent(self):
        assert resolve_first(SERVER_START_COMMANDS, ["other"]) is None


def test_manual_steps_name_the_alias():
    steps = manual_connect_steps("my-space")
    assert len(steps) == 3
    assert "my-space" in steps[-1]
