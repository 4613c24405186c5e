"""
Tests for the adapter registry, mocks, and the real shell/filesystem/
process/port/editor adapters.
"""

import os
import socket
import stat
import sys
from datetime import datetime

import psutil
import pytest

from smconnect.adapters.base import CommandRegistry, ExtensionCatalog, KeyValueStore
from smconnect.adapters.editor import EditorAdapter
from smconnect.adapters.mock import MemoryStore, MockEditor, MockShell
from smconnect.adapters.registry import AdapterRegistry, build_default_registry
from smconnect.adapters.shell.command import ShellCommandAdapter
from smconnect.adapters.shell.filesystem import FilesystemAdapter, backup_path_for
from smconnect.adapters.system.network import PortProbeAdapter
from smconnect.adapters.system.process import ProcessTableAdapter
from smconnect.core.models.settings import Settings

# ── Registry ─────────────────────────────────────────────────────────


class TestAdapterRegistry:
    def test_register_and_require(self):
        registry = AdapterRegistry()
        shell = MockShell()
        registry.register(shell)
        assert registry.require("shell") is shell
        assert registry.list_adapters() == ["shell"]

    def test_get_unknown(self):
        assert AdapterRegistry().get("nope") is None

    def test_require_unknown(self):
        with pytest.raises(KeyError):
            AdapterRegistry().require("nope")

    def test_overwrite(self):
        registry = AdapterRegistry()
        registry.register(MockShell())
        second = MockShell()
        registry.register(second)
        assert registry.require("shell") is second

    def test_unregister(self):
        registry = AdapterRegistry()
        registry.register(MockShell())
        registry.unregister("shell")
        assert registry.get("shell") is None

    def test_adapter_status(self):
        registry = AdapterRegistry()
        registry.register(FilesystemAdapter())
        status = registry.adapter_status()
        assert status["filesystem"]["available"] is True
        assert status["filesystem"]["type"] == "FilesystemAdapter"

    def test_default_registry(self):
        registry = build_default_registry(Settings())
        assert set(registry.list_adapters()) == {
            "shell", "filesystem", "process", "network", "editor",
        }


class TestProtocols:
    def test_mocks_satisfy_protocols(self):
        assert isinstance(MockEditor(), CommandRegistry)
        assert isinstance(MockEditor(), ExtensionCatalog)
        assert isinstance(MemoryStore(), KeyValueStore)

    def test_editor_adapter_is_a_registry(self):
        assert isinstance(EditorAdapter(MockShell()), CommandRegistry)


# ── Mock shell ───────────────────────────────────────────────────────


class TestMockShell:
    def test_longest_prefix_wins(self):
        shell = MockShell()
        shell.set_output(["aws"], "short")
        shell.set_output(["aws", "--version"], "long")
        assert shell.run(["aws", "--version"]).output == "long"
        assert shell.run(["aws", "s3", "ls"]).output == "short"

    def test_unknown_command_fails(self):
        receipt = MockShell().run(["nope"])
        assert receipt.failed
        assert receipt.metadata["not_found"] is True

    def test_records_calls(self):
        shell = MockShell()
        shell.run(["a", "b"])
        assert shell.calls == [["a", "b"]]


# ── Shell command ────────────────────────────────────────────────────


class TestShellCommandAdapter:
    def test_success(self):
        receipt = ShellCommandAdapter().run([sys.executable, "-c", "print('hello')"])
        assert receipt.ok
        assert receipt.output == "hello"
        assert receipt.metadata["return_code"] == 0

    def test_non_zero_exit(self):
        receipt = ShellCommandAdapter().run(
            [sys.executable, "-c", "import sys; sys.stderr.write('boom'); sys.exit(3)"]
        )
        assert receipt.failed
        assert receipt.error == "boom"
        assert receipt.metadata["return_code"] == 3

    def test_missing_binary(self):
        receipt = ShellCommandAdapter().run(["definitely-not-a-real-binary-xyz"])
        assert receipt.failed
        assert receipt.metadata["not_found"] is True

    def test_timeout(self):
        receipt = ShellCommandAdapter().run(
            [sys.executable, "-c", "import time; time.sleep(5)"], timeout=1
        )
        assert receipt.failed
        assert "timed out" in receipt.error

    def test_which(self):
        assert ShellCommandAdapter().which("definitely-not-a-real-binary-xyz") is None


# ── Filesystem ───────────────────────────────────────────────────────


class TestFilesystemAdapter:
    def test_read_missing(self, tmp_path):
        receipt = FilesystemAdapter().read(tmp_path / "nope")
        assert receipt.failed
        assert receipt.metadata["missing"] is True

    def test_read_keeps_crlf(self, tmp_path):
        target = tmp_path / "config"
        target.write_bytes(b"Host a\r\n    User b\r\n")
        assert FilesystemAdapter().read(target).output == "Host a\r\n    User b\r\n"

    def test_write_creates_parents(self, tmp_path):
        target = tmp_path / "a" / "b" / "file"
        receipt = FilesystemAdapter().write(target, "x")
        assert receipt.ok
        assert target.read_text() == "x"
        assert receipt.metadata["backup_path"] is None

    def test_write_backs_up_existing(self, tmp_path):
        target = tmp_path / "config"
        target.write_text("old")

        receipt = FilesystemAdapter().write(target, "new")

        backup = receipt.metadata["backup_path"]
        assert backup is not None
        assert open(backup).read() == "old"
        assert target.read_text() == "new"

    def test_write_without_backup(self, tmp_path):
        target = tmp_path / "config"
        target.write_text("old")
        receipt = FilesystemAdapter().write(target, "new", backup=False)
        assert receipt.metadata["backup_path"] is None
        assert list(tmp_path.glob("config.backup.*")) == []

    def test_no_temp_files_left(self, tmp_path):
        target = tmp_path / "config"
        FilesystemAdapter().write(target, "new")
        assert [p.name for p in tmp_path.iterdir()] == ["config"]

    def test_write_preserves_crlf(self, tmp_path):
        target = tmp_path / "script.ps1"
        FilesystemAdapter().write(target, "a\r\nb\r\n")
        assert target.read_bytes() == b"a\r\nb\r\n"

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    def test_write_executable(self, tmp_path):
        target = tmp_path / "code"
        FilesystemAdapter().write(target, "#!/bin/sh\n", executable=True)
        assert target.stat().st_mode & stat.S_IXUSR

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    def test_rewrite_keeps_mode(self, tmp_path):
        target = tmp_path / "script.sh"
        target.write_text("old")
        target.chmod(0o700)
        FilesystemAdapter().write(target, "new")
        assert stat.S_IMODE(target.stat().st_mode) == 0o700

    def test_write_failure_is_a_receipt(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        receipt = FilesystemAdapter().write(blocker / "child", "y")
        assert receipt.failed
        assert "Cannot write" in receipt.error

    def test_backup_name(self, tmp_path):
        path = backup_path_for(tmp_path / "config", datetime(2024, 1, 2, 3, 4, 5, 6))
        assert path.name == "config.backup.20240102T030405000006"


# ── Process table ────────────────────────────────────────────────────


class TestProcessTableAdapter:
    def test_own_process_is_running(self):
        assert ProcessTableAdapter().is_running(os.getpid()) is True

    def test_missing_pid(self, monkeypatch):
        monkeypatch.setattr(psutil, "pid_exists", lambda pid: False)
        assert ProcessTableAdapter().is_running(4242) is False

    def test_zombie_is_not_running(self, monkeypatch):
        class Zombie:
            def __init__(self, pid):
                self.pid = pid

            def status(self):
                return psutil.STATUS_ZOMBIE

        monkeypatch.setattr(psutil, "pid_exists", lambda pid: True)
        monkeypatch.setattr(psutil, "Process", Zombie)
        assert ProcessTableAdapter().is_running(4242) is False

    def test_exited_during_lookup(self, monkeypatch):
        def vanished(pid):
            raise psutil.NoSuchProcess(pid)

        monkeypatch.setattr(psutil, "pid_exists", lambda pid: True)
        monkeypatch.setattr(psutil, "Process", vanished)
        assert ProcessTableAdapter().is_running(4242) is False

    def test_access_denied_counts_as_alive(self, monkeypatch):
        def foreign(pid):
            raise psutil.AccessDenied(pid)

        monkeypatch.setattr(psutil, "pid_exists", lambda pid: True)
        monkeypatch.setattr(psutil, "Process", foreign)
        assert ProcessTableAdapter().is_running(4242) is True

    @pytest.mark.parametrize("pid", [0, -1, True, "123", None])
    def test_invalid_pid(self, pid, monkeypatch):
        def never(pid):
            raise AssertionError("lookup must not happen")

        monkeypatch.setattr(psutil, "pid_exists", never)
        assert ProcessTableAdapter().is_running(pid) is False

    def test_availability(self):
        adapter = ProcessTableAdapter()
        assert adapter.is_available()
        assert adapter.name == "process"


# ── Port probe ───────────────────────────────────────────────────────


class TestPortProbeAdapter:
    def test_listening_port(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server:
            server.bind(("127.0.0.1", 0))
            server.listen(1)
            port = server.getsockname()[1]
            assert PortProbeAdapter(host="127.0.0.1").is_reachable(port, timeout=1.0)

    def test_closed_port(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
            probe.bind(("127.0.0.1", 0))
            port = probe.getsockname()[1]
        assert not PortProbeAdapter(host="127.0.0.1").is_reachable(port, timeout=1.0)

    @pytest.mark.parametrize("port", [0, -5, 70000, True, "8080", None])
    def test_invalid_port(self, port):
        assert PortProbeAdapter().is_reachable(port) is False


# ── Editor ───────────────────────────────────────────────────────────


def _editor_shell(cursor_exts="anysphere.remote-ssh", code_exts=None) -> MockShell:
    shell = MockShell(on_path=["cursor"])
    shell.set_output(["cursor", "--list-extensions"], cursor_exts)
    if code_exts is not None:
        shell.add_to_path("code")
        shell.set_output(["code", "--list-extensions"], code_exts)
    return shell


class TestEditorAdapter:
    def test_list_extensions_union(self):
        shell = _editor_shell(
            cursor_exts="anysphere.remote-ssh\nms-python.python\n",
            code_exts="MS-Python.python\nms-vscode-remote.remote-ssh\n",
        )
        assert EditorAdapter(shell).list_extensions() == [
            "anysphere.remote-ssh",
            "ms-python.python",
            "ms-vscode-remote.remote-ssh",
        ]

    def test_commands_follow_extensions(self):
        shell = _editor_shell(code_exts="ms-vscode-remote.remote-ssh")
        assert EditorAdapter(shell).list_commands() == [
            "remote-ssh.connectToHost",
            "remote-ssh.connect",
        ]

    def test_no_remote_extension_no_verb(self):
        shell = _editor_shell(cursor_exts="ms-python.python")
        assert EditorAdapter(shell).list_commands() == []

    def test_no_editor(self):
        adapter = EditorAdapter(MockShell())
        assert not adapter.is_available()
        assert adapter.list_extensions() == []

    def test_execute_opens_remote(self):
        shell = _editor_shell()
        shell.set_output(["cursor", "--remote"])

        receipt = EditorAdapter(shell, remote_folder="/home/me").execute(
            "remote-ssh.connectToHost", "sagemaker"
        )

        assert receipt.ok
        assert receipt.adapter == "editor"
        assert receipt.operation == "remote-ssh.connectToHost"
        assert shell.calls[-1] == ["cursor", "--remote", "ssh-remote+sagemaker", "/home/me"]

    def test_execute_unknown_command(self):
        receipt = EditorAdapter(_editor_shell()).execute("aws.sagemaker.openNotebook")
        assert receipt.failed

    def test_execute_requires_host(self):
        receipt = EditorAdapter(_editor_shell()).execute("remote-ssh.connectToHost")
        assert receipt.failed
        assert "host alias" in receipt.error
