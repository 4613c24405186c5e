"""
Shared test fixtures and configuration.

Every fixture works inside ``tmp_path``: a fake home directory holds the
SSH config, known_hosts, the toolkit's server record and connection
script. Processes, ports, the shell and the editor are scripted mocks.
"""

import dataclasses
import json
from pathlib import Path

import pytest

from smconnect.adapters.mock import (
    MemoryStore,
    MockEditor,
    MockPortProbe,
    MockProcessTable,
    MockShell,
    RecordingSleeper,
)
from smconnect.adapters.shell.filesystem import FilesystemAdapter
from smconnect.core.config.paths import TOOLKIT_EXTENSION_ID, ConnectorPaths, resolve_paths
from smconnect.core.engine.orchestrator import ConnectionOrchestrator
from smconnect.core.models.settings import Settings
from smconnect.core.persistence.audit import RepairLedger
from smconnect.core.services.code_wrapper import CodeWrapperService
from smconnect.core.services.prerequisites import PrerequisiteVerifier
from smconnect.core.services.script_fix import ScriptArnFixer
from smconnect.core.services.server_health import ServerHealthMonitor
from smconnect.core.services.ssh_config import SshConfigManager, build_proxy_command

SERVER_PID = 4242
SERVER_PORT = 8765
SPACE_ARN = "arn:aws:sagemaker:us-east-1:123456789012:space/d-abc/my-space"
SPACE_HOSTNAME = "sm_lc_arn_._aws_._sagemaker_._us-east-1._123456789012_._space__d-abc__my-space"

POWERSHELL_SCRIPT = (
    "param([string]$HostName)\r\n"
    "if ($HostName -match '^(sm_[^.]+)\\.(.+)$') {\r\n"
    "    $AWS_RESOURCE_ARN = $matches[2] -replace '_\\._', ':' -replace '__', '/'\r\n"
    "}\r\n"
    "& aws ssm start-session --target $AWS_RESOURCE_ARN\r\n"
)

POSIX_SCRIPT = (
    "#!/bin/bash\n"
    'HOST="$1"\n'
    'AWS_RESOURCE_ARN=$(echo "$HOST" | sed -e "s/_\\._/:/g" -e "s/__/\\//g")\n'
    'exec aws ssm start-session --target "$AWS_RESOURCE_ARN"\n'
)


@pytest.fixture
def home(tmp_path: Path) -> Path:
    home = tmp_path / "home"
    home.mkdir()
    return home


@pytest.fixture
def paths(home: Path, tmp_path: Path) -> ConnectorPaths:
    """Linux-style paths rooted in the fake home."""
    computed = resolve_paths(Settings(), env={"HOME": str(home)}, platform="linux")
    return dataclasses.replace(
        computed,
        plugin_default=tmp_path / "opt" / "session-manager-plugin",
        cursor_executable=tmp_path / "opt" / "cursor",
    )


@pytest.fixture
def fs() -> FilesystemAdapter:
    return FilesystemAdapter()


@pytest.fixture
def shell() -> MockShell:
    """A host with the AWS CLI and the Session Manager plugin installed."""
    shell = MockShell(on_path=["aws", "session-manager-plugin"])
    shell.set_output(["aws", "--version"], "aws-cli/2.15.0 Python/3.11.6")
    shell.set_output(["session-manager-plugin", "--version"], "1.2.553.0")
    return shell


@pytest.fixture
def editor() -> MockEditor:
    """Cursor with the remote-SSH extension and the AWS Toolkit."""
    return MockEditor(
        commands=["remote-ssh.connectToHost"],
        extensions=["anysphere.remote-ssh", TOOLKIT_EXTENSION_ID],
    )


@pytest.fixture
def processes() -> MockProcessTable:
    return MockProcessTable(alive=[SERVER_PID])


@pytest.fixture
def network() -> MockPortProbe:
    return MockPortProbe(open_ports=[SERVER_PORT])


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def sleeper() -> RecordingSleeper:
    return RecordingSleeper()


@pytest.fixture
def ledger(paths: ConnectorPaths) -> RepairLedger:
    return RepairLedger(paths.ledger_file)


def write_file(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content.encode("utf-8"))
    return path


def write_record(paths: ConnectorPaths, pid=SERVER_PID, port=SERVER_PORT) -> Path:
    return write_file(paths.server_record, json.dumps({"pid": pid, "port": port}))


def host_block(paths: ConnectorPaths, alias: str = "sagemaker") -> str:
    """A valid host block for the fixture paths."""
    proxy = build_proxy_command(
        str(paths.server_record), str(paths.connection_script), windows=False
    )
    return (
        f"Host {alias}\n"
        f"    HostName {SPACE_HOSTNAME}\n"
        "    User sagemaker-user\n"
        f"    ProxyCommand {proxy}\n"
    )


@pytest.fixture
def ready(paths: ConnectorPaths) -> ConnectorPaths:
    """Everything in place: SSH config, record and connection script."""
    write_file(paths.ssh_config, host_block(paths))
    write_record(paths)
    write_file(paths.connection_script, POSIX_SCRIPT)
    return paths


@pytest.fixture
def monitor(fs, processes, network, paths) -> ServerHealthMonitor:
    return ServerHealthMonitor(
        filesystem=fs,
        processes=processes,
        network=network,
        record_path=paths.server_record,
        script_path=paths.connection_script,
    )


@pytest.fixture
def ssh_manager(fs, paths, ledger) -> SshConfigManager:
    return SshConfigManager(filesystem=fs, paths=paths, ledger=ledger)


@pytest.fixture
def orchestrator(
    shell, fs, editor, monitor, ssh_manager, ledger, store, sleeper, paths
) -> ConnectionOrchestrator:
    return ConnectionOrchestrator(
        verifier=PrerequisiteVerifier(
            shell=shell, filesystem=fs, extensions=editor, paths=paths
        ),
        monitor=monitor,
        ssh=ssh_manager,
        script_fixer=ScriptArnFixer(
            filesystem=fs, script_path=paths.connection_script, ledger=ledger
        ),
        code_wrapper=CodeWrapperService(
            shell=shell, filesystem=fs, paths=paths, ledger=ledger
        ),
        commands=editor,
        store=store,
        filesystem=fs,
        settings=Settings(),
        paths=paths,
        sleeper=sleeper,
        path_env="/usr/bin",
    )
