"""
Tests for CLI commands — global options, workflows, repairs and ARN helpers.

Commands that need collaborators get the scripted orchestrator from
conftest through ``obj={"orchestrator": ...}``.
"""

import json

import pytest
from click.testing import CliRunner

from smconnect.core.services.prerequisites import INSTALL_HINTS
from smconnect.main import cli

from conftest import SPACE_ARN, SPACE_HOSTNAME, host_block, write_file

APP_ARN = "arn:aws:sagemaker:us-east-1:123456789012:app/d-abc/my-space/JupyterLab/default"


@pytest.fixture
def invoke(orchestrator):
    """Run the CLI quietly against the scripted orchestrator."""
    runner = CliRunner()

    def _invoke(*args):
        return runner.invoke(cli, ["-q", *args], obj={"orchestrator": orchestrator})

    return _invoke


class TestCLIGlobal:
    """Tests for global CLI behavior."""

    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "SageMaker Space Connector" in result.output
        for command in ("connect", "quick-start", "diagnose", "fix", "ssh-config", "arn"):
            assert command in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_missing_config_file(self, tmp_path):
        result = CliRunner().invoke(cli, ["-c", str(tmp_path / "nope.yml"), "status"])
        assert result.exit_code == 1
        assert "Config file not found" in result.output


class TestArnCommands:
    def test_encode(self):
        result = CliRunner().invoke(cli, ["arn", "encode", SPACE_ARN])
        assert result.exit_code == 0
        assert result.output.strip() == SPACE_HOSTNAME

    def test_encode_app_arn(self):
        result = CliRunner().invoke(cli, ["arn", "encode", APP_ARN])
        assert result.output.strip() == SPACE_HOSTNAME

    def test_decode_hostname(self):
        result = CliRunner().invoke(cli, ["arn", "encode", SPACE_HOSTNAME])
        assert result.exit_code == 0
        assert result.output.strip() == SPACE_ARN

    def test_encode_json(self):
        result = CliRunner().invoke(cli, ["arn", "encode", "--json", SPACE_ARN])
        data = json.loads(result.stdout)
        assert data == {"input": SPACE_ARN, "space_arn": SPACE_ARN, "hostname": SPACE_HOSTNAME}

    def test_normalize(self):
        result = CliRunner().invoke(cli, ["arn", "normalize", "--json", APP_ARN])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["space_arn"] == SPACE_ARN
        assert data["domain"] == "d-abc"
        assert data["space"] == "my-space"

    def test_invalid(self):
        result = CliRunner().invoke(cli, ["arn", "normalize", "not-an-arn"])
        assert result.exit_code == 1
        assert "❌" in result.output
        assert "→" in result.output

    def test_invalid_json(self):
        result = CliRunner().invoke(cli, ["arn", "encode", "--json", "not-an-arn"])
        assert result.exit_code == 1
        assert json.loads(result.stdout)["kind"] == "ConversionFailed"


class TestStatusCommand:
    def test_ready(self, invoke, ready):
        result = invoke("status")
        assert result.exit_code == 0
        assert "Running (PID: 4242, Port: 8765)" in result.output

    def test_missing_host_exits_one(self, invoke):
        result = invoke("status")
        assert result.exit_code == 1
        assert INSTALL_HINTS["ssh_config_has_host"] in result.output

    def test_json(self, invoke, ready):
        result = invoke("status", "--json")
        data = json.loads(result.stdout)
        assert data["ok"] is True
        assert data["server"]["running"] is True


class TestConnectCommand:
    def test_connected(self, invoke, editor, ready):
        result = invoke("connect")
        assert result.exit_code == 0
        assert "Connecting to sagemaker" in result.output
        assert editor.executed == [("remote-ssh.connectToHost", ("sagemaker",))]

    def test_server_not_running(self, invoke, paths):
        write_file(paths.ssh_config, host_block(paths))

        result = invoke("connect", "--json")

        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["kind"] == "ServerNotRunning"
        assert data["ok"] is False

    def test_manual_steps_printed(self, invoke, editor, ready):
        editor.commands.clear()
        result = invoke("connect")
        assert result.exit_code == 0
        assert "Connect manually:" in result.output
        assert "Remote-SSH: Connect to Host" in result.output

    def test_quick_start(self, invoke, paths, ready):
        result = invoke("quick-start", "--json")
        assert result.exit_code == 0
        assert json.loads(result.stdout)["kind"] == "Connected"


class TestSetupCommand:
    def test_setup(self, invoke, paths):
        result = invoke("setup", "--arn", SPACE_ARN)
        assert result.exit_code == 0
        assert "Host sagemaker" in paths.ssh_config.read_text()

    def test_setup_without_arn(self, invoke):
        result = invoke("setup")
        assert result.exit_code == 1
        assert "ConfigMissing" in result.output


class TestDiagnoseCommand:
    def test_lists_components(self, invoke, ready):
        result = invoke("diagnose")
        assert "code_wrapper" in result.output
        assert "Recommendations:" in result.output
        assert "smconnect fix all" in result.output

    def test_json(self, invoke, ready):
        result = invoke("diagnose", "--json")
        data = json.loads(result.stdout)
        assert data["status"] == "unhealthy"
        assert result.exit_code == 1


class TestServerCommands:
    def test_status_running(self, invoke, ready):
        result = invoke("server", "status")
        assert result.exit_code == 0
        assert "Server is running" in result.output

    def test_status_dead_process(self, invoke, processes, ready):
        processes.alive.clear()
        result = invoke("server", "status")
        assert result.exit_code == 1
        assert "Process 4242: dead" in result.output
        assert "Port 8765: open" in result.output

    def test_start_already_running(self, invoke, ready):
        result = invoke("server", "start", "--json")
        assert json.loads(result.stdout)["kind"] == "AlreadyRunning"


class TestFixCommands:
    def test_fix_arn(self, invoke, paths, ready):
        result = invoke("fix", "arn")
        assert result.exit_code == 0
        assert "backup:" in result.output

    def test_fix_arn_missing_script(self, invoke):
        result = invoke("fix", "arn", "--json")
        assert result.exit_code == 1
        assert json.loads(result.stdout)["kind"] == "ScriptNotFound"

    def test_fix_code_wrapper(self, invoke, paths):
        result = invoke("fix", "code-wrapper")
        assert result.exit_code == 0
        assert paths.code_wrapper.is_file()
        assert str(paths.code_wrapper.parent) in result.output

    def test_fix_all_then_history(self, invoke, ready):
        result = invoke("fix", "all")
        assert result.exit_code == 0
        assert "Next steps:" in result.output

        history = invoke("fix", "history", "--json")
        kinds = [e["fix_kind"] for e in json.loads(history.stdout)]
        assert kinds == ["CodeWrapper", "ArnConversion"]

    def test_empty_history(self, invoke):
        result = invoke("fix", "history")
        assert "No repairs recorded." in result.output

    def test_fix_all_failure_exits_one(self, invoke):
        result = invoke("fix", "all")
        assert result.exit_code == 1
        assert "ssh_config" in result.output


class TestSshConfigCommands:
    def test_show(self, invoke, ready):
        result = invoke("ssh-config", "show")
        assert result.exit_code == 0
        assert f"HostName {SPACE_HOSTNAME}" in result.output

    def test_show_missing_alias(self, invoke, ready):
        result = invoke("ssh-config", "show", "--alias", "other")
        assert result.exit_code == 1
        assert "no 'Host other' block" in result.output

    def test_validate_clean(self, invoke, ready):
        result = invoke("ssh-config", "validate", "--json")
        assert result.exit_code == 0
        assert json.loads(result.stdout) == {"alias": "sagemaker", "valid": True, "issues": []}

    def test_validate_and_fix(self, invoke, paths):
        write_file(
            paths.ssh_config,
            f"Host sagemaker\n    HostName {SPACE_HOSTNAME}\n    User sagemaker-user\n"
            f"    ProxyCommand {paths.connection_script} %n\n",
        )

        before = invoke("ssh-config", "validate")
        assert before.exit_code == 1
        assert "WrongHostToken" in before.output

        fixed = invoke("ssh-config", "fix", "--kind", "WrongHostToken", "--json")
        assert fixed.exit_code == 0
        assert json.loads(fixed.stdout)[0]["fix_kind"] == "WrongHostToken"
        assert "%h" in paths.ssh_config.read_text()

    def test_fix_reports_unfixable_kind(self, invoke, paths):
        write_file(
            paths.ssh_config,
            f"Host sagemaker\n    HostName {SPACE_HOSTNAME}\n    User sagemaker-user\n"
            f'    ProxyCommand /bin/bash "{paths.connection_script}"\n',
        )

        result = invoke("ssh-config", "fix", "--json")

        assert result.exit_code == 1
        records = {r["fix_kind"]: r for r in json.loads(result.stdout)}
        assert records["WrongHostToken"]["error"]
        assert records["MissingEnvBinding"]["error"] is None
        assert "SAGEMAKER_LOCAL_SERVER_FILE_PATH" in paths.ssh_config.read_text()

    def test_setup_alias(self, invoke, paths):
        result = invoke("ssh-config", "setup", "--alias", "other", "--arn", SPACE_ARN)
        assert result.exit_code == 0
        assert "Host other" in paths.ssh_config.read_text()
