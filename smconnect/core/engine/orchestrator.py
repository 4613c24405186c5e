"""
Connection orchestrator — verify before act.

A connection attempt walks a fixed state machine:

    Init → PrereqChecked → ServerChecked(¹) → ScriptChecked
         → FinalVerified(²) → Delegated → Done
    any failure → Aborted(reason)

(¹) and (²) are two separate, fresh health derivations: the server can
die while the connection script is being checked, and delegating to a
dead server leaves the editor hanging. Delegation is a single call to
the resolved verb; nothing is invoked speculatively.

The other workflows (quick start, diagnose, fix-all, setup, start
server, status) share the same collaborators.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from smconnect.adapters.base import CommandRegistry, KeyValueStore
from smconnect.adapters.registry import AdapterRegistry, build_default_registry
from smconnect.adapters.shell.filesystem import FilesystemAdapter
from smconnect.core.config.paths import ConnectorPaths, resolve_paths
from smconnect.core.errors import ConfigMissing, ConnectorError, ScriptNotFound
from smconnect.core.models.outcome import ConnectionOutcome, ConnectionState, OutcomeKind
from smconnect.core.models.prerequisites import HostVariant, PrerequisiteSet
from smconnect.core.models.receipt import Receipt
from smconnect.core.models.server import ServerHealth
from smconnect.core.models.settings import Settings
from smconnect.core.models.ssh import FixRecord
from smconnect.core.observability import health as checks
from smconnect.core.observability.health import SystemHealth
from smconnect.core.persistence.audit import RepairLedger
from smconnect.core.persistence.state_file import MIGRATION_NOTICE_SHOWN, StateStore
from smconnect.core.services import codec
from smconnect.core.services.capabilities import (
    SERVER_START_COMMANDS,
    manual_connect_steps,
    resolve_connect_verb,
    resolve_first,
)
from smconnect.core.services.code_wrapper import CodeWrapperService
from smconnect.core.services.known_hosts import purge_stale_host_keys
from smconnect.core.services.prerequisites import (
    DEPRECATED_EXTENSION,
    INSTALL_HINTS,
    PrerequisiteVerifier,
)
from smconnect.core.services.script_fix import ScriptArnFixer
from smconnect.core.services.server_health import ServerHealthMonitor
from smconnect.core.services.ssh_config import SshConfigManager, parse_host_block

logger = logging.getLogger(__name__)

MIGRATION_NOTICE = (
    f"The '{DEPRECATED_EXTENSION}' extension is deprecated. "
    "Uninstall it; smconnect replaces it."
)

_START_SERVER_HINT = (
    "Start the local server via AWS Toolkit (right-click the Space → "
    "'Open Remote Connection'), or run 'smconnect server start'."
)


# ── Reports ─────────────────────────────────────────────────────


@dataclass
class StatusReport:
    """Prerequisite snapshot plus server health."""

    prerequisites: PrerequisiteSet
    server: ServerHealth
    hints: list[str] = field(default_factory=list)
    notices: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.prerequisites.all_passed

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "prerequisites": self.prerequisites.to_dict(),
            "server": self.server.to_dict(),
            "hints": list(self.hints),
            "notices": list(self.notices),
        }


@dataclass
class FixReport:
    """Outcome of applying every repair."""

    records: list[FixRecord] = field(default_factory=list)
    failures: list[dict[str, str]] = field(default_factory=list)
    skipped: list[dict[str, str]] = field(default_factory=list)
    next_steps: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def changed(self) -> list[FixRecord]:
        return [r for r in self.records if r.changed]

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "records": [r.to_dict() for r in self.records],
            "failures": list(self.failures),
            "skipped": list(self.skipped),
            "next_steps": list(self.next_steps),
        }


def _failure(fix: str, err: ConnectorError) -> dict[str, str]:
    return {
        "fix": fix,
        "kind": err.kind.value,
        "error": err.message,
        "next_action": err.next_action,
    }


# ── Orchestrator ────────────────────────────────────────────────


@dataclass
class ConnectionOrchestrator:
    """Drives every workflow through injected collaborators."""

    verifier: PrerequisiteVerifier
    monitor: ServerHealthMonitor
    ssh: SshConfigManager
    script_fixer: ScriptArnFixer
    code_wrapper: CodeWrapperService
    commands: CommandRegistry
    store: KeyValueStore
    filesystem: FilesystemAdapter
    settings: Settings
    paths: ConnectorPaths
    sleeper: Callable[[float], None] = time.sleep
    path_env: str | None = None

    @property
    def alias(self) -> str:
        return self.settings.ssh_host_alias

    # ── shared steps ────────────────────────────────────────────

    def _migration_notices(self) -> list[str]:
        """One-time notice about the deprecated extension."""
        if self.store.get(MIGRATION_NOTICE_SHOWN, False):
            return []
        if not self.verifier.deprecated_extension_installed():
            return []
        self.store.set(MIGRATION_NOTICE_SHOWN, True)
        logger.info("Migration notice shown")
        return [MIGRATION_NOTICE]

    def _variant(self, prereqs: PrerequisiteSet) -> HostVariant:
        if self.settings.host_variant != "auto":
            return HostVariant(self.settings.host_variant)
        return prereqs.remote_extension.variant

    def _registered_commands(self) -> list[str]:
        try:
            return list(self.commands.list_commands())
        except Exception as e:
            logger.warning("Cannot list editor commands: %s", e)
            return []

    def _execute_command(self, command_id: str, *args: str) -> Receipt:
        try:
            return self.commands.execute(command_id, *args)
        except Exception as e:
            logger.warning("Command %s raised: %s", command_id, e)
            return Receipt.failure(adapter="commands", operation=command_id, error=str(e))

    def _check_prerequisites(
        self, steps: list[str], notices: list[str]
    ) -> tuple[PrerequisiteSet, ConnectionOutcome | None]:
        prereqs = self.verifier.check_all()
        if not prereqs.all_passed:
            hints = [
                INSTALL_HINTS[name]
                for name, passed in (
                    ("tool_installed", prereqs.tool_installed),
                    ("bridge_plugin_installed", prereqs.bridge_plugin_installed),
                    ("remote_extension", prereqs.remote_extension.installed),
                    ("ssh_config_has_host", prereqs.ssh_config_has_host),
                )
                if not passed
            ]
            return prereqs, ConnectionOutcome.abort(
                OutcomeKind.PREREQUISITE_MISSING,
                "Prerequisites missing: " + ", ".join(prereqs.errors),
                hints[0] if len(hints) == 1 else "; ".join(hints),
                steps=steps + [ConnectionState.ABORTED],
                notices=notices,
                details={"prerequisites": prereqs.to_dict()},
            )
        steps.append(ConnectionState.PREREQ_CHECKED)
        return prereqs, None

    def _server_abort(
        self, health: ServerHealth, steps: list[str], notices: list[str]
    ) -> ConnectionOutcome:
        if health.process_alive and not health.port_reachable:
            return ConnectionOutcome.abort(
                OutcomeKind.SERVER_UNREACHABLE,
                f"Server process {health.pid} is alive but port {health.port} is not accepting connections",
                "Restart the local server from AWS Toolkit, then retry.",
                steps=steps + [ConnectionState.ABORTED],
                notices=notices,
                details={"server": health.to_dict()},
            )
        return ConnectionOutcome.abort(
            OutcomeKind.SERVER_NOT_RUNNING,
            f"Server is not running: {health.error}",
            _START_SERVER_HINT,
            steps=steps + [ConnectionState.ABORTED],
            notices=notices,
            details={"server": health.to_dict()},
        )

    def _verify_and_delegate(
        self,
        prereqs: PrerequisiteSet,
        steps: list[str],
        notices: list[str],
        settle: bool = False,
    ) -> ConnectionOutcome:
        first = self.monitor.check_server_status()
        if not first.running:
            return self._server_abort(first, steps, notices)
        steps.append(ConnectionState.SERVER_CHECKED)

        if not self.monitor.connection_script_exists():
            return ConnectionOutcome.abort(
                OutcomeKind.SCRIPT_NOT_FOUND,
                f"Connection script not found: {self.paths.connection_script}",
                ScriptNotFound.default_next_action,
                steps=steps + [ConnectionState.ABORTED],
                notices=notices,
            )
        steps.append(ConnectionState.SCRIPT_CHECKED)

        if settle and self.settings.settle_delay > 0:
            self.sleeper(self.settings.settle_delay)

        second = self.monitor.check_server_status()
        if not second.running:
            logger.warning("Server stopped between checks (pid=%s)", first.pid)
            return ConnectionOutcome.abort(
                OutcomeKind.SERVER_STOPPED_BETWEEN_CHECKS,
                "Server stopped while the connection was being prepared",
                _START_SERVER_HINT,
                steps=steps + [ConnectionState.ABORTED],
                notices=notices,
                details={"server": second.to_dict()},
            )
        steps.append(ConnectionState.FINAL_VERIFIED)

        return self._delegate(self._variant(prereqs), steps, notices)

    def _delegate(
        self, variant: HostVariant, steps: list[str], notices: list[str]
    ) -> ConnectionOutcome:
        verb = resolve_connect_verb(variant, self._registered_commands())
        manual = manual_connect_steps(self.alias)

        if verb is None:
            steps.append(ConnectionState.DONE)
            return ConnectionOutcome(
                kind=OutcomeKind.NO_CAPABILITY_RESOLVED,
                state=ConnectionState.DONE,
                message="No connect command available; connect manually",
                next_action=manual[1],
                manual_steps=manual,
                notices=notices,
                steps=steps,
            )

        steps.append(ConnectionState.DELEGATED)
        args = (self.alias,) if verb.takes_host else ()
        logger.info("Delegating to %s %s", verb.command_id, " ".join(args))
        receipt = self._execute_command(verb.command_id, *args)
        steps.append(ConnectionState.DONE)

        if not receipt.ok:
            logger.warning("Connect command %s failed: %s", verb.command_id, receipt.error)
            return ConnectionOutcome(
                kind=OutcomeKind.MANUAL_CONNECT,
                state=ConnectionState.DONE,
                message=f"Could not invoke {verb.command_id}: {receipt.error}",
                next_action=manual[1],
                verb=verb.command_id,
                manual_steps=manual,
                notices=notices,
                steps=steps,
            )

        if verb.manual:
            return ConnectionOutcome(
                kind=OutcomeKind.MANUAL_CONNECT,
                state=ConnectionState.DONE,
                message=f"Host picker opened; select '{self.alias}'",
                next_action=manual[2],
                verb=verb.command_id,
                manual_steps=manual,
                notices=notices,
                steps=steps,
            )

        return ConnectionOutcome(
            kind=OutcomeKind.CONNECTED,
            state=ConnectionState.DONE,
            message=f"Connecting to {self.alias} via {verb.command_id}",
            verb=verb.command_id,
            notices=notices,
            steps=steps,
        )

    # ── workflows ───────────────────────────────────────────────

    def connect(self) -> ConnectionOutcome:
        """Verify everything, then hand the alias to the editor."""
        steps: list[str] = [ConnectionState.INIT]
        notices = self._migration_notices()
        prereqs, aborted = self._check_prerequisites(steps, notices)
        if aborted is not None:
            return aborted
        return self._verify_and_delegate(prereqs, steps, notices)

    def quick_start(self) -> ConnectionOutcome:
        """Repair what can be repaired silently, then connect.

        The script fix and the host-key purge are best effort: their
        failures are logged and the connection attempt continues.
        """
        steps: list[str] = [ConnectionState.INIT]
        notices = self._migration_notices()
        prereqs, aborted = self._check_prerequisites(steps, notices)
        if aborted is not None:
            return aborted

        details: dict[str, Any] = {}
        try:
            record = self.script_fixer.apply()
            details["script_fix"] = record.message
        except ConnectorError as e:
            logger.warning("ARN conversion fix skipped: %s", e.message)
            details["script_fix"] = e.message

        purge = purge_stale_host_keys(self.filesystem, self.paths.known_hosts)
        if purge.ok:
            details["host_keys_removed"] = purge.removed
        else:
            logger.warning("Could not clean known_hosts: %s", purge.error)
            details["host_keys_error"] = purge.error

        outcome = self._verify_and_delegate(prereqs, steps, notices, settle=True)
        outcome.details.update(details)
        return outcome

    def diagnose(self) -> SystemHealth:
        """Check every moving part and recommend fixes."""
        report = SystemHealth()

        wrapper = self.code_wrapper.check()
        report.add(checks.check_code_wrapper(wrapper))
        if self.filesystem.exists(self.paths.code_wrapper):
            path_env = self.path_env if self.path_env is not None else os.environ.get("PATH", "")
            report.add(checks.check_wrapper_on_path(
                self.code_wrapper.wrapper_dir_on_path(path_env),
                str(self.paths.code_wrapper.parent),
            ))
        report.add(checks.check_editor_install(self.filesystem, self.paths.cursor_executable))

        report.add(checks.check_remote_extension(self.verifier.check_remote_extension()))
        report.add(checks.check_toolkit(self.verifier.check_toolkit()))

        entry = None
        issues = []
        config_exists = self.filesystem.exists(self.paths.ssh_config)
        if config_exists:
            try:
                entry, issues = self.ssh.check_file(self.alias, self.settings.space_arn)
            except ConnectorError as e:
                report.add(checks.ComponentHealth(
                    name="ssh_config",
                    status=checks.UNHEALTHY,
                    message=e.message,
                ))
            else:
                report.add(checks.check_ssh_config(True, entry, issues, self.alias))
        else:
            report.add(checks.check_ssh_config(False, None, [], self.alias))

        server = self.monitor.check_server_status()
        report.add(checks.check_server(server))

        arn_applied = self.script_fixer.status()
        report.add(checks.check_arn_conversion(arn_applied))
        report.add(checks.check_profile_mapping(self.filesystem, self.paths.profile_mapping))

        if wrapper.has_issue:
            report.recommend("Fix code wrapper: smconnect fix code-wrapper")
        if entry is None:
            report.recommend("Create the host entry: smconnect setup --arn <space-arn>")
        elif any(i.fixable for i in issues):
            report.recommend("Fix SSH config: smconnect fix ssh-config")
        if not server.running:
            report.recommend("Start server: smconnect server start")
        if arn_applied is False:
            report.recommend("Apply ARN conversion fix: smconnect fix arn")
        report.recommend("Or apply all fixes: smconnect fix all")

        logger.info("Diagnose: %s", report.status)
        return report

    def fix_code_wrapper(self) -> FixRecord:
        return self.code_wrapper.fix()

    def fix_arn_conversion(self) -> FixRecord:
        return self.script_fixer.apply()

    def fix_ssh_config(self) -> list[FixRecord]:
        return self.ssh.fix_all_in_file(self.alias)

    def fix_all(self) -> FixReport:
        """Code wrapper, script and SSH config fixes, each independent."""
        report = FixReport()

        wrapper = self.code_wrapper.check()
        if wrapper.has_issue:
            try:
                report.records.append(self.code_wrapper.fix())
            except ConnectorError as e:
                report.failures.append(_failure("code_wrapper", e))
        else:
            report.skipped.append({"fix": "code_wrapper", "reason": wrapper.message})

        try:
            report.records.append(self.script_fixer.apply())
        except ScriptNotFound as e:
            report.skipped.append({"fix": "arn_conversion", "reason": e.message})
        except ConnectorError as e:
            report.failures.append(_failure("arn_conversion", e))

        try:
            for record in self.ssh.fix_all_in_file(self.alias):
                if record.failed:
                    report.failures.append({
                        "fix": f"ssh_config:{record.fix_kind}",
                        "kind": OutcomeKind.CONFIG_MALFORMED.value,
                        "error": record.error,
                        "next_action": record.next_action,
                    })
                else:
                    report.records.append(record)
        except ConnectorError as e:
            report.failures.append(_failure("ssh_config", e))

        if any(r.fix_kind == "CodeWrapper" and not r.already_applied for r in report.records):
            report.next_steps.append(
                f"Make sure {self.paths.code_wrapper.parent} is at the start of PATH, "
                "then restart the editor"
            )
        report.next_steps.append("Start server: smconnect server start")
        report.next_steps.append("Connect: smconnect connect")

        logger.info(
            "Fix all: %d changed, %d failed, %d skipped",
            len(report.changed), len(report.failures), len(report.skipped),
        )
        return report

    def setup(self, space_arn: str | None = None) -> ConnectionOutcome:
        """Check the tools and create the host entry when it is missing."""
        steps: list[str] = [ConnectionState.INIT]
        notices = self._migration_notices()

        if not self.verifier.check_tool():
            return ConnectionOutcome.abort(
                OutcomeKind.PREREQUISITE_MISSING,
                "AWS CLI not found",
                INSTALL_HINTS["tool_installed"],
                steps=steps + [ConnectionState.ABORTED],
                notices=notices,
            )
        if not self.verifier.check_remote_extension().installed:
            return ConnectionOutcome.abort(
                OutcomeKind.PREREQUISITE_MISSING,
                "Remote-SSH extension not found",
                INSTALL_HINTS["remote_extension"],
                steps=steps + [ConnectionState.ABORTED],
                notices=notices,
            )
        if not self.verifier.check_bridge_plugin():
            notices.append(INSTALL_HINTS["bridge_plugin_installed"])
        steps.append(ConnectionState.PREREQ_CHECKED)

        try:
            try:
                text = self.ssh.read_config()
            except ConfigMissing:
                text = ""
            entry = parse_host_block(text, self.alias)

            if entry is not None:
                self.ssh.ensure_unique(entry)
                issues = self.ssh.validate(entry)
                fixable = [i for i in issues if i.fixable]
                steps.append(ConnectionState.DONE)
                return ConnectionOutcome(
                    kind=OutcomeKind.SETUP_COMPLETE,
                    state=ConnectionState.DONE,
                    message=f"Host {self.alias} already configured",
                    next_action=(
                        "Run 'smconnect fix ssh-config'" if fixable else "Run 'smconnect connect'"
                    ),
                    notices=notices,
                    steps=steps,
                    details={"issues": [i.model_dump(mode="json") for i in issues]},
                )

            arn = space_arn or self.settings.space_arn
            if not arn:
                return ConnectionOutcome.abort(
                    OutcomeKind.CONFIG_MISSING,
                    f"SSH config has no 'Host {self.alias}' block and no space ARN was given",
                    "Run 'smconnect setup --arn <space-arn>'",
                    steps=steps + [ConnectionState.ABORTED],
                    notices=notices,
                )

            resource = codec.normalize_to_space(arn)
            record = self.ssh.setup_host_in_file(self.alias, resource)
        except ConnectorError as e:
            return ConnectionOutcome.abort(
                e.kind,
                e.message,
                e.next_action,
                steps=steps + [ConnectionState.ABORTED],
                notices=notices,
            )

        steps.append(ConnectionState.DONE)
        return ConnectionOutcome(
            kind=OutcomeKind.SETUP_COMPLETE,
            state=ConnectionState.DONE,
            message=record.message,
            next_action="Start the server, then run 'smconnect connect'",
            notices=notices,
            steps=steps,
            details={
                "hostname": codec.encode(resource),
                "space_arn": str(resource),
                "fix": record.to_dict(),
            },
        )

    def start_server(self) -> ConnectionOutcome:
        """Ask the toolkit to start the local server, wait once, re-check."""
        steps: list[str] = [ConnectionState.INIT]
        notices = self._migration_notices()

        health = self.monitor.check_server_status()
        if health.running:
            return ConnectionOutcome(
                kind=OutcomeKind.ALREADY_RUNNING,
                state=ConnectionState.DONE,
                message=f"Server is already running (PID: {health.pid}, Port: {health.port})",
                notices=notices,
                steps=steps + [ConnectionState.DONE],
                details={"server": health.to_dict()},
            )

        command_id = resolve_first(SERVER_START_COMMANDS, self._registered_commands())
        if command_id is None:
            return ConnectionOutcome.abort(
                OutcomeKind.SERVER_NOT_RUNNING,
                "No AWS Toolkit command available to start the server",
                "Start the local server via AWS Toolkit: right-click the Space → "
                "'Open Remote Connection'.",
                steps=steps + [ConnectionState.ABORTED],
                notices=notices,
                details={"server": health.to_dict()},
            )

        receipt = self._execute_command(command_id)
        if not receipt.ok:
            logger.warning("%s failed: %s", command_id, receipt.error)

        self.sleeper(self.settings.start_wait)
        after = self.monitor.check_server_status()
        if after.running:
            return ConnectionOutcome(
                kind=OutcomeKind.SERVER_STARTED,
                state=ConnectionState.DONE,
                message=f"Server started (PID: {after.pid}, Port: {after.port})",
                verb=command_id,
                notices=notices,
                steps=steps + [ConnectionState.DONE],
                details={"server": after.to_dict()},
            )

        wrapper = self.code_wrapper.check()
        if wrapper.has_issue:
            next_action = f"{wrapper.message} Run 'smconnect fix code-wrapper', then retry."
        else:
            next_action = "Check the AWS Toolkit output for errors, then retry."
        return ConnectionOutcome.abort(
            OutcomeKind.SERVER_NOT_RUNNING,
            f"Server did not start: {after.error}",
            next_action,
            verb=command_id,
            steps=steps + [ConnectionState.ABORTED],
            notices=notices,
            details={
                "server": after.to_dict(),
                "code_wrapper": {"has_issue": wrapper.has_issue, "message": wrapper.message},
            },
        )

    def status(self) -> StatusReport:
        prereqs = self.verifier.check_all()
        hints = [
            INSTALL_HINTS[name]
            for name, passed in (
                ("tool_installed", prereqs.tool_installed),
                ("bridge_plugin_installed", prereqs.bridge_plugin_installed),
                ("remote_extension", prereqs.remote_extension.installed),
                ("ssh_config_has_host", prereqs.ssh_config_has_host),
                ("toolkit_installed", prereqs.toolkit_installed),
            )
            if not passed
        ]
        return StatusReport(
            prerequisites=prereqs,
            server=self.monitor.check_server_status(),
            hints=hints,
            notices=self._migration_notices(),
        )


# ── Factory ─────────────────────────────────────────────────────


def build_orchestrator(
    settings: Settings | None = None,
    registry: AdapterRegistry | None = None,
    paths: ConnectorPaths | None = None,
    store: KeyValueStore | None = None,
    sleeper: Callable[[float], None] = time.sleep,
) -> ConnectionOrchestrator:
    """Wire the orchestrator from registered adapters."""
    settings = settings or Settings()
    registry = registry or build_default_registry(settings)
    paths = paths or resolve_paths(settings)

    shell = registry.require("shell")
    filesystem = registry.require("filesystem")
    editor = registry.require("editor")
    ledger = RepairLedger(paths.ledger_file)

    return ConnectionOrchestrator(
        verifier=PrerequisiteVerifier(
            shell=shell,
            filesystem=filesystem,
            extensions=editor,
            paths=paths,
            alias=settings.ssh_host_alias,
        ),
        monitor=ServerHealthMonitor(
            filesystem=filesystem,
            processes=registry.require("process"),
            network=registry.require("network"),
            record_path=paths.server_record,
            script_path=paths.connection_script,
            port_timeout=settings.port_probe_timeout,
        ),
        ssh=SshConfigManager(
            filesystem=filesystem,
            paths=paths,
            remote_user=settings.remote_user,
            ledger=ledger,
        ),
        script_fixer=ScriptArnFixer(
            filesystem=filesystem,
            script_path=paths.connection_script,
            ledger=ledger,
        ),
        code_wrapper=CodeWrapperService(
            shell=shell,
            filesystem=filesystem,
            paths=paths,
            prefer_cursor=settings.editor != "code" and settings.host_variant != "alternate",
            ledger=ledger,
        ),
        commands=editor,
        store=store if store is not None else StateStore(paths.state_file),
        filesystem=filesystem,
        settings=settings,
        paths=paths,
        sleeper=sleeper,
    )
