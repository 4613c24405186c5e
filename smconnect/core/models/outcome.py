"""
Connection outcomes — the structured result of every workflow.

The engine runs embedded in a host process, so it never exits with a
code. Workflows return a ``ConnectionOutcome`` instead; the CLI maps
``ok`` to the exit status.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class OutcomeKind(StrEnum):
    """Every terminal outcome of a workflow."""

    # success
    CONNECTED = "Connected"
    MANUAL_CONNECT = "ManualConnect"
    ALREADY_RUNNING = "AlreadyRunning"
    SERVER_STARTED = "ServerStarted"
    SETUP_COMPLETE = "SetupComplete"
    FIXES_APPLIED = "FixesApplied"

    # failures
    PREREQUISITE_MISSING = "PrerequisiteMissing"
    SERVER_NOT_RUNNING = "ServerNotRunning"
    SERVER_UNREACHABLE = "ServerUnreachable"
    SERVER_STOPPED_BETWEEN_CHECKS = "ServerStoppedBetweenChecks"
    CONFIG_MISSING = "ConfigMissing"
    CONFIG_MALFORMED = "ConfigMalformed"
    CONFIG_DUPLICATE_ALIAS = "ConfigDuplicateAlias"
    CONVERSION_FAILED = "ConversionFailed"
    NO_CAPABILITY_RESOLVED = "NoCapabilityResolved"
    SCRIPT_NOT_FOUND = "ScriptNotFound"
    REPAIR_WRITE_FAILED = "RepairWriteFailed"
    ABORTED = "Aborted"


# NoCapabilityResolved falls back to manual steps, so it is not a failure.
_OK_KINDS = frozenset({
    OutcomeKind.CONNECTED,
    OutcomeKind.MANUAL_CONNECT,
    OutcomeKind.ALREADY_RUNNING,
    OutcomeKind.SERVER_STARTED,
    OutcomeKind.SETUP_COMPLETE,
    OutcomeKind.FIXES_APPLIED,
    OutcomeKind.NO_CAPABILITY_RESOLVED,
})


class ConnectionState(StrEnum):
    """States of a single connection attempt."""

    INIT = "Init"
    PREREQ_CHECKED = "PrereqChecked"
    SERVER_CHECKED = "ServerChecked"
    SCRIPT_CHECKED = "ScriptChecked"
    FINAL_VERIFIED = "FinalVerified"
    DELEGATED = "Delegated"
    DONE = "Done"
    ABORTED = "Aborted"


class ConnectionOutcome(BaseModel):
    """Result of a workflow run."""

    kind: OutcomeKind
    state: ConnectionState = ConnectionState.INIT
    message: str = ""
    next_action: str = ""
    verb: str | None = None
    manual_steps: list[str] = Field(default_factory=list)
    notices: list[str] = Field(default_factory=list)
    steps: list[str] = Field(default_factory=list)   # trail of visited states
    details: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.kind in _OK_KINDS

    @classmethod
    def abort(
        cls,
        kind: OutcomeKind,
        message: str,
        next_action: str,
        **kwargs: Any,
    ) -> ConnectionOutcome:
        """Create an aborted outcome."""
        return cls(
            kind=kind,
            state=ConnectionState.ABORTED,
            message=message,
            next_action=next_action,
            **kwargs,
        )

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        data["ok"] = self.ok
        return data
