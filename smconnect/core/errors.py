"""
Error taxonomy — every failure the engine can report.

Probe failures (process, port, command availability) never show up
here: adapters convert them to receipts and services to ``False``.
These exceptions cover user input errors, config/script problems and
write failures during repair, which are the only hard failures.

Every error carries a ``next_action`` so the CLI never prints a bare
"failed".
"""

from __future__ import annotations

from smconnect.core.models.outcome import OutcomeKind


class ConnectorError(Exception):
    """Base class for all engine errors."""

    kind: OutcomeKind = OutcomeKind.ABORTED
    default_next_action: str = "Run 'smconnect diagnose' for details."

    def __init__(self, message: str, next_action: str | None = None):
        super().__init__(message)
        self.message = message
        self.next_action = next_action or self.default_next_action

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "error": self.message,
            "next_action": self.next_action,
        }


class ConversionFailed(ConnectorError):
    """Malformed resource identifier or hostname token."""

    kind = OutcomeKind.CONVERSION_FAILED
    default_next_action = (
        "Use a space ARN like "
        "arn:aws:sagemaker:us-east-1:123456789012:space/d-xxx/space-name"
    )


class ConfigMissing(ConnectorError):
    """SSH config file or the expected host block does not exist."""

    kind = OutcomeKind.CONFIG_MISSING
    default_next_action = "Run 'smconnect setup --arn <space-arn>' to create the host entry."


class ConfigMalformed(ConnectorError):
    """A config or script exists but has a shape we cannot repair."""

    kind = OutcomeKind.CONFIG_MALFORMED
    default_next_action = "Inspect the file manually, or run 'smconnect ssh-config validate'."


class ConfigDuplicateAlias(ConnectorError):
    """The same host alias is declared more than once."""

    kind = OutcomeKind.CONFIG_DUPLICATE_ALIAS
    default_next_action = "Remove the duplicate Host block; the first one is authoritative."


class ScriptNotFound(ConnectorError):
    """The toolkit has not (yet) created the connection script."""

    kind = OutcomeKind.SCRIPT_NOT_FOUND
    default_next_action = (
        "Start the local server via AWS Toolkit (right-click the Space → "
        "'Open Remote Connection'), then retry."
    )


class RepairWriteFailed(ConnectorError):
    """Writing a repaired file (or its backup) failed."""

    kind = OutcomeKind.REPAIR_WRITE_FAILED
    default_next_action = "Check file permissions, then re-run the fix."


class ConfigError(ConnectorError):
    """Raised when smconnect.yml is invalid."""

    kind = OutcomeKind.CONFIG_MALFORMED
    default_next_action = "Fix smconnect.yml or pass --config with a valid file."
