"""
Connection-script ARN fix.

The toolkit's connection script recovers the resource ARN from the SSH
hostname and hands it to the local server, which only accepts Space
ARNs. When the hostname was generated from an App ARN the connection
fails. This fix inserts an App→Space conversion right after the line
that recovers ``AWS_RESOURCE_ARN``. Idempotent via a marker comment.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from smconnect.adapters.shell.filesystem import FilesystemAdapter
from smconnect.core.errors import ConfigMalformed, RepairWriteFailed, ScriptNotFound
from smconnect.core.models.ssh import FixRecord
from smconnect.core.persistence.audit import RepairLedger

logger = logging.getLogger(__name__)

FIX_KIND = "ArnConversion"
MARKER = "Convert app ARN to space ARN"

# $AWS_RESOURCE_ARN = $matches[2] -replace '_\._', ':' -replace '__', '/'
_POWERSHELL_ANCHOR = re.compile(
    r"^[ \t]*\$AWS_RESOURCE_ARN\s*=\s*\$matches\[2\].*-replace\s+'__',\s*'/'[^\r\n]*(\r?\n|$)",
    re.MULTILINE,
)
# AWS_RESOURCE_ARN=$(echo "..." | sed ...)   (POSIX script)
_POSIX_ANCHOR = re.compile(
    r"^[ \t]*(?:export\s+)?AWS_RESOURCE_ARN=[^\r\n]*(\r?\n|$)",
    re.MULTILINE,
)

_POWERSHELL_BLOCK = [
    "",
    f"# {MARKER} if needed (server only accepts space ARNs)",
    "if ($AWS_RESOURCE_ARN -match '^arn:([^:]+):sagemaker:([^:]+):(\\d+):app/([^/]+)/([^/]+)/.*$') {",
    '    $AWS_RESOURCE_ARN = "arn:" + $matches[1] + ":sagemaker:" + $matches[2] + ":" + $matches[3] + ":space/" + $matches[4] + "/" + $matches[5]',
    '    Write-Host "Converted app ARN to space ARN: $AWS_RESOURCE_ARN"',
    "}",
    "",
]

_POSIX_BLOCK = [
    "",
    f"# {MARKER} if needed (server only accepts space ARNs)",
    'if [[ "$AWS_RESOURCE_ARN" =~ ^arn:([^:]+):sagemaker:([^:]+):([0-9]+):app/([^/]+)/([^/]+)/.*$ ]]; then',
    '    AWS_RESOURCE_ARN="arn:${BASH_REMATCH[1]}:sagemaker:${BASH_REMATCH[2]}:${BASH_REMATCH[3]}:space/${BASH_REMATCH[4]}/${BASH_REMATCH[5]}"',
    '    echo "Converted app ARN to space ARN: $AWS_RESOURCE_ARN" >&2',
    "fi",
    "",
]


def is_applied(script_text: str) -> bool:
    return MARKER in script_text


def apply_arn_conversion(script_text: str) -> tuple[str, bool]:
    """Insert the conversion block.

    Returns:
        (new_text, changed).

    Raises:
        ConfigMalformed: No line recovering AWS_RESOURCE_ARN was found.
    """
    if is_applied(script_text):
        return script_text, False

    match = _POWERSHELL_ANCHOR.search(script_text)
    block = _POWERSHELL_BLOCK
    if match is None:
        match = _POSIX_ANCHOR.search(script_text)
        block = _POSIX_BLOCK
    if match is None:
        raise ConfigMalformed(
            "Could not find where the connection script sets AWS_RESOURCE_ARN; "
            "the script format may have changed"
        )

    newline = "\r\n" if "\r\n" in script_text else "\n"
    insert = newline.join(block) + newline
    end = match.end()
    if not match.group(1):  # anchor was the last line without a newline
        insert = newline + insert
    return script_text[:end] + insert + script_text[end:], True


@dataclass
class ScriptArnFixer:
    """Apply the ARN conversion to the toolkit's script on disk."""

    filesystem: FilesystemAdapter
    script_path: Path
    ledger: RepairLedger | None = None

    def status(self) -> bool | None:
        """True if applied, False if not, None if the script is missing."""
        receipt = self.filesystem.read(self.script_path)
        if not receipt.ok:
            return None
        return is_applied(receipt.output)

    def apply(self) -> FixRecord:
        """Raises ScriptNotFound, ConfigMalformed or RepairWriteFailed."""
        receipt = self.filesystem.read(self.script_path)
        if not receipt.ok:
            raise ScriptNotFound(f"Connection script not found: {self.script_path}")

        new_text, changed = apply_arn_conversion(receipt.output)
        if not changed:
            return FixRecord(
                fix_kind=FIX_KIND,
                already_applied=True,
                target=str(self.script_path),
                message="ARN conversion already applied",
            )

        write = self.filesystem.write(self.script_path, new_text, backup=True)
        if not write.ok:
            raise RepairWriteFailed(write.error or f"Cannot write {self.script_path}")

        record = FixRecord(
            fix_kind=FIX_KIND,
            backup_path=write.metadata.get("backup_path"),
            target=str(self.script_path),
            message="Added app→space ARN conversion",
        )
        logger.info("ARN conversion added to %s", self.script_path)
        if self.ledger is not None:
            self.ledger.record(record)
        return record
