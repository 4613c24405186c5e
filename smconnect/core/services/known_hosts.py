"""
Known-hosts purge — drop cached host keys of previous space sessions.

Every space restart presents a new host key under the same encoded
hostname, which makes ssh refuse the connection. Quick start removes
those entries first. Best effort: the caller logs a failure and moves on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from smconnect.adapters.shell.filesystem import FilesystemAdapter
from smconnect.core.services.codec import HOSTNAME_PREFIX

logger = logging.getLogger(__name__)


@dataclass
class PurgeResult:
    removed: int = 0
    file_exists: bool = True
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _host_field(line: str) -> str:
    """The comma-separated host list column of a known_hosts line."""
    fields = line.split()
    if not fields:
        return ""
    # "@cert-authority host key" / "@revoked host key"
    if fields[0].startswith("@") and len(fields) > 1:
        return fields[1]
    return fields[0]


def purge_stale_host_keys(
    filesystem: FilesystemAdapter,
    known_hosts: Path,
    prefix: str = HOSTNAME_PREFIX,
) -> PurgeResult:
    """Remove every known_hosts line whose host starts with ``prefix``."""
    receipt = filesystem.read(known_hosts)
    if not receipt.ok:
        if receipt.metadata.get("missing"):
            return PurgeResult(file_exists=False)
        return PurgeResult(error=receipt.error)

    lines = receipt.output.splitlines(keepends=True)
    kept = [
        line for line in lines
        if not any(h.strip("[").startswith(prefix) for h in _host_field(line).split(","))
    ]
    removed = len(lines) - len(kept)
    if removed == 0:
        return PurgeResult()

    write = filesystem.write(known_hosts, "".join(kept), backup=True)
    if not write.ok:
        return PurgeResult(error=write.error)

    logger.info("Removed %d stale host key(s) from %s", removed, known_hosts)
    return PurgeResult(removed=removed)
