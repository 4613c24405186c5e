"""
Filesystem adapter — reads and crash-safe rewrites.

Repairs never write in place. A rewrite first copies the unmodified
file to ``<name>.backup.<timestamp>``, then writes the new content to a
temp file in the same directory and ``os.replace``s it over the target,
so an interrupted repair leaves either the old or the new file.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from datetime import datetime
from pathlib import Path

from smconnect.adapters.base import Adapter
from smconnect.core.models.receipt import Receipt

logger = logging.getLogger(__name__)

BACKUP_TIMESTAMP_FORMAT = "%Y%m%dT%H%M%S%f"


def backup_path_for(target: Path, now: datetime | None = None) -> Path:
    """Backup location for a file, embedding the current timestamp."""
    stamp = (now or datetime.now()).strftime(BACKUP_TIMESTAMP_FORMAT)
    return target.with_name(f"{target.name}.backup.{stamp}")


class FilesystemAdapter(Adapter):
    """File operations with receipts."""

    @property
    def name(self) -> str:
        return "filesystem"

    def is_available(self) -> bool:
        return True  # filesystem is always available

    def exists(self, target: Path) -> bool:
        try:
            return target.is_file()
        except OSError:
            return False

    def read(self, target: Path) -> Receipt:
        """Read a text file. A missing file is a failed receipt with ``missing=True``."""
        if not self.exists(target):
            return Receipt.failure(
                adapter=self.name,
                operation="read",
                error=f"File not found: {target}",
                metadata={"path": str(target), "missing": True},
            )
        try:
            # newline="" keeps CRLF files byte-identical through a rewrite
            with target.open("r", encoding="utf-8", newline="") as fh:
                content = fh.read()
        except (OSError, UnicodeDecodeError) as e:
            return Receipt.failure(
                adapter=self.name,
                operation="read",
                error=f"Cannot read {target}: {e}",
                metadata={"path": str(target), "missing": False},
            )
        return Receipt.success(
            adapter=self.name,
            operation="read",
            output=content,
            metadata={"path": str(target), "size": len(content)},
        )

    def write(
        self,
        target: Path,
        content: str,
        backup: bool = True,
        executable: bool = False,
    ) -> Receipt:
        """Atomically replace ``target`` with ``content``.

        Args:
            target: File to write.
            content: New file content.
            backup: Copy the existing file aside first (when it exists).
            executable: Mark the result executable (0755).

        Returns:
            Receipt; ``metadata["backup_path"]`` is set when a backup was made.
        """
        backup_file: Path | None = None
        tmp: Path | None = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            if backup and target.is_file():
                backup_file = backup_path_for(target)
                shutil.copy2(target, backup_file)
                logger.info("Backed up %s → %s", target, backup_file)

            fd, tmp_name = tempfile.mkstemp(
                dir=target.parent,
                prefix=f".{target.name}.",
                suffix=".tmp",
            )
            tmp = Path(tmp_name)
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
                fh.write(content)
            if executable:
                tmp.chmod(0o755)
            elif target.is_file():
                shutil.copymode(target, tmp)
            os.replace(tmp, target)
            tmp = None
        except OSError as e:
            if tmp is not None:
                tmp.unlink(missing_ok=True)
            return Receipt.failure(
                adapter=self.name,
                operation="write",
                error=f"Cannot write {target}: {e}",
                metadata={
                    "path": str(target),
                    "backup_path": str(backup_file) if backup_file else None,
                },
            )

        logger.debug("Wrote %d bytes to %s", len(content), target)
        return Receipt.success(
            adapter=self.name,
            operation="write",
            output=f"Written {len(content)} bytes to {target}",
            metadata={
                "path": str(target),
                "size": len(content),
                "backup_path": str(backup_file) if backup_file else None,
            },
        )
