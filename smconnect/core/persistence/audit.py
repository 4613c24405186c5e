"""
Repair ledger — append-only log of every applied fix.

Each repair that rewrote a file appends one JSON line with what was
fixed, where, and the backup it left behind, so a user can find the
backup to restore from. Entries are never modified or deleted.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from smconnect.core.models.ssh import FixRecord

logger = logging.getLogger(__name__)


class LedgerEntry(BaseModel):
    """A single ledger entry."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    fix_kind: str = ""
    target: str | None = None
    backup_path: str | None = None
    message: str = ""

    # Extensible context
    context: dict[str, Any] = Field(default_factory=dict)


class RepairLedger:
    """Append-only NDJSON ledger of applied repairs."""

    def __init__(self, path: Path):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: LedgerEntry) -> None:
        """Append an entry. A ledger failure never fails the repair itself."""
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) + "\n"
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug("Ledger entry written: %s", entry.fix_kind)
        except OSError as e:
            logger.error("Failed to write ledger entry: %s", e)

    def record(self, fix: FixRecord) -> None:
        """Append a FixRecord that performed a write."""
        if not fix.changed:
            return
        self.write(LedgerEntry(
            fix_kind=fix.fix_kind,
            target=fix.target,
            backup_path=fix.backup_path,
            message=fix.message,
        ))

    def read_all(self) -> list[LedgerEntry]:
        """Read all entries, oldest first."""
        if not self._path.is_file():
            return []

        entries = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(LedgerEntry.model_validate(json.loads(line)))
                    except ValueError as e:
                        logger.warning("Skipping corrupt ledger entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read repair ledger: %s", e)

        return entries

    def read_recent(self, n: int = 20) -> list[LedgerEntry]:
        """Read the most recent N entries."""
        return self.read_all()[-n:]
