"""
State file persistence — the connector's key-value facts.

State is stored as JSON (default ``~/.smconnect/state.json``). Writes
are atomic (write to temp file, then rename) to prevent corruption if
the process crashes mid-write. ``StateStore`` is the KeyValueStore the
orchestrator gets injected; there is no module-level state.
"""

from __future__ import annotations

import json
import logging
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

MIGRATION_NOTICE_SHOWN = "migration_notice_shown"


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class ConnectorState(BaseModel):
    """Persisted facts."""

    schema_version: int = 1
    updated_at: str = Field(default_factory=_now_iso)
    migration_notice_shown: bool = False
    values: dict[str, Any] = Field(default_factory=dict)

    def touch(self) -> None:
        self.updated_at = _now_iso()


def load_state(path: Path) -> ConnectorState:
    """Load state; a missing or corrupt file yields a fresh state."""
    if not path.is_file():
        logger.debug("No state file at %s — starting fresh", path)
        return ConnectorState()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return ConnectorState.model_validate(data)
    except json.JSONDecodeError as e:
        logger.warning("Corrupt state file %s: %s — starting fresh", path, e)
    except (OSError, ValidationError) as e:
        logger.warning("Cannot load state from %s: %s — starting fresh", path, e)
    return ConnectorState()


def save_state(state: ConnectorState, path: Path) -> None:
    """Save state (atomic write).

    Raises:
        OSError: If the file cannot be written.
    """
    state.touch()
    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(state.model_dump(mode="json"), indent=2, ensure_ascii=False) + "\n"

    _fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".state_", suffix=".tmp")
    tmp = Path(tmp_path)
    try:
        with open(_fd, "w", encoding="utf-8") as fh:
            fh.write(content)
        tmp.replace(path)
        logger.debug("State saved to %s", path)
    except Exception:
        tmp.unlink(missing_ok=True)
        logger.error("Failed to save state to %s", path)
        raise


class StateStore:
    """KeyValueStore backed by the state file."""

    def __init__(self, path: Path):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any = None) -> Any:
        state = load_state(self._path)
        if key in ConnectorState.model_fields and key not in ("values", "schema_version"):
            return getattr(state, key)
        return state.values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        state = load_state(self._path)
        if key in ConnectorState.model_fields and key not in ("values", "schema_version"):
            setattr(state, key, value)
        else:
            state.values[key] = value
        save_state(state, self._path)
