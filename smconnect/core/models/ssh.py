"""
SSH config models — host entries, validation issues, fix records.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

# Required fields, keyed by the lower-case ssh option that provides them.
REQUIRED_FIELDS = {
    "hostname": "hostname",
    "user": "user",
    "proxycommand": "proxy_command",
}


class IssueKind(StrEnum):
    MISSING_FIELD = "MissingField"
    WRONG_HOST_TOKEN = "WrongHostToken"
    MISSING_ENV_BINDING = "MissingEnvBinding"
    STALE_RECORD_PATH = "StaleRecordPath"
    BAD_INDENTATION = "BadIndentation"
    DUPLICATE_ALIAS = "DuplicateAlias"
    HOSTNAME_MISMATCH = "HostnameMismatch"


# Issue kinds that apply_fix can repair in place.
FIXABLE_KINDS = (
    IssueKind.WRONG_HOST_TOKEN,
    IssueKind.MISSING_ENV_BINDING,
    IssueKind.STALE_RECORD_PATH,
    IssueKind.BAD_INDENTATION,
)


class Issue(BaseModel):
    """A defect found in a host block."""

    kind: IssueKind
    message: str
    line: int | None = None   # 1-based line in the config file

    @property
    def fixable(self) -> bool:
        return self.kind in FIXABLE_KINDS


class SshHostEntry(BaseModel):
    """One parsed ``Host <alias>`` block.

    Line numbers are 0-based indices into the config's line list;
    ``end_line`` is exclusive.
    """

    alias: str
    hostname: str | None = None
    user: str | None = None
    proxy_command: str | None = None

    start_line: int = 0
    end_line: int = 0
    field_indent: str = ""
    lines: list[str] = Field(default_factory=list)
    options: dict[str, str] = Field(default_factory=dict)
    duplicate_count: int = 0

    @property
    def missing_fields(self) -> list[str]:
        return [
            attr for attr in REQUIRED_FIELDS.values()
            if not getattr(self, attr)
        ]


class FixRecord(BaseModel):
    """Outcome of one fix application."""

    fix_kind: str
    already_applied: bool = False
    backup_path: str | None = None
    target: str | None = None
    message: str = ""
    error: str | None = None
    next_action: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def changed(self) -> bool:
        return not self.already_applied and not self.failed

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
