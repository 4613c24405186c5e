"""
SSH config manager — parse, validate and repair one Host block.

The engine only owns the block it creates (``Host sagemaker`` by
default). Every repair is a minimal textual substitution inside that
block; the rest of the file, including other Host blocks, their order,
comments and line endings, is kept byte-identical.

Parsing rules:
    - a block runs from ``Host <patterns>`` to the next ``Host``/``Match``
      line or end of file
    - the ``Host`` keyword is case-insensitive, the alias is not
    - when an alias is declared twice the first block wins and the
      duplicate is reported, never merged

A fix is idempotent: the predicate that makes ``validate`` report an
issue is the same one ``apply_fix`` uses to decide whether to rewrite.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from smconnect.adapters.shell.filesystem import FilesystemAdapter
from smconnect.core.config.paths import ConnectorPaths
from smconnect.core.errors import (
    ConfigDuplicateAlias,
    ConfigMalformed,
    ConfigMissing,
    RepairWriteFailed,
)
from smconnect.core.models.arn import ResourceIdentifier
from smconnect.core.models.ssh import FIXABLE_KINDS, FixRecord, Issue, IssueKind, SshHostEntry
from smconnect.core.persistence.audit import RepairLedger
from smconnect.core.services import codec

logger = logging.getLogger(__name__)

ENV_BINDING_NAME = "SAGEMAKER_LOCAL_SERVER_FILE_PATH"
HOST_TOKEN = "%h"

_SECTION_RE = re.compile(r"^\s*(host|match)(?:\s*=\s*|\s+)(.*)$", re.IGNORECASE)
_OPTION_RE = re.compile(r"^(?P<indent>\s*)(?P<key>[^\s=]+)(?P<sep>\s*=\s*|\s+)(?P<value>.*?)\s*$")
_BINDING_RE = re.compile(
    ENV_BINDING_NAME
    + r"""\s*=\s*(?:\\"(?P<esc>.*?)\\"|"(?P<dq>[^"]*)"|'(?P<sq>[^']*)'|(?P<bare>[^\s;"']+))"""
)
_POWERSHELL_COMMAND_RE = re.compile(r'-Command\s+"', re.IGNORECASE)
_LITERAL_HOSTNAME_RE = re.compile(re.escape(codec.HOSTNAME_PREFIX) + r"""[^\s"'\\;]*""")
# last whitespace-led token, before an optional closing PowerShell quote
_HOST_ARGUMENT_RE = re.compile(r"""(?<=\s)(?P<token>[^\s"'\\]+)"?\s*$""")


# ── Parsing ─────────────────────────────────────────────────────


def _eol(line: str) -> str:
    if line.endswith("\r\n"):
        return "\r\n"
    if line.endswith("\n"):
        return "\n"
    return ""


def _content(line: str) -> str:
    return line[: len(line) - len(_eol(line))]


def _is_field(line: str) -> bool:
    stripped = _content(line).strip()
    return bool(stripped) and not stripped.startswith("#")


def _scan_sections(lines: list[str]) -> list[tuple[int, int, str, list[str]]]:
    """Every Host/Match section as (start, end, keyword, patterns)."""
    heads = []
    for idx, line in enumerate(lines):
        match = _SECTION_RE.match(_content(line))
        if match:
            heads.append((idx, match.group(1).lower(), match.group(2).split()))

    sections = []
    for pos, (start, keyword, patterns) in enumerate(heads):
        end = heads[pos + 1][0] if pos + 1 < len(heads) else len(lines)
        sections.append((start, end, keyword, patterns))
    return sections


def list_host_aliases(config_text: str) -> list[str]:
    """Every alias declared on a Host line, in file order."""
    aliases: list[str] = []
    for _, _, keyword, patterns in _scan_sections(config_text.splitlines(keepends=True)):
        if keyword == "host":
            aliases.extend(patterns)
    return aliases


def parse_host_block(config_text: str, alias: str) -> SshHostEntry | None:
    """Extract the first ``Host`` block declaring ``alias``.

    Missing fields are not an error; they show up in
    ``entry.missing_fields``.
    """
    lines = config_text.splitlines(keepends=True)
    matches = [
        (start, end)
        for start, end, keyword, patterns in _scan_sections(lines)
        if keyword == "host" and alias in patterns
    ]
    if not matches:
        return None

    start, end = matches[0]
    options: dict[str, str] = {}
    field_indent: str | None = None
    for line in lines[start + 1:end]:
        if not _is_field(line):
            continue
        match = _OPTION_RE.match(_content(line))
        if not match:
            continue
        if field_indent is None:
            field_indent = match["indent"]
        # first obtained value wins, as in ssh
        options.setdefault(match["key"].lower(), match["value"])

    return SshHostEntry(
        alias=alias,
        hostname=options.get("hostname"),
        user=options.get("user"),
        proxy_command=options.get("proxycommand"),
        start_line=start,
        end_line=end,
        field_indent=field_indent or "",
        lines=lines[start:end],
        options=options,
        duplicate_count=len(matches) - 1,
    )


# ── Proxy invocation helpers ────────────────────────────────────


def is_powershell(proxy: str) -> bool:
    lowered = proxy.lower()
    return "powershell" in lowered or "pwsh" in lowered


def binding_value(proxy: str) -> str | None:
    """Record path bound in the proxy invocation, if any."""
    match = _BINDING_RE.search(proxy)
    if not match:
        return None
    for group in ("esc", "dq", "sq", "bare"):
        if match[group] is not None:
            return match[group]
    return None


def same_path(a: str, b: str, windows: bool) -> bool:
    left = a.replace("\\", "/").rstrip("/")
    right = b.replace("\\", "/").rstrip("/")
    if windows:
        return left.lower() == right.lower()
    return left == right


def build_proxy_command(record_path: str, script_path: str, windows: bool) -> str:
    """Proxy invocation binding the record path and passing ``%h``."""
    if windows:
        return (
            "powershell.exe -NoProfile -ExecutionPolicy RemoteSigned -Command "
            f'"$env:{ENV_BINDING_NAME}=\\"{record_path}\\"; '
            f'& \\"{script_path}\\" {HOST_TOKEN}"'
        )
    return f'env {ENV_BINDING_NAME}="{record_path}" /bin/bash "{script_path}" {HOST_TOKEN}'


def _insert_binding(proxy: str, record_path: str) -> str:
    if is_powershell(proxy):
        match = _POWERSHELL_COMMAND_RE.search(proxy)
        if not match:
            raise ConfigMalformed(
                "ProxyCommand runs PowerShell without a -Command \"...\" argument; "
                "cannot insert the server record binding"
            )
        binding = f'$env:{ENV_BINDING_NAME}=\\"{record_path}\\"; '
        return proxy[: match.end()] + binding + proxy[match.end():]

    rest = proxy[len("env "):] if proxy.startswith("env ") else proxy
    return f'env {ENV_BINDING_NAME}="{record_path}" {rest}'


def _replace_binding(proxy: str, record_path: str) -> str:
    match = _BINDING_RE.search(proxy)
    if not match:
        return proxy
    for group in ("esc", "dq", "sq", "bare"):
        if match[group] is not None:
            begin, end = match.span(group)
            return proxy[:begin] + record_path + proxy[end:]
    return proxy


def _replace_host_token(proxy: str, hostname: str | None) -> str:
    """Swap a fixed host argument for the per-session ``%h`` token.

    Only the trailing host argument is rewritten; the hostname may also
    occur inside the record or script path, which must stay intact.
    """
    match = _HOST_ARGUMENT_RE.search(proxy)
    if match:
        token = match["token"]
        if (
            token == "%n"
            or (hostname and token == hostname)
            or _LITERAL_HOSTNAME_RE.fullmatch(token)
        ):
            begin, end = match.span("token")
            return proxy[:begin] + HOST_TOKEN + proxy[end:]
    raise ConfigMalformed(
        "ProxyCommand has no host argument to replace; expected '%n' or a "
        "literal sm_lc_arn_ hostname"
    )


def _set_option_value(line: str, value: str) -> str:
    match = _OPTION_RE.match(_content(line))
    if not match:
        return line
    return f"{match['indent']}{match['key']}{match['sep']}{value}{_eol(line)}"


# ── Manager ─────────────────────────────────────────────────────


@dataclass
class SshConfigManager:
    """Validate and repair the connector's host block.

    ``paths`` supplies the live record path (for binding checks), the
    connection script and the config file location.
    """

    filesystem: FilesystemAdapter
    paths: ConnectorPaths
    remote_user: str = "sagemaker-user"
    ledger: RepairLedger | None = None

    # ── predicates (shared by validate and apply_fix) ───────────

    def _needs_host_token(self, entry: SshHostEntry) -> bool:
        return bool(entry.proxy_command) and HOST_TOKEN not in entry.proxy_command

    def _needs_binding(self, entry: SshHostEntry) -> bool:
        return bool(entry.proxy_command) and binding_value(entry.proxy_command) is None

    def _has_stale_binding(self, entry: SshHostEntry) -> bool:
        if not entry.proxy_command:
            return False
        bound = binding_value(entry.proxy_command)
        return bound is not None and not same_path(
            bound, str(self.paths.server_record), self.paths.windows
        )

    def _misindented_lines(self, entry: SshHostEntry) -> list[int]:
        """0-based indices (within the block) of field lines with stray indentation."""
        bad = []
        for offset, line in enumerate(entry.lines[1:], start=1):
            if not _is_field(line):
                continue
            indent = _content(line)[: len(_content(line)) - len(_content(line).lstrip())]
            if indent != entry.field_indent:
                bad.append(offset)
        return bad

    def _needs(self, entry: SshHostEntry, kind: IssueKind) -> bool:
        if kind == IssueKind.WRONG_HOST_TOKEN:
            return self._needs_host_token(entry)
        if kind == IssueKind.MISSING_ENV_BINDING:
            return self._needs_binding(entry)
        if kind == IssueKind.STALE_RECORD_PATH:
            return self._has_stale_binding(entry)
        if kind == IssueKind.BAD_INDENTATION:
            return bool(self._misindented_lines(entry))
        raise ValueError(f"Not a fixable issue kind: {kind}")

    # ── validation ──────────────────────────────────────────────

    def _proxy_line(self, entry: SshHostEntry) -> int | None:
        for offset, line in enumerate(entry.lines[1:], start=1):
            match = _OPTION_RE.match(_content(line))
            if match and _is_field(line) and match["key"].lower() == "proxycommand":
                return entry.start_line + offset + 1
        return None

    def validate(
        self,
        entry: SshHostEntry,
        resource: ResourceIdentifier | str | None = None,
    ) -> list[Issue]:
        """Known defects of a parsed block."""
        issues: list[Issue] = []
        head_line = entry.start_line + 1
        proxy_line = self._proxy_line(entry)

        for name in entry.missing_fields:
            issues.append(Issue(
                kind=IssueKind.MISSING_FIELD,
                message=f"Host {entry.alias} has no {name.replace('_', ' ')}",
                line=head_line,
            ))

        if self._needs_host_token(entry):
            issues.append(Issue(
                kind=IssueKind.WRONG_HOST_TOKEN,
                message=f"ProxyCommand must pass the per-session host token '{HOST_TOKEN}'",
                line=proxy_line,
            ))
        if self._needs_binding(entry):
            issues.append(Issue(
                kind=IssueKind.MISSING_ENV_BINDING,
                message=f"ProxyCommand does not set {ENV_BINDING_NAME}",
                line=proxy_line,
            ))
        elif self._has_stale_binding(entry):
            issues.append(Issue(
                kind=IssueKind.STALE_RECORD_PATH,
                message=(
                    f"{ENV_BINDING_NAME} points to {binding_value(entry.proxy_command or '')}, "
                    f"expected {self.paths.server_record}"
                ),
                line=proxy_line,
            ))

        for offset in self._misindented_lines(entry):
            issues.append(Issue(
                kind=IssueKind.BAD_INDENTATION,
                message=f"Indentation differs from the block's first field line ({entry.field_indent!r})",
                line=entry.start_line + offset + 1,
            ))

        if entry.duplicate_count:
            issues.append(Issue(
                kind=IssueKind.DUPLICATE_ALIAS,
                message=(
                    f"Host {entry.alias} is declared {entry.duplicate_count + 1} times; "
                    "the first block is used"
                ),
                line=head_line,
            ))

        if resource is not None and entry.hostname:
            expected = codec.encode(resource)
            if entry.hostname != expected:
                issues.append(Issue(
                    kind=IssueKind.HOSTNAME_MISMATCH,
                    message=f"HostName is {entry.hostname}, expected {expected}",
                    line=head_line,
                ))

        return issues

    # ── repair ──────────────────────────────────────────────────

    def _rewrite_block(self, entry: SshHostEntry, kind: IssueKind) -> list[str]:
        block = list(entry.lines)

        if kind == IssueKind.BAD_INDENTATION:
            for offset in self._misindented_lines(entry):
                line = block[offset]
                block[offset] = entry.field_indent + _content(line).lstrip() + _eol(line)
            return block

        proxy = entry.proxy_command or ""
        if kind == IssueKind.WRONG_HOST_TOKEN:
            new_proxy = _replace_host_token(proxy, entry.hostname)
        elif kind == IssueKind.MISSING_ENV_BINDING:
            new_proxy = _insert_binding(proxy, str(self.paths.server_record))
        else:
            new_proxy = _replace_binding(proxy, str(self.paths.server_record))

        for offset, line in enumerate(block[1:], start=1):
            match = _OPTION_RE.match(_content(line))
            if match and _is_field(line) and match["key"].lower() == "proxycommand":
                block[offset] = _set_option_value(line, new_proxy)
                break
        return block

    def apply_fix(self, config_text: str, alias: str, kind: IssueKind) -> tuple[str, FixRecord]:
        """Apply one fix to the alias' block.

        Returns:
            (new_text, record). When the fix is already satisfied the
            text is returned unchanged with ``already_applied=True``.

        Raises:
            ConfigMissing: The alias has no block.
            ConfigMalformed: The block cannot be repaired automatically.
            ValueError: ``kind`` is not a fixable issue kind.
        """
        kind = IssueKind(kind)
        if kind not in FIXABLE_KINDS:
            raise ValueError(f"Not a fixable issue kind: {kind}")

        entry = parse_host_block(config_text, alias)
        if entry is None:
            raise ConfigMissing(f"SSH config has no 'Host {alias}' block")

        if not self._needs(entry, kind):
            return config_text, FixRecord(
                fix_kind=kind.value,
                already_applied=True,
                target=str(self.paths.ssh_config),
                message=f"{kind.value}: already satisfied",
            )

        lines = config_text.splitlines(keepends=True)
        lines[entry.start_line:entry.end_line] = self._rewrite_block(entry, kind)
        logger.info("Applied %s to Host %s", kind.value, alias)
        return "".join(lines), FixRecord(
            fix_kind=kind.value,
            target=str(self.paths.ssh_config),
            message=f"{kind.value}: fixed",
        )

    def read_config(self) -> str:
        """Current config text.

        Raises:
            ConfigMissing: The file does not exist.
            ConfigMalformed: The file exists but cannot be read.
        """
        receipt = self.filesystem.read(self.paths.ssh_config)
        if receipt.ok:
            return receipt.output
        if receipt.metadata.get("missing"):
            raise ConfigMissing(f"SSH config not found: {self.paths.ssh_config}")
        raise ConfigMalformed(receipt.error or f"Cannot read {self.paths.ssh_config}")

    def _write(self, content: str) -> str | None:
        receipt = self.filesystem.write(self.paths.ssh_config, content, backup=True)
        if not receipt.ok:
            raise RepairWriteFailed(receipt.error or f"Cannot write {self.paths.ssh_config}")
        return receipt.metadata.get("backup_path")

    def _record(self, record: FixRecord) -> FixRecord:
        if self.ledger is not None:
            self.ledger.record(record)
        return record

    def apply_fix_to_file(self, kind: IssueKind, alias: str) -> FixRecord:
        """Read, fix, back up and atomically rewrite the config file."""
        text = self.read_config()
        new_text, record = self.apply_fix(text, alias, kind)
        if record.already_applied:
            return record
        record.backup_path = self._write(new_text)
        return self._record(record)

    def fix_all_in_file(self, alias: str) -> list[FixRecord]:
        """Apply every fixable kind with a single backup + write.

        A kind that cannot be repaired automatically yields a record with
        ``error`` set; the remaining kinds are still applied.
        """
        text = self.read_config()
        records = []
        for kind in FIXABLE_KINDS:
            try:
                text, record = self.apply_fix(text, alias, kind)
            except ConfigMalformed as e:
                logger.warning("Cannot apply %s to Host %s: %s", kind.value, alias, e.message)
                record = FixRecord(
                    fix_kind=kind.value,
                    target=str(self.paths.ssh_config),
                    message=f"{kind.value}: cannot fix automatically",
                    error=e.message,
                    next_action=e.next_action,
                )
            records.append(record)

        applied = [r for r in records if r.changed]
        if not applied:
            return records

        backup = self._write(text)
        for record in applied:
            record.backup_path = backup
            self._record(record)
        return records

    def check_file(
        self,
        alias: str,
        resource: ResourceIdentifier | str | None = None,
    ) -> tuple[SshHostEntry | None, list[Issue]]:
        """Parse + validate the alias in the config file."""
        entry = parse_host_block(self.read_config(), alias)
        if entry is None:
            return None, []
        return entry, self.validate(entry, resource)

    # ── setup ───────────────────────────────────────────────────

    def ensure_unique(self, entry: SshHostEntry) -> None:
        """Raise ConfigDuplicateAlias when the alias is declared more than once."""
        if entry.duplicate_count:
            raise ConfigDuplicateAlias(
                f"Host {entry.alias} is declared {entry.duplicate_count + 1} times "
                f"in {self.paths.ssh_config}"
            )

    def render_block(
        self,
        alias: str,
        resource: ResourceIdentifier | str,
        record_path: str | Path | None = None,
        newline: str = "\n",
    ) -> str:
        record = str(record_path or self.paths.server_record)
        proxy = build_proxy_command(
            record, str(self.paths.connection_script), self.paths.windows
        )
        lines = [
            f"Host {alias}",
            f"    HostName {codec.encode(resource)}",
            f"    User {self.remote_user}",
            "    ForwardAgent yes",
            "    AddKeysToAgent yes",
            "    StrictHostKeyChecking accept-new",
            f"    ProxyCommand {proxy}",
        ]
        return newline.join(lines) + newline

    def setup_host(
        self,
        config_text: str,
        alias: str,
        resource: ResourceIdentifier | str,
        record_path: str | Path | None = None,
    ) -> str:
        """Append a well-formed block unless the alias already exists.

        Raises:
            ConfigDuplicateAlias: The alias is already declared twice.
        """
        existing = parse_host_block(config_text, alias)
        if existing is not None:
            self.ensure_unique(existing)
            return config_text

        newline = "\r\n" if "\r\n" in config_text else "\n"
        block = self.render_block(alias, resource, record_path, newline)
        if not config_text:
            return block
        if not config_text.endswith(("\n", "\r")):
            config_text += newline
        return config_text + newline + block

    def setup_host_in_file(
        self,
        alias: str,
        resource: ResourceIdentifier | str,
        record_path: str | Path | None = None,
    ) -> FixRecord:
        """``setup_host`` against the real file (created when missing)."""
        try:
            text = self.read_config()
        except ConfigMissing:
            text = ""

        new_text = self.setup_host(text, alias, resource, record_path)
        if new_text == text:
            return FixRecord(
                fix_kind="SetupHost",
                already_applied=True,
                target=str(self.paths.ssh_config),
                message=f"Host {alias} already configured",
            )

        record = FixRecord(
            fix_kind="SetupHost",
            target=str(self.paths.ssh_config),
            message=f"Added Host {alias}",
        )
        record.backup_path = self._write(new_text)
        logger.info("Added Host %s to %s", alias, self.paths.ssh_config)
        return self._record(record)
