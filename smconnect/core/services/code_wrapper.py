"""
`code` command wrapper — check and fix.

The AWS Toolkit starts the local server by shelling out to
``code --folder-uri <uri>``. When ``code`` is missing, or resolves to
VS Code while the user works in Cursor, the server never starts. The
fix installs a small wrapper named ``code`` that forwards to Cursor.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from smconnect.adapters.shell.command import ShellCommandAdapter
from smconnect.adapters.shell.filesystem import FilesystemAdapter
from smconnect.core.config.paths import ConnectorPaths
from smconnect.core.errors import RepairWriteFailed
from smconnect.core.models.ssh import FixRecord
from smconnect.core.persistence.audit import RepairLedger

logger = logging.getLogger(__name__)

FIX_KIND = "CodeWrapper"
WRAPPER_MARKER = "smconnect code wrapper"

_VSCODE_HINTS = ("code.exe", "vs code", "visual studio code", "/usr/share/code/", "/snap/code/")


@dataclass(frozen=True)
class CodeWrapperStatus:
    has_issue: bool
    message: str
    code_path: str | None = None


def _windows_wrapper(cursor_exe: str) -> str:
    return "\r\n".join([
        "@echo off",
        f"rem {WRAPPER_MARKER}: forwards --folder-uri to Cursor",
        "setlocal",
        "",
        'set "FOLDER_URI="',
        'set "NEXT_IS_URI=0"',
        'set "ARGS="',
        "",
        ":parse_args",
        'if "%~1"=="" goto execute',
        'if "%NEXT_IS_URI%"=="1" (',
        '    set "FOLDER_URI=%~1"',
        '    set "NEXT_IS_URI=0"',
        "    shift",
        "    goto parse_args",
        ")",
        'if /i "%~1"=="--folder-uri" (',
        '    set "NEXT_IS_URI=1"',
        "    shift",
        "    goto parse_args",
        ")",
        'set "ARGS=%ARGS% %~1"',
        "shift",
        "goto parse_args",
        "",
        ":execute",
        "if defined FOLDER_URI (",
        f'    "{cursor_exe}" --folder-uri %FOLDER_URI%',
        ") else (",
        f'    "{cursor_exe}" %ARGS%',
        ")",
        "",
    ])


def _posix_wrapper(cursor_exe: str) -> str:
    return "\n".join([
        "#!/bin/sh",
        f"# {WRAPPER_MARKER}: forwards --folder-uri to Cursor",
        'if [ "$1" = "--folder-uri" ] && [ -n "$2" ]; then',
        f'    exec "{cursor_exe}" --folder-uri "$2"',
        "fi",
        f'exec "{cursor_exe}" "$@"',
        "",
    ])


@dataclass
class CodeWrapperService:
    shell: ShellCommandAdapter
    filesystem: FilesystemAdapter
    paths: ConnectorPaths
    prefer_cursor: bool = True
    ledger: RepairLedger | None = None

    def wrapper_content(self) -> str:
        cursor = str(self.paths.cursor_executable)
        if self.paths.windows:
            return _windows_wrapper(cursor)
        return _posix_wrapper(cursor)

    def _is_our_wrapper(self, code_path: str) -> bool:
        receipt = self.filesystem.read(self.paths.code_wrapper)
        if not receipt.ok or WRAPPER_MARKER not in receipt.output:
            return False
        return code_path.lower() == str(self.paths.code_wrapper).lower()

    def check(self) -> CodeWrapperStatus:
        """Never raises; an unverifiable setup is reported as an issue."""
        code_path = self.shell.which("code")
        if not code_path:
            return CodeWrapperStatus(
                has_issue=True,
                message="Code command not found in PATH. AWS Toolkit can't start the server.",
            )

        if self._is_our_wrapper(code_path):
            return CodeWrapperStatus(
                has_issue=False,
                message="Code command uses the connector wrapper.",
                code_path=code_path,
            )

        lowered = code_path.lower()
        if "cursor" in lowered:
            receipt = self.shell.run(["code", "--help"])
            if receipt.ok and "--folder-uri" not in receipt.output:
                return CodeWrapperStatus(
                    has_issue=True,
                    message="Code wrapper doesn't handle the --folder-uri flag.",
                    code_path=code_path,
                )
            return CodeWrapperStatus(
                has_issue=False,
                message="Code command points to Cursor.",
                code_path=code_path,
            )

        if self.prefer_cursor and any(hint in lowered for hint in _VSCODE_HINTS):
            return CodeWrapperStatus(
                has_issue=True,
                message=(
                    "Code command points to VS Code instead of Cursor. "
                    "AWS Toolkit will open VS Code instead of Cursor."
                ),
                code_path=code_path,
            )

        return CodeWrapperStatus(
            has_issue=False,
            message="Code command appears to be configured correctly.",
            code_path=code_path,
        )

    def wrapper_dir_on_path(self, path_env: str) -> bool:
        sep = ";" if self.paths.windows else ":"
        wanted = str(self.paths.code_wrapper.parent).rstrip("/\\").lower()
        return any(p.rstrip("/\\").lower() == wanted for p in path_env.split(sep) if p)

    def fix(self) -> FixRecord:
        """Install (or refresh) the wrapper. Raises RepairWriteFailed."""
        content = self.wrapper_content()
        current = self.filesystem.read(self.paths.code_wrapper)
        if current.ok and current.output == content:
            return FixRecord(
                fix_kind=FIX_KIND,
                already_applied=True,
                target=str(self.paths.code_wrapper),
                message="Code wrapper already installed",
            )

        write = self.filesystem.write(
            self.paths.code_wrapper,
            content,
            backup=True,
            executable=not self.paths.windows,
        )
        if not write.ok:
            raise RepairWriteFailed(write.error or f"Cannot write {self.paths.code_wrapper}")

        record = FixRecord(
            fix_kind=FIX_KIND,
            backup_path=write.metadata.get("backup_path"),
            target=str(self.paths.code_wrapper),
            message=f"Code wrapper written to {self.paths.code_wrapper}",
        )
        logger.info("Code wrapper written to %s", self.paths.code_wrapper)
        if self.ledger is not None:
            self.ledger.record(record)
        return record
