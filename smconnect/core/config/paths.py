"""
File locations — computed from environment variables.

Environment variables (user profile, application-data root, temp dir)
are only ever used here, and only to build paths. Explicit overrides
from Settings win over computed defaults.

    Windows: %USERPROFILE%, %APPDATA%, %LOCALAPPDATA%, %TEMP%
    Linux:   $HOME, $XDG_CONFIG_HOME, $TMPDIR
    macOS:   $HOME (~/Library/Application Support), $TMPDIR
"""

from __future__ import annotations

import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from smconnect.core.models.settings import Settings

TOOLKIT_EXTENSION_ID = "amazonwebservices.aws-toolkit-vscode"
SERVER_RECORD_FILE = "sagemaker-local-server-info.json"
PROFILE_MAPPING_FILE = ".sagemaker-space-profiles"

_WINDOWS_PLUGIN = r"C:\Program Files\Amazon\SessionManagerPlugin\bin\session-manager-plugin.exe"
_POSIX_PLUGIN = "/usr/local/sessionmanagerplugin/bin/session-manager-plugin"


@dataclass(frozen=True)
class ConnectorPaths:
    """Every file the engine reads or writes."""

    home: Path
    temp_dir: Path
    ssh_config: Path
    known_hosts: Path
    server_record: Path
    connection_script: Path
    profile_mapping: Path
    state_file: Path
    ledger_file: Path
    code_wrapper: Path
    cursor_executable: Path
    plugin_default: Path
    windows: bool = False


def _product_dir(settings: Settings) -> str:
    """Editor data directory name ("Cursor" unless VS Code is configured)."""
    if settings.editor == "code" or settings.host_variant == "alternate":
        return "Code"
    return "Cursor"


def _appdata_root(env: Mapping[str, str], home: Path, platform: str) -> Path:
    if platform == "win32":
        return Path(env.get("APPDATA") or home / "AppData" / "Roaming")
    if platform == "darwin":
        return home / "Library" / "Application Support"
    return Path(env.get("XDG_CONFIG_HOME") or home / ".config")


def _home(env: Mapping[str, str], platform: str) -> Path:
    if platform == "win32" and env.get("USERPROFILE"):
        return Path(env["USERPROFILE"])
    if env.get("HOME"):
        return Path(env["HOME"])
    return Path.home()


def _cursor_executable(env: Mapping[str, str], home: Path, platform: str) -> Path:
    if platform == "win32":
        local = Path(env.get("LOCALAPPDATA") or home / "AppData" / "Local")
        return local / "Programs" / "cursor" / "Cursor.exe"
    if platform == "darwin":
        return Path("/Applications/Cursor.app/Contents/Resources/app/bin/cursor")
    return Path("/usr/bin/cursor")


def resolve_paths(
    settings: Settings | None = None,
    env: Mapping[str, str] | None = None,
    platform: str | None = None,
) -> ConnectorPaths:
    """Compute every path the engine needs.

    Args:
        settings: Loaded settings (overrides + editor choice).
        env: Environment mapping (default: ``os.environ``).
        platform: ``sys.platform`` value (default: current platform).
    """
    settings = settings or Settings()
    env = os.environ if env is None else env
    platform = platform or sys.platform
    windows = platform == "win32"

    home = _home(env, platform)
    temp_dir = Path(env.get("TEMP") or env.get("TMPDIR") or env.get("TMP") or "/tmp")
    toolkit_dir = (
        _appdata_root(env, home, platform)
        / _product_dir(settings)
        / "User"
        / "globalStorage"
        / TOOLKIT_EXTENSION_ID
    )
    script_name = "sagemaker_connect.ps1" if windows else "sagemaker_connect"
    state_dir = home / ".smconnect"
    overrides = settings.paths

    def pick(override: str | None, default: Path) -> Path:
        return Path(override).expanduser() if override else default

    return ConnectorPaths(
        home=home,
        temp_dir=temp_dir,
        ssh_config=pick(overrides.ssh_config_path, home / ".ssh" / "config"),
        known_hosts=pick(overrides.known_hosts_path, home / ".ssh" / "known_hosts"),
        server_record=pick(overrides.server_record_path, toolkit_dir / SERVER_RECORD_FILE),
        connection_script=pick(overrides.connection_script_path, toolkit_dir / script_name),
        profile_mapping=pick(
            overrides.profile_mapping_path, home / ".aws" / PROFILE_MAPPING_FILE
        ),
        state_file=pick(overrides.state_path, state_dir / "state.json"),
        ledger_file=pick(overrides.ledger_path, state_dir / "repairs.ndjson"),
        code_wrapper=home / "code.cmd" if windows else home / ".local" / "bin" / "code",
        cursor_executable=_cursor_executable(env, home, platform),
        plugin_default=Path(_WINDOWS_PLUGIN if windows else _POSIX_PLUGIN),
        windows=windows,
    )
