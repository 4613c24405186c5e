"""
ServerHealth — read-only view of the bridging server's liveness.

``running`` is derived from both sub-checks. The presence of the record
file alone never makes a server "running".
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ServerHealth:
    """Result of one ``check_server_status()`` call."""

    process_alive: bool = False
    port_reachable: bool = False
    pid: int | None = None
    port: int | None = None
    record_error: str | None = None

    @property
    def running(self) -> bool:
        return self.process_alive and self.port_reachable

    @property
    def accessible(self) -> bool:
        return self.port_reachable

    @property
    def error(self) -> str | None:
        """First failing reason, or None when running."""
        if self.record_error:
            return self.record_error
        if not self.process_alive:
            return "Process not running"
        if not self.port_reachable:
            return "Server not accessible on port"
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "accessible": self.accessible,
            "process_alive": self.process_alive,
            "port_reachable": self.port_reachable,
            "pid": self.pid,
            "port": self.port,
            "record_error": self.record_error,
            "error": self.error,
        }
