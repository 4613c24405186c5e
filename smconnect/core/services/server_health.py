"""
Server health monitor — is the bridging server really up?

The toolkit writes ``{"pid": ..., "port": ...}`` when it starts the
local server and does not always remove it when the process dies, so
the record only says where to look:

    1. read + parse the record   (missing/corrupt → not running, stop)
    2. exact pid lookup          (process_alive)
    3. TCP probe localhost:port  (port_reachable)

``running`` needs both 2 and 3. ``accessible`` is reported on its own
so callers can tell a dead process from a live but unreachable one.
No retries here; retry policy belongs to the orchestrator.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from smconnect.adapters.shell.filesystem import FilesystemAdapter
from smconnect.adapters.system.network import PortProbeAdapter
from smconnect.adapters.system.process import ProcessTableAdapter
from smconnect.core.models.server import ServerHealth

logger = logging.getLogger(__name__)

RECORD_NOT_FOUND = "Server info file not found"


def _int_field(data: dict, key: str) -> int | None:
    value = data.get(key)
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


@dataclass
class ServerHealthMonitor:
    """Derive ServerHealth from the record file plus two live probes."""

    filesystem: FilesystemAdapter
    processes: ProcessTableAdapter
    network: PortProbeAdapter
    record_path: Path
    script_path: Path
    port_timeout: float = 2.0

    def read_record(self) -> tuple[dict | None, str | None]:
        """Parsed record, or (None, reason)."""
        receipt = self.filesystem.read(self.record_path)
        if not receipt.ok:
            if receipt.metadata.get("missing", True):
                return None, RECORD_NOT_FOUND
            return None, f"Server info file unreadable: {receipt.error}"
        try:
            data = json.loads(receipt.output)
        except json.JSONDecodeError as e:
            return None, f"Server info file unreadable: {e}"
        if not isinstance(data, dict):
            return None, "Server info file unreadable: expected a JSON object"
        return data, None

    def check_server_status(self) -> ServerHealth:
        """One fresh health derivation. Never cached, never raises."""
        record, error = self.read_record()
        if record is None:
            logger.debug("Server record unavailable: %s", error)
            return ServerHealth(record_error=error)

        pid = _int_field(record, "pid")
        port = _int_field(record, "port")

        process_alive = self.processes.is_running(pid) if pid is not None else False
        port_reachable = (
            self.network.is_reachable(port, timeout=self.port_timeout)
            if port is not None
            else False
        )

        health = ServerHealth(
            process_alive=process_alive,
            port_reachable=port_reachable,
            pid=pid,
            port=port,
        )
        logger.info(
            "Server health: running=%s pid=%s alive=%s port=%s reachable=%s",
            health.running, pid, process_alive, port, port_reachable,
        )
        return health

    def connection_script_exists(self) -> bool:
        return self.filesystem.exists(self.script_path)
