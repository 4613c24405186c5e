"""
Port probe adapter — bounded TCP reachability check.
"""

from __future__ import annotations

import logging
import socket

from smconnect.adapters.base import Adapter

logger = logging.getLogger(__name__)


class PortProbeAdapter(Adapter):
    """Try a TCP connect to ``host:port`` within a timeout."""

    def __init__(self, host: str = "localhost", timeout: float = 2.0):
        self._host = host
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "network"

    def is_available(self) -> bool:
        return True

    def is_reachable(self, port: int, timeout: float | None = None) -> bool:
        """Whether something accepts connections on the port."""
        if not isinstance(port, int) or isinstance(port, bool) or not 0 < port < 65536:
            return False
        try:
            with socket.create_connection(
                (self._host, port), timeout=timeout or self._timeout
            ):
                pass
        except OSError as e:
            logger.debug("Port %s:%d not reachable: %s", self._host, port, e)
            return False
        logger.debug("Port %s:%d reachable", self._host, port)
        return True
