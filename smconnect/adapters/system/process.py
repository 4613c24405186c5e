"""
Process table adapter — is a specific pid alive?

Liveness is an exact pid lookup through psutil. A zombie (exited but
not yet reaped) counts as dead: the bridging server is gone even though
its pid is still in the table.
"""

from __future__ import annotations

import logging

import psutil

from smconnect.adapters.base import Adapter

logger = logging.getLogger(__name__)


class ProcessTableAdapter(Adapter):
    """Exact pid lookup via psutil."""

    @property
    def name(self) -> str:
        return "process"

    def is_available(self) -> bool:
        return True  # psutil covers every supported platform

    def is_running(self, pid: int) -> bool:
        """Whether a live (non-zombie) process with exactly this pid exists."""
        if not isinstance(pid, int) or isinstance(pid, bool) or pid <= 0:
            return False

        if not psutil.pid_exists(pid):
            logger.debug("Process %d not found", pid)
            return False

        try:
            status = psutil.Process(pid).status()
        except psutil.NoSuchProcess:
            logger.debug("Process %d exited during lookup", pid)
            return False
        except psutil.AccessDenied:
            # exists but owned by someone else
            logger.debug("Process %d alive (status not readable)", pid)
            return True

        alive = status != psutil.STATUS_ZOMBIE
        logger.debug("Process %d status=%s alive=%s", pid, status, alive)
        return alive
