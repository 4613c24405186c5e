"""
Adapter registry — one place that owns every collaborator.

Services receive adapters explicitly; the registry is how entry points
(CLI, tests) assemble and swap them. ``build_default_registry`` wires
the real adapters; tests register the scripted doubles from
``smconnect.adapters.mock`` under the same names.
"""

from __future__ import annotations

import logging
from typing import Any

from smconnect.adapters.base import Adapter
from smconnect.core.models.settings import Settings

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Central registry for adapters, keyed by adapter name."""

    def __init__(self) -> None:
        self._adapters: dict[str, Adapter] = {}

    def register(self, adapter: Adapter) -> None:
        """Register an adapter.

        Args:
            adapter: The adapter instance to register.
        """
        name = adapter.name
        if name in self._adapters:
            logger.warning("Overwriting existing adapter: %s", name)
        self._adapters[name] = adapter
        logger.debug("Registered adapter: %s", name)

    def unregister(self, name: str) -> None:
        """Remove an adapter from the registry."""
        self._adapters.pop(name, None)

    def get(self, name: str) -> Adapter | None:
        """Look up an adapter by name."""
        return self._adapters.get(name)

    def require(self, name: str) -> Any:
        """Look up an adapter that must exist."""
        adapter = self._adapters.get(name)
        if adapter is None:
            raise KeyError(f"No adapter registered for '{name}'")
        return adapter

    def list_adapters(self) -> list[str]:
        """List all registered adapter names."""
        return list(self._adapters.keys())

    def adapter_status(self) -> dict[str, dict[str, Any]]:
        """Get availability status of all registered adapters."""
        status = {}
        for name, adapter in self._adapters.items():
            try:
                available = adapter.is_available()
            except Exception:
                available = False
            status[name] = {
                "name": name,
                "available": available,
                "type": adapter.__class__.__name__,
            }
        return status


def build_default_registry(settings: Settings | None = None) -> AdapterRegistry:
    """Register the real adapters for the current platform."""
    from smconnect.adapters.editor import EditorAdapter
    from smconnect.adapters.shell.command import ShellCommandAdapter
    from smconnect.adapters.shell.filesystem import FilesystemAdapter
    from smconnect.adapters.system.network import PortProbeAdapter
    from smconnect.adapters.system.process import ProcessTableAdapter

    settings = settings or Settings()
    shell = ShellCommandAdapter(timeout=settings.probe_timeout)

    if settings.editor == "auto":
        editors: tuple[str, ...] = ("cursor", "code")
    else:
        editors = (settings.editor,)

    registry = AdapterRegistry()
    registry.register(shell)
    registry.register(FilesystemAdapter())
    registry.register(ProcessTableAdapter())
    registry.register(PortProbeAdapter(timeout=settings.port_probe_timeout))
    registry.register(
        EditorAdapter(
            shell,
            editors=editors,
            remote_folder=f"/home/{settings.remote_user}",
        )
    )
    return registry
