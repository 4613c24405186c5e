"""
Adapter base — the contract between services and the outside world.

Services only talk to processes, sockets, files and the editor through
adapters. Adapters perform the side effect and report the result as a
Receipt (or a plain bool for yes/no probes). They NEVER raise.

The protocols below describe the collaborators the orchestrator needs
injected. Real implementations live beside this module; scripted
doubles live in ``smconnect.adapters.mock``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Protocol, runtime_checkable

from smconnect.core.models.receipt import Receipt


class Adapter(ABC):
    """Abstract base class for all adapters.

    To create a new adapter:
        1. Subclass Adapter
        2. Implement name, is_available
        3. Register it in the AdapterRegistry
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g., 'shell', 'filesystem', 'editor')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this adapter's underlying tool is available.

        Should be fast and never raise.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


@runtime_checkable
class CommandRegistry(Protocol):
    """The host environment's command registry (read + invoke only)."""

    def list_commands(self) -> list[str]:
        """Command identifiers currently available."""
        ...

    def execute(self, command_id: str, *args: str) -> Receipt:
        """Invoke a command by identifier."""
        ...


@runtime_checkable
class ExtensionCatalog(Protocol):
    """Installed editor extensions."""

    def list_extensions(self) -> list[str]:
        ...


@runtime_checkable
class KeyValueStore(Protocol):
    """Persisted key-value facts (e.g. one-time notices)."""

    def get(self, key: str, default: Any = None) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...
