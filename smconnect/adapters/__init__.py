"""Adapters — bindings for processes, sockets, files and the editor.

Public re-exports for convenient access.
"""

from smconnect.adapters.base import Adapter, CommandRegistry, ExtensionCatalog, KeyValueStore
from smconnect.adapters.registry import AdapterRegistry, build_default_registry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "CommandRegistry",
    "ExtensionCatalog",
    "KeyValueStore",
    "build_default_registry",
]
