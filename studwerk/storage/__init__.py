"""Document store registry with lazy loading.

Usage:
    from studwerk.storage import get_store

    store = get_store(settings.database)
    store.add("jobs", {...})
"""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING

from studwerk.storage.base import DocumentStore, Query, Snapshot

if TYPE_CHECKING:
    from studwerk.core.config import DatabaseConfig

__all__ = ["DocumentStore", "Query", "Snapshot", "available_backends", "get_store"]

# Lazy registry: maps backend name → (module_path, class_name)
_REGISTRY: dict[str, tuple[str, str]] = {
    "memory": ("studwerk.storage.memory", "MemoryDocumentStore"),
    "sqlite": ("studwerk.storage.sqlite", "SqliteDocumentStore"),
}


def get_store(config: DatabaseConfig) -> DocumentStore:
    """Instantiate the document store named by ``config.backend``.

    Raises:
        ValueError: If the backend name is unknown.
    """
    if config.backend not in _REGISTRY:
        valid = ", ".join(sorted(_REGISTRY))
        msg = f"Unknown storage backend '{config.backend}'. Available: {valid}"
        raise ValueError(msg)

    module_path, class_name = _REGISTRY[config.backend]
    module = importlib.import_module(module_path)
    cls = getattr(module, class_name)
    if config.backend == "sqlite":
        return cls(config.path)  # type: ignore[no-any-return]
    return cls()  # type: ignore[no-any-return]


def available_backends() -> list[str]:
    """Return sorted list of registered backend names."""
    return sorted(_REGISTRY)
