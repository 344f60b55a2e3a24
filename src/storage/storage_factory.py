# src/storage/storage_factory.py — v1
"""Factory for storage backend instantiation."""

from __future__ import annotations

from id5resolver.config.settings import Settings
from id5resolver.storage.base_storage import BaseStorage


def create_storage(settings: Settings | None = None) -> BaseStorage:
    """Instantiate the configured modern-format storage backend.

    Args:
        settings: Process settings. Defaults to the in-memory backend.

    Returns:
        Configured BaseStorage implementation.
    """
    if settings is None or settings.storage_backend == "memory":
        from id5resolver.storage.memory_store import MemoryStorage
        return MemoryStorage()

    backend = settings.storage_backend
    root = settings.storage_path.expanduser()

    if backend == "json":
        from id5resolver.storage.json_store import JsonFileStorage
        return JsonFileStorage(root / "id5_storage.json")

    if backend == "sqlite":
        from id5resolver.storage.sqlite_store import SqliteStorage
        return SqliteStorage(root / "id5_storage.db")

    raise ValueError(f"Unsupported storage backend: {backend!r}")


def create_legacy_storage(settings: Settings | None = None) -> BaseStorage:
    """Legacy (cookie-format) storage: a JSON file if configured, else memory."""
    if settings is not None and settings.legacy_storage_path:
        from id5resolver.storage.json_store import JsonFileStorage
        return JsonFileStorage(settings.legacy_storage_path)

    from id5resolver.storage.memory_store import MemoryStorage
    return MemoryStorage()
