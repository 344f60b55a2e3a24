# src/storage/memory_store.py — v1
"""In-process storage (STORAGE_BACKEND=memory); nothing survives the process."""

from __future__ import annotations

import time
from collections.abc import Callable

from id5resolver.storage.base_storage import BaseStorage


class MemoryStorage(BaseStorage):
    """Dict-backed storage with lazy expiry on read."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        super().__init__(clock)
        self._entries: dict[str, tuple[str, float]] = {}

    def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._is_expired(expires_at):
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: str, expires_in_s: float) -> None:
        if expires_in_s <= 0:
            self.remove(key)
            return
        self._entries[key] = (value, self._expires_at(expires_in_s))

    def remove(self, key: str) -> None:
        self._entries.pop(key, None)

    def keys(self) -> list[str]:
        return [k for k in list(self._entries) if self.get(k) is not None]
