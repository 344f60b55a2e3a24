# src/storage/base_storage.py — v1
"""Abstract key/value storage with per-key expiration.

The same interface backs both the modern storage format and the legacy
(cookie-style) format consulted for migration.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Callable


class BaseStorage(ABC):
    """Synchronous string key/value store; expired entries read as absent."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the value for ``key``, or None if missing or expired."""

    @abstractmethod
    def set(self, key: str, value: str, expires_in_s: float) -> None:
        """Store ``value``; a non-positive ``expires_in_s`` removes the key."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Remove ``key`` if present."""

    @abstractmethod
    def keys(self) -> list[str]:
        """List all non-expired keys."""

    def is_available(self) -> bool:
        """Whether the backend can persist values at all."""
        return True

    def _expires_at(self, expires_in_s: float) -> float:
        return self._clock() + expires_in_s

    def _is_expired(self, expires_at: float) -> bool:
        return expires_at <= self._clock()
