# src/storage/json_store.py — v2
"""JSON file-based storage (STORAGE_BACKEND=json).

All entries live in a single JSON document, rewritten on every change.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from pathlib import Path

from id5resolver.storage.base_storage import BaseStorage

logger = logging.getLogger(__name__)


class JsonFileStorage(BaseStorage):
    """File-backed storage; last writer wins."""

    def __init__(
        self, path: Path | str, clock: Callable[[], float] = time.time
    ) -> None:
        super().__init__(clock)
        self._path = Path(path).expanduser()
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get(self, key: str) -> str | None:
        entries = self._load()
        entry = entries.get(key)
        if entry is None:
            return None
        if self._is_expired(entry["expires_at"]):
            del entries[key]
            self._save(entries)
            return None
        return entry["value"]

    def set(self, key: str, value: str, expires_in_s: float) -> None:
        if expires_in_s <= 0:
            self.remove(key)
            return
        entries = self._load()
        entries[key] = {"value": value, "expires_at": self._expires_at(expires_in_s)}
        self._save(entries)

    def remove(self, key: str) -> None:
        entries = self._load()
        if entries.pop(key, None) is not None:
            self._save(entries)

    def keys(self) -> list[str]:
        return [
            k for k, entry in self._load().items()
            if not self._is_expired(entry["expires_at"])
        ]

    def is_available(self) -> bool:
        return self._path.parent.is_dir()

    def _load(self) -> dict[str, dict]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Failed to read storage file %s: %s", self._path, e)
            return {}
        if not isinstance(data, dict):
            return {}
        return {
            k: v for k, v in data.items()
            if isinstance(v, dict) and "value" in v and "expires_at" in v
        }

    def _save(self, entries: dict[str, dict]) -> None:
        self._path.write_text(json.dumps(entries, indent=2), encoding="utf-8")
