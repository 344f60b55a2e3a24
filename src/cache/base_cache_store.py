# src/cache/base_cache_store.py — v2
"""Abstract cache store consumed by the resolution engine.

Implementations own every persisted field (identity record, timestamp,
counters, hashes, first-sync flag) and silently skip writes while
storage use is not permitted. Reads fall back to the legacy format.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from id5resolver.core.models import CacheState, ConsentSnapshot, IdentityRecord


class BaseCacheStore(ABC):
    """Unified interface for the identity cache."""

    # --- identity record ---

    @abstractmethod
    def get_record(self) -> IdentityRecord | None:
        """Current-format cached record."""

    @abstractmethod
    def put_record(self, raw: str, expires_in_s: float | None = None) -> None:
        """Store the raw response body as the new record."""

    @abstractmethod
    def get_last_fetch_timestamp(self) -> datetime | None:
        """When the record was last fetched, or None."""

    @abstractmethod
    def set_last_fetch_timestamp(self, now: datetime) -> None:
        """Record the fetch time."""

    # --- counters ---

    @abstractmethod
    def get_counter(self, partner_id: int) -> int:
        """Pages served from cache since the last refresh."""

    @abstractmethod
    def set_counter(self, partner_id: int, value: int) -> None:
        """Overwrite the counter."""

    @abstractmethod
    def increment_counter(self, partner_id: int, base: int) -> int:
        """Store ``base + 1`` and return it."""

    # --- change detection ---

    @abstractmethod
    def stored_consent_matches(self, snapshot: ConsentSnapshot | None) -> bool:
        """Whether the cached consent hash equals the hash of ``snapshot``."""

    @abstractmethod
    def put_hashed_consent(self, snapshot: ConsentSnapshot | None) -> None:
        """Cache the hash of ``snapshot``."""

    @abstractmethod
    def stored_publisher_data_matches(self, partner_id: int, pd: str | None) -> bool:
        """Whether the cached publisher-data hash equals the hash of ``pd``."""

    @abstractmethod
    def put_hashed_publisher_data(self, partner_id: int, pd: str | None) -> None:
        """Cache the hash of ``pd``."""

    # --- first sync ---

    @abstractmethod
    def get_first_sync_flag(self, partner_id: int) -> int:
        """1 if no cascade sync has ever succeeded for the partner, else 0."""

    @abstractmethod
    def set_first_sync_done(self, partner_id: int) -> None:
        """Mark the partner's cascade sync as having succeeded."""

    # --- legacy format / cleanup ---

    @abstractmethod
    def get_legacy_record(self) -> IdentityRecord | None:
        """Record stored in a superseded format, if any."""

    @abstractmethod
    def remove_legacy_state(self, partner_id: int) -> None:
        """Delete every legacy-format entry."""

    @abstractmethod
    def clear_all(self, partner_id: int) -> None:
        """Delete all cached state for ``partner_id``."""

    @abstractmethod
    def snapshot(self, partner_id: int) -> CacheState:
        """Read everything cached for ``partner_id`` (diagnostics)."""
