# src/cache/client_store.py — v1
"""Cache store over two key/value storages: modern and legacy format.

Storage permission is tri-state and re-evaluated on every call:
True allows reads and writes, None (not yet known) allows reads only,
False blocks both. Legacy reads and removals are never gated.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from id5resolver.cache.base_cache_store import BaseCacheStore
from id5resolver.cache.hashing import hash_consent, hash_publisher_data
from id5resolver.config.options import DEFAULT_COOKIE_EXPIRATION_IN_SECONDS
from id5resolver.core.models import CacheState, ConsentSnapshot, IdentityRecord
from id5resolver.storage.base_storage import BaseStorage

logger = logging.getLogger(__name__)

_DAY_S = 24 * 60 * 60

# Declaration order is precedence order: later names win.
LEGACY_COOKIE_NAMES: tuple[str, ...] = ("id5.1st", "id5id.1st")


@dataclass(frozen=True)
class StorageConfig:
    """Key name and lifetime of one persisted entry."""

    name: str
    expires_days: float

    @property
    def expires_in_s(self) -> float:
        return self.expires_days * _DAY_S


ID5ID = StorageConfig("id5id", 90)
LAST = StorageConfig("id5id_last", 90)
CONSENT_DATA = StorageConfig("id5id_cached_consent_data", 30)


def nb_config(partner_id: int) -> StorageConfig:
    return StorageConfig(f"id5id_{partner_id}_nb", 90)


def pd_config(partner_id: int) -> StorageConfig:
    return StorageConfig(f"id5id_cached_pd_{partner_id}", 30)


def fs_config(partner_id: int) -> StorageConfig:
    return StorageConfig(f"id5id_fs_{partner_id}", 7)


class ClientStore(BaseCacheStore):
    """BaseCacheStore backed by BaseStorage instances."""

    def __init__(
        self,
        is_allowed: Callable[[], bool | None],
        storage: BaseStorage,
        legacy_storage: BaseStorage | None = None,
        record_expiration_s: float = DEFAULT_COOKIE_EXPIRATION_IN_SECONDS,
    ) -> None:
        self._is_allowed = is_allowed
        self._storage = storage
        self._legacy = legacy_storage
        self.record_expiration_s = record_expiration_s

    # --- gates ---

    def _can_read(self) -> bool:
        return self._is_allowed() is not False

    def _can_write(self) -> bool:
        return self._is_allowed() is True

    def _get(self, config: StorageConfig) -> str | None:
        return self._storage.get(config.name) if self._can_read() else None

    def _set(self, config: StorageConfig, value: str, expires_in_s: float | None = None) -> None:
        if not self._can_write():
            logger.debug("Storage not permitted, skipping write of %s", config.name)
            return
        self._storage.set(
            config.name, value,
            config.expires_in_s if expires_in_s is None else expires_in_s,
        )

    # --- identity record ---

    def get_record(self) -> IdentityRecord | None:
        return IdentityRecord.from_stored(self._get(ID5ID))

    def put_record(self, raw: str, expires_in_s: float | None = None) -> None:
        self._set(ID5ID, raw, expires_in_s or self.record_expiration_s)

    def get_last_fetch_timestamp(self) -> datetime | None:
        raw = self._get(LAST)
        if not raw:
            return None
        try:
            value = datetime.fromisoformat(raw)
        except ValueError:
            logger.warning("Ignoring unparsable last-fetch timestamp %r", raw)
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value

    def set_last_fetch_timestamp(self, now: datetime) -> None:
        self._set(LAST, now.isoformat())

    # --- counters ---

    def get_counter(self, partner_id: int) -> int:
        raw = self._get(nb_config(partner_id))
        try:
            return max(int(raw), 0) if raw is not None else 0
        except ValueError:
            return 0

    def set_counter(self, partner_id: int, value: int) -> None:
        self._set(nb_config(partner_id), str(value))

    def increment_counter(self, partner_id: int, base: int) -> int:
        value = base + 1
        self.set_counter(partner_id, value)
        return value

    # --- change detection ---

    def stored_consent_matches(self, snapshot: ConsentSnapshot | None) -> bool:
        return self._get(CONSENT_DATA) == hash_consent(snapshot)

    def put_hashed_consent(self, snapshot: ConsentSnapshot | None) -> None:
        hashed = hash_consent(snapshot)
        if hashed is None:
            if self._can_write():
                self._storage.remove(CONSENT_DATA.name)
            return
        self._set(CONSENT_DATA, hashed)

    def stored_publisher_data_matches(self, partner_id: int, pd: str | None) -> bool:
        return self._get(pd_config(partner_id)) == hash_publisher_data(pd)

    def put_hashed_publisher_data(self, partner_id: int, pd: str | None) -> None:
        hashed = hash_publisher_data(pd)
        if hashed is None:
            if self._can_write():
                self._storage.remove(pd_config(partner_id).name)
            return
        self._set(pd_config(partner_id), hashed)

    # --- first sync ---

    def get_first_sync_flag(self, partner_id: int) -> int:
        return 0 if self._get(fs_config(partner_id)) == "0" else 1

    def set_first_sync_done(self, partner_id: int) -> None:
        self._set(fs_config(partner_id), "0")

    # --- legacy format / cleanup ---

    def get_legacy_record(self) -> IdentityRecord | None:
        if self._legacy is None:
            return None
        found: IdentityRecord | None = None
        for name in LEGACY_COOKIE_NAMES:
            record = IdentityRecord.from_stored(self._legacy.get(name))
            if record is not None:
                found = record
        return found

    def remove_legacy_state(self, partner_id: int) -> None:
        if self._legacy is None:
            return
        for name in LEGACY_COOKIE_NAMES:
            for key in (
                name,
                f"{name}_nb",
                f"{name}_{partner_id}_nb",
                f"{name}_last",
                f"{name}.cached_pd",
                f"{name}.cached_consent_data",
            ):
                self._legacy.remove(key)

    def clear_all(self, partner_id: int) -> None:
        for config in (ID5ID, LAST, nb_config(partner_id), CONSENT_DATA, pd_config(partner_id)):
            self._storage.remove(config.name)
        logger.info("Cleared cached identity state for partner %s", partner_id)

    def snapshot(self, partner_id: int) -> CacheState:
        return CacheState(
            record=self.get_record(),
            last_fetch_timestamp=self.get_last_fetch_timestamp(),
            nb_counter=self.get_counter(partner_id),
            hashed_consent=self._get(CONSENT_DATA),
            hashed_partner_data=self._get(pd_config(partner_id)),
            first_sync_done=self.get_first_sync_flag(partner_id) == 0,
            legacy_record=self.get_legacy_record(),
        )
