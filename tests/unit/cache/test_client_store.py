# tests/unit/cache/test_client_store.py — v1
"""Tests for cache/client_store.py — gated cache over modern + legacy storage."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from id5resolver.cache.client_store import (
    CONSENT_DATA,
    ID5ID,
    LAST,
    LEGACY_COOKIE_NAMES,
    ClientStore,
    fs_config,
    nb_config,
    pd_config,
)
from id5resolver.cache.hashing import hash_consent, hash_publisher_data
from id5resolver.consent.permission import StoragePermission
from id5resolver.core.models import ConsentSnapshot

PARTNER = 99
RECORD = json.dumps({"universal_uid": "ID5-1", "signature": "s"})


@pytest.fixture
def permission() -> StoragePermission:
    return StoragePermission(True)


@pytest.fixture
def store(permission, storage, legacy_storage) -> ClientStore:
    return ClientStore(permission, storage, legacy_storage)


class TestPermissionGates:
    def test_write_when_allowed(self, store, storage):
        store.put_record(RECORD)
        assert storage.get(ID5ID.name) == RECORD

    def test_no_write_when_unknown(self, store, storage, permission):
        permission.allowed = None
        store.put_record(RECORD)
        store.set_counter(PARTNER, 3)
        assert storage.keys() == []

    def test_read_when_unknown(self, store, storage, permission):
        storage.set(ID5ID.name, RECORD, 60)
        permission.allowed = None
        assert store.get_record().universal_uid == "ID5-1"

    def test_no_read_when_denied(self, store, storage, permission):
        storage.set(ID5ID.name, RECORD, 60)
        storage.set(nb_config(PARTNER).name, "4", 60)
        permission.allowed = False
        assert store.get_record() is None
        assert store.get_counter(PARTNER) == 0

    def test_gate_reevaluated_per_call(self, store, storage, permission):
        permission.allowed = False
        store.put_record(RECORD)
        permission.allowed = True
        store.put_record(RECORD)
        assert storage.get(ID5ID.name) == RECORD


class TestRecord:
    def test_missing(self, store):
        assert store.get_record() is None

    def test_record_expiration(self, storage, legacy_storage, permission):
        clock_t = [0.0]
        storage._clock = lambda: clock_t[0]
        store = ClientStore(permission, storage, legacy_storage, record_expiration_s=100)
        store.put_record(RECORD)
        clock_t[0] = 101
        assert store.get_record() is None

    def test_explicit_expiration(self, store, storage):
        store.put_record(RECORD, expires_in_s=5)
        storage._clock = lambda: 10**12
        assert store.get_record() is None


class TestTimestamp:
    def test_round_trip(self, store):
        now = datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc)
        store.set_last_fetch_timestamp(now)
        assert store.get_last_fetch_timestamp() == now

    def test_naive_treated_as_utc(self, store, storage):
        storage.set(LAST.name, "2024-05-01T08:30:00", 60)
        assert store.get_last_fetch_timestamp().tzinfo == timezone.utc

    def test_unparsable(self, store, storage):
        storage.set(LAST.name, "Wed, 01 May", 60)
        assert store.get_last_fetch_timestamp() is None


class TestCounter:
    def test_default_zero(self, store):
        assert store.get_counter(PARTNER) == 0

    def test_increment(self, store, storage):
        assert store.increment_counter(PARTNER, store.get_counter(PARTNER)) == 1
        assert store.increment_counter(PARTNER, store.get_counter(PARTNER)) == 2
        assert storage.get(f"id5id_{PARTNER}_nb") == "2"

    def test_per_partner(self, store):
        store.set_counter(1, 5)
        assert store.get_counter(2) == 0

    def test_garbage_is_zero(self, store, storage):
        storage.set(nb_config(PARTNER).name, "many", 60)
        assert store.get_counter(PARTNER) == 0


class TestChangeDetection:
    def test_consent_nothing_stored_matches_empty(self, store):
        assert store.stored_consent_matches(ConsentSnapshot())

    def test_consent_round_trip(self, store, storage):
        snapshot = ConsentSnapshot(gdpr_applies=True, consent_string="abc", has_cmp=True)
        assert not store.stored_consent_matches(snapshot)
        store.put_hashed_consent(snapshot)
        assert storage.get(CONSENT_DATA.name) == hash_consent(snapshot)
        assert store.stored_consent_matches(snapshot)
        assert not store.stored_consent_matches(
            ConsentSnapshot(gdpr_applies=True, consent_string="xyz", has_cmp=True)
        )

    def test_empty_consent_removes_hash(self, store, storage):
        store.put_hashed_consent(ConsentSnapshot(gdpr_applies=True, consent_string="a"))
        store.put_hashed_consent(ConsentSnapshot())
        assert storage.get(CONSENT_DATA.name) is None

    def test_pd_round_trip(self, store, storage):
        assert store.stored_publisher_data_matches(PARTNER, "")
        assert not store.stored_publisher_data_matches(PARTNER, "pd-1")
        store.put_hashed_publisher_data(PARTNER, "pd-1")
        assert storage.get(pd_config(PARTNER).name) == hash_publisher_data("pd-1")
        assert store.stored_publisher_data_matches(PARTNER, "pd-1")
        assert not store.stored_publisher_data_matches(PARTNER, "")

    def test_pd_cleared(self, store, storage):
        store.put_hashed_publisher_data(PARTNER, "pd-1")
        store.put_hashed_publisher_data(PARTNER, "")
        assert storage.get(pd_config(PARTNER).name) is None


class TestFirstSync:
    def test_flag(self, store, storage):
        assert store.get_first_sync_flag(PARTNER) == 1
        store.set_first_sync_done(PARTNER)
        assert storage.get(fs_config(PARTNER).name) == "0"
        assert store.get_first_sync_flag(PARTNER) == 0

    def test_flag_is_per_partner(self, store):
        store.set_first_sync_done(PARTNER)
        assert store.get_first_sync_flag(PARTNER + 1) == 1


class TestLegacy:
    def test_no_legacy_storage(self, permission, storage):
        store = ClientStore(permission, storage)
        assert store.get_legacy_record() is None
        store.remove_legacy_state(PARTNER)

    def test_single_legacy_name(self, store, legacy_storage):
        legacy_storage.set("id5.1st", json.dumps({"universal_uid": "OLD"}), 60)
        assert store.get_legacy_record().universal_uid == "OLD"

    def test_later_name_wins(self, store, legacy_storage):
        assert LEGACY_COOKIE_NAMES == ("id5.1st", "id5id.1st")
        legacy_storage.set("id5.1st", json.dumps({"universal_uid": "FIRST"}), 60)
        legacy_storage.set("id5id.1st", json.dumps({"universal_uid": "SECOND"}), 60)
        assert store.get_legacy_record().universal_uid == "SECOND"

    def test_legacy_read_ignores_permission(self, store, legacy_storage, permission):
        legacy_storage.set("id5id.1st", json.dumps({"universal_uid": "OLD"}), 60)
        permission.allowed = False
        assert store.get_legacy_record().universal_uid == "OLD"

    def test_remove_legacy_state(self, store, legacy_storage):
        for name in LEGACY_COOKIE_NAMES:
            for key in (
                name, f"{name}_nb", f"{name}_{PARTNER}_nb", f"{name}_last",
                f"{name}.cached_pd", f"{name}.cached_consent_data",
            ):
                legacy_storage.set(key, "x", 60)
        legacy_storage.set("unrelated", "keep", 60)
        store.remove_legacy_state(PARTNER)
        assert legacy_storage.keys() == ["unrelated"]


class TestClearAndSnapshot:
    def test_clear_all(self, store, storage, permission):
        store.put_record(RECORD)
        store.set_last_fetch_timestamp(datetime.now(timezone.utc))
        store.set_counter(PARTNER, 2)
        store.put_hashed_consent(ConsentSnapshot(gdpr_applies=True, consent_string="c"))
        store.put_hashed_publisher_data(PARTNER, "pd")
        store.set_first_sync_done(PARTNER)
        permission.allowed = False
        store.clear_all(PARTNER)
        assert storage.keys() == [fs_config(PARTNER).name]

    def test_snapshot(self, store, legacy_storage):
        store.put_record(RECORD)
        store.set_counter(PARTNER, 2)
        store.put_hashed_publisher_data(PARTNER, "pd")
        legacy_storage.set("id5.1st", json.dumps({"universal_uid": "OLD"}), 60)
        state = store.snapshot(PARTNER)
        assert state.record.universal_uid == "ID5-1"
        assert state.nb_counter == 2
        assert state.hashed_partner_data == hash_publisher_data("pd")
        assert state.first_sync_done is False
        assert state.legacy_record.universal_uid == "OLD"
