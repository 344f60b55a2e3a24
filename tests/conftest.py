# tests/conftest.py — v2
"""Shared test fixtures for all unit tests.

Provides in-memory storages, a controllable clock, a mocked transport and
sample identity-service responses. No network, no files outside tmp_path.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock

import pytest

from id5resolver.storage.memory_store import MemoryStorage
from id5resolver.transport.base_transport import BaseTransport


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def make_response(
    uid: str = "ID5-ABC",
    link_type: int = 1,
    signature: str | None = "sig-1",
    cascade_needed: bool = False,
    privacy: dict[str, Any] | None = None,
) -> str:
    body: dict[str, Any] = {
        "universal_uid": uid,
        "link_type": link_type,
        "cascade_needed": cascade_needed,
    }
    if signature is not None:
        body["signature"] = signature
    if privacy is not None:
        body["privacy"] = privacy
    return json.dumps(body)


# === FIXTURES ===


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def legacy_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def transport() -> AsyncMock:
    """Transport mock answering every POST with a valid identity."""
    mock = AsyncMock(spec=BaseTransport)
    mock.post.return_value = make_response()
    mock.fire_pixel.return_value = None
    return mock


@pytest.fixture
def tcf_v2_consent() -> dict[str, Any]:
    """Static TCF v2 payload granting purpose 1 under GDPR."""
    return {
        "getTCData": {
            "gdprApplies": True,
            "tcString": "CONSENT-V2",
            "purpose": {"consents": {"1": True}},
        }
    }


@pytest.fixture
def response_body():
    """Factory for identity-service response bodies."""
    return make_response
