# src/core/models.py — v2
"""Shared Pydantic domain models used across modules.

IdentityRecord and RefererInfo are transient (one resolution pass);
CacheState is a read-only snapshot of what the cache store holds.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from id5resolver.core.errors import MalformedResponseError


# === IDENTITY ===


class PrivacyData(BaseModel):
    """Privacy verdict returned by the identity service alongside an id."""

    model_config = ConfigDict(extra="allow")

    jurisdiction: str | None = None
    id5_consent: bool = False


class IdentityRecord(BaseModel):
    """Identity issued by the remote service, as stored in the cache."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    universal_uid: str = ""
    link_type: int = 0
    signature: str | None = None
    cascade_needed: bool = False
    privacy: PrivacyData | None = None

    @property
    def is_valid(self) -> bool:
        return bool(self.universal_uid)

    @classmethod
    def from_json(cls, raw: str | None) -> IdentityRecord:
        """Parse a raw response body.

        Raises:
            MalformedResponseError: empty body, invalid JSON, non-object
                payload, or a missing/non-string ``universal_uid``.
        """
        if not raw:
            raise MalformedResponseError("Empty response body")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedResponseError(f"Response is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise MalformedResponseError("Response is not a JSON object")
        if not isinstance(data.get("universal_uid"), str) or not data["universal_uid"]:
            raise MalformedResponseError("Response has no universal_uid")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise MalformedResponseError(f"Response has invalid fields: {e}") from e

    @classmethod
    def from_stored(cls, raw: str | None) -> IdentityRecord | None:
        """Lenient parse for cached values: returns None instead of raising."""
        if not raw:
            return None
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                return None
            return cls.model_validate(data)
        except (json.JSONDecodeError, ValidationError):
            return None


# === CONSENT ===


class ConsentSnapshot(BaseModel):
    """Normalized consent state for the current page view."""

    model_config = ConfigDict(frozen=True)

    gdpr_applies: bool = False
    consent_string: str | None = None
    api_version: int | None = None
    has_cmp: bool = False
    # Purpose 1 (store/access information on a device), TCF v2 only.
    local_storage_consent: bool | None = None

    @property
    def is_empty(self) -> bool:
        return not self.gdpr_applies and not self.consent_string


# === REFERER ===


class RefererInfo(BaseModel):
    """Description of the calling context, rebuilt on every pass."""

    model_config = ConfigDict(frozen=True)

    topmost_location: str | None = None
    ref: str | None = None
    reached_top: bool = False
    num_iframes: int = 0
    stack: list[str | None] = Field(default_factory=list)
    canonical_url: str | None = None


# === CACHE ===


class CacheState(BaseModel):
    """Point-in-time view of everything cached for one partner."""

    record: IdentityRecord | None = None
    last_fetch_timestamp: datetime | None = None
    nb_counter: int = Field(default=0, ge=0)
    hashed_consent: str | None = None
    hashed_partner_data: str | None = None
    first_sync_done: bool = False
    legacy_record: IdentityRecord | None = None

    def as_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
