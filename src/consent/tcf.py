# src/consent/tcf.py — v1
"""Normalize IAB TCF v1 / v2 consent payloads into a ConsentSnapshot.

Accepted shapes:
  v1 wrapped  {"getConsentData": {"gdprApplies", "consentData"}, "getVendorConsents": {...}}
  v2 wrapped  {"getTCData": {"gdprApplies", "tcString", "purpose": {"consents": {1: bool}}}}
  flat        the inner object of either, as CMP callbacks deliver it
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from id5resolver.core.models import ConsentSnapshot

# Purpose 1: store and/or access information on a device.
_STORAGE_PURPOSE = 1


def parse_consent_data(raw: Mapping[str, Any] | None) -> ConsentSnapshot:
    """Build a snapshot from a CMP or static payload.

    A None or empty payload means no consent API was found.
    """
    if not raw:
        return ConsentSnapshot(has_cmp=False)

    if isinstance(raw.get("getTCData"), Mapping):
        return _parse_v2(raw["getTCData"])
    if isinstance(raw.get("getConsentData"), Mapping):
        return _parse_v1(raw["getConsentData"])
    if "tcString" in raw or raw.get("apiVersion") == 2:
        return _parse_v2(raw)
    return _parse_v1(raw)


def _parse_v1(data: Mapping[str, Any]) -> ConsentSnapshot:
    consent_string = data.get("consentData", data.get("consentString"))
    return ConsentSnapshot(
        gdpr_applies=bool(data.get("gdprApplies")),
        consent_string=consent_string if isinstance(consent_string, str) else None,
        api_version=1,
        has_cmp=True,
    )


def _parse_v2(data: Mapping[str, Any]) -> ConsentSnapshot:
    consent_string = data.get("tcString")
    return ConsentSnapshot(
        gdpr_applies=bool(data.get("gdprApplies")),
        consent_string=consent_string if isinstance(consent_string, str) else None,
        api_version=2,
        has_cmp=True,
        local_storage_consent=_purpose_consent(data, _STORAGE_PURPOSE),
    )


def _purpose_consent(data: Mapping[str, Any], purpose: int) -> bool:
    purposes = data.get("purpose")
    if not isinstance(purposes, Mapping):
        return False
    consents = purposes.get("consents")
    if not isinstance(consents, Mapping):
        return False
    # CMPs key purposes by int or by numeric string.
    return consents.get(purpose, consents.get(str(purpose))) is True
