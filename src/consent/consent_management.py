# src/consent/consent_management.py — v1
"""Consent gate implementation: static or CMP-sourced consent plus server privacy."""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from pydantic import ValidationError

from id5resolver.consent.base_consent import BaseConsentGate
from id5resolver.consent.tcf import parse_consent_data
from id5resolver.core.models import ConsentSnapshot, PrivacyData
from id5resolver.storage.base_storage import BaseStorage

logger = logging.getLogger(__name__)

CmpApi = Callable[[], Awaitable[Mapping[str, Any] | None]]

PRIVACY_KEY = "id5id_privacy"
PRIVACY_EXPIRES_S = 30 * 24 * 60 * 60
# Jurisdictions in which storage requires explicit consent.
PRIVACY_LAWS_REQUIRING_CONSENT = frozenset({"gdpr", "ccpa", "lgpd", "other"})


class ConsentManagement(BaseConsentGate):
    """Resolves consent once per page view and caches the snapshot.

    Args:
        storage: Where the server privacy verdict is persisted.
        cmp: Injected CMP query for ``cmpApi="iab"``. None means the page
            exposes no consent API.
    """

    def __init__(self, storage: BaseStorage, cmp: CmpApi | None = None) -> None:
        self._storage = storage
        self._cmp = cmp
        self.consent_data: ConsentSnapshot | None = None

    async def request_consent(
        self,
        debug_bypass_consent: bool,
        cmp_api: str,
        consent_data: dict[str, Any] | None,
    ) -> ConsentSnapshot:
        if self.consent_data is not None:
            return self.consent_data

        if debug_bypass_consent:
            logger.warning("Consent check bypassed by debugBypassConsent")
            snapshot = ConsentSnapshot()
        elif cmp_api == "static":
            if not isinstance(consent_data, Mapping) or not consent_data:
                logger.error("cmpApi is 'static' but consentData is missing or invalid")
                consent_data = None
            snapshot = parse_consent_data(consent_data)
        elif cmp_api == "iab":
            snapshot = await self._lookup_cmp()
        else:
            logger.error("Unknown consent API %r", cmp_api)
            snapshot = ConsentSnapshot(has_cmp=False)

        self.consent_data = snapshot
        logger.debug("Consent resolved: %s", snapshot.model_dump())
        return snapshot

    async def _lookup_cmp(self) -> ConsentSnapshot:
        if self._cmp is None:
            logger.info("No CMP found on the page")
            return ConsentSnapshot(has_cmp=False)
        try:
            raw = await self._cmp()
        except Exception:
            logger.exception("CMP lookup failed")
            return ConsentSnapshot(has_cmp=False)
        return parse_consent_data(raw)

    def reset_consent_data(self) -> None:
        self.consent_data = None

    def is_local_storage_allowed(
        self,
        allow_without_consent_api: bool = False,
        debug_bypass_consent: bool = False,
    ) -> bool | None:
        if allow_without_consent_api or debug_bypass_consent:
            return True

        privacy_allows = self._privacy_allows()
        if self.consent_data is None:
            return privacy_allows
        return self._consent_allows(self.consent_data) or privacy_allows is True

    @staticmethod
    def _consent_allows(snapshot: ConsentSnapshot) -> bool:
        if not snapshot.has_cmp:
            return False
        if not snapshot.gdpr_applies:
            return True
        if snapshot.api_version == 2:
            return snapshot.local_storage_consent is True
        return bool(snapshot.consent_string)

    def _privacy_allows(self) -> bool | None:
        privacy = self.get_stored_privacy()
        if privacy is None or privacy.jurisdiction is None:
            return None
        return (
            privacy.jurisdiction not in PRIVACY_LAWS_REQUIRING_CONSENT
            or privacy.id5_consent
        )

    # --- server privacy verdict ---

    def set_stored_privacy(self, privacy: PrivacyData | dict[str, Any] | None) -> None:
        if privacy is None:
            return
        try:
            data = privacy if isinstance(privacy, PrivacyData) else PrivacyData.model_validate(privacy)
        except ValidationError as e:
            logger.error("Ignoring invalid privacy object: %s", e)
            return
        self._storage.set(PRIVACY_KEY, data.model_dump_json(), PRIVACY_EXPIRES_S)

    def get_stored_privacy(self) -> PrivacyData | None:
        raw = self._storage.get(PRIVACY_KEY)
        if not raw:
            return None
        try:
            return PrivacyData.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Discarding unreadable stored privacy: %s", e)
            self._storage.remove(PRIVACY_KEY)
            return None
