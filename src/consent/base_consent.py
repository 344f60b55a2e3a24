# src/consent/base_consent.py — v1
"""Abstract consent gate: the engine's only view of privacy consent."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from id5resolver.core.models import ConsentSnapshot, PrivacyData


class BaseConsentGate(ABC):
    """Normalizes a consent signal and answers "may storage be used"."""

    @abstractmethod
    async def request_consent(
        self,
        debug_bypass_consent: bool,
        cmp_api: str,
        consent_data: dict[str, Any] | None,
    ) -> ConsentSnapshot:
        """Resolve the consent snapshot; completes exactly once per call."""

    @abstractmethod
    def is_local_storage_allowed(
        self,
        allow_without_consent_api: bool = False,
        debug_bypass_consent: bool = False,
    ) -> bool | None:
        """True/False once known, None while undetermined."""

    @abstractmethod
    def set_stored_privacy(self, privacy: PrivacyData | dict[str, Any] | None) -> None:
        """Persist the privacy verdict returned by the identity service."""

    @abstractmethod
    def reset_consent_data(self) -> None:
        """Forget the current snapshot so the next request re-asks the provider."""
