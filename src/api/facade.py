# src/api/facade.py — v2
"""Public API facade: single entry point for identity resolution.

Usage:
    api = Id5Api(root_context=frame)
    status = api.init({"partnerId": 99, "cmpApi": "static", "consentData": {...}})
    await status.settled()
    status.user_id

Every ``init`` returns an independent ResolutionStatus; statuses share the
underlying storages but nothing else.
"""

from __future__ import annotations

import logging
import weakref
from collections.abc import Mapping
from typing import Any

from id5resolver.cache.client_store import ClientStore
from id5resolver.config.options import build_options
from id5resolver.config.settings import ConfigurationError, Settings
from id5resolver.consent.consent_management import CmpApi, ConsentManagement
from id5resolver.consent.permission import StoragePermission
from id5resolver.core.errors import ContextAccessError
from id5resolver.core.models import RefererInfo
from id5resolver.engine.resolution_engine import ResolutionEngine
from id5resolver.engine.status import ResolutionStatus
from id5resolver.logging.logger import set_debug
from id5resolver.referer.detector import detect_referer
from id5resolver.referer.environment import BrowsingContext
from id5resolver.referer.frames import FrameContext
from id5resolver.storage.base_storage import BaseStorage
from id5resolver.storage.storage_factory import create_legacy_storage, create_storage
from id5resolver.transport.base_transport import BaseTransport

logger = logging.getLogger(__name__)

CDN_PREFIX = "https://cdn.id5-sync.com"


class Id5Api:
    """Entry point embedding pages talk to.

    Args:
        root_context: Calling browsing context. Defaults to an empty
            top-level frame.
        settings: Process settings. Loaded from the environment if None.
        storage: Modern-format storage. Built from settings if None.
        legacy_storage: Legacy-format storage. Built from settings if None.
        transport: Identity-service transport. An HttpxTransport if None.
        cmp: CMP query used when ``cmpApi`` is ``iab``.
        script_src: Where the client was loaded from, for CDN reporting.
    """

    def __init__(
        self,
        root_context: BrowsingContext | None = None,
        settings: Settings | None = None,
        storage: BaseStorage | None = None,
        legacy_storage: BaseStorage | None = None,
        transport: BaseTransport | None = None,
        cmp: CmpApi | None = None,
        script_src: str | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.root_context = root_context or FrameContext()
        self.storage = storage or create_storage(self.settings)
        self.legacy_storage = legacy_storage or create_legacy_storage(self.settings)
        if transport is None:
            from id5resolver.transport.httpx_transport import HttpxTransport
            transport = HttpxTransport(timeout_s=self.settings.request_timeout_s)
        self.transport = transport
        self._cmp = cmp
        self.is_using_cdn = bool(script_src) and script_src.startswith(CDN_PREFIX)
        self._referer_info = detect_referer(self.root_context)
        self._engines: weakref.WeakKeyDictionary[ResolutionStatus, ResolutionEngine] = (
            weakref.WeakKeyDictionary()
        )

    def init(self, options: Mapping[str, Any] | None) -> ResolutionStatus | None:
        """Validate options and start the first resolution pass.

        Must be called from a running event loop. Returns None when the
        options cannot be used (missing partner id); never raises.
        """
        try:
            id5_options, diagnostics = build_options(options or {})
        except ConfigurationError as e:
            logger.error("Invalid options: %s", e)
            return None

        try:
            set_debug(id5_options.debug)
            status = ResolutionStatus(id5_options, diagnostics)
            engine = self._build_engine(status)
            self._engines[status] = engine
            logger.info(
                "Initialized for partner %s (refresh every %ss)",
                id5_options.partner_id, id5_options.refresh_in_seconds,
            )
            engine.resolve(status, force_fetch=False)
        except Exception:
            logger.exception("Exception caught from Id5Api.init")
            return None
        return status

    def refresh_id(
        self,
        status: ResolutionStatus,
        force_fetch: bool = False,
        options: Mapping[str, Any] | None = None,
    ) -> ResolutionStatus:
        """Re-run resolution on an existing status.

        Raises:
            TypeError: If ``force_fetch`` is not a bool.
        """
        if not isinstance(force_fetch, bool):
            raise TypeError("Invalid signature for refresh_id: force_fetch must be a bool")

        try:
            engine = self._engines.get(status)
            if engine is None:
                logger.error("refresh_id called with a status not created by this api")
                return status
            status.start_refresh(force_fetch)
            status.update_options(options)
            set_debug(status.options.debug)
            engine.consent.reset_consent_data()
            engine.resolve(status, force_fetch)
        except Exception:
            logger.exception("Exception caught from Id5Api.refresh_id")
        return status

    def get_referer_info(self) -> RefererInfo:
        return self._referer_info()

    async def aclose(self) -> None:
        await self.transport.aclose()

    def _build_engine(self, status: ResolutionStatus) -> ResolutionEngine:
        options = status.options
        permission = StoragePermission()
        cache_store = ClientStore(
            permission,
            self.storage,
            self.legacy_storage,
            record_expiration_s=options.cookie_expiration_in_seconds,
        )
        consent = ConsentManagement(self.storage, cmp=self._cmp)
        return ResolutionEngine(
            cache_store=cache_store,
            consent=consent,
            transport=self.transport,
            referer_info=self._referer_info,
            permission=permission,
            api_scheme=self.settings.api_scheme,
            api_host=self.settings.api_host,
            is_using_cdn=self.is_using_cdn,
            local_storage_available=self.storage.is_available,
            page_location=self._page_location,
        )

    def _page_location(self) -> str | None:
        try:
            return self.root_context.get_location()
        except ContextAccessError:
            return None
