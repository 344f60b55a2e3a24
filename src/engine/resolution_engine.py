# src/engine/resolution_engine.py — v1
"""Resolution engine: decide whether the cached identifier can be trusted,
refresh it from the identity service when needed, and merge the answer back.

One pass:
  1. Start: read the cache; serve a trustworthy cached id immediately.
  2. Await consent (single-shot, possibly slow). Denied ends the pass.
  3. Decide: re-read the cache and evaluate the five staleness checks
     (no valid signed record / refresh period elapsed / consent changed /
     publisher data changed / forced). None true: count the page, done.
  4. Refresh: reset the page counter, issue exactly one request, merge a
     valid response, clean legacy state, maybe fire the cascade pixel.

``resolve`` returns after step 1; the rest runs as an asyncio task
tracked on the status.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from datetime import datetime, timezone

from id5resolver.cache.base_cache_store import BaseCacheStore
from id5resolver.consent.base_consent import BaseConsentGate
from id5resolver.consent.permission import StoragePermission
from id5resolver.core.errors import MalformedResponseError, TransportError
from id5resolver.core.models import ConsentSnapshot, IdentityRecord, RefererInfo
from id5resolver.engine.request_builder import (
    build_cascade_url,
    build_fetch_payload,
    fetch_url,
    resolve_host,
)
from id5resolver.engine.status import PassOutcome, ResolutionStatus
from id5resolver.logging.context import set_pass_context
from id5resolver.transport.base_transport import BaseTransport
from id5resolver.version import __version__

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ResolutionEngine:
    """Runs resolution passes against shared cache, consent and transport.

    Args:
        cache_store: Persisted identity state.
        consent: Consent gate.
        transport: HTTP exchange with the identity service.
        referer_info: Producer of the calling-context description.
        permission: Storage permission shared with ``cache_store``.
        api_scheme: Scheme for service URLs.
        api_host: Default identity-service host.
        is_using_cdn: Reported as ``id5cdn``.
        local_storage_available: Reported as ``localStorage``.
        page_location: Fallback for ``u`` when the stack has no entry.
        clock: Current UTC time.
    """

    def __init__(
        self,
        cache_store: BaseCacheStore,
        consent: BaseConsentGate,
        transport: BaseTransport,
        referer_info: Callable[[], RefererInfo],
        permission: StoragePermission,
        api_scheme: str = "https",
        api_host: str = "id5-sync.com",
        is_using_cdn: bool = False,
        local_storage_available: Callable[[], bool] = lambda: True,
        page_location: Callable[[], str | None] = lambda: None,
        clock: Callable[[], datetime] = _utcnow,
        version: str = __version__,
    ) -> None:
        self.cache_store = cache_store
        self.consent = consent
        self._transport = transport
        self._referer_info = referer_info
        self.permission = permission
        self._scheme = api_scheme
        self._host = api_host
        self._is_using_cdn = is_using_cdn
        self._local_storage_available = local_storage_available
        self._page_location = page_location
        self._clock = clock
        self._version = version

    def update_local_storage_allowed(self, status: ResolutionStatus) -> bool | None:
        options = status.options
        self.permission.allowed = self.consent.is_local_storage_allowed(
            options.allow_without_consent_api, options.debug_bypass_consent,
        )
        return self.permission.allowed

    # --- Start / LocalServe ---

    def resolve(self, status: ResolutionStatus, force_fetch: bool = False) -> asyncio.Task[PassOutcome]:
        """Start a pass. Must be called from a running event loop.

        Serves a trustworthy cached id synchronously, then schedules the
        consent wait and any refresh as a task tracked on ``status``.
        """
        options = status.options
        partner_id = options.partner_id
        set_pass_context(partner_id)

        self.update_local_storage_allowed(status)
        record = self.cache_store.get_record()
        if record is None:
            record = self.cache_store.get_legacy_record()
        pd_matches = self.cache_store.stored_publisher_data_matches(partner_id, options.pd)

        served_from_cache = False
        if record is not None and record.is_valid and pd_matches:
            status.set_user_id(record.universal_uid, record.link_type, from_cache=True)
            served_from_cache = True
            logger.info("User id available from cache")
        elif record is not None and record.is_valid:
            logger.info("Publisher data has changed, ignoring user id from cache")
        elif record is not None:
            logger.error("Invalid stored record: %s", record.model_dump())
        else:
            logger.info("No user id available from cache")

        task = asyncio.get_running_loop().create_task(
            self._run_pass(status, force_fetch, served_from_cache)
        )
        status.track(task)
        return task

    # --- AwaitConsent ---

    async def _run_pass(
        self,
        status: ResolutionStatus,
        force_fetch: bool,
        served_from_cache: bool,
    ) -> PassOutcome:
        options = status.options
        snapshot = await self.consent.request_consent(
            options.debug_bypass_consent, options.cmp_api, options.consent_data,
        )
        outcome = await self._decide(status, snapshot, force_fetch, served_from_cache)
        status.last_outcome = outcome
        return outcome

    # --- Decide ---

    async def _decide(
        self,
        status: ResolutionStatus,
        snapshot: ConsentSnapshot,
        force_fetch: bool,
        served_from_cache: bool,
    ) -> PassOutcome:
        options = status.options
        partner_id = options.partner_id

        if self.update_local_storage_allowed(status) is False:
            logger.info("No legal basis to use storage, pass ends without refresh")
            return "denied"

        record = self.cache_store.get_record()
        from_legacy = False
        if record is None:
            record = self.cache_store.get_legacy_record()
            from_legacy = record is not None

        reasons = self._staleness_reasons(status, snapshot, record, from_legacy, force_fetch)
        if not reasons:
            nb = self.cache_store.increment_counter(
                partner_id, self.cache_store.get_counter(partner_id),
            )
            logger.info("Cached user id is fresh, no refresh needed (nb=%d)", nb)
            return "fresh"

        return await self._refresh(status, snapshot, record, reasons, served_from_cache)

    def _staleness_reasons(
        self,
        status: ResolutionStatus,
        snapshot: ConsentSnapshot,
        record: IdentityRecord | None,
        from_legacy: bool,
        force_fetch: bool,
    ) -> list[str]:
        options = status.options
        reasons: list[str] = []

        if record is None or not record.is_valid or not record.signature:
            reasons.append("no_valid_record")

        last_fetch = self.cache_store.get_last_fetch_timestamp()
        if (
            from_legacy
            or last_fetch is None
            or (self._clock() - last_fetch).total_seconds() > options.refresh_in_seconds
        ):
            reasons.append("refresh_elapsed")

        if not self.cache_store.stored_consent_matches(snapshot):
            reasons.append("consent_changed")
        if not self.cache_store.stored_publisher_data_matches(options.partner_id, options.pd):
            reasons.append("pd_changed")
        if force_fetch:
            reasons.append("force_fetch")

        return reasons

    # --- Refreshing ---

    async def _refresh(
        self,
        status: ResolutionStatus,
        snapshot: ConsentSnapshot,
        record: IdentityRecord | None,
        reasons: list[str],
        served_from_cache: bool,
    ) -> PassOutcome:
        options = status.options
        partner_id = options.partner_id

        # Counter before reset, plus this page view when it was served from
        # cache (LocalServe increments on serve).
        nb_page = self.cache_store.get_counter(partner_id) + (1 if served_from_cache else 0)
        self.cache_store.set_counter(partner_id, 0)

        referer = self._referer_info()
        host = resolve_host(self._host, options, referer)
        url = fetch_url(self._scheme, host, partner_id)
        payload = build_fetch_payload(
            options=options,
            consent=snapshot,
            referer=referer,
            record=record,
            nb_page=nb_page,
            version=self._version,
            local_storage_available=self._local_storage_available(),
            is_using_cdn=self._is_using_cdn,
            fallback_location=self._page_location(),
        )

        logger.info(
            "Fetching user id from %s", url,
            extra={"data": {"reasons": reasons, "payload": payload}},
        )
        try:
            body = await self._transport.post(url, json.dumps(payload))
            response = IdentityRecord.from_json(body)
        except TransportError as e:
            logger.error("Identity request failed: %s", e)
            return "failed"
        except MalformedResponseError as e:
            logger.error("Invalid response from identity service: %s", e)
            return "failed"

        self._merge_response(status, snapshot, body, response, host)
        return "refreshed"

    # --- RefreshSucceeded ---

    def _merge_response(
        self,
        status: ResolutionStatus,
        snapshot: ConsentSnapshot,
        body: str,
        response: IdentityRecord,
        host: str,
    ) -> None:
        options = status.options
        partner_id = options.partner_id

        status.set_user_id(response.universal_uid, response.link_type, from_cache=False)

        # Privacy first: it can change whether storage may be used at all.
        self.consent.set_stored_privacy(response.privacy)
        allowed = self.update_local_storage_allowed(status)

        if allowed is True or response.privacy is None:
            self.cache_store.put_record(body, options.cookie_expiration_in_seconds)
            self.cache_store.set_last_fetch_timestamp(self._clock())
            self.cache_store.put_hashed_consent(snapshot)
            self.cache_store.put_hashed_publisher_data(partner_id, options.pd)
        else:
            self.cache_store.clear_all(partner_id)
        self.cache_store.remove_legacy_state(partner_id)

        if response.cascade_needed and allowed is True and options.max_cascades >= 0:
            first_sync = self.cache_store.get_first_sync_flag(partner_id)
            sync_url = build_cascade_url(
                self._scheme, host, options, response.universal_uid, snapshot, first_sync,
            )
            logger.info("Opportunities to cascade available: %s", sync_url)
            task = asyncio.get_running_loop().create_task(
                self._fire_pixel(sync_url, partner_id)
            )
            status.track(task)

    async def _fire_pixel(self, url: str, partner_id: int) -> None:
        try:
            await self._transport.fire_pixel(url)
        except TransportError as e:
            logger.warning("Cascade pixel failed: %s", e)
            return
        self.cache_store.set_first_sync_done(partner_id)
