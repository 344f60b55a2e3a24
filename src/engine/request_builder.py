# src/engine/request_builder.py — v1
"""Outbound request payload and URL construction."""

from __future__ import annotations

from typing import Any
from urllib.parse import urlencode, urlsplit

from id5resolver.config.options import Id5Options
from id5resolver.core.models import ConsentSnapshot, IdentityRecord, RefererInfo

REQUEST_ORIGIN = "api"


def resolve_host(default_host: str, options: Id5Options, referer: RefererInfo) -> str:
    """Pick the identity-service host for this pass.

    A custom hostname always wins unless auto-switching is on, in which
    case it is used only when it belongs to the same site as the page.
    """
    custom = options.custom_hostname.strip()
    if not custom:
        return default_host
    if not options.auto_switch_hostname:
        return custom
    page_host = urlsplit(referer.topmost_location or "").hostname
    if page_host and _site(custom) == _site(page_host):
        return custom
    return default_host


def _site(host: str) -> str:
    # Last two labels; a registrable-domain approximation.
    labels = host.lower().strip(".").split(".")
    return ".".join(labels[-2:])


def fetch_url(scheme: str, host: str, partner_id: int) -> str:
    return f"{scheme}://{host}/g/v2/{partner_id}.json"


def build_fetch_payload(
    options: Id5Options,
    consent: ConsentSnapshot | None,
    referer: RefererInfo,
    record: IdentityRecord | None,
    nb_page: int,
    version: str,
    local_storage_available: bool,
    is_using_cdn: bool,
    fallback_location: str | None = None,
) -> dict[str, Any]:
    """JSON body of the identity request. Optional fields are omitted when unset."""
    gdpr_applies = bool(consent and consent.gdpr_applies)
    data: dict[str, Any] = {
        "partner": options.partner_id,
        "v": version,
        "o": REQUEST_ORIGIN,
        "gdpr": 1 if gdpr_applies else 0,
        "rf": referer.topmost_location,
        "u": (referer.stack[0] if referer.stack else None) or fallback_location,
        "top": 1 if referer.reached_top else 0,
        "localStorage": 1 if local_storage_available else 0,
        "nbPage": nb_page,
        "id5cdn": is_using_cdn,
    }

    if gdpr_applies and consent is not None and consent.consent_string is not None:
        data["gdpr_consent"] = consent.consent_string
    if record is not None and record.signature:
        data["s"] = record.signature
    if options.pd is not None:
        data["pd"] = options.pd
    if options.partner_user_id is not None:
        data["puid"] = options.partner_user_id
    if options.provider is not None:
        data["provider"] = options.provider
    if options.ab_testing.enabled:
        data.setdefault("features", {})["ab"] = 1

    return data


def build_cascade_url(
    scheme: str,
    host: str,
    options: Id5Options,
    user_id: str,
    consent: ConsentSnapshot | None,
    first_sync: int,
) -> str:
    """Sync pixel URL: ``/s/`` with a partner user id, ``/i/`` without."""
    is_sync = bool(options.partner_user_id)
    gdpr_applies = bool(consent and consent.gdpr_applies)

    params: list[tuple[str, str]] = [("id5id", user_id), ("o", REQUEST_ORIGIN)]
    if is_sync:
        params.append(("puid", options.partner_user_id or ""))
    params += [
        ("gdpr_consent", (consent.consent_string or "") if gdpr_applies and consent else ""),
        ("gdpr", "1" if gdpr_applies else "0"),
        ("fs", str(first_sync)),
    ]
    path = "s" if is_sync else "i"
    return (
        f"{scheme}://{host}/{path}/{options.partner_id}/{options.max_cascades}.gif?"
        f"{urlencode(params)}"
    )
