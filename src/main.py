# src/main.py — v2
"""CLI entry point: resolve, show-cache, referer commands.

Usage:
    id5resolver resolve --partner 99 [--pd ...] [--frame url[,referrer] ...]
    id5resolver show-cache --partner 99
    id5resolver referer --frame https://site.com/page.html --frame ...

Storage and endpoints come from ID5_* settings; --backend and
--storage-path override them.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from pydantic import ValidationError

from id5resolver.config.settings import ConfigurationError, Settings, load_settings
from id5resolver.logging.logger import setup_logging
from id5resolver.referer.frames import FrameContext
from id5resolver.transport.httpx_transport import HttpxTransport
from id5resolver.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = _load_settings(args)
    except (ConfigurationError, ValidationError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(
        level="DEBUG" if args.verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file or None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
        stream=sys.stderr,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="id5resolver",
        description=f"id5resolver v{__version__}: identity resolution and cache engine",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--backend", choices=["memory", "json", "sqlite"], default=None,
        help="Storage backend (default: ID5_STORAGE_BACKEND)",
    )
    parser.add_argument(
        "--storage-path", default=None,
        help="Storage directory for json/sqlite backends",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- resolve ---
    p_resolve = subparsers.add_parser(
        "resolve", help="Run one resolution pass and print the status",
    )
    p_resolve.add_argument("--partner", type=int, required=True, help="Partner id")
    p_resolve.add_argument("--pd", default="", help="Publisher data string")
    p_resolve.add_argument("--puid", default=None, help="Partner user id")
    p_resolve.add_argument(
        "--gdpr", action="store_true",
        help="GDPR applies (static consent)",
    )
    p_resolve.add_argument(
        "--consent-string", default=None,
        help="TCF v2 consent string (static consent)",
    )
    p_resolve.add_argument(
        "--no-consent-api", action="store_true",
        help="Set allowID5WithoutConsentApi instead of static consent",
    )
    p_resolve.add_argument(
        "--force", action="store_true", help="Force a refresh",
    )
    _add_frame_argument(p_resolve)
    p_resolve.set_defaults(func=_cmd_resolve)

    # --- show-cache ---
    p_show = subparsers.add_parser(
        "show-cache", help="Dump the stored state for a partner",
    )
    p_show.add_argument("--partner", type=int, required=True, help="Partner id")
    p_show.set_defaults(func=_cmd_show_cache)

    # --- referer ---
    p_referer = subparsers.add_parser(
        "referer", help="Run referer detection over a frame chain",
    )
    _add_frame_argument(p_referer)
    p_referer.set_defaults(func=_cmd_referer)

    return parser


def _add_frame_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--frame", action="append", default=[], metavar="URL[,REFERRER]",
        help=(
            "Frame in the chain, top-level page first; repeat for nested "
            "frames. An empty URL marks a cross-origin frame."
        ),
    )


def _load_settings(args: argparse.Namespace) -> Settings:
    overrides: dict[str, Any] = {}
    if args.backend:
        overrides["storage_backend"] = args.backend
    if args.storage_path:
        overrides["storage_path"] = args.storage_path
    return load_settings(**overrides)


def parse_frames(items: list[str]) -> FrameContext:
    """Build a frame chain from ``url[,referrer]`` specs, top first."""
    frames: list[FrameContext] = []
    for item in items:
        url, _, referrer = item.partition(",")
        url = url.strip()
        frames.append(FrameContext(
            location=url or None,
            referrer=referrer.strip() or None,
            cross_origin=not url,
        ))
    if not frames:
        return FrameContext()
    return FrameContext.chain(*frames)


async def _cmd_resolve(args: argparse.Namespace, settings: Settings) -> int:
    """Run one pass and wait for it, including any cascade pixel."""
    from id5resolver.api.facade import Id5Api

    options: dict[str, Any] = {"partnerId": args.partner, "pd": args.pd}
    if args.puid:
        options["partnerUserId"] = args.puid
    if args.no_consent_api:
        options["allowID5WithoutConsentApi"] = True
    else:
        consent: dict[str, Any] = {"gdprApplies": args.gdpr, "apiVersion": 2}
        if args.consent_string:
            consent["tcString"] = args.consent_string
            consent["purpose"] = {"consents": {"1": True}}
        options["cmpApi"] = "static"
        options["consentData"] = consent

    api = Id5Api(
        root_context=parse_frames(args.frame),
        settings=settings,
        transport=HttpxTransport(timeout_s=settings.request_timeout_s),
    )
    try:
        status = api.init(options)
        if status is None:
            return 1
        if args.force:
            api.refresh_id(status, force_fetch=True)
        await status.settled()
    finally:
        await api.aclose()

    print(json.dumps(status.as_dict(), indent=2))
    return 0 if status.is_available() else 1


async def _cmd_show_cache(args: argparse.Namespace, settings: Settings) -> int:
    from id5resolver.cache.client_store import ClientStore
    from id5resolver.consent.permission import StoragePermission
    from id5resolver.storage.storage_factory import create_legacy_storage, create_storage

    store = ClientStore(
        StoragePermission(),
        create_storage(settings),
        create_legacy_storage(settings),
    )
    state = store.snapshot(args.partner)
    print(json.dumps(state.as_dict(), indent=2, default=str))
    return 0


async def _cmd_referer(args: argparse.Namespace, settings: Settings) -> int:
    from id5resolver.referer.detector import detect_referer

    info = detect_referer(parse_frames(args.frame))()
    print(json.dumps(info.model_dump(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
