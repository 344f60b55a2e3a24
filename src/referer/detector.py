# src/referer/detector.py — v1
"""Referer detection: describe the calling context by walking up the frame tree.

Collects, for each level from the calling frame up to the top-level page,
its location and the referrer its document reports. Unreadable levels
(cross-origin) are recorded as empty and the walk continues through the
parent edge; only a failure to obtain the parent ends it early.

The publication stack is rebuilt top level first. Each level uses, in
order: its own location, the referrer reported by the level below it,
its ancestor-origin hint, or None.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from id5resolver.core.errors import ContextAccessError, StructuralWalkError
from id5resolver.core.models import RefererInfo
from id5resolver.referer.environment import BrowsingContext

logger = logging.getLogger(__name__)


@dataclass
class _Level:
    referrer: str | None = None
    location: str | None = None
    is_top: bool = False
    canonical_url: str | None = None
    # Origin of this level according to the calling frame's ancestor list.
    ancestor: str | None = None


def detect_referer(root: BrowsingContext) -> Callable[[], RefererInfo]:
    """Return a producer that re-walks the frame tree on every call.

    Any unexpected failure yields an empty RefererInfo, never a partial one.
    """

    def referer_info() -> RefererInfo:
        try:
            return _build_info(root)
        except Exception:
            logger.debug("Referer detection failed", exc_info=True)
            return RefererInfo()

    return referer_info


def _build_info(root: BrowsingContext) -> RefererInfo:
    levels = _get_levels(root)
    num_iframes = len(levels) - 1
    reached_top = levels[-1].location is not None or (
        num_iframes > 0 and levels[-2].referrer is not None
    )
    stack, topmost_location = _pub_url_stack(levels)

    ref: str | None = None
    try:
        ref = root.get_top().get_referrer() or None
    except ContextAccessError:
        pass

    return RefererInfo(
        topmost_location=topmost_location,
        ref=ref,
        reached_top=reached_top,
        num_iframes=num_iframes,
        stack=stack,
        canonical_url=levels[-1].canonical_url or None,
    )


def _get_levels(root: BrowsingContext) -> list[_Level]:
    levels = _walk_up(root)
    origins = _ancestor_origins(root)
    if origins:
        # origins[0] is the parent of the calling frame, i.e. level 1.
        for i, origin in enumerate(origins, start=1):
            if i >= len(levels):
                break
            levels[i].ancestor = origin
    return levels


def _walk_up(root: BrowsingContext) -> list[_Level]:
    top = root.get_top()
    levels: list[_Level] = []
    current: BrowsingContext | None = None

    while True:
        try:
            current = root if current is None else _parent_of(current)
        except (StructuralWalkError, ContextAccessError) as e:
            logger.debug("Frame walk stopped after %d levels: %s", len(levels), e)
            levels.append(_Level())
            return levels

        is_top = current is top
        try:
            level = _Level(
                referrer=current.get_referrer() or None,
                location=current.get_location() or None,
                is_top=is_top,
            )
            if is_top:
                level.canonical_url = _canonical_url(current)
        except ContextAccessError:
            level = _Level(is_top=is_top)
        levels.append(level)

        if is_top:
            return levels


def _parent_of(context: BrowsingContext) -> BrowsingContext:
    parent = context.get_parent()
    if parent is None or parent is context:
        # Only the top-level context is its own parent.
        raise StructuralWalkError("frame has no reachable parent")
    return parent


def _ancestor_origins(root: BrowsingContext) -> list[str] | None:
    try:
        return root.get_ancestor_origins()
    except ContextAccessError:
        return None


def _canonical_url(context: BrowsingContext) -> str | None:
    try:
        return context.get_canonical_url() or None
    except Exception as e:
        logger.debug("Canonical URL lookup failed: %s", e)
        return None


def _pub_url_stack(levels: list[_Level]) -> tuple[list[str | None], str | None]:
    stack: list[str | None] = []
    detected: str | None = None

    for i in range(len(levels) - 1, -1, -1):
        level = levels[i]
        if level.location:
            entry = level.location
        elif i != 0:
            entry = levels[i - 1].referrer or level.ancestor or None
        else:
            entry = None

        stack.append(entry)
        if detected is None and entry:
            detected = entry

    return stack, detected
