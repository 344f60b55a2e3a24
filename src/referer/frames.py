# src/referer/frames.py — v1
"""In-memory frame tree implementing BrowsingContext.

Used by the CLI to describe a page context and by tests as a fake.
"""

from __future__ import annotations

from collections.abc import Sequence

from id5resolver.core.errors import ContextAccessError, StructuralWalkError
from id5resolver.referer.environment import BrowsingContext


class FrameContext(BrowsingContext):
    """A frame with fixed data.

    Args:
        location: The frame's URL.
        referrer: The frame document's referrer.
        parent: Enclosing frame; None makes this frame the top.
        canonical_url: Canonical link of the document.
        ancestor_origins: Fast ancestor-origin list, nearest first.
        cross_origin: Reads of location/referrer/canonical raise
            ContextAccessError, as a cross-origin frame would.
        detached: ``get_parent`` raises StructuralWalkError.
    """

    def __init__(
        self,
        location: str | None = None,
        referrer: str | None = None,
        parent: FrameContext | None = None,
        canonical_url: str | None = None,
        ancestor_origins: Sequence[str] | None = None,
        cross_origin: bool = False,
        detached: bool = False,
    ) -> None:
        self.location = location
        self.referrer = referrer
        self.parent = parent
        self.canonical_url = canonical_url
        self.ancestor_origins = list(ancestor_origins) if ancestor_origins is not None else None
        self.cross_origin = cross_origin
        self.detached = detached

    def get_parent(self) -> BrowsingContext:
        if self.detached:
            raise StructuralWalkError("parent frame is not reachable")
        return self.parent if self.parent is not None else self

    def get_top(self) -> BrowsingContext:
        frame = self
        while frame.parent is not None:
            frame = frame.parent
        return frame

    def get_location(self) -> str | None:
        self._check_access()
        return self.location

    def get_referrer(self) -> str | None:
        self._check_access()
        return self.referrer

    def get_ancestor_origins(self) -> list[str] | None:
        return self.ancestor_origins

    def get_canonical_url(self) -> str | None:
        self._check_access()
        return self.canonical_url

    def _check_access(self) -> None:
        if self.cross_origin:
            raise ContextAccessError("blocked a frame from accessing a cross-origin frame")

    @classmethod
    def chain(cls, *frames: FrameContext) -> FrameContext:
        """Nest ``frames`` (top first) and return the innermost one."""
        if not frames:
            raise ValueError("chain() needs at least one frame")
        for outer, inner in zip(frames, frames[1:]):
            inner.parent = outer
        return frames[-1]
