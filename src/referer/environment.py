# src/referer/environment.py — v1
"""Browsing-context capability consumed by referer detection.

Reads may raise ContextAccessError when the context is cross-origin
relative to the caller; ``get_parent`` may raise StructuralWalkError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class BrowsingContext(ABC):
    """One frame (or the top-level page) as seen from the calling frame."""

    @abstractmethod
    def get_parent(self) -> BrowsingContext:
        """Parent context; the top-level context returns itself."""

    @abstractmethod
    def get_top(self) -> BrowsingContext:
        """Top-level context of the frame tree."""

    @abstractmethod
    def get_location(self) -> str | None:
        """The context's own URL."""

    @abstractmethod
    def get_referrer(self) -> str | None:
        """Referrer reported by the context's document."""

    def get_ancestor_origins(self) -> list[str] | None:
        """Origins of all ancestors, nearest first; None when unsupported."""
        return None

    def get_canonical_url(self) -> str | None:
        """href of the document's ``link[rel=canonical]``, if any."""
        return None
