# src/core/errors.py — v1
"""Error taxonomy shared by the resolution engine and its collaborators."""

from __future__ import annotations


class Id5Error(Exception):
    """Base class for all id5resolver errors."""


class TransportError(Id5Error):
    """Network failure, timeout or non-2xx answer from the identity service."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class MalformedResponseError(Id5Error):
    """Response body is empty, not JSON, or lacks ``universal_uid``."""


class ContextAccessError(Id5Error):
    """A browsing context refused a read (cross-origin access denial)."""


class StructuralWalkError(Id5Error):
    """The parent edge of a browsing context could not be obtained."""
