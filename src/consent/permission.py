# src/consent/permission.py — v1
"""Shared storage-permission state.

The engine writes it after each consent evaluation; the cache store
reads it before every storage access.
"""

from __future__ import annotations


class StoragePermission:
    """Tri-state flag: True allowed, False denied, None not yet known."""

    def __init__(self, allowed: bool | None = None) -> None:
        self.allowed = allowed

    def __call__(self) -> bool | None:
        return self.allowed

    def __repr__(self) -> str:
        return f"StoragePermission(allowed={self.allowed!r})"
