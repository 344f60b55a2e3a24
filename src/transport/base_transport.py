# src/transport/base_transport.py — v1
"""Abstract HTTP exchange with the identity service."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseTransport(ABC):
    """Single-shot requests; each call completes with a body or raises."""

    @abstractmethod
    async def post(self, url: str, body: str) -> str:
        """POST ``body`` and return the response text.

        Raises:
            TransportError: network failure, timeout or non-2xx status.
        """

    @abstractmethod
    async def fire_pixel(self, url: str) -> None:
        """GET a tracking/sync pixel; the body is ignored.

        Raises:
            TransportError: network failure, timeout or non-2xx status.
        """

    async def aclose(self) -> None:
        """Release pooled connections, if any."""
