# src/transport/httpx_transport.py — v1
"""httpx-based transport.

Requests are sent with a ``text/plain`` JSON body, the form browsers
accept as a simple cross-origin request with credentials.
"""

from __future__ import annotations

import logging

import httpx

from id5resolver.core.errors import TransportError
from id5resolver.transport.base_transport import BaseTransport
from id5resolver.version import __version__

logger = logging.getLogger(__name__)


class HttpxTransport(BaseTransport):
    """Transport over a shared httpx.AsyncClient."""

    def __init__(
        self,
        timeout_s: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout_s,
            headers={"User-Agent": f"id5resolver/{__version__}"},
        )

    async def post(self, url: str, body: str) -> str:
        response = await self._send("POST", url, content=body, headers={
            "Content-Type": "text/plain;charset=utf-8",
        })
        return response.text

    async def fire_pixel(self, url: str) -> None:
        await self._send("GET", url)

    async def _send(self, method: str, url: str, **kwargs: object) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)  # type: ignore[arg-type]
        except httpx.TimeoutException as e:
            raise TransportError(f"{method} {url} timed out: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {url} failed: {e}") from e

        if not response.is_success:
            raise TransportError(
                f"{method} {url} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        logger.debug("%s %s -> %d", method, url, response.status_code)
        return response

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
