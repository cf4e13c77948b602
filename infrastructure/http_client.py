"""Shared async HTTP client for outbound calls (mail delivery)."""

from typing import Any, Optional

import httpx


class HttpClient:
    """Thin async wrapper around httpx.AsyncClient with a configurable timeout.

    An existing ``httpx.AsyncClient`` may be passed in, e.g. one built on
    ``httpx.MockTransport`` in tests.
    """

    def __init__(
        self, timeout: float = 5.0, client: Optional[httpx.AsyncClient] = None
    ) -> None:
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._client.post(url, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
