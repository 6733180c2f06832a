"""
Chat API Client

Bridge from the command interpreter to this server's chat routes.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from .config import API_URL, UPSTREAM_TIMEOUT
from .errors import UpstreamError
from .models import BlockSnapshot, PriceQuote

logger = logging.getLogger(__name__)


class ChatApiClient:
    """
    Client for /api/chat/blockchain and /api/chat/price.

    Abstracts the transport so the interpreter can be driven against a live
    server, an in-process ASGI app, or a mock.
    """

    def __init__(
        self,
        base_url: str = API_URL,
        timeout: float = UPSTREAM_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize chat API client.

        Args:
            base_url: Server root (e.g., 'http://127.0.0.1:7777')
            timeout: Request timeout in seconds; a hung server surfaces as a failure
            transport: Optional httpx transport (e.g., httpx.ASGITransport(app))
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def _request(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {url} failed: {e}")
            raise UpstreamError(f"Failed to reach {self.base_url}: {e}") from e

        if response.is_error:
            message = _error_message(response)
            logger.error(f"{method} {url} returned {response.status_code}: {message}")
            raise UpstreamError(message)

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(f"Unparseable response from {url}") from e

    async def lookup_block(self, command: str) -> BlockSnapshot:
        """
        Ask the server to resolve a block command.

        Raises:
            UpstreamError: If the request fails or the server answers non-2xx
        """
        data = await self._request("POST", "/api/chat/blockchain", json={"command": command})
        return BlockSnapshot.model_validate(data)

    async def get_price(self, currency: str) -> PriceQuote:
        """
        Ask the server for one currency's price.

        Raises:
            UpstreamError: If the request fails or the server answers non-2xx
        """
        data = await self._request("GET", "/api/chat/price", params={"currency": currency})
        return PriceQuote.model_validate(data)

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"HTTP {response.status_code}"
