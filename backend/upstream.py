"""
Upstream API Clients

Thin async clients for the two read-only third-party APIs behind the chat:
the Etherscan JSON-RPC proxy (block explorer) and CoinGecko (prices).
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import httpx

from .config import (
    COINGECKO_API_KEY,
    COINGECKO_BASE_URL,
    ETHERSCAN_API_KEY,
    ETHERSCAN_BASE_URL,
    PRICE_VS_CURRENCY,
    UPSTREAM_TIMEOUT,
)
from .errors import UpstreamError

logger = logging.getLogger(__name__)


class LookupStatus(str, Enum):
    FOUND = "found"
    EMPTY = "empty"
    UNPARSEABLE = "unparseable"


@dataclass(frozen=True)
class BlockLookup:
    """Outcome of a block-by-tag call."""
    status: LookupStatus
    block: Optional[Dict[str, Any]] = None
    detail: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.status is LookupStatus.FOUND


class EtherscanClient:
    """
    Client for the Etherscan proxy module.

    Only the two JSON-RPC passthroughs the block explorer needs are exposed:
    eth_blockNumber and eth_getBlockByNumber.
    """

    def __init__(
        self,
        base_url: str = ETHERSCAN_BASE_URL,
        api_key: Optional[str] = ETHERSCAN_API_KEY,
        timeout: float = UPSTREAM_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Etherscan client.

        Args:
            base_url: Proxy API endpoint (e.g., 'https://api.etherscan.io/api')
            api_key: Optional API key; without it calls are rate-limited
            timeout: Seconds before a call is abandoned
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.base_url = base_url
        self.api_key = api_key or None
        self.timeout = timeout
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

        if self.api_key:
            logger.info(f"Etherscan client initialized with endpoint: {base_url}")
        else:
            logger.warning("Etherscan client initialized WITHOUT API key (rate-limited)")

    async def _get(self, action: str, check_status: bool = True, **params: Any) -> httpx.Response:
        query: Dict[str, Any] = {"module": "proxy", "action": action, **params}
        if self.api_key:
            query["apikey"] = self.api_key

        logger.info(f"Etherscan {action} {params or ''}".rstrip())
        try:
            response = await self.client.get(self.base_url, params=query)
        except httpx.TimeoutException as e:
            raise UpstreamError(f"Etherscan {action} timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"Etherscan {action} request failed: {e}") from e

        if check_status and response.is_error:
            raise UpstreamError(f"Etherscan {action} returned HTTP {response.status_code}")
        return response

    async def latest_block_number(self) -> int:
        """
        Fetch the current chain head.

        Returns:
            Latest block number as an int

        Raises:
            UpstreamError: If the call fails or the result is not a hex quantity
        """
        response = await self._get("eth_blockNumber")
        try:
            result = response.json().get("result")
            return int(result, 16)
        except (ValueError, TypeError, AttributeError) as e:
            raise UpstreamError(f"Unparseable eth_blockNumber response: {response.text[:200]}") from e

    async def block_by_tag(self, tag: str) -> BlockLookup:
        """
        Fetch a full block by tag ('latest' or a 0x-prefixed number).

        Transport failures raise. An error status or a body that cannot be
        read as a block is reported through the lookup status instead.
        """
        response = await self._get("eth_getBlockByNumber", check_status=False, tag=tag, boolean="true")
        if response.is_error:
            logger.warning(f"Block lookup for tag {tag} returned HTTP {response.status_code}")
            return BlockLookup(LookupStatus.EMPTY, detail=f"HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError:
            logger.error(f"Failed to parse block response for tag {tag}")
            return BlockLookup(LookupStatus.UNPARSEABLE, detail=response.text[:200])

        result = data.get("result") if isinstance(data, dict) else None
        if not isinstance(result, dict):
            logger.warning(f"No block returned for tag {tag}: {result!r}")
            return BlockLookup(LookupStatus.EMPTY, detail=str(result) if result else None)

        return BlockLookup(LookupStatus.FOUND, block=result)

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class CoinGeckoClient:
    """Client for CoinGecko's simple price endpoint."""

    def __init__(
        self,
        base_url: str = COINGECKO_BASE_URL,
        api_key: Optional[str] = COINGECKO_API_KEY,
        vs_currency: str = PRICE_VS_CURRENCY,
        timeout: float = UPSTREAM_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key or None
        self.vs_currency = vs_currency.lower()
        self.timeout = timeout

        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        self.client = httpx.AsyncClient(timeout=timeout, headers=headers, transport=transport)

        logger.info(f"CoinGecko client initialized (quotes in {self.vs_currency.upper()})")

    async def simple_price(self, slug: str) -> Optional[float]:
        """
        Fetch the price of one coin.

        Args:
            slug: CoinGecko id (e.g., 'bitcoin', 'internet-computer')

        Returns:
            Price in the configured fiat unit, or None if CoinGecko has no entry

        Raises:
            UpstreamError: On network failure, non-2xx status or malformed JSON
        """
        url = f"{self.base_url}/simple/price"
        params = {"ids": slug, "vs_currencies": self.vs_currency}
        logger.info(f"Fetching price data for {slug} in {self.vs_currency}")

        try:
            response = await self.client.get(url, params=params)
        except httpx.TimeoutException as e:
            raise UpstreamError(f"CoinGecko request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"CoinGecko request failed: {e}") from e

        if response.is_error:
            raise UpstreamError(f"CoinGecko returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(f"Unparseable CoinGecko response: {response.text[:200]}") from e

        entry = data.get(slug) if isinstance(data, dict) else None
        price = entry.get(self.vs_currency) if isinstance(entry, dict) else None
        if price is None:
            return None
        try:
            return float(price)
        except (TypeError, ValueError) as e:
            raise UpstreamError(f"Non-numeric price for {slug}: {price!r}") from e

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
