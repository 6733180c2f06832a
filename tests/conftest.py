"""Pytest configuration and shared fixtures."""
import json
from typing import Any, Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from backend.main import create_app
from backend.storage import MemStorage, seed_demo_data
from backend.upstream import CoinGeckoClient, EtherscanClient

SAMPLE_BLOCK = {
    "number": "0x64",
    "hash": "0x" + "ab" * 32,
    "parentHash": "0x" + "cd" * 32,
    "gasUsed": "0x5208",
    "gasLimit": "0x1c9c380",
    "transactions": [{"hash": "0x01"}, {"hash": "0x02"}],
}


class FakeEtherscan:
    """
    Scripted Etherscan proxy.

    Every request is recorded; responses can be swapped per test.
    """

    def __init__(self, head: str = "0x64"):
        self.head: Any = head
        self.blocks: Dict[str, Any] = {}
        self.default_block: Optional[Dict[str, Any]] = SAMPLE_BLOCK
        self.raw_block_body: Optional[str] = None
        self.head_status = 200
        self.block_status = 200
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        action = request.url.params.get("action")
        if action == "eth_blockNumber":
            return httpx.Response(self.head_status, json={"jsonrpc": "2.0", "id": 83, "result": self.head})
        if action == "eth_getBlockByNumber":
            if self.raw_block_body is not None:
                return httpx.Response(self.block_status, text=self.raw_block_body)
            tag = request.url.params.get("tag")
            block = self.blocks.get(tag, self.default_block)
            return httpx.Response(self.block_status, json={"jsonrpc": "2.0", "id": 1, "result": block})
        return httpx.Response(400, json={"message": f"unknown action {action}"})

    def actions(self) -> List[str]:
        return [r.url.params.get("action") for r in self.requests]

    def tags(self) -> List[str]:
        return [r.url.params["tag"] for r in self.requests if "tag" in r.url.params]


class FakeCoinGecko:
    """Scripted CoinGecko /simple/price."""

    def __init__(self, prices: Optional[Dict[str, float]] = None, vs_currency: str = "jpy"):
        self.prices = dict(prices or {})
        self.vs_currency = vs_currency
        self.status = 200
        self.raw_body: Optional[str] = None
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raw_body is not None:
            return httpx.Response(self.status, text=self.raw_body)
        slug = request.url.params.get("ids")
        body = {}
        if slug in self.prices:
            body[slug] = {self.vs_currency: self.prices[slug]}
        return httpx.Response(self.status, text=json.dumps(body))

    def slugs(self) -> List[str]:
        return [r.url.params.get("ids") for r in self.requests]


@pytest.fixture
def etherscan() -> FakeEtherscan:
    return FakeEtherscan()


@pytest.fixture
def coingecko() -> FakeCoinGecko:
    return FakeCoinGecko(
        prices={
            "internet-computer": 1234.5,
            "bitcoin": 9876543.21,
            "ethereum": 456789.0,
        }
    )


@pytest.fixture
def explorer_client(etherscan: FakeEtherscan) -> EtherscanClient:
    return EtherscanClient(
        base_url="https://etherscan.test/api",
        api_key="test-key",
        transport=httpx.MockTransport(etherscan.handler),
    )


@pytest.fixture
def price_client(coingecko: FakeCoinGecko) -> CoinGeckoClient:
    return CoinGeckoClient(
        base_url="https://coingecko.test/api/v3",
        api_key=None,
        vs_currency="jpy",
        transport=httpx.MockTransport(coingecko.handler),
    )


@pytest.fixture
def storage() -> MemStorage:
    store = MemStorage()
    seed_demo_data(store)
    return store


@pytest.fixture
def app(storage, explorer_client, price_client):
    return create_app(storage=storage, explorer=explorer_client, prices=price_client)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def asgi_transport(app) -> httpx.ASGITransport:
    """In-process transport so the chat client can talk to the app directly."""
    return httpx.ASGITransport(app=app)
