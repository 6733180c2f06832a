"""Unit tests for block tag resolution and price shaping."""
import asyncio
from datetime import datetime

import pytest
from hypothesis import assume, given
from hypothesis import strategies as st

from backend.aggregator import (
    BlockAggregator,
    BlockTarget,
    PriceAggregator,
    parse_block_command,
    to_block_tag,
)
from backend.config import LATEST_BLOCK_LABEL
from backend.errors import NotFoundError, UpstreamError, ValidationError
from backend.upstream import BlockLookup, LookupStatus


class StubExplorer:
    """In-memory explorer that counts head lookups."""

    def __init__(self, head: int = 100, fail: bool = False):
        self.head = head
        self.fail = fail
        self.head_calls = 0
        self.tags = []

    async def latest_block_number(self) -> int:
        self.head_calls += 1
        if self.fail:
            raise UpstreamError("connection refused")
        return self.head

    async def block_by_tag(self, tag: str) -> BlockLookup:
        self.tags.append(tag)
        return BlockLookup(LookupStatus.FOUND, block={"number": tag})


class TestParseBlockCommand:
    """Tests for server-side command parsing."""

    @pytest.mark.parametrize("command", ["block 0", "block +0", "block -0", "block 5", "latest please"])
    def test_latest_targets(self, command):
        """Test that zero, unsigned and unmatched commands target the head."""
        assert parse_block_command(command).latest

    @pytest.mark.parametrize("command,offset", [("block +3", 3), ("block -5", -5), ("BLOCK - 7", -7)])
    def test_offset_targets(self, command, offset):
        """Test that signed commands become offsets."""
        assert parse_block_command(command) == BlockTarget(offset=offset)


class TestResolveTag:
    """Tests for BlockAggregator.resolve_tag."""

    @pytest.mark.asyncio
    async def test_latest_skips_head_lookup(self):
        """Test that the latest block needs no extra call."""
        explorer = StubExplorer()

        tag = await BlockAggregator(explorer).resolve_tag(BlockTarget())

        assert tag == "latest"
        assert explorer.head_calls == 0

    @pytest.mark.asyncio
    async def test_minus_five_from_0x64(self):
        """Test the documented scenario: head 0x64 (100) minus 5 is 0x5f."""
        tag = await BlockAggregator(StubExplorer(head=0x64)).resolve_tag(BlockTarget(offset=-5))

        assert tag == "0x5f"

    @pytest.mark.asyncio
    async def test_head_failure_fails_request(self):
        """Test that an unavailable head is an error, not a literal tag."""
        explorer = StubExplorer(fail=True)

        with pytest.raises(UpstreamError, match="Latest block number unavailable"):
            await BlockAggregator(explorer).lookup("block +5")
        assert explorer.tags == []

    @pytest.mark.asyncio
    async def test_offset_before_genesis(self):
        """Test that a negative block number is rejected."""
        with pytest.raises(ValidationError):
            await BlockAggregator(StubExplorer(head=3)).resolve_tag(BlockTarget(offset=-4))

    @given(
        head=st.integers(min_value=0, max_value=2**48),
        number=st.integers(min_value=1, max_value=10**7),
        sign=st.sampled_from(["+", "-"]),
    )
    def test_offset_is_head_plus_minus_n_in_lowercase_hex(self, head: int, number: int, sign: str):
        """Property test: 'block ±N' resolves to hex(head ± N)."""
        assume(sign == "+" or head >= number)
        explorer = StubExplorer(head=head)

        tag = asyncio.run(
            BlockAggregator(explorer).resolve_tag(parse_block_command(f"block {sign}{number}"))
        )

        expected = head + number if sign == "+" else head - number
        assert tag == hex(expected)
        assert tag == tag.lower()
        assert explorer.head_calls == 1

    def test_to_block_tag(self):
        """Test hex encoding of block numbers."""
        assert to_block_tag(0) == "0x0"
        assert to_block_tag(255) == "0xff"


class TestBlockLookup:
    """Tests for BlockAggregator.lookup shaping."""

    @pytest.mark.asyncio
    async def test_latest_uses_label(self):
        """Test that the latest block is reported with its label."""
        snapshot = await BlockAggregator(StubExplorer()).lookup("block 0")

        assert snapshot.command == "block 0"
        assert snapshot.block_number == LATEST_BLOCK_LABEL
        assert snapshot.block_info == {"number": "latest"}
        datetime.fromisoformat(snapshot.timestamp.replace("Z", "+00:00"))

    @pytest.mark.asyncio
    async def test_empty_lookup_gives_null_block(self):
        """Test that an empty upstream result becomes block_info=None."""

        class EmptyExplorer(StubExplorer):
            async def block_by_tag(self, tag):
                return BlockLookup(LookupStatus.UNPARSEABLE, detail="<html>")

        snapshot = await BlockAggregator(EmptyExplorer(head=10)).lookup("block -1")

        assert snapshot.block_number == "0x9"
        assert snapshot.block_info is None


class StubPrices:
    """In-memory price source."""

    def __init__(self, prices):
        self.prices = prices
        self.slugs = []

    async def simple_price(self, slug):
        self.slugs.append(slug)
        return self.prices.get(slug)


class TestPriceAggregator:
    """Tests for PriceAggregator.quote."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("currency", ["icp", "ICP", "Icp"])
    async def test_icp_alias(self, currency):
        """Test that ICP resolves to the internet-computer slug in any case."""
        prices = StubPrices({"internet-computer": 1500.0})

        quote = await PriceAggregator(prices).quote(currency)

        assert prices.slugs == ["internet-computer"]
        assert quote.currency == "ICP"
        assert quote.price == 1500.0

    @pytest.mark.asyncio
    async def test_missing_price_is_not_found(self):
        """Test the documented scenario for an unknown pair."""
        with pytest.raises(NotFoundError, match="Price data for dogecoin not found"):
            await PriceAggregator(StubPrices({})).quote("dogecoin")

    @pytest.mark.asyncio
    async def test_blank_currency(self):
        """Test that a blank currency is rejected before any lookup."""
        prices = StubPrices({})

        with pytest.raises(ValidationError):
            await PriceAggregator(prices).quote("  ")
        assert prices.slugs == []

    @pytest.mark.asyncio
    async def test_no_caching(self):
        """Test that identical queries each hit the upstream."""
        prices = StubPrices({"bitcoin": 10.0})
        aggregator = PriceAggregator(prices)

        first = await aggregator.quote("bitcoin")
        second = await aggregator.quote("bitcoin")

        assert prices.slugs == ["bitcoin", "bitcoin"]
        assert first.price == second.price
        assert first is not second
