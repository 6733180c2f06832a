"""
Upstream Aggregator

Server-side half of the chat: resolves block commands into a block tag,
fetches the block, and shapes price quotes.
"""

import logging
import re
from dataclasses import dataclass

from .config import LATEST_BLOCK_LABEL, LATEST_BLOCK_TAG, resolve_price_slug
from .errors import NotFoundError, UpstreamError, ValidationError
from .models import BlockSnapshot, PriceQuote, utc_timestamp
from .upstream import CoinGeckoClient, EtherscanClient

logger = logging.getLogger(__name__)

BLOCK_COMMAND = re.compile(r"block\s*([+-]?)\s*(\d+)", re.IGNORECASE)


@dataclass(frozen=True)
class BlockTarget:
    """Which block a command asks for: the chain head, or an offset from it."""
    offset: int = 0

    @property
    def latest(self) -> bool:
        return self.offset == 0


def parse_block_command(command: str) -> BlockTarget:
    """
    Parse 'block <±N>' into a target.

    Commands without a sign, with N == 0, or that do not match at all
    ask for the latest block.
    """
    match = BLOCK_COMMAND.search(command)
    if not match:
        return BlockTarget()

    sign, digits = match.groups()
    number = int(digits)
    if not sign or number == 0:
        return BlockTarget()
    return BlockTarget(offset=-number if sign == "-" else number)


def to_block_tag(number: int) -> str:
    """Encode a block number the way the JSON-RPC proxy expects it."""
    return f"0x{number:x}"


class BlockAggregator:
    """Turns a block command into a BlockSnapshot."""

    def __init__(self, explorer: EtherscanClient):
        self.explorer = explorer

    async def resolve_tag(self, target: BlockTarget) -> str:
        """
        Resolve a target into a block tag.

        Raises:
            UpstreamError: If the chain head cannot be fetched for an offset
            ValidationError: If the offset lands before the genesis block
        """
        if target.latest:
            return LATEST_BLOCK_TAG

        try:
            head = await self.explorer.latest_block_number()
        except UpstreamError as e:
            logger.error(f"Failed to fetch latest block number: {e}")
            raise UpstreamError(f"Latest block number unavailable: {e}") from e

        number = head + target.offset
        if number < 0:
            raise ValidationError(
                f"Block offset {target.offset:+d} is before the genesis block (head is {head})"
            )
        return to_block_tag(number)

    async def lookup(self, command: str) -> BlockSnapshot:
        """
        Answer a block command.

        Upstream bodies that cannot be read as a block come back as
        block_info=None; transport failures raise UpstreamError.
        """
        tag = await self.resolve_tag(parse_block_command(command))
        result = await self.explorer.block_by_tag(tag)
        if not result.found:
            logger.warning(f"Block {tag} unavailable ({result.status.value})")

        return BlockSnapshot(
            command=command,
            block_number=LATEST_BLOCK_LABEL if tag == LATEST_BLOCK_TAG else tag,
            block_info=result.block if result.found else None,
            timestamp=utc_timestamp(),
        )


class PriceAggregator:
    """Turns a currency symbol into a PriceQuote. Nothing is cached."""

    def __init__(self, prices: CoinGeckoClient):
        self.prices = prices

    async def quote(self, currency: str) -> PriceQuote:
        """
        Quote one currency.

        Raises:
            ValidationError: If currency is blank
            NotFoundError: If the upstream has no price for it
            UpstreamError: If the upstream call fails
        """
        if not currency or not currency.strip():
            raise ValidationError("Currency is required")

        slug = resolve_price_slug(currency)
        price = await self.prices.simple_price(slug)
        if price is None:
            raise NotFoundError(f"Price data for {currency} not found")

        return PriceQuote(
            currency=currency.strip().upper(),
            price=price,
            timestamp=utc_timestamp(),
        )
