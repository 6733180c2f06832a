"""
Chat command grammar.

Two intents are understood:
    block [+|-]N   block relative to the chain head; N == 0 is the head itself
    price SYMBOL   current price of SYMBOL
Anything else is Unrecognized.
"""

import re
from dataclasses import dataclass
from typing import Union

_BLOCK = re.compile(r"block\s*([+-]?)\s*(\d+)", re.IGNORECASE)
_PRICE = re.compile(r"price\s+([\w-]+)", re.IGNORECASE)


@dataclass(frozen=True)
class BlockQuery:
    sign: str
    number: int

    @property
    def latest(self) -> bool:
        return self.number == 0

    @property
    def command(self) -> str:
        """Command string the blockchain route understands."""
        if self.latest:
            return "block 0"
        return f"block {self.sign}{self.number}"


@dataclass(frozen=True)
class PriceQuery:
    symbol: str


@dataclass(frozen=True)
class Unrecognized:
    text: str


Intent = Union[BlockQuery, PriceQuery, Unrecognized]


def parse_intent(text: str) -> Intent:
    """
    Classify chat input. The block pattern is tried before the price pattern.

    >>> parse_intent("block -5").command
    'block -5'
    >>> parse_intent("block 7").command
    'block +7'
    >>> parse_intent("block -0").command
    'block 0'
    >>> parse_intent("price icp")
    PriceQuery(symbol='ICP')
    """
    match = _BLOCK.search(text)
    if match:
        sign, digits = match.groups()
        return BlockQuery(sign=sign or "+", number=int(digits))

    match = _PRICE.search(text)
    if match:
        return PriceQuery(symbol=match.group(1).upper())

    return Unrecognized(text=text)
