"""
Command Interpreter

Client-side half of the chat. A ChatSession owns the transcript for one
feature mode, gates input on that mode, dispatches it to the chat routes
and renders the answer as a system message.
"""

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from .chat_client import ChatApiClient
from .config import PRICE_VS_CURRENCY, REFERENCE_CURRENCIES
from .intents import BlockQuery, PriceQuery, parse_intent
from .models import BlockSnapshot, ChatMessage, MessageOrigin, PriceQuote

logger = logging.getLogger(__name__)

GREETING = "こんにちは！ 操作語を入力して下さい"
THINKING = "考え中..."
USAGE_HINT = "\"block 0\"（最新ブロック）や\"block -1\"（1つ前のブロック）など、block情報のみ対応しています。"
MODE_MISMATCH = "現在の機能選択では操作語「{keyword}」のみ使用できます"
BLOCK_FAILED = "ブロックチェーン情報の取得に失敗しました。もう一度お試しください。"
PRICE_FAILED = "価格情報の取得に失敗しました。もう一度お試しください。"
GENERIC_FAILED = "すみません、エラーが発生しました。もう一度お試しください。"

FIAT_SIGNS = {"jpy": "¥", "usd": "$", "eur": "€", "gbp": "£"}

REFERENCE_LABELS = {
    "bitcoin": "Bitcoin (BTC)",
    "ethereum": "Ethereum (ETH)",
}


class FeatureMode(str, Enum):
    BLOCK_EXPLORER = "EVM Block Explorer"
    PRICE_CHECKER = "ICP価格チェッカー"

    @property
    def keyword(self) -> str:
        return "block" if self is FeatureMode.BLOCK_EXPLORER else "price"


def system_message(text: str, block_data: Optional[BlockSnapshot] = None) -> ChatMessage:
    return ChatMessage(origin=MessageOrigin.SYSTEM, text=text, block_data=block_data)


def format_local_time(timestamp: str) -> str:
    """Render an ISO-8601 timestamp in local time, e.g. 2026/10/17 12:34:56."""
    moment = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    return moment.astimezone().strftime("%Y/%m/%d %H:%M:%S")


def format_money(amount: float, unit: str = PRICE_VS_CURRENCY) -> str:
    sign = FIAT_SIGNS.get(unit.lower())
    if sign:
        return f"{sign}{amount:.2f}"
    return f"{amount:.2f} {unit.upper()}"


def format_block(snapshot: BlockSnapshot) -> str:
    """Summarise a block snapshot for the transcript."""
    lines = [f"ブロック {snapshot.block_number} の情報:"]
    info = snapshot.block_info
    if not info:
        lines.append("ブロック情報を取得できませんでした。")
        return "\n".join(lines)

    block_hash = info.get("hash") or ""
    parent_hash = info.get("parentHash") or ""
    lines.extend([
        f"・ハッシュ: {block_hash[:12] or 'なし'}...{block_hash[60:]}",
        f"・親ハッシュ: {parent_hash[:8] or 'なし'}...{parent_hash[60:]}",
        f"・トランザクション数: {len(info.get('transactions') or [])}",
        f"・ガス使用量: {int(info.get('gasUsed') or '0', 16)}",
        f"・ガスリミット: {int(info.get('gasLimit') or '0', 16)}",
    ])
    return "\n".join(lines)


def format_prices(quote: PriceQuote, references: Tuple[PriceQuote, ...]) -> str:
    """Summarise a price quote plus the reference currencies."""
    lines = [
        f"通貨 {quote.currency} の現在価格:",
        f"・価格: {format_money(quote.price)}",
        f"・取得時刻: {format_local_time(quote.timestamp)}",
        "",
        "その他の通貨:",
    ]
    for slug, ref in zip(REFERENCE_CURRENCIES, references):
        label = REFERENCE_LABELS.get(slug, ref.currency)
        lines.append(f"・{label}: {format_money(ref.price)}")
    return "\n".join(lines)


class ChatSession:
    """
    Transcript and dispatcher for one chat widget.

    The transcript is append-only; the thinking placeholder is replaced by
    dropping the last message and appending the answer.
    """

    def __init__(self, api: ChatApiClient, mode: FeatureMode = FeatureMode.BLOCK_EXPLORER):
        self.api = api
        self.mode = mode
        self._messages: Tuple[ChatMessage, ...] = (system_message(GREETING),)

    @property
    def messages(self) -> Tuple[ChatMessage, ...]:
        return self._messages

    def select_mode(self, mode: FeatureMode) -> None:
        """Switch feature mode; the transcript restarts from the greeting."""
        self.mode = mode
        self._messages = (system_message(GREETING),)
        logger.info(f"Feature mode set to {mode.value}")

    def _append(self, message: ChatMessage) -> None:
        self._messages = self._messages + (message,)

    def _replace_last(self, message: ChatMessage) -> None:
        self._messages = self._messages[:-1] + (message,)

    async def send(self, text: str) -> Optional[ChatMessage]:
        """
        Handle one line of user input.

        Returns:
            The system reply that replaced the thinking placeholder,
            or None for blank input. Never raises.
        """
        text = text.strip()
        if not text:
            return None

        self._append(ChatMessage(origin=MessageOrigin.USER, text=text))
        self._append(system_message(THINKING))

        try:
            reply = await self._dispatch(text)
        except Exception:
            logger.exception("Chat turn failed")
            reply = system_message(GENERIC_FAILED)

        self._replace_last(reply)
        return reply

    async def _dispatch(self, text: str) -> ChatMessage:
        if not text.lower().startswith(self.mode.keyword):
            return system_message(MODE_MISMATCH.format(keyword=self.mode.keyword))

        intent = parse_intent(text)
        if isinstance(intent, BlockQuery) and self.mode is FeatureMode.BLOCK_EXPLORER:
            return await self._answer_block(intent)
        if isinstance(intent, PriceQuery) and self.mode is FeatureMode.PRICE_CHECKER:
            return await self._answer_price(intent)
        return system_message(USAGE_HINT)

    async def _answer_block(self, query: BlockQuery) -> ChatMessage:
        try:
            snapshot = await self.api.lookup_block(query.command)
            return system_message(format_block(snapshot), block_data=snapshot)
        except Exception as e:
            logger.error(f"Block fetch error for '{query.command}': {e}")
            return system_message(BLOCK_FAILED)

    async def _answer_price(self, query: PriceQuery) -> ChatMessage:
        try:
            results = await asyncio.gather(
                self.api.get_price(query.symbol),
                *(self.api.get_price(slug) for slug in REFERENCE_CURRENCIES),
                return_exceptions=True,
            )
            for result in results:
                if isinstance(result, BaseException):
                    raise result
            quote, *references = results
            return system_message(format_prices(quote, tuple(references)))
        except Exception as e:
            logger.error(f"Price fetch error for {query.symbol}: {e}")
            return system_message(PRICE_FAILED)
