"""
Terminal chat against a running CCC Studio server.

    python -m backend.chat_cli --mode price
"""

import argparse
import asyncio
import logging
import sys

from .chat_client import ChatApiClient
from .config import API_URL
from .interpreter import ChatSession, FeatureMode
from .models import ChatMessage

MODES = {
    "block": FeatureMode.BLOCK_EXPLORER,
    "price": FeatureMode.PRICE_CHECKER,
}


def render(message: ChatMessage) -> str:
    text = f"Assistant: {message.text}"
    if message.block_data:
        text += f"\n  [block {message.block_data.block_number} @ {message.block_data.timestamp}]"
    return text


async def run(api_url: str, mode: FeatureMode, transport=None) -> None:
    async with ChatApiClient(base_url=api_url, transport=transport) as api:
        session = ChatSession(api, mode)
        print(f"Mode: {mode.value}  (':mode block|price' to switch, ':quit' to exit)")
        print(render(session.messages[-1]))

        while True:
            try:
                line = await asyncio.to_thread(input, "> ")
            except (EOFError, KeyboardInterrupt):
                print("\nBye!")
                return

            command = line.strip()
            if command in (":quit", ":q"):
                print("Bye!")
                return
            if command.startswith(":mode"):
                name = command[len(":mode"):].strip()
                if name not in MODES:
                    print(f"Unknown mode '{name}'. Choose one of: {', '.join(MODES)}")
                    continue
                session.select_mode(MODES[name])
                print(f"Mode: {session.mode.value}")
                print(render(session.messages[-1]))
                continue

            reply = await session.send(line)
            if reply:
                print(render(reply))


def main(argv=None, transport=None) -> int:
    parser = argparse.ArgumentParser(description="Chat with the block explorer / price checker")
    parser.add_argument("--mode", choices=sorted(MODES), default="block", help="Initial feature mode")
    parser.add_argument("--api-url", default=API_URL, help="CCC Studio server URL")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log HTTP failures")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.CRITICAL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)

    try:
        asyncio.run(run(args.api_url, MODES[args.mode], transport))
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
