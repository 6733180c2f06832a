"""
CCC Studio Configuration

Handles environment configuration for the server and its upstream APIs.
"""

import os

from dotenv import load_dotenv

# Load .env before any constant below is read
load_dotenv()


# Server configuration
HOST = os.getenv("CCC_HOST", "127.0.0.1")
PORT = int(os.getenv("CCC_PORT", "7777"))

# Base URL the chat client uses to reach this server
API_URL = os.getenv("CCC_API_URL", f"http://{HOST}:{PORT}")

# Seed the demo user and sample files at startup
SEED_DEMO_DATA = os.getenv("CCC_SEED_DEMO_DATA", "1").lower() not in ("0", "false", "no")

# Etherscan proxy API (block explorer)
# Calls still go out without a key, just rate-limited
ETHERSCAN_BASE_URL = os.getenv("ETHERSCAN_BASE_URL", "https://api.etherscan.io/api")
ETHERSCAN_API_KEY = os.getenv("ETHERSCAN_API_KEY", "")

# CoinGecko API (price checker)
COINGECKO_BASE_URL = os.getenv("COINGECKO_BASE_URL", "https://api.coingecko.com/api/v3")
COINGECKO_API_KEY = os.getenv("COINGECKO_API_KEY", "")

# Fiat unit every price is quoted in
PRICE_VS_CURRENCY = os.getenv("PRICE_VS_CURRENCY", "jpy").lower()

# Seconds before any upstream call is abandoned
UPSTREAM_TIMEOUT = float(os.getenv("UPSTREAM_TIMEOUT", "10.0"))

# Symbols whose CoinGecko slug differs from the symbol itself
PRICE_ALIASES = {
    "ICP": "internet-computer",
}

# Shown next to every price answer in the chat
REFERENCE_CURRENCIES = ("bitcoin", "ethereum")

# Label returned instead of the literal "latest" tag
LATEST_BLOCK_TAG = "latest"
LATEST_BLOCK_LABEL = "最新ブロック"


def resolve_price_slug(currency: str) -> str:
    """
    Map a user-facing currency symbol to the CoinGecko id.

    Args:
        currency: Symbol or id as typed (case-insensitive)

    Returns:
        Lower-case CoinGecko id
    """
    alias = PRICE_ALIASES.get(currency.strip().upper())
    return (alias or currency.strip()).lower()
