"""Configuration and helper utilities for AxenBot.

This module loads environment variables, configures logging and exposes
constants used across the bot.
"""

import logging
import os
import re
from logging.handlers import WatchedFileHandler

from dotenv import load_dotenv

load_dotenv()


def parse_duration(value: str) -> int:
    """Return seconds for a duration string like '30s' or '1m'."""
    if value.isdigit():
        return int(value)
    match = re.fullmatch(r"(\d+)([dhms])", value.lower())
    if not match:
        raise ValueError("invalid interval format")
    num, unit = match.groups()
    factor = {"d": 86400, "h": 3600, "m": 60, "s": 1}[unit]
    return int(num) * factor


def format_interval(seconds: int) -> str:
    """Return a short string representation for a duration in seconds."""
    if seconds % 86400 == 0:
        return f"{seconds // 86400}d"
    if seconds % 3600 == 0:
        return f"{seconds // 3600}h"
    if seconds % 60 == 0:
        return f"{seconds // 60}m"
    return f"{seconds}s"


BOT_NAME = "Axen"
TELEGRAM_TOKEN = os.getenv("TELEGRAM_TOKEN")

PRICE_ASSET = os.getenv("PRICE_ASSET", "polkadot").lower()
PRICE_SYMBOL = os.getenv("PRICE_SYMBOL", "DOT").upper()
VS_CURRENCY = os.getenv("DEFAULT_VS_CURRENCY", "usd").lower()

COINGECKO_API_KEY = os.getenv("COINGECKO_API_KEY")
COINGECKO_BASE_URL = (
    os.getenv("COINGECKO_BASE_URL") or "https://api.coingecko.com/api/v3"
)
COINGECKO_HEADERS = (
    {"x-cg-pro-api-key": COINGECKO_API_KEY} if COINGECKO_API_KEY else None
)

CHART_BASE_URL = os.getenv("CHART_BASE_URL", "https://quickchart.io/chart")
CHART_POINTS = int(os.getenv("CHART_POINTS", "10"))
# "quickchart" sends a URL, "local" renders a PNG with matplotlib
CHART_RENDERER = os.getenv("CHART_RENDERER", "quickchart").lower()

STRATEGY_INTERVAL = parse_duration(os.getenv("STRATEGY_INTERVAL", "30s"))
SUBSCRIPTION_DB = os.getenv("SUBSCRIPTION_DB")

DEPOSIT_URL = os.getenv("DEPOSIT_URL", "https://botaxen.netlify.app/deposit.html")
WITHDRAW_URL = os.getenv(
    "WITHDRAW_URL", "https://botaxen.netlify.app/withdraw.html"
)

RPC_URL = os.getenv("RPC_URL", "https://westend-asset-hub-eth-rpc.polkadot.io")
VAULT_ADDRESS = os.getenv("VAULT_ADDRESS")
VAULT_ABI_PATH = os.getenv("VAULT_ABI_PATH")
VAULT_DECIMALS = int(os.getenv("VAULT_DECIMALS", "18"))

STRATEGIES: tuple[str, ...] = (
    "\U0001f680 *Strategy Alert*\n\n\U0001f4e5 Recommend: *Deposit into Axen Vault "
    "for maximum profit this Sunday!*.\nRationale: Optimized yield conditions "
    "detected across parachains. \U0001f4c8",
    "⚡ *Strategy Alert*\n\n\U0001f4e4 Action: *Withdraw partial assets from "
    "your Axen Vault*.\nRisk Level: Short-term volatility spike on monitored "
    "assets. \U0001f6e1️",
    "\U0001f310 *Strategy Alert*\n\n\U0001f504 Suggestion: *Maintain current "
    "deposits in Axen Vault*.\nReason: Cross-chain liquidity inflows stabilizing "
    "positions. \U0001f517",
    "\U0001f4c8 *Strategy Alert*\n\n\U0001f4e5 Immediate: *Increase your position "
    "in Axen Vault*.\nMomentum: Uptrend signals confirmed in yield metrics. "
    "\U0001f680",
    "\U0001f48e *Strategy Alert*\n\n\U0001f4bc Advisory: *Hold assets within Axen "
    "Vault*.\nStrategy: Long-term APY and security remain strong. "
    "\U0001f6e1️",
    "\U0001f525 *Strategy Alert*\n\n⚡ Tactical Move: *Consider partial "
    "withdrawal from Axen Vault*.\nOpportunity: Arbitrage windows active across "
    "secondary pools. ⏳",
)

LOG_FILE = os.getenv("LOG_FILE")
_handlers = [logging.StreamHandler()]
if LOG_FILE:
    _handlers.append(WatchedFileHandler(LOG_FILE))

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    handlers=_handlers,
    force=True,
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("apscheduler").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)
