"""Asynchronous helpers for fetching spot prices from CoinGecko."""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import aiohttp
from aiolimiter import AsyncLimiter

from . import config

COINGECKO_LIMITER = AsyncLimiter(30, 60)
QUOTE_ERROR = "Failed to fetch current price"


@dataclass(frozen=True)
class Quote:
    """Result of a spot price lookup."""

    success: bool
    price: Optional[float] = None
    error: Optional[str] = None


def encoded(value: str) -> str:
    """URL-encode an asset ID or currency for use in API requests."""

    return quote(value, safe="-")


async def api_get(
    url: str,
    session: Optional[aiohttp.ClientSession] = None,
    headers: Optional[dict] = None,
    user: Optional[int] = None,
) -> Optional[aiohttp.ClientResponse]:
    """Perform a single HTTP GET request with optional rate limiting.

    Parameters
    ----------
    url:
        Endpoint to request.
    session:
        Existing ``ClientSession`` to use. If omitted a new one is created and
        the body is read before it is closed.
    headers:
        Optional headers to include in the request.
    user:
        User ID used for logging purposes.

    Returns
    -------
    Optional[aiohttp.ClientResponse]
        The response object or ``None`` when the request fails.
    """
    owns_session = session is None
    if owns_session:
        session = aiohttp.ClientSession()
    try:
        limiter = COINGECKO_LIMITER if "coingecko.com" in url else None
        if limiter:
            async with limiter:
                resp = await session.get(url, headers=headers)
        else:
            resp = await session.get(url, headers=headers)
        config.logger.info(
            "api_request user=%s url=%s status=%s", user, url, resp.status
        )
        if owns_session:
            await resp.read()
        return resp
    except aiohttp.ClientError as exc:
        config.logger.error("api request failed: %s", exc)
        return None
    finally:
        if owns_session and session:
            await session.close()


async def get_quote(
    asset_id: str,
    currency: str,
    session: Optional[aiohttp.ClientSession] = None,
    *,
    user: Optional[int] = None,
) -> Quote:
    """Return the current spot price of ``asset_id`` in ``currency``.

    Parameters
    ----------
    asset_id:
        CoinGecko coin ID, e.g. ``polkadot``.
    currency:
        Quote currency such as ``usd``.
    session:
        Optional ``aiohttp`` session used for the request.
    user:
        User ID for logging.

    Returns
    -------
    Quote
        ``success`` is ``False`` with an error message when the request or
        the response body is unusable. This function never raises for
        transport problems and performs exactly one request.
    """
    asset_id = asset_id.lower()
    currency = currency.lower()
    url = (
        f"{config.COINGECKO_BASE_URL}/simple/price"
        f"?ids={encoded(asset_id)}&vs_currencies={encoded(currency)}"
    )
    owns_session = session is None
    if owns_session:
        session = aiohttp.ClientSession()
    try:
        resp = await api_get(
            url, session=session, headers=config.COINGECKO_HEADERS, user=user
        )
        if not resp:
            return Quote(False, error=QUOTE_ERROR)
        if resp.status != 200:
            config.logger.warning(
                "quote request for %s/%s returned HTTP %s",
                asset_id,
                currency,
                resp.status,
            )
            return Quote(False, error=QUOTE_ERROR)
        try:
            data = await resp.json(content_type=None)
            price = float(data[asset_id][currency])
        except (aiohttp.ClientError, ValueError, KeyError, TypeError) as exc:
            config.logger.error(
                "malformed quote for %s/%s: %s", asset_id, currency, exc
            )
            return Quote(False, error=QUOTE_ERROR)
        return Quote(True, price=price)
    finally:
        if owns_session and session:
            await session.close()
