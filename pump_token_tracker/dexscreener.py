from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, List, Optional

import aiohttp

from .types import MarketQuote
from .utils import to_float

WSOL_MINT = "So11111111111111111111111111111111111111112"


class ProviderError(Exception):
    pass


class RetryableError(ProviderError):
    pass


class AsyncRateLimiter:
    def __init__(self, max_rps: int, max_concurrency: int):
        self.min_interval = 1.0 / max(1, max_rps)
        self.sem = asyncio.Semaphore(max(1, max_concurrency))
        self.lock = asyncio.Lock()
        self.last_ts = 0.0

    async def run(self, coro_fn):
        async with self.sem:
            async with self.lock:
                now = time.monotonic()
                wait = self.min_interval - (now - self.last_ts)
                if wait > 0:
                    await asyncio.sleep(wait)
                self.last_ts = time.monotonic()
            return await coro_fn()


async def request_json(
    session: aiohttp.ClientSession,
    limiter: AsyncRateLimiter,
    method: str,
    url: str,
    payload: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, str]] = None,
) -> Any:
    """Issue one rate-limited request and return the decoded JSON body.

    Raises ``RetryableError`` for 429/5xx and transport failures and
    ``ProviderError`` for any other non-200 answer. Retrying is the caller's call.
    """
    request_headers = {"Accept": "application/json"}
    if headers:
        request_headers.update(headers)

    async def _do_request():
        if method == "GET":
            return await session.get(url, headers=request_headers, params=params)
        return await session.post(url, json=payload, headers=request_headers, params=params)

    try:
        resp = await limiter.run(_do_request)
    except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
        raise RetryableError(f"request failed: {exc!r}") from exc
    try:
        if resp.status == 429 or resp.status >= 500:
            text = await resp.text()
            raise RetryableError(f"status {resp.status}: {text[:200]}")
        if resp.status != 200:
            raise ProviderError(f"status {resp.status}")
        try:
            return await resp.json(content_type=None)
        except (aiohttp.ClientError, ValueError) as exc:
            raise ProviderError(f"invalid json: {exc}") from exc
    finally:
        resp.release()


def _liquidity_usd(pair: Dict[str, Any]) -> float:
    liquidity = pair.get("liquidity")
    if isinstance(liquidity, dict):
        return to_float(liquidity.get("usd")) or 0.0
    return 0.0


def quote_from_pairs(pairs: List[Dict[str, Any]], token_address: str) -> Optional[MarketQuote]:
    """Pick the deepest pair quoting ``token_address`` as base token against SOL."""
    best: Optional[Dict[str, Any]] = None
    for pair in pairs:
        if not isinstance(pair, dict):
            continue
        base = pair.get("baseToken")
        if not isinstance(base, dict) or base.get("address") != token_address:
            continue
        quote_token = pair.get("quoteToken")
        if isinstance(quote_token, dict) and quote_token.get("address") not in (None, WSOL_MINT):
            continue
        if best is None or _liquidity_usd(pair) > _liquidity_usd(best):
            best = pair
    if best is None:
        return None

    price = to_float(best.get("priceNative"))
    if price is None:
        return None
    market_cap = to_float(best.get("marketCap"))
    if market_cap is None:
        market_cap = to_float(best.get("fdv")) or 0.0
    base = best["baseToken"]
    return MarketQuote(
        price=price,
        liquidity=_liquidity_usd(best),
        market_cap=market_cap,
        source="dexscreener",
        name=base.get("name") or None,
        symbol=base.get("symbol") or None,
    )


class DexscreenerClient:
    name = "dexscreener"

    def __init__(self, session: aiohttp.ClientSession, limiter: AsyncRateLimiter, logger):
        self.session = session
        self.limiter = limiter
        self.logger = logger
        self.base_url = "https://api.dexscreener.com"

    async def get_token_pairs(self, chain_id: str, token_address: str) -> List[Dict[str, Any]]:
        url = f"{self.base_url}/token-pairs/v1/{chain_id}/{token_address}"
        data = await request_json(self.session, self.limiter, "GET", url)
        if isinstance(data, dict) and "pairs" in data:
            return data.get("pairs") or []
        if isinstance(data, list):
            return data
        return []

    async def fetch_quote(self, token_address: str) -> Optional[MarketQuote]:
        pairs = await self.get_token_pairs("solana", token_address)
        return quote_from_pairs(pairs, token_address)
