from __future__ import annotations

from typing import Any, Dict, Optional

import aiohttp

from .dexscreener import WSOL_MINT, AsyncRateLimiter, ProviderError, request_json
from .types import MarketQuote
from .utils import to_float


def _unwrap(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, dict) or not payload.get("success", True):
        raise ProviderError("birdeye request unsuccessful")
    data = payload.get("data")
    if not isinstance(data, dict):
        raise ProviderError("birdeye response missing data")
    return data


class BirdeyeClient:
    """Secondary market-data provider. Birdeye quotes in USD, so prices are converted to SOL."""

    name = "birdeye"

    def __init__(
        self, session: aiohttp.ClientSession, limiter: AsyncRateLimiter, api_key: str, logger
    ):
        self.session = session
        self.limiter = limiter
        self.api_key = api_key
        self.logger = logger
        self.base_url = "https://public-api.birdeye.so"

    async def _get(self, path: str, address: str) -> Dict[str, Any]:
        headers = {"X-API-KEY": self.api_key, "x-chain": "solana"}
        payload = await request_json(
            self.session,
            self.limiter,
            "GET",
            f"{self.base_url}{path}",
            headers=headers,
            params={"address": address},
        )
        return _unwrap(payload)

    async def get_token_overview(self, address: str) -> Dict[str, Any]:
        return await self._get("/defi/token_overview", address)

    async def get_price_usd(self, address: str) -> Optional[float]:
        data = await self._get("/defi/price", address)
        return to_float(data.get("value"))

    async def fetch_quote(self, token_address: str) -> Optional[MarketQuote]:
        overview = await self.get_token_overview(token_address)
        price_usd = to_float(overview.get("price"))
        if price_usd is None:
            return None
        sol_usd = await self.get_price_usd(WSOL_MINT)
        if not sol_usd:
            raise ProviderError("birdeye SOL price unavailable")
        market_cap = to_float(overview.get("marketCap"))
        if market_cap is None:
            market_cap = to_float(overview.get("mc")) or 0.0
        return MarketQuote(
            price=price_usd / sol_usd,
            liquidity=to_float(overview.get("liquidity")) or 0.0,
            market_cap=market_cap,
            source=self.name,
            name=overview.get("name") or None,
            symbol=overview.get("symbol") or None,
        )
