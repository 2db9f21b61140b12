from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .dexscreener import ProviderError, RetryableError
from .retry import retry_with_default
from .rpc import SolanaRpcClient
from .types import ChainMetadata, HolderStats, MarketQuote, TokenRecord
from .utils import to_float, to_int

TOP_HOLDERS_LIMIT = 10


def _parsed_mint_info(account: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not isinstance(account, dict):
        return None
    data = account.get("data")
    parsed = data.get("parsed") if isinstance(data, dict) else None
    info = parsed.get("info") if isinstance(parsed, dict) else None
    return info if isinstance(info, dict) else None


def holder_stats_from_amounts(largest_amount: int, total_supply: int) -> Optional[HolderStats]:
    """Largest-holder share of supply; pool supply is whatever that holder does not own."""
    if total_supply <= 0:
        return None
    dev_holding = min(100.0, max(0.0, largest_amount / total_supply * 100))
    return HolderStats(dev_holding=dev_holding, pool_supply=100.0 - dev_holding)


def top_holder_shares(
    largest: List[Dict[str, Any]], total_supply: int, limit: int = TOP_HOLDERS_LIMIT
) -> Tuple[Tuple[str, float], ...]:
    if total_supply <= 0:
        return ()
    shares = []
    for account in largest[:limit]:
        address = account.get("address")
        amount = to_int(account.get("amount"))
        if not address or amount is None:
            continue
        shares.append((address, amount / total_supply * 100))
    return tuple(shares)


def supply_ui_amount(supply: Dict[str, Any]) -> float:
    ui_amount = to_float(supply.get("uiAmountString"))
    if ui_amount is not None:
        return ui_amount
    amount = to_int(supply.get("amount")) or 0
    decimals = to_int(supply.get("decimals")) or 0
    return amount / 10 ** decimals


class TokenEnricher:
    def __init__(
        self,
        rpc: SolanaRpcClient,
        providers: Sequence[Any],
        logger,
        retry_attempts: int = 3,
        retry_delay_sec: float = 2.0,
    ):
        self.rpc = rpc
        self.providers = list(providers)
        self.logger = logger
        self.retry_attempts = retry_attempts
        self.retry_delay_sec = retry_delay_sec

    async def enrich(self, address: str) -> TokenRecord:
        chain, market, holders = await asyncio.gather(
            self._guarded("chain", self.fetch_chain_metadata(address), address),
            self._guarded("market", self.fetch_market_quote(address), address),
            self._guarded("holders", self.fetch_holder_stats(address), address),
        )

        record = TokenRecord(address=address)
        degraded: List[str] = []

        if chain is not None:
            record.decimals = chain.decimals
            record.mint_auth_revoked = chain.mint_auth_revoked
            record.freeze_auth_revoked = chain.freeze_auth_revoked
            if chain.name:
                record.name = chain.name
            if chain.symbol:
                record.symbol = chain.symbol
        else:
            degraded.append("chain")

        if market is not None:
            record.price = max(0.0, market.price)
            record.liquidity = max(0.0, market.liquidity)
            record.market_cap = max(0.0, market.market_cap)
            record.market_source = market.source
            if record.name == "Unknown" and market.name:
                record.name = market.name
            if not record.symbol and market.symbol:
                record.symbol = market.symbol
        else:
            degraded.append("market")

        if holders is not None:
            record.dev_holding = holders.dev_holding
            record.pool_supply = holders.pool_supply
            record.supply = holders.supply
            record.top_holders = holders.top_holders
        else:
            degraded.append("holders")

        record.degraded = tuple(degraded)
        if degraded:
            self.logger.info("enrichment_degraded", extra={"token": address, "groups": degraded})
        return record

    async def _guarded(self, group: str, coro, address: str):
        try:
            return await coro
        except Exception as exc:
            self.logger.warning(
                "enrichment_group_failed",
                extra={"token": address, "group": group, "error": str(exc)},
            )
            return None

    async def fetch_chain_metadata(self, address: str) -> Optional[ChainMetadata]:
        info = _parsed_mint_info(await self.rpc.get_account_info(address))
        if info is None:
            return None
        name = None
        symbol = None
        try:
            asset = await self.rpc.get_asset(address)
        except Exception as exc:
            self.logger.debug("asset_lookup_failed", extra={"token": address, "error": str(exc)})
            asset = None
        if isinstance(asset, dict):
            metadata = (asset.get("content") or {}).get("metadata") or {}
            name = (metadata.get("name") or "").strip() or None
            symbol = (metadata.get("symbol") or "").strip() or None
        decimals = to_int(info.get("decimals"))
        return ChainMetadata(
            decimals=decimals if decimals is not None else 9,
            mint_auth_revoked=info.get("mintAuthority") is None,
            freeze_auth_revoked=info.get("freezeAuthority") is None,
            name=name,
            symbol=symbol,
        )

    async def fetch_market_quote(self, address: str) -> Optional[MarketQuote]:
        for provider in self.providers:
            try:
                quote = await retry_with_default(
                    lambda provider=provider: provider.fetch_quote(address),
                    default=lambda: None,
                    attempts=self.retry_attempts,
                    delay_sec=self.retry_delay_sec,
                    retry_on=(RetryableError,),
                    logger=self.logger,
                    label=f"{provider.name}:{address}",
                )
            except ProviderError as exc:
                self.logger.warning(
                    "market_provider_failed",
                    extra={"token": address, "provider": provider.name, "error": str(exc)},
                )
                quote = None
            if quote is not None:
                return quote
            self.logger.info(
                "market_provider_exhausted", extra={"token": address, "provider": provider.name}
            )
        return None

    async def fetch_holder_stats(self, address: str) -> Optional[HolderStats]:
        largest = await self.rpc.get_token_largest_accounts(address)
        supply = await self.rpc.get_token_supply(address)
        if not largest:
            return None
        largest_amount = to_int(largest[0].get("amount")) or 0
        total_supply = to_int(supply.get("amount")) or 0
        stats = holder_stats_from_amounts(largest_amount, total_supply)
        if stats is None:
            return None
        return replace(
            stats,
            supply=supply_ui_amount(supply),
            top_holders=top_holder_shares(largest, total_supply),
        )
