from __future__ import annotations

import itertools
from typing import Any, Dict, List, Optional, Sequence

import aiohttp

from .dexscreener import AsyncRateLimiter, ProviderError, request_json


class RpcError(ProviderError):
    pass


class SolanaRpcClient:
    """Thin JSON-RPC client for the chain-state queries the pipeline needs.

    Every call is a single attempt: failures surface as ``RpcError`` and the
    caller decides whether to fail closed or degrade.
    """

    def __init__(self, session: aiohttp.ClientSession, rpc_url: str, limiter: AsyncRateLimiter, logger):
        self.session = session
        self.rpc_url = rpc_url
        self.limiter = limiter
        self.logger = logger
        self._ids = itertools.count(1)

    async def rpc(self, method: str, params: Sequence[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": list(params)}
        try:
            data = await request_json(self.session, self.limiter, "POST", self.rpc_url, payload=payload)
        except ProviderError as exc:
            raise RpcError(f"{method}: {exc}") from exc
        if not isinstance(data, dict):
            raise RpcError(f"{method}: unexpected response")
        if data.get("error"):
            raise RpcError(f"{method}: {data['error']}")
        return data.get("result")

    async def get_account_info(self, address: str) -> Optional[Dict[str, Any]]:
        result = await self.rpc(
            "getAccountInfo", [address, {"encoding": "jsonParsed", "commitment": "confirmed"}]
        )
        if not isinstance(result, dict):
            raise RpcError("getAccountInfo: missing result")
        value = result.get("value")
        return value if isinstance(value, dict) else None

    async def get_token_largest_accounts(self, mint: str) -> List[Dict[str, Any]]:
        result = await self.rpc("getTokenLargestAccounts", [mint, {"commitment": "confirmed"}])
        value = result.get("value") if isinstance(result, dict) else None
        if not isinstance(value, list):
            raise RpcError("getTokenLargestAccounts: missing value")
        return value

    async def get_token_supply(self, mint: str) -> Dict[str, Any]:
        result = await self.rpc("getTokenSupply", [mint, {"commitment": "confirmed"}])
        value = result.get("value") if isinstance(result, dict) else None
        if not isinstance(value, dict):
            raise RpcError("getTokenSupply: missing value")
        return value

    async def get_signatures_for_address(
        self, address: str, until: Optional[str], limit: int
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"limit": limit, "commitment": "confirmed"}
        if until:
            params["until"] = until
        result = await self.rpc("getSignaturesForAddress", [address, params])
        return result if isinstance(result, list) else []

    async def get_transaction(self, signature: str) -> Optional[Dict[str, Any]]:
        result = await self.rpc(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "jsonParsed",
                    "commitment": "confirmed",
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )
        return result if isinstance(result, dict) else None

    async def get_asset(self, mint: str) -> Optional[Dict[str, Any]]:
        # DAS extension, served by Helius; plain RPC nodes answer with an error.
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": "getAsset", "params": {"id": mint}}
        try:
            data = await request_json(self.session, self.limiter, "POST", self.rpc_url, payload=payload)
        except ProviderError as exc:
            raise RpcError(f"getAsset: {exc}") from exc
        if not isinstance(data, dict) or data.get("error"):
            raise RpcError("getAsset: unsupported or failed")
        result = data.get("result")
        return result if isinstance(result, dict) else None
