from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, List, Optional

import aiohttp

RECONNECT_DELAY_SEC = 5.0

BatchHandler = Callable[[List[Dict[str, Any]]], Awaitable[Any]]


def event_from_message(raw: str) -> Optional[Dict[str, Any]]:
    """Map a PumpPortal new-token message to a raw event; anything else yields None."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict) or data.get("txType") != "create":
        return None
    mint = data.get("mint")
    if not isinstance(mint, str):
        return None
    return {
        "type": "TOKEN_MINT",
        "tokenMint": mint,
        "signature": data.get("signature"),
    }


class PumpPortalStream:
    def __init__(self, session: aiohttp.ClientSession, url: str, handler: BatchHandler, logger):
        self.session = session
        self.url = url
        self.handler = handler
        self.logger = logger
        self._running = False

    async def run(self) -> None:
        self._running = True
        while self._running:
            try:
                async with self.session.ws_connect(self.url, heartbeat=30) as ws:
                    await ws.send_str(json.dumps({"method": "subscribeNewToken"}))
                    self.logger.info("stream_connected", extra={"url": self.url})
                    await self._listen(ws)
                self.logger.info("stream_closed")
            except asyncio.CancelledError:
                raise
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
                self.logger.warning("stream_disconnected", extra={"error": str(exc)})
            if self._running:
                await asyncio.sleep(RECONNECT_DELAY_SEC)

    async def _listen(self, ws) -> None:
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                event = event_from_message(msg.data)
                if event is None:
                    continue
                try:
                    await self.handler([event])
                except Exception:
                    self.logger.exception("stream_handler_failed", extra={"token": event["tokenMint"]})
            elif msg.type in (aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR):
                break

    def stop(self) -> None:
        self._running = False
