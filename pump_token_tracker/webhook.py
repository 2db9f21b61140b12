from __future__ import annotations

import asyncio
import hmac
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from aiohttp import web

SECRET_HEADER = "x-helius-webhook-secret"

BatchHandler = Callable[[List[Dict[str, Any]]], Awaitable[Any]]


class WebhookReceiver:
    """Accepts pushed event batches and hands them to the pipeline off the request path."""

    def __init__(self, handler: BatchHandler, secret: str, logger):
        self.handler = handler
        self.secret = secret
        self.logger = logger
        self._tasks: Set[asyncio.Task] = set()
        self._runner: Optional[web.AppRunner] = None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/", self.health)
        app.router.add_post("/webhook", self.receive)
        return app

    async def health(self, request: web.Request) -> web.Response:
        return web.Response(text="Pump Token Tracker is running!")

    async def receive(self, request: web.Request) -> web.Response:
        if self.secret:
            supplied = request.headers.get(SECRET_HEADER, "")
            if not hmac.compare_digest(
                supplied.encode("utf-8", "surrogateescape"), self.secret.encode("utf-8")
            ):
                self.logger.warning("webhook_bad_secret", extra={"remote": request.remote})
                return web.Response(status=401, text="Unauthorized")
        try:
            body = await request.json()
        except ValueError:
            return web.Response(status=400, text="Invalid JSON")
        if isinstance(body, dict):
            body = [body]
        if not isinstance(body, list):
            return web.Response(status=400, text="Expected a list of events")

        events = [event for event in body if isinstance(event, dict)]
        self.logger.info("webhook_batch_received", extra={"events": len(events)})
        if events:
            task = asyncio.create_task(self._run_batch(events))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return web.Response(text="OK")

    async def _run_batch(self, events: List[Dict[str, Any]]) -> None:
        try:
            await self.handler(events)
        except Exception:
            self.logger.exception("webhook_batch_failed", extra={"events": len(events)})

    async def start(self, host: str, port: int) -> None:
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, host, port)
        await site.start()
        self.logger.info("webhook_listening", extra={"host": host, "port": port})

    async def stop(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
