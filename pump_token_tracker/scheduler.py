from __future__ import annotations

import asyncio
from typing import Any, Dict, List

from .bot import build_alert_keyboard, format_alert_message, format_top_tokens_header
from .db import record_from_row
from .discovery import ProgramPoller
from .pipeline import AlertDispatcher, TokenPipeline
from .types import AppContext, EventOutcome
from .utils import utc_now_ts

TOP_TOKENS_LOOKBACK_SEC = 24 * 3600
TOP_TOKENS_SEND_DELAY_SEC = 1.0


class Scanner:
    def __init__(
        self,
        app_ctx: AppContext,
        pipeline: TokenPipeline,
        dispatcher: AlertDispatcher,
        poller: ProgramPoller,
    ):
        self.ctx = app_ctx
        self.pipeline = pipeline
        self.dispatcher = dispatcher
        self.poller = poller
        self._poll_lock = asyncio.Lock()
        self._pipeline_lock = asyncio.Lock()
        self._top_lock = asyncio.Lock()

    async def submit(self, batch: List[Dict[str, Any]]) -> List[EventOutcome]:
        # Poller, stream and webhook all feed one pipeline; batches run one at a time.
        async with self._pipeline_lock:
            return await self.pipeline.process(batch)

    async def poll_job(self, context) -> None:
        if self._poll_lock.locked():
            self.ctx.logger.warning("poll_overlap_skip")
            return
        async with self._poll_lock:
            try:
                events = await self.poller.poll_once()
                if events:
                    await self.submit(events)
            except Exception:
                self.ctx.logger.exception("poll_error")

    async def top_tokens_job(self, context) -> None:
        if self._top_lock.locked():
            return
        async with self._top_lock:
            try:
                await self.send_top_tokens()
            except Exception:
                self.ctx.logger.exception("top_tokens_error")

    async def send_top_tokens(self) -> int:
        limit = self.ctx.config.top_tokens_limit
        rows = await self.ctx.db.get_top_tokens(limit, utc_now_ts() - TOP_TOKENS_LOOKBACK_SEC)
        if not rows:
            self.ctx.logger.info("top_tokens_empty")
            return 0
        await self.dispatcher.send(format_top_tokens_header(len(rows)))
        for row in rows:
            record = record_from_row(row)
            await self.dispatcher.send(
                format_alert_message(record),
                reply_markup=build_alert_keyboard(record.address),
                token=record.address,
            )
            await asyncio.sleep(TOP_TOKENS_SEND_DELAY_SEC)
        self.ctx.logger.info("top_tokens_sent", extra={"count": len(rows)})
        return len(rows)
