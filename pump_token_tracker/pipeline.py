from __future__ import annotations

import time
from collections import deque
from typing import Any, Callable, Deque, Iterable, List, Optional, Set, Tuple

from telegram.constants import ParseMode

from .bot import build_alert_keyboard, format_alert_message, format_rejection_message
from .config import FilterStore
from .db import Database
from .enricher import TokenEnricher
from .extractor import extract_candidate
from .filters import evaluate_token
from .metrics import increment_counter
from .rpc import SolanaRpcClient
from .types import EventOutcome, EventStage, FilterResult, TokenRecord
from .utils import utc_now_ts
from .validator import validate_mint


class RateGovernor:
    """Admits at most ``max_events`` per rolling window; the check and the record happen together."""

    def __init__(
        self,
        max_events: int,
        window_sec: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_events = max(0, max_events)
        self.window_sec = window_sec
        self.clock = clock
        self._admitted: Deque[float] = deque()

    def try_acquire(self) -> bool:
        now = self.clock()
        cutoff = now - self.window_sec
        while self._admitted and self._admitted[0] <= cutoff:
            self._admitted.popleft()
        if len(self._admitted) >= self.max_events:
            return False
        self._admitted.append(now)
        return True


class AlertDispatcher:
    def __init__(
        self,
        bot,
        chat_ids: Set[int],
        thread_ids: Set[int],
        logger,
        dry_run: bool = False,
    ):
        self.bot = bot
        self.chat_ids = chat_ids
        self.thread_ids = thread_ids
        self.logger = logger
        self.dry_run = dry_run

    async def send(self, text: str, reply_markup=None, token: Optional[str] = None) -> int:
        """Post ``text`` to every configured chat. Failures are logged, never retried."""
        if self.dry_run:
            print(text)
            return 1
        if not self.chat_ids:
            self.logger.warning("alert_chats_empty_skip_post", extra={"token": token})
            return 0
        sent = 0
        for chat_id in self.chat_ids:
            thread_ids = [None]
            if self.thread_ids and chat_id < 0:
                thread_ids = list(self.thread_ids)
            for thread_id in thread_ids:
                try:
                    kwargs = {}
                    if thread_id is not None:
                        kwargs["message_thread_id"] = thread_id
                    if reply_markup is not None:
                        kwargs["reply_markup"] = reply_markup
                    await self.bot.send_message(
                        chat_id=chat_id,
                        text=text,
                        parse_mode=ParseMode.HTML,
                        disable_web_page_preview=True,
                        **kwargs,
                    )
                    sent += 1
                except Exception:
                    self.logger.exception(
                        "alert_send_failed",
                        extra={"chat_id": chat_id, "thread_id": thread_id, "token": token},
                    )
        return sent


def _event_signature(event: Any) -> Optional[str]:
    if not isinstance(event, dict):
        return None
    signature = event.get("signature")
    if signature is None and isinstance(event.get("transaction"), dict):
        signatures = event["transaction"].get("signatures")
        if isinstance(signatures, list) and signatures:
            signature = signatures[0]
    return str(signature) if signature else None


class TokenPipeline:
    def __init__(
        self,
        rpc: SolanaRpcClient,
        enricher: TokenEnricher,
        filter_store: FilterStore,
        dispatcher: AlertDispatcher,
        db: Database,
        logger,
        governor: RateGovernor,
        dedup_window_sec: int = 3600,
        notify_rejections: bool = True,
        bypass_filters: bool = False,
        clock: Callable[[], int] = utc_now_ts,
    ):
        self.rpc = rpc
        self.enricher = enricher
        self.filter_store = filter_store
        self.dispatcher = dispatcher
        self.db = db
        self.logger = logger
        self.governor = governor
        self.dedup_window_sec = dedup_window_sec
        self.notify_rejections = notify_rejections
        self.bypass_filters = bypass_filters
        self.clock = clock

    async def process(self, batch: Iterable[Any]) -> List[EventOutcome]:
        outcomes: List[EventOutcome] = []
        for event in batch:
            try:
                outcome = await self.process_event(event)
            except Exception:
                self.logger.exception("event_failed", extra={"signature": _event_signature(event)})
                outcome = EventOutcome(stage=EventStage.SKIPPED, reason="error")
            outcomes.append(outcome)
        return outcomes

    def _skip(self, reason: str, address: Optional[str], event: Any) -> EventOutcome:
        self.logger.info(
            "event_skipped",
            extra={"reason": reason, "token": address, "signature": _event_signature(event)},
        )
        return EventOutcome(stage=EventStage.SKIPPED, address=address, reason=reason)

    async def process_event(self, event: Any) -> EventOutcome:
        await increment_counter(self.db, "events_received")

        candidate = extract_candidate(event)
        if candidate is None:
            return self._skip("no_candidate", None, event)
        address = candidate.address

        now = self.clock()
        cached = await self.db.get_token(address)
        if cached is not None and now - cached["last_updated_at"] < self.dedup_window_sec:
            return self._skip("duplicate", address, event)

        if not self.governor.try_acquire():
            await increment_counter(self.db, "events_rate_limited")
            self.logger.info(
                "event_rate_limited",
                extra={"token": address, "max_events": self.governor.max_events},
            )
            return EventOutcome(stage=EventStage.SKIPPED, address=address, reason="rate_limited")

        if not await validate_mint(self.rpc, address, self.logger):
            return self._skip("invalid_mint", address, event)

        record, result = await self._enrich_and_evaluate(address)
        self.logger.info(
            "token_evaluated",
            extra={
                "token": address,
                "source": candidate.source,
                "passed": result.passed,
                "reasons": result.reasons,
                "degraded": list(record.degraded),
            },
        )

        if self.bypass_filters and not result.passed:
            self.logger.info("filters_bypassed", extra={"token": address, "reasons": result.reasons})

        if result.passed or self.bypass_filters:
            sent = await self.dispatcher.send(
                format_alert_message(record),
                reply_markup=build_alert_keyboard(address),
                token=address,
            )
            if sent:
                await self.db.update_last_alerted(address, self.clock())
                await increment_counter(self.db, "alerts_sent")
        elif self.notify_rejections:
            sent = await self.dispatcher.send(
                format_rejection_message(record, result.reasons), token=address
            )
            if sent:
                await increment_counter(self.db, "rejections_sent")
        else:
            return EventOutcome(
                stage=EventStage.EVALUATED,
                address=address,
                passed=False,
                reasons=result.reasons,
            )

        return EventOutcome(
            stage=EventStage.DISPATCHED,
            address=address,
            passed=result.passed,
            reasons=result.reasons,
        )

    async def refresh(self, address: str) -> Tuple[TokenRecord, FilterResult]:
        return await self._enrich_and_evaluate(address)

    async def _enrich_and_evaluate(self, address: str) -> Tuple[TokenRecord, FilterResult]:
        record = await self.enricher.enrich(address)
        result = evaluate_token(record, self.filter_store.current)
        await self.db.upsert_token(record, result.passed, result.reasons, self.clock())
        await increment_counter(self.db, "tokens_evaluated")
        return record, result
