from __future__ import annotations

from collections import OrderedDict
from typing import Any, Dict, List, Optional

from .rpc import RpcError, SolanaRpcClient
from .utils import utc_now_ts

LAST_SIGNATURE_KEY = "poller_last_signature"
SEEN_SIGNATURES_MAX = 2048


class ProgramPoller:
    """Turns recent transactions of a program into raw events for the pipeline."""

    def __init__(self, rpc: SolanaRpcClient, db, program_id: str, limit: int, logger):
        self.rpc = rpc
        self.db = db
        self.program_id = program_id
        self.limit = max(1, limit)
        self.logger = logger
        self._seen: "OrderedDict[str, None]" = OrderedDict()

    def _mark_seen(self, signature: str) -> None:
        self._seen[signature] = None
        self._seen.move_to_end(signature)
        while len(self._seen) > SEEN_SIGNATURES_MAX:
            self._seen.popitem(last=False)

    async def poll_once(self) -> List[Dict[str, Any]]:
        until = await self.db.get_state(LAST_SIGNATURE_KEY)
        try:
            signatures = await self.rpc.get_signatures_for_address(self.program_id, until, self.limit)
        except RpcError as exc:
            self.logger.warning("poll_signatures_failed", extra={"error": str(exc)})
            return []
        await self.db.set_state("last_poll_at", str(utc_now_ts()))
        if not signatures:
            return []

        events: List[Dict[str, Any]] = []
        cursor = until
        blocked = False
        # Oldest first, so alerts follow chain order. The cursor never moves past
        # a signature whose transaction could not be fetched yet.
        for entry in reversed(signatures):
            signature = entry.get("signature")
            if not signature:
                continue
            if signature not in self._seen and not entry.get("err"):
                tx = await self._fetch_transaction(signature)
                if tx is None:
                    blocked = True
                    continue
                self._mark_seen(signature)
                event = self._event_from_transaction(signature, tx)
                if event is not None:
                    events.append(event)
            if not blocked:
                cursor = signature

        if cursor and cursor != until:
            await self.db.set_state(LAST_SIGNATURE_KEY, cursor)
        self.logger.info(
            "poll_complete",
            extra={
                "signatures": len(signatures),
                "events": len(events),
                "program": self.program_id,
                "blocked": blocked,
            },
        )
        return events

    async def _fetch_transaction(self, signature: str) -> Optional[Dict[str, Any]]:
        try:
            tx = await self.rpc.get_transaction(signature)
        except RpcError as exc:
            self.logger.warning(
                "poll_transaction_failed", extra={"signature": signature, "error": str(exc)}
            )
            return None
        if not tx:
            self.logger.debug("poll_transaction_pending", extra={"signature": signature})
            return None
        return tx

    def _event_from_transaction(self, signature: str, tx: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        meta = tx.get("meta")
        if isinstance(meta, dict) and meta.get("err"):
            return None
        event = dict(tx)
        event["signature"] = signature
        event["programId"] = self.program_id
        return event
