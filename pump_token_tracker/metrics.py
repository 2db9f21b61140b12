from __future__ import annotations

from typing import Dict, Iterable

COUNTER_KEYS = (
    "events_received",
    "events_rate_limited",
    "tokens_evaluated",
    "alerts_sent",
    "rejections_sent",
)


async def increment_counter(db, key: str, amount: int = 1) -> int:
    return await db.increment_state_int(f"metrics_{key}", amount)


async def read_counters(db, keys: Iterable[str] = COUNTER_KEYS) -> Dict[str, int]:
    counters: Dict[str, int] = {}
    for key in keys:
        counters[key] = await db.get_state_int(f"metrics_{key}", 0)
    return counters
