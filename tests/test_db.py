import json

from pump_token_tracker.db import record_from_row
from pump_token_tracker.metrics import increment_counter, read_counters
from pump_token_tracker.types import TokenRecord

MINT = "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"
OTHER = "CzLSujWBLFsSjncfkh59rUFqvafWcY5tzedWJSuypump"


async def test_upsert_and_read_back(db):
    record = TokenRecord(
        address=MINT,
        name="Pump Cat",
        market_cap=12000,
        supply=1_000_000_000,
        top_holders=((OTHER, 12.5), (MINT, 3.25)),
        degraded=("market",),
    )
    await db.upsert_token(record, False, ["liquidity below min (0 < 4000)"], 100)
    row = await db.get_token(MINT)
    assert row["first_seen_at"] == 100
    assert row["passed"] == 0
    assert record_from_row(row) == record
    assert json.loads(row["reasons_json"]) == ["liquidity below min (0 < 4000)"]


async def test_upsert_keeps_first_seen(db):
    await db.upsert_token(TokenRecord(address=MINT), False, [], 100)
    await db.upsert_token(TokenRecord(address=MINT, market_cap=5), True, [], 200)
    row = await db.get_token(MINT)
    assert row["first_seen_at"] == 100
    assert row["last_updated_at"] == 200
    assert row["passed"] == 1
    assert await db.count_tokens() == 1


async def test_top_tokens_order_and_window(db):
    await db.upsert_token(TokenRecord(address=MINT, market_cap=100), True, [], 1000)
    await db.upsert_token(TokenRecord(address=OTHER, market_cap=900), True, [], 1000)
    await db.upsert_token(TokenRecord(address="x" * 44, market_cap=5000), True, [], 10)
    rows = await db.get_top_tokens(10, min_updated_at=500)
    assert [row["address"] for row in rows] == [OTHER, MINT]


async def test_last_alerted(db):
    await db.upsert_token(TokenRecord(address=MINT), True, [], 100)
    await db.update_last_alerted(MINT, 150)
    row = await db.get_token(MINT)
    assert row["last_alerted_at"] == 150


async def test_state_values(db):
    assert await db.get_state("missing") is None
    assert await db.get_state_int("missing", 7) == 7
    await db.set_state("poller_last_signature", "sig1")
    await db.set_state("poller_last_signature", "sig2")
    assert await db.get_state("poller_last_signature") == "sig2"
    assert await db.increment_state_int("count", 2) == 2
    assert await db.increment_state_int("count", 3) == 5


async def test_counters(db):
    await increment_counter(db, "alerts_sent")
    await increment_counter(db, "alerts_sent")
    counters = await read_counters(db)
    assert counters["alerts_sent"] == 2
    assert counters["events_received"] == 0
