import logging
from unittest.mock import AsyncMock, MagicMock

from pump_token_tracker.discovery import LAST_SIGNATURE_KEY, ProgramPoller
from pump_token_tracker.rpc import RpcError

PROGRAM = "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P"
LOGGER = logging.getLogger("tests")


def _rpc(signatures):
    rpc = MagicMock()
    rpc.get_signatures_for_address = AsyncMock(return_value=signatures)

    async def get_transaction(signature):
        if signature == "failed_meta":
            return {"meta": {"err": {"InstructionError": [0, "Custom"]}}}
        return {"meta": {"err": None}, "transaction": {"signatures": [signature]}}

    rpc.get_transaction = AsyncMock(side_effect=get_transaction)
    return rpc


async def test_poll_returns_events_oldest_first(db):
    rpc = _rpc(
        [
            {"signature": "newest", "err": None},
            {"signature": "failed", "err": {"InstructionError": []}},
            {"signature": "failed_meta", "err": None},
            {"signature": "oldest", "err": None},
        ]
    )
    poller = ProgramPoller(rpc, db, PROGRAM, 20, LOGGER)
    events = await poller.poll_once()
    assert [event["signature"] for event in events] == ["oldest", "newest"]
    assert events[0]["programId"] == PROGRAM
    assert await db.get_state(LAST_SIGNATURE_KEY) == "newest"
    assert await db.get_state_int("last_poll_at", 0) > 0


async def test_poll_resumes_from_last_signature(db):
    rpc = _rpc([{"signature": "a", "err": None}])
    poller = ProgramPoller(rpc, db, PROGRAM, 20, LOGGER)
    await poller.poll_once()
    rpc.get_signatures_for_address = AsyncMock(return_value=[{"signature": "a", "err": None}])
    assert await poller.poll_once() == []
    rpc.get_signatures_for_address.assert_awaited_once_with(PROGRAM, "a", 20)


async def test_poll_survives_rpc_error(db):
    rpc = MagicMock()
    rpc.get_signatures_for_address = AsyncMock(side_effect=RpcError("down"))
    poller = ProgramPoller(rpc, db, PROGRAM, 20, LOGGER)
    assert await poller.poll_once() == []


async def test_failed_fetch_is_retried_on_next_poll(db):
    rpc = _rpc(
        [
            {"signature": "newest", "err": None},
            {"signature": "middle", "err": None},
            {"signature": "oldest", "err": None},
        ]
    )
    calls = {"middle": 0}

    async def get_transaction(signature):
        if signature == "middle":
            calls["middle"] += 1
            if calls["middle"] == 1:
                raise RpcError("getTransaction: timeout")
        return {"meta": {"err": None}, "transaction": {"signatures": [signature]}}

    rpc.get_transaction = AsyncMock(side_effect=get_transaction)
    poller = ProgramPoller(rpc, db, PROGRAM, 20, LOGGER)

    events = await poller.poll_once()
    assert [event["signature"] for event in events] == ["oldest", "newest"]
    assert await db.get_state(LAST_SIGNATURE_KEY) == "oldest"

    rpc.get_signatures_for_address = AsyncMock(
        return_value=[{"signature": "newest", "err": None}, {"signature": "middle", "err": None}]
    )
    events = await poller.poll_once()
    rpc.get_signatures_for_address.assert_awaited_once_with(PROGRAM, "oldest", 20)
    assert [event["signature"] for event in events] == ["middle"]
    assert await db.get_state(LAST_SIGNATURE_KEY) == "newest"


async def test_pending_transaction_is_not_marked_seen(db):
    rpc = _rpc([{"signature": "fresh", "err": None}])
    rpc.get_transaction = AsyncMock(return_value=None)
    poller = ProgramPoller(rpc, db, PROGRAM, 20, LOGGER)
    assert await poller.poll_once() == []
    assert await db.get_state(LAST_SIGNATURE_KEY) is None

    rpc.get_transaction = AsyncMock(return_value={"meta": {"err": None}})
    events = await poller.poll_once()
    assert [event["signature"] for event in events] == ["fresh"]
    assert await db.get_state(LAST_SIGNATURE_KEY) == "fresh"
