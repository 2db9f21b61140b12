from unittest.mock import AsyncMock

import pytest

from pump_token_tracker.retry import EmptyResultError, retry_async, retry_with_default


async def test_returns_first_success():
    operation = AsyncMock(side_effect=[RuntimeError("boom"), None, 42])
    assert await retry_async(operation, attempts=3, delay_sec=0) == 42
    assert operation.await_count == 3


async def test_raises_last_error():
    operation = AsyncMock(side_effect=[ValueError("first"), RuntimeError("last")])
    with pytest.raises(RuntimeError, match="last"):
        await retry_async(operation, attempts=2, delay_sec=0)


async def test_all_empty_results():
    operation = AsyncMock(return_value=None)
    with pytest.raises(EmptyResultError):
        await retry_async(operation, attempts=3, delay_sec=0)
    assert operation.await_count == 3


async def test_unlisted_errors_propagate_immediately():
    operation = AsyncMock(side_effect=KeyError("nope"))
    with pytest.raises(KeyError):
        await retry_async(operation, attempts=3, delay_sec=0, retry_on=(ValueError,))
    assert operation.await_count == 1


async def test_default_after_exhaustion():
    operation = AsyncMock(side_effect=RuntimeError("down"))
    result = await retry_with_default(operation, default=lambda: "fallback", attempts=2, delay_sec=0)
    assert result == "fallback"
    assert operation.await_count == 2


async def test_default_not_used_on_success():
    operation = AsyncMock(return_value={"price": 1})
    result = await retry_with_default(operation, default=dict, attempts=2, delay_sec=0)
    assert result == {"price": 1}
