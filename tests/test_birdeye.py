import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from pump_token_tracker.birdeye import BirdeyeClient, _unwrap
from pump_token_tracker.dexscreener import WSOL_MINT, ProviderError

MINT = "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"
LOGGER = logging.getLogger("tests")


def _client(overview, sol_price=150.0):
    client = BirdeyeClient(MagicMock(), MagicMock(), "key", LOGGER)

    async def fake_get(path, address):
        if path == "/defi/token_overview":
            assert address == MINT
            return overview
        assert address == WSOL_MINT
        return {"value": sol_price}

    client._get = AsyncMock(side_effect=fake_get)
    return client


async def test_usd_price_is_converted_to_sol():
    client = _client(
        {"price": 0.0000006, "liquidity": 7000, "marketCap": 600000, "name": "Pump Cat", "symbol": "PCAT"}
    )
    quote = await client.fetch_quote(MINT)
    assert quote.price == pytest.approx(4e-9)
    assert quote.liquidity == 7000
    assert quote.market_cap == 600000
    assert quote.source == "birdeye"
    assert quote.name == "Pump Cat"


async def test_market_cap_falls_back_to_mc():
    quote = await _client({"price": 0.0000006, "mc": 55000}).fetch_quote(MINT)
    assert quote.market_cap == 55000
    assert quote.liquidity == 0.0


async def test_missing_sol_price_is_a_provider_error():
    client = _client({"price": 0.0000006}, sol_price=None)
    with pytest.raises(ProviderError):
        await client.fetch_quote(MINT)


async def test_missing_token_price_is_empty():
    assert await _client({"liquidity": 7000}).fetch_quote(MINT) is None


def test_unwrap_rejects_unsuccessful_payload():
    with pytest.raises(ProviderError):
        _unwrap({"success": False, "data": {}})
    with pytest.raises(ProviderError):
        _unwrap({"success": True})
    assert _unwrap({"success": True, "data": {"value": 1}}) == {"value": 1}
