from pump_token_tracker.dexscreener import WSOL_MINT, quote_from_pairs

MINT = "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"


def _pair(liquidity, price="0.000000003", quote=WSOL_MINT, base=MINT, **extra):
    pair = {
        "baseToken": {"address": base, "name": "Pump Cat", "symbol": "PCAT"},
        "quoteToken": {"address": quote},
        "priceNative": price,
        "liquidity": {"usd": liquidity},
    }
    pair.update(extra)
    return pair


def test_picks_deepest_sol_pair():
    pairs = [
        _pair(1000, price="0.000000001", marketCap=9000),
        _pair(8000, price="0.000000004", marketCap=15000),
        _pair(50000, quote="EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"),
    ]
    quote = quote_from_pairs(pairs, MINT)
    assert quote.price == 4e-9
    assert quote.liquidity == 8000
    assert quote.market_cap == 15000
    assert quote.source == "dexscreener"
    assert quote.name == "Pump Cat"
    assert quote.symbol == "PCAT"


def test_market_cap_falls_back_to_fdv():
    quote = quote_from_pairs([_pair(1000, fdv=7000)], MINT)
    assert quote.market_cap == 7000


def test_no_matching_pair():
    assert quote_from_pairs([], MINT) is None
    assert quote_from_pairs([_pair(1000, base="other")], MINT) is None
    assert quote_from_pairs([_pair(1000, price=None)], MINT) is None
