import pytest

from pump_token_tracker.config import FilterConfig, FilterStore, Range, load_config


def _filters() -> FilterConfig:
    return FilterConfig(
        liquidity=Range(4000, 25000),
        pool_supply=Range(60, 95),
        dev_holding=Range(2, 10),
        launch_price=Range(2.2e-9, 5.8e-9),
    )


def test_set_range_bumps_version():
    store = FilterStore(_filters())
    before = store.current
    updated = store.set_range("liquidity", 1000, 5000)
    assert updated.liquidity == Range(1000, 5000)
    assert updated.version == 2
    assert store.current is updated
    assert before.liquidity == Range(4000, 25000)
    assert before.version == 1


def test_set_flag():
    store = FilterStore(_filters())
    assert store.set_flag("mint_auth_revoked", False).mint_auth_revoked is False


def test_rejects_bad_edits():
    store = FilterStore(_filters())
    with pytest.raises(ValueError):
        store.set_range("liquidity", 10, 1)
    with pytest.raises(ValueError):
        store.set_range("volume", 1, 10)
    with pytest.raises(ValueError):
        store.set_flag("liquidity", True)
    assert store.current.version == 1


def test_load_config_defaults(monkeypatch):
    for name in ("RPC_URL", "HELIUS_API_KEY", "SOURCES", "ALERT_CHAT_IDS", "FILTER_LIQUIDITY_MIN"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("BOT_TOKEN", "123:abc")
    monkeypatch.setenv("ALLOWED_CHAT_IDS", "-100123, 42")
    config = load_config()
    assert config.alert_chat_ids == {-100123, 42}
    assert config.sources == ["poll"]
    assert config.rpc_url == "https://api.mainnet-beta.solana.com"
    assert config.rate_limit_events == 5
    assert config.filters.liquidity == Range(4000, 25000)
    assert config.filters.mint_auth_revoked is True


def test_load_config_helius_rpc(monkeypatch):
    monkeypatch.delenv("RPC_URL", raising=False)
    monkeypatch.setenv("BOT_TOKEN", "123:abc")
    monkeypatch.setenv("HELIUS_API_KEY", "key")
    monkeypatch.setenv("SOURCES", "stream,webhook,bogus")
    config = load_config()
    assert config.rpc_url == "https://mainnet.helius-rpc.com/?api-key=key"
    assert config.sources == ["stream", "webhook"]


def test_load_config_requires_token(monkeypatch):
    monkeypatch.delenv("BOT_TOKEN", raising=False)
    with pytest.raises(RuntimeError):
        load_config()


def test_range_is_inclusive():
    bounds = Range(2, 10)
    assert bounds.contains(2) is True
    assert bounds.contains(10) is True
    assert bounds.contains(1.99) is False
    assert bounds.contains(10.01) is False


def test_bypass_filters_flag(monkeypatch):
    monkeypatch.setenv("BOT_TOKEN", "123:abc")
    monkeypatch.delenv("SOURCES", raising=False)
    monkeypatch.delenv("BYPASS_FILTERS", raising=False)
    assert load_config().bypass_filters is False
    monkeypatch.setenv("BYPASS_FILTERS", "true")
    assert load_config().bypass_filters is True
