from __future__ import annotations

from dataclasses import dataclass, replace
import os
from typing import List, Set

from .utils import parse_bool, parse_csv_ints, parse_csv_strs

TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
PUMP_FUN_PROGRAM_ID = "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P"
DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"
DEFAULT_PUMPPORTAL_WS_URL = "wss://pumpportal.fun/api/data"

RANGE_FIELDS = ("liquidity", "pool_supply", "dev_holding", "launch_price")
FLAG_FIELDS = ("mint_auth_revoked", "freeze_auth_revoked")
VALID_SOURCES = ("poll", "stream", "webhook")


@dataclass(frozen=True)
class Range:
    min: float
    max: float

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max


@dataclass(frozen=True)
class FilterConfig:
    liquidity: Range
    pool_supply: Range
    dev_holding: Range
    launch_price: Range
    mint_auth_revoked: bool = True
    freeze_auth_revoked: bool = True
    version: int = 1


class FilterStore:
    """Holds the current filter value; edits swap in a new frozen value with a bumped version."""

    def __init__(self, filters: FilterConfig):
        self._filters = filters

    @property
    def current(self) -> FilterConfig:
        return self._filters

    def set_range(self, field: str, min_value: float, max_value: float) -> FilterConfig:
        if field not in RANGE_FIELDS:
            raise ValueError(f"unknown range filter: {field}")
        if min_value > max_value:
            raise ValueError("min must not exceed max")
        return self._swap(**{field: Range(min_value, max_value)})

    def set_flag(self, field: str, expected: bool) -> FilterConfig:
        if field not in FLAG_FIELDS:
            raise ValueError(f"unknown flag filter: {field}")
        return self._swap(**{field: expected})

    def _swap(self, **changes) -> FilterConfig:
        self._filters = replace(self._filters, version=self._filters.version + 1, **changes)
        return self._filters


@dataclass(frozen=True)
class Config:
    bot_token: str
    alert_chat_ids: Set[int]
    allowed_thread_ids: Set[int]
    admin_user_ids: Set[int]
    sqlite_path: str
    log_level: str
    log_file: str
    dry_run: bool
    display_timezone: str

    helius_api_key: str
    rpc_url: str
    birdeye_api_key: str
    pump_program_id: str

    sources: List[str]
    poll_interval_sec: int
    poll_signature_limit: int
    pumpportal_ws_url: str
    webhook_host: str
    webhook_port: int
    webhook_secret: str

    http_timeout_sec: int
    http_max_rps: int
    http_max_concurrency: int

    market_retry_attempts: int
    market_retry_delay_sec: float
    rate_limit_events: int
    rate_limit_window_sec: int
    dedup_window_sec: int
    notify_rejections: bool
    bypass_filters: bool
    top_tokens_interval_sec: int
    top_tokens_limit: int

    filters: FilterConfig


def _env_float(name: str, default: str) -> float:
    return float(os.getenv(name, default))


def load_filters() -> FilterConfig:
    return FilterConfig(
        liquidity=Range(
            _env_float("FILTER_LIQUIDITY_MIN", "4000"),
            _env_float("FILTER_LIQUIDITY_MAX", "25000"),
        ),
        pool_supply=Range(
            _env_float("FILTER_POOL_SUPPLY_MIN", "60"),
            _env_float("FILTER_POOL_SUPPLY_MAX", "95"),
        ),
        dev_holding=Range(
            _env_float("FILTER_DEV_HOLDING_MIN", "2"),
            _env_float("FILTER_DEV_HOLDING_MAX", "10"),
        ),
        launch_price=Range(
            _env_float("FILTER_LAUNCH_PRICE_MIN", "0.0000000022"),
            _env_float("FILTER_LAUNCH_PRICE_MAX", "0.0000000058"),
        ),
        mint_auth_revoked=parse_bool(os.getenv("FILTER_MINT_AUTH_REVOKED", "true"), True),
        freeze_auth_revoked=parse_bool(os.getenv("FILTER_FREEZE_AUTH_REVOKED", "true"), True),
    )


def load_config() -> Config:
    bot_token = os.getenv("BOT_TOKEN", "").strip()
    if not bot_token:
        raise RuntimeError("BOT_TOKEN is required")

    alert_chat_ids = parse_csv_ints(
        os.getenv("ALERT_CHAT_IDS", os.getenv("ALLOWED_CHAT_IDS", ""))
    )
    allowed_thread_ids = parse_csv_ints(os.getenv("ALLOWED_THREAD_IDS", ""))
    admin_user_ids = parse_csv_ints(os.getenv("ADMIN_USER_IDS", ""))

    db_path = os.getenv("DB_PATH", "").strip() or "./data/pump_token_tracker.db"
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    log_file = os.getenv("LOG_FILE", "").strip()
    dry_run = parse_bool(os.getenv("DRY_RUN", "false"), False)
    display_timezone = os.getenv("DISPLAY_TIMEZONE", "UTC")

    helius_api_key = os.getenv("HELIUS_API_KEY", "").strip()
    rpc_url = os.getenv("RPC_URL", "").strip()
    if not rpc_url:
        if helius_api_key:
            rpc_url = f"https://mainnet.helius-rpc.com/?api-key={helius_api_key}"
        else:
            rpc_url = DEFAULT_RPC_URL
    birdeye_api_key = os.getenv("BIRDEYE_API_KEY", "").strip()
    pump_program_id = os.getenv("PUMP_PROGRAM_ID", PUMP_FUN_PROGRAM_ID).strip()

    sources = [
        source.lower()
        for source in parse_csv_strs(os.getenv("SOURCES", "poll"))
        if source.lower() in VALID_SOURCES
    ]
    if not sources:
        raise RuntimeError(f"SOURCES must name at least one of {', '.join(VALID_SOURCES)}")

    return Config(
        bot_token=bot_token,
        alert_chat_ids=alert_chat_ids,
        allowed_thread_ids=allowed_thread_ids,
        admin_user_ids=admin_user_ids,
        sqlite_path=db_path,
        log_level=log_level,
        log_file=log_file,
        dry_run=dry_run,
        display_timezone=display_timezone,
        helius_api_key=helius_api_key,
        rpc_url=rpc_url,
        birdeye_api_key=birdeye_api_key,
        pump_program_id=pump_program_id,
        sources=sources,
        poll_interval_sec=int(os.getenv("POLL_INTERVAL_SEC", "20")),
        poll_signature_limit=int(os.getenv("POLL_SIGNATURE_LIMIT", "20")),
        pumpportal_ws_url=os.getenv("PUMPPORTAL_WS_URL", DEFAULT_PUMPPORTAL_WS_URL).strip(),
        webhook_host=os.getenv("WEBHOOK_HOST", "0.0.0.0").strip(),
        webhook_port=int(os.getenv("WEBHOOK_PORT", os.getenv("PORT", "3000"))),
        webhook_secret=os.getenv("WEBHOOK_SECRET", "").strip(),
        http_timeout_sec=int(os.getenv("HTTP_TIMEOUT_SEC", "10")),
        http_max_rps=int(os.getenv("HTTP_MAX_RPS", "5")),
        http_max_concurrency=int(os.getenv("HTTP_MAX_CONCURRENCY", "2")),
        market_retry_attempts=int(os.getenv("MARKET_RETRY_ATTEMPTS", "3")),
        market_retry_delay_sec=float(os.getenv("MARKET_RETRY_DELAY_SEC", "2")),
        rate_limit_events=int(os.getenv("RATE_LIMIT_EVENTS", "5")),
        rate_limit_window_sec=int(os.getenv("RATE_LIMIT_WINDOW_SEC", "60")),
        dedup_window_sec=int(os.getenv("DEDUP_WINDOW_SEC", "3600")),
        notify_rejections=parse_bool(os.getenv("NOTIFY_REJECTIONS", "true"), True),
        bypass_filters=parse_bool(os.getenv("BYPASS_FILTERS", "false"), False),
        top_tokens_interval_sec=int(os.getenv("TOP_TOKENS_INTERVAL_SEC", "1800")),
        top_tokens_limit=int(os.getenv("TOP_TOKENS_LIMIT", "10")),
        filters=load_filters(),
    )
