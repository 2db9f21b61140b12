from __future__ import annotations

import html
import time
from datetime import datetime, timezone
from typing import Any, List, Optional
from zoneinfo import ZoneInfo


def parse_bool(value: str, default: bool = False) -> bool:
    if value is None:
        return default
    value = value.strip().lower()
    if value in ("1", "true", "yes", "y", "on"):
        return True
    if value in ("0", "false", "no", "n", "off"):
        return False
    return default


def parse_csv_ints(value: str) -> set:
    if not value:
        return set()
    result = set()
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            result.add(int(part))
        except ValueError:
            continue
    return result


def parse_csv_strs(value: str) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def to_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def to_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def format_usd(value: Optional[float]) -> str:
    if not value:
        return "N/A"
    return f"${value:,.0f}"


def format_percent(value: Optional[float]) -> str:
    if not value:
        return "N/A"
    return f"{value:.2f}%"


def format_sol_price(value: Optional[float]) -> str:
    if not value:
        return "N/A"
    return f"{value:.6g} SOL"


def format_number(value: float) -> str:
    return f"{value:,.10g}"


def format_supply(value: Optional[float]) -> str:
    if not value:
        return "N/A"
    return f"{value:,.0f}"


def short_address(address: str) -> str:
    if len(address) <= 10:
        return address
    return f"{address[:4]}...{address[-4:]}"


def escape_html(value: str) -> str:
    return html.escape(value or "")


def utc_now_ts() -> int:
    return int(time.time())


def format_ts(ts: Optional[int], tz_name: str) -> str:
    if not ts:
        return "n/a"
    dt = datetime.fromtimestamp(ts, tz=timezone.utc)
    if tz_name:
        try:
            dt = dt.astimezone(ZoneInfo(tz_name))
        except (KeyError, ValueError):
            pass
    return dt.strftime("%Y-%m-%d %H:%M:%S %Z")
