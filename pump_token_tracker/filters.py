from __future__ import annotations

from typing import List

from .config import FilterConfig, Range
from .types import FilterResult, TokenRecord


def _fmt(value: float) -> str:
    return f"{value:g}"


def _check_range(field: str, value: float, bounds: Range, reasons: List[str]) -> None:
    if bounds.contains(value):
        return
    if value < bounds.min:
        reasons.append(f"{field} below min ({_fmt(value)} < {_fmt(bounds.min)})")
    else:
        reasons.append(f"{field} above max ({_fmt(value)} > {_fmt(bounds.max)})")


def _check_flag(field: str, value: bool, expected: bool, reasons: List[str]) -> None:
    if value is not expected:
        reasons.append(f"{field} mismatch (got {value}, expected {expected})")


def evaluate_token(record: TokenRecord, filters: FilterConfig) -> FilterResult:
    """Check every constraint and report all violations, not just the first one."""
    reasons: List[str] = []

    _check_range("liquidity", record.liquidity, filters.liquidity, reasons)
    _check_range("pool_supply", record.pool_supply, filters.pool_supply, reasons)
    _check_range("dev_holding", record.dev_holding, filters.dev_holding, reasons)
    _check_range("launch_price", record.price, filters.launch_price, reasons)
    _check_flag("mint_auth_revoked", bool(record.mint_auth_revoked), filters.mint_auth_revoked, reasons)
    _check_flag(
        "freeze_auth_revoked", bool(record.freeze_auth_revoked), filters.freeze_auth_revoked, reasons
    )

    return FilterResult(passed=len(reasons) == 0, reasons=reasons)
