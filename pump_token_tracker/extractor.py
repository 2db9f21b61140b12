from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .config import TOKEN_PROGRAM_ID

MINT_LENGTH_MIN = 44
MINT_LENGTH_MAX = 45
MINT_INSTRUCTION_TYPES = {"initializeMint", "initializeMint2", "mintTo", "mintToChecked"}


@dataclass(frozen=True)
class MintCandidate:
    address: str
    source: str


def is_valid_mint_length(value: Any) -> bool:
    return isinstance(value, str) and MINT_LENGTH_MIN <= len(value) <= MINT_LENGTH_MAX


def _dig(obj: Any, *keys: str) -> Any:
    cur = obj
    for key in keys:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _first_valid(values: Iterable[Any]) -> Optional[str]:
    for value in values:
        if is_valid_mint_length(value):
            return value
    return None


def _mint_from_instruction(instruction: Any) -> Optional[str]:
    if not isinstance(instruction, dict):
        return None
    program_id = instruction.get("programId")
    if program_id != TOKEN_PROGRAM_ID and instruction.get("program") != "spl-token":
        return None
    parsed = instruction.get("parsed")
    if not isinstance(parsed, dict) or parsed.get("type") not in MINT_INSTRUCTION_TYPES:
        return None
    mint = _dig(parsed, "info", "mint")
    return mint if is_valid_mint_length(mint) else None


def _scan_instructions(instructions: Iterable[Any]) -> Optional[str]:
    for instruction in instructions:
        mint = _mint_from_instruction(instruction)
        if mint:
            return mint
    return None


def _from_explicit_mint(event: Dict[str, Any]) -> Optional[str]:
    return _first_valid([event.get("tokenMint"), event.get("mint")])


def _from_instructions(event: Dict[str, Any]) -> Optional[str]:
    instructions = _as_list(event.get("instructions")) or _as_list(
        _dig(event, "transaction", "message", "instructions")
    )
    return _scan_instructions(instructions)


def _from_inner_instructions(event: Dict[str, Any]) -> Optional[str]:
    groups = _as_list(event.get("innerInstructions")) or _as_list(
        _dig(event, "meta", "innerInstructions")
    )
    nested: List[Any] = []
    for group in groups:
        if isinstance(group, dict):
            nested.extend(_as_list(group.get("instructions")))
    # Helius enhanced events attach inner instructions to each top-level instruction.
    for instruction in _as_list(event.get("instructions")):
        if isinstance(instruction, dict):
            nested.extend(_as_list(instruction.get("innerInstructions")))
    return _scan_instructions(nested)


def _from_balances(event: Dict[str, Any]) -> Optional[str]:
    entries: List[Any] = []
    entries.extend(_as_list(event.get("postTokenBalances")))
    entries.extend(_as_list(_dig(event, "meta", "postTokenBalances")))
    entries.extend(_as_list(event.get("tokenTransfers")))
    for account in _as_list(event.get("accountData")):
        if isinstance(account, dict):
            entries.extend(_as_list(account.get("tokenBalanceChanges")))
    return _first_valid(entry.get("mint") for entry in entries if isinstance(entry, dict))


def _account_strings(values: Iterable[Any]) -> Iterable[Any]:
    for value in values:
        if isinstance(value, dict):
            yield value.get("pubkey")
        else:
            yield value


def _from_accounts(event: Dict[str, Any]) -> Optional[str]:
    accounts = _as_list(event.get("accounts")) or _as_list(
        _dig(event, "transaction", "message", "accountKeys")
    )
    return _first_valid(_account_strings(accounts))


# Ordered from most to least specific event shape; the first hit wins.
HEURISTICS: Tuple[Tuple[str, Callable[[Dict[str, Any]], Optional[str]]], ...] = (
    ("explicit_mint", _from_explicit_mint),
    ("instruction", _from_instructions),
    ("inner_instruction", _from_inner_instructions),
    ("token_balance", _from_balances),
    ("account_list", _from_accounts),
)


def extract_candidate(event: Any) -> Optional[MintCandidate]:
    if not isinstance(event, dict):
        return None
    for source, heuristic in HEURISTICS:
        address = heuristic(event)
        if address:
            return MintCandidate(address=address, source=source)
    return None


def extract_mint(event: Any) -> Optional[str]:
    candidate = extract_candidate(event)
    return candidate.address if candidate else None
