from __future__ import annotations

from .config import TOKEN_PROGRAM_ID
from .extractor import is_valid_mint_length
from .rpc import RpcError, SolanaRpcClient


async def validate_mint(rpc: SolanaRpcClient, address: str, logger) -> bool:
    """True only when ``address`` is an existing account owned by the SPL token program.

    Lookup errors reject the candidate; there is no retry.
    """
    if not is_valid_mint_length(address):
        logger.info("mint_invalid_length", extra={"token": address})
        return False
    try:
        account = await rpc.get_account_info(address)
    except RpcError as exc:
        logger.warning("mint_validation_failed", extra={"token": address, "error": str(exc)})
        return False
    if account is None:
        logger.info("mint_account_missing", extra={"token": address})
        return False
    owner = account.get("owner")
    if owner != TOKEN_PROGRAM_ID:
        logger.info("mint_owner_mismatch", extra={"token": address, "owner": owner})
        return False
    data = account.get("data")
    parsed = data.get("parsed") if isinstance(data, dict) else None
    account_type = parsed.get("type") if isinstance(parsed, dict) else None
    if account_type is not None and account_type != "mint":
        logger.info("mint_not_a_mint", extra={"token": address, "account_type": account_type})
        return False
    return True
