from __future__ import annotations

from typing import Any, Dict

from somnia_agent.chain.abis import ERC20_ABI
from somnia_agent.chain.client import LedgerClient
from somnia_agent.errors import NetworkError, ValidationError
from somnia_agent.state.models import CallSpec


def _erc20_call(token_address: str, function: str, *args: Any) -> CallSpec:
    return CallSpec(to=token_address, abi=ERC20_ABI, function=function, args=tuple(args))


def read_token_decimals(ledger: LedgerClient, token_address: str) -> int:
    try:
        return int(ledger.call(_erc20_call(token_address, "decimals")))
    except NetworkError as exc:
        raise ValidationError(
            "Invalid token address or token does not support decimals()",
            details={"tokenAddress": token_address, "reason": exc.reason},
        ) from exc


def read_token_metadata(ledger: LedgerClient, token_address: str) -> Dict[str, str]:
    metadata = {"name": "Token", "symbol": "TOKEN"}
    for key in ("name", "symbol"):
        try:
            metadata[key] = str(ledger.call(_erc20_call(token_address, key)))
        except NetworkError:
            continue
    return metadata


def read_token_balance(ledger: LedgerClient, token_address: str, owner: str) -> int:
    return int(ledger.call(_erc20_call(token_address, "balanceOf", owner)))
