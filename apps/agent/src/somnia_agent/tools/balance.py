from __future__ import annotations

from typing import Any, Dict, List, Optional

from somnia_agent.chain.signer import invalid_addresses, require_address
from somnia_agent.chain.tokens import read_token_balance, read_token_decimals, read_token_metadata
from somnia_agent.chain.units import format_units
from somnia_agent.errors import InvalidAddressError, ValidationError
from somnia_agent.services import ActionServices
from somnia_agent.tools.common import optional_text

BALANCE_ID = "get_balance"
BALANCE_FIELDS = ("address",)

ANALYTICS_ID = "wallet_analytics"
ANALYTICS_FIELDS = ("address",)


def read_balance(services: ActionServices, address: Any, token_address: Optional[str] = None) -> Dict[str, Any]:
    owner = require_address(address, field="address")
    ledger = services.pipeline.ledger
    if not token_address:
        balance = int(ledger.native_balance(owner))
        return {"address": owner, "balance": format_units(balance), "balanceWei": balance}

    token = require_address(token_address, field="tokenAddress")
    decimals = read_token_decimals(ledger, token)
    metadata = read_token_metadata(ledger, token)
    balance = read_token_balance(ledger, token, owner)
    return {
        "address": owner,
        "token": token,
        "name": metadata["name"],
        "symbol": metadata["symbol"],
        "balance": format_units(balance, decimals),
        "balanceWei": balance,
        "decimals": decimals,
    }


def run_get_balance(params: Dict[str, Any], services: ActionServices) -> Dict[str, Any]:
    return services.assembler.success(
        read_balance(services, params.get("address"), optional_text(params, "tokenAddress"))
    )


def _token_list(value: Any) -> List[str]:
    if value is None or value == "":
        return []
    if isinstance(value, str):
        value = [item.strip() for item in value.split(",") if item.strip()]
    if not isinstance(value, list):
        raise ValidationError("tokenAddresses must be a list.", details={"field": "tokenAddresses"})
    bad = invalid_addresses(value)
    if bad:
        raise InvalidAddressError(bad, field="tokenAddresses")
    return value


def run_wallet_analytics(params: Dict[str, Any], services: ActionServices) -> Dict[str, Any]:
    owner = require_address(params.get("address"), field="address")
    tokens = _token_list(params.get("tokenAddresses"))
    ledger = services.pipeline.ledger

    native = read_balance(services, owner)
    holdings = [read_balance(services, owner, token) for token in tokens]
    return services.assembler.success(
        {
            "address": owner,
            "network": services.config.network_name,
            "chainId": int(ledger.chain_id()),
            "nativeBalance": native["balance"],
            "nativeBalanceWei": native["balanceWei"],
            "transactionCount": int(ledger.transaction_count(owner)),
            "tokens": [
                {key: value for key, value in item.items() if key != "address"} for item in holdings
            ],
            "nonZeroTokenCount": sum(1 for item in holdings if item["balanceWei"] > 0),
        }
    )
