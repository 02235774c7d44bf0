from __future__ import annotations

from typing import Any, Dict

from somnia_agent.chain.abis import ERC20_ABI
from somnia_agent.chain.signer import require_address
from somnia_agent.chain.tokens import read_token_decimals, read_token_metadata
from somnia_agent.chain.units import parse_positive_units
from somnia_agent.services import ActionServices
from somnia_agent.state.models import CallSpec, PreflightRequirement
from somnia_agent.tools.common import optional_text

TOOL_ID = "transfer"
TOOL_NAME = "Transfer"
TOOL_DESCRIPTION = "Send native STT or an ERC-20 token to one address."
REQUIRED_FIELDS = ("privateKey", "toAddress", "amount")


def run_transfer(params: Dict[str, Any], services: ActionServices) -> Dict[str, Any]:
    signer = services.signer(params)
    to_address = require_address(params.get("toAddress"), field="toAddress")
    token_address = optional_text(params, "tokenAddress")
    amount_text = str(params.get("amount")).strip()

    if not token_address:
        amount = parse_positive_units(amount_text)
        outcome = services.pipeline.execute(
            signer,
            CallSpec(to=to_address, value=amount, label="transfer"),
            preflight=PreflightRequirement(required=amount),
        )
        return services.assembler.success(
            {
                "type": "native",
                "from": signer.address,
                "to": to_address,
                "amount": amount_text,
                "amountWei": amount,
            },
            outcome,
        )

    token_address = require_address(token_address, field="tokenAddress")
    ledger = services.pipeline.ledger
    decimals = read_token_decimals(ledger, token_address)
    amount = parse_positive_units(amount_text, decimals)
    metadata = read_token_metadata(ledger, token_address)
    outcome = services.pipeline.execute(
        signer,
        CallSpec(
            to=token_address,
            abi=ERC20_ABI,
            function="transfer",
            args=(to_address, amount),
            label="transfer",
        ),
        preflight=PreflightRequirement(
            required=amount,
            token_address=token_address,
            decimals=decimals,
            symbol=metadata["symbol"],
        ),
    )
    return services.assembler.success(
        {
            "type": "ERC20",
            "from": signer.address,
            "to": to_address,
            "tokenAddress": token_address,
            "tokenName": metadata["name"],
            "tokenSymbol": metadata["symbol"],
            "amount": amount_text,
            "amountWei": amount,
            "decimals": decimals,
        },
        outcome,
    )
