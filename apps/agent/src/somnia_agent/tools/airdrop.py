from __future__ import annotations

from typing import Any, Dict

from somnia_agent.chain.units import format_units
from somnia_agent.services import ActionServices
from somnia_agent.tools.common import optional_text

TOOL_ID = "airdrop"
TOOL_NAME = "Airdrop"
TOOL_DESCRIPTION = "Send the same amount of STT or an ERC-20 token to many recipients in one transaction."
REQUIRED_FIELDS = ("privateKey", "recipients", "amount")


def run_airdrop(params: Dict[str, Any], services: ActionServices) -> Dict[str, Any]:
    signer = services.signer(params)
    recipients = params.get("recipients")
    token_address = optional_text(params, "tokenAddress")

    outcome, amounts = services.coordinator.airdrop(
        signer,
        recipients=recipients,
        amount=params.get("amount"),
        token_address=token_address,
    )
    decimals = int(amounts["decimals"])
    return services.assembler.success(
        {
            "type": "ERC20" if token_address else "native",
            "from": signer.address,
            "tokenAddress": token_address,
            "recipientCount": len(recipients),
            "amountEach": format_units(amounts["amountEach"], decimals),
            "amountEachWei": amounts["amountEach"],
            "totalAmount": format_units(amounts["totalAmount"], decimals),
            "totalAmountWei": amounts["totalAmount"],
            "decimals": decimals,
        },
        outcome,
    )
