from __future__ import annotations

from typing import Any, Dict

from somnia_agent.chain.abis import YIELD_VAULT_ABI
from somnia_agent.chain.signer import require_address
from somnia_agent.chain.tokens import read_token_decimals
from somnia_agent.chain.units import parse_positive_units
from somnia_agent.pipeline.composite import event_arg
from somnia_agent.services import ActionServices
from somnia_agent.state.models import CallSpec, EventExpectation, PreflightRequirement
from somnia_agent.tools.common import optional_text

TOOL_ID = "deposit_yield"
TOOL_NAME = "Deposit Yield"
TOOL_DESCRIPTION = "Deposit the vault's underlying token into an ERC-4626 yield vault."
REQUIRED_FIELDS = ("privateKey", "vaultAddress", "amount")


def run_deposit_yield(params: Dict[str, Any], services: ActionServices) -> Dict[str, Any]:
    signer = services.signer(params)
    vault = require_address(params.get("vaultAddress"), field="vaultAddress")
    receiver_raw = optional_text(params, "receiver")
    receiver = require_address(receiver_raw, field="receiver") if receiver_raw else signer.address

    ledger = services.pipeline.ledger
    asset = require_address(
        ledger.call(CallSpec(to=vault, abi=YIELD_VAULT_ABI, function="asset")),
        field="asset",
    )
    decimals = read_token_decimals(ledger, asset)
    assets = parse_positive_units(params.get("amount"), decimals)

    outcome = services.pipeline.execute_with_allowance(
        signer,
        CallSpec(
            to=vault,
            abi=YIELD_VAULT_ABI,
            function="deposit",
            args=(assets, receiver),
            label="deposit",
        ),
        token_address=asset,
        spender=vault,
        amount=assets,
        preflight=PreflightRequirement(
            required=assets, token_address=asset, require_gas=True, decimals=decimals
        ),
        expect_event=EventExpectation(abi=YIELD_VAULT_ABI, name="Deposit"),
    )
    return services.assembler.success(
        {
            "vaultAddress": vault,
            "assetAddress": asset,
            "receiver": receiver,
            "amount": str(params.get("amount")).strip(),
            "assets": event_arg(outcome, "assets"),
            "shares": event_arg(outcome, "shares"),
            "decimals": decimals,
        },
        outcome,
    )
