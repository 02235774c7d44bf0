from __future__ import annotations

from typing import Any, Dict

from somnia_agent.chain.abis import SWAP_ROUTER_ABI
from somnia_agent.chain.signer import require_address
from somnia_agent.chain.tokens import read_token_decimals
from somnia_agent.chain.units import parse_int, parse_positive_units
from somnia_agent.services import ActionServices
from somnia_agent.state.models import CallSpec, PreflightRequirement, TransactionOutcome
from somnia_agent.tools.common import configured_address

SWAP_ID = "swap"
SWAP_FIELDS = ("privateKey", "tokenIn", "tokenOut", "amountIn")

PING_PONG_ID = "swap_ping_pong"
PING_PONG_FIELDS = ("privateKey", "amount")

DEFAULT_SLIPPAGE = 3


def minimum_amount_out(amount_in: int, slippage: int) -> int:
    return amount_in * (100 - slippage) // 100


def _slippage(params: Dict[str, Any]) -> int:
    raw = params.get("slippageTolerance")
    if raw is None or raw == "":
        return DEFAULT_SLIPPAGE
    return parse_int(raw, field="slippageTolerance", minimum=0, maximum=100)


def _exact_input_single(
    services: ActionServices,
    signer: Any,
    *,
    token_in: str,
    token_out: str,
    amount: Any,
    slippage: int,
    amount_field: str,
) -> tuple[TransactionOutcome, int, int]:
    router = configured_address(services.config.swap_router_address, "SWAP_ROUTER_ADDRESS")
    decimals = read_token_decimals(services.pipeline.ledger, token_in)
    amount_in = parse_positive_units(amount, decimals, field=amount_field)
    amount_out_min = minimum_amount_out(amount_in, slippage)

    call = CallSpec(
        to=router,
        abi=SWAP_ROUTER_ABI,
        function="exactInputSingle",
        args=(
            (
                token_in,
                token_out,
                int(services.config.swap_fee_tier),
                str(signer.address),
                amount_in,
                amount_out_min,
                0,
            ),
        ),
        label="exactInputSingle",
    )
    outcome = services.pipeline.execute_with_allowance(
        signer,
        call,
        token_address=token_in,
        spender=router,
        amount=amount_in,
        preflight=PreflightRequirement(
            required=amount_in, token_address=token_in, require_gas=True, decimals=decimals
        ),
    )
    return outcome, amount_in, amount_out_min


def _swap_fields(outcome: TransactionOutcome) -> Dict[str, Any]:
    return {
        "approveTxHash": outcome.approval.tx_hash if outcome.approval is not None else None,
        "swapTxHash": outcome.tx_hash,
    }


def run_swap(params: Dict[str, Any], services: ActionServices) -> Dict[str, Any]:
    signer = services.signer(params)
    token_in = require_address(params.get("tokenIn"), field="tokenIn")
    token_out = require_address(params.get("tokenOut"), field="tokenOut")
    slippage = _slippage(params)

    outcome, amount_in, amount_out_min = _exact_input_single(
        services,
        signer,
        token_in=token_in,
        token_out=token_out,
        amount=params.get("amountIn"),
        slippage=slippage,
        amount_field="amountIn",
    )
    return services.assembler.success(
        {
            "wallet": signer.address,
            "tokenIn": token_in,
            "tokenOut": token_out,
            "amountIn": str(params.get("amountIn")).strip(),
            "amountInWei": amount_in,
            "amountOutMinimum": amount_out_min,
            "slippageTolerance": slippage,
            **_swap_fields(outcome),
        },
        outcome,
    )


def run_swap_ping_pong(params: Dict[str, Any], services: ActionServices) -> Dict[str, Any]:
    """Swap over the configured $PING -> $PONG pool."""
    signer = services.signer(params)
    ping = require_address(services.config.ping_token_address, field="PING_TOKEN_ADDRESS")
    pong = require_address(services.config.pong_token_address, field="PONG_TOKEN_ADDRESS")
    slippage = _slippage(params)

    outcome, amount_in, amount_out_min = _exact_input_single(
        services,
        signer,
        token_in=ping,
        token_out=pong,
        amount=params.get("amount"),
        slippage=slippage,
        amount_field="amount",
    )
    return services.assembler.success(
        {
            "wallet": signer.address,
            "swap": "$PING -> $PONG",
            "amount": str(params.get("amount")).strip(),
            "amountInWei": amount_in,
            "amountOutMinimum": amount_out_min,
            "slippageTolerance": slippage,
            **_swap_fields(outcome),
        },
        outcome,
    )
