from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

import structlog

from somnia_agent.chain.abis import TOKEN_FACTORY_ABI
from somnia_agent.chain.units import format_units, parse_int
from somnia_agent.errors import NetworkError
from somnia_agent.pipeline.composite import event_arg
from somnia_agent.services import ActionServices
from somnia_agent.state.models import CallSpec, EventExpectation, PreflightRequirement
from somnia_agent.tools.common import configured_address, required_text

TOOL_ID = "deploy_token"
TOOL_NAME = "Deploy ERC-20"
TOOL_DESCRIPTION = "Create an ERC-20 token through the token factory."
REQUIRED_FIELDS = ("privateKey", "name", "symbol", "initialSupply")

logger = structlog.get_logger(__name__)


def _token_info(services: ActionServices, factory: str, token_address: str) -> Dict[str, Any]:
    info = services.pipeline.ledger.call(
        CallSpec(
            to=factory,
            abi=TOKEN_FACTORY_ABI,
            function="getTokenInfo",
            args=(token_address,),
        )
    )
    creator, name, symbol, initial_supply, deployed_at, current_supply, owner = list(info)
    return {
        "name": str(name),
        "symbol": str(symbol),
        "initialSupply": int(initial_supply),
        "currentSupply": format_units(int(current_supply), 18),
        "creator": str(creator),
        "owner": str(owner),
        "deployedAt": datetime.fromtimestamp(int(deployed_at), tz=timezone.utc).isoformat(),
    }


def run_deploy_token(params: Dict[str, Any], services: ActionServices) -> Dict[str, Any]:
    signer = services.signer(params)
    name = required_text(params, "name")
    symbol = required_text(params, "symbol")
    initial_supply = parse_int(params.get("initialSupply"), field="initialSupply", minimum=1)
    factory = configured_address(services.config.token_factory_address, "TOKEN_FACTORY_ADDRESS")

    outcome = services.pipeline.execute(
        signer,
        CallSpec(
            to=factory,
            abi=TOKEN_FACTORY_ABI,
            function="createToken",
            args=(name, symbol, initial_supply),
            label="createToken",
        ),
        preflight=PreflightRequirement(required=0, require_gas=True),
        expect_event=EventExpectation(abi=TOKEN_FACTORY_ABI, name="TokenCreated"),
    )
    token_address = event_arg(outcome, "tokenAddress")

    try:
        token_info = _token_info(services, factory, token_address)
    except (NetworkError, TypeError, ValueError) as exc:
        logger.warning("token_info_unavailable", token=token_address, error=str(exc))
        token_info = {"name": name, "symbol": symbol, "initialSupply": initial_supply}

    return services.assembler.success(
        {
            "message": "Token created successfully via TokenFactory",
            "contractAddress": token_address,
            "tokenInfo": token_info,
            "creator": signer.address,
            "factoryAddress": factory,
        },
        outcome,
    )
