from __future__ import annotations

from typing import Any, Dict

from somnia_agent.chain.abis import DAO_FACTORY_ABI
from somnia_agent.chain.units import parse_int
from somnia_agent.pipeline.composite import event_arg
from somnia_agent.services import ActionServices
from somnia_agent.state.models import CallSpec, EventExpectation, PreflightRequirement
from somnia_agent.tools.common import configured_address, required_text

TOOL_ID = "create_dao"
TOOL_NAME = "Create DAO"
TOOL_DESCRIPTION = "Create a governance DAO through the DAO factory."
REQUIRED_FIELDS = ("privateKey", "name", "votingPeriod", "quorumPercentage")


def run_create_dao(params: Dict[str, Any], services: ActionServices) -> Dict[str, Any]:
    signer = services.signer(params)
    name = required_text(params, "name")
    voting_period = parse_int(params.get("votingPeriod"), field="votingPeriod", minimum=1)
    quorum = parse_int(params.get("quorumPercentage"), field="quorumPercentage", minimum=1, maximum=100)
    factory = configured_address(services.config.dao_factory_address, "DAO_FACTORY_ADDRESS")

    outcome = services.pipeline.execute(
        signer,
        CallSpec(
            to=factory,
            abi=DAO_FACTORY_ABI,
            function="createDAO",
            args=(name, voting_period, quorum),
            label="createDAO",
        ),
        preflight=PreflightRequirement(required=0, require_gas=True),
        expect_event=EventExpectation(abi=DAO_FACTORY_ABI, name="DAOCreated"),
    )
    return services.assembler.success(
        {
            "daoAddress": event_arg(outcome, "daoAddress"),
            "name": name,
            "votingPeriod": voting_period,
            "quorumPercentage": quorum,
            "creator": signer.address,
            "factoryAddress": factory,
        },
        outcome,
    )
