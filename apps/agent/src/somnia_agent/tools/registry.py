from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import structlog

from somnia_agent.errors import ActionError, MissingFieldError, UnknownToolError
from somnia_agent.services import ActionServices
from somnia_agent.state.models import TOOL_TYPES
from somnia_agent.tools import (
    airdrop,
    balance,
    dao,
    deploy_token,
    nft,
    price,
    swap,
    transfer,
    yield_vault,
)

ActionHandler = Callable[[Dict[str, Any], ActionServices], Dict[str, Any]]

logger = structlog.get_logger(__name__)

# Workflow tool types whose handler lives under a different action id.
TOOL_TYPE_ACTIONS: Dict[str, str] = {
    "deploy_erc20": deploy_token.TOOL_ID,
    "deploy_erc721": nft.DEPLOY_COLLECTION_ID,
}


@dataclass(frozen=True)
class ActionSpec:
    id: str
    name: str
    description: str
    handler: ActionHandler
    required_fields: Tuple[str, ...] = ()
    # At least one group must be fully present, e.g. an existing collection
    # address or the name and symbol of a new one.
    alternatives: Tuple[Tuple[str, ...], ...] = ()
    mutating: bool = True

    def describe(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "required_fields": list(self.required_fields),
            "alternatives": [list(group) for group in self.alternatives],
            "mutating": self.mutating,
        }


@dataclass
class ActionResult:
    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return bool(self.body.get("success"))


def is_absent(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


class ActionRegistry:
    """Maps tool types and action ids to handlers and their input contracts."""

    def __init__(self) -> None:
        self._actions: Dict[str, ActionSpec] = {}

        self.register(
            ActionSpec(
                id=transfer.TOOL_ID,
                name=transfer.TOOL_NAME,
                description=transfer.TOOL_DESCRIPTION,
                handler=transfer.run_transfer,
                required_fields=transfer.REQUIRED_FIELDS,
            )
        )
        self.register(
            ActionSpec(
                id=deploy_token.TOOL_ID,
                name=deploy_token.TOOL_NAME,
                description=deploy_token.TOOL_DESCRIPTION,
                handler=deploy_token.run_deploy_token,
                required_fields=deploy_token.REQUIRED_FIELDS,
            )
        )
        self.register(
            ActionSpec(
                id=nft.DEPLOY_COLLECTION_ID,
                name="Deploy NFT Collection",
                description="Deploy an ERC-721 collection through the NFT factory.",
                handler=nft.run_deploy_nft_collection,
                required_fields=nft.DEPLOY_COLLECTION_FIELDS,
            )
        )
        self.register(
            ActionSpec(
                id=nft.CREATE_COLLECTION_ID,
                name="Create NFT Collection",
                description="Deploy an ERC-721 collection and mint its first token to the signer.",
                handler=nft.run_create_nft_collection,
                required_fields=nft.CREATE_COLLECTION_FIELDS,
            )
        )
        self.register(
            ActionSpec(
                id=nft.CREATE_AND_MINT_ID,
                name="Create and Mint NFT",
                description="Mint an NFT, deploying its collection first when none is given.",
                handler=nft.run_create_and_mint_nft,
                required_fields=nft.CREATE_AND_MINT_FIELDS,
                alternatives=nft.CREATE_AND_MINT_ALTERNATIVES,
            )
        )
        self.register(
            ActionSpec(
                id=dao.TOOL_ID,
                name=dao.TOOL_NAME,
                description=dao.TOOL_DESCRIPTION,
                handler=dao.run_create_dao,
                required_fields=dao.REQUIRED_FIELDS,
            )
        )
        self.register(
            ActionSpec(
                id=swap.SWAP_ID,
                name="Swap",
                description="Swap one ERC-20 token for another through the router.",
                handler=swap.run_swap,
                required_fields=swap.SWAP_FIELDS,
            )
        )
        self.register(
            ActionSpec(
                id=swap.PING_PONG_ID,
                name="Swap PING/PONG",
                description="Swap $PING for $PONG on the configured pool.",
                handler=swap.run_swap_ping_pong,
                required_fields=swap.PING_PONG_FIELDS,
            )
        )
        self.register(
            ActionSpec(
                id=airdrop.TOOL_ID,
                name=airdrop.TOOL_NAME,
                description=airdrop.TOOL_DESCRIPTION,
                handler=airdrop.run_airdrop,
                required_fields=airdrop.REQUIRED_FIELDS,
            )
        )
        self.register(
            ActionSpec(
                id=balance.BALANCE_ID,
                name="Get Balance",
                description="Read the native or ERC-20 balance of an address.",
                handler=balance.run_get_balance,
                required_fields=balance.BALANCE_FIELDS,
                mutating=False,
            )
        )
        self.register(
            ActionSpec(
                id=balance.ANALYTICS_ID,
                name="Wallet Analytics",
                description="Summarize an address: native balance, nonce and token holdings.",
                handler=balance.run_wallet_analytics,
                required_fields=balance.ANALYTICS_FIELDS,
                mutating=False,
            )
        )
        self.register(
            ActionSpec(
                id=price.TOOL_ID,
                name=price.TOOL_NAME,
                description=price.TOOL_DESCRIPTION,
                handler=price.run_fetch_price,
                required_fields=price.REQUIRED_FIELDS,
                mutating=False,
            )
        )
        self.register(
            ActionSpec(
                id=yield_vault.TOOL_ID,
                name=yield_vault.TOOL_NAME,
                description=yield_vault.TOOL_DESCRIPTION,
                handler=yield_vault.run_deposit_yield,
                required_fields=yield_vault.REQUIRED_FIELDS,
            )
        )

    def register(self, spec: ActionSpec) -> None:
        self._actions[spec.id] = spec

    def resolve(self, tool_type: str) -> ActionSpec:
        """Resolve a workflow tool type; only the fixed tool set is accepted."""
        key = str(tool_type or "").strip()
        if key not in TOOL_TYPES:
            raise UnknownToolError(key, known=TOOL_TYPES)
        return self._actions[TOOL_TYPE_ACTIONS.get(key, key)]

    def get_action(self, action_id: str) -> ActionSpec:
        key = str(action_id or "").strip()
        if key in TOOL_TYPES:
            return self.resolve(key)
        spec = self._actions.get(key)
        if spec is None:
            raise UnknownToolError(key, known=sorted(set(self._actions) | set(TOOL_TYPES)))
        return spec

    def list_tools(self) -> List[Dict[str, Any]]:
        return [{**self.resolve(tool_type).describe(), "tool_type": tool_type} for tool_type in TOOL_TYPES]

    def list_actions(self) -> List[Dict[str, Any]]:
        return [spec.describe() for spec in self._actions.values()]

    @staticmethod
    def missing_fields(spec: ActionSpec, params: Mapping[str, Any]) -> List[str]:
        missing = [name for name in spec.required_fields if is_absent(params.get(name))]
        if spec.alternatives and not any(
            all(not is_absent(params.get(name)) for name in group) for group in spec.alternatives
        ):
            for group in spec.alternatives:
                missing.extend(name for name in group if is_absent(params.get(name)) and name not in missing)
        return missing

    def validate(self, spec: ActionSpec, params: Mapping[str, Any]) -> None:
        missing = self.missing_fields(spec, params)
        if missing:
            raise MissingFieldError(missing)

    def run_action(
        self,
        action_id: str,
        params: Optional[Mapping[str, Any]],
        services: ActionServices,
    ) -> Dict[str, Any]:
        """Validate and run one action, raising ``ActionError`` on failure."""
        spec = self.get_action(action_id)
        payload = dict(params or {})
        self.validate(spec, payload)
        logger.info("action_started", action=spec.id)
        result = spec.handler(payload, services)
        logger.info("action_succeeded", action=spec.id, tx_hash=result.get("transactionHash"))
        return result

    def invoke(
        self,
        action_id: str,
        params: Optional[Mapping[str, Any]],
        services: ActionServices,
    ) -> ActionResult:
        try:
            body = self.run_action(action_id, params, services)
        except ActionError as exc:
            logger.warning(
                "action_failed",
                action=str(action_id),
                code=exc.code,
                status_code=exc.status_code,
                error=exc.message,
            )
            return ActionResult(status_code=exc.status_code, body=services.assembler.failure(exc))
        except Exception as exc:
            logger.exception("action_crashed", action=str(action_id), error=str(exc))
            return ActionResult(status_code=500, body=services.assembler.unexpected_failure(exc))
        return ActionResult(status_code=200, body=body)
