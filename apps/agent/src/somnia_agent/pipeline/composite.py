"""Multi-transaction actions whose later steps consume earlier on-chain results.

Steps run strictly in order and every step's result is recorded. A failing step
stops the flow; steps that already confirmed stay on chain (there is no
compensating transaction) and the raised ``CompositeActionError`` carries the
record so the caller can resume by hand, e.g. minting into the collection that
was already deployed.
"""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import structlog

from somnia_agent.chain.abis import AIRDROP_ABI, NFT_COLLECTION_ABI, NFT_FACTORY_ABI
from somnia_agent.chain.signer import invalid_addresses, require_address, same_address
from somnia_agent.chain.tokens import read_token_decimals
from somnia_agent.chain.units import parse_positive_units
from somnia_agent.errors import (
    ActionError,
    CompositeActionError,
    ConfigurationError,
    ExpectedEventNotFoundError,
    InvalidAddressError,
    OwnershipMismatchError,
    SubmissionError,
    ValidationError,
)
from somnia_agent.pipeline.transaction import TransactionPipeline
from somnia_agent.runtime.config import RuntimeConfig
from somnia_agent.state.models import (
    CallSpec,
    CompositeStepResult,
    EventExpectation,
    PreflightRequirement,
    TransactionOutcome,
)

logger = structlog.get_logger(__name__)

StepOutput = Tuple[Optional[TransactionOutcome], Dict[str, Any]]


@dataclass(frozen=True)
class CompositeStep:
    name: str
    run: Callable[[Dict[str, Any]], StepOutput]


@dataclass
class CompositeRun:
    steps: List[CompositeStepResult] = field(default_factory=list)
    values: Dict[str, Any] = field(default_factory=dict)

    def outcome(self, name: str) -> Optional[TransactionOutcome]:
        for step in self.steps:
            if step.name == name:
                return step.outcome
        return None

    @property
    def last_outcome(self) -> Optional[TransactionOutcome]:
        for step in reversed(self.steps):
            if step.outcome is not None:
                return step.outcome
        return None


def event_arg(outcome: TransactionOutcome, name: str) -> Any:
    event = outcome.event
    if event is None:
        raise ExpectedEventNotFoundError("Expected", tx_hash=outcome.tx_hash, argument=name)
    if name not in event.args:
        raise ExpectedEventNotFoundError(event.name, tx_hash=outcome.tx_hash, argument=name)
    return event.args[name]


def build_metadata_uri(
    *,
    name: str,
    description: str = "",
    image: str = "",
    attributes: Optional[Sequence[Any]] = None,
) -> str:
    metadata: Dict[str, Any] = {"name": name, "description": description, "image": image}
    if attributes:
        metadata["attributes"] = list(attributes)
    encoded = base64.b64encode(
        json.dumps(metadata, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    ).decode("ascii")
    return f"data:application/json;base64,{encoded}"


class CompositeActionCoordinator:
    def __init__(self, *, pipeline: TransactionPipeline, config: RuntimeConfig) -> None:
        self._pipeline = pipeline
        self._config = config

    def run(self, steps: Sequence[CompositeStep]) -> CompositeRun:
        record = CompositeRun()
        for index, step in enumerate(steps):
            try:
                outcome, produced = step.run(dict(record.values))
            except ActionError as exc:
                raise self._stop(record, steps, index, exc) from exc
            except Exception as exc:
                logger.exception("composite_step_crashed", step=step.name, error=str(exc))
                cause = SubmissionError(
                    f"{step.name} failed: {exc}",
                    reason=str(exc) or exc.__class__.__name__,
                    provider_code=exc.__class__.__name__,
                )
                raise self._stop(record, steps, index, cause) from exc
            record.values.update(produced)
            record.steps.append(
                CompositeStepResult(name=step.name, status="succeeded", outcome=outcome, values=produced)
            )
        return record

    def _stop(
        self,
        record: CompositeRun,
        steps: Sequence[CompositeStep],
        index: int,
        cause: ActionError,
    ) -> CompositeActionError:
        step = steps[index]
        record.steps.append(CompositeStepResult(name=step.name, status="failed", error=cause.message))
        record.steps.extend(CompositeStepResult(name=later.name, status="skipped") for later in steps[index + 1 :])
        logger.warning(
            "composite_step_failed",
            step=step.name,
            error=cause.message,
            completed=[item.name for item in record.steps if item.status == "succeeded"],
        )
        return CompositeActionError(
            failed_step=step.name,
            cause=cause,
            steps=[item.to_payload() for item in record.steps],
        )

    def _nft_factory(self) -> str:
        address = str(self._config.nft_factory_address or "").strip()
        if not address:
            raise ConfigurationError("NFT_FACTORY_ADDRESS is not configured.")
        return address

    def deploy_collection(
        self,
        signer: Any,
        *,
        name: str,
        symbol: str,
        base_uri: str = "",
        extra_fee: int = 0,
    ) -> TransactionOutcome:
        fee = int(self._config.collection_creation_fee_wei)
        return self._pipeline.execute(
            signer,
            CallSpec(
                to=self._nft_factory(),
                abi=NFT_FACTORY_ABI,
                function="createCollection",
                args=(name, symbol, base_uri),
                value=fee,
                label="createCollection",
            ),
            preflight=PreflightRequirement(required=fee + int(extra_fee), require_gas=True),
            expect_event=EventExpectation(abi=NFT_FACTORY_ABI, name="CollectionCreated"),
        )

    def create_collection_and_mint(
        self,
        signer: Any,
        *,
        recipient: str,
        token_uri: str,
        collection_address: Optional[str] = None,
        collection_name: str = "",
        collection_symbol: str = "",
        base_uri: str = "",
    ) -> CompositeRun:
        recipient = require_address(recipient, field="recipientAddress")
        mint_fee = int(self._config.mint_fee_wei)
        steps: List[CompositeStep] = []

        if collection_address:
            collection_address = require_address(collection_address, field="collectionAddress")
        else:
            self._nft_factory()

            def _deploy(_: Dict[str, Any]) -> StepOutput:
                outcome = self.deploy_collection(
                    signer,
                    name=collection_name,
                    symbol=collection_symbol,
                    base_uri=base_uri,
                    extra_fee=mint_fee,
                )
                return outcome, {"collectionAddress": event_arg(outcome, "collectionAddress")}

            steps.append(CompositeStep(name="deploy_collection", run=_deploy))

        def _verify(values: Dict[str, Any]) -> StepOutput:
            collection = str(values.get("collectionAddress") or collection_address)
            owner = str(
                self._pipeline.ledger.call(
                    CallSpec(to=collection, abi=NFT_COLLECTION_ABI, function="owner")
                )
            )
            if not same_address(owner, str(signer.address)):
                raise OwnershipMismatchError(contract=collection, owner=owner, signer=str(signer.address))
            return None, {"collectionAddress": collection, "collectionOwner": owner}

        def _mint(values: Dict[str, Any]) -> StepOutput:
            collection = str(values["collectionAddress"])
            outcome = self._pipeline.execute(
                signer,
                CallSpec(
                    to=collection,
                    abi=NFT_COLLECTION_ABI,
                    function="safeMint",
                    args=(recipient, token_uri),
                    value=mint_fee,
                    label="safeMint",
                ),
                preflight=PreflightRequirement(required=mint_fee, require_gas=True),
                expect_event=EventExpectation(abi=NFT_COLLECTION_ABI, name="Transfer"),
            )
            return outcome, {
                "tokenId": event_arg(outcome, "tokenId"),
                "tokenURI": token_uri,
                "recipient": recipient,
            }

        steps.append(CompositeStep(name="verify_ownership", run=_verify))
        steps.append(CompositeStep(name="mint", run=_mint))
        return self.run(steps)

    def airdrop(
        self,
        signer: Any,
        *,
        recipients: Sequence[Any],
        amount: Any,
        token_address: Optional[str] = None,
    ) -> Tuple[TransactionOutcome, Dict[str, Any]]:
        if not isinstance(recipients, (list, tuple)) or not recipients:
            raise ValidationError("recipients must be a non-empty list.", details={"field": "recipients"})
        bad = invalid_addresses(recipients)
        if bad:
            raise InvalidAddressError(bad, field="recipients")
        targets = [require_address(item, field="recipients") for item in recipients]
        if token_address:
            token_address = require_address(token_address, field="tokenAddress")
        else:
            amount_each = parse_positive_units(amount)

        contract = str(self._config.airdrop_address or "").strip()
        if not contract:
            raise ConfigurationError("AIRDROP_CONTRACT_ADDRESS is not configured.")

        if token_address is None:
            total = amount_each * len(targets)
            outcome = self._pipeline.execute(
                signer,
                CallSpec(
                    to=contract,
                    abi=AIRDROP_ABI,
                    function="airdropNative",
                    args=(targets, amount_each),
                    value=total,
                    label="airdropNative",
                ),
                preflight=PreflightRequirement(required=total, require_gas=True),
            )
            return outcome, {"amountEach": amount_each, "totalAmount": total, "decimals": 18}

        decimals = read_token_decimals(self._pipeline.ledger, token_address)
        amount_each = parse_positive_units(amount, decimals)
        total = amount_each * len(targets)
        outcome = self._pipeline.execute_with_allowance(
            signer,
            CallSpec(
                to=contract,
                abi=AIRDROP_ABI,
                function="airdropToken",
                args=(token_address, targets, amount_each),
                label="airdropToken",
            ),
            token_address=token_address,
            spender=contract,
            amount=total,
            preflight=PreflightRequirement(
                required=total, token_address=token_address, require_gas=True, decimals=decimals
            ),
        )
        return outcome, {"amountEach": amount_each, "totalAmount": total, "decimals": decimals}
