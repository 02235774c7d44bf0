from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from somnia_agent.chain.client import LedgerClient, Web3LedgerClient
from somnia_agent.chain.signer import load_signer
from somnia_agent.pipeline.composite import CompositeActionCoordinator
from somnia_agent.pipeline.results import ResultAssembler
from somnia_agent.pipeline.transaction import TransactionPipeline
from somnia_agent.pricing.client import PriceClient
from somnia_agent.runtime.config import RuntimeConfig, load_runtime_config


@dataclass
class ActionServices:
    """Everything a handler may touch. Built once per process, shared read-only."""

    config: RuntimeConfig
    ledger: LedgerClient
    pipeline: TransactionPipeline
    coordinator: CompositeActionCoordinator
    assembler: ResultAssembler
    price_client: PriceClient
    signer_loader: Callable[[str], Any] = load_signer

    def signer(self, params: Mapping[str, Any]) -> Any:
        return self.signer_loader(str(params.get("privateKey") or ""))

    def close(self) -> None:
        self.price_client.close()


def build_services(
    config: Optional[RuntimeConfig] = None,
    *,
    ledger: Optional[LedgerClient] = None,
    price_client: Optional[PriceClient] = None,
) -> ActionServices:
    resolved = config or load_runtime_config()
    ledger_client = ledger or Web3LedgerClient(
        rpc_url=resolved.rpc_url,
        request_timeout_seconds=resolved.rpc_timeout_seconds,
        receipt_timeout_seconds=resolved.receipt_timeout_seconds,
        receipt_poll_seconds=resolved.receipt_poll_seconds,
    )
    pipeline = TransactionPipeline(ledger=ledger_client)
    return ActionServices(
        config=resolved,
        ledger=ledger_client,
        pipeline=pipeline,
        coordinator=CompositeActionCoordinator(pipeline=pipeline, config=resolved),
        assembler=ResultAssembler(explorer_url=resolved.explorer_url),
        price_client=price_client
        or PriceClient(
            base_url=resolved.price_api_url,
            timeout_seconds=resolved.price_api_timeout_seconds,
        ),
    )
