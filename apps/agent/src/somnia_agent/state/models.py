from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

TOOL_TYPES: Tuple[str, ...] = (
    "transfer",
    "swap",
    "get_balance",
    "deploy_erc20",
    "deploy_erc721",
    "create_dao",
    "airdrop",
    "fetch_price",
    "deposit_yield",
    "wallet_analytics",
)

StepStatus = Literal["succeeded", "failed", "skipped"]
DiagnosticSeverity = Literal["error", "warning", "info"]


class WorkflowNode(BaseModel):
    id: str
    type: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    position: Optional[Dict[str, float]] = None


class WorkflowEdge(BaseModel):
    id: str = ""
    source: str
    target: str
    type: Optional[str] = None


class WorkflowGraph(BaseModel):
    nodes: List[WorkflowNode] = Field(default_factory=list)
    edges: List[WorkflowEdge] = Field(default_factory=list)


class ToolChainEntry(BaseModel):
    tool: str
    next_tool: Optional[str] = None


class ValidationDiagnosticModel(BaseModel):
    code: str
    severity: DiagnosticSeverity = "error"
    message: str
    node_id: Optional[str] = None
    edge_id: Optional[str] = None


@dataclass(frozen=True)
class CallSpec:
    """One ledger call. `function=None` means a plain native-currency send to `to`."""

    to: str
    abi: Sequence[Mapping[str, Any]] = ()
    function: Optional[str] = None
    args: Tuple[Any, ...] = ()
    value: int = 0
    label: str = ""

    @property
    def is_native_send(self) -> bool:
        return self.function is None


@dataclass(frozen=True)
class PreflightRequirement:
    required: int
    token_address: Optional[str] = None
    require_gas: bool = False
    decimals: int = 18
    symbol: str = ""

    @property
    def asset(self) -> str:
        return self.token_address or "native"


@dataclass(frozen=True)
class PreflightResult:
    balance: int
    required: int
    passed: bool


@dataclass(frozen=True)
class GasPlan:
    estimate: Optional[int] = None
    limit: Optional[int] = None

    @property
    def is_unset(self) -> bool:
        return self.limit is None


@dataclass(frozen=True)
class DecodedEvent:
    name: str
    args: Dict[str, Any]
    address: str = ""
    log_index: int = 0


@dataclass(frozen=True)
class EventExpectation:
    abi: Sequence[Mapping[str, Any]]
    name: str


@dataclass
class TransactionOutcome:
    tx_hash: str
    block_number: int
    gas_used: int
    logs: List[Dict[str, Any]] = field(default_factory=list)
    event: Optional[DecodedEvent] = None
    gas_plan: GasPlan = field(default_factory=GasPlan)
    approval: Optional["TransactionOutcome"] = None


@dataclass
class CompositeStepResult:
    name: str
    status: StepStatus
    outcome: Optional[TransactionOutcome] = None
    values: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"step": self.name, "status": self.status}
        if self.outcome is not None:
            payload["transactionHash"] = self.outcome.tx_hash
            payload["blockNumber"] = self.outcome.block_number
        if self.values:
            payload.update(self.values)
        if self.error:
            payload["error"] = self.error
        return payload
