from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, FrozenSet, Mapping, Optional

from somnia_agent.errors import ActionError, CompositeActionError
from somnia_agent.pipeline.composite import CompositeRun
from somnia_agent.state.models import TransactionOutcome

# Counters that stay JSON numbers; every other integer is a chain amount.
PLAIN_INT_KEYS: FrozenSet[str] = frozenset(
    {
        "blockNumber",
        "decimals",
        "recipientCount",
        "chainId",
        "nonce",
        "transactionCount",
        "nonZeroTokenCount",
        "votingPeriod",
        "quorumPercentage",
        "slippageTolerance",
        "fee",
        "logIndex",
    }
)


def render_value(value: Any, *, key: str = "") -> Any:
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, int):
        return value if key in PLAIN_INT_KEYS else str(value)
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, Mapping):
        return {str(k): render_value(v, key=str(k)) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [render_value(item, key=key) for item in value]
    return value


class ResultAssembler:
    """Builds the single response envelope every action returns."""

    def __init__(self, *, explorer_url: str) -> None:
        self._explorer_url = str(explorer_url or "").rstrip("/")

    def explorer_tx_url(self, tx_hash: str) -> str:
        return f"{self._explorer_url}/tx/{tx_hash}"

    def success(
        self,
        fields: Optional[Mapping[str, Any]] = None,
        outcome: Optional[TransactionOutcome] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": True}
        payload.update(render_value(dict(fields or {})))
        if outcome is not None:
            payload["transactionHash"] = outcome.tx_hash
            payload["blockNumber"] = outcome.block_number
            payload["gasUsed"] = str(outcome.gas_used)
            payload["explorerUrl"] = self.explorer_tx_url(outcome.tx_hash)
            if outcome.approval is not None:
                payload["approveTxHash"] = outcome.approval.tx_hash
        return payload

    def composite_success(self, fields: Mapping[str, Any], run: CompositeRun) -> Dict[str, Any]:
        payload = self.success(fields, run.last_outcome)
        payload["steps"] = [self._step_payload(item.to_payload()) for item in run.steps]
        return payload

    def failure(self, error: ActionError) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": False,
            "error": error.message,
            "details": render_value(error.to_details()),
        }
        if isinstance(error, CompositeActionError):
            payload["steps"] = [self._step_payload(item) for item in error.steps]
        return payload

    def unexpected_failure(self, exc: Exception) -> Dict[str, Any]:
        return {
            "success": False,
            "error": str(exc) or exc.__class__.__name__,
            "details": {"code": "INTERNAL_ERROR"},
        }

    def _step_payload(self, step: Mapping[str, Any]) -> Dict[str, Any]:
        payload = render_value(dict(step))
        tx_hash = payload.get("transactionHash")
        if tx_hash:
            payload["explorerUrl"] = self.explorer_tx_url(str(tx_hash))
        return payload
