"""Sequential execution of a compiled tool chain.

Tools run one at a time in chain order. The first failed tool stops the run;
tools after it are reported as skipped and earlier transactions stay on chain.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

import structlog

from somnia_agent.runtime.tracing import StepEmitter, StepEvent, json_safe, redact, step_label, utc_now_iso
from somnia_agent.services import ActionServices
from somnia_agent.state.models import ToolChainEntry
from somnia_agent.tools.registry import ActionRegistry

logger = structlog.get_logger(__name__)


@dataclass
class ChainRunResult:
    steps: List[Dict[str, Any]] = field(default_factory=list)
    events: List[StepEvent] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return bool(self.steps) and all(item["status"] == "succeeded" for item in self.steps)

    @property
    def failed_index(self) -> Optional[int]:
        for item in self.steps:
            if item["status"] == "failed":
                return int(item["index"])
        return None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "failedIndex": self.failed_index,
            "steps": list(self.steps),
            "events": [event.model_dump() for event in self.events],
        }


def step_params(
    index: int,
    entry: ToolChainEntry,
    *,
    inputs: Optional[Sequence[Mapping[str, Any]]] = None,
    params_by_tool: Optional[Mapping[str, Mapping[str, Any]]] = None,
    shared: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Merge shared fields (e.g. the signing key) under the per-step input.

    Per-index ``inputs`` win over per-tool ``params_by_tool``.
    """
    merged: Dict[str, Any] = dict(shared or {})
    if inputs is not None and index < len(inputs) and inputs[index] is not None:
        merged.update(dict(inputs[index]))
    elif params_by_tool and entry.tool in params_by_tool:
        merged.update(dict(params_by_tool[entry.tool] or {}))
    return merged


def run_tool_chain(
    chain: Sequence[ToolChainEntry],
    *,
    registry: ActionRegistry,
    services: ActionServices,
    inputs: Optional[Sequence[Mapping[str, Any]]] = None,
    params_by_tool: Optional[Mapping[str, Mapping[str, Any]]] = None,
    shared: Optional[Mapping[str, Any]] = None,
    step_emitter: Optional[StepEmitter] = None,
) -> ChainRunResult:
    result = ChainRunResult()

    def _emit(event: StepEvent) -> None:
        result.events.append(event)
        if step_emitter:
            step_emitter(event)

    for index, entry in enumerate(chain):
        if result.failed_index is not None:
            result.steps.append({"index": index, "tool": entry.tool, "status": "skipped"})
            continue

        params = step_params(index, entry, inputs=inputs, params_by_tool=params_by_tool, shared=shared)
        started_at = utc_now_iso()
        safe_input = json_safe(redact(params))
        _emit(
            StepEvent(
                name=entry.tool,
                status="running",
                phase="start",
                index=index,
                label=step_label(entry.tool),
                started_at=started_at,
                ended_at=started_at,
                input=safe_input,
            )
        )

        outcome = registry.invoke(entry.tool, params, services)
        status = "succeeded" if outcome.ok else "failed"
        _emit(
            StepEvent(
                name=entry.tool,
                status=status,
                phase="end",
                index=index,
                label=step_label(entry.tool),
                started_at=started_at,
                ended_at=utc_now_iso(),
                input=safe_input,
                output=json_safe(outcome.body),
            )
        )
        result.steps.append(
            {
                "index": index,
                "tool": entry.tool,
                "nextTool": entry.next_tool,
                "status": status,
                "statusCode": outcome.status_code,
                "result": outcome.body,
            }
        )
        if not outcome.ok:
            logger.warning("tool_chain_stopped", index=index, tool=entry.tool, status_code=outcome.status_code)

    return result
