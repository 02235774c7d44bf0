from __future__ import annotations

from typing import Any, Dict, List, Optional

from somnia_agent.services import ActionServices
from somnia_agent.state.models import ToolChainEntry, ValidationDiagnosticModel, WorkflowGraph
from somnia_agent.tools.registry import ActionRegistry
from somnia_agent.workflows.compiler import (
    expand_tool_chain,
    validate_and_compile_workflow_graph,
)
from somnia_agent.workflows.runner import run_tool_chain

from app.workflows.schemas import WorkflowRunRequest


def compile_workflow_payload(graph: WorkflowGraph) -> Dict[str, Any]:
    result = validate_and_compile_workflow_graph(graph)
    return {
        "valid": result.valid,
        "tool_chain": [item.model_dump() for item in result.chain],
        "diagnostics": [item.model_dump() for item in result.diagnostics],
    }


def expand_chain_payload(chain: List[ToolChainEntry]) -> Dict[str, Any]:
    return expand_tool_chain(chain).model_dump()


def run_workflow_payload(
    request: WorkflowRunRequest,
    *,
    registry: ActionRegistry,
    services: ActionServices,
) -> Dict[str, Any]:
    diagnostics: List[ValidationDiagnosticModel] = []
    if request.graph is not None:
        compiled = validate_and_compile_workflow_graph(request.graph)
        chain = compiled.chain
        diagnostics = compiled.diagnostics
    else:
        chain = list(request.tool_chain or [])

    shared: Optional[Dict[str, Any]] = None
    if request.privateKey:
        shared = {"privateKey": request.privateKey}

    result = run_tool_chain(
        chain,
        registry=registry,
        services=services,
        inputs=request.inputs,
        params_by_tool=request.params,
        shared=shared,
    )
    payload = result.to_payload()
    payload["tool_chain"] = [item.model_dump() for item in chain]
    payload["diagnostics"] = [item.model_dump() for item in diagnostics]
    return payload
