from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from somnia_agent.state.models import (
    ToolChainEntry,
    ValidationDiagnosticModel,
    WorkflowEdge,
    WorkflowGraph,
    WorkflowNode,
)


class WorkflowCompileRequest(BaseModel):
    nodes: List[WorkflowNode] = Field(default_factory=list)
    edges: List[WorkflowEdge] = Field(default_factory=list)

    def to_graph(self) -> WorkflowGraph:
        return WorkflowGraph(nodes=self.nodes, edges=self.edges)


class WorkflowCompileResponse(BaseModel):
    valid: bool
    tool_chain: List[ToolChainEntry]
    diagnostics: List[ValidationDiagnosticModel] = Field(default_factory=list)


class WorkflowExpandRequest(BaseModel):
    tool_chain: List[ToolChainEntry] = Field(default_factory=list)


class WorkflowExpandResponse(BaseModel):
    nodes: List[WorkflowNode] = Field(default_factory=list)
    edges: List[WorkflowEdge] = Field(default_factory=list)


class WorkflowRunRequest(BaseModel):
    privateKey: Optional[str] = None
    tool_chain: Optional[List[ToolChainEntry]] = None
    graph: Optional[WorkflowGraph] = None
    # Per-step input, aligned with the chain order.
    inputs: Optional[List[Dict[str, Any]]] = None
    # Fallback input keyed by tool type.
    params: Dict[str, Dict[str, Any]] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _validate_selector(self) -> "WorkflowRunRequest":
        if (self.tool_chain is None) == (self.graph is None):
            raise ValueError("Exactly one of tool_chain or graph must be provided.")
        return self


class WorkflowRunResponse(BaseModel):
    success: bool
    failedIndex: Optional[int] = None
    tool_chain: List[ToolChainEntry] = Field(default_factory=list)
    diagnostics: List[ValidationDiagnosticModel] = Field(default_factory=list)
    steps: List[Dict[str, Any]] = Field(default_factory=list)
    events: List[Dict[str, Any]] = Field(default_factory=list)
