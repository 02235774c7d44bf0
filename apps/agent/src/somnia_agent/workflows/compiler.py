"""Workflow graph <-> linear tool chain conversion.

The editor produces a node/edge graph; agents store and execute a flat chain of
``{tool, next_tool}`` entries. A node keeps at most one outgoing edge: when a
node has several, the last edge in input order wins and the others are dropped.
The chain cannot express fan-out, so ``validate_workflow_graph`` reports every
dropped edge as a ``BRANCH_DISCARDED`` warning instead of losing it silently.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Union

from somnia_agent.state.models import (
    TOOL_TYPES,
    ToolChainEntry,
    ValidationDiagnosticModel,
    WorkflowEdge,
    WorkflowGraph,
    WorkflowNode,
)

GraphInput = Union[WorkflowGraph, Mapping[str, Any]]
ChainInput = Sequence[Union[ToolChainEntry, Mapping[str, Any]]]

LAYOUT_ORIGIN_X = 100
LAYOUT_STEP_X = 200
LAYOUT_Y = 100


@dataclass
class WorkflowCompileResult:
    chain: List[ToolChainEntry]
    diagnostics: List[ValidationDiagnosticModel]

    @property
    def valid(self) -> bool:
        return not any(item.severity == "error" for item in self.diagnostics)


def _coerce_graph(graph: GraphInput) -> WorkflowGraph:
    if isinstance(graph, WorkflowGraph):
        return graph
    return WorkflowGraph.model_validate(dict(graph))


def _coerce_chain(chain: ChainInput) -> List[ToolChainEntry]:
    entries: List[ToolChainEntry] = []
    for item in chain:
        if isinstance(item, ToolChainEntry):
            entries.append(item)
        else:
            entries.append(ToolChainEntry.model_validate(dict(item)))
    return entries


def _node_types(nodes: Iterable[WorkflowNode]) -> Dict[str, str]:
    lookup: Dict[str, str] = {}
    for node in nodes:
        node_type = str(node.type or "").strip()
        if node_type:
            lookup[node.id] = node_type
    return lookup


def _next_node_lookup(edges: Iterable[WorkflowEdge]) -> Dict[str, str]:
    # Last write wins for nodes with several outgoing edges.
    lookup: Dict[str, str] = {}
    for edge in edges:
        lookup[edge.source] = edge.target
    return lookup


def compile_workflow_graph(graph: GraphInput) -> List[ToolChainEntry]:
    workflow = _coerce_graph(graph)
    node_types = _node_types(workflow.nodes)
    next_node = _next_node_lookup(workflow.edges)
    targeted = {edge.target for edge in workflow.edges}

    chain: List[ToolChainEntry] = []
    visited: Set[str] = set()

    def _walk(start_id: str) -> None:
        node_id: Optional[str] = start_id
        while node_id is not None and node_id not in visited:
            node_type = node_types.get(node_id)
            if not node_type:
                return
            visited.add(node_id)

            next_id = next_node.get(node_id)
            next_type = node_types.get(next_id) if next_id else None
            chain.append(ToolChainEntry(tool=node_type, next_tool=next_type))
            node_id = next_id if next_type else None

    for node in workflow.nodes:
        if node.id not in targeted:
            _walk(node.id)

    for node in workflow.nodes:
        node_type = node_types.get(node.id)
        if node.id in visited or not node_type:
            continue
        visited.add(node.id)
        chain.append(ToolChainEntry(tool=node_type, next_tool=None))

    return chain


def expand_tool_chain(chain: ChainInput) -> WorkflowGraph:
    """Rebuild a graph from a chain.

    Edges link to the first entry whose tool matches ``next_tool``, so chains that
    repeat a tool type do not round-trip to their original edges.
    """
    entries = _coerce_chain(chain)
    nodes: List[WorkflowNode] = []
    edges: List[WorkflowEdge] = []

    for index, entry in enumerate(entries):
        nodes.append(
            WorkflowNode(
                id=f"{entry.tool}-{index + 1}",
                type=entry.tool,
                position={"x": float(LAYOUT_ORIGIN_X + index * LAYOUT_STEP_X), "y": float(LAYOUT_Y)},
                data={"label": entry.tool},
            )
        )

    first_index_by_tool: Dict[str, int] = {}
    for index, entry in enumerate(entries):
        first_index_by_tool.setdefault(entry.tool, index)

    for index, entry in enumerate(entries):
        if not entry.next_tool:
            continue
        target_index = first_index_by_tool.get(entry.next_tool)
        if target_index is None:
            continue
        source = nodes[index]
        target = nodes[target_index]
        edges.append(
            WorkflowEdge(
                id=f"edge-{source.id}-{target.id}",
                source=source.id,
                target=target.id,
                type="custom",
            )
        )

    return WorkflowGraph(nodes=nodes, edges=edges)


def validate_workflow_graph(
    graph: GraphInput,
    *,
    known_tools: Iterable[str] = TOOL_TYPES,
) -> List[ValidationDiagnosticModel]:
    workflow = _coerce_graph(graph)
    known = {str(item) for item in known_tools}
    diagnostics: List[ValidationDiagnosticModel] = []

    seen: Set[str] = set()
    for node in workflow.nodes:
        if node.id in seen:
            diagnostics.append(
                ValidationDiagnosticModel(
                    code="DUPLICATE_NODE_ID",
                    severity="error",
                    message=f"Duplicate node id '{node.id}'.",
                    node_id=node.id,
                )
            )
        seen.add(node.id)

        node_type = str(node.type or "").strip()
        if not node_type:
            diagnostics.append(
                ValidationDiagnosticModel(
                    code="NODE_TYPE_MISSING",
                    severity="error",
                    message=f"Node '{node.id}' has no tool type and will be skipped.",
                    node_id=node.id,
                )
            )
        elif node_type not in known:
            diagnostics.append(
                ValidationDiagnosticModel(
                    code="UNKNOWN_TOOL",
                    severity="error",
                    message=f"Node '{node.id}' references unknown tool '{node_type}'.",
                    node_id=node.id,
                )
            )

    outgoing: Dict[str, List[WorkflowEdge]] = defaultdict(list)
    for edge in workflow.edges:
        for end, label in ((edge.source, "source"), (edge.target, "target")):
            if end not in seen:
                diagnostics.append(
                    ValidationDiagnosticModel(
                        code="EDGE_NODE_MISSING",
                        severity="warning",
                        message=f"Edge '{edge.id}' references unknown {label} node '{end}'.",
                        edge_id=edge.id or None,
                    )
                )
        outgoing[edge.source].append(edge)

    for source, edges in outgoing.items():
        if len(edges) < 2:
            continue
        kept = edges[-1]
        for dropped in edges[:-1]:
            diagnostics.append(
                ValidationDiagnosticModel(
                    code="BRANCH_DISCARDED",
                    severity="warning",
                    message=(
                        f"Node '{source}' has {len(edges)} outgoing edges; only the edge to "
                        f"'{kept.target}' is kept, the edge to '{dropped.target}' is dropped."
                    ),
                    node_id=source,
                    edge_id=dropped.id or None,
                )
            )

    cycle = _find_cycle(_next_node_lookup(workflow.edges))
    if cycle:
        diagnostics.append(
            ValidationDiagnosticModel(
                code="CYCLE_DETECTED",
                severity="warning",
                message=f"Cycle detected: {' -> '.join(cycle)}; the chain stops at the first revisit.",
            )
        )

    return diagnostics


def _find_cycle(next_node: Mapping[str, str]) -> List[str]:
    done: Set[str] = set()
    for start in next_node:
        if start in done:
            continue
        path: List[str] = []
        on_path: Dict[str, int] = {}
        current: Optional[str] = start
        while current is not None and current not in done:
            if current in on_path:
                cycle = path[on_path[current]:]
                return cycle + [current]
            on_path[current] = len(path)
            path.append(current)
            current = next_node.get(current)
        done.update(path)
    return []


def validate_and_compile_workflow_graph(
    graph: GraphInput,
    *,
    known_tools: Iterable[str] = TOOL_TYPES,
) -> WorkflowCompileResult:
    workflow = _coerce_graph(graph)
    return WorkflowCompileResult(
        chain=compile_workflow_graph(workflow),
        diagnostics=validate_workflow_graph(workflow, known_tools=known_tools),
    )
