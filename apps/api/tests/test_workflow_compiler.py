from __future__ import annotations

import unittest

from somnia_agent.state.models import ToolChainEntry, WorkflowGraph
from somnia_agent.workflows.compiler import (
    compile_workflow_graph,
    expand_tool_chain,
    validate_and_compile_workflow_graph,
    validate_workflow_graph,
)


def _node(node_id: str, tool: str | None) -> dict:
    return {"id": node_id, "type": tool, "data": {"label": tool or ""}, "position": {"x": 0, "y": 0}}


def _edge(source: str, target: str) -> dict:
    return {"id": f"e-{source}-{target}", "source": source, "target": target}


def _graph(nodes: list, edges: list) -> WorkflowGraph:
    return WorkflowGraph.model_validate({"nodes": nodes, "edges": edges})


def _pairs(chain: list) -> list:
    return [(entry.tool, entry.next_tool) for entry in chain]


class CompileWorkflowGraphTests(unittest.TestCase):
    def test_linear_graph_emits_one_entry_per_node(self) -> None:
        graph = _graph(
            [_node("a", "get_balance"), _node("b", "swap"), _node("c", "transfer")],
            [_edge("a", "b"), _edge("b", "c")],
        )
        chain = compile_workflow_graph(graph)
        self.assertEqual(
            _pairs(chain),
            [("get_balance", "swap"), ("swap", "transfer"), ("transfer", None)],
        )

    def test_node_order_does_not_change_walk_order(self) -> None:
        graph = _graph(
            [_node("c", "transfer"), _node("b", "swap"), _node("a", "get_balance")],
            [_edge("b", "c"), _edge("a", "b")],
        )
        self.assertEqual(
            _pairs(compile_workflow_graph(graph)),
            [("get_balance", "swap"), ("swap", "transfer"), ("transfer", None)],
        )

    def test_isolated_nodes_become_singletons(self) -> None:
        graph = _graph([_node("a", "fetch_price"), _node("b", "airdrop")], [])
        self.assertEqual(_pairs(compile_workflow_graph(graph)), [("fetch_price", None), ("airdrop", None)])

    def test_accepts_plain_mapping(self) -> None:
        chain = compile_workflow_graph(
            {"nodes": [_node("a", "transfer"), _node("b", "swap")], "edges": [_edge("a", "b")]}
        )
        self.assertEqual(_pairs(chain), [("transfer", "swap"), ("swap", None)])

    def test_branching_keeps_last_edge_and_appends_dropped_target(self) -> None:
        graph = _graph(
            [_node("a", "get_balance"), _node("b", "swap"), _node("c", "transfer")],
            [_edge("a", "b"), _edge("a", "c")],
        )
        chain = compile_workflow_graph(graph)
        # a -> c wins; b is only reachable through the dropped edge.
        self.assertEqual(_pairs(chain), [("get_balance", "transfer"), ("transfer", None), ("swap", None)])
        self.assertEqual(len(chain), 3)

    def test_next_tool_is_none_when_target_has_no_type(self) -> None:
        graph = _graph([_node("a", "transfer"), _node("b", None)], [_edge("a", "b")])
        self.assertEqual(_pairs(compile_workflow_graph(graph)), [("transfer", None)])

    def test_cycle_without_head_is_emitted_once(self) -> None:
        graph = _graph(
            [_node("a", "swap"), _node("b", "transfer")],
            [_edge("a", "b"), _edge("b", "a")],
        )
        chain = compile_workflow_graph(graph)
        self.assertEqual(sorted(entry.tool for entry in chain), ["swap", "transfer"])
        self.assertTrue(all(entry.next_tool is None for entry in chain))


class ExpandToolChainTests(unittest.TestCase):
    def test_layout_and_edges(self) -> None:
        graph = expand_tool_chain(
            [
                ToolChainEntry(tool="get_balance", next_tool="transfer"),
                ToolChainEntry(tool="transfer", next_tool=None),
            ]
        )
        self.assertEqual([node.id for node in graph.nodes], ["get_balance-1", "transfer-2"])
        self.assertEqual(graph.nodes[1].position, {"x": 300.0, "y": 100.0})
        self.assertEqual(graph.nodes[0].data, {"label": "get_balance"})
        self.assertEqual(len(graph.edges), 1)
        self.assertEqual(graph.edges[0].id, "edge-get_balance-1-transfer-2")
        self.assertEqual((graph.edges[0].source, graph.edges[0].target), ("get_balance-1", "transfer-2"))

    def test_round_trip_with_repeated_tool_does_not_recover_original_edges(self) -> None:
        original = _graph(
            [_node("t1", "transfer"), _node("s1", "swap"), _node("t2", "transfer")],
            [_edge("t1", "s1"), _edge("s1", "t2")],
        )
        chain = compile_workflow_graph(original)
        self.assertEqual(_pairs(chain), [("transfer", "swap"), ("swap", "transfer"), ("transfer", None)])

        rebuilt = expand_tool_chain(chain)
        rebuilt_edges = {(edge.source, edge.target) for edge in rebuilt.edges}
        # swap -> transfer resolves to the first transfer node, closing a loop
        # that the original graph never had.
        self.assertEqual(rebuilt_edges, {("transfer-1", "swap-2"), ("swap-2", "transfer-1")})
        self.assertNotIn(("swap-2", "transfer-3"), rebuilt_edges)
        self.assertNotEqual(_pairs(compile_workflow_graph(rebuilt)), _pairs(chain))


class ValidateWorkflowGraphTests(unittest.TestCase):
    def _codes(self, graph: WorkflowGraph) -> list:
        return [item.code for item in validate_workflow_graph(graph)]

    def test_clean_graph_has_no_diagnostics(self) -> None:
        graph = _graph([_node("a", "transfer"), _node("b", "swap")], [_edge("a", "b")])
        self.assertEqual(validate_workflow_graph(graph), [])

    def test_branch_discarded_is_reported(self) -> None:
        graph = _graph(
            [_node("a", "get_balance"), _node("b", "swap"), _node("c", "transfer")],
            [_edge("a", "b"), _edge("a", "c")],
        )
        diagnostics = validate_workflow_graph(graph)
        self.assertEqual([item.code for item in diagnostics], ["BRANCH_DISCARDED"])
        self.assertEqual(diagnostics[0].severity, "warning")
        self.assertEqual(diagnostics[0].edge_id, "e-a-b")

    def test_unknown_tool_and_missing_type_are_errors(self) -> None:
        graph = _graph([_node("a", "mint_everything"), _node("b", None)], [])
        result = validate_and_compile_workflow_graph(graph)
        self.assertEqual([item.code for item in result.diagnostics], ["UNKNOWN_TOOL", "NODE_TYPE_MISSING"])
        self.assertFalse(result.valid)

    def test_dangling_edge_and_duplicate_id(self) -> None:
        graph = _graph([_node("a", "transfer"), _node("a", "swap")], [_edge("a", "zzz")])
        self.assertEqual(self._codes(graph), ["DUPLICATE_NODE_ID", "EDGE_NODE_MISSING"])

    def test_cycle_is_a_warning(self) -> None:
        graph = _graph(
            [_node("a", "swap"), _node("b", "transfer")],
            [_edge("a", "b"), _edge("b", "a")],
        )
        result = validate_and_compile_workflow_graph(graph)
        self.assertEqual([item.code for item in result.diagnostics], ["CYCLE_DETECTED"])
        self.assertTrue(result.valid)


if __name__ == "__main__":
    unittest.main()
