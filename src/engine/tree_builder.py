"""Conversion of a validated forecast graph into per-metric calculation trees."""

import logging
from typing import List, Optional, Sequence, Set

from src.engine.errors import TreeBuildError
from src.engine.graph import ForecastGraph
from src.engine.types import (
    CalculationTree,
    CalculationTreeNode,
    ForecastEdge,
    ForecastNode,
    NodeKind,
    parse_attributes,
)

logger = logging.getLogger(__name__)


class CalculationTreeBuilder:
    """Builds rooted evaluation trees by walking incoming edges.

    The builder assumes the graph passed validation. A node shared by
    several parents is copied into each branch; evaluation memoizes by
    node id, so a shared node is still computed once per month.
    """

    def build(
        self,
        root_metric_node_id: str,
        nodes: Sequence[ForecastNode],
        edges: Sequence[ForecastEdge],
    ) -> CalculationTree:
        """Build the calculation tree rooted at one METRIC node.

        Raises:
            TreeBuildError: If the root is missing or not a METRIC, or the
                graph has dangling references or cycles
        """
        return self.build_from_graph(root_metric_node_id, ForecastGraph(nodes, edges))

    def build_all(
        self,
        nodes: Sequence[ForecastNode],
        edges: Sequence[ForecastEdge],
        graph: Optional[ForecastGraph] = None,
    ) -> List[CalculationTree]:
        """Build one tree per METRIC node, in declaration order."""
        graph = graph or ForecastGraph(nodes, edges)
        trees = [self.build_from_graph(metric.id, graph) for metric in graph.metric_nodes()]
        logger.info(f"Built {len(trees)} calculation trees")
        return trees

    def build_from_graph(self, root_metric_node_id: str, graph: ForecastGraph) -> CalculationTree:
        if graph.dangling_edges:
            edge, end = graph.dangling_edges[0]
            raise TreeBuildError(f"Edge {edge.id} has a dangling {end} reference - validate the graph first")

        root = graph.get(root_metric_node_id)
        if root is None:
            raise TreeBuildError(f"Metric node {root_metric_node_id} not found")
        if root.node_kind != NodeKind.METRIC:
            raise TreeBuildError(f"Node {root_metric_node_id} is not a METRIC node (found {root.kind})")

        tree = self._build_node(root_metric_node_id, graph, set())
        logger.debug(f"Built tree for metric {root_metric_node_id}")
        return CalculationTree(root_metric_node_id=root_metric_node_id, tree=tree)

    def _build_node(self, node_id: str, graph: ForecastGraph, path: Set[str]) -> CalculationTreeNode:
        if node_id in path:
            raise TreeBuildError(f"Node {node_id} is part of a cycle - validate the graph first")

        node = graph.get(node_id)
        kind = node.node_kind
        if kind is None:
            raise TreeBuildError(f"Node {node_id} has unknown kind '{node.kind}'")
        try:
            attributes = parse_attributes(kind, node.attributes)
        except ValueError as e:
            raise TreeBuildError(f"Node {node_id} ({kind.value}): {e}") from e

        # Leaf kinds ignore any inputs
        children = ()
        if kind in (NodeKind.OPERATOR, NodeKind.METRIC):
            path.add(node_id)
            children = tuple(self._build_node(child_id, graph, path) for child_id in graph.input_ids(node_id))
            path.remove(node_id)

        return CalculationTreeNode(
            node_id=node_id,
            node_type=kind,
            node_data=attributes,
            children=children,
        )


def build_calculation_tree(
    root_metric_node_id: str,
    nodes: Sequence[ForecastNode],
    edges: Sequence[ForecastEdge],
) -> CalculationTree:
    """Build a single metric's calculation tree with the default builder."""
    return CalculationTreeBuilder().build(root_metric_node_id, nodes, edges)
