"""Structural validation of forecast graphs.

Validation is a pure function of the nodes and edges. Errors make the graph
unusable for calculation; warnings describe graphs that still evaluate but
will produce null values somewhere.
"""

import logging
from typing import List, Sequence

from src.engine.graph import ForecastGraph
from src.engine.types import (
    ConstantAttributes,
    ForecastEdge,
    ForecastNode,
    GraphValidationResult,
    NodeKind,
    OperatorSymbol,
    parse_attributes,
)

logger = logging.getLogger(__name__)

# Kinds that read their value from attributes and take no inputs
LEAF_KINDS = {NodeKind.DATA, NodeKind.CONSTANT, NodeKind.SEED}


class GraphValidator:
    """Checks a forecast graph before any tree is built."""

    def validate(
        self,
        nodes: Sequence[ForecastNode],
        edges: Sequence[ForecastEdge],
    ) -> GraphValidationResult:
        """Validate nodes and edges of one forecast.

        Variable ids on DATA nodes are not checked here: variables may be
        added after the graph is built, and a missing variable evaluates
        to None.
        """
        return self.validate_graph(ForecastGraph(nodes, edges))

    def validate_graph(self, graph: ForecastGraph) -> GraphValidationResult:
        errors: List[str] = []
        warnings: List[str] = []

        for node_id in graph.duplicate_ids:
            errors.append(f"Duplicate node id: {node_id}")

        for edge, end in graph.dangling_edges:
            missing = edge.source_node_id if end == "source" else edge.target_node_id
            errors.append(f"Edge {edge.id} references non-existent {end} node: {missing}")

        for cycle in graph.find_cycles():
            errors.append(
                f"Graph contains a cycle through nodes {', '.join(cycle[:-1])} "
                f"({' -> '.join(cycle)})"
            )

        self._check_nodes(graph, errors, warnings)

        if not graph.metric_nodes():
            warnings.append("Graph has no METRIC nodes - calculation will produce no metrics")

        result = GraphValidationResult(
            is_valid=not errors,
            errors=tuple(errors),
            warnings=tuple(warnings),
        )
        logger.info(
            f"Graph validation complete - {'VALID' if result.is_valid else 'INVALID'} "
            f"({len(errors)} errors, {len(warnings)} warnings)"
        )
        return result

    def _check_nodes(self, graph: ForecastGraph, errors: List[str], warnings: List[str]) -> None:
        for node in graph.by_id.values():
            kind = node.node_kind
            if kind is None:
                errors.append(f"Node {node.id} has unknown kind '{node.kind}'")
                continue

            try:
                attributes = parse_attributes(kind, node.attributes)
            except ValueError as e:
                errors.append(f"Node {node.id} ({kind.value}): {e}")
                attributes = None

            inputs = graph.input_count(node.id)

            if kind != NodeKind.OPERATOR and inputs > 1:
                errors.append(
                    f"Node {node.id} ({kind.value}) has {inputs} inputs but only "
                    f"OPERATOR nodes can accept multiple inputs"
                )
            elif kind in LEAF_KINDS and inputs:
                warnings.append(f"Node {node.id} ({kind.value}) takes no inputs - its input is ignored")

            if kind == NodeKind.OPERATOR:
                if inputs == 0:
                    errors.append(f"OPERATOR node {node.id} has no inputs")
                elif attributes is not None and attributes.op == OperatorSymbol.DIVIDE:
                    self._check_constant_divisors(graph, node, warnings)

            if kind == NodeKind.METRIC:
                if inputs == 0:
                    warnings.append(f"METRIC node {node.id} has no inputs - forecast values will be null")
                if attributes is not None and not attributes.label:
                    warnings.append(f"METRIC node {node.id} missing label")
            elif not graph.is_connected(node.id):
                warnings.append(f"Node {node.id} ({kind.value}) is not connected to any other nodes")

            if kind == NodeKind.SEED and attributes is not None:
                self._check_seed(graph, node, attributes, errors, warnings)

    def _check_seed(self, graph, node, attributes, errors, warnings) -> None:
        source_id = attributes.source_metric_id
        if source_id is None:
            if attributes.base_value is None:
                warnings.append(
                    f"SEED node {node.id} has neither base_value nor source_metric_id - "
                    f"values will be null"
                )
            return

        source = graph.get(source_id)
        if source is None:
            errors.append(f"SEED node {node.id} references non-existent metric: {source_id}")
        elif source.node_kind != NodeKind.METRIC:
            errors.append(
                f"SEED node {node.id} source_metric_id must reference a METRIC node, "
                f"found: {source.kind}"
            )

    def _check_constant_divisors(self, graph, node, warnings) -> None:
        for divisor_id in graph.input_ids(node.id)[1:]:
            divisor = graph.get(divisor_id)
            if divisor is None or divisor.node_kind != NodeKind.CONSTANT:
                continue
            try:
                attributes = parse_attributes(NodeKind.CONSTANT, divisor.attributes)
            except ValueError:
                continue
            if isinstance(attributes, ConstantAttributes) and attributes.value == 0:
                warnings.append(
                    f"OPERATOR node {node.id} divides by constant zero (node {divisor_id}) - "
                    f"results will be null"
                )


def validate_graph(
    nodes: Sequence[ForecastNode],
    edges: Sequence[ForecastEdge],
) -> GraphValidationResult:
    """Validate a forecast graph with the default validator."""
    return GraphValidator().validate(nodes, edges)
