"""Indexed view of a forecast node/edge graph.

Nodes are held in an arena keyed by id, with incoming and outgoing
adjacency lists built once per calculation.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from src.engine.types import ForecastEdge, ForecastNode, NodeKind

logger = logging.getLogger(__name__)

WHITE, GRAY, BLACK = 0, 1, 2
_DONE = object()


class ForecastGraph:
    """Arena of forecast nodes with ordered adjacency lists.

    Edges whose endpoints do not exist are kept aside in `dangling_edges`
    and never enter the adjacency lists.
    """

    def __init__(self, nodes: Sequence[ForecastNode], edges: Sequence[ForecastEdge]):
        self.nodes: List[ForecastNode] = list(nodes)
        self.edges: List[ForecastEdge] = list(edges)

        self.by_id: Dict[str, ForecastNode] = {}
        self.duplicate_ids: List[str] = []
        for node in self.nodes:
            if node.id in self.by_id:
                self.duplicate_ids.append(node.id)
                continue
            self.by_id[node.id] = node

        self.dangling_edges: List[Tuple[ForecastEdge, str]] = []
        self._incoming: Dict[str, List[Tuple[int, ForecastEdge]]] = {n: [] for n in self.by_id}
        self._outgoing: Dict[str, List[str]] = {n: [] for n in self.by_id}

        for position, edge in enumerate(self.edges):
            missing = False
            if edge.source_node_id not in self.by_id:
                self.dangling_edges.append((edge, "source"))
                missing = True
            if edge.target_node_id not in self.by_id:
                self.dangling_edges.append((edge, "target"))
                missing = True
            if missing:
                continue
            self._incoming[edge.target_node_id].append((position, edge))
            self._outgoing[edge.source_node_id].append(edge.target_node_id)

    def get(self, node_id: str) -> Optional[ForecastNode]:
        return self.by_id.get(node_id)

    def input_count(self, node_id: str) -> int:
        return len(self._incoming.get(node_id, []))

    def is_connected(self, node_id: str) -> bool:
        return bool(self._incoming.get(node_id)) or bool(self._outgoing.get(node_id))

    def input_ids(self, node_id: str) -> List[str]:
        """Source node ids feeding `node_id`, in declared input order.

        Order: position in the target operator's `input_order` attribute,
        then the edge's own `input_order`, then position in the edge list.
        """
        incoming = self._incoming.get(node_id, [])
        node = self.by_id.get(node_id)
        declared: List[str] = []
        if node is not None and node.node_kind == NodeKind.OPERATOR:
            raw = node.attributes.get("input_order", node.attributes.get("inputOrder")) or []
            declared = [str(i) for i in raw]

        def sort_key(item: Tuple[int, ForecastEdge]):
            position, edge = item
            rank = declared.index(edge.source_node_id) if edge.source_node_id in declared else len(declared)
            edge_order = edge.input_order if edge.input_order is not None else float("inf")
            return (rank, edge_order, position)

        return [edge.source_node_id for _, edge in sorted(incoming, key=sort_key)]

    def metric_nodes(self) -> List[ForecastNode]:
        """METRIC nodes in declaration order."""
        return [n for n in self.by_id.values() if n.node_kind == NodeKind.METRIC]

    def find_cycles(self) -> List[List[str]]:
        """Find directed cycles with a three-color depth-first search.

        Returns:
            One node-id path per back edge found, each starting and ending
            on the same node (e.g. ['A', 'B', 'C', 'A'])
        """
        color = {node_id: WHITE for node_id in self.by_id}
        cycles: List[List[str]] = []

        # Explicit stack so long chains do not hit the recursion limit
        for root in self.by_id:
            if color[root] != WHITE:
                continue
            color[root] = GRAY
            path = [root]
            pending = [iter(self._outgoing[root])]
            while pending:
                target = next(pending[-1], _DONE)
                if target is _DONE:
                    pending.pop()
                    color[path.pop()] = BLACK
                elif color[target] == GRAY:
                    cycles.append(path[path.index(target):] + [target])
                elif color[target] == WHITE:
                    color[target] = GRAY
                    path.append(target)
                    pending.append(iter(self._outgoing[target]))

        return cycles
