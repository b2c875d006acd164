"""Layered layout of the live ticket dependency graph.

Layer 0 holds tickets with no live dependencies; each deeper layer holds
tickets whose dependencies sit in shallower layers. Edges run from the
dependant to its dependency. The layout is fully deterministic so a display
layer can diff or cache it.
"""

import heapq
import json
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Set, Tuple

from ticketflow.c1_ticket_models.ticket import Ticket

logger = logging.getLogger(__name__)

DEFAULT_BARYCENTER_SWEEPS = 4


@dataclass(frozen=True)
class GraphNode:
    """A ticket placed at a layer and a position within that layer."""

    id: str
    layer: int
    position: int


@dataclass(frozen=True)
class GraphEdge:
    """``from_id`` depends on ``to_id``.

    ``cycle_break`` marks an edge that closed a cycle and was ignored for
    layering; it is the only kind of edge allowed to point to a deeper layer.
    """

    from_id: str
    to_id: str
    cycle_break: bool = False


@dataclass
class DependencyGraph:
    layers: List[List[GraphNode]] = field(default_factory=list)
    edges: List[GraphEdge] = field(default_factory=list)
    cycle_breaks: List[str] = field(default_factory=list)
    empty: bool = False

    @classmethod
    def empty_graph(cls) -> "DependencyGraph":
        return cls(empty=True)

    def layer_of(self) -> Dict[str, int]:
        return {node.id: node.layer for layer in self.layers for node in layer}

    def layer_ids(self) -> List[List[str]]:
        return [[node.id for node in layer] for layer in self.layers]

    @property
    def node_count(self) -> int:
        return sum(len(layer) for layer in self.layers)

    def to_dict(self) -> Dict:
        return {
            "empty": self.empty,
            "layers": [
                [{"id": n.id, "layer": n.layer, "position": n.position} for n in layer]
                for layer in self.layers
            ],
            "edges": [
                {"from": e.from_id, "to": e.to_id, "cycle_break": e.cycle_break}
                for e in self.edges
            ],
            "cycle_breaks": list(self.cycle_breaks),
        }

    def edges_json(self) -> str:
        """Edges as a compact JSON array of ``{"from", "to"}`` objects."""
        return json.dumps([{"from": e.from_id, "to": e.to_id} for e in self.edges])


class GraphLayoutEngine:
    """Arranges live tickets into layers and orders each layer to cut crossings."""

    def __init__(self, barycenter_sweeps: int = DEFAULT_BARYCENTER_SWEEPS):
        self.barycenter_sweeps = barycenter_sweeps

    def build(self, tickets: Iterable[Ticket]) -> DependencyGraph:
        """
        Compute the layered graph for a ticket snapshot.

        DONE/CANCELLED tickets are dropped, as are live tickets with no
        dependency edge to or from another live ticket. Missing dependency
        IDs and self-dependencies are ignored; cycles are broken by forcing
        the lexicographically smallest remaining ticket to act as a leaf.
        """
        forward, reverse = self._adjacency(tickets)
        if not forward and not reverse:
            return DependencyGraph.empty_graph()

        nodes = sorted(set(forward) | set(reverse))
        for node_id in nodes:
            forward.setdefault(node_id, [])
            reverse.setdefault(node_id, [])

        broken, forced = self._peel_layers(nodes, forward, reverse)
        broken = _restore_acyclic_edges(forward, broken)
        cycle_breaks = [n for n in forced if any(src == n for src, _ in broken)]
        layer = self._tighten_layers(nodes, forward, broken)

        buckets: List[List[str]] = [[] for _ in range(max(layer.values()) + 1)]
        for node_id in nodes:
            buckets[layer[node_id]].append(node_id)

        for _ in range(self.barycenter_sweeps):
            for idx in range(1, len(buckets)):
                buckets[idx] = _barycenter_order(buckets[idx], buckets[idx - 1], forward)
            for idx in range(len(buckets) - 2, -1, -1):
                buckets[idx] = _barycenter_order(buckets[idx], buckets[idx + 1], reverse)

        layers = [
            [GraphNode(id=node_id, layer=idx, position=pos) for pos, node_id in enumerate(bucket)]
            for idx, bucket in enumerate(buckets)
        ]
        edges = [
            GraphEdge(from_id=src, to_id=dst, cycle_break=(src, dst) in broken)
            for src in nodes
            for dst in forward[src]
        ]
        edges.sort(key=lambda e: (e.from_id, e.to_id))

        if cycle_breaks:
            logger.info(f"Dependency graph has cycles; forced leaves: {cycle_breaks}")

        return DependencyGraph(layers=layers, edges=edges, cycle_breaks=cycle_breaks)

    @staticmethod
    def _adjacency(tickets: Iterable[Ticket]) -> Tuple[Dict[str, List[str]], Dict[str, List[str]]]:
        """Forward (ticket -> dependencies) and reverse adjacency over live tickets."""
        live = {t.id: t for t in tickets if t.is_live}
        forward: Dict[str, Set[str]] = {}
        reverse: Dict[str, Set[str]] = {}
        for ticket_id in sorted(live):
            for dep_id in live[ticket_id].depends_on:
                if dep_id not in live or dep_id == ticket_id:
                    continue
                forward.setdefault(ticket_id, set()).add(dep_id)
                reverse.setdefault(dep_id, set()).add(ticket_id)
        return (
            {k: sorted(v) for k, v in forward.items()},
            {k: sorted(v) for k, v in reverse.items()},
        )

    @staticmethod
    def _peel_layers(
        nodes: List[str],
        forward: Dict[str, List[str]],
        reverse: Dict[str, List[str]],
    ) -> Tuple[Set[Tuple[str, str]], List[str]]:
        """
        Peel leaves round by round (Kahn's algorithm tolerant of cycles).

        When a round finds no leaf, the smallest remaining ID is forced out
        and its still-pending dependency edges are recorded as broken.

        Returns:
            (broken edges, forced leaf IDs in the order they were forced)
        """
        remaining = set(nodes)
        pending = {node_id: len(forward[node_id]) for node_id in nodes}
        broken: Set[Tuple[str, str]] = set()
        cycle_breaks: List[str] = []

        while remaining:
            leaves = sorted(node_id for node_id in remaining if pending[node_id] == 0)
            if not leaves:
                forced = min(remaining)
                cycle_breaks.append(forced)
                for dep_id in forward[forced]:
                    if dep_id in remaining:
                        broken.add((forced, dep_id))
                leaves = [forced]

            for node_id in leaves:
                remaining.discard(node_id)
            for node_id in leaves:
                for parent_id in reverse[node_id]:
                    if parent_id in remaining:
                        pending[parent_id] -= 1

        return broken, cycle_breaks

    @staticmethod
    def _tighten_layers(
        nodes: List[str],
        forward: Dict[str, List[str]],
        broken: Set[Tuple[str, str]],
    ) -> Dict[str, int]:
        """Longest-path layering over the graph with broken edges removed."""
        layer: Dict[str, int] = {}
        for node_id in _topological_order(nodes, forward, broken):
            deps = [d for d in forward[node_id] if (node_id, d) not in broken]
            layer[node_id] = max((layer[d] for d in deps), default=-1) + 1
        return layer


def _restore_acyclic_edges(
    forward: Dict[str, List[str]],
    broken: Set[Tuple[str, str]],
) -> Set[Tuple[str, str]]:
    """Drop broken edges that close no cycle.

    A forced leaf is not always on the cycle that stalled peeling, so some
    of its edges can go back into the layering. Edges are retried in sorted
    order; one stays broken only if its target can still reach its source.
    """
    kept = set(broken)
    for src, dst in sorted(broken):
        kept.discard((src, dst))
        if _reaches(dst, src, forward, kept):
            kept.add((src, dst))
    return kept


def _reaches(start: str, goal: str, forward: Dict[str, List[str]], skip: Set[Tuple[str, str]]) -> bool:
    seen = {start}
    stack = [start]
    while stack:
        node_id = stack.pop()
        if node_id == goal:
            return True
        for dep_id in forward[node_id]:
            if dep_id not in seen and (node_id, dep_id) not in skip:
                seen.add(dep_id)
                stack.append(dep_id)
    return False


def _topological_order(
    nodes: List[str],
    forward: Dict[str, List[str]],
    skip: Set[Tuple[str, str]],
) -> List[str]:
    """Dependencies before dependants; ties go to the smallest ID.

    ``forward`` minus ``skip`` must be acyclic, which holds for the broken
    edge set produced by leaf peeling.
    """
    index = {node_id: i for i, node_id in enumerate(nodes)}
    pending = [0] * len(nodes)
    dependants: List[List[int]] = [[] for _ in nodes]
    for node_id in nodes:
        i = index[node_id]
        for dep_id in forward[node_id]:
            if (node_id, dep_id) in skip:
                continue
            pending[i] += 1
            dependants[index[dep_id]].append(i)

    # nodes is sorted, so the smallest index is the smallest ID
    ready = [i for i in range(len(nodes)) if pending[i] == 0]
    heapq.heapify(ready)
    order: List[str] = []
    while ready:
        i = heapq.heappop(ready)
        order.append(nodes[i])
        for j in dependants[i]:
            pending[j] -= 1
            if pending[j] == 0:
                heapq.heappush(ready, j)

    if len(order) != len(nodes):
        # Unreachable with a correct skip set; place leftovers rather than drop them.
        placed = set(order)
        leftovers = [n for n in nodes if n not in placed]
        logger.warning(f"Topological order incomplete, appending {leftovers}")
        order.extend(leftovers)
    return order


def _barycenter_order(
    target: List[str],
    reference: List[str],
    adjacency: Dict[str, List[str]],
) -> List[str]:
    """Order ``target`` by the mean position of its neighbours in ``reference``.

    Nodes without a neighbour in ``reference`` keep their relative order and
    go after the positioned ones.
    """
    if len(target) <= 1:
        return target
    ref_pos = {node_id: pos for pos, node_id in enumerate(reference)}

    def sort_key(node_id: str):
        positions = [ref_pos[n] for n in adjacency.get(node_id, []) if n in ref_pos]
        if not positions:
            return (1, 0.0)
        return (0, sum(positions) / len(positions))

    return sorted(target, key=sort_key)


def build_dependency_graph(
    tickets: Iterable[Ticket],
    barycenter_sweeps: int = DEFAULT_BARYCENTER_SWEEPS,
) -> DependencyGraph:
    return GraphLayoutEngine(barycenter_sweeps=barycenter_sweeps).build(tickets)
