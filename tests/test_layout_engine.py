"""Tests for the layered dependency graph layout."""

import json
import random

from ticketflow.c1_ticket_enums.ticket_enums import TicketStatus
from ticketflow.c2_graph_layout_service.layout_engine import (
    GraphLayoutEngine,
    build_dependency_graph,
)

S = TicketStatus


def _assert_layering(graph):
    layer = graph.layer_of()
    for edge in graph.edges:
        if not edge.cycle_break:
            assert layer[edge.from_id] > layer[edge.to_id], edge
    for idx, nodes in enumerate(graph.layers):
        assert nodes, f"layer {idx} is empty"
        assert [n.position for n in nodes] == list(range(len(nodes)))
        assert all(n.layer == idx for n in nodes)


class TestGraphLayoutEngine:
    def test_linear_chain(self, make_ticket):
        tickets = [
            make_ticket("A", depends_on=["B"]),
            make_ticket("B", depends_on=["C"]),
            make_ticket("C"),
        ]
        graph = GraphLayoutEngine().build(tickets)

        assert graph.layer_ids() == [["C"], ["B"], ["A"]]
        assert [(e.from_id, e.to_id) for e in graph.edges] == [("A", "B"), ("B", "C")]
        assert not graph.empty
        assert graph.cycle_breaks == []
        _assert_layering(graph)

    def test_diamond(self, make_ticket):
        tickets = [
            make_ticket("A", depends_on=["B", "C"]),
            make_ticket("B", depends_on=["D"]),
            make_ticket("C", depends_on=["D"]),
            make_ticket("D"),
        ]
        graph = build_dependency_graph(tickets)
        assert graph.layer_ids() == [["D"], ["B", "C"], ["A"]]
        _assert_layering(graph)

    def test_layers_are_tight(self, make_ticket):
        # A depends on C directly and through B; A must sit above B
        tickets = [
            make_ticket("A", depends_on=["B", "C"]),
            make_ticket("B", depends_on=["C"]),
            make_ticket("C"),
        ]
        graph = build_dependency_graph(tickets)
        assert graph.layer_of() == {"C": 0, "B": 1, "A": 2}

    def test_cyclic_pair(self, make_ticket):
        tickets = [make_ticket("A", depends_on=["B"]), make_ticket("B", depends_on=["A"])]
        graph = build_dependency_graph(tickets)

        assert graph.cycle_breaks == ["A"]
        assert graph.layer_ids() == [["A"], ["B"]]
        breaks = [(e.from_id, e.to_id) for e in graph.edges if e.cycle_break]
        assert breaks == [("A", "B")]
        _assert_layering(graph)

    def test_three_cycle(self, make_ticket):
        tickets = [
            make_ticket("A", depends_on=["B"]),
            make_ticket("B", depends_on=["C"]),
            make_ticket("C", depends_on=["A"]),
        ]
        graph = build_dependency_graph(tickets)
        assert graph.node_count == 3
        assert graph.cycle_breaks == ["A"]
        assert graph.layer_ids() == [["A"], ["C"], ["B"]]
        _assert_layering(graph)

    def test_cycle_hanging_off_chain(self, make_ticket):
        tickets = [
            make_ticket("root", depends_on=["x"]),
            make_ticket("x", depends_on=["y"]),
            make_ticket("y", depends_on=["x", "leaf"]),
            make_ticket("leaf"),
        ]
        graph = build_dependency_graph(tickets)
        assert graph.node_count == 4
        # "root" is forced first but sits on no cycle, so only x->y stays broken
        assert graph.cycle_breaks == ["x"]
        assert [(e.from_id, e.to_id) for e in graph.edges if e.cycle_break] == [("x", "y")]
        assert graph.layer_ids() == [["leaf", "x"], ["y", "root"]]
        _assert_layering(graph)

    def test_excludes_resolved_and_isolated(self, make_ticket):
        tickets = [
            make_ticket("A", depends_on=["B", "D"]),
            make_ticket("B"),
            make_ticket("D", status=S.DONE),
            make_ticket("E", depends_on=["F"], status=S.CANCELLED),
            make_ticket("F"),
            make_ticket("lonely"),
        ]
        graph = build_dependency_graph(tickets)
        assert graph.layer_ids() == [["B"], ["A"]]
        assert [(e.from_id, e.to_id) for e in graph.edges] == [("A", "B")]

    def test_ignores_missing_and_self_dependencies(self, make_ticket):
        tickets = [
            make_ticket("A", depends_on=["A", "ghost", "B", "B"]),
            make_ticket("B"),
        ]
        graph = build_dependency_graph(tickets)
        assert graph.layer_ids() == [["B"], ["A"]]
        assert len(graph.edges) == 1

    def test_empty_when_no_live_edges(self, make_ticket):
        tickets = [make_ticket("A"), make_ticket("B", depends_on=["C"]), make_ticket("C", status=S.DONE)]
        graph = build_dependency_graph(tickets)
        assert graph.empty
        assert graph.layers == []
        assert graph.edges == []

    def test_empty_input(self):
        assert build_dependency_graph([]).empty

    def test_barycenter_uncrosses_edges(self, make_ticket):
        # Alphabetical order would give P->Y and Q->X crossing
        tickets = [
            make_ticket("P", depends_on=["Y"]),
            make_ticket("Q", depends_on=["X"]),
            make_ticket("X"),
            make_ticket("Y"),
        ]
        graph = build_dependency_graph(tickets)
        assert graph.layer_ids() == [["X", "Y"], ["Q", "P"]]

    def test_zero_sweeps_keeps_alphabetical_order(self, make_ticket):
        tickets = [
            make_ticket("P", depends_on=["Y"]),
            make_ticket("Q", depends_on=["X"]),
            make_ticket("X"),
            make_ticket("Y"),
        ]
        graph = GraphLayoutEngine(barycenter_sweeps=0).build(tickets)
        assert graph.layer_ids() == [["X", "Y"], ["P", "Q"]]

    def test_deterministic_regardless_of_input_order(self, make_ticket):
        tickets = [
            make_ticket("A", depends_on=["B", "C"]),
            make_ticket("B", depends_on=["D", "E"]),
            make_ticket("C", depends_on=["E", "A"]),
            make_ticket("D"),
            make_ticket("E", depends_on=["D"]),
            make_ticket("F", depends_on=["C"]),
        ]
        expected = build_dependency_graph(tickets).to_dict()
        rng = random.Random(7)
        for _ in range(5):
            shuffled = list(tickets)
            rng.shuffle(shuffled)
            assert build_dependency_graph(shuffled).to_dict() == expected

    def test_serialisation(self, make_ticket):
        tickets = [make_ticket("A", depends_on=["B"]), make_ticket("B")]
        graph = build_dependency_graph(tickets)

        assert json.loads(graph.edges_json()) == [{"from": "A", "to": "B"}]
        data = graph.to_dict()
        assert data["empty"] is False
        assert data["layers"][0] == [{"id": "B", "layer": 0, "position": 0}]
        assert data["edges"] == [{"from": "A", "to": "B", "cycle_break": False}]
