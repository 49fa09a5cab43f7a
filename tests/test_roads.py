"""Tests for road graph synthesis and nearest-road lookup."""

import math

import pytest

from py_towngen.core.geometry import Point
from py_towngen.core.models import Polyline, RoadKind
from py_towngen.core.params import TownParams
from py_towngen.core.rng import make_rng
from py_towngen.core.roads import (
    MINOR_MAX_REACH,
    RoadSegmentIndex,
    _add_minor_streets,
    _GraphBuilder,
    _snap_ring_nodes,
    generate_road_graph,
    minor_road_count,
    snap_distance,
)


def build_graph(**overrides):
    params = TownParams(**overrides).clamped()
    return params, generate_road_graph(make_rng(params.seed), params)


class TestRoadGraph:
    """Test graph structure for the default parameters."""

    def setup_method(self):
        self.params, self.graph = build_graph()

    def test_center_node(self):
        first = self.graph.nodes[0]
        assert first.id == "n1"
        assert (first.x, first.y) == (0.0, 0.0)

    def test_sequential_ids(self):
        assert [n.id for n in self.graph.nodes] == [f"n{i + 1}" for i in range(len(self.graph.nodes))]
        assert [e.id for e in self.graph.edges] == [f"e{i + 1}" for i in range(len(self.graph.edges))]

    def test_edges_reference_nodes(self):
        ids = {n.id for n in self.graph.nodes}
        for edge in self.graph.edges:
            assert edge.node_a in ids
            assert edge.node_b in ids
            assert edge.node_a != edge.node_b

    def test_no_duplicate_edges(self):
        pairs = [frozenset((e.node_a, e.node_b)) for e in self.graph.edges]
        assert len(pairs) == len(set(pairs))

    def test_main_spines(self):
        """Each spine is two main edges: center to mid, mid to end."""
        main = [e for e in self.graph.edges if e.kind == RoadKind.MAIN]
        assert len(main) == 2 * self.params.main_roads
        assert all(e.width == pytest.approx(self.params.road_width * 1.6) for e in main)
        assert sum(1 for e in main if e.node_a == "n1") == self.params.main_roads

    def test_ring_roads_are_closed_loops(self):
        ring = [e for e in self.graph.edges if e.kind == RoadKind.RING]
        ring_nodes = {e.node_a for e in ring} | {e.node_b for e in ring}
        assert len(ring) == len(ring_nodes)
        degree = {n: 0 for n in ring_nodes}
        for e in ring:
            degree[e.node_a] += 1
            degree[e.node_b] += 1
        assert set(degree.values()) == {2}

    def test_ring_radius(self):
        R = self.params.town_radius
        nodes = self.graph.node_map()
        ring_nodes = {e.node_a for e in self.graph.edges if e.kind == RoadKind.RING}
        for node_id in ring_nodes:
            d = math.hypot(nodes[node_id].x, nodes[node_id].y)
            assert R * 0.28 * 0.95 - 3 <= d <= R * 0.82 * 1.05 + 3

    def test_minor_widths(self):
        rw = self.params.road_width
        widths = {e.width for e in self.graph.edges if e.kind == RoadKind.MINOR}
        assert widths <= {max(2.0, rw * 0.7), max(2.0, rw * 0.65)}
        assert widths

    def test_deterministic(self):
        _, again = build_graph()
        assert again == self.graph

    def test_seed_changes_graph(self):
        _, other = build_graph(seed="other")
        assert other.nodes != self.graph.nodes


class TestRoadGraphEdgeCases:
    """Test empty and sparse configurations."""

    def test_no_roads(self):
        _, graph = build_graph(main_roads=0, ring_roads=0)
        assert len(graph.nodes) == 1
        assert graph.edges == []

    def test_rings_only(self):
        _, graph = build_graph(main_roads=0, ring_roads=1)
        assert not any(e.kind == RoadKind.MAIN for e in graph.edges)
        assert any(e.kind == RoadKind.RING for e in graph.edges)


class ConstantRNG:
    """Stream that always draws the same value."""

    def __init__(self, value):
        self.value = value

    def random(self):
        return self.value


class TestRingSnapping:
    """Test links from ring nodes to nearby unconnected nodes."""

    def setup_method(self):
        self.params = TownParams().clamped()
        self.builder = _GraphBuilder()
        self.ring = self.builder.add_node(0.0, 0.0)

    def test_links_nearest_unconnected_node(self):
        neighbour = self.builder.add_node(8.0, 0.0)
        self.builder.add_edge(self.ring.id, neighbour.id, RoadKind.RING, 9.2)
        near = self.builder.add_node(0.0, 10.0)
        self.builder.add_node(0.0, 14.0)

        assert _snap_ring_nodes(self.builder, [self.ring.id], self.params) == 1
        link = self.builder.edges[-1]
        assert (link.node_a, link.node_b) == (self.ring.id, near.id)
        assert link.kind == RoadKind.MINOR
        assert link.width == pytest.approx(max(2.0, self.params.road_width * 0.7))

    def test_node_at_snap_distance_is_linked(self):
        limit = snap_distance(self.params)
        self.builder.add_node(limit, 0.0)
        assert _snap_ring_nodes(self.builder, [self.ring.id], self.params) == 1

    def test_nothing_beyond_snap_distance(self):
        limit = snap_distance(self.params)
        self.builder.add_node(limit + 0.5, 0.0)
        self.builder.add_node(0.0, -(limit + 3.0))
        assert _snap_ring_nodes(self.builder, [self.ring.id], self.params) == 0
        assert self.builder.edges == []

    def test_no_ring_nodes(self):
        self.builder.add_node(1.0, 0.0)
        assert _snap_ring_nodes(self.builder, [], self.params) == 0


class TestMinorStreets:
    """Test minor branch placement with a fixed stream."""

    def setup_method(self):
        self.params = TownParams().clamped()
        self.R = self.params.town_radius
        self.builder = _GraphBuilder()
        self.center = self.builder.add_node(0.0, 0.0)

    def test_branch_beyond_reach_discarded(self):
        # 0.9 turns every branch outwards from an anchor on the rim
        self.builder.add_node(self.R, 0.0)
        _add_minor_streets(self.builder, ConstantRNG(0.9), self.params, self.center)
        assert len(self.builder.nodes) == 2
        assert self.builder.edges == []

    def test_branch_within_reach_kept(self):
        anchor = self.builder.add_node(self.R * 0.5, 0.0)
        _add_minor_streets(self.builder, ConstantRNG(0.9), self.params, self.center)
        count = minor_road_count(self.params)
        assert len(self.builder.edges) == count
        assert all(e.node_a == anchor.id and e.kind == RoadKind.MINOR for e in self.builder.edges)
        for node in self.builder.nodes[2:]:
            assert math.hypot(node.x, node.y) <= self.R * MINOR_MAX_REACH

    def test_bend_segment(self):
        anchor = self.builder.add_node(self.R * 0.5, 0.0)
        _add_minor_streets(self.builder, ConstantRNG(0.2), self.params, self.center)
        count = minor_road_count(self.params)
        assert len(self.builder.edges) == 2 * count

        rw = self.params.road_width
        branches = self.builder.edges[0::2]
        bends = self.builder.edges[1::2]
        for branch, bend in zip(branches, bends):
            assert branch.node_a == anchor.id
            assert branch.width == pytest.approx(max(2.0, rw * 0.7))
            assert bend.node_a == branch.node_b
            assert bend.width == pytest.approx(max(2.0, rw * 0.65))

    def test_no_bend_above_chance(self):
        self.builder.add_node(self.R * 0.5, 0.0)
        _add_minor_streets(self.builder, ConstantRNG(0.9), self.params, self.center)
        width = max(2.0, self.params.road_width * 0.7)
        assert all(e.width == pytest.approx(width) for e in self.builder.edges)

    def test_generated_branch_ends_within_reach(self):
        params, graph = build_graph()
        R = params.town_radius
        nodes = graph.node_map()
        bend_width = max(2.0, params.road_width * 0.65)
        bend_ends = {e.node_b for e in graph.edges if e.kind == RoadKind.MINOR and e.width == bend_width}
        minor_ends = {e.node_b for e in graph.edges if e.kind == RoadKind.MINOR} - bend_ends
        structural = {n for e in graph.edges if e.kind != RoadKind.MINOR for n in (e.node_a, e.node_b)}
        for node_id in minor_ends - structural:
            node = nodes[node_id]
            assert math.hypot(node.x, node.y) <= R * MINOR_MAX_REACH + 1e-9
        assert bend_ends


class TestDerivedCounts:
    """Test density-derived counts."""

    def test_minor_road_count(self):
        assert minor_road_count(TownParams()) == 818
        assert minor_road_count(TownParams(density=0.1)) == 120
        assert minor_road_count(TownParams(density=2.4)) == 1636

    def test_snap_distance(self):
        assert snap_distance(TownParams(road_width=4)) == 18.0
        assert snap_distance(TownParams(road_width=10)) == 25.0


class TestRoadSegmentIndex:
    """Test nearest-segment lookup."""

    def test_empty(self):
        index = RoadSegmentIndex([])
        assert len(index) == 0
        assert index.nearest(Point(1, 2)) is None

    def test_nearest(self):
        roads = [
            Polyline(RoadKind.MAIN, 8, [Point(0, 0), Point(10, 0)]),
            Polyline(RoadKind.MINOR, 4, [Point(0, 20), Point(0, 40)]),
        ]
        index = RoadSegmentIndex(roads)
        assert len(index) == 2

        hit = index.nearest(Point(5, 3))
        assert hit.point == Point(5, 0)
        assert hit.dist == pytest.approx(3)
        assert hit.angle == pytest.approx(0)

        hit = index.nearest(Point(2, 30))
        assert hit.point == Point(0, 30)
        assert hit.angle == pytest.approx(math.pi / 2)

    def test_degenerate_segment(self):
        index = RoadSegmentIndex([Polyline(RoadKind.MINOR, 4, [Point(3, 3), Point(3, 3)])])
        hit = index.nearest(Point(6, 7))
        assert hit.dist == pytest.approx(5)
