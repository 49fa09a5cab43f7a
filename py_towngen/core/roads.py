"""
Road network synthesis.

Process:
1. Center node at the origin
2. Main spines - two-segment radial roads (center -> mid -> end)
3. Ring roads - jittered concentric loops between 0.28R and 0.82R
4. Minor streets - short branches off spine/ring nodes, some with a bend
5. Snapping - ring nodes close to an unconnected node get a minor link

RNG draws happen in exactly this order, so any change to an earlier stage
shifts every later draw.
"""

import math
from typing import List, NamedTuple, Optional, Sequence

import numpy as np
import structlog

from .geometry import Point, lerp
from .models import Polyline, RoadEdge, RoadGraph, RoadKind, RoadNode
from .params import TownParams
from .rng import SeededRNG, round_half_up

logger = structlog.get_logger()

RING_RADIUS_MIN = 0.28
RING_RADIUS_MAX = 0.82
MINOR_BEND_CHANCE = 0.35
MINOR_MAX_REACH = 1.05


class _GraphBuilder:
    """Accumulates nodes and edges with sequential ids."""

    def __init__(self):
        self.nodes: List[RoadNode] = []
        self.edges: List[RoadEdge] = []
        self.adjacency: dict = {}

    def add_node(self, x: float, y: float) -> RoadNode:
        node = RoadNode(id=f"n{len(self.nodes) + 1}", x=x, y=y)
        self.nodes.append(node)
        self.adjacency[node.id] = set()
        return node

    def add_edge(self, a: str, b: str, kind: RoadKind, width: float) -> RoadEdge:
        edge = RoadEdge(id=f"e{len(self.edges) + 1}", node_a=a, node_b=b, kind=kind, width=width)
        self.edges.append(edge)
        self.adjacency[a].add(b)
        self.adjacency[b].add(a)
        return edge

    def build(self) -> RoadGraph:
        return RoadGraph(nodes=self.nodes, edges=self.edges)


def minor_road_count(params: TownParams) -> int:
    """Number of minor branch attempts for the given density."""
    return max(120, round_half_up(818 * (params.density / 1.2)))


def snap_distance(params: TownParams) -> float:
    return max(18.0, params.road_width * 2.5)


def generate_road_graph(rng: SeededRNG, params: TownParams) -> RoadGraph:
    """
    Build the road graph for a town.

    Args:
        rng: Main pipeline stream
        params: Clamped town parameters

    Returns:
        RoadGraph with main, ring and minor edges
    """
    R = params.town_radius
    builder = _GraphBuilder()
    center = builder.add_node(0.0, 0.0)

    _add_main_spines(builder, rng, params, center)
    ring_ids = _add_ring_roads(builder, rng, params)
    _add_minor_streets(builder, rng, params, center)
    snapped = _snap_ring_nodes(builder, ring_ids, params)

    graph = builder.build()
    logger.info(
        "Road graph generated",
        nodes=len(graph.nodes),
        edges=len(graph.edges),
        snapped=snapped,
        radius=R,
    )
    return graph


def _add_main_spines(builder: _GraphBuilder, rng: SeededRNG, params: TownParams, center: RoadNode) -> None:
    R = params.town_radius
    count = params.main_roads
    width = params.road_width * 1.6
    for i in range(count):
        ang = i / count * math.tau + (rng.random() - 0.5) * 0.2
        length = R * (0.9 + rng.random() * 0.12)
        mid_dist = length * (0.45 + rng.random() * 0.1)

        mid_x = math.cos(ang) * mid_dist + (rng.random() - 0.5) * R * 0.08
        mid_y = math.sin(ang) * mid_dist + (rng.random() - 0.5) * R * 0.08
        end_x = math.cos(ang) * length + (rng.random() - 0.5) * R * 0.06
        end_y = math.sin(ang) * length + (rng.random() - 0.5) * R * 0.06

        mid = builder.add_node(mid_x, mid_y)
        end = builder.add_node(end_x, end_y)
        builder.add_edge(center.id, mid.id, RoadKind.MAIN, width)
        builder.add_edge(mid.id, end.id, RoadKind.MAIN, width)


def _add_ring_roads(builder: _GraphBuilder, rng: SeededRNG, params: TownParams) -> List[str]:
    R = params.town_radius
    ring_count = params.ring_roads
    width = max(3.0, params.road_width * 1.15)
    ring_ids: List[str] = []
    for i in range(ring_count):
        t = (i + 1) / (ring_count + 1)
        r = lerp(R * RING_RADIUS_MIN, R * RING_RADIUS_MAX, t) * lerp(0.95, 1.05, rng.random())
        segments = max(18, round_half_up(24 + r / 12))
        first: Optional[RoadNode] = None
        prev: Optional[RoadNode] = None
        for s in range(segments):
            ang = s / segments * math.tau + (rng.random() - 0.5) * 0.02
            x = math.cos(ang) * r + (rng.random() - 0.5) * 3
            y = math.sin(ang) * r + (rng.random() - 0.5) * 3
            node = builder.add_node(x, y)
            ring_ids.append(node.id)
            if first is None:
                first = node
            if prev is not None:
                builder.add_edge(prev.id, node.id, RoadKind.RING, width)
            prev = node
        if first is not None and prev is not None and first is not prev:
            builder.add_edge(prev.id, first.id, RoadKind.RING, width)
    return ring_ids


def _add_minor_streets(builder: _GraphBuilder, rng: SeededRNG, params: TownParams, center: RoadNode) -> None:
    R = params.town_radius
    anchors = [n for n in builder.nodes if n.id != center.id]
    if not anchors:
        return

    width = max(2.0, params.road_width * 0.7)
    bend_width = max(2.0, params.road_width * 0.65)
    for _ in range(minor_road_count(params)):
        anchor = anchors[int(rng.random() * len(anchors))]
        side = math.pi / 2 if rng.random() < 0.5 else -math.pi / 2
        ang = math.atan2(anchor.y, anchor.x) + side + (rng.random() - 0.5) * 0.6
        length = lerp(R * 0.08, R * 0.22, rng.random())
        end_x = anchor.x + math.cos(ang) * length
        end_y = anchor.y + math.sin(ang) * length
        if math.hypot(end_x, end_y) > R * MINOR_MAX_REACH:
            continue
        end = builder.add_node(end_x, end_y)
        builder.add_edge(anchor.id, end.id, RoadKind.MINOR, width)

        if rng.random() < MINOR_BEND_CHANCE:
            bend_x = end_x + (rng.random() - 0.5) * length * 0.6
            bend_y = end_y + (rng.random() - 0.5) * length * 0.6
            bend = builder.add_node(bend_x, bend_y)
            builder.add_edge(end.id, bend.id, RoadKind.MINOR, bend_width)


def _snap_ring_nodes(builder: _GraphBuilder, ring_ids: Sequence[str], params: TownParams) -> int:
    """Link each ring node to its nearest unconnected neighbour within snap distance."""
    if not ring_ids:
        return 0

    ids = [n.id for n in builder.nodes]
    index = {node_id: i for i, node_id in enumerate(ids)}
    coords = np.array([[n.x, n.y] for n in builder.nodes], dtype=np.float64)
    limit = snap_distance(params)
    width = max(2.0, params.road_width * 0.7)

    snapped = 0
    for ring_id in ring_ids:
        i = index[ring_id]
        dists = np.hypot(coords[:, 0] - coords[i, 0], coords[:, 1] - coords[i, 1])
        dists[i] = np.inf
        for neighbour in builder.adjacency[ring_id]:
            dists[index[neighbour]] = np.inf
        nearest = int(np.argmin(dists))
        if dists[nearest] <= limit:
            builder.add_edge(ring_id, ids[nearest], RoadKind.MINOR, width)
            snapped += 1
    return snapped


class RoadHit(NamedTuple):
    """Nearest road segment to a query point."""
    point: Point
    dist: float
    angle: float


class RoadSegmentIndex:
    """
    Brute-force nearest-segment lookup over road polylines.

    Segments are stored as numpy arrays so one query is a single vectorised
    pass over every segment.
    """

    def __init__(self, polylines: Sequence[Polyline]):
        starts = []
        ends = []
        for line in polylines:
            pts = line.points
            for a, b in zip(pts, pts[1:]):
                starts.append((a.x, a.y))
                ends.append((b.x, b.y))
        self.a = np.array(starts, dtype=np.float64).reshape(-1, 2)
        self.b = np.array(ends, dtype=np.float64).reshape(-1, 2)
        self.d = self.b - self.a
        self.len_sq = np.einsum("ij,ij->i", self.d, self.d)

    def __len__(self) -> int:
        return len(self.a)

    def nearest(self, p: Point) -> Optional[RoadHit]:
        """Closest point on any segment, or None when there are no roads."""
        if len(self.a) == 0:
            return None
        rel = np.array([p.x, p.y]) - self.a
        with np.errstate(divide="ignore", invalid="ignore"):
            t = np.where(self.len_sq > 1e-9, np.einsum("ij,ij->i", rel, self.d) / self.len_sq, 0.0)
        t = np.clip(t, 0.0, 1.0)
        proj = self.a + self.d * t[:, None]
        dist = np.hypot(proj[:, 0] - p.x, proj[:, 1] - p.y)
        k = int(np.argmin(dist))
        return RoadHit(
            point=Point(float(proj[k, 0]), float(proj[k, 1])),
            dist=float(dist[k]),
            angle=math.atan2(self.d[k, 1], self.d[k, 0]),
        )
