"""
Merge road graph edges into minimal polylines.

Edges are grouped by (kind, width). Within a group, walks start at nodes whose
group degree is not 2 (endpoints and branch points) and follow degree-2
chains. Whatever is left afterwards consists of pure cycles, which are walked
from their first unvisited edge and closed by repeating the start point.
"""

from typing import Dict, List, Set, Tuple

import structlog

from .geometry import Point
from .models import Polyline, RoadEdge, RoadGraph, RoadKind

logger = structlog.get_logger()


def merge_polylines(graph: RoadGraph) -> List[Polyline]:
    """
    Collapse graph edges into polylines.

    The output order is deterministic: groups in order of first appearance,
    walks in node order, cycles in edge order.

    Args:
        graph: Road graph

    Returns:
        Polylines covering every edge exactly once
    """
    nodes = graph.node_map()
    groups: Dict[Tuple[RoadKind, float], List[RoadEdge]] = {}
    for edge in graph.edges:
        groups.setdefault((edge.kind, edge.width), []).append(edge)

    polylines: List[Polyline] = []
    for (kind, width), edges in groups.items():
        for chain in _walk_group(graph, edges):
            points = [nodes[node_id].point for node_id in chain]
            polylines.append(Polyline(kind=kind, width=width, points=points))

    logger.debug("Road polylines merged", edges=len(graph.edges), polylines=len(polylines))
    return polylines


def _walk_group(graph: RoadGraph, edges: List[RoadEdge]) -> List[List[str]]:
    adjacency: Dict[str, List[RoadEdge]] = {}
    for edge in edges:
        adjacency.setdefault(edge.node_a, []).append(edge)
        adjacency.setdefault(edge.node_b, []).append(edge)

    visited: Set[str] = set()
    max_steps = len(edges) + 2
    chains: List[List[str]] = []

    def walk(start: str, first: RoadEdge) -> List[str]:
        chain = [start]
        current = start
        edge = first
        for _ in range(max_steps):
            visited.add(edge.id)
            current = edge.node_b if edge.node_a == current else edge.node_a
            chain.append(current)
            if current == start or len(adjacency[current]) != 2:
                break
            nxt = next((e for e in adjacency[current] if e.id not in visited), None)
            if nxt is None:
                break
            edge = nxt
        return chain

    for node in graph.nodes:
        incident = adjacency.get(node.id)
        if not incident or len(incident) == 2:
            continue
        for edge in incident:
            if edge.id not in visited:
                chains.append(walk(node.id, edge))

    for edge in edges:
        if edge.id not in visited:
            chains.append(walk(edge.node_a, edge))

    return chains


def same_polyline(a: Polyline, b: Polyline) -> bool:
    """
    Compare polylines up to direction, and up to starting point for closed loops.
    """
    if a.kind != b.kind or a.width != b.width or len(a.points) != len(b.points):
        return False
    if a.points == b.points or a.points == b.points[::-1]:
        return True
    if not (a.closed and b.closed):
        return False
    ring_a: List[Point] = a.points[:-1]
    ring_b: List[Point] = b.points[:-1]
    for candidate in (ring_b, ring_b[::-1]):
        for shift in range(len(candidate)):
            if ring_a == candidate[shift:] + candidate[:shift]:
                return True
    return False
