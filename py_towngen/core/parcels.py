"""
Recursive parcel subdivision of blocks.

Each block starts as one work item. The largest item is split in two along an
axis-aligned line until the item count reaches the density target or the
iteration cap runs out. Splits producing a half below the district minimum
area are refused and the item is kept whole.
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import structlog

from .geometry import Bounds, Point, Polygon, lerp, poly_area, poly_bounds, poly_centroid
from .models import Block, District, Parcel
from .params import TownParams
from .rng import SeededRNG, round_half_up, stable_id

logger = structlog.get_logger()

CUT_MARGIN = 6.0
AXIS_TIE_TOLERANCE = 8.0
SPLIT_HEADROOM = 1.8
DISTRICT_AREA_SCALE = {District.CORE: 0.8, District.INNER: 1.2, District.OUTER: 1.6}


@dataclass
class _WorkItem:
    polygon: Polygon
    block_id: str
    district: District
    area: float


def district_for_point(p: Point, radius: float) -> District:
    """Classify a point by its distance from the town center."""
    d = math.hypot(p.x, p.y)
    if d < radius * 0.35:
        return District.CORE
    if d < radius * 0.7:
        return District.INNER
    return District.OUTER


def min_parcel_area(params: TownParams, district: District) -> float:
    """Smallest parcel that can still host the largest building of its district."""
    return params.b_max * params.b_max * 1.5 * DISTRICT_AREA_SCALE[district]


def parcel_target(params: TownParams) -> int:
    return max(120, round_half_up(420 * (params.density / 1.2)))


def choose_axis(rng: SeededRNG, bounds: Bounds) -> str:
    """Split across the longer side; near-square boxes pick at random."""
    w = bounds.width
    h = bounds.height
    if abs(w - h) < AXIS_TIE_TOLERANCE:
        return "x" if rng.random() < 0.5 else "y"
    return "x" if w > h else "y"


def random_cut(rng: SeededRNG, bounds: Bounds, axis: str) -> float:
    if axis == "x":
        return lerp(bounds.min_x + CUT_MARGIN, bounds.max_x - CUT_MARGIN, rng.random())
    return lerp(bounds.min_y + CUT_MARGIN, bounds.max_y - CUT_MARGIN, rng.random())


def _inside(p: Point, axis: str, value: float, keep_less: bool) -> bool:
    coord = p.x if axis == "x" else p.y
    return coord <= value if keep_less else coord >= value


def _intersect(a: Point, b: Point, axis: str, value: float) -> Point:
    dx = b.x - a.x
    dy = b.y - a.y
    if axis == "x":
        if abs(dx) < 1e-6:
            return Point(value, a.y)
        return Point(value, a.y + dy * (value - a.x) / dx)
    if abs(dy) < 1e-6:
        return Point(a.x, value)
    return Point(a.x + dx * (value - a.y) / dy, value)


def clip_polygon(poly: Sequence[Point], axis: str, value: float, keep_less: bool) -> Optional[Polygon]:
    """
    Sutherland-Hodgman clip against one axis-aligned half-plane.

    Returns:
        Clipped polygon, or None when fewer than 3 vertices remain
    """
    out: Polygon = []
    n = len(poly)
    for i in range(n):
        a = poly[i - 1]
        b = poly[i]
        a_in = _inside(a, axis, value, keep_less)
        b_in = _inside(b, axis, value, keep_less)
        if a_in and b_in:
            out.append(b)
        elif a_in:
            out.append(_intersect(a, b, axis, value))
        elif b_in:
            out.append(_intersect(a, b, axis, value))
            out.append(b)
    return out if len(out) >= 3 else None


def split_polygon(poly: Sequence[Point], axis: str, value: float) -> Optional[Tuple[Polygon, Polygon]]:
    """Cut a polygon in two at ``axis = value``."""
    low = clip_polygon(poly, axis, value, keep_less=True)
    high = clip_polygon(poly, axis, value, keep_less=False)
    if low is None or high is None:
        return None
    return low, high


def _pop_largest(items: List[_WorkItem]) -> Optional[_WorkItem]:
    if not items:
        return None
    best = max(range(len(items)), key=lambda i: items[i].area)
    return items.pop(best)


def subdivide_blocks(rng: SeededRNG, params: TownParams, blocks: Sequence[Block]) -> List[Parcel]:
    """
    Split blocks into parcels.

    Args:
        rng: Main pipeline stream
        params: Clamped town parameters
        blocks: Blocks from extraction

    Returns:
        Parcels; every block yields at least one
    """
    R = params.town_radius
    queue: List[_WorkItem] = []
    for block in blocks:
        district = district_for_point(poly_centroid(block.polygon), R)
        queue.append(_WorkItem(list(block.polygon), block.id, district, abs(poly_area(block.polygon))))

    target = parcel_target(params)
    done: List[_WorkItem] = []
    iterations = 0
    refused = 0
    while len(queue) + len(done) < target and iterations < target * 6:
        iterations += 1
        item = _pop_largest(queue)
        if item is None:
            break
        min_area = min_parcel_area(params, item.district)
        if item.area < min_area * SPLIT_HEADROOM:
            done.append(item)
            continue

        bounds = poly_bounds(item.polygon)
        axis = choose_axis(rng, bounds)
        cut = random_cut(rng, bounds, axis)
        halves = split_polygon(item.polygon, axis, cut)
        if halves is None:
            refused += 1
            done.append(item)
            continue

        areas = [abs(poly_area(half)) for half in halves]
        if min(areas) < min_area:
            refused += 1
            done.append(item)
            continue

        for half, area in zip(halves, areas):
            queue.append(_WorkItem(half, item.block_id, item.district, area))

    done.extend(queue)

    parcels = []
    for item in done:
        centroid = poly_centroid(item.polygon)
        signature = (
            f"{item.block_id}:{round_half_up(centroid.x)}:{round_half_up(centroid.y)}:"
            f"{round_half_up(item.area)}"
        )
        parcels.append(
            Parcel(
                id=stable_id("parcel_", params.seed, signature),
                polygon=item.polygon,
                block_id=item.block_id,
                bbox=poly_bounds(item.polygon),
                district=item.district,
            )
        )

    logger.info("Parcels subdivided", parcels=len(parcels), target=target, iterations=iterations, refused=refused)
    return parcels
