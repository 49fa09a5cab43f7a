"""
Raster block extraction.

Process:
1. Stroke every road polyline onto a binary mask (width + safety margin)
2. Label 4-connected non-road regions inside 1.02R of the center
3. Drop regions touching the raster edge or smaller than the minimum area
4. Trace each surviving region with marching squares and stitch the segments
5. Simplify with RDP and keep polygons that are large enough and centred in town

Working on a raster keeps the cost bounded whatever the road topology, at the
price of sub-pixel accuracy.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import structlog
from scipy import ndimage

from .geometry import (
    Point,
    circle_poly,
    ensure_ccw,
    poly_area,
    poly_bounds,
    poly_centroid,
    simplify_rdp,
)
from .models import Block, Polyline
from .params import TownParams
from .rng import SeededRNG, round_half_up, stable_id

logger = structlog.get_logger()

STROKE_MARGIN = 6.0
MIN_BLOCK_AREA = 140
BOUNDARY_SLACK = 1.02
RDP_EPSILON = 2.0
FALLBACK_RADIUS = 0.92
FALLBACK_STEPS = 48

# Marching squares: corner bits v0 (top-left) | v1 (top-right) << 1 |
# v2 (bottom-right) << 2 | v3 (bottom-left) << 3. Edge points e0..e3 are the
# midpoints of the top, right, bottom and left sides of the 2x2 cell.
EDGE_OFFSETS = ((0.5, 0.0), (1.0, 0.5), (0.5, 1.0), (0.0, 0.5))
CASE_SEGMENTS: Dict[int, Tuple[Tuple[int, int], ...]] = {
    1: ((3, 0),),
    2: ((0, 1),),
    3: ((3, 1),),
    4: ((1, 2),),
    5: ((3, 0), (1, 2)),
    6: ((0, 2),),
    7: ((3, 2),),
    8: ((2, 3),),
    9: ((0, 2),),
    10: ((0, 1), (2, 3)),
    11: ((1, 2),),
    12: ((1, 3),),
    13: ((0, 1),),
    14: ((0, 3),),
}


@dataclass
class RasterComponent:
    """A labelled non-road region of the mask."""
    label: int
    area: int
    min_x: int
    max_x: int
    min_y: int
    max_y: int
    touches_edge: bool


def rasterize_roads(polylines: Sequence[Polyline], width: int, height: int, margin: float = STROKE_MARGIN) -> np.ndarray:
    """
    Stroke polylines onto a boolean road mask of shape (height, width).

    World origin maps to the raster center. Strokes have round caps and joins;
    a pixel is road when its center lies within half the stroke width (plus
    half a pixel of coverage) of a segment.
    """
    mask = np.zeros((height, width), dtype=bool)
    ox = width / 2
    oy = height / 2
    for line in polylines:
        half = (line.width + margin) / 2 + 0.5
        for a, b in zip(line.points, line.points[1:] or line.points):
            ax, ay = a.x + ox, a.y + oy
            bx, by = b.x + ox, b.y + oy
            x0 = max(0, int(math.floor(min(ax, bx) - half)))
            x1 = min(width - 1, int(math.ceil(max(ax, bx) + half)))
            y0 = max(0, int(math.floor(min(ay, by) - half)))
            y1 = min(height - 1, int(math.ceil(max(ay, by) + half)))
            if x0 > x1 or y0 > y1:
                continue
            px = np.arange(x0, x1 + 1, dtype=np.float64) + 0.5
            py = np.arange(y0, y1 + 1, dtype=np.float64)[:, None] + 0.5
            dx = bx - ax
            dy = by - ay
            len_sq = dx * dx + dy * dy
            if len_sq > 1e-9:
                t = np.clip(((px - ax) * dx + (py - ay) * dy) / len_sq, 0.0, 1.0)
            else:
                t = np.zeros((y1 - y0 + 1, x1 - x0 + 1))
            dist_sq = (px - (ax + dx * t)) ** 2 + (py - (ay + dy * t)) ** 2
            mask[y0:y1 + 1, x0:x1 + 1] |= dist_sq <= half * half
    return mask


def label_components(road_mask: np.ndarray, town_radius: float) -> Tuple[np.ndarray, List[RasterComponent]]:
    """
    Flood-fill non-road pixels within 1.02R of the raster center.

    The outermost pixel frame is never filled; a component reaching the two
    outermost rows/columns is flagged as touching the edge.

    Returns:
        Label array (0 = unlabelled) and components in raster discovery order
    """
    h, w = road_mask.shape
    ys, xs = np.mgrid[0:h, 0:w]
    limit = town_radius * BOUNDARY_SLACK
    inside = (xs - w / 2) ** 2 + (ys - h / 2) ** 2 <= limit * limit

    fillable = ~road_mask & inside
    fillable[0, :] = False
    fillable[-1, :] = False
    fillable[:, 0] = False
    fillable[:, -1] = False

    labels, count = ndimage.label(fillable)
    if count == 0:
        return labels, []

    areas = np.bincount(labels.ravel(), minlength=count + 1)
    band = np.zeros_like(fillable)
    band[:2, :] = True
    band[-2:, :] = True
    band[:, :2] = True
    band[:, -2:] = True
    edge_labels = set(np.unique(labels[band]).tolist())

    components = []
    for index, slices in enumerate(ndimage.find_objects(labels), start=1):
        if slices is None:
            continue
        sy, sx = slices
        components.append(
            RasterComponent(
                label=index,
                area=int(areas[index]),
                min_x=sx.start,
                max_x=sx.stop - 1,
                min_y=sy.start,
                max_y=sy.stop - 1,
                touches_edge=index in edge_labels,
            )
        )
    return labels, components


def trace_contour(labels: np.ndarray, comp: RasterComponent) -> Optional[List[Tuple[float, float]]]:
    """
    Marching-squares outline of one component in raster coordinates.

    Cells are scanned over the component bounding box grown by one pixel so
    the outline is closed on every side. Segments are stitched by walking from
    the first point, never stepping straight back to the previous point when
    another neighbour exists.

    Returns:
        Ordered outline points, or None if fewer than 4 points were traced
    """
    h, w = labels.shape
    x0 = max(0, comp.min_x - 1)
    y0 = max(0, comp.min_y - 1)
    x1 = min(w - 1, comp.max_x + 1)
    y1 = min(h - 1, comp.max_y + 1)
    cell = (labels[y0:y1 + 1, x0:x1 + 1] == comp.label).astype(np.uint8)

    codes = (
        cell[:-1, :-1]
        | (cell[:-1, 1:] << 1)
        | (cell[1:, 1:] << 2)
        | (cell[1:, :-1] << 3)
    )

    neighbours: Dict[Tuple[float, float], List[Tuple[float, float]]] = {}
    segment_count = 0
    for r, c in np.argwhere((codes != 0) & (codes != 15)):
        x = x0 + int(c)
        y = y0 + int(r)
        for i, j in CASE_SEGMENTS[int(codes[r, c])]:
            p = (x + EDGE_OFFSETS[i][0], y + EDGE_OFFSETS[i][1])
            q = (x + EDGE_OFFSETS[j][0], y + EDGE_OFFSETS[j][1])
            neighbours.setdefault(p, []).append(q)
            neighbours.setdefault(q, []).append(p)
            segment_count += 1

    if not neighbours:
        return None

    start = next(iter(neighbours))
    contour = [start]
    prev = None
    current = start
    for _ in range(segment_count * 2):
        options = neighbours.get(current)
        if not options:
            break
        nxt = options[0]
        if len(options) > 1 and prev is not None:
            nxt = next((p for p in options if p != prev), nxt)
        prev = current
        current = nxt
        if current == start:
            break
        contour.append(current)

    return contour if len(contour) >= 4 else None


def fallback_block(params: TownParams) -> Block:
    """Circle block used when no component survives extraction."""
    poly = circle_poly(params.town_radius * FALLBACK_RADIUS, FALLBACK_STEPS)
    area = abs(poly_area(poly))
    block_id = stable_id("block_", params.seed, f"fallback:{round_half_up(area)}")
    return Block(id=block_id, polygon=poly, area=area, bbox=poly_bounds(poly))


def block_signature(centroid: Point, area: float) -> str:
    return f"{round_half_up(centroid.x)}:{round_half_up(centroid.y)}:{round_half_up(area)}"


def extract_blocks(
    rng: SeededRNG,
    params: TownParams,
    polylines: Sequence[Polyline],
    viewport: Tuple[float, float],
) -> List[Block]:
    """
    Extract road-bounded blocks.

    Args:
        rng: Main pipeline stream (not consumed; ids are geometry hashes)
        params: Clamped town parameters
        polylines: Merged road polylines
        viewport: Raster size (width, height) in world units

    Returns:
        Non-empty list of blocks; a fallback circle when nothing survives
    """
    w = max(1, int(math.floor(viewport[0])))
    h = max(1, int(math.floor(viewport[1])))
    R = params.town_radius

    road_mask = rasterize_roads(polylines, w, h)
    labels, components = label_components(road_mask, R)

    blocks: List[Block] = []
    rejected = {"edge": 0, "small": 0, "contour": 0, "simplified": 0, "outside": 0}
    for comp in components:
        if comp.touches_edge:
            rejected["edge"] += 1
            continue
        if comp.area < MIN_BLOCK_AREA:
            rejected["small"] += 1
            continue

        contour = trace_contour(labels, comp)
        if contour is None:
            rejected["contour"] += 1
            continue

        world = [Point(x - w / 2, y - h / 2) for x, y in contour]
        simplified = simplify_rdp(world, RDP_EPSILON)
        if len(simplified) < 4:
            rejected["simplified"] += 1
            continue

        area = abs(poly_area(simplified))
        if area < MIN_BLOCK_AREA:
            rejected["small"] += 1
            continue
        centroid = poly_centroid(simplified)
        if centroid.x * centroid.x + centroid.y * centroid.y > R * R:
            rejected["outside"] += 1
            continue

        polygon = ensure_ccw(simplified)
        block_id = stable_id("block_", params.seed, block_signature(centroid, area))
        blocks.append(Block(id=block_id, polygon=polygon, area=area, bbox=poly_bounds(polygon)))

    logger.debug("Block components rejected", **rejected)

    if not blocks:
        logger.warning("No blocks survived extraction, using fallback circle", components=len(components))
        blocks.append(fallback_block(params))

    logger.info("Blocks extracted", blocks=len(blocks), components=len(components), raster=f"{w}x{h}")
    return blocks
