"""
Building placement.

One rectangular footprint is tried per parcel, centred on the parcel centroid
and aligned with the parcel edge closest to a road. Each parcel draws from
its own stream (seed, parcel id, "building"), so a building's size, kind and
color do not depend on what was placed before it.
"""

import math
from typing import List, Optional, Sequence, Tuple

import shapely
import structlog

from .geometry import (
    Point,
    Polygon,
    bounds_overlap,
    lerp,
    point_in_poly,
    poly_bounds,
    poly_centroid,
    poly_inside,
    rect_poly,
    to_shape,
)
from .models import (
    Building,
    BuildingKind,
    BuildingMeta,
    BuildingStyle,
    District,
    Parcel,
    Polyline,
)
from .params import TownParams
from .roads import RoadSegmentIndex
from .rng import SeededRNG, rng_for, round_half_up, stable_id
from .spatial_index import SpatialGrid

logger = structlog.get_logger()

DISTRICT_SIZE_SCALE = {District.CORE: 0.8, District.INNER: 1.0, District.OUTER: 1.25}
PARCEL_FILL_RATIO = 0.75
SHRINK_FACTOR = 0.82
MIN_EXTENT = 6.0
PALETTE = ("#6c4a3a", "#715243", "#5d3f33", "#7a5a47", "#4f3a32", "#8a6a53", "#9aa3ab")


def frontage_angle(polygon: Sequence[Point], roads: RoadSegmentIndex) -> float:
    """
    Rotation of the parcel edge whose midpoint is nearest to a road.

    Returns 0 when there are no roads.
    """
    best_dist = math.inf
    angle = 0.0
    n = len(polygon)
    for i in range(n):
        a = polygon[i]
        b = polygon[(i + 1) % n]
        hit = roads.nearest(Point((a.x + b.x) / 2, (a.y + b.y) / 2))
        if hit is None:
            continue
        if hit.dist < best_dist:
            best_dist = hit.dist
            angle = math.atan2(b.y - a.y, b.x - a.x)
    return angle


def pick_kind(rng: SeededRNG, district: District) -> BuildingKind:
    if district == District.CORE:
        if rng.random() < 0.18:
            return BuildingKind.CIVIC
        return BuildingKind.SHOP if rng.random() < 0.45 else BuildingKind.HOME
    if district == District.INNER:
        if rng.random() < 0.1:
            return BuildingKind.CIVIC
        return BuildingKind.SHOP if rng.random() < 0.35 else BuildingKind.HOME
    return BuildingKind.SHOP if rng.random() < 0.08 else BuildingKind.HOME


def pick_levels(rng: SeededRNG, district: District, kind: BuildingKind) -> int:
    levels = 1
    if district == District.CORE and rng.random() < 0.6:
        levels += 1
    if kind == BuildingKind.CIVIC and rng.random() < 0.6:
        levels += 1
    if rng.random() < 0.1:
        levels += 1
    return levels


def pick_fill(rng: SeededRNG) -> str:
    return PALETTE[int(rng.random() * len(PALETTE))]


def _fit_footprint(
    parcel: Parcel, centroid: Point, w: float, h: float, angle: float
) -> Optional[Tuple[Polygon, float, float]]:
    """
    Rectangle inside the parcel, shrinking once if needed.

    The shrunk rectangle is still accepted when the centroid itself lies in
    the parcel, which keeps buildings on concave or jagged parcels.
    """
    shape = to_shape(parcel.polygon)
    shapely.prepare(shape)
    footprint = rect_poly(centroid.x, centroid.y, w, h, angle)
    if poly_inside(footprint, shape):
        return footprint, w, h
    w *= SHRINK_FACTOR
    h *= SHRINK_FACTOR
    footprint = rect_poly(centroid.x, centroid.y, w, h, angle)
    if poly_inside(footprint, shape) or point_in_poly(centroid, shape):
        return footprint, w, h
    return None


def place_buildings(
    rng: SeededRNG,
    params: TownParams,
    parcels: Sequence[Parcel],
    polylines: Sequence[Polyline],
) -> List[Building]:
    """
    Place at most one building per parcel.

    Args:
        rng: Main pipeline stream (not consumed; each parcel derives its own)
        params: Clamped town parameters
        parcels: Parcels to build on
        polylines: Road polylines used for frontage orientation

    Returns:
        Buildings whose bounding boxes are pairwise disjoint
    """
    roads = RoadSegmentIndex(polylines)
    grid: SpatialGrid[Building] = SpatialGrid(max(18.0, params.b_max))
    buildings: List[Building] = []
    skipped = 0
    overlapping = 0

    for parcel in parcels:
        prng = rng_for(params.seed, parcel.id, "building")
        centroid = poly_centroid(parcel.polygon)
        district = parcel.district
        angle = frontage_angle(parcel.polygon, roads)

        bbox = parcel.bbox
        max_w = max(MIN_EXTENT, bbox.width * PARCEL_FILL_RATIO)
        max_h = max(MIN_EXTENT, bbox.height * PARCEL_FILL_RATIO)
        size_base = lerp(params.b_min, params.b_max, prng.random())
        scale = DISTRICT_SIZE_SCALE[district]
        w = min(max_w, size_base * scale * lerp(0.8, 1.2, prng.random()))
        h = min(max_h, size_base * scale * lerp(0.8, 1.3, prng.random()))

        fitted = _fit_footprint(parcel, centroid, w, h, angle)
        if fitted is None:
            skipped += 1
            continue
        footprint, w, h = fitted

        footprint_bounds = poly_bounds(footprint)
        if any(bounds_overlap(footprint_bounds, other.bbox) for other in grid.query(footprint_bounds)):
            overlapping += 1
            continue

        signature = (
            f"{round_half_up(centroid.x)}:{round_half_up(centroid.y)}:"
            f"{round_half_up(w)}:{round_half_up(h)}:{district.value}"
        )
        kind = pick_kind(prng, district)
        levels = pick_levels(prng, district, kind)
        building = Building(
            id=stable_id("b_", params.seed, signature),
            footprint=footprint,
            bbox=footprint_bounds,
            style=BuildingStyle(fill=pick_fill(prng)),
            meta=BuildingMeta(kind=kind, levels=levels, district=district),
        )
        grid.insert(building, footprint_bounds)
        buildings.append(building)

    logger.info("Buildings placed", buildings=len(buildings), skipped=skipped, overlapping=overlapping)
    return buildings
