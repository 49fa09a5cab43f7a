"""
Planar geometry helpers shared by the generation stages.

Polygons are plain lists of Point and are treated as implicitly closed
(the last vertex connects back to the first). Area, centroid, containment
and rotation are computed on shapely geometries built from those lists.
"""

import math
from typing import Iterable, List, NamedTuple, Sequence, Tuple, Union

import shapely
from shapely import affinity
from shapely.geometry import LinearRing
from shapely.geometry import Point as ShapelyPoint
from shapely.geometry import Polygon as ShapelyPolygon


class Point(NamedTuple):
    """A 2D point in world coordinates (town center at the origin)."""
    x: float
    y: float


class Bounds(NamedTuple):
    """Axis-aligned bounding box."""
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    def contains(self, p: Point) -> bool:
        return self.min_x <= p.x <= self.max_x and self.min_y <= p.y <= self.max_y


Polygon = List[Point]
Shape = Union[Sequence[Point], ShapelyPolygon]


def lerp(a: float, b: float, t: float) -> float:
    """Linear interpolation."""
    return a + (b - a) * t


def distance(a: Point, b: Point) -> float:
    return math.hypot(a.x - b.x, a.y - b.y)


def to_shape(poly: Shape) -> ShapelyPolygon:
    """shapely polygon for a point list; shapely polygons pass through."""
    if isinstance(poly, ShapelyPolygon):
        return poly
    return ShapelyPolygon([(p.x, p.y) for p in poly])


def poly_area(poly: Sequence[Point]) -> float:
    """Signed area (positive for counter-clockwise in a y-up frame)."""
    if len(poly) < 3:
        return 0.0
    ring = LinearRing([(p.x, p.y) for p in poly])
    area = ShapelyPolygon(ring).area
    return area if ring.is_ccw else -area


def poly_bounds(poly: Iterable[Point]) -> Bounds:
    min_x = min_y = math.inf
    max_x = max_y = -math.inf
    for p in poly:
        if p.x < min_x:
            min_x = p.x
        if p.y < min_y:
            min_y = p.y
        if p.x > max_x:
            max_x = p.x
        if p.y > max_y:
            max_y = p.y
    return Bounds(min_x, min_y, max_x, max_y)


def poly_centroid(poly: Sequence[Point]) -> Point:
    """
    Area centroid of a polygon.

    Falls back to the bounding-box center for (near) zero-area polygons.
    """
    if len(poly) >= 3:
        shape = to_shape(poly)
        if shape.area >= 1e-6:
            c = shape.centroid
            return Point(c.x, c.y)
    b = poly_bounds(poly)
    return Point((b.min_x + b.max_x) / 2, (b.min_y + b.max_y) / 2)


def ensure_ccw(poly: Polygon) -> Polygon:
    """Return the polygon with positive signed area."""
    if poly_area(poly) < 0:
        return list(reversed(poly))
    return list(poly)


def bounds_overlap(a: Bounds, b: Bounds) -> bool:
    """Closed-interval bounding box intersection test (touching counts)."""
    return not (
        a.max_x < b.min_x or a.min_x > b.max_x or a.max_y < b.min_y or a.min_y > b.max_y
    )


def point_in_poly(pt: Point, poly: Shape) -> bool:
    """True if the point lies inside the polygon or on its boundary."""
    return to_shape(poly).covers(ShapelyPoint(pt.x, pt.y))


def poly_inside(poly: Sequence[Point], container: Shape) -> bool:
    """True if every vertex of poly lies inside container (boundary included)."""
    corners = shapely.points([(p.x, p.y) for p in poly])
    return bool(shapely.covers(to_shape(container), corners).all())


def simplify_rdp(poly: Sequence[Point], eps: float) -> Polygon:
    """
    Ramer-Douglas-Peucker simplification.

    The sequence is treated as an open polyline: first and last points are
    always kept.
    """
    n = len(poly)
    if n <= 3:
        return list(poly)
    keep = [False] * n
    keep[0] = keep[n - 1] = True
    eps_sq = eps * eps

    stack: List[Tuple[int, int]] = [(0, n - 1)]
    while stack:
        a, b = stack.pop()
        ax, ay = poly[a]
        bx, by = poly[b]
        dx = bx - ax
        dy = by - ay
        len_sq = dx * dx + dy * dy
        max_dist = 0.0
        index = -1
        for i in range(a + 1, b):
            px, py = poly[i]
            t = 0.0
            if len_sq > 1e-9:
                t = ((px - ax) * dx + (py - ay) * dy) / len_sq
            t = max(0.0, min(1.0, t))
            ddx = px - (ax + dx * t)
            ddy = py - (ay + dy * t)
            dist = ddx * ddx + ddy * ddy
            if dist > max_dist:
                max_dist = dist
                index = i
        if max_dist > eps_sq and index != -1:
            keep[index] = True
            stack.append((index, b))
            stack.append((a, index))

    return [p for p, k in zip(poly, keep) if k]


def closest_point_on_segment(p: Point, a: Point, b: Point) -> Tuple[Point, float]:
    """Return the closest point on segment ab to p and its distance."""
    dx = b.x - a.x
    dy = b.y - a.y
    len_sq = dx * dx + dy * dy
    t = 0.0
    if len_sq > 1e-9:
        t = ((p.x - a.x) * dx + (p.y - a.y) * dy) / len_sq
    t = max(0.0, min(1.0, t))
    q = Point(a.x + dx * t, a.y + dy * t)
    return q, distance(p, q)


def rect_poly(cx: float, cy: float, w: float, h: float, rot: float) -> Polygon:
    """Four corners of a w x h rectangle centered at (cx, cy), rotated by rot radians."""
    hw = w / 2
    hh = h / 2
    rect = ShapelyPolygon([(cx - hw, cy - hh), (cx + hw, cy - hh), (cx + hw, cy + hh), (cx - hw, cy + hh)])
    rotated = affinity.rotate(rect, rot, origin=(cx, cy), use_radians=True)
    return [Point(x, y) for x, y in rotated.exterior.coords[:-1]]


def circle_poly(r: float, steps: int) -> Polygon:
    """Regular polygon approximating a circle of radius r around the origin."""
    return [
        Point(math.cos(i / steps * math.tau) * r, math.sin(i / steps * math.tau) * r)
        for i in range(steps)
    ]
