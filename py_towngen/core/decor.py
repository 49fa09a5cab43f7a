"""
Decor around the town: farm fields, a pond and scattered trees.

Decor depends only on the RNG stream and the town radius; it is drawn first so
the road graph always sees the same stream position for a given seed.
"""

import math

import structlog

from .geometry import lerp, rect_poly
from .models import Decor, FarmField, TownBoundary, Tree, WaterBody
from .params import TownParams
from .rng import SeededRNG

logger = structlog.get_logger()


def _field_tone(rng: SeededRNG) -> str:
    if rng.random() < 0.45:
        return "light"
    return "mid" if rng.random() < 0.6 else "dark"


def generate_decor(rng: SeededRNG, params: TownParams) -> Decor:
    """
    Scatter fields, one water body and trees outside the town core.

    Args:
        rng: Main pipeline stream
        params: Town parameters (only town_radius is used)

    Returns:
        Decor layer
    """
    R = params.town_radius

    fields = []
    field_count = 8 + int(rng.random() * 7)
    for i in range(field_count):
        ang = rng.random() * math.tau
        dist = lerp(R * 1.2, R * 2.0, rng.random())
        cx = math.cos(ang) * dist
        cy = math.sin(ang) * dist
        w = lerp(R * 0.6, R * 1.2, rng.random())
        h = lerp(R * 0.4, R * 1.0, rng.random())
        rot = (rng.random() - 0.5) * 0.8
        fields.append(FarmField(id=f"field_{i}", polygon=rect_poly(cx, cy, w, h, rot), tone=_field_tone(rng)))

    pond_ang = rng.random() * math.tau
    pond_dist = lerp(R * 1.25, R * 1.7, rng.random())
    water = WaterBody(
        cx=math.cos(pond_ang) * pond_dist,
        cy=math.sin(pond_ang) * pond_dist,
        rx=lerp(R * 0.10, R * 0.18, rng.random()),
        ry=lerp(R * 0.08, R * 0.15, rng.random()),
        rot=(rng.random() - 0.5) * 0.6,
    )

    trees = []
    tree_count = 420 + int(rng.random() * 280)
    for _ in range(tree_count):
        a = rng.random() * math.tau
        d = lerp(R * 0.5, R * 2.3, rng.random() ** 0.6)
        x = math.cos(a) * d + (rng.random() - 0.5) * 40
        y = math.sin(a) * d + (rng.random() - 0.5) * 40
        if math.hypot(x, y) < R * 0.25:
            continue
        trees.append(Tree(x=x, y=y, s=lerp(1, 2.4, rng.random())))

    logger.debug("Decor generated", fields=len(fields), trees=len(trees))
    return Decor(fields=fields, trees=trees, water=water, town_boundary=TownBoundary(0.0, 0.0, R))
