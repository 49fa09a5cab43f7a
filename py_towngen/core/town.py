"""
Town generation pipeline.

Stages run synchronously in a fixed order on one RNG stream:
decor -> road graph -> polyline merge -> blocks -> parcels -> buildings.
The result is a pure function of (params, viewport).
"""

import time
from typing import Tuple

import structlog

from .blocks import extract_blocks
from .buildings import place_buildings
from .decor import generate_decor
from .models import RoadLayer, Town
from .params import TownParams
from .parcels import subdivide_blocks
from .polylines import merge_polylines
from .rng import make_rng
from .roads import generate_road_graph

logger = structlog.get_logger()


def generate_town(params: TownParams, viewport: Tuple[float, float]) -> Town:
    """
    Generate every layer of a town.

    Args:
        params: Town parameters, already clamped by the caller
        viewport: (width, height) of the raster used for block extraction

    Returns:
        Town with roads, blocks, parcels, buildings and decor
    """
    started = time.perf_counter()
    log = logger.bind(seed=params.seed)
    rng = make_rng(params.seed)

    decor = generate_decor(rng, params)
    graph = generate_road_graph(rng, params)
    polylines = merge_polylines(graph)
    blocks = extract_blocks(rng, params, polylines, viewport)
    parcels = subdivide_blocks(rng, params, blocks)
    buildings = place_buildings(rng, params, parcels, polylines)

    log.info(
        "Town generated",
        polylines=len(polylines),
        blocks=len(blocks),
        parcels=len(parcels),
        buildings=len(buildings),
        rng_calls=rng.call_count,
        seconds=round(time.perf_counter() - started, 3),
    )
    return Town(
        roads=RoadLayer(graph=graph, polylines=polylines),
        blocks=blocks,
        parcels=parcels,
        buildings=buildings,
        decor=decor,
    )
