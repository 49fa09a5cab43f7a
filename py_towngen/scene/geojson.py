"""
GeoJSON export of a scene.

Coordinates are town-space units with the town center at the origin and y
growing downwards, exactly as generated.
"""

from typing import Any, Dict, List, Sequence

import structlog
from shapely.geometry import LineString, Polygon, mapping

from ..core.geometry import Point
from .scene import Scene

logger = structlog.get_logger()


def _polygon(points: Sequence[Point]) -> Polygon:
    # shapely closes the ring itself
    return Polygon([(p.x, p.y) for p in points])


def _feature(geometry, properties: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": "Feature", "geometry": mapping(geometry), "properties": properties}


def scene_to_geojson(scene: Scene) -> Dict[str, Any]:
    """
    Build a FeatureCollection of roads, blocks, parcels and buildings.

    Every feature has a ``layer`` property naming the layer it came from.
    """
    features: List[Dict[str, Any]] = []

    for polyline in scene.roads.polylines:
        if len(polyline.points) < 2:
            continue
        features.append(
            _feature(
                LineString([(p.x, p.y) for p in polyline.points]),
                {"layer": "road", "kind": polyline.kind.value, "width": polyline.width},
            )
        )

    for block in scene.blocks:
        features.append(
            _feature(_polygon(block.polygon), {"layer": "block", "id": block.id, "area": block.area})
        )

    for parcel in scene.parcels:
        features.append(
            _feature(
                _polygon(parcel.polygon),
                {
                    "layer": "parcel",
                    "id": parcel.id,
                    "block_id": parcel.block_id,
                    "district": parcel.district.value,
                },
            )
        )

    for building in scene.buildings:
        features.append(
            _feature(
                _polygon(building.footprint),
                {
                    "layer": "building",
                    "id": building.id,
                    "kind": building.meta.kind.value,
                    "levels": building.meta.levels,
                    "district": building.meta.district.value if building.meta.district else None,
                    "fill": building.style.fill,
                    "selected": building.id in scene.selection,
                },
            )
        )

    logger.debug("GeoJSON built", features=len(features))
    return {
        "type": "FeatureCollection",
        "properties": {"seed": scene.params.seed, "version": scene.version},
        "features": features,
    }
