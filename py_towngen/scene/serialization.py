"""
Versioned JSON persistence for scenes.

Payloads older than SCENE_VERSION are upgraded through MIGRATIONS, a chain of
pure functions each lifting a payload by exactly one version.
"""

import json
from typing import Any, Callable, Dict, List, Optional

import structlog
from pydantic import BaseModel, Field, ValidationError, ValidationInfo, field_validator

from ..core.geometry import Bounds, Point, poly_bounds
from ..core.models import (
    Block,
    Building,
    BuildingKind,
    BuildingMeta,
    BuildingStyle,
    Decor,
    District,
    FarmField,
    Parcel,
    Polyline,
    RoadEdge,
    RoadGraph,
    RoadKind,
    RoadLayer,
    RoadNode,
    TownBoundary,
    Tree,
    WaterBody,
)
from ..core.params import TownParams
from ..core.polylines import merge_polylines
from .scene import SCENE_VERSION, Scene, default_ui_state

logger = structlog.get_logger()

DEFAULT_FILL = "#6c4a3a"


class SceneFormatError(ValueError):
    """Raised when a payload cannot be read as a scene."""


# Export


def _points(poly) -> List[Dict[str, float]]:
    return [{"x": p.x, "y": p.y} for p in poly]


def _bounds(b: Bounds) -> Dict[str, float]:
    return {"min_x": b.min_x, "min_y": b.min_y, "max_x": b.max_x, "max_y": b.max_y}


def _graph(graph: Optional[RoadGraph]) -> Optional[Dict[str, Any]]:
    if graph is None:
        return None
    return {
        "nodes": [{"id": n.id, "x": n.x, "y": n.y} for n in graph.nodes],
        "edges": [
            {"id": e.id, "node_a": e.node_a, "node_b": e.node_b, "kind": e.kind.value, "width": e.width}
            for e in graph.edges
        ],
    }


def _decor(decor: Decor) -> Dict[str, Any]:
    water = decor.water
    boundary = decor.town_boundary
    return {
        "fields": [{"id": f.id, "polygon": _points(f.polygon), "tone": f.tone} for f in decor.fields],
        "trees": [{"x": t.x, "y": t.y, "s": t.s} for t in decor.trees],
        "water": None if water is None else {
            "cx": water.cx, "cy": water.cy, "rx": water.rx, "ry": water.ry, "rot": water.rot
        },
        "town_boundary": None if boundary is None else {"cx": boundary.cx, "cy": boundary.cy, "r": boundary.r},
    }


def building_to_dict(b: Building) -> Dict[str, Any]:
    return {
        "id": b.id,
        "footprint": _points(b.footprint),
        "bbox": _bounds(b.bbox),
        "style": {"fill": b.style.fill},
        "meta": {
            "kind": b.meta.kind.value,
            "levels": b.meta.levels,
            "district": b.meta.district.value if b.meta.district else None,
        },
    }


def export_scene(scene: Scene) -> Dict[str, Any]:
    """Scene as a JSON-ready dictionary at the current version."""
    return {
        "version": SCENE_VERSION,
        "params": scene.params.model_dump(),
        "roads": {
            "graph": _graph(scene.roads.graph),
            "polylines": [
                {"kind": p.kind.value, "width": p.width, "points": _points(p.points)}
                for p in scene.roads.polylines
            ],
        },
        "blocks": [
            {"id": b.id, "polygon": _points(b.polygon), "area": b.area, "bbox": _bounds(b.bbox)}
            for b in scene.blocks
        ],
        "parcels": [
            {
                "id": p.id,
                "polygon": _points(p.polygon),
                "block_id": p.block_id,
                "bbox": _bounds(p.bbox),
                "district": p.district.value,
            }
            for p in scene.parcels
        ],
        "buildings": [building_to_dict(b) for b in scene.buildings],
        "decor": _decor(scene.decor),
        "selection": sorted(scene.selection),
        "ui": dict(scene.ui),
    }


def export_scene_json(scene: Scene, indent: Optional[int] = 2) -> str:
    return json.dumps(export_scene(scene), indent=indent)


# Migrations


def upgrade_v1_to_v2(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Lift a version 1 payload.

    Version 1 stored flat road polylines, buildings with ``poly``/``color`` and
    a single selected building id; it had no graph, blocks or parcels.
    """
    roads = raw.get("roads") or []
    if isinstance(roads, dict):
        roads = roads.get("polylines") or []

    buildings = []
    for b in raw.get("buildings") or []:
        style = b.get("style") or {}
        buildings.append({
            "id": b["id"],
            "footprint": b.get("poly") or b.get("footprint"),
            "bbox": b.get("bbox"),
            "style": {"fill": b.get("color") or style.get("fill") or DEFAULT_FILL},
            "meta": b.get("meta") or {"kind": "home", "levels": 1},
        })

    decor = dict(raw.get("decor") or {})
    if "townBoundary" in decor:
        decor["town_boundary"] = decor.pop("townBoundary")

    selection = raw.get("selection") or {}
    selected = selection.get("buildingId") if isinstance(selection, dict) else None

    return {
        "version": 2,
        "params": raw.get("params") or {},
        "roads": {
            "graph": None,
            "polylines": [
                {"kind": r.get("kind") or "legacy", "width": r.get("width") or 6, "points": r["points"]}
                for r in roads
            ],
        },
        "blocks": [],
        "parcels": [],
        "buildings": buildings,
        "decor": decor,
        "selection": [selected] if selected else [],
        "ui": raw.get("ui") or default_ui_state(),
    }


MIGRATIONS: Dict[int, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    1: upgrade_v1_to_v2,
}


def migrate(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Apply upgrades until the payload reaches SCENE_VERSION."""
    version = raw.get("version", 1)
    if not isinstance(version, int) or isinstance(version, bool) or version < 1:
        raise SceneFormatError(f"Invalid scene version: {version!r}")
    if version > SCENE_VERSION:
        raise SceneFormatError(f"Unsupported scene version {version} (newest supported is {SCENE_VERSION})")
    while version < SCENE_VERSION:
        upgrade = MIGRATIONS.get(version)
        if upgrade is None:
            raise SceneFormatError(f"No migration from scene version {version}")
        raw = upgrade(raw)
        version += 1
        logger.info("Scene payload migrated", version=version)
    return raw


# Import
#
# A migrated payload is validated against the models below before any scene
# object is built from it.


class PointPayload(BaseModel):
    x: float
    y: float


class BoundsPayload(BaseModel):
    min_x: float
    min_y: float
    max_x: float
    max_y: float


def _road_kind(value: Any) -> RoadKind:
    try:
        return RoadKind(value)
    except ValueError:
        return RoadKind.LEGACY


class NodePayload(BaseModel):
    id: str
    x: float
    y: float


class EdgePayload(BaseModel):
    id: str
    node_a: str
    node_b: str
    kind: RoadKind
    width: float

    @field_validator("kind", mode="before")
    @classmethod
    def legacy_for_unknown_kind(cls, v: Any) -> RoadKind:
        return _road_kind(v)


class GraphPayload(BaseModel):
    nodes: List[NodePayload] = Field(default_factory=list)
    edges: List[EdgePayload] = Field(default_factory=list)


class PolylinePayload(BaseModel):
    kind: RoadKind = RoadKind.LEGACY
    width: float
    points: List[PointPayload]

    @field_validator("kind", mode="before")
    @classmethod
    def legacy_for_unknown_kind(cls, v: Any) -> RoadKind:
        return _road_kind(v)


class RoadsPayload(BaseModel):
    graph: Optional[GraphPayload] = None
    polylines: List[PolylinePayload] = Field(default_factory=list)


class BlockPayload(BaseModel):
    id: str
    polygon: List[PointPayload]
    area: float
    bbox: Optional[BoundsPayload] = None


class ParcelPayload(BaseModel):
    id: str
    polygon: List[PointPayload]
    block_id: str
    bbox: Optional[BoundsPayload] = None
    district: District


class StylePayload(BaseModel):
    fill: Optional[str] = None


class MetaPayload(BaseModel):
    kind: BuildingKind = BuildingKind.HOME
    levels: int = 1
    district: Optional[District] = None

    @field_validator("levels")
    @classmethod
    def at_least_one_level(cls, v: int) -> int:
        return max(1, v)


class BuildingPayload(BaseModel):
    id: str
    footprint: List[PointPayload]
    bbox: Optional[BoundsPayload] = None
    style: Optional[StylePayload] = None
    meta: Optional[MetaPayload] = None


class FieldPayload(BaseModel):
    id: str
    polygon: List[PointPayload]
    tone: str = "mid"


class TreePayload(BaseModel):
    x: float
    y: float
    s: float


class WaterPayload(BaseModel):
    cx: float
    cy: float
    rx: float
    ry: float
    rot: float


class BoundaryPayload(BaseModel):
    cx: float
    cy: float
    r: float


class DecorPayload(BaseModel):
    fields: List[FieldPayload] = Field(default_factory=list)
    trees: List[TreePayload] = Field(default_factory=list)
    water: Optional[WaterPayload] = None
    town_boundary: Optional[BoundaryPayload] = None


class ScenePayload(BaseModel):
    """A scene payload at the current version."""

    version: int = SCENE_VERSION
    params: TownParams = Field(default_factory=TownParams)
    roads: RoadsPayload = Field(default_factory=RoadsPayload)
    blocks: List[BlockPayload] = Field(default_factory=list)
    parcels: List[ParcelPayload] = Field(default_factory=list)
    buildings: List[BuildingPayload] = Field(default_factory=list)
    decor: DecorPayload = Field(default_factory=DecorPayload)
    selection: List[str] = Field(default_factory=list)
    ui: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("params", "roads", "blocks", "parcels", "buildings", "decor", "selection", "ui",
                     mode="before")
    @classmethod
    def null_as_default(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)
        return v


def _to_points(raw: List[PointPayload]) -> List[Point]:
    return [Point(p.x, p.y) for p in raw]


def _read_bounds(raw: Optional[BoundsPayload], poly: List[Point]) -> Bounds:
    if raw is None:
        return poly_bounds(poly)
    return Bounds(raw.min_x, raw.min_y, raw.max_x, raw.max_y)


def _read_graph(raw: Optional[GraphPayload]) -> Optional[RoadGraph]:
    if raw is None:
        return None
    return RoadGraph(
        nodes=[RoadNode(id=n.id, x=n.x, y=n.y) for n in raw.nodes],
        edges=[RoadEdge(id=e.id, node_a=e.node_a, node_b=e.node_b, kind=e.kind, width=e.width) for e in raw.edges],
    )


def _read_building(raw: BuildingPayload) -> Building:
    footprint = _to_points(raw.footprint)
    meta = raw.meta or MetaPayload()
    fill = raw.style.fill if raw.style else None
    return Building(
        id=raw.id,
        footprint=footprint,
        bbox=_read_bounds(raw.bbox, footprint),
        style=BuildingStyle(fill=fill or DEFAULT_FILL),
        meta=BuildingMeta(kind=meta.kind, levels=meta.levels, district=meta.district),
    )


def _read_scene(payload: ScenePayload) -> Scene:
    graph = _read_graph(payload.roads.graph)
    polylines = [
        Polyline(kind=p.kind, width=p.width, points=_to_points(p.points)) for p in payload.roads.polylines
    ]
    if graph is not None and not polylines:
        polylines = merge_polylines(graph)

    blocks = []
    for b in payload.blocks:
        polygon = _to_points(b.polygon)
        blocks.append(Block(id=b.id, polygon=polygon, area=b.area, bbox=_read_bounds(b.bbox, polygon)))

    parcels = []
    for p in payload.parcels:
        polygon = _to_points(p.polygon)
        parcels.append(
            Parcel(
                id=p.id,
                polygon=polygon,
                block_id=p.block_id,
                bbox=_read_bounds(p.bbox, polygon),
                district=p.district,
            )
        )

    buildings = [_read_building(b) for b in payload.buildings]
    known = {b.id for b in buildings}
    decor = payload.decor

    return Scene(
        params=payload.params,
        version=SCENE_VERSION,
        roads=RoadLayer(graph=graph, polylines=polylines),
        blocks=blocks,
        parcels=parcels,
        buildings=buildings,
        decor=Decor(
            fields=[FarmField(id=f.id, polygon=_to_points(f.polygon), tone=f.tone) for f in decor.fields],
            trees=[Tree(x=t.x, y=t.y, s=t.s) for t in decor.trees],
            water=WaterBody(**decor.water.model_dump()) if decor.water else None,
            town_boundary=TownBoundary(**decor.town_boundary.model_dump()) if decor.town_boundary else None,
        ),
        selection={s for s in payload.selection if s in known},
        ui={**default_ui_state(), **payload.ui},
    )


def import_scene(raw: Any) -> Scene:
    """
    Build a Scene from a decoded payload of any supported version.

    Raises:
        SceneFormatError: Payload is malformed or from a newer version
    """
    if not isinstance(raw, dict):
        raise SceneFormatError("Scene payload must be a JSON object")
    try:
        payload = ScenePayload.model_validate(migrate(raw))
    except SceneFormatError:
        raise
    except ValidationError as e:
        raise SceneFormatError(f"Malformed scene payload: {e.error_count()} validation error(s): {e}") from e
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        # Raised by migrations reading old payloads
        raise SceneFormatError(f"Malformed scene payload: {e}") from e
    return _read_scene(payload)


def import_scene_json(text: str) -> Scene:
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise SceneFormatError(f"Invalid JSON: {e}") from e
    return import_scene(raw)
