"""Data structures produced by the generation pipeline."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from .geometry import Bounds, Point, Polygon


class RoadKind(str, Enum):
    """Road classes; legacy marks polylines imported from old scenes."""

    MAIN = "main"
    RING = "ring"
    MINOR = "minor"
    LEGACY = "legacy"


class District(str, Enum):
    """Zone by distance from the town center."""

    CORE = "core"
    INNER = "inner"
    OUTER = "outer"


class BuildingKind(str, Enum):
    HOME = "home"
    SHOP = "shop"
    CIVIC = "civic"
    LANDMARK = "landmark"


@dataclass(frozen=True)
class RoadNode:
    id: str
    x: float
    y: float

    @property
    def point(self) -> Point:
        return Point(self.x, self.y)


@dataclass(frozen=True)
class RoadEdge:
    id: str
    node_a: str
    node_b: str
    kind: RoadKind
    width: float


@dataclass
class RoadGraph:
    """Road network; node coordinates are world units around the town center."""

    nodes: List[RoadNode] = field(default_factory=list)
    edges: List[RoadEdge] = field(default_factory=list)

    def node_map(self) -> Dict[str, RoadNode]:
        return {n.id: n for n in self.nodes}


@dataclass(frozen=True)
class Polyline:
    """A merged run of road edges sharing kind and width."""

    kind: RoadKind
    width: float
    points: List[Point]

    @property
    def closed(self) -> bool:
        return len(self.points) > 2 and self.points[0] == self.points[-1]


@dataclass
class RoadLayer:
    graph: Optional[RoadGraph] = None
    polylines: List[Polyline] = field(default_factory=list)


@dataclass(frozen=True)
class Block:
    id: str
    polygon: Polygon
    area: float
    bbox: Bounds


@dataclass(frozen=True)
class Parcel:
    id: str
    polygon: Polygon
    block_id: str
    bbox: Bounds
    district: District


@dataclass
class BuildingStyle:
    fill: str


@dataclass
class BuildingMeta:
    kind: BuildingKind
    levels: int
    district: Optional[District] = None


@dataclass
class Building:
    """The one entity that stays editable after generation."""

    id: str
    footprint: Polygon
    bbox: Bounds
    style: BuildingStyle
    meta: BuildingMeta


@dataclass(frozen=True)
class FarmField:
    id: str
    polygon: Polygon
    tone: str  # "light", "mid" or "dark"


@dataclass(frozen=True)
class WaterBody:
    cx: float
    cy: float
    rx: float
    ry: float
    rot: float


@dataclass(frozen=True)
class Tree:
    x: float
    y: float
    s: float


@dataclass(frozen=True)
class TownBoundary:
    cx: float
    cy: float
    r: float


@dataclass
class Decor:
    fields: List[FarmField] = field(default_factory=list)
    trees: List[Tree] = field(default_factory=list)
    water: Optional[WaterBody] = None
    town_boundary: Optional[TownBoundary] = None


@dataclass
class Town:
    """Full layered output of one generation run."""

    roads: RoadLayer
    blocks: List[Block]
    parcels: List[Parcel]
    buildings: List[Building]
    decor: Decor
