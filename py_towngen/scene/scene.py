"""
Scene aggregate: generation params, layered output, selection and UI state.

Buildings are the only entities edited after generation. All edits go
through Scene methods so selection stays consistent with the building list.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

import structlog

from ..core.geometry import Point, point_in_poly
from ..core.models import Block, Building, BuildingKind, Decor, Parcel, RoadLayer
from ..core.params import TownParams
from ..core.town import generate_town

logger = structlog.get_logger()

SCENE_VERSION = 2


def default_ui_state() -> Dict[str, Any]:
    return {"show_blocks": False, "show_parcels": False, "show_decor": True}


@dataclass
class Scene:
    """Unit of editing and serialization."""

    params: TownParams
    version: int = SCENE_VERSION
    roads: RoadLayer = field(default_factory=RoadLayer)
    blocks: List[Block] = field(default_factory=list)
    parcels: List[Parcel] = field(default_factory=list)
    buildings: List[Building] = field(default_factory=list)
    decor: Decor = field(default_factory=Decor)
    selection: Set[str] = field(default_factory=set)
    ui: Dict[str, Any] = field(default_factory=default_ui_state)

    def regenerate(self, viewport: Tuple[float, float], params: Optional[TownParams] = None) -> None:
        """
        Replace every layer with a fresh generation run.

        The scene is only touched once generation succeeds, so a failed run
        leaves params and layers as they were.
        """
        params = (params if params is not None else self.params).clamped()
        town = generate_town(params, viewport)
        self.params = params
        self.roads = town.roads
        self.blocks = town.blocks
        self.parcels = town.parcels
        self.buildings = town.buildings
        self.decor = town.decor
        ids = {b.id for b in self.buildings}
        self.selection &= ids

    def counts(self) -> Dict[str, int]:
        return {
            "roads": len(self.roads.polylines),
            "blocks": len(self.blocks),
            "parcels": len(self.parcels),
            "buildings": len(self.buildings),
        }

    def get_building(self, building_id: str) -> Building:
        for building in self.buildings:
            if building.id == building_id:
                return building
        raise KeyError(building_id)

    def update_building(
        self,
        building_id: str,
        fill: Optional[str] = None,
        kind: Optional[str] = None,
        levels: Optional[int] = None,
    ) -> Building:
        """
        Edit a building's color, kind or level count.

        Raises:
            KeyError: Unknown building id
            ValueError: Unknown kind or levels below 1
        """
        building = self.get_building(building_id)
        if kind is not None:
            try:
                new_kind = BuildingKind(kind)
            except ValueError:
                raise ValueError(f"Unknown building kind: {kind}") from None
        if levels is not None and int(levels) < 1:
            raise ValueError(f"Levels must be at least 1, got {levels}")

        if fill is not None:
            building.style.fill = fill
        if kind is not None:
            building.meta.kind = new_kind
        if levels is not None:
            building.meta.levels = int(levels)
        logger.info("Building updated", building_id=building_id, fill=fill, kind=kind, levels=levels)
        return building

    def delete_building(self, building_id: str) -> Building:
        building = self.get_building(building_id)
        self.buildings.remove(building)
        self.selection.discard(building_id)
        logger.info("Building deleted", building_id=building_id)
        return building

    def select(self, building_id: str, additive: bool = False) -> Set[str]:
        self.get_building(building_id)
        if not additive:
            self.selection.clear()
        self.selection.add(building_id)
        return self.selection

    def clear_selection(self) -> None:
        self.selection.clear()

    def building_at(self, x: float, y: float) -> Optional[Building]:
        """Topmost building under a world point (later buildings are drawn on top)."""
        p = Point(x, y)
        for building in reversed(self.buildings):
            if not building.bbox.contains(p):
                continue
            if point_in_poly(p, building.footprint):
                return building
        return None


def create_scene(params: Optional[TownParams] = None) -> Scene:
    """Empty scene for the given params (defaults when omitted)."""
    return Scene(params=(params or TownParams()).clamped())
