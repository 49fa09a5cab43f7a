"""
Building editing endpoints for post-generation changes.

Edits go through the Scene methods while holding the stored scene's lock,
so they never interleave with a regeneration of the same town.
"""

from typing import Any, Dict, List, Optional

import structlog
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from ..scene.serialization import building_to_dict
from .store import StoredScene, store

logger = structlog.get_logger()

router = APIRouter(prefix="/towns/{town_id}/buildings", tags=["Building Editor"])


class BuildingEdit(BaseModel):
    """Fields to change on a building; omitted fields are left as they are."""

    fill: Optional[str] = Field(default=None, description="Fill color (hex)")
    kind: Optional[str] = Field(default=None, description="home, shop, civic or landmark")
    levels: Optional[int] = Field(default=None, description="Number of levels (at least 1)")


class SelectionRequest(BaseModel):
    """Select a building, or clear the selection when building_id is omitted."""

    building_id: Optional[str] = Field(default=None, description="Building to select")
    additive: bool = Field(default=False, description="Add to the current selection instead of replacing it")


class SelectionResponse(BaseModel):
    selection: List[str]


def get_stored(town_id: str) -> StoredScene:
    try:
        return store.get(town_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Town not found")


@router.patch("/{building_id}")
def edit_building(town_id: str, building_id: str, edit: BuildingEdit) -> Dict[str, Any]:
    """Change a building's color, kind or level count."""
    stored = get_stored(town_id)
    with stored.lock:
        try:
            building = stored.scene.update_building(
                building_id, fill=edit.fill, kind=edit.kind, levels=edit.levels
            )
        except KeyError:
            raise HTTPException(status_code=404, detail="Building not found")
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return building_to_dict(building)


@router.delete("/{building_id}")
def delete_building(town_id: str, building_id: str) -> Dict[str, Any]:
    stored = get_stored(town_id)
    with stored.lock:
        try:
            stored.scene.delete_building(building_id)
        except KeyError:
            raise HTTPException(status_code=404, detail="Building not found")
        remaining = len(stored.scene.buildings)
    return {"deleted": building_id, "buildings": remaining}


@router.post("/select", response_model=SelectionResponse)
def select_building(town_id: str, request: SelectionRequest) -> SelectionResponse:
    stored = get_stored(town_id)
    with stored.lock:
        if request.building_id is None:
            stored.scene.clear_selection()
        else:
            try:
                stored.scene.select(request.building_id, additive=request.additive)
            except KeyError:
                raise HTTPException(status_code=404, detail="Building not found")
        selection = sorted(stored.scene.selection)
    logger.debug("Selection changed", town_id=town_id, selection=selection)
    return SelectionResponse(selection=selection)


@router.get("/at")
def building_at(town_id: str, x: float, y: float) -> Dict[str, Any]:
    """Topmost building under a town-space point, or null."""
    stored = get_stored(town_id)
    with stored.lock:
        building = stored.scene.building_at(x, y)
        return {"building": building_to_dict(building) if building else None}
