"""FastAPI main application."""

import time
from typing import Any, Dict, Optional, Tuple

import structlog
from fastapi import Body, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .. import __version__
from ..config import settings
from ..core.params import TownParams
from ..log_config import configure_logging
from ..scene import (
    SceneFormatError,
    create_scene,
    export_scene,
    import_scene,
    scene_to_geojson,
)
from .editor import get_stored, router as editor_router
from .store import StoredScene, store

configure_logging(settings.log_level, settings.log_format)

logger = structlog.get_logger()

app = FastAPI(
    title="Town Generator API",
    description="Deterministic procedural town generation",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(editor_router)


# Request/Response models
class TownGenerationRequest(BaseModel):
    """Request to generate a new town."""

    params: Optional[TownParams] = Field(None, description="Generation parameters (defaults when omitted)")
    viewport_width: Optional[int] = Field(
        None, ge=64, le=settings.max_viewport_size, description="Raster width for block extraction"
    )
    viewport_height: Optional[int] = Field(
        None, ge=64, le=settings.max_viewport_size, description="Raster height for block extraction"
    )


class TownSummary(BaseModel):
    """Summary information about a stored town."""

    town_id: str
    seed: str
    counts: Dict[str, int]
    generation_time_seconds: Optional[float] = None


def _viewport(request: TownGenerationRequest) -> Tuple[int, int]:
    return (
        request.viewport_width or settings.default_viewport_width,
        request.viewport_height or settings.default_viewport_height,
    )


def _summary(stored: StoredScene) -> TownSummary:
    return TownSummary(
        town_id=stored.town_id,
        seed=stored.scene.params.seed,
        counts=stored.scene.counts(),
        generation_time_seconds=stored.generation_time_seconds,
    )


# API endpoints
@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Town Generator API",
        "version": __version__,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "stored_towns": len(store)}


@app.post("/towns/generate", response_model=TownSummary)
def generate_town_endpoint(request: Optional[TownGenerationRequest] = None):
    """Generate a town and keep it in the scene store."""
    request = request or TownGenerationRequest()
    scene = create_scene(request.params)
    viewport = _viewport(request)
    logger.info("Town generation requested", seed=scene.params.seed, viewport=viewport)

    started = time.perf_counter()
    try:
        scene.regenerate(viewport)
    except Exception as e:
        logger.error("Town generation failed", seed=scene.params.seed, error=str(e))
        raise HTTPException(status_code=500, detail="Town generation failed")
    elapsed = round(time.perf_counter() - started, 3)

    stored = store.add(scene, generation_time_seconds=elapsed)
    logger.info("Town stored", town_id=stored.town_id, **scene.counts())
    return _summary(stored)


@app.post("/towns/import", response_model=TownSummary)
def import_town(payload: Dict[str, Any] = Body(...)):
    """Store a previously exported scene (any supported version)."""
    try:
        scene = import_scene(payload)
    except SceneFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))
    stored = store.add(scene)
    logger.info("Town imported", town_id=stored.town_id, seed=scene.params.seed)
    return _summary(stored)


@app.get("/towns/{town_id}")
def get_town(town_id: str):
    """Full scene export at the current version."""
    stored = get_stored(town_id)
    with stored.lock:
        return export_scene(stored.scene)


@app.get("/towns/{town_id}/geojson")
def get_town_geojson(town_id: str):
    stored = get_stored(town_id)
    with stored.lock:
        return scene_to_geojson(stored.scene)


@app.post("/towns/{town_id}/regenerate", response_model=TownSummary)
def regenerate_town(town_id: str, request: Optional[TownGenerationRequest] = None):
    """
    Regenerate a stored town in place, optionally with new params.

    Building edits made before regeneration are discarded.
    """
    request = request or TownGenerationRequest()
    stored = get_stored(town_id)
    viewport = _viewport(request)
    with stored.lock:
        started = time.perf_counter()
        try:
            stored.scene.regenerate(viewport, request.params)
        except Exception as e:
            logger.error("Town regeneration failed", town_id=town_id, error=str(e))
            raise HTTPException(status_code=500, detail="Town generation failed")
        stored.generation_time_seconds = round(time.perf_counter() - started, 3)
    logger.info("Town regenerated", town_id=town_id, **stored.scene.counts())
    return _summary(stored)


@app.delete("/towns/{town_id}")
def delete_town(town_id: str):
    try:
        store.remove(town_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Town not found")
    logger.info("Town deleted", town_id=town_id)
    return {"deleted": town_id}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
