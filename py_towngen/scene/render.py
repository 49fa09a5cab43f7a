"""
PNG rendering of a scene with matplotlib.

Figures are closed after every render, so long-running servers do not
accumulate them. Scripts pick the backend; see generate_sample_towns.py.
"""

import math
from pathlib import Path
from typing import Union

import matplotlib.pyplot as plt
import structlog
from matplotlib.patches import Circle, Ellipse
from matplotlib.patches import Polygon as PolygonPatch

from .scene import Scene

logger = structlog.get_logger()

BACKGROUND = "#e9e4d4"
ROAD_COLOR = "#c9bfa6"
ROAD_EDGE_COLOR = "#8d8470"
FIELD_TONES = {"light": "#d9d3a3", "mid": "#c8c28c", "dark": "#b2ac78"}
WATER_COLOR = "#9cc0d8"
TREE_COLOR = "#6f8f5a"
SELECTION_COLOR = "#e0a23a"


def render_scene_png(scene: Scene, path: Union[str, Path], size_px: int = 1024) -> Path:
    """
    Draw a scene and save it as a square PNG.

    Args:
        scene: Scene to draw
        path: Output file
        size_px: Width and height of the image in pixels

    Returns:
        Path the image was written to
    """
    path = Path(path)
    radius = scene.params.town_radius
    extent = radius * 2.1

    dpi = 100
    fig, ax = plt.subplots(figsize=(size_px / dpi, size_px / dpi), dpi=dpi)
    try:
        fig.patch.set_facecolor(BACKGROUND)
        # Scale road widths from world units to points
        _draw_scene(ax, scene, extent, (size_px / dpi * 72) / (extent * 2))
        fig.subplots_adjust(left=0, right=1, top=1, bottom=0)

        path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(path, dpi=dpi, facecolor=fig.get_facecolor())
    finally:
        plt.close(fig)

    logger.info("Scene rendered", path=str(path), size_px=size_px)
    return path


def _draw_scene(ax, scene: Scene, extent: float, points_per_unit: float) -> None:
    ax.set_facecolor(BACKGROUND)

    decor = scene.decor
    if scene.ui.get("show_decor", True):
        for f in decor.fields:
            xy = [(p.x, p.y) for p in f.polygon]
            ax.add_patch(PolygonPatch(xy, closed=True, facecolor=FIELD_TONES.get(f.tone, FIELD_TONES["mid"]),
                                      edgecolor="none", zorder=1))
        if decor.water is not None:
            w = decor.water
            ax.add_patch(Ellipse((w.cx, w.cy), w.rx * 2, w.ry * 2, angle=math.degrees(w.rot),
                                 facecolor=WATER_COLOR, edgecolor="none", zorder=1))
        if decor.trees:
            ax.scatter([t.x for t in decor.trees], [t.y for t in decor.trees],
                       s=[t.s * 4 for t in decor.trees], c=TREE_COLOR, linewidths=0, zorder=2)
    if decor.town_boundary is not None:
        b = decor.town_boundary
        ax.add_patch(Circle((b.cx, b.cy), b.r, fill=False, edgecolor=ROAD_EDGE_COLOR,
                            linestyle="--", linewidth=0.8, zorder=2))

    for polyline in scene.roads.polylines:
        if len(polyline.points) < 2:
            continue
        xs = [p.x for p in polyline.points]
        ys = [p.y for p in polyline.points]
        lw = max(0.5, polyline.width * points_per_unit)
        ax.plot(xs, ys, color=ROAD_EDGE_COLOR, linewidth=lw + 1, solid_capstyle="round", zorder=3)
        ax.plot(xs, ys, color=ROAD_COLOR, linewidth=lw, solid_capstyle="round", zorder=4)

    if scene.ui.get("show_blocks"):
        for block in scene.blocks:
            ax.add_patch(PolygonPatch([(p.x, p.y) for p in block.polygon], closed=True, fill=False,
                                      edgecolor="#3a6ea5", linewidth=0.6, zorder=5))
    if scene.ui.get("show_parcels"):
        for parcel in scene.parcels:
            ax.add_patch(PolygonPatch([(p.x, p.y) for p in parcel.polygon], closed=True, fill=False,
                                      edgecolor="#a53a6e", linewidth=0.4, zorder=5))

    for building in scene.buildings:
        selected = building.id in scene.selection
        ax.add_patch(PolygonPatch(
            [(p.x, p.y) for p in building.footprint],
            closed=True,
            facecolor=building.style.fill,
            edgecolor=SELECTION_COLOR if selected else "#2b211c",
            linewidth=1.5 if selected else 0.3,
            zorder=7 if selected else 6,
        ))

    ax.set_xlim(-extent, extent)
    # Screen coordinates: y grows downwards
    ax.set_ylim(extent, -extent)
    ax.set_aspect("equal")
    ax.set_axis_off()
