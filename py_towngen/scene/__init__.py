"""
Scene model, persistence and export.
"""

from .scene import SCENE_VERSION, Scene, create_scene
from .serialization import (
    SceneFormatError,
    export_scene,
    export_scene_json,
    import_scene,
    import_scene_json,
)
from .geojson import scene_to_geojson
from .render import render_scene_png

__all__ = ['SCENE_VERSION', 'Scene', 'create_scene', 'SceneFormatError',
           'export_scene', 'export_scene_json', 'import_scene', 'import_scene_json',
           'scene_to_geojson', 'render_scene_png']
