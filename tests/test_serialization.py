"""Tests for scene export, import and version migration."""

import copy
import json

import pytest

from py_towngen.core.models import BuildingKind, RoadKind
from py_towngen.core.polylines import merge_polylines
from py_towngen.scene import (
    SCENE_VERSION,
    Scene,
    SceneFormatError,
    create_scene,
    export_scene,
    export_scene_json,
    import_scene,
    import_scene_json,
)
from py_towngen.scene.serialization import DEFAULT_FILL, migrate


def v1_payload():
    return {
        "version": 1,
        "params": {"seed": "old-town", "townRadius": 300},
        "roads": [
            {"kind": "main", "width": 8, "points": [{"x": 0, "y": 0}, {"x": 100, "y": 0}]},
            {"points": [{"x": 0, "y": 0}, {"x": 0, "y": 80}]},
        ],
        "buildings": [
            {
                "id": "b_old1",
                "poly": [{"x": 10, "y": 10}, {"x": 20, "y": 10}, {"x": 20, "y": 20}, {"x": 10, "y": 20}],
                "color": "#aa0000",
            },
            {
                "id": "b_old2",
                "poly": [{"x": 40, "y": 10}, {"x": 50, "y": 10}, {"x": 50, "y": 30}, {"x": 40, "y": 30}],
            },
        ],
        "decor": {"townBoundary": {"cx": 0, "cy": 0, "r": 300}, "trees": [{"x": 5, "y": 6, "s": 2}]},
        "selection": {"buildingId": "b_old2"},
    }


@pytest.fixture
def scene(default_town, default_params):
    town = copy.deepcopy(default_town)
    scene = Scene(
        params=default_params,
        roads=town.roads,
        blocks=town.blocks,
        parcels=town.parcels,
        buildings=town.buildings,
        decor=town.decor,
    )
    scene.selection = {town.buildings[0].id}
    scene.ui["show_parcels"] = True
    return scene


class TestExport:
    """Test the exported payload."""

    def test_layout(self, scene):
        data = export_scene(scene)
        assert data["version"] == SCENE_VERSION
        assert data["params"]["seed"] == scene.params.seed
        assert len(data["roads"]["graph"]["edges"]) == len(scene.roads.graph.edges)
        assert len(data["roads"]["polylines"]) == len(scene.roads.polylines)
        assert len(data["buildings"]) == len(scene.buildings)
        assert data["selection"] == [scene.buildings[0].id]
        assert data["ui"]["show_parcels"] is True

    def test_json_round_trip(self, scene):
        text = export_scene_json(scene)
        restored = import_scene_json(text)
        assert export_scene(restored) == json.loads(text)
        assert restored.params == scene.params
        assert restored.selection == scene.selection

    def test_building_fields(self, scene):
        building = export_scene(scene)["buildings"][0]
        assert set(building) == {"id", "footprint", "bbox", "style", "meta"}
        assert set(building["meta"]) == {"kind", "levels", "district"}


class TestImport:
    """Test reading current-version payloads."""

    def test_polylines_derived_from_graph(self, scene):
        data = export_scene(scene)
        data["roads"]["polylines"] = []
        restored = import_scene(data)
        assert restored.roads.polylines == merge_polylines(restored.roads.graph)
        assert restored.roads.polylines

    def test_missing_bbox_recomputed(self, scene):
        data = export_scene(scene)
        del data["buildings"][0]["bbox"]
        restored = import_scene(data)
        assert restored.buildings[0].bbox == scene.buildings[0].bbox

    def test_unknown_selection_dropped(self, scene):
        data = export_scene(scene)
        data["selection"].append("b_missing")
        assert "b_missing" not in import_scene(data).selection

    def test_unknown_road_kind_becomes_legacy(self, scene):
        data = export_scene(scene)
        data["roads"]["polylines"][0]["kind"] = "highway"
        assert import_scene(data).roads.polylines[0].kind == RoadKind.LEGACY

    def test_null_layers_read_as_empty(self, scene):
        data = export_scene(scene)
        data.update(blocks=None, parcels=None, selection=None, ui=None, decor=None)
        restored = import_scene(data)
        assert restored.blocks == []
        assert restored.parcels == []
        assert restored.decor.trees == []
        assert restored.ui == export_scene(create_scene())["ui"]

    def test_levels_raised_to_one(self, scene):
        data = export_scene(scene)
        data["buildings"][0]["meta"]["levels"] = 0
        assert import_scene(data).buildings[0].meta.levels == 1

    def test_camel_case_params(self):
        data = migrate(v1_payload())
        data["params"] = {"seed": "abc", "mainRoads": 3, "bMax": 30}
        scene = import_scene(data)
        assert scene.params.main_roads == 3
        assert scene.params.b_max == 30


class TestMigration:
    """Test upgrading version 1 payloads."""

    def test_upgrade(self):
        scene = import_scene(v1_payload())
        assert scene.version == SCENE_VERSION
        assert scene.params.seed == "old-town"
        assert scene.params.town_radius == 300
        assert scene.roads.graph is None
        assert [p.kind for p in scene.roads.polylines] == [RoadKind.MAIN, RoadKind.LEGACY]
        assert scene.roads.polylines[1].width == 6
        assert scene.blocks == []
        assert scene.parcels == []
        assert scene.decor.town_boundary.r == 300
        assert len(scene.decor.trees) == 1

    def test_buildings_upgraded(self):
        scene = import_scene(v1_payload())
        first, second = scene.buildings
        assert first.style.fill == "#aa0000"
        assert second.style.fill == DEFAULT_FILL
        assert first.meta.kind == BuildingKind.HOME
        assert first.meta.levels == 1
        assert first.bbox == (10, 10, 20, 20)

    def test_selection_upgraded(self):
        assert import_scene(v1_payload()).selection == {"b_old2"}

    def test_missing_version_treated_as_v1(self):
        payload = v1_payload()
        del payload["version"]
        assert import_scene(payload).params.seed == "old-town"

    def test_migrated_scene_exports_current_version(self):
        data = export_scene(import_scene(v1_payload()))
        assert data["version"] == SCENE_VERSION
        assert data["roads"]["graph"] is None
        assert data["selection"] == ["b_old2"]


class TestRejectedPayloads:
    """Test payloads that cannot be read."""

    def test_newer_version(self):
        payload = {"version": SCENE_VERSION + 1}
        with pytest.raises(SceneFormatError, match="Unsupported"):
            import_scene(payload)

    @pytest.mark.parametrize("version", [0, -3, "2", True, 1.5])
    def test_invalid_version(self, version):
        with pytest.raises(SceneFormatError):
            import_scene({"version": version})

    def test_not_an_object(self):
        with pytest.raises(SceneFormatError):
            import_scene([1, 2, 3])

    def test_invalid_json(self):
        with pytest.raises(SceneFormatError):
            import_scene_json("{not json")

    def test_malformed_building(self):
        payload = v1_payload()
        del payload["buildings"][0]["id"]
        with pytest.raises(SceneFormatError, match="Malformed"):
            import_scene(payload)

    def test_bad_district(self, scene):
        data = export_scene(scene)
        data["parcels"][0]["district"] = "suburb"
        with pytest.raises(SceneFormatError):
            import_scene(data)

    def test_non_numeric_coordinate(self, scene):
        data = export_scene(scene)
        data["buildings"][0]["footprint"][0]["x"] = "east"
        with pytest.raises(SceneFormatError, match="footprint"):
            import_scene(data)

    def test_missing_block_area(self, scene):
        data = export_scene(scene)
        del data["blocks"][0]["area"]
        with pytest.raises(SceneFormatError, match="Malformed"):
            import_scene(data)

    def test_error_is_value_error(self):
        with pytest.raises(ValueError):
            import_scene({"version": 99})
