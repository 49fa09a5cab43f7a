"""Tests for the scene aggregate and building editing."""

import copy
from unittest.mock import patch

import pytest

from py_towngen.core.models import BuildingKind
from py_towngen.core.params import TownParams
from py_towngen.scene import SCENE_VERSION, Scene, create_scene


def footprint_center(building):
    fp = building.footprint
    return sum(p.x for p in fp) / len(fp), sum(p.y for p in fp) / len(fp)


@pytest.fixture
def scene(default_town, default_params):
    """Editable copy of the default town."""
    town = copy.deepcopy(default_town)
    return Scene(
        params=default_params,
        roads=town.roads,
        blocks=town.blocks,
        parcels=town.parcels,
        buildings=town.buildings,
        decor=town.decor,
    )


class TestCreateScene:
    """Test scene construction and regeneration."""

    def test_defaults(self):
        scene = create_scene()
        assert scene.version == SCENE_VERSION
        assert scene.params == TownParams().clamped()
        assert scene.buildings == []
        assert scene.selection == set()
        assert scene.ui["show_decor"] is True

    def test_params_clamped(self):
        scene = create_scene(TownParams(town_radius=10, main_roads=200))
        assert scene.params.town_radius == 60
        assert scene.params.main_roads == 48

    def test_regenerate_fills_layers(self):
        scene = create_scene(TownParams(seed="small", town_radius=150, main_roads=4, ring_roads=1))
        scene.regenerate((400, 400))
        counts = scene.counts()
        assert counts["blocks"] >= 1
        assert counts["parcels"] >= counts["blocks"]
        assert counts["buildings"] == len(scene.buildings)
        assert scene.decor.town_boundary is not None

    def test_regenerate_with_new_params(self):
        scene = create_scene(TownParams(seed="small", town_radius=150, main_roads=4, ring_roads=1))
        scene.regenerate((400, 400), TownParams(seed="renamed", town_radius=10, main_roads=4, ring_roads=1))
        assert scene.params.seed == "renamed"
        assert scene.params.town_radius == 60

    def test_failed_regenerate_leaves_scene_unchanged(self):
        scene = create_scene(TownParams(seed="small", town_radius=150, main_roads=4, ring_roads=1))
        scene.regenerate((400, 400))
        params, buildings = scene.params, list(scene.buildings)
        with patch("py_towngen.scene.scene.generate_town", side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError):
                scene.regenerate((400, 400), TownParams(seed="other"))
        assert scene.params == params
        assert scene.buildings == buildings

    def test_regenerate_prunes_selection(self):
        scene = create_scene(TownParams(seed="small", town_radius=150, main_roads=4, ring_roads=1))
        scene.selection = {"b_gone"}
        scene.regenerate((400, 400))
        assert scene.selection == set()


class TestBuildingEdits:
    """Test the editing operations on buildings."""

    def test_update_fields(self, scene):
        target = scene.buildings[0]
        updated = scene.update_building(target.id, fill="#123456", kind="landmark", levels=5)
        assert updated is target
        assert target.style.fill == "#123456"
        assert target.meta.kind == BuildingKind.LANDMARK
        assert target.meta.levels == 5

    def test_partial_update(self, scene):
        target = scene.buildings[0]
        kind, levels = target.meta.kind, target.meta.levels
        scene.update_building(target.id, fill="#abcdef")
        assert target.meta.kind == kind
        assert target.meta.levels == levels

    def test_invalid_edits_leave_building_untouched(self, scene):
        target = scene.buildings[0]
        before = copy.deepcopy(target)
        with pytest.raises(ValueError):
            scene.update_building(target.id, fill="#000000", kind="castle")
        with pytest.raises(ValueError):
            scene.update_building(target.id, fill="#000000", levels=0)
        assert target == before

    def test_unknown_building(self, scene):
        with pytest.raises(KeyError):
            scene.update_building("b_missing", fill="#000000")
        with pytest.raises(KeyError):
            scene.delete_building("b_missing")
        with pytest.raises(KeyError):
            scene.select("b_missing")

    def test_delete_removes_from_selection(self, scene):
        target = scene.buildings[0]
        scene.select(target.id)
        scene.delete_building(target.id)
        assert target.id not in {b.id for b in scene.buildings}
        assert scene.selection == set()


class TestSelection:
    """Test selection and hit testing."""

    def test_select_replaces(self, scene):
        a, b = scene.buildings[0], scene.buildings[1]
        scene.select(a.id)
        scene.select(b.id)
        assert scene.selection == {b.id}

    def test_select_additive(self, scene):
        a, b = scene.buildings[0], scene.buildings[1]
        scene.select(a.id)
        scene.select(b.id, additive=True)
        assert scene.selection == {a.id, b.id}
        scene.clear_selection()
        assert scene.selection == set()

    def test_building_at_center(self, scene):
        for building in scene.buildings[:10]:
            x, y = footprint_center(building)
            assert scene.building_at(x, y) is building

    def test_building_at_empty_spot(self, scene):
        R = scene.params.town_radius
        assert scene.building_at(R * 5, R * 5) is None
