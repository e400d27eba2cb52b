"""Tests for the plate fusion orchestrator."""

import copy

import pytest
from shapely.geometry import Polygon as ShapelyPolygon

from fusion_engine import (
    FusionConfig,
    PlateFusionEngine,
    PlateNotFoundError,
    SelfFusionError,
    fuse_plates,
)
from plate_model import (
    CrustType,
    CrustVertex,
    EulerPole,
    FeatureType,
    Landmass,
    PaintStroke,
    Plate,
    PlateEventType,
    PointFeature,
    Polygon,
    WorldState,
)


def fixed_generator(positions):
    def generate(_polygons, _resolution):
        return list(positions)

    return generate


class TestFusePlates:
    """End-to-end fusion of two plates."""

    @pytest.fixture
    def world(self):
        """Two edge-adjacent unit squares plus an unrelated third plate."""
        plate_a = Plate(
            id="a",
            name="Alpha",
            color="#8b6914",
            polygons=[Polygon(points=[(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0)])],
            features=[PointFeature(feature_type=FeatureType.VOLCANO, position=(0.5, 0.5))],
            motion=EulerPole(position=(10.0, 50.0), rate=0.7),
            paint_strokes=[PaintStroke(points=[(0.1, 0.1), (0.2, 0.2)], birth_time=5.0)],
        )
        plate_b = Plate(
            id="b",
            name="Beta",
            polygons=[Polygon(points=[(1.0, 0.0), (2.0, 0.0), (2.0, 1.0), (1.0, 1.0)])],
            features=[PointFeature(feature_type=FeatureType.HOTSPOT, position=(1.5, 0.5))],
            landmasses=[Landmass(name="Isle", points=[(1.2, 0.2), (1.4, 0.2), (1.3, 0.4)])],
        )
        plate_c = Plate(
            id="c",
            name="Gamma",
            polygons=[Polygon(points=[(40.0, 40.0), (41.0, 40.0), (41.0, 41.0)])],
        )
        return WorldState(
            plates={"a": plate_a, "b": plate_b, "c": plate_c},
            current_time=120.0,
            selected_plate_id="c",
        )

    def test_self_fusion_is_rejected(self, world):
        before = copy.deepcopy(world)
        result = fuse_plates(world, "a", "a")

        assert not result.success
        assert isinstance(result.error, SelfFusionError)
        assert result.world is None
        assert world == before
        with pytest.raises(SelfFusionError):
            result.unwrap()

    def test_missing_plate_is_rejected(self, world):
        result = fuse_plates(world, "a", "nope")

        assert not result.success
        assert isinstance(result.error, PlateNotFoundError)
        assert result.error.missing == ["nope"]
        assert world.plates["a"].death_time is None

    def test_both_missing(self, world):
        result = fuse_plates(world, "x", "y")
        assert result.error.missing == ["x", "y"]

    def test_adjacent_squares_fuse_into_one_ring(self, world):
        result = fuse_plates(world, "a", "b")

        assert result.success
        fused = result.world.plates[result.plate_id]
        assert len(fused.polygons) == 1
        assert ShapelyPolygon(fused.polygons[0].points).area == pytest.approx(2.0, rel=1e-3)
        assert fused.center[0] == pytest.approx(1.0, abs=1e-3)
        assert fused.center[1] == pytest.approx(0.5, abs=1e-2)

    def test_new_plate_record(self, world):
        result = fuse_plates(world, "a", "b")
        fused = result.unwrap().plates[result.plate_id]

        assert fused.name == "Alpha-Beta (Fused)"
        assert fused.color == "#8b6914"
        assert fused.parent_plate_ids == ["a", "b"]
        assert fused.birth_time == 120.0
        assert fused.death_time is None
        assert fused.motion == world.plates["a"].motion
        assert fused.motion is not world.plates["a"].motion

        assert len(fused.motion_keyframes) == 1
        keyframe = fused.motion_keyframes[0]
        assert keyframe.time == 120.0
        assert keyframe.euler_pole == world.plates["a"].motion
        assert [p.points for p in keyframe.snapshot_polygons] == [p.points for p in fused.polygons]
        assert keyframe.snapshot_polygons[0] is not fused.polygons[0]

    def test_parents_are_retired(self, world):
        new_world = fuse_plates(world, "a", "b").world

        for pid, other in (("a", "Beta"), ("b", "Alpha")):
            parent = new_world.plates[pid]
            assert parent.death_time == 120.0
            assert parent.crust_mesh is None
            assert parent.events[-1].event_type == PlateEventType.FUSION
            assert parent.events[-1].data["fusedWith"] == other

    def test_world_layout(self, world):
        result = fuse_plates(world, "a", "b")
        new_world = result.world

        assert list(new_world.plates) == ["a", "b", "c", result.plate_id]
        assert new_world.selected_plate_id == result.plate_id
        assert new_world.plates["c"] is world.plates["c"]
        assert new_world.current_time == world.current_time

    def test_input_world_is_not_mutated(self, world):
        world.plates["a"].crust_mesh = [CrustVertex(position=(0.5, 0.5))]
        before = copy.deepcopy(world)

        fuse_plates(world, "a", "b", mesh_generator=fixed_generator([(0.5, 0.5)]))

        assert world == before
        assert len(world.plates) == 3
        assert world.plates["a"].crust_mesh is not None

    def test_features_are_combined_and_copied(self, world):
        result = fuse_plates(world, "a", "b")
        fused = result.world.plates[result.plate_id]

        types = [f.feature_type for f in fused.features]
        assert types[:2] == [FeatureType.VOLCANO, FeatureType.HOTSPOT]
        assert FeatureType.WEAKNESS in types
        assert fused.features[0] is not world.plates["a"].features[0]
        assert fused.features[0].id == world.plates["a"].features[0].id

        weakness = [f for f in fused.features if f.feature_type == FeatureType.WEAKNESS]
        assert weakness[0].properties["fusedFrom"] == ["Alpha", "Beta"]
        assert weakness[0].properties["fusedAt"] == 120.0

    def test_seam_markers_can_be_disabled(self, world):
        config = FusionConfig(add_weakness_features=False)
        result = fuse_plates(world, "a", "b", config)
        fused = result.world.plates[result.plate_id]

        assert len(fused.features) == 2

    def test_mountain_markers(self, world):
        config = FusionConfig(add_weakness_features=False, add_mountain_features=True)
        result = fuse_plates(world, "a", "b", config)
        fused = result.world.plates[result.plate_id]

        mountains = [f for f in fused.features if f.feature_type == FeatureType.MOUNTAIN]
        assert mountains
        assert all(m.properties["generatedBy"] == "fusion" for m in mountains)

    def test_annotations_are_reanchored(self, world):
        result = fuse_plates(world, "a", "b")
        fused = result.world.plates[result.plate_id]

        assert len(fused.paint_strokes) == 1
        stroke = fused.paint_strokes[0]
        assert stroke.id != world.plates["a"].paint_strokes[0].id
        assert stroke.birth_time == 120.0
        assert stroke.points == world.plates["a"].paint_strokes[0].points

        assert len(fused.landmasses) == 1
        land = fused.landmasses[0]
        assert land.name == "Isle"
        assert land.id != world.plates["b"].landmasses[0].id
        assert land.birth_time == 120.0

    def test_no_meshes_means_no_mesh(self, world):
        calls = []

        def generate(polygons, resolution):
            calls.append(resolution)
            return [(0.5, 0.5)]

        result = fuse_plates(world, "a", "b", mesh_generator=generate)
        assert result.world.plates[result.plate_id].crust_mesh is None
        assert calls == []

    def test_meshes_are_fused(self, world):
        world.plates["a"].crust_mesh = [CrustVertex(position=(0.5, 0.5), thickness=40.0)]
        world.plates["b"].crust_mesh = [CrustVertex(position=(1.5, 0.5), thickness=30.0)]
        engine = PlateFusionEngine(mesh_generator=fixed_generator([(1.0, 0.5), (0.5, 0.5)]))

        result = engine.fuse(world, "a", "b")
        mesh = result.world.plates[result.plate_id].crust_mesh

        assert len(mesh) == 2
        assert mesh[0].thickness == pytest.approx(35.0, rel=1e-3)
        assert mesh[1].thickness == pytest.approx(40.0, abs=1e-3)

    def test_empty_mesh_generation_is_recovered(self, world):
        world.plates["a"].crust_mesh = [CrustVertex(position=(0.5, 0.5))]
        result = fuse_plates(world, "a", "b", mesh_generator=fixed_generator([]))

        assert result.success
        assert result.world.plates[result.plate_id].crust_mesh is None
        assert result.warnings

    def test_default_mesh_generator(self, world):
        world.plates["a"].crust_mesh = [CrustVertex(position=(0.5, 0.5), elevation=900.0)]
        result = fuse_plates(world, "a", "b")
        mesh = result.world.plates[result.plate_id].crust_mesh

        assert mesh
        assert all(v.elevation == 900.0 for v in mesh)

    @pytest.mark.parametrize(
        "type_a, type_b, expected",
        [
            (CrustType.OCEANIC, CrustType.OCEANIC, CrustType.OCEANIC),
            (CrustType.OCEANIC, CrustType.CONTINENTAL, CrustType.CONTINENTAL),
            (CrustType.CONTINENTAL, CrustType.CONTINENTAL, CrustType.CONTINENTAL),
        ],
    )
    def test_crust_classification(self, world, type_a, type_b, expected):
        world.plates["a"].crust_type = type_a
        world.plates["b"].crust_type = type_b
        result = fuse_plates(world, "a", "b")

        assert result.world.plates[result.plate_id].crust_type == expected

    def test_disjoint_plates_keep_both_rings(self, world):
        result = fuse_plates(world, "a", "c")
        fused = result.world.plates[result.plate_id]

        assert len(fused.polygons) == 2
        assert result.warnings == []
