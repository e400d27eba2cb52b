"""
Fusion Engine - Merges two tectonic plates into one.

Takes a world snapshot and two plate ids and returns a new snapshot in which
both parents are retired and a single fused plate carries their combined
geometry, crust mesh, features and annotations. The input snapshot is never
modified.
"""

import copy
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

import structlog

from crust_mesh import CrustMeshFuser, HexGridMeshGenerator, MeshGenerator
from plate_model import (
    CrustType,
    Landmass,
    MotionKeyframe,
    PaintStroke,
    Plate,
    PlateEvent,
    PlateEventType,
    PointFeature,
    WorldState,
    generate_id,
)
from polygon_union import union_plate_polygons
from seam_features import SeamFeatureEmitter
from spherical_frame import spherical_centroid

logger = structlog.get_logger()


class FusionError(Exception):
    """Base class for errors that abort a fusion."""


class PlateNotFoundError(FusionError):
    def __init__(self, missing: List[str]):
        self.missing = missing
        super().__init__(f"Plate(s) not found: {', '.join(missing)}")


class SelfFusionError(FusionError):
    def __init__(self, plate_id: str):
        self.plate_id = plate_id
        super().__init__(f"Cannot fuse plate {plate_id} with itself")


@dataclass
class FusionConfig:
    """Configuration for plate fusion."""

    add_weakness_features: bool = True
    weakness_interval: float = 1.0  # degrees between weakness markers
    add_mountain_features: bool = False
    mountain_interval: float = 0.5
    mesh_resolution: float = 150.0  # km between crust mesh samples


@dataclass
class FusionResult:
    success: bool
    world: Optional[WorldState] = None
    plate_id: Optional[str] = None
    error: Optional[FusionError] = None
    warnings: List[str] = field(default_factory=list)

    def unwrap(self) -> WorldState:
        """Return the new world, or raise the error that aborted the fusion."""
        if self.error is not None:
            raise self.error
        return self.world


class PlateFusionEngine:
    """
    Fuses pairs of plates.

    The mesh generator is an external collaborator; any callable
    `generate_mesh(polygons, resolution_km) -> positions` works.
    """

    def __init__(
        self,
        config: Optional[FusionConfig] = None,
        mesh_generator: Optional[MeshGenerator] = None,
    ):
        self.config = config or FusionConfig()
        self.mesh_fuser = CrustMeshFuser(
            mesh_generator or HexGridMeshGenerator(),
            resolution=self.config.mesh_resolution,
        )
        self.seam_emitter = SeamFeatureEmitter(
            add_weakness=self.config.add_weakness_features,
            weakness_interval=self.config.weakness_interval,
            add_mountains=self.config.add_mountain_features,
            mountain_interval=self.config.mountain_interval,
        )

    def fuse(self, world: WorldState, plate_id_a: str, plate_id_b: str) -> FusionResult:
        """
        Fuse two plates.

        1. Union polygons in a pole/dateline-safe frame
        2. Resample and blend crust meshes (if either parent has one)
        3. Emit seam markers and carry over features and annotations
        4. Retire the parents and append the fused plate

        Args:
            world: Current snapshot (left untouched)
            plate_id_a: First plate; the fused plate inherits its colour and motion
            plate_id_b: Second plate

        Returns:
            FusionResult with the new world, or the error that aborted
        """
        plate_a = world.get_plate(plate_id_a)
        plate_b = world.get_plate(plate_id_b)

        missing = [pid for pid, p in ((plate_id_a, plate_a), (plate_id_b, plate_b)) if p is None]
        if missing:
            logger.info("Fusion rejected", reason="not_found", missing=missing)
            return FusionResult(success=False, error=PlateNotFoundError(missing))

        if plate_id_a == plate_id_b:
            logger.info("Fusion rejected", reason="self_fusion", plate=plate_id_a)
            return FusionResult(success=False, error=SelfFusionError(plate_id_a))

        time = world.current_time
        warnings = []
        logger.info(
            "Fusing plates",
            plate_a=plate_a.name,
            plate_b=plate_b.name,
            time=time,
        )

        union = union_plate_polygons(plate_a.polygons, plate_b.polygons)
        if union.used_fallback:
            warnings.append(f"polygon union fell back to concatenation: {union.reason}")
        polygons = union.polygons

        crust_type = (
            CrustType.OCEANIC
            if plate_a.is_oceanic and plate_b.is_oceanic
            else CrustType.CONTINENTAL
        )

        crust_mesh = None
        if plate_a.has_mesh or plate_b.has_mesh:
            crust_mesh = self.mesh_fuser.fuse(plate_a, plate_b, polygons)
            if crust_mesh is None:
                warnings.append("mesh generation produced no vertices")

        center = spherical_centroid([pt for poly in polygons for pt in poly.points])

        seam_features: List[PointFeature] = []
        if self.config.add_weakness_features or self.config.add_mountain_features:
            seam_features = self.seam_emitter.emit(plate_a, plate_b, time)

        features = (
            copy.deepcopy(plate_a.features)
            + copy.deepcopy(plate_b.features)
            + seam_features
        )

        fused_id = generate_id()
        fused = Plate(
            id=fused_id,
            name=f"{plate_a.name}-{plate_b.name} (Fused)",
            color=plate_a.color,
            polygons=polygons,
            features=features,
            center=center,
            crust_type=crust_type,
            crust_mesh=crust_mesh,
            paint_strokes=self._reanchor_strokes(plate_a, plate_b, time),
            landmasses=self._reanchor_landmasses(plate_a, plate_b, time),
            motion=copy.deepcopy(plate_a.motion),
            motion_keyframes=[
                MotionKeyframe(
                    time=time,
                    euler_pole=copy.deepcopy(plate_a.motion),
                    snapshot_polygons=copy.deepcopy(polygons),
                    snapshot_features=copy.deepcopy(features),
                )
            ],
            birth_time=time,
            death_time=None,
            parent_plate_ids=[plate_id_a, plate_id_b],
            initial_polygons=copy.deepcopy(polygons),
            initial_features=copy.deepcopy(features),
        )

        retired = {
            plate_id_a: self._retire(plate_a, plate_b, fused_id, time),
            plate_id_b: self._retire(plate_b, plate_a, fused_id, time),
        }

        plates: Dict[str, Plate] = {
            pid: retired.get(pid, plate) for pid, plate in world.plates.items()
        }
        plates[fused_id] = fused

        new_world = replace(world, plates=plates, selected_plate_id=fused_id)

        logger.info(
            "Fused plates",
            plate=fused.name,
            plate_id=fused_id,
            polygons=len(polygons),
            features=len(features),
            seam_features=len(seam_features),
            mesh_vertices=len(crust_mesh) if crust_mesh else 0,
        )
        return FusionResult(
            success=True, world=new_world, plate_id=fused_id, warnings=warnings
        )

    @staticmethod
    def _retire(plate: Plate, other: Plate, fused_id: str, time: float) -> Plate:
        """Dead copy of a parent: death time set, mesh cleared, fusion event added."""
        event = PlateEvent(
            time=time,
            event_type=PlateEventType.FUSION,
            data={"fusedWith": other.name, "fusedWithId": other.id, "fusedInto": fused_id},
        )
        return replace(
            plate,
            death_time=time,
            crust_mesh=None,
            events=list(plate.events) + [event],
        )

    @staticmethod
    def _reanchor_strokes(plate_a: Plate, plate_b: Plate, time: float) -> List[PaintStroke]:
        # Fresh ids and birth time so motion history is not replayed against a dead parent
        return [
            PaintStroke(
                points=list(stroke.points),
                color=stroke.color,
                width=stroke.width,
                birth_time=time,
            )
            for stroke in plate_a.paint_strokes + plate_b.paint_strokes
        ]

    @staticmethod
    def _reanchor_landmasses(plate_a: Plate, plate_b: Plate, time: float) -> List[Landmass]:
        return [
            Landmass(name=land.name, points=list(land.points), birth_time=time)
            for land in plate_a.landmasses + plate_b.landmasses
        ]


def fuse_plates(
    world: WorldState,
    plate_id_a: str,
    plate_id_b: str,
    config: Optional[FusionConfig] = None,
    mesh_generator: Optional[MeshGenerator] = None,
) -> FusionResult:
    """Fuse two plates with a one-off engine."""
    return PlateFusionEngine(config, mesh_generator).fuse(world, plate_id_a, plate_id_b)
