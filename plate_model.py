"""
Plate Model - Data structures shared by the fusion engine.

Plates live in an identifier-indexed arena (WorldState.plates) and refer to
each other only by id, so the parent/child provenance graph never holds
object references.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, List, Optional, Tuple

Coordinate = Tuple[float, float]


def generate_id() -> str:
    """Collision-resistant identifier for any record."""
    return uuid.uuid4().hex


class CrustType(Enum):
    OCEANIC = auto()
    CONTINENTAL = auto()


class FeatureType(Enum):
    MOUNTAIN = "mountain"
    VOLCANO = "volcano"
    HOTSPOT = "hotspot"
    RIFT = "rift"
    TRENCH = "trench"
    ISLAND = "island"
    WEAKNESS = "weakness"
    POLY_REGION = "poly_region"
    FLOWLINE = "flowline"
    SEAFLOOR = "seafloor"


class PlateEventType(Enum):
    MOTION_CHANGE = "motion_change"
    SPLIT = "split"
    FUSION = "fusion"
    BIRTH = "birth"


@dataclass
class Polygon:
    """Closed ring of (lon, lat) points; the first point is not repeated."""

    points: List[Coordinate]
    id: str = field(default_factory=generate_id)
    closed: bool = True


@dataclass
class CrustVertex:
    """One sample of the crust attribute point cloud."""

    position: Coordinate
    elevation: float = 0.0
    thickness: Optional[float] = None  # km; None means "crust default"
    sediment: float = 0.0
    is_oceanic: bool = False
    id: str = field(default_factory=generate_id)


@dataclass
class PointFeature:
    feature_type: FeatureType
    position: Coordinate
    properties: Dict[str, Any] = field(default_factory=dict)
    rotation: float = 0.0
    scale: float = 1.0
    id: str = field(default_factory=generate_id)


@dataclass
class EulerPole:
    position: Coordinate = (0.0, 90.0)
    rate: float = 0.0  # degrees per Ma
    visible: bool = False


@dataclass
class MotionKeyframe:
    """Motion parameters and a frozen copy of geometry valid from `time`."""

    time: float
    euler_pole: EulerPole
    snapshot_polygons: List[Polygon] = field(default_factory=list)
    snapshot_features: List[PointFeature] = field(default_factory=list)


@dataclass
class PlateEvent:
    time: float
    event_type: PlateEventType
    data: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=generate_id)


@dataclass
class PaintStroke:
    """Freehand annotation painted onto a plate."""

    points: List[Coordinate]
    color: str = "#ffffff"
    width: float = 1.0
    birth_time: float = 0.0
    id: str = field(default_factory=generate_id)


@dataclass
class Landmass:
    """Named sub-region (continent, island) riding on a plate."""

    name: str
    points: List[Coordinate]
    birth_time: float = 0.0
    id: str = field(default_factory=generate_id)


@dataclass
class Plate:
    id: str
    name: str
    polygons: List[Polygon] = field(default_factory=list)
    features: List[PointFeature] = field(default_factory=list)
    color: str = "#4a9c6d"
    center: Coordinate = (0.0, 0.0)
    crust_type: CrustType = CrustType.CONTINENTAL
    crust_mesh: Optional[List[CrustVertex]] = None
    paint_strokes: List[PaintStroke] = field(default_factory=list)
    landmasses: List[Landmass] = field(default_factory=list)
    motion: EulerPole = field(default_factory=EulerPole)
    motion_keyframes: List[MotionKeyframe] = field(default_factory=list)
    events: List[PlateEvent] = field(default_factory=list)
    birth_time: float = 0.0
    death_time: Optional[float] = None
    parent_plate_ids: List[str] = field(default_factory=list)
    initial_polygons: List[Polygon] = field(default_factory=list)
    initial_features: List[PointFeature] = field(default_factory=list)
    visible: bool = True
    locked: bool = False

    @property
    def is_oceanic(self) -> bool:
        return self.crust_type == CrustType.OCEANIC

    @property
    def is_alive(self) -> bool:
        return self.death_time is None

    @property
    def has_mesh(self) -> bool:
        return bool(self.crust_mesh)

    def all_points(self) -> List[Coordinate]:
        """Every polygon vertex of the plate, in storage order."""
        return [pt for poly in self.polygons for pt in poly.points]


@dataclass
class WorldState:
    """
    Snapshot of every plate plus the simulation clock.

    `plates` keeps insertion order, which doubles as draw/timeline order.
    """

    plates: Dict[str, Plate] = field(default_factory=dict)
    current_time: float = 0.0
    selected_plate_id: Optional[str] = None

    def get_plate(self, plate_id: str) -> Optional[Plate]:
        return self.plates.get(plate_id)

    def living_plates(self) -> List[Plate]:
        return [p for p in self.plates.values() if p.is_alive]
