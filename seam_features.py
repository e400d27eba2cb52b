"""
Seam Features - Markers along the line where two plates were fused.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence

import numpy as np
import structlog
from scipy.spatial.distance import cdist

from plate_model import Coordinate, FeatureType, Plate, PointFeature
from polygon_union import GeometryStatus, intersect_plate_polygons
from spherical_frame import SafeFrame, to_vector

logger = structlog.get_logger()

# A final marker is only added when the tail is longer than this share of the interval
TAIL_FRACTION = 0.3


class SeamKind(Enum):
    OVERLAP = "overlap"  # boundary of the intersection area
    BRIDGE = "bridge"  # closest vertex pair of disjoint plates
    NONE = "none"


@dataclass
class SeamResult:
    points: List[Coordinate] = field(default_factory=list)
    kind: SeamKind = SeamKind.NONE
    intersection_status: GeometryStatus = GeometryStatus.NO_OVERLAP
    # The seam as seen from inside the frame the plates were clipped in
    safe_points: List[Coordinate] = field(default_factory=list)
    frame: Optional[SafeFrame] = None


def closest_points_pair(plate_a: Plate, plate_b: Plate) -> List[Coordinate]:
    """Exhaustive scan for the closest vertex pair between two plates."""
    points_a = plate_a.all_points()
    points_b = plate_b.all_points()
    if not points_a or not points_b:
        return []

    vectors_a = np.array([to_vector(p) for p in points_a])
    vectors_b = np.array([to_vector(p) for p in points_b])
    distances = cdist(vectors_a, vectors_b)
    i, j = np.unravel_index(np.argmin(distances), distances.shape)
    return [tuple(points_a[i]), tuple(points_b[j])]


def find_fusion_boundary(plate_a: Plate, plate_b: Plate) -> SeamResult:
    """
    Seam polyline for two plates.

    Overlapping plates use the boundary of their intersection; plates that
    do not overlap (or whose intersection could not be computed) use the
    segment between their closest vertices. The seam is returned both on the
    globe and in the SafeFrame of the intersection, where it never crosses
    the dateline or a pole.
    """
    overlap = intersect_plate_polygons(plate_a.polygons, plate_b.polygons)
    frame = overlap.frame or SafeFrame.identity()
    if overlap.has_overlap:
        points = [pt for ring in overlap.rings for pt in ring]
        safe_points = [pt for ring in overlap.safe_rings for pt in ring]
        return SeamResult(points, SeamKind.OVERLAP, overlap.status, safe_points, frame)

    bridge = closest_points_pair(plate_a, plate_b)
    if not bridge:
        return SeamResult(intersection_status=overlap.status, frame=frame)
    safe_points = [frame.to_safe(pt) for pt in bridge]
    return SeamResult(bridge, SeamKind.BRIDGE, overlap.status, safe_points, frame)


def place_markers(
    seam: Sequence[Coordinate],
    interval: float,
    factory: Callable[[Coordinate], PointFeature],
) -> List[PointFeature]:
    """
    Walk the seam and drop a marker every `interval` units of path length.

    Distances are planar in the seam's coordinate units. A marker always
    sits on the first point; the last point gets one only if the previous
    marker is more than TAIL_FRACTION * interval away.

    Args:
        seam: Ordered seam coordinates
        interval: Path length between markers (must be > 0)
        factory: Builds a feature for a position

    Returns:
        Markers in walk order
    """
    if not seam:
        return []
    if interval <= 0:
        raise ValueError(f"Marker interval must be positive, got {interval}")

    markers = [factory(tuple(seam[0]))]
    if len(seam) == 1:
        return markers

    last_position = tuple(seam[0])
    distance_since_last = 0.0

    for prev_pt, curr_pt in zip(seam[:-1], seam[1:]):
        segment_length = math.hypot(curr_pt[0] - prev_pt[0], curr_pt[1] - prev_pt[1])
        if segment_length == 0:
            continue

        dx = (curr_pt[0] - prev_pt[0]) / segment_length
        dy = (curr_pt[1] - prev_pt[1]) / segment_length

        distance_along = interval - distance_since_last
        while distance_along <= segment_length:
            last_position = (
                prev_pt[0] + dx * distance_along,
                prev_pt[1] + dy * distance_along,
            )
            markers.append(factory(last_position))
            distance_along += interval

        distance_since_last = segment_length - (distance_along - interval)

    end = tuple(seam[-1])
    tail = math.hypot(end[0] - last_position[0], end[1] - last_position[1])
    if tail > interval * TAIL_FRACTION:
        markers.append(factory(end))

    return markers


class SeamFeatureEmitter:
    """Emits weakness (and optionally mountain) markers along a fusion seam."""

    def __init__(
        self,
        add_weakness: bool = True,
        weakness_interval: float = 1.0,
        add_mountains: bool = False,
        mountain_interval: float = 0.5,
    ):
        self.add_weakness = add_weakness
        self.weakness_interval = weakness_interval
        self.add_mountains = add_mountains
        self.mountain_interval = mountain_interval

    def emit(self, plate_a: Plate, plate_b: Plate, time: float) -> List[PointFeature]:
        seam = find_fusion_boundary(plate_a, plate_b)
        if seam.intersection_status == GeometryStatus.OPERATOR_FAILED:
            logger.warning(
                "Seam intersection failed, bridging closest vertices",
                plate_a=plate_a.id,
                plate_b=plate_b.id,
            )

        def provenance() -> dict:
            return {"fusedFrom": [plate_a.name, plate_b.name], "fusedAt": time}

        def weakness(position: Coordinate) -> PointFeature:
            return PointFeature(
                feature_type=FeatureType.WEAKNESS,
                position=position,
                properties=provenance(),
            )

        def mountain(position: Coordinate) -> PointFeature:
            return PointFeature(
                feature_type=FeatureType.MOUNTAIN,
                position=position,
                properties={**provenance(), "generatedBy": "fusion"},
            )

        def on_globe(factory: Callable[[Coordinate], PointFeature]):
            return lambda position: factory(seam.frame.from_safe(position))

        # Walk in the frame so a seam across the dateline stays one short path
        features = []
        if self.add_weakness:
            features += place_markers(
                seam.safe_points, self.weakness_interval, on_globe(weakness)
            )
        if self.add_mountains:
            features += place_markers(
                seam.safe_points, self.mountain_interval, on_globe(mountain)
            )

        logger.info(
            "Seam features emitted",
            seam=seam.kind.value,
            seam_points=len(seam.points),
            features=len(features),
        )
        return features
