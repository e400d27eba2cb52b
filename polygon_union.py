"""
Safe Polygon Union - Boolean operations on plate footprints.

Rings are rotated into a SafeFrame (centroid at lon 0, lat 0) before
shapely sees them, so planar clipping never meets a pole or the dateline.
Results are rotated back onto the globe afterwards.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

import structlog
from shapely.errors import GEOSException
from shapely.geometry import GeometryCollection, MultiPolygon
from shapely.geometry import Polygon as ShapelyPolygon
from shapely.ops import unary_union

from plate_model import Coordinate, Polygon
from spherical_frame import SafeFrame

logger = structlog.get_logger()


class GeometryStatus(Enum):
    OK = "ok"
    NO_OVERLAP = "no_overlap"
    EMPTY_RESULT = "empty_result"
    OPERATOR_FAILED = "operator_failed"


@dataclass
class UnionResult:
    polygons: List[Polygon]
    status: GeometryStatus = GeometryStatus.OK
    reason: str = ""

    @property
    def used_fallback(self) -> bool:
        return self.status != GeometryStatus.OK


@dataclass
class IntersectionResult:
    """Boundary rings (closed, traversal order) of the overlap area."""

    rings: List[List[Coordinate]] = field(default_factory=list)
    status: GeometryStatus = GeometryStatus.NO_OVERLAP
    reason: str = ""
    # Same rings before rotating back, and the frame they live in
    safe_rings: List[List[Coordinate]] = field(default_factory=list)
    frame: Optional[SafeFrame] = None

    @property
    def has_overlap(self) -> bool:
        return self.status == GeometryStatus.OK and bool(self.rings)


def _polygon_parts(geom) -> List[ShapelyPolygon]:
    """Flatten any shapely result to its non-empty polygonal parts."""
    if geom is None or geom.is_empty:
        return []
    if isinstance(geom, ShapelyPolygon):
        return [geom]
    if isinstance(geom, (MultiPolygon, GeometryCollection)):
        parts = []
        for g in geom.geoms:
            parts.extend(_polygon_parts(g))
        return parts
    # Points and lines carry no area
    return []


def _to_safe_polygons(
    polygons: Sequence[Polygon], frame: SafeFrame
) -> List[ShapelyPolygon]:
    """Rotate plate rings into the frame as valid shapely polygons."""
    shapes = []
    for poly in polygons:
        if len(poly.points) < 3:
            continue
        shape = ShapelyPolygon(frame.ring_to_safe(poly.points))
        # Buffer 0 to fix self-intersections if any
        if not shape.is_valid:
            shape = shape.buffer(0)
        shapes.extend(_polygon_parts(shape))
    return shapes


def _frame_for(polygons_a: Sequence[Polygon], polygons_b: Sequence[Polygon]) -> SafeFrame:
    coords = [pt for poly in list(polygons_a) + list(polygons_b) for pt in poly.points]
    return SafeFrame.from_coordinates(coords)


def fallback_merge(
    polygons_a: Sequence[Polygon], polygons_b: Sequence[Polygon]
) -> List[Polygon]:
    """Concatenate both ring lists untouched (fresh ids, copied points)."""
    return [
        Polygon(points=list(poly.points), closed=True)
        for poly in list(polygons_a) + list(polygons_b)
    ]


def union_plate_polygons(
    polygons_a: Sequence[Polygon], polygons_b: Sequence[Polygon]
) -> UnionResult:
    """
    Union the rings of two plates into the minimal covering ring set.

    Never fails: when shapely raises or yields nothing usable, the rings of
    both plates are returned concatenated and the status says why.

    Args:
        polygons_a: Rings of the first plate
        polygons_b: Rings of the second plate

    Returns:
        UnionResult with new Polygons and the outcome status
    """
    frame = _frame_for(polygons_a, polygons_b)

    try:
        shapes = _to_safe_polygons(polygons_a, frame) + _to_safe_polygons(
            polygons_b, frame
        )
        merged = unary_union(shapes)
    except (GEOSException, ValueError) as e:
        logger.warning("Polygon union failed, using fallback", error=str(e))
        return UnionResult(
            fallback_merge(polygons_a, polygons_b),
            GeometryStatus.OPERATOR_FAILED,
            f"union operator raised: {e}",
        )

    result = []
    for part in _polygon_parts(merged):
        points = frame.ring_from_safe(part.exterior.coords)
        if len(points) >= 3:
            result.append(Polygon(points=points, closed=True))

    if not result:
        logger.warning(
            "Polygon union produced no usable rings, using fallback",
            input_rings=len(polygons_a) + len(polygons_b),
        )
        return UnionResult(
            fallback_merge(polygons_a, polygons_b),
            GeometryStatus.EMPTY_RESULT,
            "union produced no ring with at least 3 points",
        )

    logger.debug("Polygon union complete", rings=len(result))
    return UnionResult(result)


def intersect_plate_polygons(
    polygons_a: Sequence[Polygon], polygons_b: Sequence[Polygon]
) -> IntersectionResult:
    """
    Boundary of the area where the two plates overlap.

    Shared edges and touching corners have no area and count as no overlap.
    """
    frame = _frame_for(polygons_a, polygons_b)

    try:
        shape_a = unary_union(_to_safe_polygons(polygons_a, frame))
        shape_b = unary_union(_to_safe_polygons(polygons_b, frame))
        overlap = shape_a.intersection(shape_b)
    except (GEOSException, ValueError) as e:
        logger.warning("Intersection calculation failed", error=str(e))
        return IntersectionResult(
            status=GeometryStatus.OPERATOR_FAILED,
            reason=f"intersection operator raised: {e}",
            frame=frame,
        )

    safe_rings = []
    for part in _polygon_parts(overlap):
        if part.area <= 0:
            continue
        safe_rings.append([(float(x), float(y)) for x, y in part.exterior.coords])

    if not safe_rings:
        return IntersectionResult(
            status=GeometryStatus.NO_OVERLAP, reason="plates do not overlap", frame=frame
        )
    rings = [[frame.from_safe(c) for c in ring] for ring in safe_rings]
    return IntersectionResult(
        rings=rings, status=GeometryStatus.OK, safe_rings=safe_rings, frame=frame
    )
