"""
Spherical Frame - Vector math on the unit sphere.

Coordinates are (lon, lat) in degrees at the boundary; everything inside
works on numpy unit vectors and radians.
"""

import numpy as np
from typing import List, Sequence, Tuple

Coordinate = Tuple[float, float]

# Rotations smaller than this (~0.06 degrees) are treated as identity
SAFE_FRAME_EPSILON = 0.001

# Target of the safe frame: (lon 0, lat 0)
SAFE_FRAME_TARGET = np.array([1.0, 0.0, 0.0])

# Used when the centroid sits on (or opposite) the target
FALLBACK_AXIS = np.array([0.0, 0.0, 1.0])


def to_vector(coord: Sequence[float]) -> np.ndarray:
    """Convert (lon, lat) degrees to a 3D unit vector."""
    lon_rad = np.radians(coord[0])
    lat_rad = np.radians(coord[1])
    cos_lat = np.cos(lat_rad)
    return np.array(
        [cos_lat * np.cos(lon_rad), cos_lat * np.sin(lon_rad), np.sin(lat_rad)]
    )


def to_coord(v: np.ndarray) -> Coordinate:
    """Convert a 3D vector to (lon, lat) degrees."""
    lat = np.degrees(np.arcsin(np.clip(v[2], -1.0, 1.0)))
    lon = np.degrees(np.arctan2(v[1], v[0]))
    return (float(lon), float(lat))


def cross(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.cross(a, b)


def dot(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.dot(a, b))


def normalize(v: np.ndarray) -> np.ndarray:
    """
    Normalize a vector to unit length.

    A zero vector comes back unchanged; callers must check for it.
    """
    norm = np.linalg.norm(v)
    if norm == 0:
        return np.zeros(3)
    return v / norm


def rotate_vector(v: np.ndarray, axis: np.ndarray, angle: float) -> np.ndarray:
    """
    Rotate a vector around a unit axis using Rodrigues' formula.

    Args:
        v: Vector to rotate
        axis: Unit rotation axis
        angle: Rotation angle in radians (right-hand rule)

    Returns:
        Rotated vector
    """
    cos_a = np.cos(angle)
    sin_a = np.sin(angle)
    return (
        v * cos_a
        + np.cross(axis, v) * sin_a
        + axis * np.dot(axis, v) * (1.0 - cos_a)
    )


def great_circle_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Angular distance in radians between two (lon, lat) coordinates."""
    d = np.dot(to_vector(a), to_vector(b))
    return float(np.arccos(np.clip(d, -1.0, 1.0)))


def spherical_centroid(points: Sequence[Sequence[float]]) -> Coordinate:
    """
    Average points on the sphere rather than in lon/lat space.

    Falls back to the first point when the vectors cancel out
    (antipodally symmetric input).
    """
    if len(points) == 0:
        return (0.0, 0.0)
    if len(points) == 1:
        return (float(points[0][0]), float(points[0][1]))

    total = np.sum([to_vector(p) for p in points], axis=0)
    centroid = normalize(total)
    if not centroid.any():
        return (float(points[0][0]), float(points[0][1]))
    return to_coord(centroid)


class SafeFrame:
    """
    Temporary rotation that moves a point cloud's centroid to (0, 0).

    Planar boolean operations run in this frame so no vertex sits near a
    pole or the +/-180 degree seam.
    """

    def __init__(self, axis: np.ndarray, angle: float):
        self.axis = axis
        self.angle = angle

    @classmethod
    def from_coordinates(cls, coords: Sequence[Sequence[float]]) -> "SafeFrame":
        """
        Build the minimal rotation taking the centroid of coords to (0, 0).

        Args:
            coords: Every vertex that will pass through the frame

        Returns:
            SafeFrame (identity when the centroid is already near the target)
        """
        if len(coords) == 0:
            return cls.identity()

        centroid = normalize(np.sum([to_vector(c) for c in coords], axis=0))
        if not centroid.any():
            # Known limitation: antipodally symmetric input has no centroid
            return cls.identity()

        angle = float(np.arccos(np.clip(np.dot(centroid, SAFE_FRAME_TARGET), -1.0, 1.0)))
        if angle < SAFE_FRAME_EPSILON:
            return cls.identity()

        axis = normalize(np.cross(centroid, SAFE_FRAME_TARGET))
        if not axis.any():
            axis = FALLBACK_AXIS.copy()

        return cls(axis, angle)

    @classmethod
    def identity(cls) -> "SafeFrame":
        return cls(FALLBACK_AXIS.copy(), 0.0)

    @property
    def is_identity(self) -> bool:
        return self.angle == 0.0

    def to_safe(self, coord: Sequence[float]) -> Coordinate:
        if self.is_identity:
            return (float(coord[0]), float(coord[1]))
        return to_coord(rotate_vector(to_vector(coord), self.axis, self.angle))

    def from_safe(self, coord: Sequence[float]) -> Coordinate:
        if self.is_identity:
            return (float(coord[0]), float(coord[1]))
        return to_coord(rotate_vector(to_vector(coord), self.axis, -self.angle))

    def ring_to_safe(self, points: Sequence[Sequence[float]]) -> List[Coordinate]:
        """Rotate a ring into the frame and close it by repeating the first vertex."""
        ring = [self.to_safe(p) for p in points]
        if ring:
            ring.append(ring[0])
        return ring

    def ring_from_safe(self, coords: Sequence[Sequence[float]]) -> List[Coordinate]:
        """Rotate a closed ring back out of the frame, dropping the closing vertex."""
        coords = list(coords)
        if len(coords) > 1 and tuple(coords[0]) == tuple(coords[-1]):
            coords = coords[:-1]
        return [self.from_safe(c) for c in coords]
