"""
Crust Mesh - Attribute point clouds for fused plates.

Resamples a fresh uniform mesh over the fused footprint against both parent
meshes, blends thickness and sediment, and re-derives elevation from an
isostatic equilibrium model.
"""

from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
import shapely
import structlog
from scipy.spatial.distance import cdist
from shapely.geometry import Polygon as ShapelyPolygon
from shapely.ops import unary_union

from plate_model import Coordinate, CrustVertex, Plate, Polygon
from spherical_frame import SafeFrame, to_vector

logger = structlog.get_logger()

# Densities in g/cm^3
MANTLE_DENSITY = 3.3
CONTINENTAL_DENSITY = 2.7
OCEANIC_DENSITY = 3.0

# Reference thickness (km) and the elevation (m) it floats at
CONTINENTAL_THICKNESS = 35.0
OCEANIC_THICKNESS = 7.0
CONTINENTAL_BASE_ELEVATION = 800.0
OCEANIC_BASE_ELEVATION = -2500.0

# Keeps inverse-distance weights finite when a sample sits on a source vertex
IDW_EPSILON = 1e-6

KM_PER_DEGREE = 111.0
MIN_MESH_VERTICES = 10
MAX_MESH_VERTICES = 500

# generate_mesh(footprint, resolution_km) -> positions
MeshGenerator = Callable[[Sequence[Polygon], float], List[Coordinate]]


def default_thickness(is_oceanic: bool) -> float:
    return OCEANIC_THICKNESS if is_oceanic else CONTINENTAL_THICKNESS


def base_elevation(is_oceanic: bool) -> float:
    return OCEANIC_BASE_ELEVATION if is_oceanic else CONTINENTAL_BASE_ELEVATION


def isostatic_elevation(thickness: float, is_oceanic: bool) -> float:
    """
    Surface elevation (m) of a crust column in isostatic equilibrium.

    Thicker-than-reference crust rises by the buoyant fraction of the excess,
    thinner crust sinks by the same rule.

    Args:
        thickness: Crustal thickness in km
        is_oceanic: Selects oceanic or continental density and reference

    Returns:
        Elevation in meters
    """
    density = OCEANIC_DENSITY if is_oceanic else CONTINENTAL_DENSITY
    buoyancy = 1.0 - density / MANTLE_DENSITY
    return (
        base_elevation(is_oceanic)
        + (thickness - default_thickness(is_oceanic)) * buoyancy * 1000.0
    )


def _vertex_thickness(vertex: CrustVertex) -> float:
    if vertex.thickness is None:
        return default_thickness(vertex.is_oceanic)
    return vertex.thickness


def _unit_vectors(coords: Sequence[Coordinate]) -> np.ndarray:
    return np.array([to_vector(c) for c in coords]).reshape(-1, 3)


def nearest_vertices(
    samples: np.ndarray, mesh: Sequence[CrustVertex]
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Brute-force nearest mesh vertex for every sample.

    Args:
        samples: Nx3 unit vectors
        mesh: Source vertices

    Returns:
        (indices into mesh, great-circle distances in radians)
    """
    sources = _unit_vectors([v.position for v in mesh])
    chord = cdist(samples, sources)
    idx = np.argmin(chord, axis=1)
    nearest_chord = chord[np.arange(len(samples)), idx]
    # Chord length c on the unit sphere spans an arc of 2*asin(c/2)
    arc = 2.0 * np.arcsin(np.clip(nearest_chord / 2.0, 0.0, 1.0))
    return idx, arc


class HexGridMeshGenerator:
    """
    Uniform hexagonal sampling of a footprint.

    The grid is laid out in the SafeFrame of the footprint, so plates that
    straddle the dateline or cover a pole are sampled like any other.
    Resolution is the point spacing in km (converted at ~111 km per degree).
    """

    def __init__(
        self,
        min_vertices: int = MIN_MESH_VERTICES,
        max_vertices: int = MAX_MESH_VERTICES,
    ):
        self.min_vertices = min_vertices
        self.max_vertices = max_vertices

    def __call__(
        self, polygons: Sequence[Polygon], resolution: float
    ) -> List[Coordinate]:
        return self.generate_mesh(polygons, resolution)

    def generate_mesh(
        self, polygons: Sequence[Polygon], resolution: float
    ) -> List[Coordinate]:
        all_points = [pt for poly in polygons for pt in poly.points]
        if not all_points or resolution <= 0:
            return []

        frame = SafeFrame.from_coordinates(all_points)
        shapes = [
            ShapelyPolygon(frame.ring_to_safe(p.points))
            for p in polygons
            if len(p.points) >= 3
        ]
        footprint = unary_union([s if s.is_valid else s.buffer(0) for s in shapes])

        safe_points = [frame.to_safe(p) for p in all_points]
        lons = [p[0] for p in safe_points]
        lats = [p[1] for p in safe_points]
        min_lon, max_lon = min(lons), max(lons)
        min_lat, max_lat = min(lats), max(lats)

        spacing = resolution / KM_PER_DEGREE
        row_offset = spacing * 0.866  # sqrt(3)/2 for hex pattern

        candidates = []
        row = 0
        lat = min_lat
        while lat <= max_lat:
            lon = min_lon + (row % 2) * (spacing / 2)
            while lon <= max_lon:
                candidates.append((lon, lat))
                lon += spacing
            lat += row_offset
            row += 1

        vertices: List[Coordinate] = []
        if candidates:
            xs = np.array([c[0] for c in candidates])
            ys = np.array([c[1] for c in candidates])
            inside = shapely.contains_xy(footprint, xs, ys)
            vertices = [frame.from_safe(c) for c, keep in zip(candidates, inside) if keep]

        # Small plates: sample from the polygon vertices instead
        if len(vertices) < self.min_vertices:
            vertices.extend(
                (float(p[0]), float(p[1]))
                for p in all_points[: self.min_vertices]
            )

        if len(vertices) > self.max_vertices:
            keep = np.linspace(0, len(vertices) - 1, self.max_vertices).astype(int)
            vertices = [vertices[i] for i in keep]

        return vertices


class CrustMeshFuser:
    """Builds the crust mesh of a fused plate from its two parents."""

    def __init__(self, mesh_generator: MeshGenerator, resolution: float = 150.0):
        """
        Args:
            mesh_generator: Callable returning sample positions for a footprint
            resolution: Target sample spacing in km, passed to the generator
        """
        self.mesh_generator = mesh_generator
        self.resolution = resolution

    def fuse(
        self, plate_a: Plate, plate_b: Plate, footprint: Sequence[Polygon]
    ) -> Optional[List[CrustVertex]]:
        """
        Resample and blend both parent meshes over the fused footprint.

        Returns:
            One vertex per generated sample, or None if generation produced
            no samples.
        """
        fused_oceanic = plate_a.is_oceanic and plate_b.is_oceanic

        positions = self.mesh_generator(footprint, self.resolution)
        if not positions:
            logger.warning(
                "Mesh generation returned no vertices, fused plate has no mesh",
                plate_a=plate_a.id,
                plate_b=plate_b.id,
                resolution=self.resolution,
            )
            return None

        mesh_a = plate_a.crust_mesh or []
        mesh_b = plate_b.crust_mesh or []
        samples = _unit_vectors(positions)

        if mesh_a:
            idx_a, dist_a = nearest_vertices(samples, mesh_a)
        if mesh_b:
            idx_b, dist_b = nearest_vertices(samples, mesh_b)

        fused = []
        for i, pos in enumerate(positions):
            position = (float(pos[0]), float(pos[1]))
            if mesh_a and mesh_b:
                fused.append(
                    self._blend(
                        position,
                        mesh_a[idx_a[i]],
                        float(dist_a[i]),
                        mesh_b[idx_b[i]],
                        float(dist_b[i]),
                    )
                )
            elif mesh_a:
                fused.append(self._copy(position, mesh_a[idx_a[i]]))
            elif mesh_b:
                fused.append(self._copy(position, mesh_b[idx_b[i]]))
            else:
                fused.append(
                    CrustVertex(
                        position=position,
                        elevation=base_elevation(fused_oceanic),
                        thickness=default_thickness(fused_oceanic),
                        sediment=0.0,
                        is_oceanic=fused_oceanic,
                    )
                )

        logger.info(
            "Crust mesh fused",
            vertices=len(fused),
            source_a=len(mesh_a),
            source_b=len(mesh_b),
        )
        return fused

    @staticmethod
    def _copy(position: Coordinate, source: CrustVertex) -> CrustVertex:
        # Single source: its elevation is already consistent with its thickness
        return CrustVertex(
            position=position,
            elevation=source.elevation,
            thickness=source.thickness,
            sediment=source.sediment,
            is_oceanic=source.is_oceanic,
        )

    @staticmethod
    def _blend(
        position: Coordinate,
        va: CrustVertex,
        dist_a: float,
        vb: CrustVertex,
        dist_b: float,
    ) -> CrustVertex:
        wa = 1.0 / (dist_a + IDW_EPSILON)
        wb = 1.0 / (dist_b + IDW_EPSILON)
        total = wa + wb

        thickness = (_vertex_thickness(va) * wa + _vertex_thickness(vb) * wb) / total
        sediment = (va.sediment * wa + vb.sediment * wb) / total
        is_oceanic = va.is_oceanic and vb.is_oceanic

        return CrustVertex(
            position=position,
            elevation=isostatic_elevation(thickness, is_oceanic),
            thickness=thickness,
            sediment=sediment,
            is_oceanic=is_oceanic,
        )
