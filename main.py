"""
Plate Fusion - Command-line demo.

Builds a small two-plate world, fuses the plates and logs what came out.
"""

import argparse
import logging
import sys
from typing import List, Optional

import structlog

from crust_mesh import isostatic_elevation
from fusion_engine import FusionConfig, fuse_plates
from plate_model import CrustType, CrustVertex, EulerPole, Plate, Polygon, WorldState

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

# Offset of the second plate, in plate widths, from the first plate at (0, 0)
SCENARIOS = {
    "adjacent": (1.0, 0.0),
    "overlap": (0.5, 0.0),
    "disjoint": (3.0, 0.0),
}

DEMO_SIZE = 4.0


def _square(lon: float, lat: float, size: float) -> Polygon:
    return Polygon(
        points=[(lon, lat), (lon + size, lat), (lon + size, lat + size), (lon, lat + size)]
    )


def _mesh(lon: float, lat: float, size: float, thickness: float, oceanic: bool) -> List[CrustVertex]:
    """Regular grid of crust samples covering a square."""
    steps = 5
    return [
        CrustVertex(
            position=(lon + size * i / (steps - 1), lat + size * j / (steps - 1)),
            elevation=isostatic_elevation(thickness, oceanic),
            thickness=thickness,
            is_oceanic=oceanic,
        )
        for i in range(steps)
        for j in range(steps)
    ]


def build_demo_world(scenario: str) -> WorldState:
    """Two square plates, one continental and one oceanic, with crust meshes."""
    offset_lon, offset_lat = SCENARIOS[scenario]
    offset_lon *= DEMO_SIZE
    offset_lat *= DEMO_SIZE

    plate_a = Plate(
        id="plate-a",
        name="Laurentia",
        polygons=[_square(0.0, 0.0, DEMO_SIZE)],
        crust_type=CrustType.CONTINENTAL,
        crust_mesh=_mesh(0.0, 0.0, DEMO_SIZE, 40.0, False),
        motion=EulerPole(position=(-30.0, 60.0), rate=0.8),
    )
    plate_b = Plate(
        id="plate-b",
        name="Iapetus",
        polygons=[_square(offset_lon, offset_lat, DEMO_SIZE)],
        crust_type=CrustType.OCEANIC,
        crust_mesh=_mesh(offset_lon, offset_lat, DEMO_SIZE, 7.0, True),
        motion=EulerPole(position=(10.0, -20.0), rate=1.1),
    )
    return WorldState(
        plates={plate_a.id: plate_a, plate_b.id: plate_b},
        current_time=100.0,
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fuse two demo tectonic plates")
    parser.add_argument("--scenario", choices=sorted(SCENARIOS), default="adjacent")
    parser.add_argument("--interval", type=float, default=1.0, help="Degrees between weakness markers")
    parser.add_argument("--mountains", action="store_true", help="Also emit mountain markers")
    parser.add_argument("--no-weakness", action="store_true", help="Skip weakness markers")
    parser.add_argument("--resolution", type=float, default=150.0, help="Crust mesh spacing in km")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=logging.DEBUG if args.verbose else logging.INFO,
    )

    config = FusionConfig(
        add_weakness_features=not args.no_weakness,
        weakness_interval=args.interval,
        add_mountain_features=args.mountains,
        mesh_resolution=args.resolution,
    )
    world = build_demo_world(args.scenario)
    result = fuse_plates(world, "plate-a", "plate-b", config)

    if not result.success:
        logger.error("Fusion failed", error=str(result.error))
        return 1

    fused = result.world.plates[result.plate_id]
    logger.info(
        "Demo complete",
        scenario=args.scenario,
        plate=fused.name,
        polygons=len(fused.polygons),
        vertices=[len(p.points) for p in fused.polygons],
        features=len(fused.features),
        mesh_vertices=len(fused.crust_mesh) if fused.crust_mesh else 0,
        center=fused.center,
        warnings=result.warnings,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
