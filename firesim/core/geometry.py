"""
Fire perimeter geometry.

Small-area measurements of a drawn perimeter using a local equirectangular
projection. Perimeters are at most tens of kilometres across, where the
projection error is well under one percent.
"""

import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

EARTH_RADIUS_M = 6_371_008.8
SQUARE_METRES_PER_HECTARE = 10_000.0

Coordinate = Tuple[float, float]  # (lng, lat)


@dataclass(frozen=True)
class FireFootprint:
    """Measured extent of a fire perimeter."""
    area_hectares: float
    north_south_m: float
    east_west_m: float
    centroid: Coordinate

    def describe(self) -> str:
        """Human-readable footprint, e.g. '120 hectares, 1.2 km north-south by 900 m east-west'."""
        return (
            f"{_format_area(self.area_hectares)}, "
            f"{_format_distance(self.north_south_m)} north-south by "
            f"{_format_distance(self.east_west_m)} east-west"
        )


def _format_distance(metres: float) -> str:
    if metres >= 1000:
        return f"{metres / 1000:.1f} km"
    return f"{round(metres)} m"


def _format_area(hectares: float) -> str:
    if hectares >= 10:
        return f"{round(hectares):,} hectares"
    return f"{hectares:.1f} hectares"


def open_ring(ring: Sequence[Sequence[float]]) -> List[Coordinate]:
    """Return the ring's vertices without the closing duplicate."""
    points = [(float(p[0]), float(p[1])) for p in ring]
    if len(points) > 1 and points[0] == points[-1]:
        points = points[:-1]
    return points


def compute_footprint(ring: Sequence[Sequence[float]]) -> FireFootprint:
    """
    Measure a polygon ring given as [lng, lat] pairs.

    Args:
        ring: Outer ring of a GeoJSON polygon (closed or open)

    Returns:
        FireFootprint with area and bounding extents
    """
    points = open_ring(ring)
    if len(points) < 3:
        raise ValueError("A perimeter needs at least three vertices")

    lngs = [p[0] for p in points]
    lats = [p[1] for p in points]
    centroid = (sum(lngs) / len(lngs), sum(lats) / len(lats))

    lat0 = math.radians(centroid[1])
    cos_lat0 = math.cos(lat0)

    def project(lng: float, lat: float) -> Tuple[float, float]:
        x = EARTH_RADIUS_M * math.radians(lng - centroid[0]) * cos_lat0
        y = EARTH_RADIUS_M * math.radians(lat - centroid[1])
        return x, y

    projected = [project(lng, lat) for lng, lat in points]

    # Shoelace formula
    twice_area = 0.0
    for i, (x1, y1) in enumerate(projected):
        x2, y2 = projected[(i + 1) % len(projected)]
        twice_area += x1 * y2 - x2 * y1
    area_m2 = abs(twice_area) / 2.0

    xs = [p[0] for p in projected]
    ys = [p[1] for p in projected]

    return FireFootprint(
        area_hectares=area_m2 / SQUARE_METRES_PER_HECTARE,
        north_south_m=max(ys) - min(ys),
        east_west_m=max(xs) - min(xs),
        centroid=centroid,
    )
