"""Projection service built on pyproj.

Two jobs: convert the map's reference point from its projected CRS to WGS84
geographic coordinates, and measure how the projected grid is rotated and
stretched at that point (meridian convergence and grid scale factor).

Note: always_xy=True is set on every transformer so coordinates are always
ordered (easting/longitude, northing/latitude) regardless of the EPSG axis
convention.
"""

import logging
import math
from typing import Tuple

from .errors import ProjectionError

logger = logging.getLogger(__name__)

WGS84 = "EPSG:4326"

# Length of the stereographic baselines, metres
BASELINE = 1000.0
MIN_DETERMINANT = 1e-5


class CoordTransformer:
    """Transformer between two coordinate reference systems.

    src and dst are anything pyproj.CRS accepts (pyproj.CRS objects,
    "EPSG:n" strings, PROJ strings).
    """

    def __init__(self, src, dst):
        from pyproj import Transformer
        from pyproj.exceptions import ProjError

        try:
            self._t = Transformer.from_crs(src, dst, always_xy=True)
        except ProjError as exc:
            raise ProjectionError(f"Cannot build transformation {src} -> {dst}: {exc}") from exc

    def transform(self, x: float, y: float) -> Tuple[float, float]:
        """Transform one coordinate pair.

        Raises:
            ProjectionError: if the transformation fails or yields a non-finite value.
        """
        from pyproj.exceptions import ProjError

        try:
            tx, ty = self._t.transform(x, y, errcheck=True)
        except ProjError as exc:
            raise ProjectionError(f"Could not transform ({x}, {y}): {exc}") from exc
        if not (math.isfinite(tx) and math.isfinite(ty)):
            raise ProjectionError(f"Transformation of ({x}, {y}) is outside the projection's domain")
        return tx, ty


class ProjectionService:
    """The two projection questions the georeferencer asks."""

    def to_geographic(self, local_crs, easting: float, northing: float) -> Tuple[float, float]:
        """Convert a projected coordinate to WGS84.

        Returns:
            (latitude, longitude) in decimal degrees.
        """
        lon, lat = CoordTransformer(local_crs, WGS84).transform(easting, northing)
        return lat, lon

    def convergence_and_grid_scale_factor(self, local_crs, lat: float, lon: float) -> Tuple[float, float]:
        """Meridian convergence (radians) and grid scale factor at (lat, lon).

        A north-south and an east-west baseline of BASELINE metres, centred on
        the point in an oblique stereographic projection, are projected into
        the local grid. Their images give the local grid's rotation and scale.

        Raises:
            ProjectionError: if the projected baselines are degenerate.
        """
        baseline_crs = f"+proj=sterea +lat_0={lat} +lon_0={lon} +ellps=WGS84 +units=m"
        t = CoordTransformer(baseline_crs, local_crs)

        half = BASELINE / 2.0
        m0 = t.transform(0.0, -half)
        m1 = t.transform(0.0, half)
        p0 = t.transform(-half, 0.0)
        p1 = t.transform(half, 0.0)

        mx, my = (m1[0] - m0[0]) / BASELINE, (m1[1] - m0[1]) / BASELINE
        px, py = (p1[0] - p0[0]) / BASELINE, (p1[1] - p0[1]) / BASELINE

        determinant = px * my - py * mx
        if determinant < MIN_DETERMINANT:
            raise ProjectionError(f"Degenerate local grid at ({lat}, {lon}), determinant {determinant}")

        convergence = math.atan2(py - mx, px + my)
        grid_scale_factor = math.sqrt(determinant)
        logger.debug("Convergence %.6f rad, grid scale factor %.9f at (%f, %f)",
                     convergence, grid_scale_factor, lat, lon)
        return convergence, grid_scale_factor
