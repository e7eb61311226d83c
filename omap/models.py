"""Data models for the omap writer and editor.

Coordinates handed to the writer are planar ground coordinates (usually
metres in the map's projected CRS) relative to the map's reference point.
Angles are kept in radians internally; the .omap georeferencing block stores
degrees, and the writer/reader convert at the XML boundary.
"""

import enum
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union

from .errors import MismatchedGeometry

Coord = Tuple[float, float]
LineString = List[Coord]


class Scale(enum.Enum):
    """Map scale (ground:paper)."""
    S10_000 = 10_000
    S15_000 = 15_000

    def __str__(self) -> str:
        return str(self.value)

    @property
    def map_scale_factor(self) -> float:
        """Map units (1/1000 mm on paper) per ground metre."""
        # 1000 mu = 1 mm on paper = denominator / 1000 metres on the ground
        return 1_000.0 / (self.value / 1_000.0)

    @classmethod
    def from_denominator(cls, value: int) -> "Scale":
        for scale in cls:
            if scale.value == value:
                return scale
        raise ValueError(f"Unsupported map scale 1:{value}")


class CrsKind(enum.Enum):
    LOCAL = "Local"
    EPSG = "EPSG"
    PROJ = "PROJ.4"
    GAUSS_KRUEGER = "Gauss-Krueger, datum: Potsdam"
    UTM = "UTM"


@dataclass(frozen=True)
class Crs:
    """Projected CRS descriptor.

    value holds the EPSG code (int), the PROJ string (str), the Gauss-Krüger
    zone (int) or the UTM zone (int, negative for the southern hemisphere).
    """
    kind: CrsKind
    value: Union[int, str, None] = None

    @classmethod
    def local(cls) -> "Crs":
        return cls(CrsKind.LOCAL)

    @classmethod
    def epsg(cls, code: int) -> "Crs":
        return cls(CrsKind.EPSG, int(code))

    @classmethod
    def proj(cls, proj_string: str) -> "Crs":
        return cls(CrsKind.PROJ, proj_string.strip())

    @classmethod
    def gauss_krueger(cls, zone: int) -> "Crs":
        return cls(CrsKind.GAUSS_KRUEGER, int(zone))

    @classmethod
    def utm(cls, zone: int) -> "Crs":
        return cls(CrsKind.UTM, int(zone))

    @property
    def is_local(self) -> bool:
        return self.kind is CrsKind.LOCAL


@dataclass
class GeoRefParameters:
    """Everything the map needs to know about where it sits on the earth.

    Angles are radians, factors are dimensionless. combined_scale_factor is
    grid scale factor times elevation scale factor; it is what the
    georeferencing block calls grid_scale_factor, while the elevation scale
    factor alone is written as auxiliary_scale_factor.
    """
    scale: Scale = Scale.S15_000
    combined_scale_factor: float = 1.0
    elevation_scale_factor: float = 1.0
    declination: float = 0.0
    grivation: float = 0.0
    crs: Optional[Crs] = None
    ref_point: Coord = (0.0, 0.0)
    geo_ref_point: Optional[Coord] = None  # (lat, lon) in degrees

    def __post_init__(self):
        if self.crs is not None and self.crs.is_local:
            self.crs = None
        if self.crs is not None and self.geo_ref_point is None:
            raise ValueError("A geographic reference point is required when a CRS is set")

    @property
    def convergence(self) -> float:
        return self.declination - self.grivation

    @property
    def grid_scale_factor(self) -> float:
        return self.combined_scale_factor / self.elevation_scale_factor

    @property
    def is_local(self) -> bool:
        return self.crs is None


# ---------------------------------------------------------------------------
# Geometry primitives
# ---------------------------------------------------------------------------

@dataclass
class Polygon:
    """Exterior ring plus zero or more holes; rings are closed vertex lists."""
    exterior: LineString
    interiors: List[LineString] = field(default_factory=list)

    def rings(self) -> List[LineString]:
        return [self.exterior] + list(self.interiors)

    def num_coords(self) -> int:
        return sum(len(ring) for ring in self.rings())


@dataclass
class WrapBox:
    """Text box anchored at its centre, width/height in ground units."""
    anchor: Coord
    width: float
    height: float


TextGeometry = Union[Coord, WrapBox]
Geometry = Union[Coord, LineString, Polygon, WrapBox]


def is_closed(line: Sequence[Coord]) -> bool:
    return len(line) > 1 and tuple(line[0]) == tuple(line[-1])


def is_coord(value) -> bool:
    return (
        isinstance(value, (tuple, list))
        and len(value) == 2
        and all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in value)
    )


def as_point(geometry: Geometry) -> Coord:
    if not is_coord(geometry):
        raise MismatchedGeometry(f"Expected a point, got {type(geometry).__name__}")
    return float(geometry[0]), float(geometry[1])


def as_line_string(geometry: Geometry) -> LineString:
    if isinstance(geometry, (Polygon, WrapBox)) or is_coord(geometry):
        raise MismatchedGeometry(f"Expected a line string, got {type(geometry).__name__}")
    try:
        coords = [as_point(c) for c in geometry]
    except TypeError:
        raise MismatchedGeometry(f"Expected a line string, got {type(geometry).__name__}") from None
    if len(coords) < 2:
        raise MismatchedGeometry("A line string needs at least 2 coordinates")
    return coords


def as_polygon(geometry: Geometry) -> Polygon:
    """Return *geometry* as a Polygon, closing an open exterior ring."""
    if isinstance(geometry, Polygon):
        return geometry
    ring = as_line_string(geometry)
    if not is_closed(ring):
        ring.append(ring[0])
    if len(ring) < 4:
        raise MismatchedGeometry("A polygon needs at least 3 distinct coordinates")
    return Polygon(ring)


def as_text_geometry(geometry: Geometry) -> TextGeometry:
    if isinstance(geometry, WrapBox):
        return geometry
    return as_point(geometry)


def signed_area(ring: Sequence[Coord]) -> float:
    """Shoelace area; positive for counter-clockwise rings."""
    if len(ring) < 3:
        return 0.0
    area = 0.0
    for (x0, y0), (x1, y1) in zip(ring, ring[1:]):
        area += x0 * y1 - y0 * x1
    return 0.5 * area


def distance(a: Coord, b: Coord) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])
