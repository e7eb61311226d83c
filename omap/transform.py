"""Fixed-point transform from ground coordinates to .omap map units.

A map unit is 1/1000 mm on paper. Converting a ground offset (relative to
the map's reference point) means rotating it by the grivation, scaling it by
the map scale divided by the combined scale factor, flipping the y axis and
rounding to an integer. Map units are stored as signed 32-bit integers, so a
result outside that range is an error rather than a silently wrapped value.
"""

import math
from dataclasses import dataclass, field
from typing import Tuple

from .config import MAX_MAP_UNIT
from .errors import CoordinateOverflow
from .models import Coord, GeoRefParameters, Scale


def round_half_away(value: float) -> float:
    return math.copysign(math.floor(abs(value) + 0.5), value)


@dataclass(frozen=True)
class Transform:
    """Immutable ground → map unit transform.

    The default instance (grivation 0, scale factor 1) reduces to
    "round, negate y".
    """
    grivation: float = 0.0
    scale_factor: float = 1.0
    _sin: float = field(init=False, repr=False, compare=False)
    _cos: float = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "_sin", math.sin(self.grivation))
        object.__setattr__(self, "_cos", math.cos(self.grivation))

    @classmethod
    def from_scale(cls, scale: Scale, combined_scale_factor: float = 1.0, grivation: float = 0.0) -> "Transform":
        return cls(grivation, scale.map_scale_factor / combined_scale_factor)

    @classmethod
    def from_georef(cls, params: GeoRefParameters) -> "Transform":
        return cls.from_scale(params.scale, params.combined_scale_factor, params.grivation)

    def to_map_units(self, coord: Coord) -> Tuple[int, int]:
        """Convert a ground offset to integer map units.

        Raises:
            CoordinateOverflow: if either axis leaves the signed 32-bit range.
        """
        x, y = coord
        rx = x * self._cos - y * self._sin
        ry = x * self._sin + y * self._cos

        sx = rx * self.scale_factor
        sy = ry * self.scale_factor
        # infinities and NaN cannot be rounded
        if not (math.isfinite(sx) and math.isfinite(sy)):
            raise CoordinateOverflow(sx, -sy)

        mx = round_half_away(sx)
        my = -round_half_away(sy)
        if not (abs(mx) <= MAX_MAP_UNIT and abs(my) <= MAX_MAP_UNIT):
            raise CoordinateOverflow(mx, my)
        return int(mx), int(my)

    def to_map_distance(self, dist: float) -> int:
        """Scale a ground length to map units (no rotation)."""
        scaled = dist * self.scale_factor
        if not math.isfinite(scaled):
            raise CoordinateOverflow(scaled, 0.0)
        value = round_half_away(scaled)
        if not abs(value) <= MAX_MAP_UNIT:
            raise CoordinateOverflow(value, 0.0)
        return int(value)

    def to_ground(self, map_coord: Tuple[float, float]) -> Coord:
        """Inverse of to_map_units, without the rounding."""
        u = map_coord[0] / self.scale_factor
        v = -map_coord[1] / self.scale_factor
        return (u * self._cos + v * self._sin, -u * self._sin + v * self._cos)

    def to_ground_distance(self, dist: float) -> float:
        return dist / self.scale_factor
