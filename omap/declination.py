"""Magnetic declination (World Magnetic Model via pygeomag) and elevation scale factor."""

import datetime
import logging
import math
from typing import Optional

from .errors import GeomagneticError

logger = logging.getLogger(__name__)

# WGS84 ellipsoid
R_EQUATOR = 6_378_137.0
FLATTENING = 1.0 / 298.257223563


def decimal_year(day: datetime.date) -> float:
    start = datetime.date(day.year, 1, 1)
    days_in_year = (datetime.date(day.year + 1, 1, 1) - start).days
    return day.year + (day - start).days / days_in_year


class GeomagneticService:
    """Declination lookups against the World Magnetic Model bundled with pygeomag."""

    def __init__(self):
        self._geomag = None

    def _model(self):
        if self._geomag is None:
            from pygeomag import GeoMag
            self._geomag = GeoMag()
        return self._geomag

    def declination(self, lat: float, lon: float, elevation: float = 0.0,
                    day: Optional[datetime.date] = None) -> float:
        """Magnetic declination in radians, positive east.

        Args:
            lat, lon:  WGS84 position in decimal degrees.
            elevation: Metres above sea level.
            day:       Date of the declination; today when omitted.

        Raises:
            GeomagneticError: if the model cannot be evaluated.
        """
        when = decimal_year(day or datetime.date.today())
        alt_km = elevation / 1000.0
        try:
            model = self._model()
            try:
                result = model.calculate(glat=lat, glon=lon, alt=alt_km, time=when)
            except ValueError:
                logger.warning("Date %.3f is outside the magnetic model's lifespan, extrapolating", when)
                result = model.calculate(glat=lat, glon=lon, alt=alt_km, time=when,
                                         allow_date_outside_lifespan=True)
        except Exception as exc:
            raise GeomagneticError(f"Could not compute declination at ({lat}, {lon}): {exc}") from exc

        if not math.isfinite(result.d):
            raise GeomagneticError(f"Declination at ({lat}, {lon}) is undefined")
        return math.radians(result.d)


def elevation_scale_factor(lat: float, elevation: Optional[float]) -> float:
    """R / (R + h) with R the WGS84 radius at latitude *lat* (degrees); 1 without elevation."""
    if elevation is None:
        return 1.0
    radius = R_EQUATOR * (1.0 - FLATTENING * math.sin(math.radians(lat)) ** 2)
    return radius / (radius + elevation)
