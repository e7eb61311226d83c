"""Derive a map's geo-reference parameters and render the <georeferencing> block.

The .omap format stores angles in degrees; GeoRefParameters keeps radians,
so this module converts at the XML boundary.

Two derivation strategies share one interface:

  GeoReferencer          asks the projection and geomagnetic services.
  DisabledGeoReferencer  accepts local maps only and rejects any CRS.

Neither falls back to local space when a CRS was given: a failure is raised.
"""

import datetime
import logging
import math
from typing import Optional

from .config import WriterSettings
from .crs import GEOGRAPHIC_PROJ, projected_crs_xml, to_pyproj
from .declination import GeomagneticService, elevation_scale_factor
from .errors import DisabledGeoReferencingFeature
from .models import Coord, Crs, GeoRefParameters, Scale
from .projection import ProjectionService
from .serialize import format_number

logger = logging.getLogger(__name__)


def local_parameters(scale: Scale, ref_point: Coord) -> GeoRefParameters:
    """Identity parameters: no rotation, no scale correction, no CRS."""
    return GeoRefParameters(scale=scale, ref_point=(float(ref_point[0]), float(ref_point[1])))


class DisabledGeoReferencer:
    """Stand-in used when geo-referencing is switched off."""

    enabled = False

    def derive(self, scale: Scale, ref_point: Coord, crs: Optional[Crs] = None,
               elevation: Optional[float] = None) -> GeoRefParameters:
        """Return local parameters.

        Raises:
            DisabledGeoReferencingFeature: if a (non-local) CRS is given.
        """
        if crs is not None and not crs.is_local:
            raise DisabledGeoReferencingFeature()
        return local_parameters(scale, ref_point)


class GeoReferencer:
    """Derives declination, convergence and scale factors for a projected map.

    Args:
        settings:    epsg.io fallback switch and HTTP timeout.
        projection:  Object with to_geographic() and
                     convergence_and_grid_scale_factor(); pyproj by default.
        geomagnetic: Object with declination(); pygeomag by default.
        day:         Date used for the declination; today when omitted.
    """

    enabled = True

    def __init__(self, settings: Optional[WriterSettings] = None, projection=None, geomagnetic=None,
                 day: Optional[datetime.date] = None):
        self.settings = settings or WriterSettings()
        self.projection = projection or ProjectionService()
        self.geomagnetic = geomagnetic or GeomagneticService()
        self.day = day

    def resolve_crs(self, crs: Crs):
        return to_pyproj(crs, self.settings.epsg_io_fallback, self.settings.http_timeout)

    def derive(self, scale: Scale, ref_point: Coord, crs: Optional[Crs] = None,
               elevation: Optional[float] = None) -> GeoRefParameters:
        """Compute the parameters for a map centred on *ref_point*.

        Raises:
            ProjectionError: if the CRS cannot be resolved or the projection fails.
            GeomagneticError: if the declination lookup fails.
        """
        if crs is None or crs.is_local:
            return local_parameters(scale, ref_point)

        local_crs = self.resolve_crs(crs)
        lat, lon = self.projection.to_geographic(local_crs, ref_point[0], ref_point[1])
        declination = self.geomagnetic.declination(lat, lon, elevation or 0.0, self.day)
        convergence, grid_scale_factor = self.projection.convergence_and_grid_scale_factor(local_crs, lat, lon)
        elevation_factor = elevation_scale_factor(lat, elevation)

        params = GeoRefParameters(
            scale=scale,
            combined_scale_factor=grid_scale_factor * elevation_factor,
            elevation_scale_factor=elevation_factor,
            declination=declination,
            grivation=declination - convergence,
            crs=crs,
            ref_point=(float(ref_point[0]), float(ref_point[1])),
            geo_ref_point=(lat, lon),
        )
        logger.debug(
            "Geo-reference at (%f, %f): declination %.4f deg, grivation %.4f deg, combined scale factor %.9f",
            lat, lon, math.degrees(params.declination), math.degrees(params.grivation),
            params.combined_scale_factor,
        )
        return params


def georeferencer_for(settings: WriterSettings, **kwargs):
    """GeoReferencer or DisabledGeoReferencer depending on settings.geo_referencing."""
    if settings.geo_referencing:
        return GeoReferencer(settings, **kwargs)
    return DisabledGeoReferencer()


def georeferencing_xml(params: GeoRefParameters) -> str:
    """The <georeferencing> element, newline terminated."""
    head = (
        f'<georeferencing scale="{params.scale}"'
        f' grid_scale_factor="{format_number(params.combined_scale_factor)}"'
        f' auxiliary_scale_factor="{format_number(params.elevation_scale_factor)}"'
        f' declination="{format_number(math.degrees(params.declination))}"'
        f' grivation="{format_number(math.degrees(params.grivation))}">'
    )
    body = projected_crs_xml(params.crs, params.ref_point)
    if not params.is_local:
        lat, lon = params.geo_ref_point
        body += (
            f'<geographic_crs id="Geographic coordinates"><spec language="PROJ.4">{GEOGRAPHIC_PROJ}</spec>'
            f'<ref_point_deg lat="{format_number(lat)}" lon="{format_number(lon)}"/></geographic_crs>'
        )
    return head + body + "</georeferencing>\n"
