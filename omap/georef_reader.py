"""Read a <georeferencing> element back into GeoRefParameters.

The .omap format stores declination and grivation in degrees; this module
converts them to radians so the rest of the package always works in radians.
"""

import logging
import math
import xml.etree.ElementTree as ET
from typing import Optional

from .crs import parse_crs
from .errors import ParseFormatError
from .models import GeoRefParameters, Scale

logger = logging.getLogger(__name__)


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child(element: ET.Element, name: str) -> Optional[ET.Element]:
    for child in element:
        if _local(child.tag) == name:
            return child
    return None


def _float(element: ET.Element, name: str, default: float) -> float:
    raw = element.get(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ParseFormatError(f"Invalid {name} value in <{_local(element.tag)}>: {raw!r}") from None


def read_georeferencing(xml_text: str) -> GeoRefParameters:
    """Parse a serialized <georeferencing> element.

    Args:
        xml_text: The element's XML, with or without the Mapper namespace.

    Raises:
        ParseFormatError: for malformed XML, an unsupported scale or an invalid CRS.
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        raise ParseFormatError(f"Malformed georeferencing element: {exc}") from exc
    if _local(root.tag) != "georeferencing":
        raise ParseFormatError(f"Expected <georeferencing>, got <{_local(root.tag)}>")

    try:
        scale = Scale.from_denominator(int(root.get("scale", "")))
    except ValueError as exc:
        raise ParseFormatError(f"Unsupported map scale: {root.get('scale')!r}") from exc

    crs = None
    ref_point = (0.0, 0.0)
    projected = _child(root, "projected_crs")
    if projected is not None:
        spec = _child(projected, "spec")
        parameter = _child(projected, "parameter")
        crs = parse_crs(
            projected.get("id", ""),
            spec.text if spec is not None else None,
            parameter.text if parameter is not None else None,
        )
        point = _child(projected, "ref_point")
        if point is not None:
            ref_point = (_float(point, "x", 0.0), _float(point, "y", 0.0))

    geo_ref_point = None
    geographic = _child(root, "geographic_crs")
    if geographic is not None:
        point = _child(geographic, "ref_point_deg")
        if point is not None:
            geo_ref_point = (_float(point, "lat", 0.0), _float(point, "lon", 0.0))

    if crs is not None and not crs.is_local and geo_ref_point is None:
        raise ParseFormatError("Georeferenced map without a geographic reference point")

    return GeoRefParameters(
        scale=scale,
        combined_scale_factor=_float(root, "grid_scale_factor", 1.0),
        elevation_scale_factor=_float(root, "auxiliary_scale_factor", 1.0),
        declination=math.radians(_float(root, "declination", 0.0)),
        grivation=math.radians(_float(root, "grivation", 0.0)),
        crs=crs,
        ref_point=ref_point,
        geo_ref_point=geo_ref_point,
    )
