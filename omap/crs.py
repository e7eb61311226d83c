"""CRS descriptors: PROJ strings, .omap XML blocks and pyproj resolution.

Resolution strategy (in priority order):
  1. pyproj.CRS: local, no network, covers all well-known EPSG codes.
  2. epsg.io: fallback for EPSG codes the local PROJ database lacks;
     the PROJ.4 definition is fetched and handed to pyproj.

The zone numbers of Gauss-Krüger and UTM descriptors are validated
explicitly; a malformed zone is a ParseFormatError, never a guess.
"""

import logging
import re
from typing import Optional
from xml.sax.saxutils import escape

from .errors import ParseFormatError, ProjectionError
from .models import Coord, Crs, CrsKind
from .serialize import format_number

logger = logging.getLogger(__name__)

MIN_ZONE = 1
MAX_ZONE = 60

# EPSG codes recognised inside a "+init=epsg:N" PROJ string
MIN_EPSG_CODE = 1024
MAX_EPSG_CODE = 32767

GEOGRAPHIC_PROJ = "+proj=latlong +datum=WGS84"

_INIT_EPSG = re.compile(r"\+init=epsg:(\d+)", re.IGNORECASE)
_UTM_PARAMETER = re.compile(r"^\s*(\d{1,2})\s*([NS])\s*$", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Descriptor → text
# ---------------------------------------------------------------------------

def proj_string(crs: Crs) -> Optional[str]:
    """PROJ.4 definition of *crs*, None for local space."""
    if crs is None or crs.kind is CrsKind.LOCAL:
        return None
    if crs.kind is CrsKind.EPSG:
        return f"+init=epsg:{crs.value}"
    if crs.kind is CrsKind.PROJ:
        return crs.value
    if crs.kind is CrsKind.GAUSS_KRUEGER:
        zone = crs.value
        return (f"+proj=tmerc +lat_0=0 +lon_0={3 * zone} +k=1.000000 +x_0={500_000 + zone * 1_000_000} "
                f"+y_0=0 +ellps=bessel +datum=potsdam +units=m +no_defs")
    if crs.kind is CrsKind.UTM:
        south = " +south" if crs.value < 0 else ""
        return f"+proj=utm +datum=WGS84 +zone={abs(crs.value)}{south}"
    raise ValueError(f"Unknown CRS kind: {crs.kind}")


def epsg_code(crs: Crs) -> Optional[int]:
    """EPSG code of *crs*, also when given as a "+init=epsg:N" PROJ string."""
    if crs is None:
        return None
    if crs.kind is CrsKind.EPSG:
        return crs.value
    if crs.kind is CrsKind.PROJ:
        m = _INIT_EPSG.search(crs.value)
        if m:
            code = int(m.group(1))
            if MIN_EPSG_CODE <= code <= MAX_EPSG_CODE:
                return code
    return None


def parameter_text(crs: Crs) -> str:
    if crs.kind is CrsKind.UTM:
        return f"{abs(crs.value)} {'N' if crs.value > 0 else 'S'}"
    return str(crs.value)


def projected_crs_xml(crs: Optional[Crs], ref_point: Coord) -> str:
    """The complete <projected_crs> element."""
    point = f'<ref_point x="{format_number(ref_point[0])}" y="{format_number(ref_point[1])}"/>'
    if crs is None or crs.is_local:
        return f'<projected_crs id="Local">{point}</projected_crs>'
    return (f'<projected_crs id="{escape(crs.kind.value)}">'
            f'<spec language="PROJ.4">{escape(proj_string(crs))}</spec>'
            f'<parameter>{escape(parameter_text(crs))}</parameter>'
            f'{point}</projected_crs>')


# ---------------------------------------------------------------------------
# Text → descriptor
# ---------------------------------------------------------------------------

def _zone(text: str, what: str) -> int:
    try:
        zone = int(text.strip())
    except (AttributeError, ValueError):
        raise ParseFormatError(f"Invalid {what} zone: {text!r}") from None
    if not MIN_ZONE <= zone <= MAX_ZONE:
        raise ParseFormatError(f"{what} zone out of range {MIN_ZONE}-{MAX_ZONE}: {zone}")
    return zone


def parse_crs(crs_id: str, spec: Optional[str], parameter: Optional[str]) -> Crs:
    """Build a descriptor from the parts of a <projected_crs> element.

    Raises:
        ParseFormatError: for an unusable EPSG code or zone.
    """
    crs_id = (crs_id or "").strip()
    if crs_id == CrsKind.LOCAL.value or not crs_id:
        return Crs.local()
    if crs_id == CrsKind.EPSG.value:
        text = (parameter or "").strip()
        if not text and spec:
            m = _INIT_EPSG.search(spec)
            text = m.group(1) if m else ""
        if not text.isdigit() or int(text) == 0:
            raise ParseFormatError(f"Invalid EPSG code: {parameter!r}")
        return Crs.epsg(int(text))
    if crs_id == CrsKind.GAUSS_KRUEGER.value:
        return Crs.gauss_krueger(_zone(parameter, "Gauss-Krueger"))
    if crs_id == CrsKind.UTM.value:
        m = _UTM_PARAMETER.match(parameter or "")
        if not m:
            raise ParseFormatError(f"Invalid UTM zone: {parameter!r}")
        zone = _zone(m.group(1), "UTM")
        return Crs.utm(zone if m.group(2).upper() == "N" else -zone)
    # "PROJ.4" and any id Mapper may add later: the spec text is authoritative
    text = (spec or parameter or "").strip()
    if not text:
        raise ParseFormatError(f"Projected CRS {crs_id!r} has no PROJ.4 definition")
    return Crs.proj(text)


# ---------------------------------------------------------------------------
# Descriptor → pyproj.CRS
# ---------------------------------------------------------------------------

_EPSG_IO_BASE = "https://epsg.io/{code}.proj4"


def to_pyproj(crs: Crs, epsg_io_fallback: bool = True, timeout: float = 6.0):
    """Resolve *crs* to a pyproj.CRS.

    Raises:
        ProjectionError: if neither pyproj nor epsg.io can resolve it.
    """
    from pyproj import CRS
    from pyproj.exceptions import CRSError

    code = epsg_code(crs)
    try:
        if code is not None:
            return CRS.from_epsg(code)
        return CRS.from_proj4(proj_string(crs))
    except CRSError as exc:
        if code is None or not epsg_io_fallback:
            raise ProjectionError(f"Could not resolve CRS {proj_string(crs)!r}: {exc}") from exc

    logger.warning("EPSG:%d unknown to the local PROJ database, asking epsg.io", code)
    definition = _fetch_epsg_io(code, timeout)
    try:
        return CRS.from_proj4(definition)
    except CRSError as exc:
        raise ProjectionError(f"epsg.io returned an unusable definition for EPSG:{code}") from exc


def _fetch_epsg_io(code: int, timeout: float) -> str:
    import requests

    try:
        resp = requests.get(_EPSG_IO_BASE.format(code=code), timeout=timeout)
    except requests.RequestException as exc:
        raise ProjectionError(f"EPSG:{code} lookup on epsg.io failed: {exc}") from exc
    if resp.status_code != 200:
        raise ProjectionError(f"EPSG:{code} could not be resolved by pyproj or epsg.io (HTTP {resp.status_code})")
    definition = resp.text.strip()
    if not definition.startswith("+"):
        raise ProjectionError(f"EPSG:{code} could not be resolved by pyproj or epsg.io")
    return definition
