"""Format constants and writer settings.

Constants describe the .omap format and never change at runtime. The
WriterSettings dataclass carries the tunable defaults; build one directly or
with WriterSettings.from_env() to pick up OMAP_* environment variables:

  OMAP_LINE_BEZIER_ERROR   max curve-fit deviation for line objects (ground units)
  OMAP_AREA_BEZIER_ERROR   max curve-fit deviation for area objects (ground units)
  OMAP_GEO_REFERENCING     "0"/"false"/"no"/"off" disables geo-referencing
  OMAP_EPSG_IO_FALLBACK    "0"/"false"/"no"/"off" disables the epsg.io lookup
  OMAP_HTTP_TIMEOUT        epsg.io request timeout in seconds
"""

import os
from dataclasses import dataclass
from typing import Optional

FILE_EXTENSION = "omap"
DEFAULT_FILENAME = "auto_generated_map.omap"

OMAP_NAMESPACE = "http://openorienteering.org/apps/mapper/xml/v2"
OMAP_VERSION = 9

# Tolerances below this are treated as "do not curve fit".
MIN_BEZIER_ERROR = 0.1

# Map units are 1/1000 mm on paper, stored as signed 32-bit integers.
MAX_MAP_UNIT = 2 ** 31 - 1

ENV_PREFIX = "OMAP_"


def parse_env_bool(name: str) -> Optional[bool]:
    raw = os.environ.get(name)
    if raw is None:
        return None
    normalized = raw.strip().lower()
    if normalized in ("1", "true", "yes", "on"):
        return True
    if normalized in ("0", "false", "no", "off"):
        return False
    return None


def parse_env_float(name: str) -> Optional[float]:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return None
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass
class WriterSettings:
    """Defaults used by Omap when the caller does not pass explicit values."""
    default_filename: str = DEFAULT_FILENAME
    line_bezier_error: Optional[float] = None
    area_bezier_error: Optional[float] = None
    geo_referencing: bool = True
    epsg_io_fallback: bool = True
    http_timeout: float = 6.0

    @classmethod
    def from_env(cls) -> "WriterSettings":
        settings = cls()
        line_error = parse_env_float(ENV_PREFIX + "LINE_BEZIER_ERROR")
        if line_error is not None:
            settings.line_bezier_error = line_error
        area_error = parse_env_float(ENV_PREFIX + "AREA_BEZIER_ERROR")
        if area_error is not None:
            settings.area_bezier_error = area_error
        geo_ref = parse_env_bool(ENV_PREFIX + "GEO_REFERENCING")
        if geo_ref is not None:
            settings.geo_referencing = geo_ref
        fallback = parse_env_bool(ENV_PREFIX + "EPSG_IO_FALLBACK")
        if fallback is not None:
            settings.epsg_io_fallback = fallback
        timeout = parse_env_float(ENV_PREFIX + "HTTP_TIMEOUT")
        if timeout is not None:
            settings.http_timeout = timeout
        return settings
