"""Exception hierarchy for the omap package.

Every error raised on purpose by this package derives from OmapError, so a
caller can catch the whole family with one clause. Failures of the external
collaborators (pyproj, the geomagnetic model, epsg.io) are wrapped and
chained with ``raise ... from exc`` so the original cause stays visible.

Filesystem failures are not wrapped: they propagate as the built-in OSError.
"""


class OmapError(Exception):
    """Base class for all omap errors."""


class CoordinateOverflow(OmapError):
    """A transformed coordinate does not fit in a signed 32-bit map unit."""

    def __init__(self, x: float, y: float):
        super().__init__(f"Map coordinate overflow: ({x}, {y}) exceeds the 32-bit map unit range")
        self.x = x
        self.y = y


class MismatchedGeometry(OmapError, TypeError):
    """A geometry primitive was used as the wrong kind (e.g. point as polygon)."""


class MismatchingSymbolAndObject(OmapError, TypeError):
    """A symbol of the wrong geometry kind was assigned to an object."""


class DegenerateGeometry(OmapError, ValueError):
    """A vertex sequence is empty or too short to be serialized."""


class ProjectionError(OmapError):
    """The map projection service failed."""


class GeomagneticError(OmapError):
    """The geomagnetic model could not provide a declination."""


class DisabledGeoReferencingFeature(OmapError):
    """A CRS was supplied but geo-referencing is disabled."""

    def __init__(self, message: str = "The geo-referencing feature is disabled, a CRS cannot be used"):
        super().__init__(message)


class ParseFormatError(OmapError):
    """An .omap file could not be parsed."""


class InvalidCoordinate(ParseFormatError):
    """A coordinate token stream is malformed."""


class ObjectConsumedError(OmapError):
    """An object or map was used after it has been written."""


class MapPartMergeError(OmapError, IndexError):
    """Map part indices are equal or out of range."""

    def __init__(self, message: str = "Could not merge map parts. Check that the indices are different and in range"):
        super().__init__(message)
