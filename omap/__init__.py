"""Write and edit geo-referenced OpenOrienteering Mapper (.omap) maps.

Typical use::

    from omap import Omap, Scale, AreaSymbol, AreaObject, Polygon

    m = Omap((463_562.5, 6_833_872.7), Scale.S15_000, crs=3006)
    m.add_object(AreaObject(Polygon([(0, 0), (50, 0), (50, 50), (0, 0)]), AreaSymbol.OPEN_LAND))
    m.write_to_file("out", bezier_error=1.0)
"""

import logging

from .bezier import BezierError, BezierSegment
from .config import WriterSettings
from .editor import EditorObject, MapPart, OmapEditor, SymbolInfo
from .errors import (CoordinateOverflow, DegenerateGeometry, DisabledGeoReferencingFeature, GeomagneticError,
                     InvalidCoordinate, MapPartMergeError, MismatchedGeometry, MismatchingSymbolAndObject,
                     ObjectConsumedError, OmapError, ParseFormatError, ProjectionError)
from .georef_writer import DisabledGeoReferencer, GeoReferencer
from .models import Coord, Crs, CrsKind, GeoRefParameters, LineString, Polygon, Scale, WrapBox
from .objects import (AreaObject, HorizontalAlign, LineObject, MapObject, PointObject, TextObject, VerticalAlign,
                      object_for)
from .omap import Omap
from .symbols import AreaSymbol, LineSymbol, PointSymbol, SymbolKind, TextSymbol, symbol_from_id
from .transform import Transform

__version__ = "0.3.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())
