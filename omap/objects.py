"""Geometry objects: one geometry primitive, one symbol, tags.

Each object renders itself as a complete ``<object>`` element with write().
Writing consumes the object: afterwards every mutating call, and a second
write, raise ObjectConsumedError. Rotations are stored as given and only
compounded with the map's grivation at write time, so the same object
written against two differently georeferenced maps gets two different
on-disk rotations.
"""

import enum
import logging
from typing import BinaryIO, Dict, Optional
from xml.sax.saxutils import escape, quoteattr

from .errors import MismatchingSymbolAndObject, ObjectConsumedError
from .models import (Coord, Geometry, LineString, Polygon, TextGeometry, WrapBox, as_line_string,
                     as_point, as_polygon, as_text_geometry, is_closed)
from .serialize import format_number, serialize_bezier, serialize_polyline
from .symbols import AreaSymbol, LineSymbol, PointSymbol, Symbol, SymbolKind, TextSymbol
from .transform import Transform

logger = logging.getLogger(__name__)

ELEVATION_TAG = "Elevation"


def tags_xml(tags: Dict[str, str]) -> str:
    """The <tags> element, empty string when there are no tags."""
    if not tags:
        return ""
    items = "".join(f"<t k={quoteattr(k)}>{escape(v)}</t>" for k, v in tags.items())
    return f"<tags>{items}</tags>"


class HorizontalAlign(enum.IntEnum):
    LEFT = 0
    CENTER = 1
    RIGHT = 2


class VerticalAlign(enum.IntEnum):
    BASELINE = 0
    TOP = 1
    CENTER = 2
    BOTTOM = 3


class MapObject:
    """Common behaviour of the four object kinds."""

    kind: SymbolKind

    def __init__(self, symbol: Symbol, tags: Optional[Dict[str, str]] = None):
        self._check_symbol(symbol)
        self._symbol = symbol
        self._tags: Dict[str, str] = dict(tags or {})
        self._consumed = False

    # ------------------------------------------------------------------
    # Symbol and tags
    # ------------------------------------------------------------------

    @property
    def consumed(self) -> bool:
        return self._consumed

    @property
    def symbol(self) -> Symbol:
        return self._symbol

    @property
    def tags(self) -> Dict[str, str]:
        return dict(self._tags)

    def _check_symbol(self, symbol) -> None:
        if getattr(symbol, "kind", None) is not self.kind:
            raise MismatchingSymbolAndObject(
                f"{type(self).__name__} needs a {self.kind.value} symbol, got {symbol!r}"
            )

    def _ensure_alive(self) -> None:
        if self._consumed:
            raise ObjectConsumedError(f"{type(self).__name__} has already been written")

    def change_symbol(self, symbol: Symbol) -> None:
        """Replace the symbol; the object is left unchanged if the kind does not match."""
        self._ensure_alive()
        self._check_symbol(symbol)
        self._symbol = symbol

    def add_tag(self, key: str, value: str) -> None:
        self._ensure_alive()
        self._tags[str(key)] = str(value)

    def add_elevation_tag(self, elevation: float) -> None:
        self.add_tag(ELEVATION_TAG, f"{elevation:.2f}")

    @property
    def elevation(self) -> Optional[float]:
        raw = self._tags.get(ELEVATION_TAG)
        return None if raw is None else float(raw)

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def _special_attributes(self, transform: Transform) -> str:
        return ""

    def _body(self, bezier_error: Optional[float], transform: Transform) -> str:
        raise NotImplementedError

    def to_bytes(self, bezier_error: Optional[float], transform: Transform) -> bytes:
        """Render the complete element without consuming the object."""
        self._ensure_alive()
        head = f'<object type="{self.kind.object_type}" symbol="{self._symbol.id}"{self._special_attributes(transform)}>'
        body = self._body(bezier_error, transform)
        return (head + tags_xml(self._tags) + body + "</object>\n").encode("utf-8")

    def write(self, sink: BinaryIO, bezier_error: Optional[float], transform: Transform) -> None:
        """Write the element to *sink* and consume the object.

        Nothing reaches the sink if serialization fails (e.g. CoordinateOverflow);
        the object is consumed either way.
        """
        try:
            data = self.to_bytes(bezier_error, transform)
        finally:
            self._consumed = True
        sink.write(data)


def coords_element(data: bytes, count: int) -> str:
    return f'<coords count="{count}">{data.decode("ascii")}</coords>'


class PointObject(MapObject):
    kind = SymbolKind.POINT

    def __init__(self, point: Coord, symbol: PointSymbol, rotation: float = 0.0,
                 tags: Optional[Dict[str, str]] = None):
        super().__init__(symbol, tags)
        self.point = as_point(point)
        self.rotation = float(rotation)

    @classmethod
    def from_point(cls, point: Coord, symbol: PointSymbol, rotation: float = 0.0) -> "PointObject":
        return cls(point, symbol, rotation)

    @property
    def geometry(self) -> Coord:
        return self.point

    def _special_attributes(self, transform: Transform) -> str:
        return f' rotation="{format_number(self.rotation + transform.grivation)}"'

    def _body(self, bezier_error, transform):
        return coords_element(*serialize_polyline(self.point, transform))


class LineObject(MapObject):
    kind = SymbolKind.LINE

    def __init__(self, line: LineString, symbol: LineSymbol, tags: Optional[Dict[str, str]] = None):
        super().__init__(symbol, tags)
        self.line = as_line_string(line)

    @classmethod
    def from_line_string(cls, line: LineString, symbol: LineSymbol) -> "LineObject":
        return cls(line, symbol)

    @property
    def geometry(self) -> LineString:
        return self.line

    @property
    def is_closed(self) -> bool:
        return is_closed(self.line)

    def _body(self, bezier_error, transform):
        if bezier_error is not None and self._symbol.allows_bezier():
            data, count = serialize_bezier(self.line, bezier_error, transform)
        else:
            data, count = serialize_polyline(self.line, transform)
        return coords_element(data, count)


class AreaObject(MapObject):
    """Area with optional holes; pattern_rotation only matters for rotatable symbols."""

    kind = SymbolKind.AREA

    def __init__(self, polygon: Polygon, symbol: AreaSymbol, pattern_rotation: float = 0.0,
                 tags: Optional[Dict[str, str]] = None):
        super().__init__(symbol, tags)
        self.polygon = as_polygon(polygon)
        self.pattern_rotation = float(pattern_rotation)

    @classmethod
    def from_polygon(cls, polygon: Polygon, symbol: AreaSymbol, pattern_rotation: float = 0.0) -> "AreaObject":
        return cls(polygon, symbol, pattern_rotation)

    @property
    def geometry(self) -> Polygon:
        return self.polygon

    def _body(self, bezier_error, transform):
        if bezier_error is not None and self._symbol.allows_bezier():
            data, count = serialize_bezier(self.polygon, bezier_error, transform)
        else:
            data, count = serialize_polyline(self.polygon, transform)
        body = coords_element(data, count)
        if self._symbol.is_rotatable():
            rotation = format_number(self.pattern_rotation + transform.grivation)
            body += f'<pattern rotation="{rotation}"><coord x="0" y="0"/></pattern>'
        return body


class TextObject(MapObject):
    """Text at an anchor point, or wrapped inside a box when given a WrapBox."""

    kind = SymbolKind.TEXT

    def __init__(self, anchor: TextGeometry, symbol: TextSymbol, text: str, rotation: float = 0.0,
                 h_align: HorizontalAlign = HorizontalAlign.CENTER,
                 v_align: VerticalAlign = VerticalAlign.CENTER,
                 tags: Optional[Dict[str, str]] = None):
        super().__init__(symbol, tags)
        self.anchor = as_text_geometry(anchor)
        self.text = str(text)
        self.rotation = float(rotation)
        self.h_align = HorizontalAlign(h_align)
        self.v_align = VerticalAlign(v_align)

    @classmethod
    def from_point(cls, point: Coord, symbol: TextSymbol, text: str, rotation: float = 0.0) -> "TextObject":
        return cls(point, symbol, text, rotation)

    @classmethod
    def from_wrap_box(cls, box: WrapBox, symbol: TextSymbol, text: str, rotation: float = 0.0) -> "TextObject":
        return cls(box, symbol, text, rotation)

    @property
    def geometry(self) -> TextGeometry:
        return self.anchor

    def _special_attributes(self, transform: Transform) -> str:
        rotation = self.rotation + transform.grivation
        attrs = f' rotation="{format_number(rotation)}"' if rotation != 0.0 else ""
        return attrs + f' h_align="{int(self.h_align)}" v_align="{int(self.v_align)}"'

    def _body(self, bezier_error, transform):
        if isinstance(self.anchor, WrapBox):
            data, _ = serialize_polyline(self.anchor.anchor, transform)
            width = transform.to_map_distance(self.anchor.width)
            height = transform.to_map_distance(self.anchor.height)
            coords = coords_element(data + f"{width} {height};".encode("ascii"), 2)
            size = f'<size width="{width}" height="{height}"/>'
            return coords + f"<text>{escape(self.text)}</text>" + size
        coords = coords_element(*serialize_polyline(self.anchor, transform))
        return coords + f"<text>{escape(self.text)}</text>"


_OBJECT_CLASSES = {
    SymbolKind.POINT: PointObject,
    SymbolKind.LINE: LineObject,
    SymbolKind.AREA: AreaObject,
    SymbolKind.TEXT: TextObject,
}


def object_for(symbol: Symbol, geometry: Geometry, **kwargs) -> MapObject:
    """Build the object class matching *symbol*'s kind.

    Text objects need ``text=...``; point and text objects accept
    ``rotation=...``, areas ``pattern_rotation=...``.

    Raises:
        MismatchedGeometry: if *geometry* cannot be used for the symbol's kind.
    """
    cls = _OBJECT_CLASSES.get(getattr(symbol, "kind", None))
    if cls is None:
        raise MismatchingSymbolAndObject(f"Not a catalog symbol: {symbol!r}")
    return cls(geometry, symbol, **kwargs)
