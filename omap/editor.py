"""Read-modify-write access to existing .omap files.

OmapEditor parses a file into map parts and objects while keeping the
original bytes of everything it does not model: the XML prolog, the
georeferencing block, colors and symbols, templates and view. Each object
keeps its own source bytes as well and is written back unchanged until its
geometry, rotation, symbol or tags are modified; only the modified pieces
are regenerated.

Geometry is exposed in the same ground coordinates the writer takes
(relative to the map's reference point), decoded with the inverse of the
map's transform. Bézier runs are available both as structured segments and
flattened to a dense polyline.

Parsing uses the expat parser from the standard library, which reports the
byte offset of every element, so source slices can be cut out exactly.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Dict, Iterator, List, Optional, Tuple, Union
from xml.parsers import expat
from xml.sax.saxutils import escape, quoteattr

from .bezier import BezierSegment, effective_error, flatten
from .config import WriterSettings
from .errors import InvalidCoordinate, MapPartMergeError, MismatchingSymbolAndObject, ParseFormatError
from .georef_reader import read_georeferencing
from .models import Geometry, LineString, Polygon, WrapBox, as_line_string, as_point, as_polygon, \
    as_text_geometry, is_closed
from .objects import ELEVATION_TAG, HorizontalAlign, VerticalAlign, coords_element, tags_xml
from .omap import normalize_path, write_atomically
from .serialize import (MapVertex, format_number, parse_vertices, part_to_segments, segments_to_ground,
                        serialize_bezier, serialize_polyline, split_parts)
from .symbols import SymbolKind
from .transform import Transform

logger = logging.getLogger(__name__)

# Flattening tolerance for Bézier runs, in map units (1/1000 mm on paper)
FLATNESS = 20.0

_SYMBOL_KINDS = {1: SymbolKind.POINT, 2: SymbolKind.LINE, 4: SymbolKind.AREA, 8: SymbolKind.TEXT}
COMBINED_SYMBOL_TYPE = 16


@dataclass(frozen=True)
class SymbolInfo:
    """The parts of a <symbol> definition the editor needs."""
    id: int
    type: int
    code: str = ""
    name: str = ""

    @property
    def kind(self) -> Optional[SymbolKind]:
        """Geometry kind, None for combined symbols (line or area)."""
        return _SYMBOL_KINDS.get(self.type)


def _tag_end(data: bytes, pos: int) -> int:
    """Offset just past the '>' of the tag starting at *pos*, honouring quoted values."""
    quote = None
    i = pos
    n = len(data)
    while i < n:
        c = data[i:i + 1]
        if quote:
            if c == quote:
                quote = None
        elif c in (b'"', b"'"):
            quote = c
        elif c == b">":
            return i + 1
        i += 1
    raise ParseFormatError(f"Unterminated tag at byte {pos}")


# ---------------------------------------------------------------------------
# Objects
# ---------------------------------------------------------------------------

class EditorObject:
    """One <object> of an existing file.

    The source bytes are split into the start tag, the inner content before
    the <tags> element, the <tags> element and the rest. Each piece is
    reused as long as what it encodes has not been changed. Editing the
    pattern rotation or the text keeps the source <coords> element as is.
    """

    def __init__(self, kind: SymbolKind, symbol_id: int, transform: Transform,
                 rings: List[List[BezierSegment]], text: Optional[str] = None,
                 wrap_size: Optional[Tuple[float, float]] = None,
                 rotation: float = 0.0, pattern_rotation: Optional[float] = None,
                 h_align: HorizontalAlign = HorizontalAlign.CENTER,
                 v_align: VerticalAlign = VerticalAlign.CENTER,
                 tags: Optional[Dict[str, str]] = None, raw: Optional[Tuple[bytes, bytes, bytes, bytes]] = None,
                 raw_coords: Optional[bytes] = None):
        self.kind = kind
        self._symbol_id = symbol_id
        self._transform = transform
        self._rings = rings
        self._text = text
        self._wrap_size = wrap_size
        self._rotation = rotation
        self._pattern_rotation = pattern_rotation
        self.h_align = h_align
        self.v_align = v_align
        self._source_align = (h_align, v_align)
        self._tags: Dict[str, str] = dict(tags or {})
        self._geometry: Optional[Geometry] = None
        self._raw = raw
        self._raw_coords = raw_coords
        self._head_dirty = raw is None
        self._tags_dirty = raw is None
        self._geometry_dirty = raw is None
        # pattern rotation or text changed, coordinates untouched
        self._content_dirty = False

    # -- state ----------------------------------------------------------

    @property
    def is_modified(self) -> bool:
        return (self._head_dirty or self._tags_dirty or self._geometry_dirty or self._content_dirty
                or (self.h_align, self.v_align) != self._source_align)

    @property
    def symbol_id(self) -> int:
        return self._symbol_id

    def change_symbol(self, symbol: SymbolInfo) -> None:
        """Assign another symbol of the same geometry kind.

        Raises:
            MismatchingSymbolAndObject: if *symbol* draws a different kind; the
                object is left unchanged.
        """
        kind = symbol.kind
        if kind is None and symbol.type == COMBINED_SYMBOL_TYPE:
            kind = self.kind if self.kind in (SymbolKind.LINE, SymbolKind.AREA) else None
        if kind is not self.kind:
            raise MismatchingSymbolAndObject(
                f"Symbol {symbol.id} ({symbol.name}) cannot be used for a {self.kind.value} object"
            )
        self._symbol_id = symbol.id
        self._head_dirty = True

    # -- tags -------------------------------------------------------------

    @property
    def tags(self) -> Dict[str, str]:
        return dict(self._tags)

    def add_tag(self, key: str, value: str) -> None:
        self._tags[str(key)] = str(value)
        self._tags_dirty = True

    def add_elevation_tag(self, elevation: float) -> None:
        self.add_tag(ELEVATION_TAG, f"{elevation:.2f}")

    def remove_tag(self, key: str) -> Optional[str]:
        value = self._tags.pop(key, None)
        if value is not None:
            self._tags_dirty = True
        return value

    # -- geometry ---------------------------------------------------------

    @property
    def segments(self) -> List[List[BezierSegment]]:
        """Structured Bézier runs per ring, in ground coordinates."""
        return [segments_to_ground(ring, self._transform) for ring in self._rings]

    @property
    def has_curves(self) -> bool:
        return any(seg.handles is not None for ring in self._rings for seg in ring)

    def _ring_line(self, ring: List[BezierSegment]) -> LineString:
        return [self._transform.to_ground(c) for c in flatten(ring, FLATNESS)]

    @property
    def geometry(self) -> Geometry:
        """Point, line string, polygon, or text anchor/WrapBox in ground coordinates.

        Curves are flattened. A line with several parts exposes its first part.
        """
        if self._geometry is None:
            self._geometry = self._decode_geometry()
        return self._geometry

    def _decode_geometry(self) -> Geometry:
        first = self._rings[0]
        if self.kind is SymbolKind.POINT:
            return self._transform.to_ground(first[0].start)
        if self.kind is SymbolKind.TEXT:
            anchor = self._transform.to_ground(first[0].start)
            if self._wrap_size is None:
                return anchor
            to_ground = self._transform.to_ground_distance
            return WrapBox(anchor, to_ground(self._wrap_size[0]), to_ground(self._wrap_size[1]))
        if self.kind is SymbolKind.LINE:
            return self._ring_line(first)
        rings = []
        for ring in self._rings:
            line = self._ring_line(ring)
            if not is_closed(line):
                line.append(line[0])
            rings.append(line)
        return Polygon(rings[0], rings[1:])

    def set_geometry(self, geometry: Geometry) -> None:
        """Replace the geometry; the coordinates are regenerated on write.

        Raises:
            MismatchedGeometry: if *geometry* does not fit the object's kind.
        """
        if self.kind is SymbolKind.POINT:
            geometry = as_point(geometry)
        elif self.kind is SymbolKind.LINE:
            geometry = as_line_string(geometry)
        elif self.kind is SymbolKind.AREA:
            geometry = as_polygon(geometry)
        else:
            geometry = as_text_geometry(geometry)
        self._geometry = geometry
        self._geometry_dirty = True
        self._head_dirty = True

    @property
    def rotation(self) -> float:
        """Rotation relative to the ground grid, radians."""
        return self._rotation

    @rotation.setter
    def rotation(self, value: float) -> None:
        self._rotation = float(value)
        self._head_dirty = True

    @property
    def pattern_rotation(self) -> Optional[float]:
        return self._pattern_rotation

    @pattern_rotation.setter
    def pattern_rotation(self, value: float) -> None:
        self._pattern_rotation = float(value)
        self._content_dirty = True

    @property
    def text(self) -> Optional[str]:
        return self._text

    @text.setter
    def text(self, value: str) -> None:
        self._text = str(value)
        self._content_dirty = True

    # -- writing ----------------------------------------------------------

    def _start_tag(self) -> str:
        head = f'<object type="{self.kind.object_type}" symbol="{self._symbol_id}"'
        grivation = self._transform.grivation
        if self.kind is SymbolKind.POINT:
            head += f' rotation="{format_number(self._rotation + grivation)}"'
        elif self.kind is SymbolKind.TEXT:
            rotation = self._rotation + grivation
            if rotation != 0.0:
                head += f' rotation="{format_number(rotation)}"'
            head += f' h_align="{int(self.h_align)}" v_align="{int(self.v_align)}"'
        return head + ">"

    def _tail(self, size: Optional[Tuple[float, float]]) -> str:
        """What follows <coords>: the pattern of an area, the text and box size of a text."""
        if self.kind is SymbolKind.AREA and self._pattern_rotation is not None:
            rotation = format_number(self._pattern_rotation + self._transform.grivation)
            return f'<pattern rotation="{rotation}"><coord x="0" y="0"/></pattern>'
        if self.kind is SymbolKind.TEXT:
            tail = f"<text>{escape(self._text or '')}</text>"
            if size is not None:
                tail += f'<size width="{format_number(size[0])}" height="{format_number(size[1])}"/>'
            return tail
        return ""

    def _body(self, bezier_error: Optional[float]) -> str:
        geometry = self.geometry
        transform = self._transform
        if self.kind is SymbolKind.TEXT and isinstance(geometry, WrapBox):
            data, _ = serialize_polyline(geometry.anchor, transform)
            size = (transform.to_map_distance(geometry.width), transform.to_map_distance(geometry.height))
            coords = coords_element(data + f"{size[0]} {size[1]};".encode("ascii"), 2)
            return coords + self._tail(size)
        if self.kind in (SymbolKind.LINE, SymbolKind.AREA) and bezier_error is not None:
            coords = coords_element(*serialize_bezier(geometry, bezier_error, transform))
        else:
            coords = coords_element(*serialize_polyline(geometry, transform))
        return coords + self._tail(None)

    def to_bytes(self, bezier_error: Optional[float] = None) -> bytes:
        """Serialized element; untouched pieces are the original bytes."""
        if self._geometry_dirty or (self._content_dirty and self._raw_coords is None):
            body = tags_xml(self._tags).encode("utf-8") + self._body(effective_error(bezier_error)).encode("utf-8")
        elif self._content_dirty:
            tags = tags_xml(self._tags).encode("utf-8") if self._tags_dirty else self._raw[2]
            body = tags + self._raw_coords + self._tail(self._wrap_size).encode("utf-8")
        else:
            before, tags, after = self._raw[1:]
            if self._tags_dirty:
                tags = tags_xml(self._tags).encode("utf-8")
            body = before + tags + after
        head_dirty = self._head_dirty or (self.h_align, self.v_align) != self._source_align
        head = self._start_tag().encode("utf-8") if head_dirty else self._raw[0]
        return head + body + b"</object>\n"


class MapPart:
    """A named group of objects, in file order."""

    def __init__(self, name: str, objects: Optional[List[EditorObject]] = None):
        self.name = name
        self.objects: List[EditorObject] = list(objects or [])

    def __len__(self) -> int:
        return len(self.objects)

    def merge(self, other: "MapPart") -> None:
        self.objects.extend(other.objects)

    def objects_by_symbol(self, symbol_id: int) -> List[EditorObject]:
        return [o for o in self.objects if o.symbol_id == symbol_id]

    def remove_object(self, obj: EditorObject) -> None:
        self.objects.remove(obj)

    def to_bytes(self, bezier_error: Optional[float] = None) -> bytes:
        head = f"<part name={quoteattr(self.name)}><objects count=\"{len(self.objects)}\">\n".encode("utf-8")
        return head + b"".join(o.to_bytes(bezier_error) for o in self.objects) + b"</objects></part>\n"


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

class _RawObject:
    def __init__(self, start: int, attrs: Dict[str, str]):
        self.start = start
        self.attrs = attrs
        self.tags: Dict[str, str] = {}
        self.tags_range: Optional[Tuple[int, int]] = None
        self.coords_range: Optional[Tuple[int, int]] = None
        self.coords_text: Optional[str] = None
        self.coord_elements: List[MapVertex] = []
        self.pattern_rotation: Optional[float] = None
        self.text: Optional[str] = None
        self.size: Optional[Tuple[float, float]] = None
        self.inner = (0, 0)


class _Scanner:
    """Collects offsets and the modelled values in one expat pass."""

    def __init__(self, data: bytes):
        self.data = data
        self.stack: List[Tuple[str, int, Dict[str, str]]] = []
        self.text: Optional[List[str]] = None
        self.map_tag_end: Optional[int] = None
        self.notes_range: Optional[Tuple[int, int]] = None
        self.notes = ""
        self.georef_xml: Optional[str] = None
        self.symbols: Dict[int, SymbolInfo] = {}
        self.parts_range: Optional[Tuple[int, int]] = None
        self.parts_current = 0
        self.parts: List[Tuple[str, List[_RawObject]]] = []
        self.obj: Optional[_RawObject] = None
        self.tag_key: Optional[str] = None

        parser = expat.ParserCreate()
        parser.ordered_attributes = True
        parser.buffer_text = True
        parser.StartElementHandler = self._start
        parser.EndElementHandler = self._end
        parser.CharacterDataHandler = self._chars
        self.parser = parser

    def run(self) -> "_Scanner":
        try:
            self.parser.Parse(self.data, True)
        except expat.ExpatError as exc:
            raise ParseFormatError(f"Malformed .omap file: {exc}") from exc
        except (KeyError, ValueError) as exc:
            raise ParseFormatError(f"Invalid attribute in .omap file: {exc}") from exc
        return self

    def _collect(self) -> None:
        self.text = []

    def _take_text(self) -> str:
        text = "".join(self.text or [])
        self.text = None
        return text

    def _chars(self, data: str) -> None:
        if self.text is not None:
            self.text.append(data)

    def _start(self, name: str, attr_list: List[str]) -> None:
        pos = self.parser.CurrentByteIndex
        attrs = dict(zip(attr_list[::2], attr_list[1::2]))
        parent = self.stack[-1][0] if self.stack else None
        self.stack.append((name, pos, attrs))

        if parent is None:
            if name != "map":
                raise ParseFormatError(f"Not an .omap file: root element is <{name}>")
            self.map_tag_end = _tag_end(self.data, pos)
        elif name == "notes" and parent == "map":
            self._collect()
        elif name == "symbol" and parent == "symbols":
            try:
                info = SymbolInfo(int(attrs["id"]), int(attrs["type"]), attrs.get("code", ""), attrs.get("name", ""))
            except (KeyError, ValueError) as exc:
                raise ParseFormatError(f"Invalid symbol definition at byte {pos}") from exc
            self.symbols[info.id] = info
        elif name == "parts":
            self.parts_current = int(attrs.get("current", "0") or 0)
        elif name == "part" and parent == "parts":
            self.parts.append((attrs.get("name", ""), []))
        elif name == "object" and parent == "objects":
            self.obj = _RawObject(pos, attrs)
        elif self.obj is not None:
            self._start_in_object(name, parent, attrs)

    def _start_in_object(self, name: str, parent: str, attrs: Dict[str, str]) -> None:
        obj = self.obj
        if name == "t" and parent == "tags":
            self.tag_key = attrs.get("k", "")
            self._collect()
        elif name == "coords" and parent == "object":
            self._collect()
        elif name == "coord" and parent == "coords":
            try:
                obj.coord_elements.append(MapVertex(int(attrs["x"]), int(attrs["y"]), int(attrs.get("flags", 0))))
            except (KeyError, ValueError) as exc:
                raise InvalidCoordinate(f"Invalid <coord> element: {attrs}") from exc
        elif name == "pattern" and parent == "object":
            obj.pattern_rotation = _float_attr(attrs, "rotation")
        elif name == "text" and parent == "object":
            self._collect()
        elif name == "size" and parent == "object":
            obj.size = (_float_attr(attrs, "width"), _float_attr(attrs, "height"))

    def _end(self, name: str) -> None:
        pos = self.parser.CurrentByteIndex
        _, start, _ = self.stack.pop()
        if pos == start:
            end = _tag_end(self.data, start)
            inner = (end, end)
        else:
            end = self.data.index(b">", pos) + 1
            inner = (_tag_end(self.data, start), pos)
        parent = self.stack[-1][0] if self.stack else None

        if name == "notes" and parent == "map":
            self.notes = self._take_text()
            self.notes_range = (start, end)
        elif name == "georeferencing" and parent == "map":
            self.georef_xml = self.data[start:end].decode("utf-8")
        elif name == "parts":
            self.parts_range = (start, end)
        elif name == "object" and self.obj is not None and parent == "objects":
            self.obj.inner = inner
            self.parts[-1][1].append(self.obj)
            self.obj = None
        elif self.obj is not None:
            if name == "t" and parent == "tags":
                self.obj.tags[self.tag_key] = self._take_text()
            elif name == "tags" and parent == "object":
                self.obj.tags_range = (start, end)
            elif name == "coords" and parent == "object":
                self.obj.coords_text = self._take_text()
                self.obj.coords_range = (start, end)
            elif name == "text" and parent == "object":
                self.obj.text = self._take_text()


def _float_attr(attrs: Dict[str, str], name: str) -> float:
    try:
        return float(attrs.get(name, 0.0))
    except ValueError:
        raise ParseFormatError(f"Invalid {name} attribute: {attrs.get(name)!r}") from None


def _object_kind(raw: _RawObject, symbols: Dict[int, SymbolInfo], parts: List[List[MapVertex]]) -> SymbolKind:
    object_type = raw.attrs.get("type")
    if object_type == "0":
        return SymbolKind.POINT
    if object_type == "4":
        return SymbolKind.TEXT
    if object_type != "1":
        raise ParseFormatError(f"Unsupported object type {object_type!r} at byte {raw.start}")
    symbol = symbols.get(int(raw.attrs["symbol"]))
    if symbol is None:
        raise ParseFormatError(f"Unknown symbol {raw.attrs['symbol']} for object at byte {raw.start}")
    if symbol.type == COMBINED_SYMBOL_TYPE:
        # combined symbols draw lines and areas alike
        closed = all(p[-1].ends_part or p[0].coord == p[-1].coord for p in parts)
        return SymbolKind.AREA if closed else SymbolKind.LINE
    if symbol.kind not in (SymbolKind.LINE, SymbolKind.AREA):
        raise ParseFormatError(f"Path object at byte {raw.start} uses non-path symbol {symbol.id}")
    return symbol.kind


def _build_object(raw: _RawObject, data: bytes, symbols: Dict[int, SymbolInfo], transform: Transform) -> EditorObject:
    try:
        symbol_id = int(raw.attrs["symbol"])
    except (KeyError, ValueError):
        raise ParseFormatError(f"Object at byte {raw.start} has no valid symbol attribute") from None

    vertices = raw.coord_elements or parse_vertices(raw.coords_text or "")
    if not vertices:
        raise InvalidCoordinate(f"Object at byte {raw.start} has no coordinates")
    parts = split_parts(vertices)
    kind = _object_kind(raw, symbols, parts)

    wrap_size = None
    if kind is SymbolKind.POINT:
        rings = [[BezierSegment(vertices[0].coord, None, vertices[0].coord)]]
    elif kind is SymbolKind.TEXT:
        rings = [[BezierSegment(vertices[0].coord, None, vertices[0].coord)]]
        if len(vertices) >= 2:
            wrap_size = (float(vertices[1].x), float(vertices[1].y))
    else:
        rings = [part_to_segments(p) for p in parts]
        if kind is SymbolKind.AREA and sum(len(p) for p in parts) < 3:
            raise InvalidCoordinate(f"Area object at byte {raw.start} needs at least 3 vertices")

    grivation = transform.grivation
    rotation = _float_attr(raw.attrs, "rotation") - grivation if "rotation" in raw.attrs else 0.0
    pattern_rotation = None if raw.pattern_rotation is None else raw.pattern_rotation - grivation

    inner_start, inner_end = raw.inner
    if raw.tags_range is not None:
        tags_start, tags_end = raw.tags_range
    else:
        tags_start = tags_end = inner_start
    raw_bytes = (
        data[raw.start:inner_start],
        data[inner_start:tags_start],
        data[tags_start:tags_end],
        data[tags_end:inner_end],
    )
    return EditorObject(
        kind, symbol_id, transform, rings,
        text=raw.text, wrap_size=wrap_size, rotation=rotation, pattern_rotation=pattern_rotation,
        h_align=HorizontalAlign(int(raw.attrs.get("h_align", HorizontalAlign.CENTER))),
        v_align=VerticalAlign(int(raw.attrs.get("v_align", VerticalAlign.CENTER))),
        tags=raw.tags, raw=raw_bytes,
        raw_coords=data[slice(*raw.coords_range)] if raw.coords_range is not None else None,
    )


# ---------------------------------------------------------------------------
# Editor
# ---------------------------------------------------------------------------

class OmapEditor:
    """An existing .omap file opened for editing.

    Use OmapEditor.from_path() or OmapEditor.from_bytes().
    """

    def __init__(self, data: bytes, settings: Optional[WriterSettings] = None):
        self.settings = settings or WriterSettings.from_env()
        scan = _Scanner(data).run()
        if scan.georef_xml is None:
            raise ParseFormatError("The file has no <georeferencing> element")
        if scan.parts_range is None:
            raise ParseFormatError("The file has no <parts> element")

        self.georef = read_georeferencing(scan.georef_xml)
        self.transform = Transform.from_georef(self.georef)
        self.symbols: Dict[int, SymbolInfo] = scan.symbols
        self.notes = scan.notes
        self._original_notes = scan.notes
        self.current_part = scan.parts_current

        try:
            self.parts: List[MapPart] = [
                MapPart(name, [_build_object(raw, data, self.symbols, self.transform) for raw in objects])
                for name, objects in scan.parts
            ]
        except (KeyError, ValueError) as exc:
            raise ParseFormatError(f"Invalid object attribute: {exc}") from exc

        if scan.notes_range is not None:
            notes_start, notes_end = scan.notes_range
        else:
            notes_start = notes_end = scan.map_tag_end
        parts_start, parts_end = scan.parts_range
        self._head = data[:notes_start]
        self._raw_notes = data[notes_start:notes_end]
        self._middle = data[notes_end:parts_start]
        self._tail = data[parts_end:]
        logger.debug("Parsed %d map parts with %d objects", len(self.parts), self.num_objects())

    @classmethod
    def from_path(cls, path: Union[str, os.PathLike], settings: Optional[WriterSettings] = None) -> "OmapEditor":
        """Open an .omap file.

        Raises:
            OSError: if the file cannot be read.
            ParseFormatError: for malformed XML or an unusable georeferencing block.
            InvalidCoordinate: for a malformed coordinate run.
        """
        with open(path, "rb") as f:
            return cls(f.read(), settings)

    @classmethod
    def from_bytes(cls, data: bytes, settings: Optional[WriterSettings] = None) -> "OmapEditor":
        return cls(data, settings)

    # -- parts --------------------------------------------------------------

    def num_objects(self) -> int:
        return sum(len(p) for p in self.parts)

    def objects(self, symbol_id: Optional[int] = None) -> Iterator[EditorObject]:
        for part in self.parts:
            for obj in part.objects:
                if symbol_id is None or obj.symbol_id == symbol_id:
                    yield obj

    def part_by_name(self, name: str) -> Optional[MapPart]:
        """Case sensitive."""
        return next((p for p in self.parts if p.name == name), None)

    def part_by_index(self, index: int) -> Optional[MapPart]:
        return self.parts[index] if 0 <= index < len(self.parts) else None

    def merge_all_parts(self, new_name: Optional[str] = None) -> None:
        """Merge every part into the first one, optionally renaming it."""
        if not self.parts:
            return
        first = self.parts[0]
        for part in self.parts[1:]:
            first.merge(part)
        self.parts = [first]
        self.current_part = 0
        if new_name is not None:
            first.name = new_name

    def merge_two_parts(self, first: int, second: int) -> None:
        """Merge part *second* into part *first*; part order is otherwise kept.

        Raises:
            MapPartMergeError: if the indices are equal or out of range.
        """
        count = len(self.parts)
        if first == second or not (0 <= first < count and 0 <= second < count):
            raise MapPartMergeError()
        self.parts[first].merge(self.parts[second])
        del self.parts[second]
        if self.current_part >= len(self.parts):
            self.current_part = 0

    def remove_part(self, index: int) -> Optional[MapPart]:
        if not 0 <= index < len(self.parts):
            return None
        part = self.parts.pop(index)
        if self.current_part >= len(self.parts):
            self.current_part = 0
        return part

    # -- symbols ------------------------------------------------------------

    def change_symbol(self, obj: EditorObject, symbol_id: int) -> None:
        """Give *obj* the symbol with id *symbol_id* from this file's symbol set.

        Raises:
            KeyError: if the file defines no such symbol.
            MismatchingSymbolAndObject: if the symbol's kind does not match.
        """
        obj.change_symbol(self.symbols[symbol_id])

    # -- writing --------------------------------------------------------------

    def to_bytes(self, bezier_error: Optional[float] = None) -> bytes:
        """The complete document; *bezier_error* applies to modified lines and areas only."""
        if self.notes == self._original_notes:
            notes = self._raw_notes
        else:
            notes = f"<notes>{escape(self.notes)}</notes>".encode("utf-8")
            if not self._raw_notes:
                notes += b"\n"
        current = self.current_part if self.current_part < len(self.parts) else 0
        parts = f'<parts count="{len(self.parts)}" current="{current}">\n'.encode("utf-8")
        parts += b"".join(p.to_bytes(bezier_error) for p in self.parts) + b"</parts>"
        return self._head + notes + self._middle + parts + self._tail

    def write(self, sink: BinaryIO, bezier_error: Optional[float] = None) -> None:
        sink.write(self.to_bytes(bezier_error))

    def write_to_file(self, path: Union[str, os.PathLike, None],
                      bezier_error: Optional[float] = None) -> Path:
        """Write the edited map; path handling matches Omap.write_to_file()."""
        data = self.to_bytes(bezier_error)
        target = normalize_path(path, self.settings.default_filename)
        write_atomically(target, lambda f: f.write(data))
        logger.debug("Wrote edited map to %s", target)
        return target
