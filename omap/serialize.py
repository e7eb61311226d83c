"""The .omap coordinate micro-format, both directions.

A coordinate run is the text inside ``<coords count="N">...</coords>``. Every
vertex is ``x y;`` in integer map units, optionally with a flag integer
before the semicolon:

  ``x y 1;``   curve start, followed by two handle vertices ``hx hy;``
  ``x y 18;``  last vertex of a closed ring (close point | hole point)

Polygon holes are written straight after the exterior ring; the reported
count is the total number of vertices in the run, handles included.
"""

import decimal
import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .bezier import BezierSegment, effective_error, fit_bezier
from .errors import DegenerateGeometry, InvalidCoordinate
from .models import Coord, Geometry, LineString, Polygon, is_coord, is_closed
from .transform import Transform

logger = logging.getLogger(__name__)

CURVE_START = 1
CLOSE_POINT = 2
GAP_POINT = 4
HOLE_POINT = 16
DASH_POINT = 32
# close | hole, written on the last vertex of every closed ring
CLOSED_RING_FLAG = CLOSE_POINT | HOLE_POINT

Serialized = Tuple[bytes, int]


def format_number(value: float) -> str:
    """Shortest decimal text for *value*, "0" instead of "0.0", never exponent notation."""
    value = float(value)
    if value == 0.0:
        return "0"
    if value.is_integer():
        return str(int(value))
    text = repr(value)
    if "e" in text or "E" in text:
        text = format(decimal.Decimal(text), "f")
    return text


def _vertex(c: Tuple[int, int], flag: int = 0) -> str:
    if flag:
        return f"{c[0]} {c[1]} {flag};"
    return f"{c[0]} {c[1]};"


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------

def _polyline_ring(line: Sequence[Coord], transform: Transform) -> Tuple[List[str], int]:
    if not line:
        raise DegenerateGeometry("Cannot serialize an empty vertex sequence")
    tokens = [_vertex(transform.to_map_units(c)) for c in line[:-1]]
    tokens.append(_vertex(transform.to_map_units(line[-1]), CLOSED_RING_FLAG if is_closed(line) else 0))
    return tokens, len(line)


def _bezier_ring(line: Sequence[Coord], max_error: float, transform: Transform) -> Tuple[List[str], int]:
    closed = is_closed(line)
    segments = fit_bezier(line, max_error, closed=closed)
    return bezier_tokens(segments, closed, transform)


def bezier_tokens(segments: Sequence[BezierSegment], closed: bool, transform: Transform) -> Tuple[List[str], int]:
    """Token list and vertex count for an already fitted segment sequence."""
    if not segments:
        raise DegenerateGeometry("Cannot serialize an empty bezier string")
    to_mu = transform.to_map_units
    tokens: List[str] = []
    count = 0
    for seg in segments:
        if seg.handles is None:
            tokens.append(_vertex(to_mu(seg.start)))
            count += 1
        else:
            tokens.append(_vertex(to_mu(seg.start), CURVE_START))
            tokens.append(_vertex(to_mu(seg.handles[0])))
            tokens.append(_vertex(to_mu(seg.handles[1])))
            count += 3
    tokens.append(_vertex(to_mu(segments[-1].end), CLOSED_RING_FLAG if closed else 0))
    return tokens, count + 1


def serialize_polyline(geometry: Geometry, transform: Transform) -> Serialized:
    """Serialize a point, line string or polygon vertex by vertex.

    Returns:
        (bytes, vertex_count)

    Raises:
        CoordinateOverflow: if any vertex leaves the map unit range.
        DegenerateGeometry: for an empty vertex sequence.
    """
    if is_coord(geometry):
        return _vertex(transform.to_map_units(geometry)).encode("ascii"), 1
    if isinstance(geometry, Polygon):
        tokens: List[str] = []
        count = 0
        for ring in geometry.rings():
            ring_tokens, ring_count = _polyline_ring(ring, transform)
            tokens.extend(ring_tokens)
            count += ring_count
        return "".join(tokens).encode("ascii"), count
    tokens, count = _polyline_ring(list(geometry), transform)
    return "".join(tokens).encode("ascii"), count


def serialize_bezier(geometry: Geometry, max_error, transform: Transform) -> Serialized:
    """Serialize a line string or polygon as fitted Bézier curves.

    *max_error* is in ground units. None, or a value below the fitting
    threshold, falls back to serialize_polyline().
    """
    max_error = effective_error(max_error)
    if max_error is None or is_coord(geometry):
        return serialize_polyline(geometry, transform)
    if isinstance(geometry, Polygon):
        tokens: List[str] = []
        count = 0
        for ring in geometry.rings():
            ring_tokens, ring_count = _bezier_ring(ring, max_error, transform)
            tokens.extend(ring_tokens)
            count += ring_count
        return "".join(tokens).encode("ascii"), count
    tokens, count = _bezier_ring(list(geometry), max_error, transform)
    return "".join(tokens).encode("ascii"), count


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------

@dataclass
class MapVertex:
    x: int
    y: int
    flags: int = 0

    @property
    def coord(self) -> Tuple[float, float]:
        return (float(self.x), float(self.y))

    @property
    def is_curve_start(self) -> bool:
        return bool(self.flags & CURVE_START)

    @property
    def ends_part(self) -> bool:
        return bool(self.flags & (HOLE_POINT | CLOSE_POINT))


def _parse_int(token: str) -> int:
    try:
        return int(token)
    except ValueError:
        pass
    try:
        value = float(token)
    except ValueError:
        raise InvalidCoordinate(f"Invalid coordinate value: {token!r}") from None
    if not value.is_integer():
        raise InvalidCoordinate(f"Map coordinates must be integers, got {token!r}")
    return int(value)


def parse_vertices(text: str) -> List[MapVertex]:
    """Split a coordinate run into vertices.

    Raises:
        InvalidCoordinate: for a token that is not ``x y`` or ``x y flags``.
    """
    vertices = []
    for chunk in text.split(";"):
        parts = chunk.split()
        if not parts:
            continue
        if len(parts) not in (2, 3):
            raise InvalidCoordinate(f"Invalid coordinate token: {chunk.strip()!r}")
        flags = _parse_int(parts[2]) if len(parts) == 3 else 0
        if flags < 0:
            raise InvalidCoordinate(f"Invalid coordinate flags: {parts[2]!r}")
        vertices.append(MapVertex(_parse_int(parts[0]), _parse_int(parts[1]), flags))
    return vertices


def split_parts(vertices: Sequence[MapVertex]) -> List[List[MapVertex]]:
    """Split a run into rings at vertices flagged as part ends.

    Handle vertices are skipped over, so their (zero) flags never start a
    new part.
    """
    parts: List[List[MapVertex]] = []
    current: List[MapVertex] = []
    i = 0
    n = len(vertices)
    while i < n:
        v = vertices[i]
        current.append(v)
        if v.is_curve_start:
            if i + 2 >= n:
                raise InvalidCoordinate("Curve start without two handle vertices")
            current.extend(vertices[i + 1:i + 3])
            i += 3
            continue
        if v.ends_part:
            parts.append(current)
            current = []
        i += 1
    if current:
        parts.append(current)
    return parts


def part_to_segments(part: Sequence[MapVertex]) -> List[BezierSegment]:
    """Decode one part into segments in map units."""
    segments: List[BezierSegment] = []
    i = 0
    n = len(part)
    while i < n - 1:
        v = part[i]
        if v.is_curve_start:
            if i + 3 >= n:
                raise InvalidCoordinate("Curve without an end vertex")
            segments.append(BezierSegment(v.coord, (part[i + 1].coord, part[i + 2].coord), part[i + 3].coord))
            i += 3
        else:
            segments.append(BezierSegment(v.coord, None, part[i + 1].coord))
            i += 1
    if not segments:
        raise InvalidCoordinate("A line needs at least two vertices")
    return segments


def segments_to_ground(segments: Sequence[BezierSegment], transform: Transform) -> List[BezierSegment]:
    """Map a decoded segment list from map units back to ground coordinates."""
    tg = transform.to_ground
    return [
        BezierSegment(
            tg(s.start),
            None if s.handles is None else (tg(s.handles[0]), tg(s.handles[1])),
            tg(s.end),
        )
        for s in segments
    ]


def segments_to_line(segments: Sequence[BezierSegment]) -> LineString:
    """Anchor vertices only, ignoring curvature."""
    if not segments:
        return []
    return [segments[0].start] + [s.end for s in segments]
