"""Polyline to cubic Bézier curve fitting.

fit_bezier() approximates a polyline by a sequence of BezierSegment runs so
that every input vertex lies within max_error of the fitted curve. A run
whose vertices already lie within max_error of its chord becomes a straight
segment (handles=None); otherwise a cubic is fitted with the least-squares
method from Graphics Gems ("An Algorithm for Automatically Fitting Digitized
Curves", Schneider 1990), refined by Newton reparameterization, and split at
the worst vertex when it still misses the tolerance. A run of two vertices
is always a straight segment, so the splitting terminates and the bound
holds by construction.

The error check uses the distance from each vertex to the curve point at the
vertex's parameter, which is never smaller than the true distance to the
curve. Curves are additionally sampled against the polyline so a segment
cannot bulge away between vertices.

Sharp corners (turns above CORNER_ANGLE) are kept as segment boundaries with
one-sided tangents. A closed input yields a closed output: the last
segment's end is the first segment's start.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .config import MIN_BEZIER_ERROR
from .errors import DegenerateGeometry
from .models import Coord, LineString, is_closed

logger = logging.getLogger(__name__)

EPS = 1e-12
CORNER_ANGLE = math.radians(90.0)
MAX_NEWTON_ITERATIONS = 4
CURVE_SAMPLES = 16

Handles = Tuple[Coord, Coord]


@dataclass
class BezierSegment:
    """One run of a Bézier string; handles=None is a straight run."""
    start: Coord
    handles: Optional[Handles]
    end: Coord

    @property
    def is_curve(self) -> bool:
        return self.handles is not None


@dataclass(frozen=True)
class BezierError:
    """Allowed curve-fitting deviation for line and area objects.

    None means "write as polyline". Values below MIN_BEZIER_ERROR are
    treated as None.
    """
    line_error: Optional[float] = None
    area_error: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, "line_error", effective_error(self.line_error))
        object.__setattr__(self, "area_error", effective_error(self.area_error))


def effective_error(max_error: Optional[float]) -> Optional[float]:
    """Return *max_error*, or None when it is too small to curve fit with."""
    if max_error is None or not max_error >= MIN_BEZIER_ERROR:
        return None
    return float(max_error)


def num_points(segments: Sequence[BezierSegment]) -> int:
    """Number of coordinates the segments occupy in an .omap coordinate run."""
    if not segments:
        return 0
    return sum(3 if seg.handles is not None else 1 for seg in segments) + 1


# ---------------------------------------------------------------------------
# Vector helpers
# ---------------------------------------------------------------------------

def _sub(a: Coord, b: Coord) -> Coord:
    return (a[0] - b[0], a[1] - b[1])


def _add(a: Coord, b: Coord) -> Coord:
    return (a[0] + b[0], a[1] + b[1])


def _scale(a: Coord, s: float) -> Coord:
    return (a[0] * s, a[1] * s)


def _dot(a: Coord, b: Coord) -> float:
    return a[0] * b[0] + a[1] * b[1]


def _norm(a: Coord) -> float:
    return math.hypot(a[0], a[1])


def _unit(a: Coord) -> Coord:
    n = _norm(a)
    return (0.0, 0.0) if n < EPS else (a[0] / n, a[1] / n)


def point_segment_distance(p: Coord, a: Coord, b: Coord) -> float:
    ab = _sub(b, a)
    denom = _dot(ab, ab)
    if denom < EPS:
        return _norm(_sub(p, a))
    t = max(0.0, min(1.0, _dot(_sub(p, a), ab) / denom))
    return _norm(_sub(p, _add(a, _scale(ab, t))))


def point_polyline_distance(p: Coord, line: Sequence[Coord]) -> float:
    if len(line) == 1:
        return _norm(_sub(p, line[0]))
    return min(point_segment_distance(p, a, b) for a, b in zip(line, line[1:]))


# ---------------------------------------------------------------------------
# Cubic evaluation
# ---------------------------------------------------------------------------

def evaluate(p0: Coord, p1: Coord, p2: Coord, p3: Coord, t: float) -> Coord:
    u = 1.0 - t
    b0 = u * u * u
    b1 = 3.0 * u * u * t
    b2 = 3.0 * u * t * t
    b3 = t * t * t
    return (
        b0 * p0[0] + b1 * p1[0] + b2 * p2[0] + b3 * p3[0],
        b0 * p0[1] + b1 * p1[1] + b2 * p2[1] + b3 * p3[1],
    )


def _derivative(p0: Coord, p1: Coord, p2: Coord, p3: Coord, t: float) -> Coord:
    u = 1.0 - t
    q0 = _sub(p1, p0)
    q1 = _sub(p2, p1)
    q2 = _sub(p3, p2)
    return (
        3.0 * (u * u * q0[0] + 2.0 * u * t * q1[0] + t * t * q2[0]),
        3.0 * (u * u * q0[1] + 2.0 * u * t * q1[1] + t * t * q2[1]),
    )


def _second_derivative(p0: Coord, p1: Coord, p2: Coord, p3: Coord, t: float) -> Coord:
    a = _add(_sub(p2, _scale(p1, 2.0)), p0)
    b = _add(_sub(p3, _scale(p2, 2.0)), p1)
    return (6.0 * ((1.0 - t) * a[0] + t * b[0]), 6.0 * ((1.0 - t) * a[1] + t * b[1]))


# ---------------------------------------------------------------------------
# Fitting
# ---------------------------------------------------------------------------

Cubic = Tuple[Coord, Coord, Coord, Coord]


def _chord_parameters(run: Sequence[Coord]) -> List[float]:
    u = [0.0]
    total = 0.0
    for a, b in zip(run, run[1:]):
        total += _norm(_sub(b, a))
        u.append(total)
    if total < EPS:
        return [0.0] * len(run)
    return [ui / total for ui in u]


def _generate(run: Sequence[Coord], u: Sequence[float], t1: Coord, t2: Coord) -> Cubic:
    p0 = run[0]
    p3 = run[-1]
    c00 = c01 = c11 = x0 = x1 = 0.0
    for point, ui in zip(run, u):
        v = 1.0 - ui
        a0 = _scale(t1, 3.0 * v * v * ui)
        a1 = _scale(t2, 3.0 * v * ui * ui)
        rest = _sub(point, _add(_scale(p0, v * v * v + 3.0 * v * v * ui), _scale(p3, 3.0 * v * ui * ui + ui * ui * ui)))
        c00 += _dot(a0, a0)
        c01 += _dot(a0, a1)
        c11 += _dot(a1, a1)
        x0 += _dot(a0, rest)
        x1 += _dot(a1, rest)

    seg_len = _norm(_sub(p3, p0))
    det = c00 * c11 - c01 * c01
    if abs(det) < EPS:
        alpha_l = alpha_r = seg_len / 3.0
    else:
        alpha_l = (x0 * c11 - x1 * c01) / det
        alpha_r = (c00 * x1 - c01 * x0) / det

    # Wu/Barsky heuristic from the original algorithm
    eps = 1e-6 * seg_len
    if not (alpha_l >= eps and alpha_r >= eps) or not (math.isfinite(alpha_l) and math.isfinite(alpha_r)):
        alpha_l = alpha_r = seg_len / 3.0

    return (p0, _add(p0, _scale(t1, alpha_l)), _add(p3, _scale(t2, alpha_r)), p3)


def _reparameterize(run: Sequence[Coord], cubic: Cubic, u: Sequence[float]) -> List[float]:
    out = [0.0]
    for point, ui in zip(run[1:-1], u[1:-1]):
        q = evaluate(*cubic, ui)
        q1 = _derivative(*cubic, ui)
        q2 = _second_derivative(*cubic, ui)
        diff = _sub(q, point)
        num = _dot(diff, q1)
        den = _dot(q1, q1) + _dot(diff, q2)
        new_u = ui if abs(den) < EPS else ui - num / den
        out.append(min(1.0, max(0.0, new_u)))
    out.append(1.0)
    return out


def _max_error(run: Sequence[Coord], cubic: Cubic, u: Sequence[float]) -> Tuple[float, int]:
    worst = 0.0
    split = len(run) // 2
    for i in range(1, len(run) - 1):
        d = _norm(_sub(evaluate(*cubic, u[i]), run[i]))
        if d > worst:
            worst = d
            split = i
    return worst, split


def _stays_near(run: Sequence[Coord], cubic: Cubic, max_error: float) -> bool:
    for k in range(1, CURVE_SAMPLES):
        if point_polyline_distance(evaluate(*cubic, k / CURVE_SAMPLES), run) > max_error:
            return False
    return True


def _is_straight(run: Sequence[Coord], max_error: float) -> bool:
    a, b = run[0], run[-1]
    return all(point_segment_distance(p, a, b) <= max_error for p in run[1:-1])


def _fit_run(
    run: Sequence[Coord], t1: Coord, t2: Coord, max_error: float
) -> Tuple[Optional[BezierSegment], int]:
    """Fit one run; returns (segment, 0) or (None, local split index)."""
    if len(run) == 2 or _is_straight(run, max_error):
        return BezierSegment(run[0], None, run[-1]), 0

    u = _chord_parameters(run)
    cubic = _generate(run, u, t1, t2)
    error, split = _max_error(run, cubic, u)
    for _ in range(MAX_NEWTON_ITERATIONS + 1):
        if error <= max_error and _stays_near(run, cubic, max_error):
            return BezierSegment(run[0], (cubic[1], cubic[2]), run[-1]), 0
        if error > 4.0 * max_error:
            break
        u = _reparameterize(run, cubic, u)
        cubic = _generate(run, u, t1, t2)
        error, split = _max_error(run, cubic, u)

    return None, max(1, min(len(run) - 2, split))


def _center_tangent(prev: Coord, point: Coord, nxt: Coord) -> Coord:
    v1 = _unit(_sub(point, prev))
    v2 = _unit(_sub(nxt, point))
    t = _add(v1, v2)
    return v2 if _norm(t) < EPS else _unit(t)


def _turn_angle(prev: Coord, point: Coord, nxt: Coord) -> float:
    v1 = _unit(_sub(point, prev))
    v2 = _unit(_sub(nxt, point))
    return math.acos(max(-1.0, min(1.0, _dot(v1, v2))))


def _dedup(points: Sequence[Coord]) -> LineString:
    out: LineString = []
    for p in points:
        p = (float(p[0]), float(p[1]))
        if not out or out[-1] != p:
            out.append(p)
    return out


def fit_bezier(points: Sequence[Coord], max_error: float, closed: Optional[bool] = None) -> List[BezierSegment]:
    """Fit *points* with Bézier runs that stay within *max_error*.

    Args:
        points:    Polyline vertices; a closed line repeats its first vertex last.
        max_error: Maximum allowed deviation, in the units of *points*.
        closed:    Override closedness; defaults to first vertex == last vertex.

    Raises:
        DegenerateGeometry: if fewer than two distinct vertices are given.
    """
    if closed is None:
        closed = is_closed(points)
    pts = _dedup(points)
    if closed and len(pts) > 1 and pts[0] != pts[-1]:
        pts.append(pts[0])
    if len(pts) < 2:
        raise DegenerateGeometry("Cannot fit a curve through fewer than two distinct points")
    if len(pts) == 2:
        return [BezierSegment(pts[0], None, pts[1])]

    last = len(pts) - 1
    breaks = [0]
    for i in range(1, last):
        if _turn_angle(pts[i - 1], pts[i], pts[i + 1]) > CORNER_ANGLE:
            breaks.append(i)
    breaks.append(last)

    smooth_seam = closed and len(pts) > 3 and _turn_angle(pts[-2], pts[0], pts[1]) <= CORNER_ANGLE
    seam_tangent = _center_tangent(pts[-2], pts[0], pts[1]) if smooth_seam else None

    segments: List[BezierSegment] = []
    for first, end in zip(breaks, breaks[1:]):
        if first == 0 and seam_tangent is not None:
            t1 = seam_tangent
        else:
            t1 = _unit(_sub(pts[first + 1], pts[first]))
        if end == last and seam_tangent is not None:
            t2 = _scale(seam_tangent, -1.0)
        else:
            t2 = _unit(_sub(pts[end - 1], pts[end]))
        segments.extend(_fit_piece(pts, first, end, t1, t2, max_error))

    logger.debug("Fitted %d vertices into %d bezier segments", len(pts), len(segments))
    return segments


def _fit_piece(
    pts: Sequence[Coord], first: int, last: int, t1: Coord, t2: Coord, max_error: float
) -> List[BezierSegment]:
    segments: List[BezierSegment] = []
    # explicit stack instead of recursion; long contours would exceed the recursion limit
    stack = [(first, last, t1, t2)]
    while stack:
        a, b, ta, tb = stack.pop()
        segment, split = _fit_run(pts[a:b + 1], ta, tb, max_error)
        if segment is not None:
            segments.append(segment)
            continue
        mid = a + split
        tc = _center_tangent(pts[mid - 1], pts[mid], pts[mid + 1])
        stack.append((mid, b, tc, tb))
        stack.append((a, mid, ta, _scale(tc, -1.0)))
    return segments


# ---------------------------------------------------------------------------
# Flattening (decoding Bézier runs back to dense polylines)
# ---------------------------------------------------------------------------

def flatten_cubic(p0: Coord, c1: Coord, c2: Coord, p3: Coord, flatness: float,
                  out: Optional[List[Coord]] = None, depth: int = 0) -> List[Coord]:
    """Points after p0 up to and including p3, by de Casteljau subdivision."""
    if out is None:
        out = []
    d = max(point_segment_distance(c1, p0, p3), point_segment_distance(c2, p0, p3))
    if d <= flatness or depth >= 16:
        out.append(p3)
        return out
    p01 = _scale(_add(p0, c1), 0.5)
    p12 = _scale(_add(c1, c2), 0.5)
    p23 = _scale(_add(c2, p3), 0.5)
    p012 = _scale(_add(p01, p12), 0.5)
    p123 = _scale(_add(p12, p23), 0.5)
    p0123 = _scale(_add(p012, p123), 0.5)
    flatten_cubic(p0, p01, p012, p0123, flatness, out, depth + 1)
    flatten_cubic(p0123, p123, p23, p3, flatness, out, depth + 1)
    return out


def flatten(segments: Sequence[BezierSegment], flatness: float) -> LineString:
    """Dense polyline through *segments* within *flatness* of the curves."""
    if not segments:
        return []
    line: LineString = [segments[0].start]
    for seg in segments:
        if seg.handles is None:
            line.append(seg.end)
        else:
            flatten_cubic(seg.start, seg.handles[0], seg.handles[1], seg.end, flatness, line)
    return line
