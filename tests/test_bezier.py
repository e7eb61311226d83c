import math
import random

import pytest

from omap.bezier import (BezierError, BezierSegment, evaluate, fit_bezier, flatten, num_points,
                         point_polyline_distance)
from omap.errors import DegenerateGeometry


def wobbly_line(seed, n=60, step=5.0):
    rng = random.Random(seed)
    heading = rng.uniform(0, 2 * math.pi)
    x = y = 0.0
    points = [(x, y)]
    for _ in range(n):
        heading += rng.uniform(-0.4, 0.4)
        x += step * math.cos(heading)
        y += step * math.sin(heading)
        points.append((x, y))
    return points


def circle(n=40, r=50.0):
    pts = [(r * math.cos(2 * math.pi * i / n), r * math.sin(2 * math.pi * i / n)) for i in range(n)]
    return pts + [pts[0]]


def max_deviation(points, segments):
    curve = flatten(segments, 0.001)
    return max(point_polyline_distance(p, curve) for p in points)


@pytest.mark.parametrize("seed", [1, 7, 42, 1234])
@pytest.mark.parametrize("max_error", [0.3, 1.0, 2.5])
def test_fit_stays_within_error(seed, max_error):
    points = wobbly_line(seed)
    segments = fit_bezier(points, max_error)
    assert max_deviation(points, segments) <= max_error * 1.02
    assert segments[0].start == points[0]
    assert segments[-1].end == points[-1]


def test_segments_are_connected():
    segments = fit_bezier(wobbly_line(3), 0.5)
    for a, b in zip(segments, segments[1:]):
        assert a.end == b.start


def test_straight_line_needs_no_curves():
    points = [(float(i), 0.0) for i in range(20)]
    segments = fit_bezier(points, 0.5)
    assert segments == [BezierSegment((0.0, 0.0), None, (19.0, 0.0))]


def test_sharp_turn_is_kept_as_corner():
    points = [(0.0, 0.0), (10.0, 0.0), (20.0, 0.0), (10.0, 5.0), (0.0, 10.0)]
    segments = fit_bezier(points, 0.5)
    assert [s.handles for s in segments] == [None, None]
    assert segments[0].end == (20.0, 0.0)


def test_closed_ring_returns_to_start():
    ring = circle()
    segments = fit_bezier(ring, 0.2)
    assert segments[-1].end == segments[0].start == ring[0]
    assert any(s.is_curve for s in segments)
    assert max_deviation(ring, segments) <= 0.2 * 1.02


def test_closed_ring_is_smooth_at_seam():
    segments = fit_bezier(circle(), 0.5)
    first, last = segments[0], segments[-1]
    if not (first.is_curve and last.is_curve):
        pytest.skip("seam fell on a straight run")
    out_dir = (first.handles[0][0] - first.start[0], first.handles[0][1] - first.start[1])
    in_dir = (last.end[0] - last.handles[1][0], last.end[1] - last.handles[1][1])
    cross = out_dir[0] * in_dir[1] - out_dir[1] * in_dir[0]
    assert abs(cross) < 1e-6 * math.hypot(*out_dir) * math.hypot(*in_dir) + 1e-9


def test_duplicate_points_are_ignored():
    segments = fit_bezier([(0.0, 0.0), (0.0, 0.0), (5.0, 5.0), (5.0, 5.0)], 1.0)
    assert segments == [BezierSegment((0.0, 0.0), None, (5.0, 5.0))]


def test_degenerate_input():
    with pytest.raises(DegenerateGeometry):
        fit_bezier([(1.0, 1.0), (1.0, 1.0)], 1.0)
    with pytest.raises(DegenerateGeometry):
        fit_bezier([], 1.0)


def test_long_contour_does_not_recurse():
    points = wobbly_line(99, n=5000, step=1.0)
    segments = fit_bezier(points, 0.1)
    assert segments[-1].end == points[-1]


def test_num_points_counts_handles():
    segments = [
        BezierSegment((0, 0), ((1, 1), (2, 1)), (3, 0)),
        BezierSegment((3, 0), None, (4, 0)),
    ]
    assert num_points(segments) == 5
    assert num_points([]) == 0


def test_flatten_follows_curve():
    seg = BezierSegment((0.0, 0.0), ((0.0, 10.0), (10.0, 10.0)), (10.0, 0.0))
    line = flatten([seg], 0.01)
    assert line[0] == (0.0, 0.0) and line[-1] == (10.0, 0.0)
    for k in range(11):
        p = evaluate(seg.start, seg.handles[0], seg.handles[1], seg.end, k / 10)
        assert point_polyline_distance(p, line) < 0.02


def test_bezier_error_threshold():
    err = BezierError(0.05, 2.0)
    assert err.line_error is None
    assert err.area_error == 2.0
    assert BezierError().line_error is None
