"""Clean-up passes run on a populated map before writing.

  merge_lines                     join open lines of one symbol tip to tail
  make_dotknolls_and_depressions  small contour loops become point symbols
  mark_basemap_depressions        clockwise basemap loops get the negative symbol
  remove_small_areas              drop areas below the symbol's minimum size

Every pass works on the map's per-symbol buckets through Omap.take_objects()
and Omap.add_object(). Distances and areas are in ground units.
"""

import logging
import math
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

import numpy as np
from scipy.spatial import cKDTree

from .models import Coord, LineString, distance, is_closed, signed_area
from .objects import LineObject, MapObject, PointObject
from .symbols import LineSymbol, PointSymbol, SymbolKind

logger = logging.getLogger(__name__)

CONTOUR_SYMBOLS = (LineSymbol.CONTOUR, LineSymbol.FORM_LINE, LineSymbol.INDEX_CONTOUR)


# ---------------------------------------------------------------------------
# merge_lines
# ---------------------------------------------------------------------------

def _elevation_key(obj: LineObject) -> Optional[int]:
    try:
        elevation = obj.elevation
    except ValueError:
        return None
    return None if elevation is None else int(elevation * 100)


def _group_by_elevation(lines: List[LineObject]) -> List[List[LineObject]]:
    """One group per elevation when every line is tagged, else a single group."""
    keys = [_elevation_key(o) for o in lines]
    if any(k is None for k in keys):
        return [lines]
    groups: Dict[int, List[LineObject]] = defaultdict(list)
    for key, obj in zip(keys, lines):
        groups[key].append(obj)
    return list(groups.values())


def _links(lines: List[LineObject], delta: float) -> Dict[int, int]:
    """Map line index j -> index i where j's end meets i's start.

    Pairs are accepted closest first; every end and every start is used once.
    """
    ends = np.array([o.line[-1] for o in lines], dtype=float)
    starts = np.array([o.line[0] for o in lines], dtype=float)
    tree = cKDTree(ends)
    dists, nearest = tree.query(starts, k=1)

    candidates = sorted(
        (d, int(j), i) for i, (d, j) in enumerate(zip(dists, nearest)) if d <= delta
    )
    successor: Dict[int, int] = {}
    taken_starts = set()
    for _, j, i in candidates:
        if j in successor or i in taken_starts:
            continue
        successor[j] = i
        taken_starts.add(i)
    return successor


def _chains(count: int, successor: Dict[int, int]) -> List[Tuple[List[int], bool]]:
    """Ordered index chains and whether each chain is a loop."""
    has_predecessor = set(successor.values())
    visited = set()
    chains = []
    for head in range(count):
        if head in has_predecessor:
            continue
        chain = [head]
        visited.add(head)
        while chain[-1] in successor:
            chain.append(successor[chain[-1]])
            visited.add(chain[-1])
        chains.append((chain, False))
    # whatever is left is made of loops
    for head in range(count):
        if head in visited:
            continue
        chain = [head]
        visited.add(head)
        while successor[chain[-1]] not in visited:
            chain.append(successor[chain[-1]])
            visited.add(chain[-1])
        chains.append((chain, True))
    return chains


def _join(parts: List[LineString]) -> LineString:
    line = list(parts[0])
    for part in parts[1:]:
        line = line[:-1] + list(part)
    return line


def merge_lines(omap, delta: float) -> None:
    """Merge open lines of the same symbol whose ends are at most *delta* apart.

    Only lines with equal Elevation tags are merged when all open lines of a
    symbol carry one. A merged line whose ends end up within *delta* is closed.
    """
    for symbol in omap.symbols():
        if symbol.kind is not SymbolKind.LINE:
            continue
        bucket = omap.take_objects(symbol)
        open_lines = [o for o in bucket if not o.is_closed]
        kept = [o for o in bucket if o.is_closed]
        merged_count = 0

        for group in _group_by_elevation(open_lines):
            successor = _links(group, delta)
            for chain, loop in _chains(len(group), successor):
                first = group[chain[0]]
                line = _join([group[i].line for i in chain])
                if loop or (len(line) > 2 and distance(line[0], line[-1]) <= delta):
                    if line[0] != line[-1]:
                        line.append(line[0])
                merged_count += len(chain) - 1
                kept.append(LineObject(line, symbol, tags=first.tags))

        omap.add_objects(kept)
        if merged_count:
            logger.debug("Merged %d line joints for symbol %s", merged_count, symbol.name)


# ---------------------------------------------------------------------------
# Dot knolls and depressions
# ---------------------------------------------------------------------------

def aspect_midpoint_rotation(line: LineString) -> Tuple[float, Coord, float]:
    """Elongation, vertex centroid and major axis angle (0..pi) of a closed line."""
    pts = line[:-1] if is_closed(line) else line
    n = len(pts)
    mx = sum(p[0] for p in pts) / n
    my = sum(p[1] for p in pts) / n

    mu20 = sum((p[0] - mx) ** 2 for p in pts)
    mu02 = sum((p[1] - my) ** 2 for p in pts)
    mu11 = sum((p[0] - mx) * (p[1] - my) for p in pts)

    root = math.sqrt((mu20 - mu02) ** 2 + 4.0 * mu11 ** 2)
    lambda1 = (mu20 + mu02 + root) / 2.0
    lambda2 = (mu20 + mu02 - root) / 2.0

    tol = 1e-12 * max(mu20 + mu02, 1.0)
    if lambda2 <= tol or (abs(mu20 - mu02) <= tol and abs(mu11) <= tol):
        return 1.0, (mx, my), 0.0

    elongation = math.sqrt(lambda1 / lambda2)
    angle = 0.5 * math.atan2(2.0 * mu11, mu20 - mu02) % math.pi
    return elongation, (mx, my), angle


def make_dotknolls_and_depressions(omap, min_area: float, max_area: float, elongated_aspect: float) -> None:
    """Replace closed contour loops with |area| <= max_area by point symbols.

    Loops below min_area are dropped. Clockwise loops become U-depressions,
    others dot knolls, or elongated dot knolls (rotated along the major axis)
    when their elongation reaches elongated_aspect.
    """
    for symbol in CONTOUR_SYMBOLS:
        bucket = omap.take_objects(symbol)
        kept: List[MapObject] = []
        points: List[PointObject] = []
        for obj in bucket:
            area = signed_area(obj.line) if obj.is_closed else None
            if area is None or abs(area) > max_area:
                kept.append(obj)
                continue
            if abs(area) < min_area:
                continue
            aspect, midpoint, rotation = aspect_midpoint_rotation(obj.line)
            if area < 0.0:
                points.append(PointObject(midpoint, PointSymbol.U_DEPRESSION))
            elif aspect < elongated_aspect:
                points.append(PointObject(midpoint, PointSymbol.DOT_KNOLL))
            else:
                points.append(PointObject(midpoint, PointSymbol.ELONGATED_DOT_KNOLL, rotation))
        omap.add_objects(kept)
        omap.add_objects(points)
        removed = len(bucket) - len(kept)
        if removed:
            logger.debug("%d small %s loops replaced by %d point objects", removed, symbol.name, len(points))


def mark_basemap_depressions(omap) -> None:
    """Move clockwise closed basemap contours to the negative basemap contour symbol."""
    bucket = omap.take_objects(LineSymbol.BASEMAP_CONTOUR)
    for obj in bucket:
        if obj.is_closed and signed_area(obj.line) < 0.0:
            obj.change_symbol(LineSymbol.NEG_BASEMAP_CONTOUR)
    omap.add_objects(bucket)


def remove_small_areas(omap) -> None:
    """Drop area objects smaller than their symbol's minimum size at the map scale."""
    for symbol in omap.symbols():
        if symbol.kind is not SymbolKind.AREA:
            continue
        min_size = symbol.min_size(omap.scale)
        bucket = omap.take_objects(symbol)
        kept = [o for o in bucket if polygon_area(o.polygon) >= min_size]
        omap.add_objects(kept)
        if len(kept) != len(bucket):
            logger.debug("Removed %d %s areas below %.1f m2", len(bucket) - len(kept), symbol.name, min_size)


def polygon_area(polygon) -> float:
    area = abs(signed_area(polygon.exterior))
    return area - sum(abs(signed_area(hole)) for hole in polygon.interiors)
