"""The Omap map aggregate: collect objects, then write one .omap file.

An Omap is a one-shot producer. Objects are added one at a time and kept in
per-symbol buckets; write_to_file() (or write()) renders everything and
consumes the map together with all of its objects. Any later use raises
ObjectConsumedError.

The file is written to a temporary sibling and renamed into place when
complete, so a failed write never leaves a truncated .omap behind.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import BinaryIO, Callable, Dict, Iterable, Iterator, List, Optional, Union

from . import assets, postprocess
from .bezier import BezierError
from .config import FILE_EXTENSION, OMAP_NAMESPACE, OMAP_VERSION, WriterSettings
from .errors import ObjectConsumedError
from .georef_writer import georeferencer_for, georeferencing_xml
from .models import Coord, Crs, GeoRefParameters, Scale
from .objects import MapObject
from .symbols import Symbol, SymbolKind
from .transform import Transform

logger = logging.getLogger(__name__)

HEADER = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    f'<map xmlns="{OMAP_NAMESPACE}" version="{OMAP_VERSION}">\n'
    "<notes></notes>\n"
)

TRAILER = (
    '<templates count="0" first_front_template="0">\n'
    '<defaults use_meters_per_pixel="true" meters_per_pixel="0" dpi="0" scale="0"/></templates>\n'
    "<view>\n"
    '<grid color="#646464" display="0" alignment="0" additional_rotation="0" unit="1" h_spacing="500" '
    'v_spacing="500" h_offset="0" v_offset="0" snapping_enabled="true"/>\n'
    '<map_view zoom="1" position_x="0" position_y="0"><map opacity="1" visible="true"/>'
    '<templates count="0"/></map_view>\n'
    "</view>\n"
    "</barrier>\n"
    "</map>"
)


def normalize_path(path: Union[str, os.PathLike, None], default_filename: str) -> Path:
    """Resolve where the map is written.

    An empty path or a directory gets *default_filename* appended, and the
    extension is forced to .omap. Missing parent directories are created
    best-effort; opening the file reports the real error if that failed.
    """
    target = Path(path) if path else Path("")
    if str(path or "") == "" or target.is_dir():
        target = target / default_filename
    if target.suffix != "." + FILE_EXTENSION:
        target = target.with_suffix("." + FILE_EXTENSION)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.warning("Could not create directory %s: %s", target.parent, exc)
    return target


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


def write_atomically(target: Path, produce: Callable[[BinaryIO], None]) -> None:
    """Call produce(f) on a temporary sibling of *target*, then rename it into place.

    The temporary file is removed if produce raises.
    """
    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.stem}-", suffix=".tmp", dir=target.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            produce(f)
        # mkstemp creates 0600; give the file the mode open() would
        os.chmod(tmp_name, 0o666 & ~_current_umask())
        os.replace(tmp_name, target)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def _as_crs(crs: Union[Crs, int, None]) -> Optional[Crs]:
    if crs is None or isinstance(crs, Crs):
        return crs
    return Crs.epsg(crs)


class Omap:
    """A map in *scale* centred on *ref_point* (projected coordinates).

    All object coordinates must be relative to ref_point. With a CRS (a Crs
    or a bare EPSG code) the map is georeferenced through the georeferencer;
    without one it is written in local space.

    Args:
        ref_point:    Reference point in the CRS's units.
        scale:        Map scale.
        crs:          Optional CRS descriptor or EPSG code.
        elevation:    Metres above sea level at ref_point, for the elevation scale factor.
        settings:     WriterSettings; read from OMAP_* environment variables when omitted.
        georeferencer: Object with derive(scale, ref_point, crs, elevation); chosen
                      from settings.geo_referencing when omitted.

    Raises:
        DisabledGeoReferencingFeature: if a CRS is given while geo-referencing is disabled.
        ProjectionError, GeomagneticError: if deriving the parameters fails.
    """

    def __init__(self, ref_point: Coord, scale: Scale = Scale.S15_000, crs: Union[Crs, int, None] = None,
                 elevation: Optional[float] = None, settings: Optional[WriterSettings] = None,
                 georeferencer=None):
        self.settings = settings or WriterSettings.from_env()
        if georeferencer is None:
            georeferencer = georeferencer_for(self.settings)
        self._georef = georeferencer.derive(scale, ref_point, _as_crs(crs), elevation)
        self._transform = Transform.from_georef(self._georef)
        self._objects: Dict[Symbol, List[MapObject]] = {}
        self._written = False

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def georef(self) -> GeoRefParameters:
        return self._georef

    @property
    def transform(self) -> Transform:
        return self._transform

    @property
    def scale(self) -> Scale:
        return self._georef.scale

    @property
    def crs(self) -> Optional[Crs]:
        return self._georef.crs

    @property
    def ref_point(self) -> Coord:
        return self._georef.ref_point

    @property
    def geo_ref_point(self) -> Optional[Coord]:
        """(lat, lon) in degrees, None for a local map."""
        return self._georef.geo_ref_point

    @property
    def grivation(self) -> float:
        return self._georef.grivation

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._objects.values())

    def symbols(self) -> List[Symbol]:
        """Symbols with at least one object, in writing order."""
        return sorted((s for s, b in self._objects.items() if b), key=lambda s: s.sort_key())

    def objects(self, symbol: Optional[Symbol] = None) -> Iterator[MapObject]:
        if symbol is not None:
            return iter(list(self._objects.get(symbol, ())))
        return (obj for s in self.symbols() for obj in self._objects[s])

    # ------------------------------------------------------------------
    # Populating
    # ------------------------------------------------------------------

    def _ensure_alive(self) -> None:
        if self._written:
            raise ObjectConsumedError("The map has already been written")

    def add_object(self, obj: MapObject) -> None:
        """Add *obj* to its symbol's bucket; insertion order is kept within a bucket."""
        self._ensure_alive()
        if not isinstance(obj, MapObject):
            raise TypeError(f"Expected a map object, got {type(obj).__name__}")
        if obj.consumed:
            raise ObjectConsumedError(f"{type(obj).__name__} has already been written")
        self._objects.setdefault(obj.symbol, []).append(obj)

    def add_objects(self, objs: Iterable[MapObject]) -> None:
        for obj in objs:
            self.add_object(obj)

    def take_objects(self, symbol: Symbol) -> List[MapObject]:
        """Remove and return the bucket of *symbol*."""
        self._ensure_alive()
        return self._objects.pop(symbol, [])

    # ------------------------------------------------------------------
    # Post-processing
    # ------------------------------------------------------------------

    def merge_lines(self, delta: float) -> None:
        self._ensure_alive()
        postprocess.merge_lines(self, delta)

    def make_dotknolls_and_depressions(self, min_area: float, max_area: float, elongated_aspect: float) -> None:
        self._ensure_alive()
        postprocess.make_dotknolls_and_depressions(self, min_area, max_area, elongated_aspect)

    def mark_basemap_depressions(self) -> None:
        self._ensure_alive()
        postprocess.mark_basemap_depressions(self)

    def remove_small_areas(self) -> None:
        self._ensure_alive()
        postprocess.remove_small_areas(self)

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def _resolve_bezier_error(self, bezier_error: Union[BezierError, float, None]) -> BezierError:
        if isinstance(bezier_error, BezierError):
            return bezier_error
        if bezier_error is not None:
            return BezierError(bezier_error, bezier_error)
        return BezierError(self.settings.line_bezier_error, self.settings.area_bezier_error)

    def write(self, sink: BinaryIO, bezier_error: Union[BezierError, float, None] = None) -> None:
        """Write the whole document to *sink* and consume the map.

        Args:
            sink:         Binary file-like object.
            bezier_error: BezierError, one tolerance for lines and areas, or None
                          for the settings' defaults.

        Raises:
            CoordinateOverflow: if an object leaves the map unit range.
        """
        self._ensure_alive()
        self._written = True
        errors = self._resolve_bezier_error(bezier_error)

        sink.write(HEADER.encode("utf-8"))
        sink.write(georeferencing_xml(self._georef).encode("utf-8"))
        sink.write(assets.colors_and_symbols(self.scale).encode("utf-8"))

        symbols = self.symbols()
        sink.write(f'<parts count="1" current="0">\n<part name="map"><objects count="{len(self)}">\n'.encode("utf-8"))
        for symbol in symbols:
            bucket = self._objects[symbol]
            if symbol.kind is SymbolKind.LINE:
                max_error = errors.line_error
            elif symbol.kind is SymbolKind.AREA:
                max_error = errors.area_error
            else:
                max_error = None
            logger.debug("Writing %d objects with symbol %s", len(bucket), symbol.name)
            for obj in bucket:
                obj.write(sink, max_error, self._transform)
        sink.write(b"</objects></part>\n</parts>\n")
        sink.write(TRAILER.encode("utf-8"))
        self._objects = {}

    def write_to_file(self, path: Union[str, os.PathLike, None] = None,
                      bezier_error: Union[BezierError, float, None] = None) -> Path:
        """Write the map to an .omap file and consume it.

        Returns:
            The path actually written (see normalize_path()).

        Raises:
            CoordinateOverflow: nothing is left on disk in that case.
            OSError: on filesystem failures.
        """
        self._ensure_alive()
        target = normalize_path(path, self.settings.default_filename)
        logger.debug("Writing map to %s", target)
        write_atomically(target, lambda f: self.write(f, bezier_error))
        return target
