"""Static color and symbol definitions bundled with the package.

The symbol file for a scale opens the <barrier> element that the map
trailer closes. Files are read once per process and cached.
"""

import functools
from importlib import resources

from .models import Scale

_SYMBOL_FILES = {
    Scale.S10_000: "symbols_10000.xml",
    Scale.S15_000: "symbols_15000.xml",
}


@functools.lru_cache(maxsize=None)
def _read(name: str) -> str:
    return resources.files(__package__).joinpath("assets", name).read_text(encoding="utf-8")


def colors_xml() -> str:
    return _read("colors.xml")


def symbols_xml(scale: Scale) -> str:
    return _read(_SYMBOL_FILES[scale])


def colors_and_symbols(scale: Scale) -> str:
    return colors_xml() + symbols_xml(scale)
