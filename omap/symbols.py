"""The compiled-in symbol catalog.

A symbol is one member of AreaSymbol, LineSymbol, PointSymbol or TextSymbol.
The enum value is the symbol's id in the bundled symbol sets
(assets/symbols_*.xml), which is what <object symbol="..."> refers to. The
per-symbol facts (ISOM code, name, minimum size by scale, whether the symbol
or its pattern can be rotated, whether it may be curve fitted) live in the
lookup tables at the bottom of this module.

Symbols are never created at runtime.
"""

import enum
from typing import Dict, Iterator, Tuple, Union

from .models import Scale


class SymbolKind(enum.Enum):
    AREA = "area"
    LINE = "line"
    POINT = "point"
    TEXT = "text"

    @property
    def object_type(self) -> int:
        """Value of the <object type="..."> attribute for this kind."""
        return _OBJECT_TYPES[self]

    @property
    def symbol_type(self) -> int:
        """Value of the <symbol type="..."> attribute for this kind."""
        return _SYMBOL_TYPES[self]


_OBJECT_TYPES = {SymbolKind.POINT: 0, SymbolKind.LINE: 1, SymbolKind.AREA: 1, SymbolKind.TEXT: 4}
_SYMBOL_TYPES = {SymbolKind.POINT: 1, SymbolKind.LINE: 2, SymbolKind.AREA: 4, SymbolKind.TEXT: 8}
_KIND_ORDER = {SymbolKind.AREA: 0, SymbolKind.LINE: 1, SymbolKind.POINT: 2, SymbolKind.TEXT: 3}


class _SymbolMixin:
    """Lookups shared by the four symbol enums."""

    kind: SymbolKind

    @property
    def id(self) -> int:
        return self.value

    @property
    def code(self) -> str:
        return _CATALOG[self.value][0]

    @property
    def label(self) -> str:
        return _CATALOG[self.value][1]

    def min_size(self, scale: Scale) -> float:
        """Minimum feature size at *scale*: m² for areas, 0 where none applies."""
        sizes = _MIN_SIZES.get(self)
        if sizes is None:
            return 0.0
        return sizes[0] if scale is Scale.S10_000 else sizes[1]

    def is_rotatable(self) -> bool:
        return self in _ROTATABLE

    def allows_bezier(self) -> bool:
        return self.kind in (SymbolKind.LINE, SymbolKind.AREA) and self not in _NO_BEZIER

    def sort_key(self) -> Tuple[int, int]:
        return _KIND_ORDER[self.kind], self.value


class AreaSymbol(_SymbolMixin, enum.Enum):
    BROKEN_GROUND = 21
    VERY_BROKEN_GROUND = 23
    GIGANTIC_BOULDER = 38
    BOULDER_FIELD = 41
    STONY_GROUND_SLOW_RUNNING = 45
    SANDY_GROUND = 47
    BARE_ROCK = 48
    UNCROSSABLE_BODY_OF_WATER = 50
    SHALLOW_BODY_OF_WATER = 51
    UNCROSSABLE_MARSH = 64
    MARSH = 67
    INDISTINCT_MARSH = 71
    OPEN_LAND = 77
    ROUGH_OPEN_LAND = 79
    LIGHT_GREEN = 83
    LIGHT_GREEN_ONE_DIRECTION = 84
    MEDIUM_GREEN = 86
    MEDIUM_GREEN_ONE_DIRECTION = 87
    DARK_GREEN = 90
    ORCHARD = 95
    VINEYARD = 96
    ROUGH_VINEYARD = 97
    CULTIVATED_LAND = 100
    PAVED_AREA = 108
    OUT_OF_BOUNDS = 139
    BUILDING = 140
    LARGE_BUILDING_WITH_OUTLINE = 141
    CANOPY_WITH_OUTLINE = 143
    CANOPY_WITHOUT_OUTLINE = 144
    LARGE_BUILDING_WITHOUT_OUTLINE = 145

    @property
    def kind(self) -> SymbolKind:
        return SymbolKind.AREA


class LineSymbol(_SymbolMixin, enum.Enum):
    CONTOUR = 0
    INDEX_CONTOUR = 2
    BASEMAP_CONTOUR = 3
    NEG_BASEMAP_CONTOUR = 4
    FORM_LINE = 6
    EARTH_BANK = 8
    EARTH_WALL = 10
    EROSION_GULLY = 12
    SMALL_EROSION_GULLY = 14
    IMPASSABLE_CLIFF = 25
    CLIFF = 29
    CROSSABLE_WATERCOURSE = 60
    SMALL_CROSSABLE_WATERCOURSE = 61
    MINOR_WATER_CHANNEL = 62
    DISTINCT_VEGETATION_BOUNDARY = 93
    WIDE_ROAD = 115
    ROAD = 118
    VEHICLE_TRACK = 120
    FOOTPATH = 121
    SMALL_FOOTPATH = 122
    LESS_DISTINCT_SMALL_FOOTPATH = 123
    RAILWAY = 131
    POWER_LINE = 132
    MAJOR_POWER_LINE = 134
    IMPASSABLE_FENCE = 136
    FENCE = 137

    @property
    def kind(self) -> SymbolKind:
        return SymbolKind.LINE


class PointSymbol(_SymbolMixin, enum.Enum):
    SLOPE_LINE_CONTOUR = 1
    SLOPE_LINE_FORM_LINE = 7
    MINIMUM_EARTH_BANK = 9
    DOT_KNOLL = 17
    ELONGATED_DOT_KNOLL = 18
    U_DEPRESSION = 19
    PIT = 20
    BROKEN_GROUND_SINGLE_DOT = 22
    PROMINENT_LAND_FEATURE = 24
    MINIMUM_IMPASSABLE_CLIFF = 26
    MINIMUM_CLIFF = 30
    MINIMUM_CLIFF_WITH_TAGS = 32
    ROCKY_PIT_CAVE = 33
    DANGEROUS_PIT = 34
    SMALL_BOULDER = 35
    MEDIUM_BOULDER = 36
    LARGE_BOULDER = 37
    BOULDER_CLUSTER = 39
    LARGE_BOULDER_CLUSTER = 40
    BOULDER_FIELD_SINGLE_TRIANGLE = 42
    BOULDER_FIELD_SINGLE_TRIANGLE_LARGE = 43
    STONY_GROUND_SINGLE_DOT = 46
    WATERHOLE = 63
    MINIMUM_MARSH = 70
    MINIMUM_INDISTINCT_MARSH = 73
    WELL = 74
    SPRING = 75
    PROMINENT_WATER_FEATURE = 76
    PROMINENT_TREE = 104
    PROMINENT_BUSH = 105
    PROMINENT_VEGETATION_FEATURE = 106
    MINIMUM_BRIDGE_TUNNEL = 129
    FOOTBRIDGE = 130
    FENCE_CROSSING_POINT = 138
    MINIMUM_BUILDING = 142
    MINIMUM_RUIN = 150
    HIGH_TOWER = 151
    TOWER = 152
    CAIRN = 153
    FODDER_RACK = 154
    PROMINENT_MAN_MADE_FEATURE_O = 157
    PROMINENT_MAN_MADE_FEATURE_X = 158
    REGISTRATION_MARK = 162
    SPOT_HEIGHT = 163
    OPEN_ORIENTEERING_MAPPER_LOGO = 168

    @property
    def kind(self) -> SymbolKind:
        return SymbolKind.POINT


class TextSymbol(_SymbolMixin, enum.Enum):
    CONTOUR_VALUE = 5
    SPOT_HEIGHT = 164
    CONTROL_NUMBER = 165

    @property
    def kind(self) -> SymbolKind:
        return SymbolKind.TEXT


Symbol = Union[AreaSymbol, LineSymbol, PointSymbol, TextSymbol]

SYMBOL_ENUMS = (AreaSymbol, LineSymbol, PointSymbol, TextSymbol)


def iter_symbols() -> Iterator[Symbol]:
    """All catalog symbols ordered by id."""
    members = [member for enum_cls in SYMBOL_ENUMS for member in enum_cls]
    return iter(sorted(members, key=lambda s: s.value))


def symbol_from_id(symbol_id: int) -> Symbol:
    for enum_cls in SYMBOL_ENUMS:
        try:
            return enum_cls(symbol_id)
        except ValueError:
            continue
    raise KeyError(f"Unknown symbol id {symbol_id}")


# ---------------------------------------------------------------------------
# Lookup tables
# ---------------------------------------------------------------------------

# id -> (ISOM 2017-2 code, name)
_CATALOG: Dict[int, Tuple[str, str]] = {
    0: ("101", "Contour"),
    1: ("101.1", "Slope line, contour"),
    2: ("102", "Index contour"),
    3: ("101.2", "Basemap contour"),
    4: ("101.3", "Negative basemap contour"),
    5: ("102.1", "Contour value"),
    6: ("103", "Form line"),
    7: ("103.1", "Slope line, form line"),
    8: ("104", "Earth bank"),
    9: ("104.1", "Earth bank, minimum size"),
    10: ("105", "Earth wall"),
    12: ("107", "Erosion gully"),
    14: ("108", "Small erosion gully"),
    17: ("109", "Small knoll"),
    18: ("110", "Small elongated knoll"),
    19: ("111", "Small depression"),
    20: ("112", "Pit"),
    21: ("113", "Broken ground"),
    22: ("113.1", "Broken ground, individual dot"),
    23: ("114", "Very broken ground"),
    24: ("115", "Prominent landform feature"),
    25: ("201", "Impassable cliff"),
    26: ("201.1", "Impassable cliff, minimum size"),
    29: ("202", "Cliff"),
    30: ("202.1", "Cliff, minimum size"),
    32: ("202.2", "Cliff, minimum size, with tags"),
    33: ("203", "Rocky pit or cave"),
    34: ("203.1", "Dangerous rocky pit or cave"),
    35: ("204", "Boulder"),
    36: ("204.1", "Medium boulder"),
    37: ("205", "Large boulder"),
    38: ("206", "Gigantic boulder"),
    39: ("207", "Boulder cluster"),
    40: ("207.1", "Large boulder cluster"),
    41: ("208", "Boulder field"),
    42: ("208.1", "Boulder field, single triangle"),
    43: ("208.2", "Boulder field, single triangle, large"),
    45: ("210", "Stony ground, slow running"),
    46: ("210.1", "Stony ground, individual dot"),
    47: ("213", "Open sandy ground"),
    48: ("214", "Bare rock"),
    50: ("301", "Uncrossable body of water"),
    51: ("302", "Shallow body of water"),
    60: ("305", "Crossable watercourse"),
    61: ("306", "Small crossable watercourse"),
    62: ("307", "Minor water channel"),
    63: ("303", "Waterhole"),
    64: ("307.1", "Uncrossable marsh"),
    67: ("308", "Marsh"),
    70: ("308.1", "Marsh, minimum size"),
    71: ("310", "Indistinct marsh"),
    73: ("310.1", "Indistinct marsh, minimum size"),
    74: ("311", "Well, fountain or water tank"),
    75: ("312", "Spring"),
    76: ("313", "Prominent water feature"),
    77: ("401", "Open land"),
    79: ("403", "Rough open land"),
    83: ("406", "Vegetation: slow running"),
    84: ("407", "Vegetation: slow running, good visibility, one direction"),
    86: ("408", "Vegetation: walk"),
    87: ("409", "Vegetation: walk, one direction"),
    90: ("410", "Vegetation: fight"),
    93: ("416", "Distinct vegetation boundary"),
    95: ("412", "Orchard"),
    96: ("413", "Vineyard"),
    97: ("413.1", "Rough vineyard"),
    100: ("415", "Cultivated land"),
    104: ("417", "Prominent large tree"),
    105: ("418", "Prominent bush or small tree"),
    106: ("419", "Prominent vegetation feature"),
    108: ("501", "Paved area"),
    115: ("502", "Wide road"),
    118: ("503", "Road"),
    120: ("504", "Vehicle track"),
    121: ("505", "Footpath"),
    122: ("506", "Small footpath"),
    123: ("507", "Less distinct small footpath"),
    129: ("512", "Bridge / tunnel, minimum size"),
    130: ("512.1", "Footbridge"),
    131: ("509", "Railway"),
    132: ("510", "Power line"),
    134: ("511", "Major power line"),
    136: ("516", "Impassable fence"),
    137: ("516.1", "Fence"),
    138: ("518", "Crossing point"),
    139: ("520", "Area that shall not be entered"),
    140: ("521", "Building"),
    141: ("521.1", "Large building, with outline"),
    142: ("521.2", "Building, minimum size"),
    143: ("522", "Canopy, with outline"),
    144: ("522.1", "Canopy, without outline"),
    145: ("521.3", "Large building, without outline"),
    150: ("523", "Ruin, minimum size"),
    151: ("524", "High tower"),
    152: ("525", "Small tower"),
    153: ("526", "Cairn"),
    154: ("527", "Fodder rack"),
    157: ("530", "Prominent man-made feature, ring"),
    158: ("531", "Prominent man-made feature, x"),
    162: ("601", "Magnetic north line registration mark"),
    163: ("603", "Spot height"),
    164: ("603.1", "Spot height, text"),
    165: ("703", "Control number"),
    168: ("999", "OpenOrienteering Mapper logo"),
}

# Minimum area in square metres on the ground: (1:10 000, 1:15 000)
_MIN_SIZES = {
    AreaSymbol.BROKEN_GROUND: (100.0, 225.0),
    AreaSymbol.VERY_BROKEN_GROUND: (100.0, 225.0),
    AreaSymbol.GIGANTIC_BOULDER: (10.0, 10.0),
    AreaSymbol.BOULDER_FIELD: (100.0, 225.0),
    AreaSymbol.STONY_GROUND_SLOW_RUNNING: (100.0, 225.0),
    AreaSymbol.SANDY_GROUND: (100.0, 225.0),
    AreaSymbol.BARE_ROCK: (100.0, 225.0),
    AreaSymbol.UNCROSSABLE_BODY_OF_WATER: (10.0, 10.0),
    AreaSymbol.SHALLOW_BODY_OF_WATER: (10.0, 10.0),
    AreaSymbol.UNCROSSABLE_MARSH: (100.0, 225.0),
    AreaSymbol.MARSH: (100.0, 225.0),
    AreaSymbol.INDISTINCT_MARSH: (100.0, 225.0),
    AreaSymbol.OPEN_LAND: (100.0, 225.0),
    AreaSymbol.ROUGH_OPEN_LAND: (100.0, 225.0),
    AreaSymbol.LIGHT_GREEN: (100.0, 225.0),
    AreaSymbol.LIGHT_GREEN_ONE_DIRECTION: (100.0, 225.0),
    AreaSymbol.MEDIUM_GREEN: (50.0, 110.0),
    AreaSymbol.MEDIUM_GREEN_ONE_DIRECTION: (50.0, 110.0),
    AreaSymbol.DARK_GREEN: (30.0, 64.0),
    AreaSymbol.ORCHARD: (100.0, 225.0),
    AreaSymbol.VINEYARD: (100.0, 225.0),
    AreaSymbol.ROUGH_VINEYARD: (100.0, 225.0),
    AreaSymbol.CULTIVATED_LAND: (100.0, 225.0),
    AreaSymbol.PAVED_AREA: (100.0, 225.0),
    AreaSymbol.OUT_OF_BOUNDS: (100.0, 225.0),
    AreaSymbol.BUILDING: (10.0, 10.0),
    AreaSymbol.LARGE_BUILDING_WITH_OUTLINE: (10.0, 10.0),
    AreaSymbol.CANOPY_WITH_OUTLINE: (10.0, 10.0),
    AreaSymbol.CANOPY_WITHOUT_OUTLINE: (10.0, 10.0),
    AreaSymbol.LARGE_BUILDING_WITHOUT_OUTLINE: (10.0, 10.0),
}

_ROTATABLE = frozenset({
    AreaSymbol.BOULDER_FIELD,
    AreaSymbol.STONY_GROUND_SLOW_RUNNING,
    AreaSymbol.MARSH,
    AreaSymbol.UNCROSSABLE_MARSH,
    AreaSymbol.INDISTINCT_MARSH,
    AreaSymbol.LIGHT_GREEN_ONE_DIRECTION,
    AreaSymbol.MEDIUM_GREEN_ONE_DIRECTION,
    AreaSymbol.ORCHARD,
    AreaSymbol.VINEYARD,
    AreaSymbol.ROUGH_VINEYARD,
    AreaSymbol.CULTIVATED_LAND,
    PointSymbol.BOULDER_FIELD_SINGLE_TRIANGLE,
    PointSymbol.BOULDER_FIELD_SINGLE_TRIANGLE_LARGE,
    PointSymbol.ELONGATED_DOT_KNOLL,
    PointSymbol.FENCE_CROSSING_POINT,
    PointSymbol.FOOTBRIDGE,
    PointSymbol.MINIMUM_BRIDGE_TUNNEL,
    PointSymbol.MINIMUM_BUILDING,
    PointSymbol.MINIMUM_CLIFF,
    PointSymbol.MINIMUM_CLIFF_WITH_TAGS,
    PointSymbol.MINIMUM_EARTH_BANK,
    PointSymbol.MINIMUM_IMPASSABLE_CLIFF,
    PointSymbol.MINIMUM_RUIN,
    PointSymbol.ROCKY_PIT_CAVE,
    PointSymbol.SLOPE_LINE_CONTOUR,
    PointSymbol.SLOPE_LINE_FORM_LINE,
    PointSymbol.SPRING,
})

# Straight-edged or raster-derived features that are always written as polylines.
_NO_BEZIER = frozenset({
    LineSymbol.BASEMAP_CONTOUR,
    LineSymbol.NEG_BASEMAP_CONTOUR,
    AreaSymbol.CANOPY_WITH_OUTLINE,
    AreaSymbol.CANOPY_WITHOUT_OUTLINE,
    AreaSymbol.BUILDING,
    AreaSymbol.LARGE_BUILDING_WITH_OUTLINE,
    AreaSymbol.LARGE_BUILDING_WITHOUT_OUTLINE,
})
