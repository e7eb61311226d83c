import pytest

from omap import assets
from omap.models import Scale
from omap.symbols import (AreaSymbol, LineSymbol, PointSymbol, SymbolKind, TextSymbol, iter_symbols,
                          symbol_from_id)


def test_symbol_ids_are_unique():
    ids = [s.id for s in iter_symbols()]
    assert len(ids) == len(set(ids))


def test_symbol_from_id():
    assert symbol_from_id(77) is AreaSymbol.OPEN_LAND
    assert symbol_from_id(164) is TextSymbol.SPOT_HEIGHT
    with pytest.raises(KeyError):
        symbol_from_id(9999)


def test_kinds_and_object_types():
    assert LineSymbol.CONTOUR.kind is SymbolKind.LINE
    assert AreaSymbol.MARSH.kind.object_type == 1
    assert PointSymbol.CAIRN.kind.object_type == 0
    assert TextSymbol.CONTROL_NUMBER.kind.object_type == 4


def test_catalog_facts():
    assert LineSymbol.CONTOUR.code == "101"
    assert LineSymbol.CONTOUR.label == "Contour"
    assert AreaSymbol.DARK_GREEN.min_size(Scale.S10_000) == 30.0
    assert AreaSymbol.DARK_GREEN.min_size(Scale.S15_000) == 64.0
    assert LineSymbol.CONTOUR.min_size(Scale.S15_000) == 0.0
    assert AreaSymbol.MARSH.is_rotatable()
    assert not AreaSymbol.OPEN_LAND.is_rotatable()
    assert not AreaSymbol.BUILDING.allows_bezier()
    assert LineSymbol.CONTOUR.allows_bezier()
    assert not PointSymbol.CAIRN.allows_bezier()


@pytest.mark.parametrize("scale", list(Scale))
def test_bundled_symbol_set_matches_catalog(scale):
    text = assets.symbols_xml(scale)
    for symbol in iter_symbols():
        assert f'<symbol type="{symbol.kind.symbol_type}" id="{symbol.id}" code="{symbol.code}"' in text


def test_assets_are_cached():
    assert assets.colors_xml() is assets.colors_xml()
    assert assets.colors_and_symbols(Scale.S15_000).startswith("<colors")
