import io
import math

import pytest

from omap.errors import MismatchedGeometry, MismatchingSymbolAndObject, ObjectConsumedError
from omap.models import Polygon, WrapBox
from omap.objects import (AreaObject, HorizontalAlign, LineObject, PointObject, TextObject, VerticalAlign,
                          object_for)
from omap.symbols import AreaSymbol, LineSymbol, PointSymbol, TextSymbol
from omap.transform import Transform

IDENTITY = Transform()


def render(obj, bezier_error=None, transform=IDENTITY):
    sink = io.BytesIO()
    obj.write(sink, bezier_error, transform)
    return sink.getvalue().decode()


def test_point_object():
    xml = render(PointObject((0.0, 0.0), PointSymbol.SMALL_BOULDER))
    assert xml == '<object type="0" symbol="35" rotation="0"><coords count="1">0 0;</coords></object>\n'


def test_point_rotation_includes_grivation():
    obj = PointObject((0.0, 0.0), PointSymbol.ELONGATED_DOT_KNOLL, rotation=math.pi / 4)
    xml = render(obj, transform=Transform(grivation=0.1))
    assert f'rotation="{math.pi / 4 + 0.1!r}"' in xml


def test_elevation_tag():
    obj = LineObject([(0, 0), (1, 1)], LineSymbol.CONTOUR)
    obj.add_elevation_tag(1234.5)
    assert obj.tags == {"Elevation": "1234.50"}
    assert obj.elevation == 1234.5
    assert '<tags><t k="Elevation">1234.50</t></tags>' in render(obj)


def test_tags_are_escaped():
    obj = PointObject((0, 0), PointSymbol.CAIRN, tags={'a"b': "<x & y>"})
    assert '<t k=\'a"b\'>&lt;x &amp; y&gt;</t>' in render(obj)


def test_change_symbol_of_wrong_kind_leaves_object_unchanged():
    obj = LineObject([(0, 0), (1, 1)], LineSymbol.CONTOUR)
    with pytest.raises(MismatchingSymbolAndObject):
        obj.change_symbol(AreaSymbol.MARSH)
    assert obj.symbol is LineSymbol.CONTOUR
    obj.change_symbol(LineSymbol.FORM_LINE)
    assert obj.symbol is LineSymbol.FORM_LINE


def test_constructor_rejects_wrong_symbol_kind():
    with pytest.raises(MismatchingSymbolAndObject):
        PointObject((0, 0), LineSymbol.CONTOUR)


def test_wrong_geometry():
    with pytest.raises(MismatchedGeometry):
        LineObject((0.0, 0.0), LineSymbol.CONTOUR)
    with pytest.raises(MismatchedGeometry):
        PointObject([(0, 0), (1, 1)], PointSymbol.CAIRN)
    with pytest.raises(MismatchedGeometry):
        AreaObject([(0, 0), (1, 1)], AreaSymbol.MARSH)


def test_write_consumes():
    obj = PointObject((0, 0), PointSymbol.CAIRN)
    render(obj)
    assert obj.consumed
    with pytest.raises(ObjectConsumedError):
        obj.add_tag("k", "v")
    with pytest.raises(ObjectConsumedError):
        render(obj)


def test_line_without_bezier_symbol_stays_polyline():
    line = [(10 * math.cos(a), 10 * math.sin(a)) for a in (i / 10 for i in range(20))]
    xml = render(LineObject(line, LineSymbol.BASEMAP_CONTOUR), bezier_error=0.5)
    assert f'count="{len(line)}"' in xml
    assert " 1;" not in xml


def test_area_pattern_rotation_only_for_rotatable_symbols():
    ring = [(0, 0), (100, 0), (100, 100), (0, 0)]
    rotatable = render(AreaObject(ring, AreaSymbol.MARSH, pattern_rotation=0.5))
    plain = render(AreaObject(ring, AreaSymbol.OPEN_LAND, pattern_rotation=0.5))
    assert '<pattern rotation="0.5"><coord x="0" y="0"/></pattern>' in rotatable
    assert "<pattern" not in plain


def test_area_from_open_ring_is_closed():
    obj = AreaObject.from_polygon([(0, 0), (10, 0), (10, 10)], AreaSymbol.OPEN_LAND)
    assert obj.polygon == Polygon([(0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 0.0)])


def test_text_object():
    obj = TextObject.from_point((0, 0), TextSymbol.SPOT_HEIGHT, "12 & 3")
    xml = render(obj)
    assert xml.startswith('<object type="4" symbol="164" h_align="1" v_align="2">')
    assert "<text>12 &amp; 3</text>" in xml
    assert "rotation" not in xml


def test_text_wrap_box():
    obj = TextObject(WrapBox((0, 0), 10, 5), TextSymbol.CONTROL_NUMBER, "42",
                     h_align=HorizontalAlign.LEFT, v_align=VerticalAlign.TOP)
    xml = render(obj)
    assert '<coords count="2">0 0;10 5;</coords>' in xml
    assert '<size width="10" height="5"/>' in xml
    assert 'h_align="0" v_align="1"' in xml


def test_object_for_dispatches_on_symbol_kind():
    assert isinstance(object_for(PointSymbol.CAIRN, (0, 0)), PointObject)
    assert isinstance(object_for(AreaSymbol.MARSH, [(0, 0), (1, 0), (1, 1)]), AreaObject)
    text = object_for(TextSymbol.SPOT_HEIGHT, (0, 0), text="5")
    assert isinstance(text, TextObject) and text.text == "5"
