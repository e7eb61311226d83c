import io
import math
import re

import pytest

from omap import Omap, Scale
from omap.config import WriterSettings
from omap.editor import OmapEditor
from omap.errors import InvalidCoordinate, MapPartMergeError, MismatchingSymbolAndObject, ParseFormatError
from omap.models import Polygon, WrapBox
from omap.objects import AreaObject, LineObject, PointObject, TextObject
from omap.symbols import AreaSymbol, LineSymbol, PointSymbol, SymbolKind, TextSymbol

GEOREF = (
    '<georeferencing scale="15000" grid_scale_factor="1" auxiliary_scale_factor="1" declination="0" grivation="0">'
    '<projected_crs id="Local"><ref_point x="0" y="0"/></projected_crs></georeferencing>\n'
)

DOCUMENT = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    '<map xmlns="http://openorienteering.org/apps/mapper/xml/v2" version="9">\n'
    "<notes>survey 2024</notes>\n"
    + GEOREF +
    '<colors count="0"/>\n'
    '<barrier version="6" required="0.6.0">\n'
    '<symbols count="4" id="test">'
    '<symbol type="2" id="0" code="101" name="Contour"/>'
    '<symbol type="4" id="1" code="401" name="Open land"/>'
    '<symbol type="16" id="2" code="999" name="Combined"/>'
    '<symbol type="1" id="3" code="109" name="Knoll"/>'
    "</symbols>\n"
    '<parts count="2" current="1">\n'
    '<part name="one"><objects count="2">\n'
    '<object type="1" symbol="0"><coords count="2">0 0;1000 -1000;</coords></object>\n'
    '<object type="0" symbol="3" rotation="0.5"><coords count="1">10 10;</coords></object>\n'
    "</objects></part>\n"
    '<part name="two"><objects count="1">\n'
    '<object type="1" symbol="2"><coords><coord x="0" y="0"/><coord x="100" y="0"/>'
    '<coord x="100" y="100"/><coord x="0" y="0" flags="18"/></coords></object>\n'
    "</objects></part>\n"
    "</parts>\n"
    "</barrier>\n"
    "</map>"
).encode("utf-8")


@pytest.fixture
def editor():
    return OmapEditor.from_bytes(DOCUMENT, WriterSettings())


def written_map():
    m = Omap((463_562.5, 6_833_872.7), Scale.S15_000, settings=WriterSettings())
    circle = [(40 * math.cos(2 * math.pi * i / 48), 40 * math.sin(2 * math.pi * i / 48)) for i in range(48)]
    circle.append(circle[0])
    hole = [(-5, -5), (5, -5), (5, 5), (-5, 5), (-5, -5)]
    contour = LineObject(circle, LineSymbol.CONTOUR)
    contour.add_elevation_tag(212.5)
    m.add_object(contour)
    m.add_object(AreaObject(Polygon(circle, [hole]), AreaSymbol.MARSH, pattern_rotation=0.25))
    m.add_object(PointObject((12.0, -7.5), PointSymbol.CAIRN, rotation=0.3))
    m.add_object(TextObject(WrapBox((1.5, 3.0), 30.0, 15.0), TextSymbol.CONTROL_NUMBER, "A & B"))
    sink = io.BytesIO()
    m.write(sink, bezier_error=0.3)
    return sink.getvalue()


def test_unmodified_document_round_trips(editor):
    assert editor.to_bytes() == DOCUMENT


def test_written_map_round_trips():
    data = written_map()
    assert OmapEditor.from_bytes(data, WriterSettings()).to_bytes() == data


def test_decoded_geometry():
    editor = OmapEditor.from_bytes(written_map(), WriterSettings())
    by_kind = {obj.kind: obj for obj in editor.objects()}

    point = by_kind[SymbolKind.POINT]
    assert point.geometry == pytest.approx((12.0, -7.5), abs=0.01)
    assert point.rotation == pytest.approx(0.3)

    line = by_kind[SymbolKind.LINE]
    assert line.has_curves
    assert line.tags == {"Elevation": "212.50"}
    assert all(abs(math.hypot(*p) - 40) < 0.5 for p in line.geometry)

    area = by_kind[SymbolKind.AREA]
    assert len(area.geometry.interiors) == 1
    assert area.pattern_rotation == pytest.approx(0.25)

    text = by_kind[SymbolKind.TEXT]
    assert isinstance(text.geometry, WrapBox)
    assert text.geometry.width == pytest.approx(30.0, abs=0.01)
    assert text.text == "A & B"


def test_lookup(editor):
    assert [p.name for p in editor.parts] == ["one", "two"]
    assert editor.part_by_name("two") is editor.parts[1]
    assert editor.part_by_name("TWO") is None
    assert editor.part_by_index(2) is None
    assert len(list(editor.objects(symbol_id=0))) == 1
    assert editor.parts[0].objects_by_symbol(3)[0].kind is SymbolKind.POINT
    assert editor.symbols[2].name == "Combined"
    assert editor.notes == "survey 2024"
    assert editor.georef.is_local


def test_combined_symbol_object_is_area_when_closed(editor):
    (obj,) = editor.parts[1].objects
    assert obj.kind is SymbolKind.AREA
    assert obj.geometry.exterior[0] == pytest.approx((0.0, 0.0))


def test_geometry_is_in_ground_units(editor):
    line, point = editor.parts[0].objects
    assert line.geometry[-1] == pytest.approx((15.0, 15.0))
    assert point.geometry == pytest.approx((0.15, -0.15))
    assert point.rotation == pytest.approx(0.5)


def test_only_modified_objects_are_rewritten(editor):
    line, point = editor.parts[0].objects
    line.set_geometry([(0.0, 0.0), (30.0, 0.0)])
    assert line.is_modified and not point.is_modified
    out = editor.to_bytes().decode()
    assert '<object type="1" symbol="0"><coords count="2">0 0;2000 0;</coords></object>\n' in out
    assert '<object type="0" symbol="3" rotation="0.5"><coords count="1">10 10;</coords></object>\n' in out


def test_rotation_change_keeps_coordinates(editor):
    point = editor.parts[0].objects[1]
    point.rotation = 1.0
    assert '<object type="0" symbol="3" rotation="1"><coords count="1">10 10;</coords></object>' in \
        editor.to_bytes().decode()


def coords_blocks(data: bytes):
    return re.findall(rb"<coords[^>]*>.*?</coords>", data)


def test_pattern_rotation_and_text_changes_keep_curves():
    data = written_map()
    editor = OmapEditor.from_bytes(data, WriterSettings())
    by_kind = {obj.kind: obj for obj in editor.objects()}
    area, text = by_kind[SymbolKind.AREA], by_kind[SymbolKind.TEXT]
    assert area.has_curves

    area.pattern_rotation = 1.0
    text.text = "C < D"
    out = editor.to_bytes()

    assert coords_blocks(out) == coords_blocks(data)
    assert b'<pattern rotation="1"><coord x="0" y="0"/></pattern>' in out
    assert b"<text>C &lt; D</text>" in out
    assert b'<size width="2000" height="1000"/>' in out
    reloaded = {obj.kind: obj for obj in OmapEditor.from_bytes(out, WriterSettings()).objects()}
    assert reloaded[SymbolKind.AREA].pattern_rotation == pytest.approx(1.0)
    assert reloaded[SymbolKind.AREA].segments == area.segments
    assert reloaded[SymbolKind.TEXT].text == "C < D"
    assert reloaded[SymbolKind.AREA].tags == area.tags


def test_tag_editing(editor):
    line = editor.parts[0].objects[0]
    line.add_tag("source", "a<b")
    out = editor.to_bytes().decode()
    assert ('<object type="1" symbol="0"><tags><t k="source">a&lt;b</t></tags>'
            '<coords count="2">0 0;1000 -1000;</coords></object>') in out
    assert line.remove_tag("source") == "a<b"
    assert '<object type="1" symbol="0"><coords count="2">' in editor.to_bytes().decode()


def test_change_symbol(editor):
    line = editor.parts[0].objects[0]
    with pytest.raises(MismatchingSymbolAndObject):
        editor.change_symbol(line, 1)
    assert line.symbol_id == 0 and not line.is_modified

    area = editor.parts[1].objects[0]
    editor.change_symbol(area, 1)
    assert '<object type="1" symbol="1"><coords><coord x="0" y="0"/>' in editor.to_bytes().decode()
    with pytest.raises(KeyError):
        editor.change_symbol(area, 42)


def test_merge_two_parts(editor):
    editor.merge_two_parts(0, 1)
    assert [p.name for p in editor.parts] == ["one"]
    assert len(editor.parts[0]) == 3
    assert editor.to_bytes().decode().count('<parts count="1" current="0">') == 1


@pytest.mark.parametrize("first, second", [(0, 0), (0, 2), (-1, 0)])
def test_merge_two_parts_rejects_bad_indices(editor, first, second):
    with pytest.raises(MapPartMergeError):
        editor.merge_two_parts(first, second)
    assert len(editor.parts) == 2


def test_merge_all_parts_and_remove(editor):
    editor.merge_all_parts("everything")
    assert [p.name for p in editor.parts] == ["everything"]
    assert editor.num_objects() == 3
    assert editor.remove_part(3) is None
    assert editor.remove_part(0).name == "everything"
    assert '<parts count="0" current="0">\n</parts>' in editor.to_bytes().decode()


def test_notes_are_rewritten_when_changed(editor):
    editor.notes = "a & b"
    assert "<notes>a &amp; b</notes>\n<georeferencing" in editor.to_bytes().decode()


def test_write_to_file(editor, tmp_path):
    target = editor.write_to_file(tmp_path / "edited")
    assert target.name == "edited.omap"
    assert OmapEditor.from_path(target, WriterSettings()).to_bytes() == DOCUMENT


@pytest.mark.parametrize("old, new, error", [
    (b"0 0;1000 -1000;", b"0 0;abc;", InvalidCoordinate),
    (b'symbol="0"><coords', b'symbol="9"><coords', ParseFormatError),
    (b"</map>", b"", ParseFormatError),
    (GEOREF.encode(), b"", ParseFormatError),
    (b'<parts count="2" current="1">', b'<parts count="2" current="x">', ParseFormatError),
])
def test_malformed_documents(old, new, error):
    with pytest.raises(error):
        OmapEditor.from_bytes(DOCUMENT.replace(old, new), WriterSettings())
