import io
import math
import os
import re

import pytest

from omap import Omap, Scale
from omap.config import WriterSettings
from omap.errors import CoordinateOverflow, DisabledGeoReferencingFeature, ObjectConsumedError
from omap.georef_writer import DisabledGeoReferencer
from omap.models import Crs
from omap.objects import AreaObject, LineObject, PointObject
from omap.omap import normalize_path
from omap.symbols import AreaSymbol, LineSymbol, PointSymbol

REF_POINT = (463_562.5, 6_833_872.7)


def local_map(**kwargs):
    return Omap(REF_POINT, Scale.S15_000, settings=WriterSettings(), **kwargs)


def written(omap, **kwargs):
    sink = io.BytesIO()
    omap.write(sink, **kwargs)
    return sink.getvalue().decode("utf-8")


def test_local_map_end_to_end():
    m = local_map()
    m.add_object(PointObject((0.0, 0.0), PointSymbol.SMALL_BOULDER))
    xml = written(m)

    assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>\n<map xmlns=')
    assert '<coords count="1">0 0;</coords>' in xml
    assert 'rotation="0"' in xml
    assert '<projected_crs id="Local">' in xml
    assert "<geographic_crs" not in xml
    assert '<georeferencing scale="15000" grid_scale_factor="1" auxiliary_scale_factor="1" declination="0" grivation="0">' in xml
    assert '<parts count="1" current="0">\n<part name="map"><objects count="1">' in xml
    assert xml.endswith("</barrier>\n</map>")


def test_objects_are_written_in_symbol_order():
    m = local_map()
    m.add_object(PointObject((0, 0), PointSymbol.CAIRN))
    m.add_object(LineObject([(0, 0), (1, 1)], LineSymbol.CONTOUR))
    m.add_object(AreaObject([(0, 0), (10, 0), (10, 10)], AreaSymbol.MARSH))
    m.add_object(LineObject([(2, 2), (3, 3)], LineSymbol.CONTOUR))
    assert m.symbols() == [AreaSymbol.MARSH, LineSymbol.CONTOUR, PointSymbol.CAIRN]
    assert len(m) == 4

    symbols = re.findall(r'<object type="\d" symbol="(\d+)"', written(m))
    assert symbols == ["67", "0", "0", "153"]


def test_rotation_compounds_with_grivation(georeferencer, fake_projection, fake_geomagnetic):
    local = local_map()
    local.add_object(PointObject((0, 0), PointSymbol.ELONGATED_DOT_KNOLL, rotation=math.pi / 4))
    local_rotation = float(re.search(r'<object[^>]* rotation="([^"]+)"', written(local)).group(1))

    fake_projection.convergence = fake_geomagnetic.value - 0.1
    geo = Omap(REF_POINT, Scale.S15_000, crs=3006, georeferencer=georeferencer, settings=WriterSettings())
    assert geo.grivation == pytest.approx(0.1)
    geo.add_object(PointObject((0, 0), PointSymbol.ELONGATED_DOT_KNOLL, rotation=math.pi / 4))
    geo_rotation = float(re.search(r'<object[^>]* rotation="([^"]+)"', written(geo)).group(1))

    assert geo_rotation - local_rotation == pytest.approx(0.1)


def test_georeferenced_map_block(georeferencer):
    m = Omap(REF_POINT, Scale.S10_000, crs=Crs.epsg(3006), georeferencer=georeferencer, settings=WriterSettings())
    assert m.crs == Crs.epsg(3006)
    assert m.geo_ref_point == (61.65, 16.2)
    xml = written(m)
    assert '<projected_crs id="EPSG"><spec language="PROJ.4">+init=epsg:3006</spec><parameter>3006</parameter>' in xml
    assert '<ref_point x="463562.5" y="6833872.7"/>' in xml
    assert '<ref_point_deg lat="61.65" lon="16.2"/>' in xml
    assert 'scale="10000"' in xml


def test_disabled_georeferencer_rejects_crs():
    with pytest.raises(DisabledGeoReferencingFeature):
        Omap(REF_POINT, crs=3006, georeferencer=DisabledGeoReferencer(), settings=WriterSettings())
    m = Omap(REF_POINT, crs=Crs.local(), georeferencer=DisabledGeoReferencer(), settings=WriterSettings())
    assert m.crs is None


def test_disabled_by_settings():
    with pytest.raises(DisabledGeoReferencingFeature):
        Omap(REF_POINT, crs=3006, settings=WriterSettings(geo_referencing=False))


def test_write_consumes_map_and_objects():
    m = local_map()
    obj = PointObject((0, 0), PointSymbol.CAIRN)
    m.add_object(obj)
    written(m)
    assert obj.consumed
    with pytest.raises(ObjectConsumedError):
        m.add_object(PointObject((0, 0), PointSymbol.CAIRN))
    with pytest.raises(ObjectConsumedError):
        written(m)
    with pytest.raises(ObjectConsumedError):
        local_map().add_object(obj)


def test_bezier_error_applies_per_kind():
    ring = [(30 * math.cos(2 * math.pi * i / 50), 30 * math.sin(2 * math.pi * i / 50)) for i in range(50)]
    ring.append(ring[0])
    m = local_map()
    m.add_object(AreaObject(ring, AreaSymbol.MARSH))
    m.add_object(LineObject(ring, LineSymbol.CONTOUR))
    xml = written(m, bezier_error=None)
    assert xml.count('<coords count="51">') == 2

    m = local_map()
    m.add_object(LineObject(ring, LineSymbol.CONTOUR))
    assert '<coords count="51">' not in written(m, bezier_error=0.5)


def test_write_to_file(tmp_path):
    m = local_map()
    m.add_object(PointObject((0, 0), PointSymbol.CAIRN))
    target = m.write_to_file(tmp_path / "sub" / "map.xml")
    assert target == tmp_path / "sub" / "map.omap"
    assert target.read_bytes().startswith(b"<?xml")
    assert [p.name for p in target.parent.iterdir()] == ["map.omap"]


@pytest.mark.skipif(os.name != "posix", reason="POSIX file modes")
def test_written_file_follows_umask(tmp_path):
    old = os.umask(0o022)
    try:
        m = local_map()
        m.add_object(PointObject((0, 0), PointSymbol.CAIRN))
        target = m.write_to_file(tmp_path / "map")
    finally:
        os.umask(old)
    assert target.stat().st_mode & 0o777 == 0o644


def test_overflow_leaves_no_file(tmp_path):
    m = local_map()
    m.add_object(PointObject((1e12, 0.0), PointSymbol.CAIRN))
    with pytest.raises(CoordinateOverflow):
        m.write_to_file(tmp_path / "broken")
    assert os.listdir(tmp_path) == []


def test_normalize_path(tmp_path):
    assert normalize_path(tmp_path, "auto.omap") == tmp_path / "auto.omap"
    assert normalize_path(tmp_path / "a.b", "x.omap") == tmp_path / "a.omap"
    assert normalize_path(tmp_path / "plain", "x.omap") == tmp_path / "plain.omap"
    assert normalize_path("", "auto.omap").name == "auto.omap"


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("OMAP_LINE_BEZIER_ERROR", "2.5")
    m = Omap(REF_POINT)
    assert m.settings.line_bezier_error == 2.5
