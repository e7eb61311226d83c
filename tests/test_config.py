import pytest

from omap.config import WriterSettings, parse_env_bool


def test_defaults():
    settings = WriterSettings.from_env()
    assert settings == WriterSettings()
    assert settings.default_filename == "auto_generated_map.omap"
    assert settings.line_bezier_error is None
    assert settings.geo_referencing


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("OMAP_LINE_BEZIER_ERROR", "0.75")
    monkeypatch.setenv("OMAP_AREA_BEZIER_ERROR", "1.5")
    monkeypatch.setenv("OMAP_GEO_REFERENCING", "off")
    monkeypatch.setenv("OMAP_EPSG_IO_FALLBACK", "No")
    monkeypatch.setenv("OMAP_HTTP_TIMEOUT", "2")
    settings = WriterSettings.from_env()
    assert settings.line_bezier_error == 0.75
    assert settings.area_bezier_error == 1.5
    assert settings.geo_referencing is False
    assert settings.epsg_io_fallback is False
    assert settings.http_timeout == 2.0


@pytest.mark.parametrize("raw, expected", [("1", True), ("TRUE", True), (" yes ", True), ("0", False),
                                           ("false", False), ("maybe", None)])
def test_parse_env_bool(monkeypatch, raw, expected):
    monkeypatch.setenv("OMAP_FLAG", raw)
    assert parse_env_bool("OMAP_FLAG") is expected


def test_invalid_number(monkeypatch):
    monkeypatch.setenv("OMAP_HTTP_TIMEOUT", "soon")
    with pytest.raises(ValueError):
        WriterSettings.from_env()
