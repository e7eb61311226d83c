import math

import pytest

from omap.config import WriterSettings
from omap.georef_writer import GeoReferencer


class FakeProjection:
    """Fixed answers in place of pyproj."""

    def __init__(self, lat=61.65, lon=16.2, convergence=0.02, grid_scale_factor=0.9996):
        self.lat = lat
        self.lon = lon
        self.convergence = convergence
        self.grid_scale_factor = grid_scale_factor
        self.calls = []

    def to_geographic(self, local_crs, easting, northing):
        self.calls.append(("to_geographic", easting, northing))
        return self.lat, self.lon

    def convergence_and_grid_scale_factor(self, local_crs, lat, lon):
        self.calls.append(("convergence", lat, lon))
        return self.convergence, self.grid_scale_factor


class FakeGeomagnetic:
    def __init__(self, declination_deg=6.5):
        self.value = math.radians(declination_deg)

    def declination(self, lat, lon, elevation=0.0, day=None):
        return self.value


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("LINE_BEZIER_ERROR", "AREA_BEZIER_ERROR", "GEO_REFERENCING", "EPSG_IO_FALLBACK", "HTTP_TIMEOUT"):
        monkeypatch.delenv("OMAP_" + name, raising=False)


@pytest.fixture
def settings():
    return WriterSettings(epsg_io_fallback=False)


@pytest.fixture
def fake_projection():
    return FakeProjection()


@pytest.fixture
def fake_geomagnetic():
    return FakeGeomagnetic()


@pytest.fixture
def georeferencer(settings, fake_projection, fake_geomagnetic, monkeypatch):
    """GeoReferencer that never touches pyproj, pygeomag or the network."""
    ref = GeoReferencer(settings, projection=fake_projection, geomagnetic=fake_geomagnetic)
    monkeypatch.setattr(ref, "resolve_crs", lambda crs: "fake-crs")
    return ref
