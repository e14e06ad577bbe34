import pytest

from odbfinder.core.geo import GeoPoint, haversine_km, haversine_m

CAIRO = (30.0444, 31.2357)
GIZA = (29.9792, 31.1342)
ALEXANDRIA = (31.2001, 29.9187)


def test_haversine_zero_for_identical_points():
    assert haversine_km(*CAIRO, *CAIRO) == 0.0


def test_haversine_known_city_distances():
    assert 11.0 < haversine_km(*CAIRO, *GIZA) < 14.0
    assert 175.0 < haversine_km(*CAIRO, *ALEXANDRIA) < 190.0


def test_haversine_is_symmetric():
    assert haversine_km(*CAIRO, *ALEXANDRIA) == pytest.approx(haversine_km(*ALEXANDRIA, *CAIRO))


def test_haversine_antipodal_points_do_not_fail():
    # Half the circumference, within floating point noise.
    assert haversine_km(0.0, 0.0, 0.0, 180.0) == pytest.approx(20015.09, rel=1e-4)


def test_haversine_clamps_out_of_range_inputs():
    assert haversine_km(120.0, 10.0, 90.0, 10.0) == 0.0
    assert haversine_km(0.0, 200.0, 0.0, 180.0) == 0.0


def test_haversine_m_scales_km():
    a, b = GeoPoint(*CAIRO), GeoPoint(*GIZA)
    assert haversine_m(a, b) == pytest.approx(haversine_km(*CAIRO, *GIZA) * 1000.0)
