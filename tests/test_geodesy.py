from __future__ import annotations

import math
import random

from routeplanner.geodesy import (
    EARTH_RADIUS_M,
    angle_difference_deg,
    bearing_deg,
    compass_octant,
    haversine_m,
    path_distance_m,
)


def _random_coordinate(rng: random.Random) -> tuple[float, float]:
    return (rng.uniform(-180.0, 180.0), rng.uniform(-90.0, 90.0))


def test_haversine_is_zero_on_identity_and_symmetric() -> None:
    rng = random.Random(20261019)
    for _ in range(200):
        a = _random_coordinate(rng)
        b = _random_coordinate(rng)
        assert haversine_m(a, a) == 0.0
        assert haversine_m(a, b) == haversine_m(b, a)
        if a != b:
            assert haversine_m(a, b) > 0.0


def test_haversine_matches_known_distances() -> None:
    # One degree of latitude along a meridian.
    assert math.isclose(haversine_m((0.0, 0.0), (0.0, 1.0)), EARTH_RADIUS_M * math.pi / 180.0, rel_tol=1e-9)
    # Antipodal points are half the circumference apart.
    assert math.isclose(haversine_m((0.0, 0.0), (180.0, 0.0)), EARTH_RADIUS_M * math.pi, rel_tol=1e-9)
    shenzhen_span = haversine_m((114.0579, 22.5431), (113.9355, 22.4931))
    assert 13_000.0 < shenzhen_span < 14_000.0


def test_bearing_cardinal_directions() -> None:
    origin = (0.0, 0.0)
    assert math.isclose(bearing_deg(origin, (0.0, 1.0)), 0.0, abs_tol=1e-9)
    assert math.isclose(bearing_deg(origin, (1.0, 0.0)), 90.0, abs_tol=1e-9)
    assert math.isclose(bearing_deg(origin, (0.0, -1.0)), 180.0, abs_tol=1e-9)
    assert math.isclose(bearing_deg(origin, (-1.0, 0.0)), 270.0, abs_tol=1e-9)


def test_bearing_always_in_half_open_range() -> None:
    rng = random.Random(7)
    for _ in range(500):
        value = bearing_deg(_random_coordinate(rng), _random_coordinate(rng))
        assert 0.0 <= value < 360.0
    # Nearly-north headings just west of the meridian must not return 360.
    assert 0.0 <= bearing_deg((0.0, 0.0), (-1e-15, 1.0)) < 360.0


def test_angle_difference_is_signed_and_minimal() -> None:
    assert angle_difference_deg(10.0, 30.0) == 20.0
    assert angle_difference_deg(30.0, 10.0) == -20.0
    assert angle_difference_deg(350.0, 10.0) == 20.0
    assert angle_difference_deg(10.0, 350.0) == -20.0
    assert angle_difference_deg(0.0, 180.0) == 180.0
    assert angle_difference_deg(180.0, 0.0) == 180.0
    rng = random.Random(11)
    for _ in range(200):
        diff = angle_difference_deg(rng.uniform(0.0, 360.0), rng.uniform(0.0, 360.0))
        assert -180.0 < diff <= 180.0


def test_path_distance_sums_segments() -> None:
    path = [(0.0, 0.0), (0.0, 1.0), (1.0, 1.0)]
    expected = haversine_m(path[0], path[1]) + haversine_m(path[1], path[2])
    assert math.isclose(path_distance_m(path), expected)
    assert path_distance_m(path[:1]) == 0.0
    assert path_distance_m([]) == 0.0


def test_compass_octant_bins() -> None:
    assert compass_octant(0.0) == 0
    assert compass_octant(359.0) == 0
    assert compass_octant(45.0) == 1
    assert compass_octant(90.0) == 2
    assert compass_octant(200.0) == 4
    assert compass_octant(315.0) == 7
