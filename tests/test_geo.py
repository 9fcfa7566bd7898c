"""Tests for distance calculation."""

import pytest

from promo_radar.core import Coordinate, distance_km


def test_distance_zero_for_same_point() -> None:
    point = Coordinate(latitude=12.9716, longitude=77.5946)

    assert distance_km(point, point) == 0.0


def test_distance_is_symmetric() -> None:
    pairs = [
        (Coordinate(0.0, 0.0), Coordinate(0.0, 0.02)),
        (Coordinate(12.9716, 77.5946), Coordinate(13.0827, 80.2707)),
        (Coordinate(-33.8688, 151.2093), Coordinate(51.5074, -0.1278)),
        (Coordinate(89.9, -179.9), Coordinate(-89.9, 179.9)),
    ]

    for a, b in pairs:
        assert distance_km(a, b) == distance_km(b, a)


def test_distance_along_equator() -> None:
    """0.02 degrees of longitude on the equator is about 2.22 km."""
    result = distance_km(Coordinate(0.0, 0.0), Coordinate(0.0, 0.02))

    assert result == pytest.approx(2.2239, abs=1e-3)


def test_distance_between_cities() -> None:
    """Bengaluru to Chennai is roughly 290 km as the crow flies."""
    bengaluru = Coordinate(12.9716, 77.5946)
    chennai = Coordinate(13.0827, 80.2707)

    assert distance_km(bengaluru, chennai) == pytest.approx(290, rel=0.02)
