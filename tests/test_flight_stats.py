"""
Tests for flight statistics and great-circle distance.
"""

import numpy as np
import pytest

from flightlog.analytics import calculate_stats, haversine_distance
from flightlog.samples import TelemetrySample


def test_haversine_one_degree_of_latitude():
    """Test that one degree along a meridian is about 111.2 km."""
    assert haversine_distance(0.0, 0.0, 1.0, 0.0) == pytest.approx(111_195, abs=1)


def test_haversine_same_point_is_zero():
    """Test that the distance from a point to itself is zero."""
    assert haversine_distance(47.3, 8.5, 47.3, 8.5) == pytest.approx(0.0)


def test_haversine_vectorized():
    """Test that arrays of coordinates give per-pair distances."""
    distances = haversine_distance(
        np.array([0.0, 0.0]), np.array([0.0, 0.0]),
        np.array([1.0, 0.0]), np.array([0.0, 1.0]),
    )

    assert distances.shape == (2,)
    assert distances == pytest.approx([111_195, 111_195], abs=1)


def test_empty_sequence_gives_zero_stats():
    """Test that no samples yields all-zero statistics."""
    stats = calculate_stats([])

    assert stats.duration_secs == 0.0
    assert stats.total_distance_m == 0.0
    assert stats.max_altitude_m == 0.0
    assert stats.max_speed_ms == 0.0
    assert stats.avg_speed_ms == 0.0
    assert stats.min_battery == 0
    assert stats.home_location is None


def test_basic_statistics():
    """Test duration, extrema, averages and home location."""
    samples = [
        TelemetrySample(timestamp_ms=0, latitude=0.0, longitude=0.0, altitude=5.0,
                        speed=2.0, battery_percent=95),
        TelemetrySample(timestamp_ms=1000, latitude=0.5, longitude=0.0, altitude=30.0,
                        speed=None, battery_percent=None),
        TelemetrySample(timestamp_ms=2500, latitude=1.0, longitude=0.0, altitude=12.0,
                        speed=6.0, battery_percent=88),
    ]

    stats = calculate_stats(samples)

    assert stats.duration_secs == pytest.approx(2.5)
    assert stats.max_altitude_m == pytest.approx(30.0)
    assert stats.max_speed_ms == pytest.approx(6.0)
    assert stats.avg_speed_ms == pytest.approx(4.0)
    assert stats.min_battery == 88
    assert stats.home_location == (0.0, 0.0)
    assert stats.total_distance_m == pytest.approx(111_195, abs=1)


def test_height_preferred_over_altitude():
    """Test that height above takeoff wins over altitude when reported."""
    samples = [
        TelemetrySample(timestamp_ms=0, altitude=100.0, height=20.0),
        TelemetrySample(timestamp_ms=100, altitude=40.0, height=None),
    ]

    assert calculate_stats(samples).max_altitude_m == pytest.approx(40.0)


def test_distance_bridges_samples_without_fix():
    """Test that distance runs between consecutive fixes, skipping gaps."""
    samples = [
        TelemetrySample(timestamp_ms=0, latitude=0.0, longitude=0.0),
        TelemetrySample(timestamp_ms=100, latitude=None, longitude=None),
        TelemetrySample(timestamp_ms=200, latitude=float('nan'), longitude=0.5),
        TelemetrySample(timestamp_ms=300, latitude=1.0, longitude=0.0),
    ]

    stats = calculate_stats(samples)

    assert stats.total_distance_m == pytest.approx(111_195, abs=1)
    assert stats.home_location == (0.0, 0.0)


def test_home_is_first_valid_fix():
    """Test that the home location skips leading samples without a fix."""
    samples = [
        TelemetrySample(timestamp_ms=0),
        TelemetrySample(timestamp_ms=100, latitude=47.5, longitude=8.25),
        TelemetrySample(timestamp_ms=200, latitude=47.6, longitude=8.35),
    ]

    assert calculate_stats(samples).home_location == (8.25, 47.5)


def test_no_fix_gives_no_home_and_zero_distance():
    """Test a flight without any GPS fix."""
    samples = [TelemetrySample(timestamp_ms=i * 100, altitude=1.0) for i in range(5)]

    stats = calculate_stats(samples)

    assert stats.home_location is None
    assert stats.total_distance_m == 0.0
    assert stats.duration_secs == pytest.approx(0.4)
