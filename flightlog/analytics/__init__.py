"""
Analytics module for flightlog.

Derives flight-level statistics from telemetry samples using NumPy:
- Flight duration
- Altitude and speed extrema
- Great-circle distance over consecutive GPS fixes
- Home location
"""

from flightlog.analytics.flight_stats import (
    EARTH_RADIUS_M,
    FlightStats,
    calculate_stats,
    haversine_distance,
    total_distance,
)

__all__ = [
    'EARTH_RADIUS_M',
    'FlightStats',
    'calculate_stats',
    'haversine_distance',
    'total_distance',
]
