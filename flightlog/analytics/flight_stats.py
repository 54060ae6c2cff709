"""
Flight-level statistics derived from a telemetry sample sequence.

All calculations use NumPy: the samples are turned into float columns
with NaN standing in for missing values, and the extrema, means and
great-circle distances are computed vectorized.

The calculator is pure. It may be handed the full decoded sequence,
including samples without a GPS fix; distance is accumulated only
between consecutive samples that both carry a fix.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from flightlog.samples import TelemetrySample

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6_371_000.0


@dataclass
class FlightStats:
    """Derived statistics for one flight."""
    duration_secs: float
    total_distance_m: float
    max_altitude_m: float
    max_speed_ms: float
    avg_speed_ms: float
    min_battery: int

    # (longitude, latitude) of the first valid fix
    home_location: Optional[Tuple[float, float]] = None


def haversine_distance(lat1, lon1, lat2, lon2):
    """
    Great-circle distance in meters.

    Accepts scalars or NumPy arrays of equal shape. Uses the Haversine
    formula on a sphere of Earth's mean radius.
    """
    lat1_rad = np.radians(lat1)
    lat2_rad = np.radians(lat2)
    delta_lat = np.radians(np.subtract(lat2, lat1))
    delta_lon = np.radians(np.subtract(lon2, lon1))

    a = (
        np.sin(delta_lat / 2) ** 2 +
        np.cos(lat1_rad) * np.cos(lat2_rad) *
        np.sin(delta_lon / 2) ** 2
    )
    c = 2 * np.arcsin(np.sqrt(a))

    return EARTH_RADIUS_M * c


def _column(samples: Sequence[TelemetrySample], name: str) -> np.ndarray:
    """Float column for a sample field, NaN where missing."""
    return np.array(
        [np.nan if getattr(s, name) is None else getattr(s, name) for s in samples],
        dtype=np.float64,
    )


def _finite_max(values: np.ndarray) -> float:
    finite = values[np.isfinite(values)]
    return float(finite.max()) if finite.size else 0.0


def total_distance(latitudes: np.ndarray, longitudes: np.ndarray) -> float:
    """Sum of haversine legs between consecutive valid fixes."""
    valid = np.isfinite(latitudes) & np.isfinite(longitudes)
    lat = latitudes[valid]
    lon = longitudes[valid]
    if lat.size < 2:
        return 0.0
    return float(np.sum(haversine_distance(lat[:-1], lon[:-1], lat[1:], lon[1:])))


def calculate_stats(samples: Sequence[TelemetrySample]) -> FlightStats:
    """
    Compute flight statistics from an ordered sample sequence.

    - duration: last sample's timestamp in seconds
    - max altitude: height where present, else altitude
    - max / average speed over samples reporting speed
    - min battery over samples reporting charge
    - total distance over consecutive valid fixes
    - home: first valid fix
    """
    if not samples:
        return FlightStats(
            duration_secs=0.0,
            total_distance_m=0.0,
            max_altitude_m=0.0,
            max_speed_ms=0.0,
            avg_speed_ms=0.0,
            min_battery=0,
        )

    duration_secs = samples[-1].timestamp_ms / 1000.0

    heights = _column(samples, 'height')
    altitudes = _column(samples, 'altitude')
    effective_altitude = np.where(np.isnan(heights), altitudes, heights)

    speeds = _column(samples, 'speed')
    valid_speeds = speeds[np.isfinite(speeds)]
    avg_speed = float(np.mean(valid_speeds)) if valid_speeds.size else 0.0

    batteries = [s.battery_percent for s in samples if s.battery_percent is not None]
    min_battery = int(min(batteries)) if batteries else 0

    latitudes = _column(samples, 'latitude')
    longitudes = _column(samples, 'longitude')

    home_location = None
    valid_fix = np.flatnonzero(np.isfinite(latitudes) & np.isfinite(longitudes))
    if valid_fix.size:
        first = valid_fix[0]
        home_location = (float(longitudes[first]), float(latitudes[first]))

    stats = FlightStats(
        duration_secs=duration_secs,
        total_distance_m=total_distance(latitudes, longitudes),
        max_altitude_m=_finite_max(effective_altitude),
        max_speed_ms=_finite_max(speeds),
        avg_speed_ms=avg_speed,
        min_battery=min_battery,
        home_location=home_location,
    )

    logger.debug(
        f'Stats over {len(samples)} samples: {stats.total_distance_m:.1f}m, '
        f'{stats.duration_secs:.1f}s'
    )
    return stats
