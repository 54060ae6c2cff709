"""
Value types exchanged between the importer, the statistics calculator
and the store.

``TelemetrySample`` is one decoded sensor reading; ``FlightMetadata`` is
the flight row written before its samples are appended.
"""

import math
from dataclasses import asdict, dataclass, fields
from datetime import datetime
from typing import Optional


@dataclass
class TelemetrySample:
    """
    One timestamped telemetry sample, as extracted from a decoded frame.

    Every sensor field may be None if the frame did not report it.
    """
    timestamp_ms: int

    # Position
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    altitude: Optional[float] = None
    height: Optional[float] = None
    vps_height: Optional[float] = None
    altitude_abs: Optional[float] = None

    # Velocity
    speed: Optional[float] = None
    velocity_x: Optional[float] = None
    velocity_y: Optional[float] = None
    velocity_z: Optional[float] = None

    # Orientation
    pitch: Optional[float] = None
    roll: Optional[float] = None
    yaw: Optional[float] = None

    # Gimbal
    gimbal_pitch: Optional[float] = None
    gimbal_roll: Optional[float] = None
    gimbal_yaw: Optional[float] = None

    # Power
    battery_percent: Optional[int] = None
    battery_voltage: Optional[float] = None
    battery_current: Optional[float] = None
    battery_temp: Optional[float] = None

    # Status
    flight_mode: Optional[str] = None
    gps_signal: Optional[int] = None
    satellites: Optional[int] = None
    rc_signal: Optional[int] = None

    @property
    def has_fix(self) -> bool:
        """True if the sample carries a usable latitude/longitude pair."""
        if self.latitude is None or self.longitude is None:
            return False
        return math.isfinite(self.latitude) and math.isfinite(self.longitude)

    def to_row(self, flight_id: int) -> dict:
        """Column mapping for the telemetry table."""
        row = {'flight_id': flight_id}
        row.update(asdict(self))
        return row


SAMPLE_FIELDS = tuple(f.name for f in fields(TelemetrySample))


@dataclass
class FlightMetadata:
    """Flight row as written by ``insert_flight``."""
    id: int
    file_name: str
    display_name: str
    file_hash: Optional[str] = None
    drone_model: Optional[str] = None
    drone_serial: Optional[str] = None
    aircraft_name: Optional[str] = None
    battery_serial: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration_secs: Optional[float] = None
    total_distance: Optional[float] = None
    max_altitude: Optional[float] = None
    max_speed: Optional[float] = None
    home_lat: Optional[float] = None
    home_lon: Optional[float] = None
    point_count: int = 0
    notes: Optional[str] = None
