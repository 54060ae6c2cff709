"""
TelemetryPoint model - time-series telemetry storage.

One row per GPS-fixed sample per flight. Rows are written once in a bulk
append at import time and never updated.

Schema optimized for:
- Fast bulk inserts (append-only pattern)
- Ascending range scans of one flight by timestamp
- Bucketed aggregation for downsampled chart data

The declared column order is the canonical on-disk order. Startup
compares it with the actual table and rebuilds the table on mismatch.
"""

from typing import List, Optional

from sqlalchemy import BigInteger, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from flightlog.models.base import Base


TELEMETRY_INDEX_NAME = 'idx_telemetry_flight_time'


class TelemetryPoint(Base):
    """
    A single telemetry sample of a flight.

    The composite primary key (flight_id, timestamp_ms) makes samples
    unique per flight and keeps them clustered for range scans.
    """

    __tablename__ = 'telemetry'

    flight_id: Mapped[int] = mapped_column(
        BigInteger,
        primary_key=True,
        autoincrement=False,
    )

    timestamp_ms: Mapped[int] = mapped_column(
        BigInteger,
        primary_key=True,
        autoincrement=False,
        comment='Milliseconds since flight start'
    )

    # Position
    latitude: Mapped[Optional[float]] = mapped_column(Float)
    longitude: Mapped[Optional[float]] = mapped_column(Float)
    altitude: Mapped[Optional[float]] = mapped_column(Float, comment='Relative altitude in meters')
    height: Mapped[Optional[float]] = mapped_column(Float, comment='Height above takeoff in meters')
    vps_height: Mapped[Optional[float]] = mapped_column(Float, comment='VPS height in meters')
    altitude_abs: Mapped[Optional[float]] = mapped_column(Float, comment='Absolute altitude (MSL)')

    # Velocity
    speed: Mapped[Optional[float]] = mapped_column(Float, comment='Ground speed in m/s')
    velocity_x: Mapped[Optional[float]] = mapped_column(Float, comment='North velocity')
    velocity_y: Mapped[Optional[float]] = mapped_column(Float, comment='East velocity')
    velocity_z: Mapped[Optional[float]] = mapped_column(Float, comment='Down velocity')

    # Orientation (Euler angles in degrees)
    pitch: Mapped[Optional[float]] = mapped_column(Float)
    roll: Mapped[Optional[float]] = mapped_column(Float)
    yaw: Mapped[Optional[float]] = mapped_column(Float)

    # Gimbal
    gimbal_pitch: Mapped[Optional[float]] = mapped_column(Float)
    gimbal_roll: Mapped[Optional[float]] = mapped_column(Float)
    gimbal_yaw: Mapped[Optional[float]] = mapped_column(Float)

    # Power
    battery_percent: Mapped[Optional[int]] = mapped_column(Integer)
    battery_voltage: Mapped[Optional[float]] = mapped_column(Float)
    battery_current: Mapped[Optional[float]] = mapped_column(Float)
    battery_temp: Mapped[Optional[float]] = mapped_column(Float)

    # Flight status
    flight_mode: Mapped[Optional[str]] = mapped_column(String)
    gps_signal: Mapped[Optional[int]] = mapped_column(Integer)
    satellites: Mapped[Optional[int]] = mapped_column(Integer)

    # RC
    rc_signal: Mapped[Optional[int]] = mapped_column(Integer)

    __table_args__ = (
        # Time-range queries within a flight
        Index(TELEMETRY_INDEX_NAME, 'flight_id', 'timestamp_ms'),
    )

    def __repr__(self) -> str:
        return f'<TelemetryPoint {self.flight_id} @ {self.timestamp_ms}ms>'


def telemetry_column_names() -> List[str]:
    """Canonical telemetry column order."""
    return [column.name for column in TelemetryPoint.__table__.columns]
