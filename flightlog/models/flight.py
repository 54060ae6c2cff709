"""
Flight model - one row per imported flight log.

Holds the metadata and derived statistics of a flight. The telemetry
samples themselves live in the telemetry table and are owned by the
flight row through ``flight_id``.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Float, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from flightlog.models.base import Base, UtcDateTime


class Flight(Base):
    """
    Metadata for an imported flight log.

    Fields:
        id: Import-time derived identifier (epoch millis modulo 10^12)
        file_name: Original log file name
        display_name: User-editable name, defaults to the file stem
        file_hash: SHA-256 of the log content, the dedupe key
        duration_secs / total_distance / max_altitude / max_speed:
            Derived statistics computed at import
        home_lat / home_lon: First valid GPS fix of the flight
    """

    __tablename__ = 'flights'

    id: Mapped[int] = mapped_column(
        BigInteger,
        primary_key=True,
        autoincrement=False,
        comment='Flight identifier'
    )

    file_name: Mapped[str] = mapped_column(
        String,
        nullable=False,
        comment='Original log file name'
    )

    display_name: Mapped[str] = mapped_column(
        String,
        nullable=False,
        comment='User-editable display name'
    )

    # SHA256 to prevent duplicates; NULLs do not collide
    file_hash: Mapped[Optional[str]] = mapped_column(
        String,
        nullable=True,
        unique=True,
        comment='SHA-256 of the log file content'
    )

    # Aircraft identification
    drone_model: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    drone_serial: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    aircraft_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    battery_serial: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    # Flight window
    start_time: Mapped[Optional[datetime]] = mapped_column(
        UtcDateTime(),
        nullable=True,
        comment='Flight start (UTC)'
    )

    end_time: Mapped[Optional[datetime]] = mapped_column(
        UtcDateTime(),
        nullable=True,
        comment='Flight end (UTC)'
    )

    # Derived statistics
    duration_secs: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    total_distance: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment='Total distance in meters'
    )
    max_altitude: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment='Max altitude in meters'
    )
    max_speed: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment='Max speed in m/s'
    )
    home_lat: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    home_lon: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    point_count: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment='Number of stored telemetry points'
    )

    imported_at: Mapped[Optional[datetime]] = mapped_column(
        UtcDateTime(),
        server_default=func.current_timestamp(),
        comment='Import timestamp'
    )

    notes: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    __table_args__ = (
        # Flight list is sorted by date
        Index('idx_flights_start_time', 'start_time'),
    )

    def __repr__(self) -> str:
        return f'<Flight {self.id} {self.display_name!r}>'
