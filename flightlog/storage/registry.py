"""
Flight registry - metadata rows and the keychain cache.

Plain functions over a session; locking and transaction boundaries
belong to the caller (``FlightDatabase``).
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from flightlog.errors import InvalidDisplayName
from flightlog.models import Flight, Keychain, TelemetryPoint
from flightlog.samples import FlightMetadata


@dataclass
class FlightSummary:
    """Flight row as shown in the flight list."""
    id: int
    file_name: str
    display_name: str
    drone_model: Optional[str]
    drone_serial: Optional[str]
    aircraft_name: Optional[str]
    battery_serial: Optional[str]
    start_time: Optional[datetime]
    duration_secs: Optional[float]
    total_distance: Optional[float]
    max_altitude: Optional[float]
    max_speed: Optional[float]
    point_count: Optional[int]


def _summary_query():
    # Unset or blank display names fall back to the file name
    display_name = func.coalesce(
        func.nullif(func.trim(Flight.display_name), ''),
        Flight.file_name,
    ).label('display_name')

    return select(
        Flight.id,
        Flight.file_name,
        display_name,
        Flight.drone_model,
        Flight.drone_serial,
        Flight.aircraft_name,
        Flight.battery_serial,
        Flight.start_time,
        Flight.duration_secs,
        Flight.total_distance,
        Flight.max_altitude,
        Flight.max_speed,
        Flight.point_count,
    )


def insert_flight(session: Session, metadata: FlightMetadata) -> int:
    """Insert a flight row; a colliding file hash fails the insert."""
    session.execute(
        Flight.__table__.insert(),
        {
            'id': metadata.id,
            'file_name': metadata.file_name,
            'display_name': metadata.display_name,
            'file_hash': metadata.file_hash,
            'drone_model': metadata.drone_model,
            'drone_serial': metadata.drone_serial,
            'aircraft_name': metadata.aircraft_name,
            'battery_serial': metadata.battery_serial,
            'start_time': metadata.start_time,
            'end_time': metadata.end_time,
            'duration_secs': metadata.duration_secs,
            'total_distance': metadata.total_distance,
            'max_altitude': metadata.max_altitude,
            'max_speed': metadata.max_speed,
            'home_lat': metadata.home_lat,
            'home_lon': metadata.home_lon,
            'point_count': metadata.point_count,
            'notes': metadata.notes,
        },
    )
    return metadata.id


def list_flights(session: Session) -> List[FlightSummary]:
    """All flights, most recent start first."""
    stmt = _summary_query().order_by(Flight.start_time.desc())
    return [FlightSummary(**row._mapping) for row in session.execute(stmt)]


def get_flight(session: Session, flight_id: int) -> Optional[FlightSummary]:
    row = session.execute(_summary_query().where(Flight.id == flight_id)).first()
    return FlightSummary(**row._mapping) if row else None


def update_flight_name(session: Session, flight_id: int, display_name: str) -> bool:
    """
    Rename a flight.

    The name is trimmed; an empty result raises InvalidDisplayName.
    Returns False if no flight has the given id.
    """
    trimmed = (display_name or '').strip()
    if not trimmed:
        raise InvalidDisplayName()

    result = session.execute(
        update(Flight).where(Flight.id == flight_id).values(display_name=trimmed)
    )
    return result.rowcount > 0


def delete_flight(session: Session, flight_id: int) -> int:
    """Delete a flight's telemetry, then its row. Returns telemetry rows removed."""
    telemetry = session.execute(
        delete(TelemetryPoint).where(TelemetryPoint.flight_id == flight_id)
    )
    session.execute(delete(Flight).where(Flight.id == flight_id))
    return telemetry.rowcount


def delete_all_flights(session: Session) -> int:
    """Delete every flight and all telemetry. Returns flights removed."""
    session.execute(delete(TelemetryPoint))
    result = session.execute(delete(Flight))
    return result.rowcount


def is_file_imported(session: Session, file_hash: str) -> bool:
    stmt = select(func.count()).select_from(Flight).where(Flight.file_hash == file_hash)
    return session.execute(stmt).scalar_one() > 0


def store_keychain(session: Session, serial: str, key: str) -> None:
    """Upsert a decryption key, refreshing its fetch timestamp."""
    stmt = sqlite_insert(Keychain).values(serial_number=serial, encryption_key=key)
    stmt = stmt.on_conflict_do_update(
        index_elements=['serial_number'],
        set_={
            'encryption_key': stmt.excluded.encryption_key,
            'fetched_at': func.current_timestamp(),
        }
    )
    session.execute(stmt)


def get_keychain(session: Session, serial: str) -> Optional[str]:
    stmt = select(Keychain.encryption_key).where(Keychain.serial_number == serial)
    return session.execute(stmt).scalar_one_or_none()
