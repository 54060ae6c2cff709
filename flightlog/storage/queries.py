"""
Telemetry query engine.

Serves stored telemetry back in shapes suited to visualization:

- Raw or time-bucket downsampled records for charts
- Stride-decimated GPS tracks for maps
- Cross-flight overview aggregates

Downsampling strategy:
- If a flight has no more points than the budget, return them untouched
- Otherwise group samples into fixed-width time buckets, at least one
  second wide, and emit one record per bucket
- Continuous fields are averaged; battery and RC signal are averaged and
  rounded; satellite count and flight mode take the bucket's most
  frequent value
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import Integer, and_, cast, func, select
from sqlalchemy.orm import Session

from flightlog.errors import FlightNotFound
from flightlog.models import Flight, TelemetryPoint

logger = logging.getLogger(__name__)

T = TelemetryPoint

RECORD_FIELDS = (
    'timestamp_ms',
    'latitude',
    'longitude',
    'altitude',
    'height',
    'vps_height',
    'speed',
    'battery_percent',
    'battery_voltage',
    'battery_temp',
    'pitch',
    'roll',
    'yaw',
    'satellites',
    'flight_mode',
    'rc_signal',
)

# Aggregation per field when downsampling
AVERAGED_FIELDS = (
    'latitude',
    'longitude',
    'altitude',
    'height',
    'vps_height',
    'speed',
    'battery_voltage',
    'battery_temp',
    'pitch',
    'roll',
    'yaw',
)
ROUNDED_FIELDS = ('battery_percent', 'rc_signal')
MODE_FIELDS = ('satellites', 'flight_mode')

TrackPoint = Tuple[float, float, Optional[float]]


@dataclass
class TelemetryRecord:
    """One raw sample or one downsampled bucket."""
    timestamp_ms: int
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    altitude: Optional[float] = None
    height: Optional[float] = None
    vps_height: Optional[float] = None
    speed: Optional[float] = None
    battery_percent: Optional[int] = None
    battery_voltage: Optional[float] = None
    battery_temp: Optional[float] = None
    pitch: Optional[float] = None
    roll: Optional[float] = None
    yaw: Optional[float] = None
    satellites: Optional[int] = None
    flight_mode: Optional[str] = None
    rc_signal: Optional[int] = None


@dataclass
class TelemetrySeries:
    """
    Telemetry reshaped into parallel series for charting.

    ``time`` is seconds from the first record; every series has one
    entry (or None) per record.
    """
    time: List[float] = field(default_factory=list)
    altitude: List[Optional[float]] = field(default_factory=list)
    height: List[Optional[float]] = field(default_factory=list)
    vps_height: List[Optional[float]] = field(default_factory=list)
    speed: List[Optional[float]] = field(default_factory=list)
    battery: List[Optional[int]] = field(default_factory=list)
    battery_voltage: List[Optional[float]] = field(default_factory=list)
    battery_temp: List[Optional[float]] = field(default_factory=list)
    satellites: List[Optional[int]] = field(default_factory=list)
    rc_signal: List[Optional[int]] = field(default_factory=list)
    pitch: List[Optional[float]] = field(default_factory=list)
    roll: List[Optional[float]] = field(default_factory=list)
    yaw: List[Optional[float]] = field(default_factory=list)

    @classmethod
    def from_records(cls, records: Sequence[TelemetryRecord]) -> 'TelemetrySeries':
        base_time = records[0].timestamp_ms if records else 0

        return cls(
            time=[(r.timestamp_ms - base_time) / 1000.0 for r in records],
            altitude=[r.altitude for r in records],
            height=[r.height for r in records],
            vps_height=[r.vps_height for r in records],
            speed=[r.speed for r in records],
            battery=[r.battery_percent for r in records],
            battery_voltage=[r.battery_voltage for r in records],
            battery_temp=[r.battery_temp for r in records],
            satellites=[r.satellites for r in records],
            rc_signal=[r.rc_signal for r in records],
            pitch=[r.pitch for r in records],
            roll=[r.roll for r in records],
            yaw=[r.yaw for r in records],
        )

    def __len__(self) -> int:
        return len(self.time)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class BatteryUsage:
    """Number of flights flown on one battery."""
    battery_serial: str
    flight_count: int


@dataclass
class OverviewStats:
    """Aggregates across every stored flight."""
    total_flights: int = 0
    total_distance_m: float = 0.0
    total_duration_secs: float = 0.0
    total_points: int = 0
    batteries_used: List[BatteryUsage] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


# -------------------------------------------------------------------------
# Raw & downsampled telemetry
# -------------------------------------------------------------------------

def count_points(session: Session, flight_id: int) -> int:
    """Number of stored samples for a flight."""
    stmt = select(func.count()).select_from(T).where(T.flight_id == flight_id)
    return session.execute(stmt).scalar_one()


def bucket_width_ms(min_ts: int, max_ts: int, target_points: int, min_bucket_ms: int) -> int:
    """Bucket width giving about ``target_points`` buckets, never below the floor."""
    duration_ms = max_ts - min_ts
    return max(min_bucket_ms, duration_ms // target_points)


def query_raw_telemetry(session: Session, flight_id: int) -> List[TelemetryRecord]:
    """Every sample of a flight, ascending by timestamp."""
    stmt = (
        select(*[getattr(T, name) for name in RECORD_FIELDS])
        .where(T.flight_id == flight_id)
        .order_by(T.timestamp_ms.asc())
    )
    return [TelemetryRecord(**row._mapping) for row in session.execute(stmt)]


def _bucket_expression(width: int):
    # Integer division; timestamps are non-negative offsets
    return ((T.timestamp_ms // width) * width).label('bucket_ts')


def _bucket_modes(session: Session, flight_id: int, name: str, width: int) -> Dict[int, Any]:
    """Most frequent non-null value of a column per bucket (ties: smallest value)."""
    column = getattr(T, name)
    bucket = _bucket_expression(width)

    counts = (
        select(bucket, column.label('value'), func.count().label('n'))
        .where(T.flight_id == flight_id, column.isnot(None))
        .group_by(bucket, column)
        .subquery()
    )
    ranked = select(
        counts.c.bucket_ts,
        counts.c.value,
        func.row_number().over(
            partition_by=counts.c.bucket_ts,
            order_by=(counts.c.n.desc(), counts.c.value.asc()),
        ).label('mode_rank'),
    ).subquery()

    stmt = select(ranked.c.bucket_ts, ranked.c.value).where(ranked.c.mode_rank == 1)
    return {row.bucket_ts: row.value for row in session.execute(stmt)}


def query_downsampled_telemetry(
    session: Session,
    flight_id: int,
    target_points: int,
    min_bucket_ms: int,
) -> List[TelemetryRecord]:
    """Bucketed telemetry, one record per non-empty bucket, ascending."""
    min_ts, max_ts = session.execute(
        select(func.min(T.timestamp_ms), func.max(T.timestamp_ms))
        .where(T.flight_id == flight_id)
    ).one()

    width = bucket_width_ms(min_ts, max_ts, target_points, min_bucket_ms)
    logger.debug(f'Bucket width {width}ms for flight {flight_id}')

    bucket = _bucket_expression(width)
    aggregates = [func.avg(getattr(T, name)).label(name) for name in AVERAGED_FIELDS]
    aggregates += [
        cast(func.round(func.avg(getattr(T, name))), Integer).label(name)
        for name in ROUNDED_FIELDS
    ]

    stmt = (
        select(bucket, *aggregates)
        .where(T.flight_id == flight_id)
        .group_by(bucket)
        .order_by(bucket.asc())
    )
    rows = session.execute(stmt).all()

    modes = {name: _bucket_modes(session, flight_id, name, width) for name in MODE_FIELDS}

    records = []
    for row in rows:
        values = dict(row._mapping)
        bucket_ts = values.pop('bucket_ts')
        for name in MODE_FIELDS:
            values[name] = modes[name].get(bucket_ts)
        records.append(TelemetryRecord(timestamp_ms=bucket_ts, **values))
    return records


def fetch_telemetry(
    session: Session,
    flight_id: int,
    max_points: int,
    min_bucket_ms: int,
) -> List[TelemetryRecord]:
    """
    Telemetry for a flight within a point budget.

    Raises FlightNotFound if the flight has no stored samples, even if
    its metadata row exists.
    """
    if max_points <= 0:
        raise ValueError(f'max_points must be positive, got {max_points}')

    point_count = count_points(session, flight_id)
    if point_count == 0:
        raise FlightNotFound(flight_id)

    if point_count <= max_points:
        logger.debug(f'Returning {point_count} raw telemetry points for flight {flight_id}')
        return query_raw_telemetry(session, flight_id)

    logger.debug(f'Downsampling {point_count} points to ~{max_points} for flight {flight_id}')
    return query_downsampled_telemetry(session, flight_id, max_points, min_bucket_ms)


# -------------------------------------------------------------------------
# Track decimation
# -------------------------------------------------------------------------

def query_track(session: Session, flight_id: int, max_points: int) -> List[TrackPoint]:
    """
    GPS track for map rendering as (longitude, latitude, altitude).

    Keeps every stride-th fixed sample (by 1-based rank) so at most
    ``max_points`` real positions are returned; nothing is averaged.
    """
    if max_points <= 0:
        raise ValueError(f'max_points must be positive, got {max_points}')

    has_position = and_(
        T.flight_id == flight_id,
        T.latitude.isnot(None),
        T.longitude.isnot(None),
    )
    valid_count = session.execute(
        select(func.count()).select_from(T).where(has_position)
    ).scalar_one()
    if valid_count == 0:
        return []

    # Ceiling division keeps the result within the budget
    stride = max(1, -(-valid_count // max_points))
    logger.debug(f'Track stride {stride} over {valid_count} fixes for flight {flight_id}')

    numbered = select(
        T.longitude,
        T.latitude,
        T.altitude,
        func.row_number().over(order_by=T.timestamp_ms).label('rn'),
    ).where(has_position).subquery()

    stmt = (
        select(numbered.c.longitude, numbered.c.latitude, numbered.c.altitude)
        .where(numbered.c.rn % stride == 0)
        .order_by(numbered.c.rn)
    )
    return [(row.longitude, row.latitude, row.altitude) for row in session.execute(stmt)]


# -------------------------------------------------------------------------
# Cross-flight aggregation
# -------------------------------------------------------------------------

def query_overview(session: Session) -> OverviewStats:
    """Totals across all flights and flights per battery, most used first."""
    total_flights, total_distance, total_duration, total_points = session.execute(
        select(
            func.count(),
            func.coalesce(func.sum(Flight.total_distance), 0.0),
            func.coalesce(func.sum(Flight.duration_secs), 0.0),
            func.coalesce(func.sum(Flight.point_count), 0),
        ).select_from(Flight)
    ).one()

    flight_count = func.count().label('flight_count')
    battery_rows = session.execute(
        select(Flight.battery_serial, flight_count)
        .where(Flight.battery_serial.isnot(None), Flight.battery_serial != '')
        .group_by(Flight.battery_serial)
        .order_by(flight_count.desc(), Flight.battery_serial.asc())
    ).all()

    return OverviewStats(
        total_flights=int(total_flights),
        total_distance_m=float(total_distance),
        total_duration_secs=float(total_duration),
        total_points=int(total_points),
        batteries_used=[
            BatteryUsage(battery_serial=row.battery_serial, flight_count=row.flight_count)
            for row in battery_rows
        ],
    )
