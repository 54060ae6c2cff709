"""
Thread-safe flight store.

``FlightDatabase`` owns the SQLite engine for one data directory and
serializes every operation behind a single lock:

    {data_dir}/
    ├── flights.db       # SQLite store
    ├── flights.db-wal   # Write-ahead log (while open)
    ├── raw_logs/        # Archived original log files
    └── keychains/       # Cached decryption keys

Each public method holds the lock for its whole duration, including the
commit or rollback, so no two operations ever interleave. Metadata insert
and telemetry append are separate operations; coordinating the pair is
up to the caller (see ``flightlog.ingestion.importer``).
"""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Generator, List, Optional, Sequence, Union

from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from flightlog.config import AppConfig, StorageConfig, config
from flightlog.errors import (
    DirectoryResolutionFailure,
    FlightNotFound,
    IOFailure,
    NotInitialized,
    StorageEngineFailure,
)
from flightlog.models import create_session_factory
from flightlog.samples import FlightMetadata, TelemetrySample
from flightlog.storage import bulk, queries, registry
from flightlog.storage.queries import OverviewStats, TelemetryRecord, TelemetrySeries, TrackPoint
from flightlog.storage.recovery import RecoveryState, StoreOpener
from flightlog.storage.registry import FlightSummary
from flightlog.storage.schema import init_schema

logger = logging.getLogger(__name__)

FLIGHT_ID_MODULUS = 1_000_000_000_000


@dataclass
class FlightData:
    """Everything needed to display one flight."""
    flight: FlightSummary
    telemetry: TelemetrySeries
    track: List[TrackPoint]

    def to_dict(self) -> dict:
        return {
            'flight': asdict(self.flight),
            'telemetry': self.telemetry.to_dict(),
            'track': [list(point) for point in self.track],
        }


def resolve_data_dir(
    data_dir: Optional[Union[str, Path]],
    storage_config: StorageConfig,
) -> Path:
    """Data directory from the argument, else from configuration."""
    if data_dir is not None:
        return Path(data_dir)
    if storage_config.data_dir:
        return Path(storage_config.data_dir)
    raise DirectoryResolutionFailure('Failed to get app data directory')


class FlightDatabase:
    """
    Storage engine for imported flights and their telemetry.

    Opening creates the directory layout, opens the store with recovery
    and brings the schema up to date. The instance is safe to share
    between threads; calls block until the store is free.
    """

    def __init__(
        self,
        data_dir: Optional[Union[str, Path]] = None,
        app_config: Optional[AppConfig] = None,
    ):
        self.config = app_config or config
        self.data_dir = resolve_data_dir(data_dir, self.config.storage)

        self._lock = threading.Lock()
        self._engine: Optional[Engine] = None
        self._session_factory = None
        self._last_flight_id = 0

        self._ensure_directories()

        self.db_path = self.data_dir / self.config.storage.db_file_name
        logger.info(f'Initializing flight store at: {self.db_path}')

        opener = StoreOpener(self.db_path, self.config.sqlite)
        engine = opener.open()
        self.recovery_history: List[RecoveryState] = list(opener.history)
        self.backup_path: Optional[Path] = opener.backup_path

        try:
            init_schema(engine)
        except SQLAlchemyError as e:
            engine.dispose()
            raise StorageEngineFailure(f'Schema initialization failed: {e}') from e
        except StorageEngineFailure:
            engine.dispose()
            raise

        self._engine = engine
        self._session_factory = create_session_factory(engine)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _ensure_directories(self) -> None:
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            self.raw_logs_dir.mkdir(exist_ok=True)
            self.keychains_dir.mkdir(exist_ok=True)
        except OSError as e:
            raise IOFailure(f'Failed to create data directories in {self.data_dir}: {e}') from e

    @property
    def raw_logs_dir(self) -> Path:
        """Directory holding archived original log files."""
        return self.data_dir / self.config.storage.raw_logs_dir_name

    @property
    def keychains_dir(self) -> Path:
        """Directory holding cached decryption keys."""
        return self.data_dir / self.config.storage.keychains_dir_name

    def close(self) -> None:
        """Dispose of the engine; later calls raise NotInitialized."""
        with self._lock:
            if self._engine is not None:
                self._engine.dispose()
                self._engine = None
                self._session_factory = None
                logger.info(f'Closed flight store at: {self.db_path}')

    def __enter__(self) -> 'FlightDatabase':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @contextmanager
    def _session(self) -> Generator[Session, None, None]:
        """
        Locked session for one operation.

        Commits on success and rolls back on any error. Store errors are
        raised as StorageEngineFailure; nothing is retried.
        """
        with self._lock:
            if self._session_factory is None:
                raise NotInitialized()

            session = self._session_factory()
            try:
                yield session
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                raise StorageEngineFailure(str(e)) from e
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    # -------------------------------------------------------------------------
    # Flight registry
    # -------------------------------------------------------------------------

    def generate_flight_id(self) -> int:
        """Import-time flight id, strictly increasing per instance."""
        with self._lock:
            candidate = int(time.time() * 1000) % FLIGHT_ID_MODULUS
            if candidate <= self._last_flight_id:
                candidate = self._last_flight_id + 1
            self._last_flight_id = candidate
            return candidate

    def insert_flight(self, metadata: FlightMetadata) -> int:
        """Insert flight metadata and return the flight id."""
        with self._session() as session:
            flight_id = registry.insert_flight(session, metadata)

        logger.info(f'Inserted flight with ID: {flight_id}')
        return flight_id

    def list_flights(self) -> List[FlightSummary]:
        """All flights for the flight list, newest first."""
        with self._session() as session:
            return registry.list_flights(session)

    def get_flight(self, flight_id: int) -> Optional[FlightSummary]:
        with self._session() as session:
            return registry.get_flight(session, flight_id)

    def update_flight_name(self, flight_id: int, display_name: str) -> bool:
        """Rename a flight. Empty or whitespace-only names are rejected."""
        with self._session() as session:
            return registry.update_flight_name(session, flight_id, display_name)

    def delete_flight(self, flight_id: int) -> None:
        """Delete a flight and all associated telemetry."""
        with self._session() as session:
            removed = registry.delete_flight(session, flight_id)

        logger.info(f'Deleted flight {flight_id} ({removed} telemetry points)')

    def delete_all_flights(self) -> None:
        """Delete all flights and telemetry."""
        with self._session() as session:
            removed = registry.delete_all_flights(session)

        logger.info(f'Deleted all flights and telemetry ({removed} flights)')

    def is_file_imported(self, file_hash: str) -> bool:
        """Check whether a log with this content hash was already imported."""
        with self._session() as session:
            return registry.is_file_imported(session, file_hash)

    def store_keychain(self, serial: str, key: str) -> None:
        """Store or replace the decryption key for a serial number."""
        with self._session() as session:
            registry.store_keychain(session, serial, key)

    def get_keychain(self, serial: str) -> Optional[str]:
        """Cached decryption key for a serial number, if any."""
        with self._session() as session:
            return registry.get_keychain(session, serial)

    # -------------------------------------------------------------------------
    # Telemetry
    # -------------------------------------------------------------------------

    def bulk_insert_telemetry(self, flight_id: int, samples: Sequence[TelemetrySample]) -> int:
        """
        Append a flight's samples in one transaction.

        Any failing row aborts the whole append. Returns the count written.
        """
        with self._session() as session:
            count = bulk.append_telemetry(
                session, flight_id, samples, self.config.ingestion.batch_size
            )

        logger.info(f'Bulk inserted {count} telemetry points for flight {flight_id}')
        return count

    def _max_points(self, max_points: Optional[int]) -> int:
        return max_points if max_points is not None else self.config.query.default_max_points

    def get_telemetry_records(
        self,
        flight_id: int,
        max_points: Optional[int] = None,
    ) -> List[TelemetryRecord]:
        """
        Telemetry records, raw or downsampled to about ``max_points``.

        Raises FlightNotFound if no samples are stored for the flight.
        """
        with self._session() as session:
            return queries.fetch_telemetry(
                session,
                flight_id,
                self._max_points(max_points),
                self.config.query.min_bucket_ms,
            )

    def get_flight_telemetry(
        self,
        flight_id: int,
        max_points: Optional[int] = None,
    ) -> TelemetrySeries:
        """Telemetry as parallel chart series on a relative time axis."""
        return TelemetrySeries.from_records(self.get_telemetry_records(flight_id, max_points))

    def get_flight_track(self, flight_id: int, max_points: Optional[int] = None) -> List[TrackPoint]:
        """Decimated (longitude, latitude, altitude) track for the map."""
        if max_points is None:
            max_points = self.config.query.default_track_points
        with self._session() as session:
            return queries.query_track(session, flight_id, max_points)

    def get_flight_data(self, flight_id: int, max_points: Optional[int] = None) -> FlightData:
        """
        Flight summary, chart series and map track in one locked read.

        Raises FlightNotFound if the flight row or its telemetry is missing.
        """
        with self._session() as session:
            flight = registry.get_flight(session, flight_id)
            if flight is None:
                raise FlightNotFound(flight_id)

            records = queries.fetch_telemetry(
                session,
                flight_id,
                self._max_points(max_points),
                self.config.query.min_bucket_ms,
            )
            track = queries.query_track(
                session, flight_id, self.config.query.default_track_points
            )

        return FlightData(
            flight=flight,
            telemetry=TelemetrySeries.from_records(records),
            track=track,
        )

    def get_overview_stats(self) -> OverviewStats:
        """Aggregates across all flights."""
        with self._session() as session:
            return queries.query_overview(session)
