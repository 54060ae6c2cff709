"""
Log importer - coordinates one flight log import into the store.

Import stages:
1. Hash: SHA-256 of the file content
2. Dedupe: reject content that is already stored
3. Archive: copy the original into raw_logs/
4. Decode: hand the file to the external decoder
5. Extract: frames to telemetry samples
6. Stats: flight statistics over the full sample sequence
7. Insert: flight metadata row
8. Append: telemetry samples with a GPS fix

Insert and append are two separately locked store operations. If the
append fails, the importer deletes the flight row it just wrote and
re-raises the storage failure.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import List, Optional, Protocol, Union

from flightlog.analytics import calculate_stats
from flightlog.errors import (
    AlreadyImported,
    DecodeFailure,
    ImportFailure,
    IOFailure,
    NoTelemetryData,
    StorageEngineFailure,
)
from flightlog.ingestion.archive import archive_log_file, calculate_file_hash
from flightlog.ingestion.frames import DecodedLog, LogDetails, extract_telemetry
from flightlog.samples import FlightMetadata, TelemetrySample
from flightlog.storage import FlightDatabase

logger = logging.getLogger(__name__)


class LogDecoder(Protocol):
    """Anything that can turn a log file into decoded frames."""

    def decode(self, path: Path) -> DecodedLog:
        ...


@dataclass
class ImportResult:
    """Outcome of one import."""
    success: bool
    flight_id: Optional[int]
    message: str
    point_count: int = 0


@dataclass
class ParsedLog:
    metadata: FlightMetadata
    points: List[TelemetrySample]


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def display_name_for(path: Path) -> str:
    """File stem, or the full file name if the stem is blank."""
    stem = path.stem.strip()
    return stem if stem else path.name


class LogImporter:
    """
    Imports flight logs through an external decoder into a FlightDatabase.
    """

    def __init__(self, db: FlightDatabase, decoder: LogDecoder):
        self.db = db
        self.decoder = decoder

    def _decode(self, path: Path) -> DecodedLog:
        try:
            return self.decoder.decode(path)
        except ImportFailure:
            raise
        except Exception as e:
            raise DecodeFailure(f'Failed to parse log: {e}') from e

    def _build_metadata(
        self,
        path: Path,
        file_hash: str,
        details: LogDetails,
        samples: List[TelemetrySample],
        point_count: int,
    ) -> FlightMetadata:
        stats = calculate_stats(samples)

        end_time = None
        if details.start_time is not None and details.total_time is not None:
            end_time = details.start_time + timedelta(seconds=details.total_time)

        home_lon, home_lat = stats.home_location or (None, None)

        return FlightMetadata(
            id=self.db.generate_flight_id(),
            file_name=path.name,
            display_name=display_name_for(path),
            file_hash=file_hash,
            drone_model=_clean(details.product_type),
            drone_serial=_clean(details.aircraft_sn),
            aircraft_name=_clean(details.aircraft_name),
            battery_serial=_clean(details.battery_sn),
            start_time=details.start_time,
            end_time=end_time,
            duration_secs=stats.duration_secs,
            total_distance=stats.total_distance_m,
            max_altitude=stats.max_altitude_m,
            max_speed=stats.max_speed_ms,
            home_lat=home_lat,
            home_lon=home_lon,
            point_count=point_count,
        )

    def parse_log(self, path: Union[str, Path], file_hash: Optional[str] = None) -> ParsedLog:
        """
        Decode a log into flight metadata and the samples to store.

        Raises AlreadyImported, DecodeFailure or NoTelemetryData.
        """
        path = Path(path)
        if file_hash is None:
            file_hash = calculate_file_hash(path)
            if self.db.is_file_imported(file_hash):
                raise AlreadyImported(file_hash)

        decoded = self._decode(path)
        if not decoded.frames:
            raise NoTelemetryData()

        samples = extract_telemetry(decoded.frames, self.db.config.ingestion.frame_interval_ms)
        points = [s for s in samples if s.has_fix]
        if not points:
            raise NoTelemetryData()

        metadata = self._build_metadata(path, file_hash, decoded.details, samples, len(points))

        logger.info(
            f'Parsed {path.name}: {len(samples)} frames, {len(points)} with GPS fix, '
            f'{metadata.total_distance:.1f}m'
        )
        return ParsedLog(metadata=metadata, points=points)

    def _archive(self, path: Path) -> None:
        try:
            archive_log_file(path, self.db.raw_logs_dir)
        except IOFailure as e:
            logger.warning(f'Failed to archive {path.name}: {e}')

    def _store(self, parsed: ParsedLog) -> int:
        flight_id = self.db.insert_flight(parsed.metadata)
        try:
            self.db.bulk_insert_telemetry(flight_id, parsed.points)
        except StorageEngineFailure as e:
            logger.error(f'Telemetry append failed for flight {flight_id}, removing it: {e}')
            self.db.delete_flight(flight_id)
            raise
        return flight_id

    def import_log(self, path: Union[str, Path]) -> ImportResult:
        """
        Import one log file.

        Returns an unsuccessful result for a missing file, a duplicate,
        a decode failure or a log without GPS data. Store failures are
        raised as StorageEngineFailure.
        """
        path = Path(path)
        logger.info(f'Importing log file: {path}')

        if not path.is_file():
            return ImportResult(False, None, f'File not found: {path}')

        try:
            file_hash = calculate_file_hash(path)
        except IOFailure as e:
            return ImportResult(False, None, str(e))

        if self.db.is_file_imported(file_hash):
            logger.info(f'Skipping {path.name}: already imported')
            return ImportResult(False, None, 'This flight log has already been imported')

        self._archive(path)

        try:
            parsed = self.parse_log(path, file_hash)
        except ImportFailure as e:
            logger.warning(f'Import of {path.name} failed: {e}')
            return ImportResult(False, None, str(e))

        flight_id = self._store(parsed)
        point_count = len(parsed.points)

        logger.info(f'Imported flight {flight_id} with {point_count} points')
        return ImportResult(
            True,
            flight_id,
            f'Successfully imported {point_count} telemetry points',
            point_count,
        )
