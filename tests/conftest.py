"""
Shared pytest fixtures for the flightlog test suite.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List

import pytest

from flightlog.samples import FlightMetadata, TelemetrySample
from flightlog.storage import FlightDatabase


@pytest.fixture
def temp_data_dir(tmp_path: Path) -> Path:
    """Provide a temporary data directory (not yet created)."""
    return tmp_path / 'flightlog_data'


@pytest.fixture
def db(temp_data_dir: Path) -> FlightDatabase:
    """Provide an open FlightDatabase in a temporary directory."""
    database = FlightDatabase(temp_data_dir)
    yield database
    database.close()


@pytest.fixture
def make_metadata() -> Callable[..., FlightMetadata]:
    """Factory for flight metadata with sensible defaults."""
    def factory(flight_id: int, **overrides) -> FlightMetadata:
        values = {
            'id': flight_id,
            'file_name': f'DJIFlightRecord_{flight_id}.txt',
            'display_name': f'DJIFlightRecord_{flight_id}',
            'file_hash': f'hash-{flight_id}',
            'drone_model': 'Mavic 3',
            'drone_serial': 'SN-AIRCRAFT-1',
            'start_time': datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
            'duration_secs': 120.0,
            'total_distance': 1500.0,
            'max_altitude': 80.0,
            'max_speed': 12.5,
            'point_count': 0,
        }
        values.update(overrides)
        return FlightMetadata(**values)

    return factory


@pytest.fixture
def make_samples() -> Callable[..., List[TelemetrySample]]:
    """Factory for a straight-line track sampled at a fixed interval."""
    def factory(count: int, interval_ms: int = 100, **overrides) -> List[TelemetrySample]:
        samples = []
        for i in range(count):
            values = {
                'timestamp_ms': i * interval_ms,
                'latitude': 47.0 + i * 1e-5,
                'longitude': 8.0 + i * 1e-5,
                'altitude': 10.0 + i * 0.01,
                'speed': 5.0,
                'battery_percent': 90,
                'satellites': 14,
                'flight_mode': 'GPS',
                'rc_signal': 100,
            }
            values.update(overrides)
            samples.append(TelemetrySample(**values))
        return samples

    return factory


@pytest.fixture
def stored_flight(db: FlightDatabase, make_metadata, make_samples) -> Callable[..., int]:
    """Factory that inserts a flight and its samples, returning the id."""
    def factory(flight_id: int, samples: List[TelemetrySample] = None, **overrides) -> int:
        if samples is None:
            samples = make_samples(10)
        db.insert_flight(make_metadata(flight_id, point_count=len(samples), **overrides))
        db.bulk_insert_telemetry(flight_id, samples)
        return flight_id

    return factory
