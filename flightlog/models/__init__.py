"""
Database models for flightlog.

Schema designed for per-flight time-series telemetry with these priorities:
1. Fast ingestion (one bulk append per flight)
2. Ascending range scans by flight and timestamp
3. Bucketed aggregation for downsampled charts
"""

from flightlog.models.base import Base, UtcDateTime, create_store_engine, create_session_factory
from flightlog.models.flight import Flight
from flightlog.models.keychain import Keychain
from flightlog.models.telemetry import (
    TELEMETRY_INDEX_NAME,
    TelemetryPoint,
    telemetry_column_names,
)

__all__ = [
    'Base',
    'UtcDateTime',
    'create_store_engine',
    'create_session_factory',
    'Flight',
    'Keychain',
    'TelemetryPoint',
    'TELEMETRY_INDEX_NAME',
    'telemetry_column_names',
]
