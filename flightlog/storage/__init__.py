"""
Storage module for flightlog.

Handles the on-disk flight store:
- Open with WAL and backup recovery
- Schema bootstrap and self-healing column migration
- Bulk telemetry append
- Raw, downsampled and track queries, cross-flight aggregates
- Flight metadata and keychain registry
"""

from flightlog.storage.database import FlightData, FlightDatabase
from flightlog.storage.queries import (
    BatteryUsage,
    OverviewStats,
    TelemetryRecord,
    TelemetrySeries,
)
from flightlog.storage.recovery import RecoveryState, StoreOpener, open_with_recovery
from flightlog.storage.registry import FlightSummary

__all__ = [
    'FlightData',
    'FlightDatabase',
    'BatteryUsage',
    'OverviewStats',
    'TelemetryRecord',
    'TelemetrySeries',
    'RecoveryState',
    'StoreOpener',
    'open_with_recovery',
    'FlightSummary',
]
