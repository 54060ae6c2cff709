"""
Log ingestion module for flightlog.

Handles hashing and archiving log files, converting decoded frames into
telemetry samples, and loading them into the flight store.
"""

from flightlog.ingestion.archive import archive_log_file, calculate_file_hash
from flightlog.ingestion.frames import (
    BatteryFrame,
    DecodedFrame,
    DecodedLog,
    GimbalFrame,
    LogDetails,
    OsdFrame,
    RcFrame,
    extract_telemetry,
)
from flightlog.ingestion.importer import ImportResult, LogDecoder, LogImporter

__all__ = [
    'archive_log_file',
    'calculate_file_hash',
    'BatteryFrame',
    'DecodedFrame',
    'DecodedLog',
    'GimbalFrame',
    'LogDetails',
    'OsdFrame',
    'RcFrame',
    'extract_telemetry',
    'ImportResult',
    'LogDecoder',
    'LogImporter',
]
