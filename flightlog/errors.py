"""
Exception types raised by the flight store and the log importer.
"""

from typing import Optional


class FlightLogError(Exception):
    """Base class for all flightlog errors."""


class StorageEngineFailure(FlightLogError):
    """The underlying SQLite store or a query against it failed."""


class IOFailure(FlightLogError):
    """A filesystem operation on the data directory failed."""


class DirectoryResolutionFailure(FlightLogError):
    """The application data directory could not be located."""


class NotInitialized(FlightLogError):
    """The database was used before it was opened or after it was closed."""

    def __init__(self, message: str = 'Database not initialized'):
        super().__init__(message)


class FlightNotFound(FlightLogError):
    """No telemetry exists for the requested flight."""

    def __init__(self, flight_id: int):
        super().__init__(f'Flight not found: {flight_id}')
        self.flight_id = flight_id


class InvalidDisplayName(FlightLogError, ValueError):
    """A display name was empty or whitespace only."""

    def __init__(self, message: str = 'Display name cannot be empty'):
        super().__init__(message)


# -------------------------------------------------------------------------
# Import pipeline
# -------------------------------------------------------------------------

class ImportFailure(FlightLogError):
    """Base class for errors that stop a log import."""


class AlreadyImported(ImportFailure):
    """A log with the same content hash is already in the store."""

    def __init__(self, file_hash: Optional[str] = None):
        super().__init__('File already imported')
        self.file_hash = file_hash


class NoTelemetryData(ImportFailure):
    """The decoded log yielded no samples with a GPS fix."""

    def __init__(self):
        super().__init__('No valid telemetry data found')


class DecodeFailure(ImportFailure):
    """The external decoder could not read the log file."""
