"""
flightlog - local storage and downsampling engine for drone flight logs.

Built with SQLAlchemy on SQLite (WAL mode) and NumPy.

Modules:
    storage/     Flight store: open with recovery, schema self-heal,
                 bulk append, raw/downsampled/track queries, aggregates
    models/      SQLAlchemy models (Flight, TelemetryPoint, Keychain)
    analytics/   NumPy flight statistics and haversine distance
    ingestion/   Log import: hashing, archival, frame extraction
    samples.py   Value types shared by the importer and the store
    errors.py    Exception hierarchy
    config.py    Centralized configuration from environment variables
"""

__version__ = '1.0.0'
