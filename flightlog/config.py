"""
Settings for the flight store, read once at import.

Values come from ``FLIGHTLOG_*`` environment variables (a ``.env`` file
is honoured) and fall back to defaults tuned for a single-user desktop
store: the data directory, SQLite pragmas, query point limits and the
bulk-append batch size.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _default_data_dir() -> Optional[str]:
    """Per-user data directory, or None if no home directory can be found."""
    xdg = os.getenv('XDG_DATA_HOME')
    if xdg:
        return str(Path(xdg) / 'flightlog')
    try:
        return str(Path.home() / '.local' / 'share' / 'flightlog')
    except RuntimeError:
        return None


@dataclass(frozen=True)
class StorageConfig:
    """On-disk layout of the flight store."""
    data_dir: Optional[str] = field(
        default_factory=lambda: os.getenv('FLIGHTLOG_DATA_DIR') or _default_data_dir()
    )
    db_file_name: str = 'flights.db'
    raw_logs_dir_name: str = 'raw_logs'
    keychains_dir_name: str = 'keychains'


@dataclass(frozen=True)
class SqliteConfig:
    """SQLite connection tuning."""
    synchronous: str = os.getenv('FLIGHTLOG_SQLITE_SYNCHRONOUS', 'NORMAL')
    cache_size_kib: int = int(os.getenv('FLIGHTLOG_SQLITE_CACHE_KIB', '64000'))
    echo: bool = os.getenv('FLIGHTLOG_SQL_ECHO', '0') == '1'


@dataclass(frozen=True)
class QueryConfig:
    """Point budgets for telemetry and track queries."""
    default_max_points: int = int(os.getenv('FLIGHTLOG_MAX_POINTS', '5000'))
    default_track_points: int = int(os.getenv('FLIGHTLOG_TRACK_POINTS', '2000'))

    # Buckets never get narrower than one second
    min_bucket_ms: int = 1000


@dataclass(frozen=True)
class IngestionConfig:
    """Telemetry ingestion settings."""
    batch_size: int = int(os.getenv('FLIGHTLOG_BATCH_SIZE', '10000'))

    # Decoded frames without a fly time are assumed to be 10 Hz
    frame_interval_ms: int = 100


@dataclass(frozen=True)
class AppConfig:
    """Main configuration."""
    storage: StorageConfig
    sqlite: SqliteConfig
    query: QueryConfig
    ingestion: IngestionConfig


def load_config() -> AppConfig:
    """Load and validate all configuration."""
    return AppConfig(
        storage=StorageConfig(),
        sqlite=SqliteConfig(),
        query=QueryConfig(),
        ingestion=IngestionConfig(),
    )


# Singleton instance
config = load_config()
