"""
SQLAlchemy base configuration and engine factory.

Uses SQLAlchemy 2.0 style with type hints and declarative base.
Each store gets its own engine; there is no module-level connection.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sqlalchemy import DateTime, Engine, create_engine, event
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.types import TypeDecorator

from flightlog.config import SqliteConfig, config


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class UtcDateTime(TypeDecorator):
    """
    Timestamp stored as UTC and returned timezone-aware.

    SQLite has no timezone type and SQLAlchemy drops ``tzinfo`` when
    binding, so aware values are converted to UTC first. Stored text then
    sorts in instant order. Naive values are taken to be UTC already.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


def create_store_engine(db_path: Path, sqlite_config: Optional[SqliteConfig] = None) -> Engine:
    """
    Create an engine for the SQLite file at ``db_path``.

    The file is created if it does not exist. Connecting does not touch
    the file contents; callers probe the engine to detect corruption.
    """
    sqlite_config = sqlite_config or config.sqlite

    engine = create_engine(
        f'sqlite:///{db_path}',
        echo=sqlite_config.echo,  # Log SQL when requested
        connect_args={'check_same_thread': False},
    )

    @event.listens_for(engine, 'connect')
    def set_sqlite_pragma(dbapi_connection, connection_record):
        """
        Configure SQLite for a write-ahead logged telemetry store.

        The driver is switched to autocommit so that the 'begin' hook
        below owns transaction boundaries, DDL included.
        """
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        # Write-Ahead Logging; the -wal sidecar lives next to the store
        cursor.execute('PRAGMA journal_mode=WAL')
        cursor.execute(f'PRAGMA synchronous={sqlite_config.synchronous}')
        cursor.execute(f'PRAGMA cache_size=-{sqlite_config.cache_size_kib}')
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()

    @event.listens_for(engine, 'begin')
    def do_begin(conn):
        conn.exec_driver_sql('BEGIN')

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to a store engine."""
    return sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,  # Avoid lazy loading issues
    )
