"""
Open-with-recovery for the SQLite flight store.

Opening is a bounded, linear state machine:

    OPENING -> OPEN
            -> RECOVERING_LOG -> OPENING -> OPEN
                              -> BACKING_UP -> OPENING -> OPEN
                                                       -> FAILED

1. Open the store as-is.
2. On failure, delete the write-ahead-log sidecar and retry.
3. On a second failure, move the store (and sidecar) aside to a
   timestamped backup and open a fresh, empty store.

If the third attempt also fails the error is fatal and raised to the
caller. There is no loop and no further fallback.

"Open" includes a probe read of sqlite_master: SQLite connects lazily,
so a corrupt file only fails once its header is read.
"""

import logging
import sqlite3
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError

from flightlog.config import SqliteConfig
from flightlog.errors import IOFailure, StorageEngineFailure
from flightlog.models.base import create_store_engine

logger = logging.getLogger(__name__)


class RecoveryState(str, Enum):
    """States of the open-with-recovery sequence."""
    OPENING = 'opening'
    RECOVERING_LOG = 'recovering_log'
    BACKING_UP = 'backing_up'
    OPEN = 'open'
    FAILED = 'failed'


def wal_path_for(db_path: Path) -> Path:
    """Path of the write-ahead-log sidecar of a store file."""
    return db_path.with_name(db_path.name + '-wal')


def shm_path_for(db_path: Path) -> Path:
    """Path of the shared-memory index that accompanies the WAL."""
    return db_path.with_name(db_path.name + '-shm')


def _free_path(path: Path) -> Path:
    """Return ``path``, or ``path`` with a numeric suffix if it is taken."""
    candidate = path
    counter = 1
    while candidate.exists():
        candidate = path.with_name(f'{path.name}.{counter}')
        counter += 1
    return candidate


def backup_store(db_path: Path, now: Optional[datetime] = None) -> Optional[Path]:
    """
    Move a store file and its sidecar aside to timestamped backups.

    Returns the backup path of the store file, or None if there was no
    store file to move.
    """
    if not db_path.exists():
        return None

    timestamp = (now or datetime.now(timezone.utc)).strftime('%Y%m%d_%H%M%S')
    backup_path = _free_path(db_path.with_name(f'{db_path.name}.bak.{timestamp}'))

    try:
        db_path.rename(backup_path)
    except OSError as e:
        raise IOFailure(f'Failed to back up {db_path}: {e}') from e

    wal_path = wal_path_for(db_path)
    if wal_path.exists():
        wal_backup = _free_path(wal_path.with_name(f'{wal_path.name}.bak.{timestamp}'))
        try:
            wal_path.rename(wal_backup)
        except OSError as e:
            logger.warning(f'Failed to back up WAL file {wal_path}: {e}')

    # The shm index is rebuilt from the WAL; a stale one must not survive
    shm_path_for(db_path).unlink(missing_ok=True)

    return backup_path


class StoreOpener:
    """
    Opens the store file, escalating through the recovery steps.

    The states visited are recorded in ``history`` so the path taken by
    an open is observable after the fact.
    """

    def __init__(self, db_path: Path, sqlite_config: Optional[SqliteConfig] = None):
        self.db_path = Path(db_path)
        self.sqlite_config = sqlite_config
        self.state = RecoveryState.OPENING
        self.history: List[RecoveryState] = []
        self.backup_path: Optional[Path] = None

    def _enter(self, state: RecoveryState) -> None:
        self.state = state
        self.history.append(state)

    def _connect(self) -> Engine:
        """Create an engine and prove the store is readable."""
        engine = create_store_engine(self.db_path, self.sqlite_config)
        try:
            with engine.connect() as conn:
                conn.exec_driver_sql('SELECT count(*) FROM sqlite_master').scalar()
        except BaseException:
            engine.dispose()
            raise
        return engine

    def _attempt(self) -> Tuple[Optional[Engine], Optional[Exception]]:
        self._enter(RecoveryState.OPENING)
        try:
            engine = self._connect()
        except (SQLAlchemyError, sqlite3.Error) as e:
            return None, e
        self._enter(RecoveryState.OPEN)
        return engine, None

    def _clear_write_ahead_log(self) -> None:
        wal_path = wal_path_for(self.db_path)
        if not wal_path.exists():
            return
        try:
            wal_path.unlink()
            shm_path_for(self.db_path).unlink(missing_ok=True)
            logger.info(f'Removed WAL file {wal_path}')
        except OSError as e:
            logger.warning(f'Failed to remove WAL file {wal_path}: {e}')

    def open(self) -> Engine:
        """
        Open the store, recovering at most twice.

        Raises StorageEngineFailure if the store cannot be opened even
        after being replaced with a fresh one.
        """
        engine, error = self._attempt()
        if engine is not None:
            return engine

        logger.warning(f'Store open failed: {error}. Attempting WAL recovery...')
        self._enter(RecoveryState.RECOVERING_LOG)
        self._clear_write_ahead_log()

        engine, error = self._attempt()
        if engine is not None:
            return engine

        logger.warning(f'WAL recovery failed: {error}. Backing up store and recreating...')
        self._enter(RecoveryState.BACKING_UP)
        self.backup_path = backup_store(self.db_path)
        if self.backup_path is not None:
            logger.warning(f'Store backed up to {self.backup_path}')

        engine, error = self._attempt()
        if engine is not None:
            return engine

        self._enter(RecoveryState.FAILED)
        logger.error(f'Store could not be opened after recovery: {error}')
        raise StorageEngineFailure(f'Failed to open store {self.db_path}: {error}') from error


def open_with_recovery(db_path: Path, sqlite_config: Optional[SqliteConfig] = None) -> Engine:
    """Open the store at ``db_path`` with WAL and backup recovery."""
    return StoreOpener(db_path, sqlite_config).open()
