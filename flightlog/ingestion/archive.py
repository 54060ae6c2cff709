"""
Log file helpers: content hashing for duplicate detection and archival
of the original file into the data directory.
"""

import hashlib
import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from flightlog.errors import IOFailure

logger = logging.getLogger(__name__)

HASH_BLOCK_SIZE = 8192


def calculate_file_hash(path: Path) -> str:
    """SHA-256 hex digest of a file, read in blocks."""
    hasher = hashlib.sha256()
    try:
        with open(path, 'rb') as f:
            for block in iter(lambda: f.read(HASH_BLOCK_SIZE), b''):
                hasher.update(block)
    except OSError as e:
        raise IOFailure(f'Failed to hash {path}: {e}') from e
    return hasher.hexdigest()


def archive_log_file(
    source_path: Path,
    raw_logs_dir: Path,
    now: Optional[datetime] = None,
) -> Path:
    """
    Copy a log file into the raw logs directory.

    If a file of the same name is already archived, the copy gets a
    timestamp suffix: ``<stem>_<YYYYmmdd_HHMMSS><ext>``.
    """
    source_path = Path(source_path)
    dest_path = raw_logs_dir / (source_path.name or 'unknown.log')

    if dest_path.exists():
        timestamp = (now or datetime.now(timezone.utc)).strftime('%Y%m%d_%H%M%S')
        stem = source_path.stem or 'log'
        suffix = source_path.suffix or '.txt'
        dest_path = raw_logs_dir / f'{stem}_{timestamp}{suffix}'

        counter = 1
        while dest_path.exists():
            dest_path = raw_logs_dir / f'{stem}_{timestamp}_{counter}{suffix}'
            counter += 1

    try:
        shutil.copy2(source_path, dest_path)
    except OSError as e:
        raise IOFailure(f'Failed to archive {source_path}: {e}') from e

    logger.debug(f'Archived {source_path} to {dest_path}')
    return dest_path
