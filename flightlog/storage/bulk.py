"""
Bulk telemetry append.

This is the append-only time-series pattern: a flight's samples are
written once, in batched executemany inserts inside one transaction,
and never updated afterwards. The transaction commit is the flush; a
failing row rolls back every batch of the append.
"""

import logging
from typing import Iterable, List, Sequence

from sqlalchemy.orm import Session

from flightlog.models import TelemetryPoint
from flightlog.samples import TelemetrySample

logger = logging.getLogger(__name__)


def _batches(rows: List[dict], size: int) -> Iterable[List[dict]]:
    for start in range(0, len(rows), size):
        yield rows[start:start + size]


def append_telemetry(
    session: Session,
    flight_id: int,
    samples: Sequence[TelemetrySample],
    batch_size: int,
) -> int:
    """
    Append samples for one flight.

    Returns the number of rows written. The caller owns the transaction;
    nothing is visible to other connections until it commits.
    """
    if not samples:
        return 0

    records = [sample.to_row(flight_id) for sample in samples]
    logger.debug(f'Appending {len(records)} telemetry rows for flight {flight_id}')

    table = TelemetryPoint.__table__
    for batch in _batches(records, max(1, batch_size)):
        session.execute(table.insert(), batch)

    return len(records)
