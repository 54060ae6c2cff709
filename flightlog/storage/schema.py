"""
Schema bootstrap and self-healing migration.

Runs on every startup, in one transaction:

1. Create any missing tables and indexes from the declarative models.
2. Add columns introduced by later schema versions (additive only).
3. Compare the telemetry table's physical column order with the model's
   and rebuild the table if they differ.

Added columns land at the end of a table, so step 2 on an old store is
usually what triggers the rebuild in step 3.
"""

import logging
from dataclasses import dataclass
from typing import List

from sqlalchemy import Connection, Engine, MetaData, Table, func, insert, inspect, null, select
from sqlalchemy.schema import CreateTable

from flightlog.errors import StorageEngineFailure
from flightlog.models import Base, TelemetryPoint, telemetry_column_names

logger = logging.getLogger(__name__)

REBUILD_TABLE = 'telemetry_rebuild'


@dataclass(frozen=True)
class SchemaColumn:
    """A column added to an existing table by a schema version."""
    version: int
    table: str
    name: str
    ddl_type: str


ADDITIVE_COLUMNS = (
    SchemaColumn(2, 'flights', 'display_name', 'VARCHAR'),
    SchemaColumn(3, 'flights', 'aircraft_name', 'VARCHAR'),
    SchemaColumn(3, 'flights', 'battery_serial', 'VARCHAR'),
    SchemaColumn(4, 'telemetry', 'height', 'FLOAT'),
    SchemaColumn(4, 'telemetry', 'vps_height', 'FLOAT'),
)

SCHEMA_VERSION = max(column.version for column in ADDITIVE_COLUMNS)


def _column_names(conn: Connection, table: str) -> List[str]:
    return [column['name'] for column in inspect(conn).get_columns(table)]


def apply_additive_columns(conn: Connection) -> List[SchemaColumn]:
    """
    Add every declared column that is missing from its table.

    Safe to run on every startup. Returns the columns that were added.
    """
    added = []
    existing = {}
    for column in ADDITIVE_COLUMNS:
        if column.table not in existing:
            existing[column.table] = set(_column_names(conn, column.table))
        if column.name in existing[column.table]:
            continue
        conn.exec_driver_sql(
            f'ALTER TABLE {column.table} ADD COLUMN {column.name} {column.ddl_type}'
        )
        existing[column.table].add(column.name)
        added.append(column)
        logger.info(f'Added column {column.table}.{column.name} (schema v{column.version})')
    return added


def ensure_telemetry_column_order(conn: Connection) -> bool:
    """
    Rebuild the telemetry table if its column order is not canonical.

    Every existing row is copied, with NULL for columns the old layout
    lacked. A row that cannot be copied fails the whole transaction, so
    the old table is never dropped short of rows. Returns True if a
    rebuild happened.
    """
    expected = telemetry_column_names()
    actual = _column_names(conn, 'telemetry')

    if actual == expected:
        return False

    logger.warning('Telemetry column order mismatch detected. Rebuilding table.')

    source = Table('telemetry', MetaData(), autoload_with=conn)
    existing = set(actual)

    rebuild = TelemetryPoint.__table__.to_metadata(MetaData(), name=REBUILD_TABLE)

    conn.exec_driver_sql(f'DROP TABLE IF EXISTS {REBUILD_TABLE}')
    conn.execute(CreateTable(rebuild))

    select_list = [
        source.c[name] if name in existing else null().label(name)
        for name in expected
    ]
    conn.execute(insert(rebuild).from_select(expected, select(*select_list)))

    before = conn.execute(select(func.count()).select_from(source)).scalar_one()
    after = conn.execute(select(func.count()).select_from(rebuild)).scalar_one()
    if after != before:
        raise StorageEngineFailure(
            f'Telemetry rebuild copied {after} of {before} rows; keeping the old table'
        )

    conn.exec_driver_sql('DROP TABLE telemetry')
    conn.exec_driver_sql(f'ALTER TABLE {REBUILD_TABLE} RENAME TO telemetry')

    for index in TelemetryPoint.__table__.indexes:
        index.create(conn, checkfirst=True)

    logger.info(f'Telemetry table rebuilt with {after} rows')
    return True


def init_schema(engine: Engine) -> None:
    """
    Create and migrate the schema.

    Everything runs in a single transaction, so a crash part-way through
    leaves the previous schema intact.
    """
    with engine.begin() as conn:
        Base.metadata.create_all(conn)

        apply_additive_columns(conn)
        ensure_telemetry_column_order(conn)

        for table in Base.metadata.sorted_tables:
            for index in table.indexes:
                index.create(conn, checkfirst=True)

        conn.exec_driver_sql(f'PRAGMA user_version = {SCHEMA_VERSION}')

    logger.info('Database schema initialized successfully')


def schema_version(engine: Engine) -> int:
    """Schema version recorded in the store header."""
    with engine.connect() as conn:
        return conn.exec_driver_sql('PRAGMA user_version').scalar_one()
