"""Compile table metadata into DDL and (re)build the store.

`build_create_statement` and `build_index_statements` are pure: the same
`TableMeta` always yields the same text, which is what makes "drop if
exists, recreate" repeatable. `create_database` runs them against a file.
"""

import sqlite3
from pathlib import Path
from typing import List, Optional

from coursebooks.store.contract import TableMeta, TableRegistry, UNRESOLVED_ID, default_registry
from coursebooks.store.db import connect
from coursebooks.store.exceptions import SchemaError
from coursebooks.utils.logger import LoggerManager

logger = LoggerManager.get_logger(__name__)


def build_create_statement(table: TableMeta, staging: bool = False) -> str:
    """Build the CREATE TABLE statement for a table.

    Final tables carry their primary key (inline for a single key column,
    trailing ``PRIMARY KEY (...)`` for a composite key) and one
    ``FOREIGN KEY`` clause per reference. Staging tables carry no keys at all,
    since staged rows may violate them until the merge repairs or drops them;
    they are created as TEMP tables named ``temp_<table>``.

    Args:
        table: Table metadata
        staging: Build the staging variant

    Returns:
        DDL string
    """
    parts: List[str] = []
    for col in table.columns:
        definition = f"{col.name} {col.type.value}"
        if col.primary_key and not staging:
            definition += " PRIMARY KEY"
        parts.append(definition)

    if not staging:
        for col in table.foreign_keys:
            ref = col.references
            clause = f"FOREIGN KEY ({col.name}) REFERENCES {ref.table}({ref.column})"
            if ref.on_delete:
                clause += f" ON DELETE {ref.on_delete}"
            if ref.on_update:
                clause += f" ON UPDATE {ref.on_update}"
            parts.append(clause)
        if table.composite_key:
            parts.append(f"PRIMARY KEY ({', '.join(table.composite_key)})")

    if staging:
        return f"CREATE TEMP TABLE {table.staging_name} ({', '.join(parts)})"
    return f"CREATE TABLE IF NOT EXISTS {table.name} ({', '.join(parts)})"


def build_drop_statement(table: TableMeta, staging: bool = False) -> str:
    name = table.staging_name if staging else table.name
    return f"DROP TABLE IF EXISTS {name}"


def build_index_statements(table: TableMeta) -> List[str]:
    """One CREATE INDEX per declared index, named ``idx_<table>_<cols>``."""
    statements = []
    for columns in table.indexes:
        suffix = "_".join(columns).lower()
        statements.append(
            f"CREATE INDEX IF NOT EXISTS idx_{table.name.lower()}_{suffix} "
            f"ON {table.name}({', '.join(columns)})"
        )
    return statements


def _execute_ddl(conn: sqlite3.Connection, table: TableMeta, statement: str) -> None:
    try:
        conn.execute(statement)
    except sqlite3.Error as e:
        raise SchemaError.from_sqlite_error(table.name, statement, e) from e


def rebuild_table(conn: sqlite3.Connection, table: TableMeta) -> None:
    """Create one final table with its indexes and placeholder row.

    The caller drops the old table first (see `create_database`, which must
    drop dependents before the tables they reference).
    """
    _execute_ddl(conn, table, build_create_statement(table))
    for statement in build_index_statements(table):
        _execute_ddl(conn, table, statement)

    if table.placeholder:
        # Stand-in for references that cannot be resolved at merge time
        _execute_ddl(
            conn,
            table,
            f"INSERT OR IGNORE INTO {table.name} ({table.primary_key}) VALUES ({UNRESOLVED_ID})",
        )


def create_database(db_path: Path, registry: Optional[TableRegistry] = None) -> List[str]:
    """Drop and recreate every table of the store.

    Tables are dropped in reverse merge order and created in merge order so
    foreign keys always point at an existing table. A failing table raises
    SchemaError; the tables rebuilt before it stay in place.

    Args:
        db_path: Path to SQLite database file (created if missing)
        registry: Table metadata; the packaged registry when omitted

    Returns:
        Names of the tables created, in creation order

    Raises:
        SchemaError: If DDL for a table fails
    """
    registry = registry or default_registry()
    order = registry.merge_order()
    created: List[str] = []

    with connect(db_path) as conn:
        for name in reversed(order):
            table = registry.get(name)
            _execute_ddl(conn, table, build_drop_statement(table))
        conn.commit()

        for name in order:
            table = registry.get(name)
            try:
                rebuild_table(conn, table)
                conn.commit()
            except SchemaError:
                conn.rollback()
                logger.error("schema.table.failed", extra={"extra_data": {"table": name}}, exc_info=True)
                raise
            created.append(name)
            logger.debug("schema.table.created", extra={"extra_data": {"table": name}})

    logger.info(f"Created {len(created)} tables in {db_path}")
    return created
