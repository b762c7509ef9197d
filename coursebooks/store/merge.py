"""Merge engine: staged rows -> final table.

The upsert copies a table's staging rows into the final table in one
INSERT ... SELECT ... ON CONFLICT statement:

- a foreign key declared ``on_missing: placeholder`` is selected through
  ``CASE WHEN EXISTS (...) THEN value ELSE 0 END``, so a reference to an
  absent row lands on the placeholder instead of dangling or failing;
- a foreign key declared ``on_missing: skip`` filters the staged row out in
  the WHERE clause (a Course_Book row without its course is never merged);
- a conflict on the table's key updates every non-key column with the
  incoming value, so the latest snapshot wins.
"""

import sqlite3
from typing import List

from coursebooks.store.contract import MissingReference, TableMeta, UNRESOLVED_ID
from coursebooks.store.exceptions import MergeError


def build_staging_insert(table: TableMeta) -> str:
    """INSERT for one projected feed row into the staging table."""
    columns = table.column_names
    placeholders = ", ".join("?" for _ in columns)
    return f"INSERT INTO {table.staging_name} ({', '.join(columns)}) VALUES ({placeholders})"


def build_select_fields(table: TableMeta) -> List[str]:
    """SELECT expressions for the upsert, with foreign-key repair applied."""
    staging = table.staging_name
    fields = []
    for col in table.columns:
        ref = col.references
        if ref is not None and ref.on_missing == MissingReference.PLACEHOLDER:
            fields.append(
                f"CASE WHEN EXISTS (SELECT 1 FROM {ref.table} "
                f"WHERE {ref.table}.{ref.column} = {staging}.{col.name}) "
                f"THEN {staging}.{col.name} ELSE {UNRESOLVED_ID} END"
            )
        else:
            fields.append(f"{staging}.{col.name}")
    return fields


def build_where_clause(table: TableMeta) -> str:
    """Conditions that drop staged rows whose required references cannot resolve.

    Always returns a condition: SQLite needs a WHERE on an INSERT ... SELECT
    that carries an ON CONFLICT clause.
    """
    staging = table.staging_name
    conditions = []
    for col in table.foreign_keys:
        ref = col.references
        if ref.on_missing == MissingReference.SKIP:
            conditions.append(f"{staging}.{col.name} IN (SELECT {ref.column} FROM {ref.table})")
    if not conditions:
        return "1 = 1"
    return " AND ".join(conditions)


def build_conflict_clause(table: TableMeta) -> str:
    """ON CONFLICT clause keyed on the primary or composite key."""
    keys = table.key_columns
    if not keys:
        return ""
    updates = [c for c in table.column_names if c not in keys]
    if not updates:
        return f"ON CONFLICT({', '.join(keys)}) DO NOTHING"
    assignments = ", ".join(f"{c} = excluded.{c}" for c in updates)
    return f"ON CONFLICT({', '.join(keys)}) DO UPDATE SET {assignments}"


def build_upsert_statement(table: TableMeta) -> str:
    """Build the staged-to-final INSERT-SELECT-UPSERT for a table.

    Args:
        table: Table metadata (name, columns and key are read from it)

    Returns:
        DML string with no parameters
    """
    columns = ", ".join(table.column_names)
    statement = (
        f"INSERT INTO {table.name} ({columns}) "
        f"SELECT {', '.join(build_select_fields(table))} "
        f"FROM {table.staging_name} "
        f"WHERE {build_where_clause(table)}"
    )
    conflict = build_conflict_clause(table)
    if conflict:
        statement += f" {conflict}"
    return statement


def merge_table(conn: sqlite3.Connection, table: TableMeta) -> int:
    """Run the upsert for one table inside the caller's transaction.

    Returns:
        Number of rows inserted or updated

    Raises:
        MergeError: If the statement fails
    """
    try:
        cursor = conn.execute(build_upsert_statement(table))
    except sqlite3.Error as e:
        raise MergeError.from_sqlite_error(table.name, e) from e
    return cursor.rowcount
