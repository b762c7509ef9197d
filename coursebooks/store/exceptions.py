"""Exceptions raised while building and loading the store."""

import sqlite3
from typing import Optional


class SchemaError(Exception):
    """Table metadata is malformed, or DDL for a table failed to execute.

    Fatal to that table's rebuild, not to the process.
    """

    def __init__(self, message: str, table: Optional[str] = None, original_error: Exception = None):
        super().__init__(message)
        self.table = table
        self.original_error = original_error

    @classmethod
    def from_sqlite_error(cls, table: str, statement: str, error: sqlite3.Error) -> "SchemaError":
        message = (
            f"DDL failed for table {table}: {type(error).__name__}: {error}\n"
            f"Statement: {statement.strip()}"
        )
        return cls(message, table=table, original_error=error)


class IngestRowError(Exception):
    """A single feed row cannot be staged.

    Raised for a missing required source field, a value that does not fit the
    column type, or a staging insert failure. The pipeline logs and skips the
    row; the batch continues.
    """

    def __init__(self, message: str, table: str, field: Optional[str] = None, line: Optional[int] = None):
        super().__init__(message)
        self.table = table
        self.field = field
        self.line = line


class MergeError(Exception):
    """The staged-to-final upsert for a table failed.

    The table's transaction is rolled back, so the final table keeps its
    pre-merge rows. Other tables of the same run are not touched.
    """

    def __init__(self, message: str, table: str, original_error: Exception = None):
        super().__init__(message)
        self.table = table
        self.original_error = original_error

    @classmethod
    def from_sqlite_error(cls, table: str, error: sqlite3.Error) -> "MergeError":
        message = (
            f"Merge into {table} failed: {type(error).__name__}: {error}\n\n"
            "The table was left as it was before this run. Possible causes:\n"
            "- another process holds a lock on the database file\n"
            "- the database was built from different table metadata "
            "(run init-db to rebuild it)"
        )
        return cls(message, table=table, original_error=error)
