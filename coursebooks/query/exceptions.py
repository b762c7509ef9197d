"""Custom exceptions for query module."""

import sqlite3
from typing import Optional


class QueryError(Exception):
    """Exception raised when a read query fails.

    Carries the table the failed statement reads from and the service
    operation that issued it, which is enough to report or retry. Callers
    never receive partial rows: a query either returns all of its rows or
    raises this error.
    """

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        operation: Optional[str] = None,
        original_error: Exception = None,
    ):
        """Initialize QueryError.

        Args:
            message: Human-readable error message
            table: Table the failed statement reads from
            operation: QueryService method that issued the statement
            original_error: Original exception that caused this error (optional)
        """
        super().__init__(message)
        self.table = table
        self.operation = operation
        self.original_error = original_error

    @classmethod
    def from_sqlite_error(cls, table: str, operation: str, error: sqlite3.Error) -> "QueryError":
        """Create error for a statement that SQLite rejected or failed to run."""
        message = (
            f"Query '{operation}' on {table} failed: {type(error).__name__}: {error}\n\n"
            "Possible causes:\n"
            "- the database file does not exist (run init-db and ingest first)\n"
            "- the database was built from different table metadata\n"
            "- an ingestion run holds a lock on the database file"
        )
        return cls(message, table=table, operation=operation, original_error=error)

    @classmethod
    def from_unknown_table(cls, table: str, operation: str) -> "QueryError":
        """Create error for a table name the registry does not know."""
        return cls(f"Unknown table: {table}", table=table, operation=operation)
