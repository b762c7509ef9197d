"""SQLite connection handling for the store."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator


def get_connection(db_path: Path, read_only: bool = False) -> sqlite3.Connection:
    """Open a connection with dict-like rows and foreign keys enforced.

    Args:
        db_path: Path to the SQLite database file
        read_only: Open with ``mode=ro``; the file must exist

    Returns:
        Connection with row_factory set to sqlite3.Row
    """
    db_path = Path(db_path)
    if read_only:
        conn = sqlite3.connect(f"{db_path.resolve().as_uri()}?mode=ro", uri=True)
    else:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def connect(db_path: Path, read_only: bool = False) -> Iterator[sqlite3.Connection]:
    """Scoped connection: closed on every exit path, success or failure.

    Transactions are the caller's business; nothing is committed here.
    """
    conn = get_connection(db_path, read_only=read_only)
    try:
        yield conn
    finally:
        conn.close()
