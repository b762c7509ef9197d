from pathlib import Path
from typing import List, Optional

from .csv import load_csv, load_txt
from .models import Row, UnsupportedFileError
from .xlsx import XlsxReader

# What a file is read for: a store feed table, a buyer decision sheet, or a
# registrar enrollment export
READ_KINDS = ("table", "decision", "enrollment")

LOADER_REGISTRY = {
    ".csv": load_csv,
    ".txt": load_txt,  # tab-delimited
    ".xlsx": XlsxReader,  # Map .xlsx to XlsxReader class
}


def read_rows(path, kind: str = "table", headers: Optional[List[str]] = None) -> List[Row]:
    """
    Read a tabular file into rows, picking the loader from the file suffix.

    Args:
        path: File to read.
        kind: What the file is read for, one of READ_KINDS.
        headers: Field names to use when the file has no header row.

    Returns:
        Rows in file order.

    Raises:
        FileNotFoundError: If the file does not exist.
        UnsupportedFileError: If no loader handles the suffix or parsing fails.
        ValueError: If kind is unknown.
    """
    if kind not in READ_KINDS:
        raise ValueError(f"Unknown read kind '{kind}', expected one of {READ_KINDS}")

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    loader = LOADER_REGISTRY.get(path.suffix.lower())
    if loader is None:
        raise UnsupportedFileError(f"No loader for '{path.suffix}' files: {path}")

    if isinstance(loader, type):
        return loader().read(str(path), headers=headers)
    return loader(str(path), headers=headers)


__all__ = [
    "READ_KINDS",
    "LOADER_REGISTRY",
    "Row",
    "UnsupportedFileError",
    "XlsxReader",
    "load_csv",
    "load_txt",
    "read_rows",
]
