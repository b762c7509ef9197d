from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

Row = Dict[str, Any]


class AbstractReader(ABC):
    """
    Base class for tabular file readers.
    """

    @abstractmethod
    def read(self, filepath: str, headers: Optional[List[str]] = None) -> List[Row]:
        """
        Reads a tabular file into rows.

        Args:
            filepath: Path to the file to read.
            headers: Column names to use instead of the file's first row.
                When given, the first row is read as data; this is how a
                header is synthesized for feed files that ship without one.

        Returns:
            Rows in file order, each a mapping of field name to value.
            Fields missing from a short row map to None.
        """
        pass


class UnsupportedFileError(Exception):
    """Unsupported file type, or a file that cannot be parsed."""

    pass
