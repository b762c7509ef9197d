import csv
from typing import List, Optional

from coursebooks.ingestion.models import Row, UnsupportedFileError


def load_csv(file_path: str, headers: Optional[List[str]] = None, delimiter: str = ',') -> List[Row]:
    """
    Loads a delimited text file into a list of rows.

    Args:
        file_path: The path to the CSV file.
        headers: Field names for files without a header row.
        delimiter: Field separator.

    Returns:
        One dict per non-blank line. Cells are kept as strings; fields a
        short line does not reach are None.
    """
    try:
        with open(file_path, 'r', newline='', encoding='utf-8-sig') as csvfile:
            reader = csv.DictReader(csvfile, fieldnames=headers, delimiter=delimiter)
            rows = []
            for row in reader:
                row.pop(None, None)  # cells beyond the header
                rows.append(row)
            return rows
    except FileNotFoundError:
        raise
    except (csv.Error, UnicodeDecodeError) as e:
        raise UnsupportedFileError(f"Failed to parse CSV file {file_path}: {e}") from e


def load_txt(file_path: str, headers: Optional[List[str]] = None) -> List[Row]:
    """Tab-delimited feed export."""
    return load_csv(file_path, headers=headers, delimiter='\t')
