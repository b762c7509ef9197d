import zipfile
from typing import List, Optional

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from coursebooks.ingestion.models import AbstractReader, Row, UnsupportedFileError


class XlsxReader(AbstractReader):
    """
    Reader for XLSX workbooks. Reads one sheet (the active sheet unless a
    name is given); the first non-empty row is the header.
    """

    def __init__(self, sheet_name: Optional[str] = None):
        self.sheet_name = sheet_name

    def read(self, filepath: str, headers: Optional[List[str]] = None) -> List[Row]:
        if not filepath.lower().endswith(".xlsx"):
            raise UnsupportedFileError("File is not a .xlsx file.")

        try:
            wb = openpyxl.load_workbook(filepath, read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, OSError, KeyError) as e:
            raise UnsupportedFileError(f"Failed to open XLSX file: {filepath}: {e}") from e

        try:
            if self.sheet_name:
                if self.sheet_name not in wb.sheetnames:
                    raise UnsupportedFileError(f"Sheet '{self.sheet_name}' not found in {filepath}")
                ws = wb[self.sheet_name]
            else:
                ws = wb.active

            rows: List[Row] = []
            fieldnames = list(headers) if headers else None
            for values in ws.iter_rows(values_only=True):
                if not values or all(v is None or str(v).strip() == "" for v in values):
                    continue

                if fieldnames is None:
                    fieldnames = [str(v).strip() if v is not None else "" for v in values]
                    continue

                row = {}
                for i, name in enumerate(fieldnames):
                    if not name:
                        continue
                    row[name] = values[i] if i < len(values) else None
                rows.append(row)
            return rows
        finally:
            wb.close()
