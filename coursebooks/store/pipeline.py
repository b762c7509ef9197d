"""Ingestion pipeline: feed rows -> staging table -> final table.

Each table is ingested on its own connection. Staging inserts and the merge
share one transaction, so a failed merge rolls the final table back to its
pre-run state while tables merged earlier in the run keep their rows.
"""

import sqlite3
import uuid
from collections import OrderedDict
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from coursebooks.ingestion import UnsupportedFileError, read_rows
from coursebooks.store.contract import ColumnMeta, ColumnType, TableMeta, TableRegistry, default_registry
from coursebooks.store.db import connect
from coursebooks.store.exceptions import IngestRowError, MergeError, SchemaError
from coursebooks.store.merge import build_staging_insert, merge_table
from coursebooks.store.models import IngestResult, RunReport
from coursebooks.store.schema import build_create_statement, build_drop_statement
from coursebooks.utils.logger import LoggerManager
from coursebooks.utils.logger_context import with_context

logger = LoggerManager.get_logger(__name__)

Reader = Callable[..., List[Dict[str, Any]]]


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def coerce_value(value: Any, column_type: ColumnType) -> Any:
    """Convert a feed value to the column's storage type.

    Blank values become NULL for every type except TEXT. Whole floats (as
    spreadsheets hand them back) are stored as integers in INTEGER and TEXT
    columns.

    Raises:
        ValueError: If the value does not fit the type
    """
    if value is None:
        return None

    if column_type == ColumnType.TEXT:
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)

    if isinstance(value, str):
        value = value.strip()
        if value == "":
            return None

    if column_type == ColumnType.REAL:
        return float(value)

    if isinstance(value, (int, float)):
        number = value
    else:
        try:
            return int(value)
        except ValueError:
            number = float(value)

    if column_type == ColumnType.INTEGER:
        if isinstance(number, float):
            if not number.is_integer():
                raise ValueError(f"{value!r} is not a whole number")
            return int(number)
        return int(number)

    # NUMERIC
    return number


class IngestionPipeline:
    """Stages and merges feed rows into the store, one table at a time.

    Args:
        db_path: Path to the SQLite store (built with ``create_database``)
        registry: Table metadata; the packaged registry when omitted
        run_id: Identifier added to every log line of this run
    """

    def __init__(self, db_path: Path, registry: Optional[TableRegistry] = None, run_id: Optional[str] = None):
        self.db_path = Path(db_path)
        self.registry = registry or default_registry()
        self.run_id = run_id or uuid.uuid4().hex[:12]

    def _logger(self, table: str):
        return with_context(logger, table=table, run_id=self.run_id)

    def _column_value(self, table: TableMeta, col: ColumnMeta, row: Dict[str, Any], line: Optional[int]) -> Any:
        present = [s for s in col.source if not _is_blank(row.get(s))]
        if col.required and not present:
            raise IngestRowError(
                f"{table.name}.{col.name}: required field {'+'.join(col.source)} is missing",
                table=table.name,
                field=col.name,
                line=line,
            )

        if len(col.source) == 1:
            raw = row.get(col.source[0])
        elif not present:
            raw = None
        else:
            # Concatenate with an empty separator; missing parts contribute ""
            raw = "".join(
                coerce_value(row.get(s), ColumnType.TEXT) or "" for s in col.source
            )

        try:
            return coerce_value(raw, col.type)
        except (TypeError, ValueError) as e:
            raise IngestRowError(
                f"{table.name}.{col.name}: cannot store {raw!r} as {col.type.value} ({e})",
                table=table.name,
                field=col.name,
                line=line,
            ) from e

    def project_row(self, table: TableMeta, row: Dict[str, Any], line: Optional[int] = None) -> Tuple[Any, ...]:
        """Map one feed row onto the table's columns, in column order.

        Raises:
            IngestRowError: If a required field is missing or a value does not
                fit its column type
        """
        return tuple(self._column_value(table, col, row, line) for col in table.columns)

    def ingest(self, table_name: str, rows: Iterable[Dict[str, Any]], source: Optional[str] = None) -> IngestResult:
        """Stage ``rows`` and merge them into ``table_name``.

        Malformed rows are logged and skipped. The merge runs in the same
        transaction as staging and is committed only when it succeeds.

        Returns:
            Counts for the table

        Raises:
            SchemaError: If the table is unknown or staging DDL fails
            MergeError: If the upsert fails; the final table is unchanged
        """
        table = self.registry.get(table_name)
        log = self._logger(table.name)
        result = IngestResult(table=table.name, source=source)
        insert = build_staging_insert(table)

        with connect(self.db_path) as conn:
            for statement in (build_drop_statement(table, staging=True), build_create_statement(table, staging=True)):
                try:
                    conn.execute(statement)
                except sqlite3.Error as e:
                    raise SchemaError.from_sqlite_error(table.name, statement, e) from e

            for line, row in enumerate(rows, start=1):
                result.received += 1
                try:
                    conn.execute(insert, self.project_row(table, row, line))
                except IngestRowError as e:
                    result.skipped += 1
                    log.warning("ingest.row.skipped", extra={"extra_data": {
                        "line": line, "field": e.field, "reason": str(e),
                    }})
                    continue
                except sqlite3.Error as e:
                    result.skipped += 1
                    log.warning("ingest.row.skipped", extra={"extra_data": {
                        "line": line, "reason": f"{type(e).__name__}: {e}",
                    }})
                    continue
                result.staged += 1

            try:
                result.merged = merge_table(conn, table)
                conn.commit()
            except MergeError:
                conn.rollback()
                log.error("merge.failed", extra={"extra_data": {"staged": result.staged}}, exc_info=True)
                raise

        log.info("merge.done", extra={"extra_data": result.model_dump(exclude={"table"})})
        return result

    def _resolve_files(self, paths: Iterable[str | Path]) -> Tuple["OrderedDict[str, List[Path]]", List[str]]:
        by_table: Dict[str, List[Path]] = {}
        unmatched = []
        for path in paths:
            path = Path(path)
            table = self.registry.table_for_file(path)
            if table is None:
                unmatched.append(str(path))
                logger.warning("ingest.file.unmatched", extra={"extra_data": {"file": str(path), "run_id": self.run_id}})
                continue
            by_table.setdefault(table.name, []).append(path)

        ordered = OrderedDict()
        for name in self.registry.merge_order():
            if name in by_table:
                ordered[name] = by_table[name]
        return ordered, unmatched

    def ingest_files(self, paths: Iterable[str | Path], reader: Reader = read_rows) -> RunReport:
        """Ingest feed files, one per table, in foreign-key dependency order.

        The table of each file is resolved from its base name. Headerless
        feeds are read with the table's declared ``headers``. The run stops at
        the first table that fails; tables merged before it stay merged.

        Args:
            paths: Feed files
            reader: ``reader(path, kind, headers=...) -> rows``

        Returns:
            RunReport with per-table counts and the failure, if any
        """
        report = RunReport(run_id=self.run_id)
        ordered, report.unmatched = self._resolve_files(paths)

        for name, files in ordered.items():
            table = self.registry.get(name)
            headers = None if table.has_header else table.headers
            for path in files:
                try:
                    rows = reader(path, "table", headers=headers)
                    report.results.append(self.ingest(name, rows, source=str(path)))
                except (SchemaError, MergeError, UnsupportedFileError, OSError) as e:
                    report.ok = False
                    report.failed_table = name
                    report.error = str(e)
                    self._logger(name).error("ingest.run.stopped", extra={"extra_data": {"file": str(path), "error": str(e)}})
                    return report

        logger.info(f"Ingested {len(report.results)} files", extra={"extra_data": {"run_id": self.run_id}})
        return report
