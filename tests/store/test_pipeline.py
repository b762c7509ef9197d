"""Tests for row projection, staging and multi-file ingestion runs."""

import sqlite3

import pytest

from coursebooks.store import IngestionPipeline, MergeError, SchemaError, Tables, default_registry
from coursebooks.store.contract import ColumnType
from coursebooks.store.merge import merge_table as real_merge_table
from coursebooks.store.pipeline import coerce_value

BOOK_HEADER = "BookID,ISBN,Title,Author,Edition,Publisher\n"


def fetch(db_path, sql):
    conn = sqlite3.connect(str(db_path))
    try:
        return conn.execute(sql).fetchall()
    finally:
        conn.close()


class TestCoerceValue:
    @pytest.mark.parametrize("value, column_type, expected", [
        ("42", ColumnType.INTEGER, 42),
        (" 42 ", ColumnType.INTEGER, 42),
        (42.0, ColumnType.INTEGER, 42),
        ("3.0", ColumnType.INTEGER, 3),
        ("", ColumnType.INTEGER, None),
        (None, ColumnType.INTEGER, None),
        ("19.99", ColumnType.REAL, 19.99),
        ("", ColumnType.REAL, None),
        ("7", ColumnType.NUMERIC, 7),
        ("7.5", ColumnType.NUMERIC, 7.5),
        (9780000000001.0, ColumnType.TEXT, "9780000000001"),
        ("001", ColumnType.TEXT, "001"),
        ("", ColumnType.TEXT, ""),
    ])
    def test_coercion(self, value, column_type, expected):
        assert coerce_value(value, column_type) == expected

    def test_fraction_is_not_an_integer(self):
        with pytest.raises(ValueError):
            coerce_value("2.5", ColumnType.INTEGER)

    def test_text_is_not_a_number(self):
        with pytest.raises(ValueError):
            coerce_value("abc", ColumnType.REAL)


class TestProjectRow:
    def setup_method(self):
        self.pipeline = IngestionPipeline("unused.db")
        self.courses = default_registry().get(Tables.COURSES)

    def _course(self, **overrides):
        row = {
            "CourseID": "20", "UnitNumber": "1", "Term": "F", "Year": "2024",
            "DepartmentName": "MATH", "CourseNumber": "101", "CourseSuffix": "",
            "SectionNumber": "001", "CRN": "40020", "CourseTitle": "Calculus I",
            "ProfessorName": "SMITH", "EstPreEnrollment": "50", "ActualEnrollment": "", "NoTextFlag": "N",
        }
        row.update(overrides)
        return row

    def test_projects_in_column_order(self):
        values = self.pipeline.project_row(self.courses, self._course())
        assert values == (20, "1", "F", "2024", "MATH", "101", "001", "40020", "Calculus I", "SMITH", 50, None, "N")

    def test_missing_suffix_concatenates_to_number(self):
        values = self.pipeline.project_row(self.courses, self._course(CourseSuffix=None))
        assert values[5] == "101"

    def test_missing_required_field(self):
        from coursebooks.store import IngestRowError

        with pytest.raises(IngestRowError) as exc_info:
            self.pipeline.project_row(self.courses, self._course(Term=""), line=7)
        assert exc_info.value.field == "Term"
        assert exc_info.value.line == 7

    def test_bad_integer(self):
        from coursebooks.store import IngestRowError

        with pytest.raises(IngestRowError) as exc_info:
            self.pipeline.project_row(self.courses, self._course(EstPreEnrollment="many"))
        assert exc_info.value.field == "EstEnrl"


class TestIngest:
    def test_counts(self, store_db):
        rows = [
            {"BookID": "1", "ISBN": "9780000000001", "Title": "Calculus"},
            {"BookID": "", "ISBN": "9780000000009", "Title": "No id"},
            {"BookID": "2", "ISBN": "9780000000002", "Title": "Biology"},
        ]
        result = IngestionPipeline(store_db).ingest(Tables.BOOKS, rows, source="Books.csv")

        assert result.table == Tables.BOOKS
        assert result.source == "Books.csv"
        assert (result.received, result.staged, result.skipped, result.merged) == (3, 2, 1, 2)

    def test_unknown_table(self, store_db):
        with pytest.raises(SchemaError):
            IngestionPipeline(store_db).ingest("Nope", [])

    def test_failed_merge_leaves_table_unchanged(self, store_db, monkeypatch):
        pipeline = IngestionPipeline(store_db)
        pipeline.ingest(Tables.BOOKS, [{"BookID": "1", "ISBN": "9780000000001", "Title": "Calculus"}])

        def merge_then_fail(conn, table):
            real_merge_table(conn, table)
            raise MergeError("simulated failure", table=table.name)

        monkeypatch.setattr("coursebooks.store.pipeline.merge_table", merge_then_fail)

        with pytest.raises(MergeError):
            pipeline.ingest(Tables.BOOKS, [{"BookID": "1", "ISBN": "9780000000001", "Title": "Calculus 2e"}])

        assert fetch(store_db, "SELECT Title FROM Books WHERE ID = 1") == [("Calculus",)]


class TestIngestFiles:
    def test_files_merge_in_dependency_order(self, store_db, tmp_path):
        sales = tmp_path / "Sales_F2024.csv"
        sales.write_text("1,F,2024,1,15,0,0,50,0,0,1\n", encoding="utf-8")
        books = tmp_path / "Books.csv"
        books.write_text(BOOK_HEADER + "1,9780000000001,Calculus,Stewart,8,Cengage\n", encoding="utf-8")

        report = IngestionPipeline(store_db, run_id="run-1").ingest_files([sales, books])

        assert report.ok
        assert report.run_id == "run-1"
        assert [r.table for r in report.results] == [Tables.BOOKS, Tables.SALES]
        assert fetch(store_db, "SELECT BookID, EstSales FROM Sales") == [(1, 15)]

    def test_unmatched_files_are_reported(self, store_db, tmp_path):
        notes = tmp_path / "notes.csv"
        notes.write_text("a,b\n1,2\n", encoding="utf-8")

        report = IngestionPipeline(store_db).ingest_files([notes])

        assert report.ok
        assert report.results == []
        assert report.unmatched == [str(notes)]

    def test_run_stops_at_failing_table(self, store_db, tmp_path):
        books = tmp_path / "Books.csv"
        books.write_text(BOOK_HEADER + "1,9780000000001,Calculus,Stewart,8,Cengage\n", encoding="utf-8")
        courses = tmp_path / "Courses.pdf"
        courses.write_text("not a feed", encoding="utf-8")

        report = IngestionPipeline(store_db).ingest_files([courses, books])

        assert not report.ok
        assert report.failed_table == Tables.COURSES
        assert [r.table for r in report.results] == [Tables.BOOKS]
        assert "pdf" in report.error

    def test_missing_file_stops_run(self, store_db, tmp_path):
        report = IngestionPipeline(store_db).ingest_files([tmp_path / "Books.csv"])
        assert not report.ok
        assert report.failed_table == Tables.BOOKS

    def test_custom_reader_gets_headers_for_headerless_feed(self, store_db):
        calls = []

        def reader(path, kind, headers=None):
            calls.append((str(path), kind, headers))
            return []

        IngestionPipeline(store_db).ingest_files(["Books.csv", "Sales.csv"], reader=reader)

        assert calls[0] == ("Books.csv", "table", None)
        assert calls[1][0] == "Sales.csv"
        assert calls[1][2] == default_registry().get(Tables.SALES).headers
