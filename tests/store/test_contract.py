"""Tests for the table metadata registry."""

import pytest
from pydantic import ValidationError

from coursebooks.store.contract import (
    ColumnType,
    MissingReference,
    TableMeta,
    TableRegistry,
    Tables,
    default_registry,
    load_registry,
)
from coursebooks.store.exceptions import SchemaError


def _table(name, columns, **kwargs):
    return TableMeta(name=name, columns=columns, **kwargs)


class TestPackagedRegistry:
    """The packaged tables.yaml."""

    def test_declares_every_table(self):
        registry = default_registry()
        assert set(registry.names()) == {
            Tables.BOOKS, Tables.COURSES, Tables.COURSE_BOOK, Tables.SALES, Tables.PRICES, Tables.INVENTORY
        }

    def test_is_cached(self):
        assert default_registry() is default_registry()

    def test_merge_order_puts_referenced_tables_first(self):
        order = default_registry().merge_order()
        for dependent in (Tables.COURSE_BOOK, Tables.SALES, Tables.PRICES, Tables.INVENTORY):
            assert order.index(Tables.BOOKS) < order.index(dependent)
        assert order.index(Tables.COURSES) < order.index(Tables.COURSE_BOOK)

    def test_course_book_references(self):
        table = default_registry().get(Tables.COURSE_BOOK)
        assert table.column("CourseID").references.on_missing == MissingReference.SKIP
        assert table.column("BookID").references.on_missing == MissingReference.PLACEHOLDER
        assert table.key_columns == ["CourseID", "BookID"]

    def test_composite_key_members_are_required(self):
        sales = default_registry().get(Tables.SALES)
        assert all(sales.column(c).required for c in sales.composite_key)

    def test_column_source_defaults_to_name(self):
        books = default_registry().get(Tables.BOOKS)
        assert books.column("ISBN").source == ["ISBN"]
        assert books.column("ID").source == ["BookID"]

    def test_course_number_concatenates_sources(self):
        courses = default_registry().get(Tables.COURSES)
        assert courses.column("Course").source == ["CourseNumber", "CourseSuffix"]

    def test_sales_feed_is_headerless(self):
        sales = default_registry().get(Tables.SALES)
        assert sales.has_header is False
        assert sales.headers[0] == "BookID"

    def test_unknown_table_raises_schema_error(self):
        with pytest.raises(SchemaError):
            default_registry().get("Nope")

    @pytest.mark.parametrize("file_name, expected", [
        ("Books.csv", Tables.BOOKS),
        ("courses.CSV", Tables.COURSES),
        ("CourseBook.csv", Tables.COURSE_BOOK),
        ("Course_Book.csv", Tables.COURSE_BOOK),
        ("/feeds/2024-08/Sales_F2024.csv", Tables.SALES),
        ("Inventory.xlsx", Tables.INVENTORY),
    ])
    def test_table_for_file(self, file_name, expected):
        assert default_registry().table_for_file(file_name).name == expected

    def test_table_for_unknown_file(self):
        assert default_registry().table_for_file("notes.txt") is None


class TestTableValidation:
    """Validators on TableMeta and TableRegistry."""

    def test_rejects_unknown_column_type(self):
        with pytest.raises(ValidationError):
            _table("T", [{"name": "ID", "type": "BLOB", "primary_key": True}])

    def test_type_is_case_insensitive(self):
        table = _table("T", [{"name": "ID", "type": "integer", "primary_key": True}])
        assert table.columns[0].type == ColumnType.INTEGER

    def test_rejects_duplicate_columns(self):
        with pytest.raises(ValidationError):
            _table("T", [{"name": "A", "type": "TEXT"}, {"name": "A", "type": "TEXT"}])

    def test_rejects_composite_key_on_unknown_column(self):
        with pytest.raises(ValidationError):
            _table("T", [{"name": "A", "type": "TEXT"}], composite_key=["A", "B"])

    def test_rejects_primary_key_and_composite_key(self):
        with pytest.raises(ValidationError):
            _table(
                "T",
                [{"name": "ID", "type": "INTEGER", "primary_key": True}, {"name": "A", "type": "TEXT"}],
                composite_key=["A"],
            )

    def test_rejects_index_on_unknown_column(self):
        with pytest.raises(ValidationError):
            _table("T", [{"name": "A", "type": "TEXT"}], indexes=[["B"]])

    def test_headerless_file_needs_headers(self):
        with pytest.raises(ValidationError):
            _table("T", [{"name": "A", "type": "TEXT"}], has_header=False)

    def test_source_must_be_in_headers(self):
        with pytest.raises(ValidationError):
            _table("T", [{"name": "A", "type": "TEXT", "source": ["X"]}], headers=["A"])

    def test_rejects_invalid_identifier(self):
        with pytest.raises(ValidationError):
            _table("T", [{"name": "bad name", "type": "TEXT"}])

    def test_rejects_unsupported_referential_action(self):
        with pytest.raises(ValidationError):
            _table("T", [{"name": "A", "type": "INTEGER", "references": {"table": "B", "on_delete": "EXPLODE"}}])

    def test_rejects_unknown_reference_target(self):
        with pytest.raises(ValidationError):
            TableRegistry(tables=[
                _table("T", [{"name": "BookID", "type": "INTEGER", "references": {"table": "Missing", "on_missing": "skip"}}])
            ])

    def test_placeholder_reference_needs_placeholder_target(self):
        with pytest.raises(ValidationError):
            TableRegistry(tables=[
                _table("Parent", [{"name": "ID", "type": "INTEGER", "primary_key": True}]),
                _table("Child", [{"name": "ParentID", "type": "INTEGER", "references": {"table": "Parent"}}]),
            ])

    def test_cycle_raises_schema_error(self):
        registry = TableRegistry(tables=[
            _table("A", [
                {"name": "ID", "type": "INTEGER", "primary_key": True},
                {"name": "BID", "type": "INTEGER", "references": {"table": "B", "on_missing": "skip"}},
            ]),
            _table("B", [
                {"name": "ID", "type": "INTEGER", "primary_key": True},
                {"name": "AID", "type": "INTEGER", "references": {"table": "A", "on_missing": "skip"}},
            ]),
        ])
        with pytest.raises(SchemaError):
            registry.merge_order()


class TestLoadRegistry:
    """YAML loading."""

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "tables.yaml"
        path.write_text("tables: [\n  - name: Books\n", encoding="utf-8")
        with pytest.raises(SchemaError):
            load_registry(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(SchemaError):
            load_registry(tmp_path / "missing.yaml")

    def test_validation_error_becomes_schema_error(self, tmp_path):
        path = tmp_path / "tables.yaml"
        path.write_text("tables:\n  - name: T\n    columns:\n      - {name: A, type: BLOB}\n", encoding="utf-8")
        with pytest.raises(SchemaError) as exc_info:
            load_registry(path)
        assert "BLOB" in str(exc_info.value) or "type" in str(exc_info.value)

    def test_loads_custom_registry(self, tmp_path):
        path = tmp_path / "tables.yaml"
        path.write_text(
            "tables:\n"
            "  - name: Items\n"
            "    columns:\n"
            "      - {name: ID, type: INTEGER, primary_key: true}\n"
            "      - {name: Label, type: TEXT}\n",
            encoding="utf-8",
        )
        registry = load_registry(path)
        assert registry.names() == ["Items"]
        assert registry.get("Items").file_name == "Items"
