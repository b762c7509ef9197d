"""Tests for DDL compilation and database rebuilds."""

import sqlite3

import pytest

from coursebooks.store.contract import TableMeta, TableRegistry, Tables, UNRESOLVED_ID, default_registry
from coursebooks.store.exceptions import SchemaError
from coursebooks.store.schema import (
    build_create_statement,
    build_drop_statement,
    build_index_statements,
    create_database,
)


@pytest.fixture
def registry():
    return default_registry()


class TestBuildCreateStatement:
    """Final and staging CREATE TABLE text."""

    def test_single_primary_key_is_inline(self, registry):
        sql = build_create_statement(registry.get(Tables.BOOKS))
        assert sql.startswith("CREATE TABLE IF NOT EXISTS Books (")
        assert "ID INTEGER PRIMARY KEY" in sql

    def test_columns_in_declared_order(self, registry):
        sql = build_create_statement(registry.get(Tables.BOOKS))
        positions = [sql.index(f"{c} ") for c in ("ISBN", "Title", "Author", "Edition", "Publisher")]
        assert positions == sorted(positions)

    def test_composite_key_and_foreign_key(self, registry):
        sql = build_create_statement(registry.get(Tables.SALES))
        assert "FOREIGN KEY (BookID) REFERENCES Books(ID)" in sql
        assert sql.rstrip().endswith("PRIMARY KEY (BookID, Term, Year, Unit))")

    def test_referential_actions(self, registry):
        sql = build_create_statement(registry.get(Tables.COURSE_BOOK))
        assert "FOREIGN KEY (CourseID) REFERENCES Courses(ID) ON DELETE CASCADE" in sql
        assert "FOREIGN KEY (BookID) REFERENCES Books(ID)" in sql
        assert "PRIMARY KEY (CourseID, BookID)" in sql

    def test_staging_has_no_keys(self, registry):
        for name in registry.names():
            sql = build_create_statement(registry.get(name), staging=True)
            assert sql.startswith(f"CREATE TEMP TABLE temp_{name} (")
            assert "PRIMARY KEY" not in sql
            assert "FOREIGN KEY" not in sql

    def test_deterministic(self, registry):
        table = registry.get(Tables.INVENTORY)
        assert build_create_statement(table) == build_create_statement(table)
        assert build_create_statement(table, staging=True) == build_create_statement(table, staging=True)

    def test_drop_statement(self, registry):
        table = registry.get(Tables.SALES)
        assert build_drop_statement(table) == "DROP TABLE IF EXISTS Sales"
        assert build_drop_statement(table, staging=True) == "DROP TABLE IF EXISTS temp_Sales"


class TestBuildIndexStatements:
    def test_index_names(self, registry):
        statements = build_index_statements(registry.get(Tables.BOOKS))
        assert "CREATE INDEX IF NOT EXISTS idx_books_isbn_title ON Books(ISBN, Title)" in statements
        assert "CREATE INDEX IF NOT EXISTS idx_books_title ON Books(Title)" in statements

    def test_no_indexes(self):
        table = TableMeta(name="T", columns=[{"name": "A", "type": "TEXT"}])
        assert build_index_statements(table) == []


class TestCreateDatabase:
    """Drop and recreate against a real file."""

    def test_creates_tables_in_merge_order(self, tmp_path, registry):
        created = create_database(tmp_path / "store.db")
        assert created == registry.merge_order()

    def test_tables_and_indexes_exist(self, tmp_path):
        db_path = tmp_path / "store.db"
        create_database(db_path)

        conn = sqlite3.connect(str(db_path))
        tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        indexes = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='index'")}
        conn.close()

        assert set(default_registry().names()) <= tables
        assert "idx_courses_term_year_unit" in indexes
        assert "idx_courses_dept_course_section" in indexes

    def test_placeholder_book(self, tmp_path):
        db_path = tmp_path / "store.db"
        create_database(db_path)

        conn = sqlite3.connect(str(db_path))
        rows = conn.execute("SELECT ID, ISBN FROM Books").fetchall()
        conn.close()
        assert rows == [(UNRESOLVED_ID, None)]

    def test_rebuild_drops_rows(self, tmp_path):
        db_path = tmp_path / "store.db"
        create_database(db_path)
        conn = sqlite3.connect(str(db_path))
        conn.execute("INSERT INTO Books (ID, Title) VALUES (5, 'Old')")
        conn.commit()
        conn.close()

        create_database(db_path)

        conn = sqlite3.connect(str(db_path))
        count = conn.execute("SELECT COUNT(*) FROM Books").fetchone()[0]
        conn.close()
        assert count == 1

    def test_ddl_failure_names_table(self, tmp_path):
        # Valid identifier, but a keyword SQLite will not take as a column name
        registry = TableRegistry(tables=[
            TableMeta(name="Items", columns=[{"name": "Group", "type": "TEXT"}]),
        ])
        with pytest.raises(SchemaError) as exc_info:
            create_database(tmp_path / "store.db", registry=registry)
        assert exc_info.value.table == "Items"
