"""Query Service - single entry point for every read of the store.

Each call opens its own read-only connection and closes it before
returning. Rows come back as plain dicts. Any SQLite failure surfaces as
QueryError naming the table and the operation; no call returns partial rows.

Usage:
    from coursebooks.query.service import QueryService

    service = QueryService(db_path)
    page = service.get_courses_by_term("F", "2024", limit=25)
    after = service.get_courses_by_term("F", "2024", limit=25, cursor=page.last_cursor)
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from coursebooks.query import db_adapter
from coursebooks.query.exceptions import QueryError
from coursebooks.query.models import (
    BookRef,
    CourseBooks,
    CourseCursor,
    CoursePage,
    PageDirection,
    Row,
    TablePage,
)
from coursebooks.store.contract import TableRegistry, Tables, default_registry
from coursebooks.store.db import connect
from coursebooks.utils.logger import LoggerManager

logger = LoggerManager.get_logger(__name__)

BookSpec = Union[BookRef, Tuple[Any, ...]]


def _as_book_ref(book: BookSpec) -> BookRef:
    if isinstance(book, BookRef):
        return book
    isbn, title, *rest = book
    decision = rest[0] if rest else None
    return BookRef(isbn=str(isbn), title=str(title), decision=decision)


class QueryService:
    """Read queries over the coursebooks store.

    Args:
        db_path: Path to the SQLite store
        unit: Store unit (campus) the course and sales queries are scoped to
        registry: Table metadata used to validate table names
    """

    def __init__(self, db_path: Path, unit: str = "1", registry: Optional[TableRegistry] = None):
        self.db_path = Path(db_path)
        self.unit = str(unit)
        self.registry = registry or default_registry()

    @contextmanager
    def _reading(self, table: str, operation: str) -> Iterator[sqlite3.Connection]:
        try:
            with connect(self.db_path, read_only=True) as conn:
                yield conn
        except sqlite3.Error as e:
            logger.error(
                "query.failed",
                extra={"extra_data": {"table": table, "operation": operation, "error": str(e)}},
            )
            raise QueryError.from_sqlite_error(table, operation, e) from e

    def _fetch_all(self, table: str, operation: str, sql: str, params: Dict[str, Any]) -> List[Row]:
        with self._reading(table, operation) as conn:
            rows = conn.execute(sql, params).fetchall()
        return [dict(r) for r in rows]

    # ------------------------------------------------------------------
    # Paging
    # ------------------------------------------------------------------

    def get_table_page(self, name: str, offset: int, limit: int) -> TablePage:
        """Offset page of a raw table: rows ``offset*limit`` to ``offset*limit + limit``.

        Meant for the small admin views; the course listing uses keyset
        paging instead.

        Raises:
            QueryError: If ``name`` is not a store table or the read fails
        """
        if not self.registry.has(name):
            raise QueryError.from_unknown_table(name, "get_table_page")
        if offset < 0 or limit < 1:
            raise QueryError(
                f"Invalid page (offset={offset}, limit={limit})", table=name, operation="get_table_page"
            )

        page_sql, count_sql = db_adapter.build_table_page_query(name)
        with self._reading(name, "get_table_page") as conn:
            rows = conn.execute(page_sql, {"offset": offset * limit, "limit": limit}).fetchall()
            total = conn.execute(count_sql).fetchone()["Count"]
        return TablePage(rows=[dict(r) for r in rows], total=total)

    def get_courses_by_term(
        self,
        term: str,
        year: str,
        limit: int,
        direction: PageDirection = PageDirection.NEXT,
        cursor: Optional[CourseCursor] = None,
        search: bool = False,
    ) -> CoursePage:
        """Keyset page of a term's courses, ordered by (Dept, Course, Section).

        Args:
            term: Term code (``F``)
            year: Four-digit year
            limit: Page size
            direction: NEXT reads after the cursor, PREV before it
            cursor: Position to read from; None for the first (NEXT) or last
                (PREV) page
            search: Seek with independent ``>=`` filters instead of comparing
                the cursor as a tuple

        Returns:
            CoursePage whose ``total`` counts every course of the term
        """
        if limit < 1:
            raise QueryError(f"Invalid page size: {limit}", table=Tables.COURSES, operation="get_courses_by_term")

        sql, params = db_adapter.build_course_page_query(
            term, year, self.unit, limit, direction=PageDirection(direction), cursor=cursor, search=search
        )
        with self._reading(Tables.COURSES, "get_courses_by_term") as conn:
            rows = [dict(r) for r in conn.execute(sql, params).fetchall()]
            total = conn.execute(
                db_adapter.COURSE_COUNT_SQL, {"term": term, "year": year, "unit": self.unit}
            ).fetchone()["Count"]

        logger.debug(
            "query.courses.page",
            extra={"extra_data": {"term": term, "year": year, "rows": len(rows), "total": total}},
        )
        return CoursePage(
            rows=rows,
            total=total,
            first_cursor=CourseCursor.from_row(rows[0]) if rows else None,
            last_cursor=CourseCursor.from_row(rows[-1]) if rows else None,
        )

    # ------------------------------------------------------------------
    # Sales history
    # ------------------------------------------------------------------

    def get_prev_sales_by_book(self, isbn: str, title: str, term: str, exclude_year: str) -> List[Row]:
        """Per-year sales trend of one book for a term code, other years only.

        Returns:
            ``[{Term, ISBN, Title, EstEnrl, ActEnrl, Sales}, ...]`` where Term
            is the full term (``F2023``)
        """
        return self._fetch_all(
            Tables.SALES,
            "get_prev_sales_by_book",
            db_adapter.PREV_SALES_BY_BOOK_SQL,
            {"isbn": isbn, "title": title, "term": term, "year": exclude_year, "unit": self.unit},
        )

    def get_prev_sales_by_books(self, term: str, year: str, books: Iterable[BookSpec]) -> List[Row]:
        """Decision inputs for a list of books.

        Each book is a BookRef or an ``(isbn, title[, decision])`` tuple. One
        row is returned per book that has adoptions in the term code, carrying
        PrevEstEnrl, PrevActEnrl, CurrEstEnrl, CurrActEnrl, CurrEstSales and
        TotalSales, plus Decision when the book came with one.
        """
        refs = [_as_book_ref(b) for b in books]
        results: List[Row] = []
        with self._reading(Tables.SALES, "get_prev_sales_by_books") as conn:
            for ref in refs:
                params = {"isbn": ref.isbn, "title": ref.title, "term": term, "year": year, "unit": self.unit}
                for row in conn.execute(db_adapter.PREV_SALES_BY_BOOKS_SQL, params).fetchall():
                    row = dict(row)
                    if ref.decision is not None:
                        row["Decision"] = ref.decision
                    results.append(row)

        if len(results) < len(refs):
            logger.info(
                "query.books.unmatched",
                extra={"extra_data": {"requested": len(refs), "found": len(results), "term": term, "year": year}},
            )
        return results

    def get_prev_sales_by_term(self, term: str, year: str) -> List[Row]:
        """Per-book rollup of a term code's sales, split into this year and prior years."""
        return self._fetch_all(
            Tables.SALES,
            "get_prev_sales_by_term",
            db_adapter.PREV_SALES_BY_TERM_SQL,
            {"term": term, "year": year, "unit": self.unit},
        )

    def get_term_model_features(self, term: str, year: str) -> List[Row]:
        """Feature rows for external forecasting, one per book of the term.

        Price is the net price ``UnitPrice * (1 - (Discount - 30) / 100)``.
        Supply publishers, special/cancelled courses, unpriced books and books
        without courses are left out.
        """
        return self._fetch_all(
            Tables.SALES,
            "get_term_model_features",
            db_adapter.TERM_MODEL_FEATURES_SQL,
            {"term": term, "year": year, "unit": self.unit},
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_all_terms(self) -> List[str]:
        rows = self._fetch_all(Tables.COURSES, "get_all_terms", db_adapter.ALL_TERMS_SQL, {})
        return [r["Term"] for r in rows]

    def get_books_by_term(self, term: str, year: str) -> List[Row]:
        return self._fetch_all(
            Tables.BOOKS,
            "get_books_by_term",
            db_adapter.BOOKS_BY_TERM_SQL,
            {"term": term, "year": year, "unit": self.unit},
        )

    def get_book_by_isbn(self, isbn: str) -> List[Row]:
        """Books whose ISBN contains ``isbn``, with one row per sales term."""
        return self._fetch_all(
            Tables.BOOKS,
            "get_book_by_isbn",
            db_adapter.BOOK_BY_ISBN_SQL,
            {"pattern": f"%{isbn}%", "unit": self.unit},
        )

    def get_books_by_course(self, course_id: int) -> CourseBooks:
        with self._reading(Tables.COURSE_BOOK, "get_books_by_course") as conn:
            books = conn.execute(db_adapter.BOOKS_BY_COURSE_SQL, {"course_id": course_id}).fetchall()
            label = conn.execute(db_adapter.COURSE_LABEL_SQL, {"course_id": course_id}).fetchone()
        return CourseBooks(course=label["Course"] if label else None, books=[dict(b) for b in books])

    def get_courses_by_book(self, isbn: str, title: str, term: str, year: str) -> List[Row]:
        return self._fetch_all(
            Tables.COURSES,
            "get_courses_by_book",
            db_adapter.COURSES_BY_BOOK_SQL,
            {"isbn": isbn, "title": title, "term": term, "year": year},
        )

    def get_sections_by_term(self, term: str, year: str) -> List[Row]:
        """Padded section numbers and CRNs of every course in a term."""
        return self._fetch_all(
            Tables.COURSES,
            "get_sections_by_term",
            db_adapter.SECTIONS_BY_TERM_SQL,
            {"term": term, "year": year},
        )
