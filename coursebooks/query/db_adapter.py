"""SQL for the query service.

Every read statement of the store is built here, so table and column names
live in one place. Builders return ``(sql, params)`` with named parameters.
"""

from typing import Any, Dict, Optional, Tuple

from coursebooks.query.models import CourseCursor, PageDirection
from coursebooks.store.contract import Tables, UNRESOLVED_ID

# Department / course codes of special-order and cancelled sections
EXCLUDED_CODES = ("SPEC", "CANC")

# Publishers whose titles are supplies rather than books
SUPPLY_PUBLISHERS = ("VST", "XX SUPPLY")

# Summer/intersession terms left out of book history
EXCLUDED_HISTORY_TERMS = ("I", "Q")

# Coalesced so NULL key parts order (and compare) as ''
COURSE_SORT_KEY = (
    f"COALESCE({Tables.COURSES}.Dept, '')",
    f"COALESCE({Tables.COURSES}.Course, '')",
    f"COALESCE({Tables.COURSES}.Section, '')",
)


def _sql_list(values) -> str:
    return ", ".join(f"'{v}'" for v in values)


def pad3(expr: str) -> str:
    """SQL for the last three characters of ``'000' || expr``."""
    return f"SUBSTR('000' || COALESCE({expr}, ''), -3, 3)"


def course_label(alias: str = Tables.COURSES) -> str:
    """SQL for the ``DEPT 101 001`` display label of a course row."""
    return (
        f"COALESCE({alias}.Dept, '') || ' ' || {pad3(alias + '.Course')} "
        f"|| ' ' || {pad3(alias + '.Section')}"
    )


def build_table_page_query(table: str) -> Tuple[str, str]:
    """Offset page and row count for a whole table.

    ``table`` must already be checked against the registry.
    """
    return (
        f"SELECT * FROM {table} LIMIT :offset, :limit",
        f"SELECT COUNT(*) AS Count FROM {table}",
    )


def build_course_page_query(
    term: str,
    year: str,
    unit: str,
    limit: int,
    direction: PageDirection = PageDirection.NEXT,
    cursor: Optional[CourseCursor] = None,
    search: bool = False,
) -> Tuple[str, Dict[str, Any]]:
    """Keyset page of the course listing for a term.

    - no cursor: the first page (NEXT) or the last page (PREV);
    - complete cursor: rows strictly after (NEXT) or before (PREV) it;
    - seek (``search`` or a cursor with missing parts): each present part is
      an independent ``>=`` filter, missing parts match everything, and the
      page is read forward from the first match.

    PREV pages are read in descending order and re-sorted ascending, so every
    page comes back in display order.

    Returns:
        Tuple of (SQL, parameters dict)
    """
    params: Dict[str, Any] = {"term": term, "year": year, "unit": unit, "limit": limit}
    dept, course, section = COURSE_SORT_KEY
    seek = cursor is not None and (search or not cursor.is_complete)
    backward = direction == PageDirection.PREV and not seek

    if cursor is None:
        condition = "1=1"
    elif seek:
        # 1=1 ensures the condition is filled for absent parts
        condition = " AND ".join([
            f"{dept} >= :dept" if cursor.dept else "1=1",
            f"{course} >= :course" if cursor.course else "1=1",
            f"{section} >= :section" if cursor.section else "1=1",
        ])
        params.update({"dept": cursor.dept, "course": cursor.course, "section": cursor.section})
    else:
        op = "<" if backward else ">"
        condition = f"({dept}, {course}, {section}) {op} (:dept, :course, :section)"
        params.update({"dept": cursor.dept, "course": cursor.course, "section": cursor.section})

    order = " DESC" if backward else ""
    sql = f"""
        SELECT
            Courses.ID,
            Courses.Dept,
            Courses.Course,
            Courses.Section,
            Courses.Title,
            Courses.Prof,
            Courses.EstEnrl,
            Courses.ActEnrl,
            Courses.NoText,
            CASE
                WHEN EXISTS (SELECT 1 FROM Course_Book WHERE Course_Book.CourseID = Courses.ID) THEN 'Y'
                ELSE 'N'
            END AS Adopt
        FROM Courses
        WHERE Courses.Term = :term
            AND Courses.Year = :year
            AND Courses.Unit = :unit
            AND {condition}
        ORDER BY {dept}{order}, {course}{order}, {section}{order}
        LIMIT :limit
    """

    if backward:
        sql = f"""
            SELECT * FROM ({sql}) AS page
            ORDER BY COALESCE(page.Dept, ''), COALESCE(page.Course, ''), COALESCE(page.Section, '')
        """
    return sql, params


COURSE_COUNT_SQL = """
    SELECT COUNT(*) AS Count
    FROM Courses
    WHERE Courses.Unit = :unit
        AND Courses.Term = :term
        AND Courses.Year = :year
"""

PREV_SALES_BY_BOOK_SQL = f"""
    SELECT
        Sales.Term || Sales.Year AS Term,
        Books.ISBN,
        Books.Title,
        SUM(Courses.EstEnrl) AS EstEnrl,
        SUM(Courses.ActEnrl) AS ActEnrl,
        Sales.UsedSales + Sales.NewSales AS Sales
    FROM Courses
    JOIN Course_Book ON Course_Book.CourseID = Courses.ID
    JOIN Books ON Course_Book.BookID = Books.ID
    JOIN Sales ON Books.ID = Sales.BookID
        AND Sales.Term = Courses.Term
        AND Sales.Year = Courses.Year
    WHERE Books.ISBN = :isbn AND Books.Title = :title
        AND Courses.Unit = :unit
        AND Sales.Unit = :unit
        AND Courses.Term = :term
        AND Courses.Year != :year
        AND COALESCE(Courses.Dept, '') NOT IN ({_sql_list(EXCLUDED_CODES)})
    GROUP BY Sales.Year
    ORDER BY Sales.Term, Sales.Year
"""

PREV_SALES_BY_BOOKS_SQL = f"""
    SELECT
        Books.ISBN,
        Books.Title,
        SUM(CASE WHEN Courses.Year != :year THEN Courses.EstEnrl ELSE NULL END) AS PrevEstEnrl,
        SUM(CASE WHEN Courses.Year != :year THEN Courses.ActEnrl ELSE NULL END) AS PrevActEnrl,
        SUM(CASE WHEN Courses.Year = :year THEN Courses.EstEnrl ELSE 0 END) AS CurrEstEnrl,
        SUM(CASE WHEN Courses.Year = :year THEN Courses.ActEnrl ELSE 0 END) AS CurrActEnrl,
        COALESCE((
            SELECT SUM(CurrSales.EstSales)
            FROM Sales AS CurrSales
            JOIN Books AS CurrBooks ON CurrSales.BookID = CurrBooks.ID
            WHERE CurrSales.Term = :term
                AND CurrSales.Year = :year
                AND CurrSales.Unit = :unit
                AND CurrBooks.ISBN = :isbn
                AND CurrBooks.Title = :title
        ), 0) AS CurrEstSales,
        (
            SELECT SUM(PrevSales.UsedSales + PrevSales.NewSales)
            FROM Sales AS PrevSales
            JOIN Books AS PrevBooks ON PrevSales.BookID = PrevBooks.ID
            WHERE PrevSales.Term = :term
                AND PrevSales.Year != :year
                AND PrevSales.Unit = :unit
                AND PrevBooks.ISBN = :isbn
                AND PrevBooks.Title = :title
        ) AS TotalSales
    FROM Books
    JOIN Course_Book ON Course_Book.BookID = Books.ID
    JOIN Courses ON Course_Book.CourseID = Courses.ID
    JOIN Sales ON Books.ID = Sales.BookID
        AND Sales.Term = Courses.Term
        AND Sales.Year = Courses.Year
        AND Sales.Unit = Courses.Unit
    WHERE Books.ISBN = :isbn AND Books.Title = :title
        AND Courses.Term = :term
        AND Courses.Unit = :unit
        AND COALESCE(Courses.Dept, '') NOT IN ({_sql_list(EXCLUDED_CODES)})
    GROUP BY Books.ISBN, Books.Title
"""

PREV_SALES_BY_TERM_SQL = f"""
    SELECT
        Sales.BookID, Books.ISBN, Books.Title,
        SUM(CASE WHEN Sales.Year != :year THEN Sales.EstEnrl ELSE 0 END) AS PrevEstEnrl,
        SUM(CASE WHEN Sales.Year != :year THEN Sales.ActEnrl ELSE 0 END) AS PrevActEnrl,
        SUM(CASE WHEN Sales.Year != :year THEN Sales.UsedSales + Sales.NewSales ELSE 0 END) AS PrevTotalSales,
        MAX(CASE WHEN Sales.Year = :year THEN Sales.EstEnrl ELSE NULL END) AS CurrEstEnrl,
        MAX(CASE WHEN Sales.Year = :year THEN Sales.ActEnrl ELSE NULL END) AS CurrActEnrl,
        MAX(CASE WHEN Sales.Year = :year THEN Sales.EstSales ELSE NULL END) AS CurrEstSales
    FROM Sales
    JOIN Books ON Sales.BookID = Books.ID
    WHERE Sales.Unit = :unit
        AND Sales.BookID != {UNRESOLVED_ID}
        AND Sales.Term = :term
    GROUP BY Sales.BookID
    ORDER BY Books.Title
"""

TERM_MODEL_FEATURES_SQL = f"""
    SELECT
        Books.ID,
        Books.ISBN,
        Books.Title,
        Sales.EstSales,
        Sales.Term,
        Sales.Year,
        Books.Publisher,
        Courses.Dept,
        Courses.Course,
        Sales.EstEnrl,
        Sales.ActEnrl,
        (Prices.UnitPrice * (1 - (CAST(Prices.Discount AS REAL) - 30) / 100)) AS Price
    FROM Sales
    JOIN Books ON Sales.BookID = Books.ID
    JOIN Prices ON Books.ID = Prices.BookID
        AND Prices.Term = Sales.Term
        AND Prices.Year = Sales.Year
        AND Prices.Unit = Sales.Unit
    JOIN Course_Book ON Books.ID = Course_Book.BookID
    JOIN Courses ON Course_Book.CourseID = Courses.ID
    WHERE Sales.Term = :term
        AND Sales.Year = :year
        AND Sales.Unit = :unit
        AND Courses.Term = Sales.Term
        AND Courses.Year = Sales.Year
        AND Sales.NumCourses > 0
        AND COALESCE(Books.Publisher, '') NOT IN ({_sql_list(SUPPLY_PUBLISHERS)})
        AND COALESCE(Courses.Dept, '') NOT IN ({_sql_list(EXCLUDED_CODES)})
        AND COALESCE(Courses.Course, '') NOT IN ({_sql_list(EXCLUDED_CODES)})
        AND Prices.UnitPrice > 0
    GROUP BY Sales.Term, Sales.Year, Sales.BookID
    ORDER BY Sales.BookID
"""

ALL_TERMS_SQL = """
    SELECT Courses.Term || Courses.Year AS Term
    FROM Courses
    WHERE Courses.Term != ''
    GROUP BY Courses.Term, Courses.Year
    ORDER BY Courses.Term, Courses.Year
"""

BOOKS_BY_TERM_SQL = f"""
    SELECT Books.ISBN, Books.Title
    FROM Books
    JOIN Sales ON Books.ID = Sales.BookID
    WHERE Sales.BookID != {UNRESOLVED_ID}
        AND Sales.Unit = :unit
        AND Sales.Term = :term
        AND Sales.Year = :year
    ORDER BY Books.Title, Books.ISBN
"""

BOOK_BY_ISBN_SQL = f"""
    SELECT Books.ID, Books.ISBN, Books.Title, Books.Author, Books.Edition, Books.Publisher,
        Sales.Term, Sales.Year, Sales.EstEnrl, Sales.ActEnrl, Sales.EstSales,
        Sales.UsedSales, Sales.NewSales, Sales.Reorders
    FROM Books
    JOIN Sales ON Books.ID = Sales.BookID
    WHERE Books.ISBN LIKE :pattern
        AND Sales.Term NOT IN ({_sql_list(EXCLUDED_HISTORY_TERMS)})
        AND Sales.Unit = :unit
    ORDER BY Sales.Year DESC, Sales.Term
"""

BOOKS_BY_COURSE_SQL = """
    SELECT Books.ISBN, Books.Title, Books.Edition, Books.Author, Books.Publisher
    FROM Books
    JOIN Course_Book ON Books.ID = Course_Book.BookID
    JOIN Courses ON Course_Book.CourseID = Courses.ID
    WHERE Courses.ID = :course_id
"""

COURSE_LABEL_SQL = f"""
    SELECT {course_label()} AS Course
    FROM Courses
    WHERE Courses.ID = :course_id
"""

COURSES_BY_BOOK_SQL = f"""
    SELECT {course_label()} AS Course, Courses.EstEnrl, Courses.ActEnrl
    FROM Courses
    JOIN Course_Book ON Courses.ID = Course_Book.CourseID
    JOIN Books ON Course_Book.BookID = Books.ID
    WHERE Books.ISBN = :isbn
        AND Books.Title = :title
        AND Courses.Term = :term
        AND Courses.Year = :year
    ORDER BY {", ".join(COURSE_SORT_KEY)}
"""

SECTIONS_BY_TERM_SQL = f"""
    SELECT {pad3('Courses.Section')} AS Section, Courses.CRN
    FROM Courses
    WHERE Courses.Term = :term
        AND Courses.Year = :year
"""
