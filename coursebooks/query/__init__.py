"""Query module - read queries over the coursebooks store.

- QueryService: every read (table pages, keyset course pages, sales history,
  decision inputs, forecasting features, lookups)
- QueryError: raised for any failed read

Usage:
    from coursebooks.query import QueryService, PageDirection

    service = QueryService(db_path)
    page = service.get_courses_by_term("F", "2024", limit=25)
    back = service.get_courses_by_term(
        "F", "2024", limit=25, direction=PageDirection.PREV, cursor=page.first_cursor
    )
"""

from coursebooks.query.exceptions import QueryError
from coursebooks.query.models import (
    BookRef,
    CourseBooks,
    CourseCursor,
    CoursePage,
    PageDirection,
    TablePage,
)
from coursebooks.query.service import QueryService

__all__ = [
    "QueryService",
    "QueryError",
    "PageDirection",
    "CourseCursor",
    "CoursePage",
    "TablePage",
    "BookRef",
    "CourseBooks",
]
