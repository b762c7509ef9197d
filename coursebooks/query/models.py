"""Result schemas for the query service."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

Row = Dict[str, Any]


class PageDirection(str, Enum):
    """Which neighbour of the cursor a course page is read from."""
    NEXT = "next"
    PREV = "prev"


class CourseCursor(BaseModel):
    """Keyset position in the (Dept, Course, Section) ordering.

    A cursor with every component set is compared as a tuple. Any missing
    component turns the request into a seek: each present component becomes
    its own ``>=`` filter and missing ones match everything.
    """
    dept: Optional[str] = None
    course: Optional[str] = None
    section: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return self.dept is not None and self.course is not None and self.section is not None

    @classmethod
    def from_row(cls, row: Row) -> "CourseCursor":
        # NULL key parts sort as '' so the cursor stays complete
        return cls(
            dept=row.get("Dept") or "",
            course=row.get("Course") or "",
            section=row.get("Section") or "",
        )


class TablePage(BaseModel):
    """One offset page of a raw table."""
    rows: List[Row] = Field(default_factory=list)
    total: int = 0


class CoursePage(BaseModel):
    """One keyset page of the course listing.

    ``total`` counts every course of the term for the unit and does not depend
    on the cursor. ``first_cursor`` requests the page before this one (with
    PageDirection.PREV), ``last_cursor`` the page after it.
    """
    rows: List[Row] = Field(default_factory=list)
    total: int = 0
    first_cursor: Optional[CourseCursor] = None
    last_cursor: Optional[CourseCursor] = None


class BookRef(BaseModel):
    """A book by natural key, with an optional manual order quantity."""
    isbn: str
    title: str
    decision: Optional[int] = None


class CourseBooks(BaseModel):
    """Books adopted by one course, with its display label (``MATH 101 001``)."""
    course: Optional[str] = None
    books: List[Row] = Field(default_factory=list)
