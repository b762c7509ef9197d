"""Registrar enrollment -> Courses feed.

Reads a registrar enrollment export (one row per course section), fills in
section numbers the export leaves blank by matching CRNs against the store,
and writes the sections back out as a Courses feed file the pipeline can
ingest.
"""

import csv
import io
from pathlib import Path
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from coursebooks.ingestion import read_rows
from coursebooks.query.service import QueryService
from coursebooks.utils.logger import LoggerManager
from coursebooks.utils.terms import match_file_term_year

logger = LoggerManager.get_logger(__name__)

REQUIRED_FIELDS = [
    "COURSE REFERENCE NUMBER",
    "CAMPUS",
    "SUBJECT",
    "COURSE NUMBER",
    "MAXIMUM ENROLLMENT",
    "ACTUAL ENROLLMENT",
    "TITLE",
]

CANCELLED_TITLE = "CANCELLED"
UNKNOWN_SECTION = "0"
UNKNOWN_PROFESSOR = "TBD"
MAIN_CAMPUS = "MPC"

COURSE_CSV_FIELDS = [
    "UnitNumber",
    "Term",
    "Year",
    "DepartmentName",
    "CourseNumber",
    "SectionNumber",
    "ProfessorName",
    "MaximumCapacity",
    "EstPreEnrollment",
    "ActualEnrollment",
    "ContinuationClass",
    "EveningClass",
    "ExtensionClass",
    "TextnetFlag",
    "Location",
    "CourseTitle",
    "CourseID",
    "CRN",
]


class EnrollmentInputError(Exception):
    """The enrollment file name has no term code, or a row misses a required field."""

    def __init__(self, message: str, field: Optional[str] = None, line: Optional[int] = None):
        super().__init__(message)
        self.field = field
        self.line = line


class EnrollmentCourse(BaseModel):
    """One registrar section, normalized to text."""
    campus: str
    subject: str
    course_number: str
    section: str
    professor: str
    max_enrollment: str
    actual_enrollment: str
    title: str
    crn: str


class EnrollmentBatch(BaseModel):
    term: str
    year: str
    source: Optional[str] = None
    courses: List[EnrollmentCourse] = Field(default_factory=list)


def _text(value) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def find_section_number(sections: List[Dict], crn: str) -> str:
    """Section number of the stored course with this CRN, or "0"."""
    for section in sections:
        if section.get("CRN") is not None and _text(section["CRN"]) == crn:
            return section["Section"]
    return UNKNOWN_SECTION


def match_enrollment(
    service: QueryService,
    path: str | Path,
    reader: Callable[..., List[Dict]] = read_rows,
) -> EnrollmentBatch:
    """Read an enrollment export and resolve its section numbers.

    The term comes from the file name (``Enrollment_F24.xlsx``). Cancelled
    sections are dropped. A row without an ``OFFERING NUMBER`` takes the
    section of the stored course with the same CRN, else "0".

    Raises:
        EnrollmentInputError: If the file name has no term code or a row
            misses a required field
    """
    term_year = match_file_term_year(path)
    if term_year is None:
        raise EnrollmentInputError(f"Unexpected file name, rename with the term and try again: {path}")
    term, year = term_year

    rows = reader(path, "enrollment")
    sections = service.get_sections_by_term(term, year)
    batch = EnrollmentBatch(term=term, year=year, source=str(path))

    for line, row in enumerate(rows, start=1):
        for field in REQUIRED_FIELDS:
            if row.get(field) is None:
                raise EnrollmentInputError(
                    f"Missing value for required field: {field} (row {line})\n{row}", field=field, line=line
                )

        title = _text(row["TITLE"])
        if title == CANCELLED_TITLE:
            continue

        crn = _text(row["COURSE REFERENCE NUMBER"])
        offering = row.get("OFFERING NUMBER")
        section = _text(offering) if offering is not None else find_section_number(sections, crn)
        instructor = row.get("PRIMARY INSTRUCTOR LAST NAME")
        professor = _text(instructor).upper() if instructor else UNKNOWN_PROFESSOR

        batch.courses.append(EnrollmentCourse(
            campus=_text(row["CAMPUS"]),
            subject=_text(row["SUBJECT"]),
            course_number=_text(row["COURSE NUMBER"]),
            section=section,
            professor=professor,
            max_enrollment=_text(row["MAXIMUM ENROLLMENT"]),
            actual_enrollment=_text(row["ACTUAL ENROLLMENT"]),
            title=title,
            crn=crn,
        ))

    logger.info(
        "enrollment.matched",
        extra={"extra_data": {"file": str(path), "rows": len(rows), "courses": len(batch.courses)}},
    )
    return batch


def create_course_csv(batch: EnrollmentBatch, main_campus: str = MAIN_CAMPUS) -> str:
    """Render a batch in the Courses feed layout.

    Main campus sections get unit 1, every other campus unit 2; section
    numbers are zero-padded to three digits.
    """
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=COURSE_CSV_FIELDS)
    writer.writeheader()
    for course in batch.courses:
        writer.writerow({
            "UnitNumber": "1" if course.campus == main_campus else "2",
            "Term": batch.term,
            "Year": batch.year,
            "DepartmentName": course.subject,
            "CourseNumber": course.course_number,
            "SectionNumber": course.section.rjust(3, "0"),
            "ProfessorName": course.professor,
            "MaximumCapacity": course.max_enrollment,
            "EstPreEnrollment": course.max_enrollment,
            "ActualEnrollment": course.actual_enrollment,
            "ContinuationClass": "",
            "EveningClass": "",
            "ExtensionClass": "",
            "TextnetFlag": "",
            "Location": "",
            "CourseTitle": course.title,
            "CourseID": course.crn,
            "CRN": course.crn,
        })
    return buffer.getvalue()
