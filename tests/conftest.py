"""Shared fixtures: an empty store and a store loaded with a small F2024 catalog.

Catalog (unit 1 unless noted):

    F2023  MATH 101 001 (10)  est 80  act 100  adopts Calculus
    F2024  ART  110 001 (22)
           ART  110 002 (23)
           BIO  100 001 (21)  est 40  act 30   adopts Biology
           CHEM 201 001 (24)
           MATH 101 001 (20)  est 50  act 0    adopts Calculus
           MATH 101 002 (25)
           PHYS 150 001 (26)
           MATH 300 001 (28)  unit 2
"""

import pytest

from coursebooks.store import IngestionPipeline, Tables, create_database

CALCULUS_ISBN = "9780000000001"
BIOLOGY_ISBN = "9780000000002"

BOOK_ROWS = [
    {"BookID": "1", "ISBN": CALCULUS_ISBN, "Title": "Calculus", "Author": "Stewart", "Edition": "8", "Publisher": "Cengage"},
    {"BookID": "2", "ISBN": BIOLOGY_ISBN, "Title": "Biology", "Author": "Campbell", "Edition": "12", "Publisher": "Pearson"},
    {"BookID": "3", "ISBN": "9780000000003", "Title": "Lab Goggles", "Author": "", "Edition": "", "Publisher": "VST"},
    {"BookID": "4", "ISBN": "9780000000004", "Title": "Physics", "Author": "Halliday", "Edition": "10", "Publisher": "Wiley"},
]


def course_row(course_id, dept, number, section, est="20", act="18", term="F", year="2024", unit="1", crn=None, suffix=""):
    return {
        "CourseID": str(course_id),
        "UnitNumber": unit,
        "Term": term,
        "Year": year,
        "DepartmentName": dept,
        "CourseNumber": number,
        "CourseSuffix": suffix,
        "SectionNumber": section,
        "CRN": crn or f"4{course_id:04d}",
        "CourseTitle": f"{dept} {number}",
        "ProfessorName": "SMITH",
        "EstPreEnrollment": est,
        "ActualEnrollment": act,
        "NoTextFlag": "N",
    }


COURSE_ROWS = [
    course_row(10, "MATH", "101", "001", est="80", act="100", year="2023"),
    course_row(20, "MATH", "101", "001", est="50", act="0"),
    course_row(21, "BIO", "100", "001", est="40", act="30"),
    course_row(22, "ART", "110", "001"),
    course_row(23, "ART", "110", "002"),
    course_row(24, "CHEM", "201", "001"),
    course_row(25, "MATH", "101", "002"),
    course_row(26, "PHYS", "150", "001"),
    course_row(28, "MATH", "300", "001", unit="2"),
]

COURSE_BOOK_ROWS = [
    {"CourseID": "10", "BookID": "1"},
    {"CourseID": "20", "BookID": "1"},
    {"CourseID": "21", "BookID": "2"},
]


def sales_row(book_id, year, est_sales="0", used="0", new="0", est_enrl="0", act_enrl="0", term="F", unit="1", num_courses="1"):
    return {
        "BookID": str(book_id),
        "Term": term,
        "Year": year,
        "UnitNumber": unit,
        "EstSales": est_sales,
        "UsedSales": used,
        "NewSales": new,
        "EstEnrl": est_enrl,
        "ActEnrl": act_enrl,
        "Reorders": "0",
        "NumCourses": num_courses,
    }


SALES_ROWS = [
    sales_row(1, "2023", est_sales="35", used="10", new="30", est_enrl="80", act_enrl="100"),
    sales_row(1, "2024", est_sales="15", est_enrl="50", act_enrl="0"),
    sales_row(2, "2024", est_sales="5", est_enrl="40", act_enrl="30"),
]

PRICE_ROWS = [
    {"BookID": "1", "Term": "F", "Year": "2024", "UnitNumber": "1", "UnitPrice": "100.00", "Discount": "25", "NewPrice": "100.00", "UsedPrice": "75.00"},
    {"BookID": "2", "Term": "F", "Year": "2024", "UnitNumber": "1", "UnitPrice": "0", "Discount": "0", "NewPrice": "0", "UsedPrice": "0"},
]


@pytest.fixture
def store_db(tmp_path):
    """Empty store with every table and the placeholder book."""
    db_path = tmp_path / "store.db"
    create_database(db_path)
    return db_path


@pytest.fixture
def populated_db(store_db):
    """Store loaded with the catalog above, in dependency order."""
    pipeline = IngestionPipeline(store_db, run_id="fixture")
    pipeline.ingest(Tables.BOOKS, BOOK_ROWS)
    pipeline.ingest(Tables.COURSES, COURSE_ROWS)
    pipeline.ingest(Tables.COURSE_BOOK, COURSE_BOOK_ROWS)
    pipeline.ingest(Tables.SALES, SALES_ROWS)
    pipeline.ingest(Tables.PRICES, PRICE_ROWS)
    return store_db
