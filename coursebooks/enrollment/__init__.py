from coursebooks.enrollment.matcher import (
    EnrollmentBatch,
    EnrollmentCourse,
    EnrollmentInputError,
    create_course_csv,
    find_section_number,
    match_enrollment,
)

__all__ = [
    "EnrollmentBatch",
    "EnrollmentCourse",
    "EnrollmentInputError",
    "create_course_csv",
    "find_section_number",
    "match_enrollment",
]
