"""Enrolment lookup used when a session is created.

Only a demonstration record is held here; a deployment would query the registrar.
"""

from mara.core.models import StudentInfo, USER_TYPE_CURRENT, USER_TYPE_PROSPECTIVE


STUDENT_NUMBER_LENGTH = 9

_DIRECTORY = {
    "410622548": StudentInfo(
        level=4,
        semester="Fall 2025",
        course_count=5,
        program="Software Engineering",
        enrollment_status="full-time",
    ),
}


def determine_user_type(student_number):
    if not student_number or len(str(student_number)) < STUDENT_NUMBER_LENGTH:
        return USER_TYPE_PROSPECTIVE
    return USER_TYPE_CURRENT


def lookup_student(student_number) -> StudentInfo:
    """Return the enrolment snapshot for `student_number`, or an "Unknown" one."""
    if not student_number:
        return StudentInfo()
    return _DIRECTORY.get(str(student_number).strip(), StudentInfo())
