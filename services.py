"""CRUD and search operations for students and courses.

Every function takes the request's session, commits its own changes and
raises the errors defined in ``errors``; the API layer maps those to HTTP.
"""
import logging
from contextlib import contextmanager
from typing import List, Optional

from sqlalchemy import delete, func, or_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, col, select

from errors import ConflictError, NotFoundError, StoreError, ValidationError
from models import Course, RecordStatus, Student, utcnow
from schemas import CourseCreate, CourseUpdate, StudentCreate, StudentUpdate

logger = logging.getLogger(__name__)


@contextmanager
def store_errors(session: Session, action: str):
    """Roll back and translate store failures raised while performing ``action``"""
    try:
        yield
    except IntegrityError as e:
        session.rollback()
        logger.warning(f"Integrity error while {action}: {str(e.orig)}")
        raise ValidationError(f"Failed while {action}: a unique field is already in use") from e
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Database error while {action}: {str(e)}", exc_info=True)
        raise StoreError(f"A database error occurred while {action}") from e


def _changes(payload) -> dict:
    # null is treated the same as an omitted field
    return payload.model_dump(exclude_unset=True, exclude_none=True)


# ============= STUDENTS =============

def _require_course(session: Session, course_id: str) -> Course:
    course = session.get(Course, course_id)
    if not course:
        logger.warning(f"Student references unknown course: {course_id}")
        raise ValidationError(f"Course not found: {course_id}")
    return course


def _check_email_free(session: Session, email: str, student_id: Optional[str] = None):
    # unique regardless of case; the address is stored as given
    existing = session.exec(select(Student).where(func.lower(Student.email) == email.lower())).first()
    if existing and existing.id != student_id:
        logger.warning(f"Attempted to use existing email: {email}")
        raise ValidationError("Email already registered")


def list_students(session: Session) -> List[Student]:
    """All students, newest first; students created in the same instant keep insertion order"""
    with store_errors(session, "fetching students"):
        statement = select(Student).order_by(col(Student.created_at).desc(), col(Student.seq).asc())
        students = session.exec(statement).all()
    logger.info(f"Retrieved {len(students)} students")
    return students


def get_student(session: Session, student_id: str) -> Student:
    with store_errors(session, "fetching the student"):
        student = session.get(Student, student_id)
    if not student:
        logger.warning(f"Student not found with ID: {student_id}")
        raise NotFoundError("Student not found")
    return student


def create_student(session: Session, payload: StudentCreate) -> Student:
    with store_errors(session, "creating the student"):
        _check_email_free(session, payload.email)
        course = _require_course(session, payload.course)

        seq = session.exec(select(func.coalesce(func.max(Student.seq), 0))).one() + 1
        student = Student(**payload.model_dump(), course_name=course.name, seq=seq)
        session.add(student)
        session.commit()
        session.refresh(student)

    logger.info(f"Student created successfully with ID: {student.id}, course: {student.course_name}")
    return student


def update_student(session: Session, student_id: str, payload: StudentUpdate) -> Student:
    student = get_student(session, student_id)
    changes = _changes(payload)

    with store_errors(session, "updating the student"):
        if "email" in changes and changes["email"] != student.email:
            _check_email_free(session, changes["email"], student_id)
        if "course" in changes and changes["course"] != student.course:
            changes["course_name"] = _require_course(session, changes["course"]).name

        for key, value in changes.items():
            setattr(student, key, value)
        student.updated_at = utcnow()
        session.add(student)
        session.commit()
        session.refresh(student)

    logger.info(f"Student updated successfully: {student.id}")
    return student


def delete_student(session: Session, student_id: str) -> None:
    student = get_student(session, student_id)
    with store_errors(session, "deleting the student"):
        session.delete(student)
        session.commit()
    logger.info(f"Student deleted successfully: {student_id}")


def search_students(session: Session, term: Optional[str]) -> List[Student]:
    """Case-insensitive substring match on name, email and course name.

    The term is matched as given, surrounding spaces included; one that is
    empty or only whitespace returns the full list, newest first. Matches are
    returned in the store's own order.
    """
    if not (term or "").strip():
        return list_students(session)

    logger.info(f"Searching students for: {term!r}")
    statement = select(Student).where(
        or_(
            col(Student.name).icontains(term, autoescape=True),
            col(Student.email).icontains(term, autoescape=True),
            col(Student.course_name).icontains(term, autoescape=True),
        )
    )
    with store_errors(session, "searching students"):
        students = session.exec(statement).all()
    logger.info(f"Student search for {term!r} matched {len(students)} students")
    return students


# ============= COURSES =============

def _check_name_free(session: Session, name: str, course_id: Optional[str] = None):
    existing = session.exec(select(Course).where(Course.name == name)).first()
    if existing and existing.id != course_id:
        logger.warning(f"Attempted to use existing course name: {name}")
        raise ValidationError("Course name already exists")


def list_courses(session: Session, status: Optional[RecordStatus] = None) -> List[Course]:
    """All courses alphabetically, optionally only those with ``status``"""
    statement = select(Course).order_by(col(Course.name).asc())
    if status is not None:
        statement = statement.where(Course.status == status)
    with store_errors(session, "fetching courses"):
        courses = session.exec(statement).all()
    logger.info(f"Retrieved {len(courses)} courses")
    return courses


def get_course(session: Session, course_id: str) -> Course:
    with store_errors(session, "fetching the course"):
        course = session.get(Course, course_id)
    if not course:
        logger.warning(f"Course not found with ID: {course_id}")
        raise NotFoundError("Course not found")
    return course


def create_course(session: Session, payload: CourseCreate) -> Course:
    with store_errors(session, "creating the course"):
        _check_name_free(session, payload.name)

        course = Course(**payload.model_dump())
        session.add(course)
        session.commit()
        session.refresh(course)

    logger.info(f"Course created successfully with ID: {course.id}, name: {course.name}")
    return course


def update_course(session: Session, course_id: str, payload: CourseUpdate) -> Course:
    course = get_course(session, course_id)
    changes = _changes(payload)

    with store_errors(session, "updating the course"):
        renamed = "name" in changes and changes["name"] != course.name
        if renamed:
            _check_name_free(session, changes["name"], course_id)

        for key, value in changes.items():
            setattr(course, key, value)
        course.updated_at = utcnow()
        session.add(course)
        if renamed:
            session.execute(
                update(Student)
                .where(Student.course == course_id)
                .values(course_name=course.name)
                .execution_options(synchronize_session=False)
            )
        session.commit()
        session.refresh(course)

    logger.info(f"Course updated successfully: {course.id}")
    return course


def count_enrolled(session: Session, course_id: str) -> int:
    return session.exec(select(func.count()).select_from(Student).where(Student.course == course_id)).one()


def delete_course(session: Session, course_id: str) -> None:
    """Delete a course that no student references.

    The guard is part of the DELETE statement itself, so a student enrolled
    between the count below and the delete still blocks it.
    """
    with store_errors(session, "deleting the course"):
        enrolled = count_enrolled(session, course_id)
        if enrolled > 0:
            logger.warning(f"Attempted to delete course {course_id} with {enrolled} enrolled students")
            raise ConflictError(f"Course has enrolled students ({enrolled}) and cannot be deleted")

        course = session.get(Course, course_id)
        if not course:
            logger.warning(f"Course not found for deletion with ID: {course_id}")
            raise NotFoundError("Course not found")
        name = course.name
        session.expunge(course)

        has_students = select(Student.id).where(Student.course == course_id).exists()
        statement = delete(Course).where(Course.id == course_id, ~has_students)
        result = session.execute(statement.execution_options(synchronize_session=False))
        if result.rowcount == 0:
            session.rollback()
            logger.warning(f"Course {course_id} gained enrolled students before it could be deleted")
            raise ConflictError("Course has enrolled students and cannot be deleted")
        session.commit()

    logger.info(f"Course deleted successfully: {course_id} ({name})")
