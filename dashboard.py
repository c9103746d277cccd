import logging

from sqlalchemy import func
from sqlmodel import Session, select

from models import Course, RecordStatus, Student
from schemas import CourseCount, DashboardStats
from services import store_errors

logger = logging.getLogger(__name__)


def success_rate(graduates: int, total_students: int) -> int:
    """Graduates as a percentage of all students, rounded half up; 0 with no students"""
    if total_students <= 0:
        return 0
    return (graduates * 200 + total_students) // (total_students * 2)


def _count(session: Session, model, *criteria) -> int:
    return session.exec(select(func.count()).select_from(model).where(*criteria)).one()


def compute_dashboard_stats(session: Session) -> DashboardStats:
    """
    Computes the dashboard snapshot from the store. All queries run on the same
    session, so they see one logical state; concurrent writers are not blocked.
    """
    with store_errors(session, "computing dashboard stats"):
        total_students = _count(session, Student)
        active_students = _count(session, Student, Student.status == RecordStatus.active)
        graduates = _count(session, Student, Student.status == RecordStatus.inactive)
        total_courses = _count(session, Course)
        active_courses = _count(session, Course, Course.status == RecordStatus.active)

        rows = session.exec(
            select(Student.course, Student.course_name, func.count())
            .group_by(Student.course, Student.course_name)
        ).all()

    stats = DashboardStats(
        total_students=total_students,
        active_students=active_students,
        total_courses=total_courses,
        active_courses=active_courses,
        graduates=graduates,
        course_counts=[
            CourseCount(course_id=course_id, course_name=course_name, count=count)
            for course_id, course_name, count in rows
        ],
        success_rate=success_rate(graduates, total_students),
    )
    logger.info(
        f"Dashboard stats computed: {total_students} students, {total_courses} courses, "
        f"success rate {stats.success_rate}%"
    )
    return stats
