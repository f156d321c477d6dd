from datetime import time

from sis.models import Course, CoursePrerequisite


def schedule(days: str, start: str, end: str) -> dict:
    """Meeting-pattern overrides for ``make_course``, e.g. schedule("MW", "09:00", "10:30")."""
    return dict(
        meeting_days=days,
        start_time=time.fromisoformat(start),
        end_time=time.fromisoformat(end),
    )


async def add_prerequisite(db_session, course: Course, prerequisite: Course, min_grade: str) -> None:
    db_session.add(CoursePrerequisite(
        course_id=course.id,
        prerequisite_id=prerequisite.id,
        min_grade=min_grade,
    ))
    await db_session.commit()
