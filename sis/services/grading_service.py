# sis/services/grading_service.py
"""Grade-point scale, posted-grade lookup and GPA calculation."""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select

from ..core.exceptions import EnrollmentNotFound, ValidationFailure
from ..models.course import Course
from ..models.enrollment import Enrollment, EnrollmentStatus
from ..schemas.grading import GPASummary
from ..schemas.registration import EnrollmentRead
from .base_service import BaseService, read_operation, service_operation

logger = logging.getLogger(__name__)

# Standard 4.3-point letter scale
GRADE_POINTS: Dict[str, Decimal] = {
    "A+": Decimal("4.3"), "A": Decimal("4.0"), "A-": Decimal("3.7"),
    "B+": Decimal("3.3"), "B": Decimal("3.0"), "B-": Decimal("2.7"),
    "C+": Decimal("2.3"), "C": Decimal("2.0"), "C-": Decimal("1.7"),
    "D+": Decimal("1.3"), "D": Decimal("1.0"), "D-": Decimal("0.7"),
    "F": Decimal("0.0"),
}

FAILING_GRADE = "F"


def normalize_grade(grade: str) -> str:
    return (grade or "").strip().upper()


def grade_points(grade: str) -> Decimal:
    """Point value of a letter grade; unknown letters count as 0.0."""
    return GRADE_POINTS.get(normalize_grade(grade), Decimal("0.0"))


def meets_minimum(recorded: str, minimum: str) -> bool:
    """An unrecognised minimum letter can never be met."""
    if normalize_grade(minimum) not in GRADE_POINTS:
        return False
    return grade_points(recorded) >= grade_points(minimum)


def _weighted_gpa(rows: List[Tuple[str, int]]) -> Tuple[Decimal, int, int]:
    total_points = Decimal("0")
    attempted = 0
    earned = 0
    for grade, credits in rows:
        credits = credits or 0
        total_points += grade_points(grade) * credits
        attempted += credits
        if normalize_grade(grade) != FAILING_GRADE:
            earned += credits
    if attempted == 0:
        return Decimal("0.00"), 0, 0
    gpa = (total_points / attempted).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return gpa, attempted, earned


class GradingService(BaseService[Enrollment]):
    def __init__(self, db, clock=None, settings=None):
        super().__init__(Enrollment, db, clock=clock, settings=settings)

    async def get_completed_enrollment(self, student_id: UUID, course_id: UUID) -> Optional[Enrollment]:
        stmt = (
            select(Enrollment)
            .where(
                Enrollment.student_id == student_id,
                Enrollment.course_id == course_id,
                Enrollment.status == EnrollmentStatus.COMPLETED,
                Enrollment.is_deleted.is_(False),
            )
            .order_by(Enrollment.completed_at.desc())
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_posted_grade(self, student_id: UUID, course_id: UUID) -> Optional[str]:
        """Letter grade of the student's completed enrollment in a course, if any."""
        enrollment = await self.get_completed_enrollment(student_id, course_id)
        return enrollment.grade if enrollment else None

    @service_operation("post_grade", "Grade posted.")
    async def post_grade(self, student_id: UUID, course_id: UUID, grade: str) -> EnrollmentRead:
        letter = normalize_grade(grade)
        if letter not in GRADE_POINTS:
            raise ValidationFailure(f"Unknown letter grade: {grade!r}", field="grade")

        stmt = select(Enrollment).where(
            Enrollment.student_id == student_id,
            Enrollment.course_id == course_id,
            Enrollment.status == EnrollmentStatus.ACTIVE,
            Enrollment.is_deleted.is_(False),
        ).with_for_update()
        enrollment = (await self.db.execute(stmt)).scalar_one_or_none()
        if enrollment is None:
            raise EnrollmentNotFound()

        enrollment.grade = letter
        enrollment.status = EnrollmentStatus.COMPLETED
        enrollment.completed_at = self.clock.now()
        await self.db.flush()

        logger.info("Posted grade %s: student=%s, course=%s", letter, student_id, course_id)
        return EnrollmentRead.model_validate(enrollment)

    async def _graded_rows(self, student_id: UUID, semester: Optional[str] = None) -> List[Tuple[str, int]]:
        stmt = (
            select(Enrollment.grade, Course.credits)
            .join(Course, Course.id == Enrollment.course_id)
            .where(
                Enrollment.student_id == student_id,
                Enrollment.status == EnrollmentStatus.COMPLETED,
                Enrollment.grade.is_not(None),
                Enrollment.is_deleted.is_(False),
            )
        )
        if semester is not None:
            stmt = stmt.where(Course.semester == semester)
        result = await self.db.execute(stmt)
        return [(row.grade, row.credits) for row in result.all()]

    @read_operation("calculate_semester_gpa")
    async def calculate_semester_gpa(self, student_id: UUID, semester: str) -> GPASummary:
        gpa, attempted, earned = _weighted_gpa(await self._graded_rows(student_id, semester))
        return GPASummary(
            student_id=student_id,
            semester=semester,
            gpa=gpa,
            credits_attempted=attempted,
            credits_earned=earned,
        )

    @read_operation("calculate_cumulative_gpa")
    async def calculate_cumulative_gpa(self, student_id: UUID) -> GPASummary:
        gpa, attempted, earned = _weighted_gpa(await self._graded_rows(student_id))
        return GPASummary(
            student_id=student_id,
            gpa=gpa,
            credits_attempted=attempted,
            credits_earned=earned,
        )
