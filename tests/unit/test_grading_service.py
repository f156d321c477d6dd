"""Unit tests for grade lookup, grade posting and GPA."""
from decimal import Decimal
from uuid import uuid4

import pytest

from sis.core.exceptions import ErrorKind
from sis.models import EnrollmentStatus
from sis.services.course_registration_service import CourseRegistrationService
from sis.services.grading_service import GradingService, grade_points, meets_minimum


@pytest.fixture
def grading_service(db_session, clock, test_settings):
    return GradingService(db_session, clock=clock, settings=test_settings)


class TestGradeScale:

    def test_points(self):
        assert grade_points("A+") == Decimal("4.3")
        assert grade_points("c-") == Decimal("1.7")
        assert grade_points("F") == Decimal("0.0")

    @pytest.mark.parametrize("recorded, minimum, ok", [
        ("C-", "C", False),
        ("C", "C", True),
        ("B", "C", True),
        ("D+", "D", True),
        ("F", "D-", False),
        ("A", "Z", False),
        ("A+", "", False),
    ])
    def test_meets_minimum(self, recorded, minimum, ok):
        assert meets_minimum(recorded, minimum) is ok


class TestPostedGrades:

    @pytest.mark.asyncio
    async def test_posted_grade_lookup(self, grading_service, make_course, make_completed_enrollment, student_id):
        course = await make_course()
        await make_completed_enrollment(student_id, course, "B+")

        assert await grading_service.get_posted_grade(student_id, course.id) == "B+"
        assert await grading_service.get_posted_grade(uuid4(), course.id) is None

    @pytest.mark.asyncio
    async def test_post_grade_completes_enrollment(self, grading_service, make_course, db_session,
                                                   clock, test_settings, student_id):
        course = await make_course()
        course_id = course.id
        registration = CourseRegistrationService(db_session, clock=clock, settings=test_settings)
        await registration.register_for_course(student_id, course_id)

        result = await grading_service.post_grade(student_id, course_id, "a-")

        assert result.success, result.error
        assert result.data.grade == "A-"
        assert result.data.status == EnrollmentStatus.COMPLETED
        assert result.data.completed_at == clock.now()
        await db_session.refresh(course)
        assert course.enrolled_count == 1

    @pytest.mark.asyncio
    async def test_unknown_letter(self, grading_service, make_course, student_id):
        course = await make_course()

        result = await grading_service.post_grade(student_id, course.id, "E")

        assert result.kind == ErrorKind.VALIDATION_FAILURE
        assert result.error.details == {"field": "grade"}

    @pytest.mark.asyncio
    async def test_no_active_enrollment(self, grading_service, make_course, student_id):
        course = await make_course()

        result = await grading_service.post_grade(student_id, course.id, "A")

        assert result.code == "enrollment_not_found"


class TestGPA:

    @pytest.mark.asyncio
    async def test_semester_and_cumulative(self, grading_service, make_course, make_completed_enrollment,
                                           student_id):
        fall = [
            (await make_course(semester="2024F", credits=3), "A"),
            (await make_course(semester="2024F", credits=4), "B"),
            (await make_course(semester="2024F", credits=3), "F"),
        ]
        summer = await make_course(semester="2024U", credits=2)
        for course, grade in fall:
            await make_completed_enrollment(student_id, course, grade)
        await make_completed_enrollment(student_id, summer, "A+")

        semester = (await grading_service.calculate_semester_gpa(student_id, "2024F")).data
        cumulative = (await grading_service.calculate_cumulative_gpa(student_id)).data

        assert semester.gpa == Decimal("2.40")
        assert semester.credits_attempted == 10
        assert semester.credits_earned == 7
        assert cumulative.gpa == Decimal("2.72")
        assert cumulative.credits_attempted == 12
        assert cumulative.semester is None

    @pytest.mark.asyncio
    async def test_no_graded_courses(self, grading_service, student_id):
        result = await grading_service.calculate_cumulative_gpa(student_id)

        assert result.success
        assert result.data.gpa == Decimal("0.00")
        assert result.data.credits_attempted == 0
