# sis/services/course_registration_service.py
"""Course registration: register, drop, eligibility checks and waitlist offers.

``register_for_course`` and ``drop_course`` each run as one transaction
covering the enrollment row, the course's ``enrolled_count`` and the
financial records they produce.
"""
import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from ..core.exceptions import (
    AlreadyEnrolled, CourseFull, CourseNotFound, FinancialHold, NotEnrolled,
    PrerequisitesNotMet, RegistrationClosed, ScheduleConflict, WaitlistEmpty
)
from ..models.course import Course, CoursePrerequisite
from ..models.enrollment import Enrollment, EnrollmentStatus
from ..schemas.financial import FinancialRecordRead
from ..schemas.registration import (
    ConflictingCourse, DropOutcome, EnrollmentRead, MissingPrerequisite,
    PrerequisiteCheck, RegistrationOutcome, WaitlistNotification
)
from .base_service import BaseService, read_operation, service_operation
from .financial_service import FinancialService
from .grading_service import GradingService, meets_minimum
from .waitlist_service import WaitlistService

logger = logging.getLogger(__name__)


def schedules_overlap(course: Course, other: Course) -> bool:
    """Shared meeting day and overlapping half-open time intervals."""
    if not course.has_schedule() or not other.has_schedule():
        return False
    if not course.meeting_day_set() & other.meeting_day_set():
        return False
    return course.start_time < other.end_time and course.end_time > other.start_time


class CourseRegistrationService(BaseService[Enrollment]):
    def __init__(self, db, clock=None, settings=None):
        super().__init__(Enrollment, db, clock=clock, settings=settings)
        self.financial = FinancialService(db, clock=self.clock, settings=self.settings)
        self.waitlist = WaitlistService(db, clock=self.clock, settings=self.settings)
        self.grading = GradingService(db, clock=self.clock, settings=self.settings)

    async def _get_course(self, course_id: UUID, for_update: bool = False) -> Course:
        stmt = select(Course).where(Course.id == course_id, Course.is_deleted.is_(False))
        if for_update:
            stmt = stmt.with_for_update()
        course = (await self.db.execute(stmt)).scalar_one_or_none()
        if course is None:
            raise CourseNotFound(course_id)
        return course

    async def get_active_enrollment(self, student_id: UUID, course_id: UUID,
                                    for_update: bool = False) -> Optional[Enrollment]:
        stmt = select(Enrollment).where(
            Enrollment.student_id == student_id,
            Enrollment.course_id == course_id,
            Enrollment.status == EnrollmentStatus.ACTIVE,
            Enrollment.is_deleted.is_(False),
        )
        if for_update:
            stmt = stmt.with_for_update()
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def _find_conflicts(self, student_id: UUID, course: Course) -> List[ConflictingCourse]:
        if not course.has_schedule():
            return []

        stmt = (
            select(Course)
            .join(Enrollment, Enrollment.course_id == Course.id)
            .where(
                Enrollment.student_id == student_id,
                Enrollment.status == EnrollmentStatus.ACTIVE,
                Enrollment.is_deleted.is_(False),
                Course.semester == course.semester,
                Course.id != course.id,
            )
        )
        enrolled = (await self.db.execute(stmt)).scalars().all()

        return [
            ConflictingCourse(
                course_id=other.id,
                course_code=other.code,
                course_title=other.title,
                meeting_days=other.meeting_days,
                start_time=other.start_time,
                end_time=other.end_time,
                location=other.location,
            )
            for other in enrolled
            if schedules_overlap(course, other)
        ]

    async def _missing_prerequisites(self, student_id: UUID, course: Course) -> List[MissingPrerequisite]:
        stmt = (
            select(CoursePrerequisite.min_grade, Course)
            .join(Course, Course.id == CoursePrerequisite.prerequisite_id)
            .where(
                CoursePrerequisite.course_id == course.id,
                CoursePrerequisite.is_deleted.is_(False),
            )
            .order_by(Course.code)
        )
        rows = (await self.db.execute(stmt)).all()

        missing = []
        for min_grade, prerequisite in rows:
            completed = await self.grading.get_completed_enrollment(student_id, prerequisite.id)
            recorded = completed.grade if completed else None
            if completed is None:
                reason = "not completed"
            elif not recorded:
                reason = "no grade recorded"
            elif not meets_minimum(recorded, min_grade):
                reason = "grade below minimum"
            else:
                continue

            missing.append(MissingPrerequisite(
                course_id=prerequisite.id,
                course_code=prerequisite.code,
                course_title=prerequisite.title,
                required_grade=min_grade,
                recorded_grade=recorded,
                reason=reason,
            ))
        return missing

    @service_operation("register_for_course", "Successfully registered for the course.")
    async def register_for_course(self, student_id: UUID, course_id: UUID) -> RegistrationOutcome:
        # Lock the course row; concurrent registrations for it queue here
        course = await self._get_course(course_id, for_update=True)
        now = self.clock.now()

        if not course.is_registration_open(now):
            raise RegistrationClosed({
                "registration_start": course.registration_start.isoformat() if course.registration_start else None,
                "registration_end": course.registration_end.isoformat() if course.registration_end else None,
            })

        if await self.get_active_enrollment(student_id, course_id) is not None:
            raise AlreadyEnrolled()

        if course.is_full():
            raise CourseFull(course.id, course.capacity)

        conflicts = await self._find_conflicts(student_id, course)
        if conflicts:
            raise ScheduleConflict([c.model_dump(mode="json") for c in conflicts])

        missing = await self._missing_prerequisites(student_id, course)
        if missing:
            raise PrerequisitesNotMet([m.model_dump(mode="json") for m in missing])

        if await self.financial.has_financial_hold(student_id):
            raise FinancialHold({"student_id": str(student_id)})

        enrollment = Enrollment(
            student_id=student_id,
            course_id=course_id,
            enrollment_date=now,
            status=EnrollmentStatus.ACTIVE,
        )
        try:
            await self.add(enrollment)
        except IntegrityError:
            raise AlreadyEnrolled()

        seat = await self.db.execute(
            update(Course)
            .where(Course.id == course_id, Course.enrolled_count < Course.capacity)
            .values(enrolled_count=Course.enrolled_count + 1)
            .execution_options(synchronize_session=False)
        )
        if seat.rowcount != 1:
            raise CourseFull(course.id, course.capacity)
        await self.db.refresh(course)

        # A waitlisted student who takes a seat leaves the queue
        entry = await self.waitlist.get_entry(student_id, course_id)
        if entry is not None:
            await self.waitlist.remove_entry(entry)

        tuition = await self.financial.create_tuition_charge(enrollment, course)

        logger.info(
            "Registered student=%s for course=%s (%d/%d), tuition=%s",
            student_id, course.code, course.enrolled_count, course.capacity, tuition.amount,
        )
        return RegistrationOutcome(
            enrollment=EnrollmentRead.model_validate(enrollment),
            financial_record=FinancialRecordRead.model_validate(tuition),
        )

    @service_operation("drop_course", "Successfully dropped the course.")
    async def drop_course(self, student_id: UUID, course_id: UUID) -> DropOutcome:
        course = await self._get_course(course_id, for_update=True)

        enrollment = await self.get_active_enrollment(student_id, course_id, for_update=True)
        if enrollment is None:
            raise NotEnrolled()

        enrollment.status = EnrollmentStatus.DROPPED
        enrollment.dropped_at = self.clock.now()
        await self.db.flush()

        await self.db.execute(
            update(Course)
            .where(Course.id == course_id, Course.enrolled_count > 0)
            .values(enrolled_count=Course.enrolled_count - 1)
            .execution_options(synchronize_session=False)
        )
        await self.db.refresh(course)

        refund = await self.financial.settle_dropped_enrollment(enrollment, course)

        head = await self.waitlist.peek(course_id)
        notification = self.waitlist.build_notification(course, head) if head else None

        logger.info(
            "Dropped student=%s from course=%s (%d/%d), refund=%s%% action=%s, waitlist_offer=%s",
            student_id, course.code, course.enrolled_count, course.capacity,
            int(refund.refund_percentage * 100), refund.action,
            head.student_id if head else None,
        )
        return DropOutcome(
            enrollment=EnrollmentRead.model_validate(enrollment),
            refund=refund,
            waitlist_notification=notification,
        )

    @read_operation("check_schedule_conflicts")
    async def check_schedule_conflicts(self, student_id: UUID, course_id: UUID) -> List[ConflictingCourse]:
        course = await self._get_course(course_id)
        return await self._find_conflicts(student_id, course)

    @read_operation("check_prerequisites")
    async def check_prerequisites(self, student_id: UUID, course_id: UUID) -> PrerequisiteCheck:
        course = await self._get_course(course_id)
        missing = await self._missing_prerequisites(student_id, course)
        return PrerequisiteCheck(satisfied=not missing, missing_prerequisites=missing)

    @read_operation("process_waitlist")
    async def process_waitlist(self, course_id: UUID) -> WaitlistNotification:
        """Offer the free seat to the head of the waitlist. Nobody is enrolled or removed."""
        course = await self._get_course(course_id)
        if course.is_full():
            raise CourseFull(course.id, course.capacity)

        head = await self.waitlist.peek(course_id)
        if head is None:
            raise WaitlistEmpty()
        return self.waitlist.build_notification(course, head)
