# sis/services/waitlist_service.py
"""Course waitlists with dense 1..N positions per course."""
import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update, func

from ..core.exceptions import (
    AlreadyEnrolled, AlreadyWaitlisted, CourseNotFound, CourseNotFull, NotOnWaitlist
)
from ..models.course import Course, CourseWaitlist
from ..models.enrollment import Enrollment, EnrollmentStatus
from ..schemas.registration import (
    WaitlistEntryRead, WaitlistJoined, WaitlistLeft, WaitlistNotification
)
from .base_service import BaseService, read_operation, service_operation

logger = logging.getLogger(__name__)


class WaitlistService(BaseService[CourseWaitlist]):
    def __init__(self, db, clock=None, settings=None):
        super().__init__(CourseWaitlist, db, clock=clock, settings=settings)

    async def _lock_course(self, course_id: UUID) -> Course:
        # Row lock on the course serialises joins/leaves for that course
        stmt = select(Course).where(Course.id == course_id, Course.is_deleted.is_(False)).with_for_update()
        course = (await self.db.execute(stmt)).scalar_one_or_none()
        if course is None:
            raise CourseNotFound(course_id)
        return course

    async def get_entry(self, student_id: UUID, course_id: UUID) -> Optional[CourseWaitlist]:
        stmt = select(CourseWaitlist).where(
            CourseWaitlist.course_id == course_id,
            CourseWaitlist.student_id == student_id,
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def peek(self, course_id: UUID) -> Optional[CourseWaitlist]:
        """Lowest-position entry, left in place."""
        stmt = (
            select(CourseWaitlist)
            .where(CourseWaitlist.course_id == course_id)
            .order_by(CourseWaitlist.position)
            .limit(1)
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    def build_notification(self, course: Course, entry: CourseWaitlist) -> WaitlistNotification:
        hours = self.settings.waitlist_offer_hours
        return WaitlistNotification(
            student_id=entry.student_id,
            course_id=course.id,
            course_code=course.code,
            position=entry.position,
            respond_within_hours=hours,
            message=(
                f"A spot has opened up in {course.code} - {course.title}. "
                f"You have {hours} hours to register."
            ),
        )

    async def remove_entry(self, entry: CourseWaitlist) -> int:
        """Delete an entry and move everyone behind it up one place.

        Runs inside the caller's transaction, which must hold the course lock.
        Returns how many entries moved up.
        """
        course_id, position = entry.course_id, entry.position
        await self.db.delete(entry)
        await self.db.flush()

        behind = await self.db.execute(
            select(func.count()).select_from(CourseWaitlist).where(
                CourseWaitlist.course_id == course_id,
                CourseWaitlist.position > position,
            )
        )
        moved = behind.scalar_one()

        # Close the gap in one statement
        await self.db.execute(
            update(CourseWaitlist)
            .where(CourseWaitlist.course_id == course_id, CourseWaitlist.position > position)
            .values(position=CourseWaitlist.position - 1)
            .execution_options(synchronize_session="fetch")
        )
        return moved

    @service_operation("join_waitlist", "Successfully joined the waitlist for this course.")
    async def join_waitlist(self, student_id: UUID, course_id: UUID) -> WaitlistJoined:
        course = await self._lock_course(course_id)

        enrolled = await self.db.execute(
            select(Enrollment.id).where(
                Enrollment.student_id == student_id,
                Enrollment.course_id == course_id,
                Enrollment.status == EnrollmentStatus.ACTIVE,
                Enrollment.is_deleted.is_(False),
            ).limit(1)
        )
        if enrolled.scalar_one_or_none() is not None:
            raise AlreadyEnrolled()

        existing = await self.get_entry(student_id, course_id)
        if existing is not None:
            raise AlreadyWaitlisted(existing.position)

        if not course.is_full():
            raise CourseNotFull()

        last_position = await self.db.execute(
            select(func.coalesce(func.max(CourseWaitlist.position), 0))
            .where(CourseWaitlist.course_id == course_id)
        )
        entry = await self.add(CourseWaitlist(
            course_id=course_id,
            student_id=student_id,
            position=last_position.scalar_one() + 1,
            joined_at=self.clock.now(),
        ))

        logger.info("Joined waitlist: student=%s, course=%s, position=%d", student_id, course_id, entry.position)
        return WaitlistJoined(entry=WaitlistEntryRead.model_validate(entry), position=entry.position)

    @service_operation("leave_waitlist", "Successfully left the waitlist for this course.")
    async def leave_waitlist(self, student_id: UUID, course_id: UUID) -> WaitlistLeft:
        await self._lock_course(course_id)

        entry = await self.get_entry(student_id, course_id)
        if entry is None:
            raise NotOnWaitlist()

        position = entry.position
        moved = await self.remove_entry(entry)

        logger.info("Left waitlist: student=%s, course=%s, position=%d", student_id, course_id, position)
        return WaitlistLeft(
            course_id=course_id,
            student_id=student_id,
            previous_position=position,
            entries_moved_up=moved,
        )

    @read_operation("get_waitlist")
    async def get_waitlist(self, course_id: UUID) -> List[WaitlistEntryRead]:
        stmt = (
            select(CourseWaitlist)
            .where(CourseWaitlist.course_id == course_id)
            .order_by(CourseWaitlist.position)
        )
        entries = (await self.db.execute(stmt)).scalars().all()
        return [WaitlistEntryRead.model_validate(e) for e in entries]
