"""Unit tests for waitlist positions."""
from uuid import uuid4

import pytest
import pytest_asyncio

from sis.core.exceptions import ErrorKind
from sis.services.course_registration_service import CourseRegistrationService
from sis.services.waitlist_service import WaitlistService


@pytest.fixture
def waitlist_service(db_session, clock, test_settings):
    return WaitlistService(db_session, clock=clock, settings=test_settings)


@pytest_asyncio.fixture
async def full_course_id(make_course):
    course = await make_course(capacity=1, enrolled_count=1)
    return course.id


class TestJoinWaitlist:

    @pytest.mark.asyncio
    async def test_positions_are_appended(self, waitlist_service, full_course_id, clock):
        students = [uuid4() for _ in range(3)]

        results = [await waitlist_service.join_waitlist(s, full_course_id) for s in students]

        assert [r.data.position for r in results] == [1, 2, 3]
        assert results[0].data.entry.joined_at == clock.now()

    @pytest.mark.asyncio
    async def test_course_with_free_seats(self, waitlist_service, make_course, student_id):
        course = await make_course(capacity=10, enrolled_count=3)

        result = await waitlist_service.join_waitlist(student_id, course.id)

        assert result.code == "course_not_full"
        assert result.kind == ErrorKind.STATE_CONFLICT

    @pytest.mark.asyncio
    async def test_already_waitlisted(self, waitlist_service, full_course_id, student_id):
        await waitlist_service.join_waitlist(student_id, full_course_id)

        result = await waitlist_service.join_waitlist(student_id, full_course_id)

        assert result.code == "already_waitlisted"
        assert result.error.details["position"] == 1

    @pytest.mark.asyncio
    async def test_enrolled_student_cannot_join(self, waitlist_service, make_course, db_session,
                                                clock, test_settings, student_id):
        course = await make_course(capacity=1)
        course_id = course.id
        registration = CourseRegistrationService(db_session, clock=clock, settings=test_settings)
        await registration.register_for_course(student_id, course_id)

        result = await waitlist_service.join_waitlist(student_id, course_id)

        assert result.code == "already_enrolled"

    @pytest.mark.asyncio
    async def test_unknown_course(self, waitlist_service, student_id):
        result = await waitlist_service.join_waitlist(student_id, uuid4())

        assert result.kind == ErrorKind.NOT_FOUND


class TestLeaveWaitlist:

    @pytest.mark.asyncio
    async def test_leaving_keeps_positions_dense(self, waitlist_service, full_course_id):
        students = [uuid4() for _ in range(4)]
        for s in students:
            await waitlist_service.join_waitlist(s, full_course_id)

        result = await waitlist_service.leave_waitlist(students[1], full_course_id)

        assert result.success
        assert result.data.previous_position == 2
        assert result.data.entries_moved_up == 2
        entries = (await waitlist_service.get_waitlist(full_course_id)).data
        assert [e.position for e in entries] == [1, 2, 3]
        assert [e.student_id for e in entries] == [students[0], students[2], students[3]]

    @pytest.mark.asyncio
    async def test_leave_then_join_goes_to_the_back(self, waitlist_service, full_course_id):
        first, second, third = uuid4(), uuid4(), uuid4()
        for s in (first, second, third):
            await waitlist_service.join_waitlist(s, full_course_id)

        await waitlist_service.leave_waitlist(first, full_course_id)
        rejoined = await waitlist_service.join_waitlist(first, full_course_id)

        assert rejoined.data.position == 3
        entries = (await waitlist_service.get_waitlist(full_course_id)).data
        assert [e.student_id for e in entries] == [second, third, first]

    @pytest.mark.asyncio
    async def test_leaving_the_tail_moves_nobody(self, waitlist_service, full_course_id):
        first, last = uuid4(), uuid4()
        await waitlist_service.join_waitlist(first, full_course_id)
        await waitlist_service.join_waitlist(last, full_course_id)

        result = await waitlist_service.leave_waitlist(last, full_course_id)

        assert result.data.entries_moved_up == 0

    @pytest.mark.asyncio
    async def test_not_on_waitlist(self, waitlist_service, full_course_id, student_id):
        result = await waitlist_service.leave_waitlist(student_id, full_course_id)

        assert result.code == "not_on_waitlist"
