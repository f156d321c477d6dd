"""Shared fixtures: an in-memory SQLite database, a pinned clock and model factories."""
from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional
from uuid import UUID, uuid4

import pytest
import pytest_asyncio

from sis.core.clock import FixedClock
from sis.core.config import Settings
from sis.core.database import build_session_factory, create_database_engine, init_models
from sis.models import (
    Course, Enrollment, EnrollmentStatus,
    FinancialRecord, FinancialStatus, TransactionType
)

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Registration for the test semester runs 2025-01-01 .. 2025-01-10
REGISTRATION_START = datetime(2025, 1, 1, 0, 0)
REGISTRATION_END = datetime(2025, 1, 10, 0, 0)


@pytest.fixture
def approvers() -> Dict[str, UUID]:
    """One distinct approver identity per workflow role."""
    return {
        "academic_advisor": uuid4(),
        "department_chair": uuid4(),
        "new_department_chair": uuid4(),
        "registrar": uuid4(),
        "dean": uuid4(),
        "instructor": uuid4(),
    }


@pytest.fixture
def test_settings(approvers) -> Settings:
    return Settings(
        _env_file=None,
        database_url=TEST_DATABASE_URL,
        environment="test",
        workflow_approvers=approvers,
    )


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2025, 1, 6, 9, 0))


@pytest_asyncio.fixture
async def engine(test_settings):
    engine = create_database_engine(TEST_DATABASE_URL, config=test_settings)
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(engine):
    async with build_session_factory(engine)() as session:
        yield session


@pytest.fixture
def student_id() -> UUID:
    return uuid4()


@pytest.fixture
def make_course(db_session):
    """Factory for committed courses; keyword arguments override the defaults."""
    counter = {"n": 0}

    async def _make(**overrides) -> Course:
        counter["n"] += 1
        values = dict(
            code=f"CS{100 + counter['n']}",
            title=f"Course {counter['n']}",
            credits=3,
            semester="2025S",
            capacity=30,
            enrolled_count=0,
            is_active=True,
            registration_start=REGISTRATION_START,
            registration_end=REGISTRATION_END,
            tuition_per_credit=Decimal("500.00"),
            location="Room 101",
            meeting_days=None,
            start_time=None,
            end_time=None,
        )
        values.update(overrides)
        course = Course(**values)
        db_session.add(course)
        await db_session.commit()
        return course

    return _make


@pytest.fixture
def make_completed_enrollment(db_session):
    """Factory for a finished course with an optional posted grade."""

    async def _make(student_id: UUID, course: Course, grade: Optional[str]) -> Enrollment:
        enrollment = Enrollment(
            student_id=student_id,
            course_id=course.id,
            enrollment_date=datetime(2024, 9, 1),
            status=EnrollmentStatus.COMPLETED,
            grade=grade,
            completed_at=datetime(2024, 12, 20),
        )
        db_session.add(enrollment)
        await db_session.commit()
        return enrollment

    return _make


@pytest.fixture
def make_financial_record(db_session):
    async def _make(student_id: UUID, **overrides) -> FinancialRecord:
        values = dict(
            student_id=student_id,
            transaction_type=TransactionType.FEE,
            amount=Decimal("100.00"),
            status=FinancialStatus.PENDING,
            description="Library fine",
            due_date=datetime(2025, 2, 1),
        )
        values.update(overrides)
        record = FinancialRecord(**values)
        db_session.add(record)
        await db_session.commit()
        return record

    return _make

