# sis/schemas/registration.py
from datetime import datetime, time
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.enrollment import EnrollmentStatus
from .financial import FinancialRecordRead


class EnrollmentRead(BaseModel):
    id: UUID
    student_id: UUID
    course_id: UUID
    enrollment_date: datetime
    status: EnrollmentStatus
    grade: Optional[str] = None
    dropped_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class WaitlistEntryRead(BaseModel):
    id: UUID
    course_id: UUID
    student_id: UUID
    position: int
    joined_at: datetime

    model_config = {"from_attributes": True}


class ConflictingCourse(BaseModel):
    course_id: UUID
    course_code: str
    course_title: str
    meeting_days: Optional[str] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    location: Optional[str] = None


class MissingPrerequisite(BaseModel):
    course_id: UUID
    course_code: str
    course_title: str
    required_grade: str
    recorded_grade: Optional[str] = None
    reason: str


class PrerequisiteCheck(BaseModel):
    satisfied: bool
    missing_prerequisites: List[MissingPrerequisite] = Field(default_factory=list)


class RegistrationOutcome(BaseModel):
    enrollment: EnrollmentRead
    financial_record: FinancialRecordRead


class WaitlistNotification(BaseModel):
    """Advisory only: the entry stays on the waitlist until the student acts."""
    student_id: UUID
    course_id: UUID
    course_code: str
    position: int
    respond_within_hours: int
    message: str


class RefundDecision(BaseModel):
    refund_percentage: Decimal
    days_after_registration_end: int
    action: str  # "cancelled", "refund_created" or "none"
    tuition_record_id: Optional[UUID] = None
    refund_amount: Decimal = Decimal("0.00")
    refund_record: Optional[FinancialRecordRead] = None


class DropOutcome(BaseModel):
    enrollment: EnrollmentRead
    refund: RefundDecision
    waitlist_notification: Optional[WaitlistNotification] = None


class WaitlistJoined(BaseModel):
    entry: WaitlistEntryRead
    position: int


class WaitlistLeft(BaseModel):
    course_id: UUID
    student_id: UUID
    previous_position: int
    entries_moved_up: int
