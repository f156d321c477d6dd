# sis/models/student_request.py
import enum

from sqlalchemy import Column, String, Text, JSON, Uuid
from .base import Base, enum_column


class RequestType(str, enum.Enum):
    COURSE_WITHDRAWAL = "course_withdrawal"
    GRADE_CHANGE = "grade_change"
    RETAKE_EXAM = "retake_exam"
    LEAVE_OF_ABSENCE = "leave_of_absence"
    PROGRAM_CHANGE = "program_change"
    OTHER = "other"


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class StudentRequest(Base):
    __tablename__ = "student_requests"

    student_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    request_type = Column(enum_column(RequestType, 30), nullable=False)

    # What the request is about, e.g. reference_type="enrollment"
    reference_type = Column(String(50))
    reference_id = Column(Uuid(as_uuid=True))

    reason = Column(Text, nullable=False)
    description = Column(Text)
    status = Column(enum_column(RequestStatus, 20), default=RequestStatus.PENDING, nullable=False, index=True)

    # JSON-encoded WorkflowStep / HistoryEntry lists (see sis.schemas.workflow)
    approval_workflow = Column(JSON, nullable=False, default=list)
    approval_history = Column(JSON, nullable=False, default=list)
    current_approver_id = Column(Uuid(as_uuid=True), index=True)
    rejection_reason = Column(Text)
