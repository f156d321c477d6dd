# sis/schemas/workflow.py
import enum
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.student_request import RequestStatus, RequestType


class ApprovalAction(str, enum.Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


class StepStatus(str, enum.Enum):
    PENDING = "pending"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    SKIPPED = "skipped"


class WorkflowStepTemplate(BaseModel):
    """Template step; ``role`` is resolved to an approver when a workflow starts."""
    step_name: str
    role: str
    approver_name: str
    description: str = ""


class WorkflowStep(BaseModel):
    step_name: str
    approver_id: UUID
    approver_name: str
    description: str = ""


class HistoryEntry(BaseModel):
    approver_id: UUID
    action: ApprovalAction
    comments: Optional[str] = None
    timestamp: datetime


class StudentRequestCreate(BaseModel):
    student_id: UUID
    request_type: RequestType
    reason: str = Field(..., min_length=1)
    description: Optional[str] = None
    reference_type: Optional[str] = Field(default=None, max_length=50)
    reference_id: Optional[UUID] = None


class StudentRequestRead(BaseModel):
    id: UUID
    student_id: UUID
    request_type: RequestType
    reference_type: Optional[str] = None
    reference_id: Optional[UUID] = None
    reason: str
    description: Optional[str] = None
    status: RequestStatus
    approval_workflow: List[WorkflowStep] = Field(default_factory=list)
    approval_history: List[HistoryEntry] = Field(default_factory=list)
    current_approver_id: Optional[UUID] = None
    rejection_reason: Optional[str] = None

    model_config = {"from_attributes": True}


class WorkflowInitialized(BaseModel):
    request: StudentRequestRead
    current_step: str
    current_approver_id: UUID
    current_approver_name: str


class ApprovalOutcome(BaseModel):
    request: StudentRequestRead
    final_approval: bool
    next_step: Optional[str] = None
    next_approver_id: Optional[UUID] = None
    next_approver_name: Optional[str] = None


class RejectionOutcome(BaseModel):
    request: StudentRequestRead


class WorkflowStepDetail(BaseModel):
    step_name: str
    approver_name: str
    approver_id: UUID
    description: str
    status: StepStatus
    comments: Optional[str] = None
    timestamp: Optional[datetime] = None
    is_current_step: bool = False


class WorkflowDetails(BaseModel):
    request_id: UUID
    request_type: RequestType
    status: RequestStatus
    current_approver_id: Optional[UUID] = None
    rejection_reason: Optional[str] = None
    workflow: List[WorkflowStepDetail] = Field(default_factory=list)
