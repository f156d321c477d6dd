# sis/services/workflow_registry.py
"""Request-type registry: approval templates, approver lookup, post-approval hooks."""
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Dict, List, Mapping, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings as default_settings
from ..core.exceptions import ApproverNotConfigured
from ..models.student_request import RequestType, StudentRequest
from ..schemas.workflow import WorkflowStepTemplate

logger = logging.getLogger(__name__)

PostApprovalHandler = Callable[[AsyncSession, StudentRequest], Awaitable[None]]

# Approver roles
ACADEMIC_ADVISOR = "academic_advisor"
DEPARTMENT_CHAIR = "department_chair"
NEW_DEPARTMENT_CHAIR = "new_department_chair"
REGISTRAR = "registrar"
DEAN = "dean"
INSTRUCTOR = "instructor"


class ApproverDirectory(ABC):
    """Resolves a workflow role to a concrete approver for one request."""

    @abstractmethod
    def resolve(self, role: str, request: StudentRequest) -> UUID:
        ...


class StaticApproverDirectory(ApproverDirectory):
    def __init__(self, approvers: Optional[Mapping[str, UUID]] = None):
        if approvers is None:
            approvers = default_settings.workflow_approvers
        self.approvers: Dict[str, UUID] = dict(approvers)

    def resolve(self, role: str, request: StudentRequest) -> UUID:
        try:
            return self.approvers[role]
        except KeyError:
            raise ApproverNotConfigured(role)


async def no_post_approval_action(db: AsyncSession, request: StudentRequest) -> None:
    logger.debug("No post-approval action for %s request %s", request.request_type.value, request.id)


def _step(step_name: str, role: str, approver_name: str, description: str) -> WorkflowStepTemplate:
    return WorkflowStepTemplate(
        step_name=step_name, role=role, approver_name=approver_name, description=description
    )


DEFAULT_TEMPLATE: List[WorkflowStepTemplate] = [
    _step("Academic Advisor Review", ACADEMIC_ADVISOR, "Academic Advisor", "Review by academic advisor."),
    _step("Department Chair Review", DEPARTMENT_CHAIR, "Department Chair", "Review by department chair."),
]


class WorkflowRegistry:
    """Maps each ``RequestType`` to its step template and post-approval handler.

    Unregistered types fall back to the default template and a no-op handler.
    """

    def __init__(self, default_template: Optional[List[WorkflowStepTemplate]] = None):
        self.default_template = list(DEFAULT_TEMPLATE if default_template is None else default_template)
        self._templates: Dict[RequestType, List[WorkflowStepTemplate]] = {}
        self._handlers: Dict[RequestType, PostApprovalHandler] = {}

    def register(
        self,
        request_type: RequestType,
        template: List[WorkflowStepTemplate],
        handler: Optional[PostApprovalHandler] = None,
    ) -> None:
        self._templates[request_type] = list(template)
        if handler is not None:
            self._handlers[request_type] = handler

    def register_handler(self, request_type: RequestType, handler: PostApprovalHandler) -> None:
        self._handlers[request_type] = handler

    def template_for(self, request_type: RequestType) -> List[WorkflowStepTemplate]:
        return list(self._templates.get(request_type, self.default_template))

    def handler_for(self, request_type: RequestType) -> PostApprovalHandler:
        return self._handlers.get(request_type, no_post_approval_action)


def default_registry() -> WorkflowRegistry:
    registry = WorkflowRegistry()

    registry.register(RequestType.COURSE_WITHDRAWAL, [
        _step("Academic Advisor Review", ACADEMIC_ADVISOR, "Academic Advisor",
              "Review by academic advisor to ensure the withdrawal is in the student's best interest."),
        _step("Department Chair Review", DEPARTMENT_CHAIR, "Department Chair",
              "Review by department chair to approve the course withdrawal."),
        _step("Registrar Approval", REGISTRAR, "Registrar",
              "Final approval by the registrar to process the course withdrawal."),
    ])
    registry.register(RequestType.GRADE_CHANGE, [
        _step("Instructor Review", INSTRUCTOR, "Course Instructor",
              "Review by the course instructor to verify the grade change request."),
        _step("Department Chair Review", DEPARTMENT_CHAIR, "Department Chair",
              "Review by department chair to approve the grade change."),
        _step("Registrar Approval", REGISTRAR, "Registrar",
              "Final approval by the registrar to process the grade change."),
    ])
    registry.register(RequestType.RETAKE_EXAM, [
        _step("Instructor Review", INSTRUCTOR, "Course Instructor",
              "Review by the course instructor to approve the exam retake."),
        _step("Department Chair Review", DEPARTMENT_CHAIR, "Department Chair",
              "Review by department chair to approve the exam retake."),
    ])
    registry.register(RequestType.LEAVE_OF_ABSENCE, [
        _step("Academic Advisor Review", ACADEMIC_ADVISOR, "Academic Advisor",
              "Review by academic advisor to ensure the leave of absence is in the student's best interest."),
        _step("Department Chair Review", DEPARTMENT_CHAIR, "Department Chair",
              "Review by department chair to approve the leave of absence."),
        _step("Dean Approval", DEAN, "Dean",
              "Final approval by the dean to grant the leave of absence."),
    ])
    registry.register(RequestType.PROGRAM_CHANGE, [
        _step("Academic Advisor Review", ACADEMIC_ADVISOR, "Academic Advisor",
              "Review by academic advisor to ensure the program change is in the student's best interest."),
        _step("Current Department Chair Review", DEPARTMENT_CHAIR, "Current Department Chair",
              "Review by current department chair to approve the program change."),
        _step("New Department Chair Review", NEW_DEPARTMENT_CHAIR, "New Department Chair",
              "Review by new department chair to accept the student into the program."),
        _step("Registrar Approval", REGISTRAR, "Registrar",
              "Final approval by the registrar to process the program change."),
    ])
    return registry
