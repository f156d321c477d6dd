# sis/services/workflow_service.py
"""Multi-step approval workflow for student requests.

A request moves ``pending -> in_review -> approved | rejected``. The ordered
approval chain comes from the injected ``WorkflowRegistry``; roles are turned
into approver identities by the ``ApproverDirectory`` when the workflow starts.
"""
import logging
from typing import List, Optional
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy import update

from ..core.exceptions import (
    NoWorkflowDefined, NotAuthorized, NotInReview, RequestNotFound,
    StaleRequestState, ValidationFailure
)
from ..models.student_request import RequestStatus, RequestType, StudentRequest
from ..schemas.workflow import (
    ApprovalAction, ApprovalOutcome, HistoryEntry, RejectionOutcome, StepStatus,
    StudentRequestCreate, StudentRequestRead, WorkflowDetails, WorkflowInitialized,
    WorkflowStep, WorkflowStepDetail
)
from .base_service import BaseService, read_operation, service_operation
from .workflow_registry import (
    ApproverDirectory, StaticApproverDirectory, WorkflowRegistry, default_registry
)

logger = logging.getLogger(__name__)


def _steps(request: StudentRequest) -> List[WorkflowStep]:
    return [WorkflowStep.model_validate(s) for s in (request.approval_workflow or [])]


def _history(request: StudentRequest) -> List[HistoryEntry]:
    return [HistoryEntry.model_validate(h) for h in (request.approval_history or [])]


def _dump(items) -> list:
    return [item.model_dump(mode="json") for item in items]


class WorkflowService(BaseService[StudentRequest]):
    def __init__(
        self,
        db,
        registry: Optional[WorkflowRegistry] = None,
        approvers: Optional[ApproverDirectory] = None,
        clock=None,
        settings=None,
    ):
        super().__init__(StudentRequest, db, clock=clock, settings=settings)
        self.registry = registry or default_registry()
        self.approvers = approvers or StaticApproverDirectory(self.settings.workflow_approvers)

    async def _get_request(self, request_id: UUID, for_update: bool = False) -> StudentRequest:
        request = await self.get(request_id, for_update=for_update)
        if request is None:
            raise RequestNotFound(request_id)
        return request

    async def _start_workflow(self, request: StudentRequest) -> WorkflowInitialized:
        template = self.registry.template_for(request.request_type)
        if not template:
            raise NoWorkflowDefined(request.request_type.value)

        steps = [
            WorkflowStep(
                step_name=t.step_name,
                approver_id=self.approvers.resolve(t.role, request),
                approver_name=t.approver_name,
                description=t.description,
            )
            for t in template
        ]

        request.approval_workflow = _dump(steps)
        request.approval_history = []
        request.current_approver_id = steps[0].approver_id
        request.status = RequestStatus.IN_REVIEW
        request.rejection_reason = None
        await self.db.flush()

        logger.info(
            "Workflow started: request=%s, type=%s, steps=%d, first_approver=%s",
            request.id, request.request_type.value, len(steps), steps[0].approver_id,
        )
        return WorkflowInitialized(
            request=StudentRequestRead.model_validate(request),
            current_step=steps[0].step_name,
            current_approver_id=steps[0].approver_id,
            current_approver_name=steps[0].approver_name,
        )

    def _check_can_act(self, request: StudentRequest, approver_id: UUID, verb: str, past: str) -> None:
        if request.status != RequestStatus.IN_REVIEW:
            raise NotInReview(past, request.status.value)
        if request.current_approver_id != approver_id:
            raise NotAuthorized(
                f"You are not authorized to {verb} this request at this time.",
                {"request_id": str(request.id)},
            )

    async def _apply_transition(self, request: StudentRequest, approver_id: UUID, **values) -> None:
        # Compare-and-set on (status, current approver): a concurrent transition
        # that got there first leaves zero matching rows.
        result = await self.db.execute(
            update(StudentRequest)
            .where(
                StudentRequest.id == request.id,
                StudentRequest.status == RequestStatus.IN_REVIEW,
                StudentRequest.current_approver_id == approver_id,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise StaleRequestState(request.id)
        await self.db.refresh(request)

    @service_operation("create_request", "Request submitted successfully.")
    async def create_request(
        self,
        student_id: UUID,
        request_type: RequestType,
        reason: str,
        description: Optional[str] = None,
        reference_type: Optional[str] = None,
        reference_id: Optional[UUID] = None,
    ) -> WorkflowInitialized:
        try:
            request_in = StudentRequestCreate(
                student_id=student_id,
                request_type=request_type,
                reason=reason,
                description=description,
                reference_type=reference_type,
                reference_id=reference_id,
            )
        except ValidationError as e:
            raise ValidationFailure(str(e))

        request = await self.add(StudentRequest(
            **request_in.model_dump(),
            status=RequestStatus.PENDING,
            approval_workflow=[],
            approval_history=[],
        ))
        logger.info("Request created: id=%s, type=%s, student=%s",
                    request.id, request.request_type.value, student_id)
        return await self._start_workflow(request)

    @service_operation("initialize_workflow", "Workflow initialized.")
    async def initialize_workflow(self, request_id: UUID) -> WorkflowInitialized:
        request = await self._get_request(request_id, for_update=True)
        return await self._start_workflow(request)

    @service_operation("approve_request", "Request approved.")
    async def approve(self, request_id: UUID, approver_id: UUID, comments: Optional[str] = None) -> ApprovalOutcome:
        request = await self._get_request(request_id, for_update=True)
        self._check_can_act(request, approver_id, "approve", "approved")

        steps = _steps(request)
        history = _history(request)

        # Steps before len(history) are already approved
        current_index = next(
            (i for i in range(len(history), len(steps)) if steps[i].approver_id == approver_id),
            None,
        )
        if current_index is None:
            raise StaleRequestState(request.id)

        history.append(HistoryEntry(
            approver_id=approver_id,
            action=ApprovalAction.APPROVED,
            comments=comments,
            timestamp=self.clock.now(),
        ))

        next_step = steps[current_index + 1] if current_index + 1 < len(steps) else None
        if next_step is not None:
            await self._apply_transition(
                request, approver_id,
                approval_history=_dump(history),
                current_approver_id=next_step.approver_id,
            )
            logger.info(
                "Request %s advanced: step %d/%d approved by %s, next approver %s",
                request.id, current_index + 1, len(steps), approver_id, next_step.approver_id,
            )
            return ApprovalOutcome(
                request=StudentRequestRead.model_validate(request),
                final_approval=False,
                next_step=next_step.step_name,
                next_approver_id=next_step.approver_id,
                next_approver_name=next_step.approver_name,
            )

        await self._apply_transition(
            request, approver_id,
            approval_history=_dump(history),
            status=RequestStatus.APPROVED,
            current_approver_id=None,
        )
        handler = self.registry.handler_for(request.request_type)
        await handler(self.db, request)

        logger.info("Request %s approved (final step by %s)", request.id, approver_id)
        return ApprovalOutcome(request=StudentRequestRead.model_validate(request), final_approval=True)

    @service_operation("reject_request", "Request rejected.")
    async def reject(
        self,
        request_id: UUID,
        approver_id: UUID,
        reason: str,
        comments: Optional[str] = None,
    ) -> RejectionOutcome:
        request = await self._get_request(request_id, for_update=True)
        self._check_can_act(request, approver_id, "reject", "rejected")

        history = _history(request)
        history.append(HistoryEntry(
            approver_id=approver_id,
            action=ApprovalAction.REJECTED,
            comments=comments,
            timestamp=self.clock.now(),
        ))
        await self._apply_transition(
            request, approver_id,
            approval_history=_dump(history),
            status=RequestStatus.REJECTED,
            current_approver_id=None,
            rejection_reason=reason,
        )

        logger.info("Request %s rejected by %s", request.id, approver_id)
        return RejectionOutcome(request=StudentRequestRead.model_validate(request))

    @read_operation("get_workflow_details")
    async def get_workflow_details(self, request_id: UUID) -> WorkflowDetails:
        request = await self._get_request(request_id)
        history = _history(request)

        details = []
        for step in _steps(request):
            entry = next((h for h in history if h.approver_id == step.approver_id), None)
            if entry is not None:
                status = StepStatus(entry.action.value)
            elif request.current_approver_id == step.approver_id:
                status = StepStatus.IN_REVIEW
            elif request.status == RequestStatus.REJECTED:
                status = StepStatus.SKIPPED
            else:
                status = StepStatus.PENDING

            details.append(WorkflowStepDetail(
                step_name=step.step_name,
                approver_name=step.approver_name,
                approver_id=step.approver_id,
                description=step.description,
                status=status,
                comments=entry.comments if entry else None,
                timestamp=entry.timestamp if entry else None,
                is_current_step=request.current_approver_id == step.approver_id,
            ))

        return WorkflowDetails(
            request_id=request.id,
            request_type=request.request_type,
            status=request.status,
            current_approver_id=request.current_approver_id,
            rejection_reason=request.rejection_reason,
            workflow=details,
        )
