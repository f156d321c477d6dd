# sis/core/exceptions.py
"""Custom exceptions for the SIS core.

Services raise these internally; the ``service_operation`` decorator turns
them into typed ``ServiceResult`` failures at the operation boundary, so no
exception crosses into the calling layer.
"""
import enum
from typing import Any, Dict, List, Optional


class ErrorKind(str, enum.Enum):
    VALIDATION_FAILURE = "validation_failure"
    STATE_CONFLICT = "state_conflict"
    NOT_AUTHORIZED = "not_authorized"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    PRECONDITION_NOT_MET = "precondition_not_met"
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"
    INTERNAL = "internal"


class SISException(Exception):
    """Base exception for the SIS core."""
    kind: ErrorKind = ErrorKind.VALIDATION_FAILURE
    status_code: int = 400
    code: str = "sis_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


# Kind bases

class ValidationFailure(SISException):
    """Malformed input."""
    kind = ErrorKind.VALIDATION_FAILURE
    status_code = 422
    code = "validation_failure"

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, details)


class StateConflict(SISException):
    kind = ErrorKind.STATE_CONFLICT
    status_code = 409
    code = "state_conflict"


class NotAuthorized(SISException):
    kind = ErrorKind.NOT_AUTHORIZED
    status_code = 403
    code = "not_authorized"


class CapacityExceeded(SISException):
    kind = ErrorKind.CAPACITY_EXCEEDED
    status_code = 409
    code = "capacity_exceeded"


class PreconditionNotMet(SISException):
    kind = ErrorKind.PRECONDITION_NOT_MET
    status_code = 422
    code = "precondition_not_met"


class NotFound(SISException):
    kind = ErrorKind.NOT_FOUND
    status_code = 404
    code = "not_found"

    def __init__(self, resource: str, id: Any = None):
        message = f"{resource} not found"
        if id is not None:
            message += f" with id: {id}"
        super().__init__(message, {"resource": resource, "id": str(id) if id is not None else None})


class TransientError(SISException):
    """Storage failure; the whole operation was rolled back and may be retried."""
    kind = ErrorKind.TRANSIENT
    status_code = 503
    code = "transient"


class InternalError(SISException):
    """Unexpected failure inside an operation; the whole operation was rolled back."""
    kind = ErrorKind.INTERNAL
    status_code = 500
    code = "internal_error"


# Workflow

class NotInReview(StateConflict):
    code = "not_in_review"

    def __init__(self, action: str, status: str):
        super().__init__(
            f"This request cannot be {action} because it is not currently in review.",
            {"status": status},
        )


class StaleRequestState(StateConflict):
    """A concurrent approve/reject changed the request first."""
    code = "stale_request_state"

    def __init__(self, request_id: Any):
        super().__init__(
            "The request was updated by another approver. Reload and try again.",
            {"request_id": str(request_id)},
        )


class NoWorkflowDefined(PreconditionNotMet):
    code = "no_workflow_defined"

    def __init__(self, request_type: str):
        super().__init__(
            "No workflow defined for this request type.",
            {"request_type": request_type},
        )


class ApproverNotConfigured(PreconditionNotMet):
    code = "approver_not_configured"

    def __init__(self, role: str):
        super().__init__(f"No approver configured for role '{role}'.", {"role": role})


# Registration and waitlist

class RegistrationClosed(PreconditionNotMet):
    code = "registration_closed"

    def __init__(self, details: Optional[Dict[str, Any]] = None):
        super().__init__("Course registration is not open at this time.", details)


class AlreadyEnrolled(StateConflict):
    code = "already_enrolled"

    def __init__(self):
        super().__init__("You are already enrolled in this course.")


class NotEnrolled(StateConflict):
    code = "not_enrolled"

    def __init__(self):
        super().__init__("You are not enrolled in this course.")


class CourseFull(CapacityExceeded):
    code = "course_full"

    def __init__(self, course_id: Any, capacity: int):
        super().__init__(
            "This course is full. Would you like to join the waitlist?",
            {"course_id": str(course_id), "capacity": capacity, "can_waitlist": True},
        )


class ScheduleConflict(PreconditionNotMet):
    code = "schedule_conflict"

    def __init__(self, conflicts: List[Dict[str, Any]]):
        super().__init__(
            "You have a schedule conflict with this course.",
            {"conflicts": conflicts},
        )


class PrerequisitesNotMet(PreconditionNotMet):
    code = "prerequisites_not_met"

    def __init__(self, missing: List[Dict[str, Any]]):
        super().__init__(
            "You have not met all the prerequisites for this course.",
            {"missing_prerequisites": missing},
        )


class FinancialHold(PreconditionNotMet):
    code = "financial_hold"

    def __init__(self, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            "You have a financial hold on your account. Please resolve any "
            "outstanding balances before registering for courses.",
            details,
        )


class AlreadyWaitlisted(StateConflict):
    code = "already_waitlisted"

    def __init__(self, position: int):
        super().__init__(
            "You are already on the waitlist for this course.",
            {"position": position},
        )


class NotOnWaitlist(StateConflict):
    code = "not_on_waitlist"

    def __init__(self):
        super().__init__("You are not on the waitlist for this course.")


class CourseNotFull(StateConflict):
    code = "course_not_full"

    def __init__(self):
        super().__init__("This course is not full. You can register directly.")


class WaitlistEmpty(PreconditionNotMet):
    code = "waitlist_empty"

    def __init__(self):
        super().__init__("No students on the waitlist.")


# Financial

class AlreadyPaid(StateConflict):
    code = "already_paid"

    def __init__(self):
        super().__init__("This record has already been paid.")


class PaymentNotAllowed(StateConflict):
    code = "payment_not_allowed"

    def __init__(self, status: str):
        super().__init__("This record is not eligible for payment.", {"status": status})


class InsufficientPayment(PreconditionNotMet):
    code = "insufficient_payment"

    def __init__(self, required: Any, offered: Any):
        super().__init__(
            "The payment amount is less than the required amount.",
            {"required": str(required), "offered": str(offered)},
        )


class PaymentPlanExists(StateConflict):
    code = "payment_plan_exists"

    def __init__(self, semester: str):
        super().__init__(
            "You already have a payment plan for this semester.",
            {"semester": semester},
        )


# Lookups

class CourseNotFound(NotFound):
    code = "course_not_found"

    def __init__(self, id: Any = None):
        super().__init__("Course", id)


class RequestNotFound(NotFound):
    code = "request_not_found"

    def __init__(self, id: Any = None):
        super().__init__("Student request", id)


class EnrollmentNotFound(NotFound):
    code = "enrollment_not_found"

    def __init__(self, id: Any = None):
        super().__init__("Enrollment", id)


class FinancialRecordNotFound(NotFound):
    code = "financial_record_not_found"

    def __init__(self, id: Any = None):
        super().__init__("Financial record", id)
