"""Import all models here, needed for Alembic migrations and create_all."""
from .base import Base

from .course import Course, CoursePrerequisite, CourseWaitlist
from .enrollment import Enrollment, EnrollmentStatus
from .financial import (
    FinancialRecord, FinancialStatus, TransactionType,
    PaymentPlan, PaymentPlanStatus, PaymentPlanInstallment, InstallmentStatus
)
from .student_request import StudentRequest, RequestStatus, RequestType

__all__ = [
    "Base",
    "Course",
    "CoursePrerequisite",
    "CourseWaitlist",
    "Enrollment",
    "EnrollmentStatus",
    "FinancialRecord",
    "FinancialStatus",
    "TransactionType",
    "PaymentPlan",
    "PaymentPlanStatus",
    "PaymentPlanInstallment",
    "InstallmentStatus",
    "StudentRequest",
    "RequestStatus",
    "RequestType",
]
