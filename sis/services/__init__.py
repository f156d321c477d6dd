from .base_service import BaseService
from .workflow_registry import WorkflowRegistry, ApproverDirectory, StaticApproverDirectory, default_registry
from .workflow_service import WorkflowService
from .course_registration_service import CourseRegistrationService
from .waitlist_service import WaitlistService
from .financial_service import FinancialService
from .grading_service import GradingService
