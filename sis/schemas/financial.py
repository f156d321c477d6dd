# sis/schemas/financial.py
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.financial import (
    FinancialStatus, InstallmentStatus, PaymentPlanStatus, TransactionType
)


class FinancialRecordRead(BaseModel):
    id: UUID
    student_id: UUID
    transaction_type: TransactionType
    amount: Decimal
    status: FinancialStatus
    reference_type: Optional[str] = None
    reference_id: Optional[UUID] = None
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None

    model_config = {"from_attributes": True}


class PaymentRequest(BaseModel):
    payment_method: str = Field(..., min_length=1, max_length=30)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    transaction_id: Optional[str] = Field(default=None, max_length=100)


class Receipt(BaseModel):
    receipt_number: str
    record_id: UUID
    payment_method: str
    amount: Decimal
    transaction_id: Optional[str] = None
    payment_date: datetime


class PaymentOutcome(BaseModel):
    record: FinancialRecordRead
    credit: Decimal = Decimal("0.00")
    credit_record: Optional[FinancialRecordRead] = None
    receipt: Receipt


class HoldItem(BaseModel):
    id: UUID
    type: str  # overdue_payment, defaulted_payment_plan, overdue_installment
    description: str
    amount: Decimal
    due_date: Optional[date] = None
    days_overdue: Optional[int] = None


class PaymentPlanCreate(BaseModel):
    student_id: UUID
    semester: str = Field(..., min_length=1, max_length=20)
    total_amount: Decimal = Field(..., gt=0, decimal_places=2)
    number_of_installments: int = Field(..., ge=1, le=24)
    start_date: date


class InstallmentRead(BaseModel):
    id: UUID
    installment_number: int
    amount: Decimal
    due_date: date
    paid_date: Optional[date] = None
    status: InstallmentStatus

    model_config = {"from_attributes": True}


class PaymentPlanRead(BaseModel):
    id: UUID
    student_id: UUID
    semester: str
    total_amount: Decimal
    number_of_installments: int
    installment_amount: Decimal
    start_date: date
    status: PaymentPlanStatus
    installments: List[InstallmentRead] = Field(default_factory=list)

    model_config = {"from_attributes": True}
