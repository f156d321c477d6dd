# sis/models/financial.py
import enum

from sqlalchemy import Column, String, Integer, Date, DateTime, Numeric, Text, Uuid, ForeignKey
from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import Base, enum_column


class TransactionType(str, enum.Enum):
    TUITION = "tuition"
    FEE = "fee"
    PAYMENT = "payment"
    REFUND = "refund"
    SCHOLARSHIP = "scholarship"
    CREDIT = "credit"


class FinancialStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class PaymentPlanStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    DEFAULTED = "defaulted"


class InstallmentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"


class FinancialRecord(Base):
    __tablename__ = "financial_records"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_financial_records_amount_non_negative"),
    )

    student_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    transaction_type = Column(enum_column(TransactionType, 20), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    status = Column(enum_column(FinancialStatus, 20), default=FinancialStatus.PENDING, nullable=False, index=True)

    # Originating entity, e.g. reference_type="enrollment"
    reference_type = Column(String(50))
    reference_id = Column(Uuid(as_uuid=True), index=True)

    description = Column(Text)
    due_date = Column(DateTime)
    paid_at = Column(DateTime)
    payment_method = Column(String(30))
    transaction_id = Column(String(100))


class PaymentPlan(Base):
    __tablename__ = "payment_plans"
    __table_args__ = (
        UniqueConstraint("student_id", "semester", name="uq_payment_plan_student_semester"),
    )

    student_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    semester = Column(String(20), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    number_of_installments = Column(Integer, nullable=False)
    installment_amount = Column(Numeric(10, 2), nullable=False)
    start_date = Column(Date, nullable=False)
    status = Column(enum_column(PaymentPlanStatus, 20), default=PaymentPlanStatus.ACTIVE, nullable=False)
    notes = Column(Text)

    installments = relationship(
        "PaymentPlanInstallment",
        back_populates="payment_plan",
        order_by="PaymentPlanInstallment.installment_number",
        cascade="all, delete-orphan",
    )


class PaymentPlanInstallment(Base):
    __tablename__ = "payment_plan_installments"

    payment_plan_id = Column(Uuid(as_uuid=True), ForeignKey("payment_plans.id"), nullable=False, index=True)
    installment_number = Column(Integer, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    due_date = Column(Date, nullable=False)
    paid_date = Column(Date)
    status = Column(enum_column(InstallmentStatus, 20), default=InstallmentStatus.PENDING, nullable=False)
    payment_method = Column(String(30))
    transaction_id = Column(String(100))

    payment_plan = relationship("PaymentPlan", back_populates="installments")
