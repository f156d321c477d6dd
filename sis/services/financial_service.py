# sis/services/financial_service.py
"""Tuition charges, refunds, payments, payment plans and financial holds."""
import logging
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from dateutil.relativedelta import relativedelta
from sqlalchemy import select, or_

from ..core.exceptions import (
    AlreadyPaid, FinancialRecordNotFound, InsufficientPayment,
    PaymentNotAllowed, PaymentPlanExists, ValidationFailure
)
from ..models.course import Course
from ..models.enrollment import Enrollment
from ..models.financial import (
    FinancialRecord, FinancialStatus, TransactionType,
    PaymentPlan, PaymentPlanStatus, PaymentPlanInstallment, InstallmentStatus
)
from ..schemas.financial import (
    FinancialRecordRead, HoldItem, PaymentOutcome, PaymentPlanCreate,
    PaymentPlanRead, Receipt
)
from ..schemas.registration import RefundDecision
from .base_service import BaseService, read_operation, service_operation

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ENROLLMENT_REFERENCE = "enrollment"
FINANCIAL_RECORD_REFERENCE = "financial_record"


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_tuition(course: Course) -> Decimal:
    return to_money(Decimal(course.credits or 0) * Decimal(str(course.tuition_per_credit or 0)))


def refund_tier(
    registration_end: Optional[datetime],
    dropped_at: datetime,
    schedule: Sequence[Tuple[int, Decimal]],
) -> Tuple[Decimal, int]:
    """Refunded fraction for a drop, and whole days elapsed since registration_end.

    A drop on or before ``registration_end + days`` earns that tier's fraction;
    the first matching tier wins. Past the last tier nothing is refunded.
    """
    if registration_end is None:
        return Decimal("1.00"), 0
    days_after = (dropped_at - registration_end).days
    for days, fraction in schedule:
        if dropped_at <= registration_end + timedelta(days=days):
            return Decimal(str(fraction)), days_after
    return Decimal("0.00"), days_after


class FinancialService(BaseService[FinancialRecord]):
    def __init__(self, db, clock=None, settings=None):
        super().__init__(FinancialRecord, db, clock=clock, settings=settings)

    # -- registration side effects (run inside the caller's transaction) --

    async def create_tuition_charge(self, enrollment: Enrollment, course: Course) -> FinancialRecord:
        now = self.clock.now()
        record = FinancialRecord(
            student_id=enrollment.student_id,
            transaction_type=TransactionType.TUITION,
            reference_type=ENROLLMENT_REFERENCE,
            reference_id=enrollment.id,
            amount=calculate_tuition(course),
            status=FinancialStatus.PENDING,
            description=f"Tuition for {course.code} - {course.title}",
            due_date=now + timedelta(days=self.settings.tuition_due_days),
        )
        return await self.add(record)

    async def get_tuition_record(self, enrollment: Enrollment) -> Optional[FinancialRecord]:
        stmt = (
            select(FinancialRecord)
            .where(
                FinancialRecord.student_id == enrollment.student_id,
                FinancialRecord.transaction_type == TransactionType.TUITION,
                FinancialRecord.reference_type == ENROLLMENT_REFERENCE,
                FinancialRecord.reference_id == enrollment.id,
                FinancialRecord.is_deleted.is_(False),
            )
            .with_for_update()
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def settle_dropped_enrollment(self, enrollment: Enrollment, course: Course) -> RefundDecision:
        """Cancel unpaid tuition or refund paid tuition by the tier schedule."""
        now = self.clock.now()
        fraction, days_after = refund_tier(course.registration_end, now, self.settings.refund_schedule)
        tuition = await self.get_tuition_record(enrollment)

        if tuition is None:
            return RefundDecision(refund_percentage=fraction, days_after_registration_end=days_after, action="none")

        if tuition.status == FinancialStatus.PENDING:
            # Nothing was paid, so nothing is refunded
            tuition.status = FinancialStatus.CANCELLED
            await self.db.flush()
            return RefundDecision(
                refund_percentage=fraction,
                days_after_registration_end=days_after,
                action="cancelled",
                tuition_record_id=tuition.id,
            )

        if tuition.status != FinancialStatus.COMPLETED or fraction <= 0:
            return RefundDecision(
                refund_percentage=fraction,
                days_after_registration_end=days_after,
                action="none",
                tuition_record_id=tuition.id,
            )

        refund_amount = to_money(Decimal(str(tuition.amount)) * fraction)
        refund = await self.add(FinancialRecord(
            student_id=enrollment.student_id,
            transaction_type=TransactionType.REFUND,
            reference_type=ENROLLMENT_REFERENCE,
            reference_id=enrollment.id,
            amount=refund_amount,
            status=FinancialStatus.PENDING,
            description=(
                f"Refund for dropped course: {course.code} - {course.title} "
                f"({int(fraction * 100)}%)"
            ),
        ))
        return RefundDecision(
            refund_percentage=fraction,
            days_after_registration_end=days_after,
            action="refund_created",
            tuition_record_id=tuition.id,
            refund_amount=refund_amount,
            refund_record=FinancialRecordRead.model_validate(refund),
        )

    async def has_financial_hold(self, student_id: UUID) -> bool:
        stmt = select(FinancialRecord.id).where(
            FinancialRecord.student_id == student_id,
            FinancialRecord.status == FinancialStatus.PENDING,
            FinancialRecord.due_date < self.clock.now(),
            FinancialRecord.is_deleted.is_(False),
        ).limit(1)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    # -- public operations --

    @read_operation("check_financial_holds")
    async def check_financial_holds(self, student_id: UUID) -> List[HoldItem]:
        now = self.clock.now()
        holds: List[HoldItem] = []

        overdue = await self.db.execute(
            select(FinancialRecord).where(
                FinancialRecord.student_id == student_id,
                FinancialRecord.status == FinancialStatus.PENDING,
                FinancialRecord.due_date < now,
                FinancialRecord.is_deleted.is_(False),
            ).order_by(FinancialRecord.due_date)
        )
        for record in overdue.scalars().all():
            holds.append(HoldItem(
                id=record.id,
                type="overdue_payment",
                description=f"Overdue payment: {record.description or record.transaction_type.value}",
                amount=to_money(record.amount),
                due_date=record.due_date.date(),
                days_overdue=(now - record.due_date).days,
            ))

        defaulted = await self.db.execute(
            select(PaymentPlan).where(
                PaymentPlan.student_id == student_id,
                PaymentPlan.status == PaymentPlanStatus.DEFAULTED,
                PaymentPlan.is_deleted.is_(False),
            )
        )
        for plan in defaulted.scalars().all():
            holds.append(HoldItem(
                id=plan.id,
                type="defaulted_payment_plan",
                description=f"Defaulted payment plan for {plan.semester}",
                amount=await self._remaining_plan_amount(plan),
                due_date=plan.start_date,
            ))

        installments = await self.db.execute(
            select(PaymentPlanInstallment, PaymentPlan.semester)
            .join(PaymentPlan, PaymentPlan.id == PaymentPlanInstallment.payment_plan_id)
            .where(
                PaymentPlan.student_id == student_id,
                PaymentPlanInstallment.is_deleted.is_(False),
                or_(
                    PaymentPlanInstallment.status == InstallmentStatus.OVERDUE,
                    (PaymentPlanInstallment.status == InstallmentStatus.PENDING)
                    & (PaymentPlanInstallment.due_date < now.date()),
                ),
            )
            .order_by(PaymentPlanInstallment.due_date)
        )
        for installment, semester in installments.all():
            holds.append(HoldItem(
                id=installment.id,
                type="overdue_installment",
                description=f"Overdue installment #{installment.installment_number} for {semester}",
                amount=to_money(installment.amount),
                due_date=installment.due_date,
                days_overdue=(now.date() - installment.due_date).days,
            ))

        return holds

    async def _remaining_plan_amount(self, plan: PaymentPlan) -> Decimal:
        stmt = select(PaymentPlanInstallment.amount).where(
            PaymentPlanInstallment.payment_plan_id == plan.id,
            PaymentPlanInstallment.status == InstallmentStatus.PAID,
        )
        paid = sum((Decimal(str(a)) for a in (await self.db.execute(stmt)).scalars().all()), Decimal("0"))
        return to_money(Decimal(str(plan.total_amount)) - paid)

    @service_operation("process_payment", "Payment processed successfully.")
    async def process_payment(
        self,
        record_id: UUID,
        payment_method: str,
        amount: Decimal,
        transaction_id: Optional[str] = None,
    ) -> PaymentOutcome:
        amount = to_money(amount)
        if amount <= 0:
            raise ValidationFailure("Payment amount must be positive.", field="amount")

        record = await self.get(record_id, for_update=True)
        if record is None:
            raise FinancialRecordNotFound(record_id)
        if record.status == FinancialStatus.COMPLETED:
            raise AlreadyPaid()
        if record.status not in (FinancialStatus.PENDING, FinancialStatus.FAILED):
            raise PaymentNotAllowed(record.status.value)

        required = to_money(record.amount)
        if amount < required:
            raise InsufficientPayment(required, amount)

        now = self.clock.now()
        record.status = FinancialStatus.COMPLETED
        record.payment_method = payment_method
        record.transaction_id = transaction_id
        record.paid_at = now
        await self.db.flush()

        credit = amount - required
        credit_record = None
        if credit > 0:
            credit_record = await self.add(FinancialRecord(
                student_id=record.student_id,
                transaction_type=TransactionType.CREDIT,
                reference_type=FINANCIAL_RECORD_REFERENCE,
                reference_id=record.id,
                amount=credit,
                status=FinancialStatus.COMPLETED,
                description="Credit from overpayment",
                payment_method=payment_method,
                transaction_id=transaction_id,
                paid_at=now,
            ))

        logger.info("Payment processed: record=%s, amount=%s, credit=%s", record.id, amount, credit)
        return PaymentOutcome(
            record=FinancialRecordRead.model_validate(record),
            credit=credit,
            credit_record=FinancialRecordRead.model_validate(credit_record) if credit_record else None,
            receipt=Receipt(
                receipt_number=f"RCPT-{now:%Y%m%d%H%M%S}-{record.id.hex[:8].upper()}",
                record_id=record.id,
                payment_method=payment_method,
                amount=amount,
                transaction_id=transaction_id,
                payment_date=now,
            ),
        )

    @service_operation("create_payment_plan", "Payment plan created successfully.")
    async def create_payment_plan(
        self,
        student_id: UUID,
        semester: str,
        total_amount: Decimal,
        number_of_installments: int,
        start_date: date,
    ) -> PaymentPlanRead:
        # Reuse the schema's field rules for input validation
        try:
            plan_in = PaymentPlanCreate(
                student_id=student_id,
                semester=semester,
                total_amount=total_amount,
                number_of_installments=number_of_installments,
                start_date=start_date,
            )
        except ValueError as e:
            raise ValidationFailure(str(e))

        existing = await self.db.execute(
            select(PaymentPlan.id).where(
                PaymentPlan.student_id == plan_in.student_id,
                PaymentPlan.semester == plan_in.semester,
                PaymentPlan.is_deleted.is_(False),
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise PaymentPlanExists(plan_in.semester)

        total = to_money(plan_in.total_amount)
        count = plan_in.number_of_installments
        installment_amount = to_money(total / count)

        plan = PaymentPlan(
            student_id=plan_in.student_id,
            semester=plan_in.semester,
            total_amount=total,
            number_of_installments=count,
            installment_amount=installment_amount,
            start_date=plan_in.start_date,
            status=PaymentPlanStatus.ACTIVE,
        )
        for number in range(1, count + 1):
            amount = installment_amount
            if number == count:
                # Last installment absorbs the rounding remainder
                amount = total - installment_amount * (count - 1)
            plan.installments.append(PaymentPlanInstallment(
                installment_number=number,
                amount=amount,
                due_date=plan_in.start_date + relativedelta(months=number - 1),
                status=InstallmentStatus.PENDING,
            ))
        await self.add(plan)

        logger.info(
            "Created payment plan: student=%s, semester=%s, total=%s, installments=%d",
            student_id, semester, total, count,
        )
        return PaymentPlanRead.model_validate(plan)
