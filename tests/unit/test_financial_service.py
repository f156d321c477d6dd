"""Unit tests for tuition, refunds, payments, payment plans and holds."""
from datetime import date, datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from sis.core.exceptions import ErrorKind
from sis.models import Course, FinancialStatus, PaymentPlan, PaymentPlanStatus, TransactionType
from sis.services.financial_service import FinancialService, calculate_tuition, refund_tier

SCHEDULE = [
    (7, Decimal("1.00")),
    (14, Decimal("0.75")),
    (21, Decimal("0.50")),
    (28, Decimal("0.25")),
]
REGISTRATION_END = datetime(2025, 1, 10)


@pytest.fixture
def financial_service(db_session, clock, test_settings):
    return FinancialService(db_session, clock=clock, settings=test_settings)


class TestRefundTier:

    @pytest.mark.parametrize("days, expected", [
        (0, Decimal("1.00")),
        (5, Decimal("1.00")),
        (7, Decimal("1.00")),
        (10, Decimal("0.75")),
        (20, Decimal("0.50")),
        (28, Decimal("0.25")),
        (29, Decimal("0.00")),
        (60, Decimal("0.00")),
    ])
    def test_tiers(self, days, expected):
        fraction, days_after = refund_tier(REGISTRATION_END, REGISTRATION_END + timedelta(days=days), SCHEDULE)

        assert fraction == expected
        assert days_after == days

    def test_tier_boundary_is_inclusive(self):
        just_after = REGISTRATION_END + timedelta(days=7, minutes=1)

        assert refund_tier(REGISTRATION_END, just_after, SCHEDULE)[0] == Decimal("0.75")

    def test_drop_before_registration_ends(self):
        fraction, _ = refund_tier(REGISTRATION_END, datetime(2025, 1, 8), SCHEDULE)

        assert fraction == Decimal("1.00")

    def test_missing_registration_end_refunds_fully(self):
        assert refund_tier(None, datetime(2025, 6, 1), SCHEDULE) == (Decimal("1.00"), 0)


def test_calculate_tuition():
    course = Course(credits=3, tuition_per_credit=Decimal("412.35"))

    assert calculate_tuition(course) == Decimal("1237.05")


class TestProcessPayment:

    @pytest.mark.asyncio
    async def test_exact_payment(self, financial_service, make_financial_record, student_id, clock):
        record = await make_financial_record(student_id, amount=Decimal("250.00"))

        result = await financial_service.process_payment(record.id, "card", Decimal("250.00"), "txn-1")

        assert result.success, result.error
        assert result.data.record.status == FinancialStatus.COMPLETED
        assert result.data.record.paid_at == clock.now()
        assert result.data.credit == Decimal("0.00")
        assert result.data.credit_record is None
        receipt = result.data.receipt
        assert receipt.receipt_number == f"RCPT-20250106090000-{record.id.hex[:8].upper()}"
        assert receipt.transaction_id == "txn-1"

    @pytest.mark.asyncio
    async def test_overpayment_creates_credit(self, financial_service, make_financial_record, student_id):
        record = await make_financial_record(student_id, amount=Decimal("250.00"))

        result = await financial_service.process_payment(record.id, "bank_transfer", Decimal("300.00"))

        assert result.data.credit == Decimal("50.00")
        credit = result.data.credit_record
        assert credit.transaction_type == TransactionType.CREDIT
        assert credit.status == FinancialStatus.COMPLETED
        assert credit.amount == Decimal("50.00")
        assert credit.reference_id == record.id

    @pytest.mark.asyncio
    async def test_insufficient_payment(self, financial_service, make_financial_record, student_id):
        record = await make_financial_record(student_id, amount=Decimal("250.00"))

        result = await financial_service.process_payment(record.id, "card", Decimal("249.99"))

        assert result.code == "insufficient_payment"
        assert result.error.details == {"required": "250.00", "offered": "249.99"}

    @pytest.mark.asyncio
    async def test_already_paid(self, financial_service, make_financial_record, student_id):
        record = await make_financial_record(student_id, status=FinancialStatus.COMPLETED)

        result = await financial_service.process_payment(record.id, "card", Decimal("100.00"))

        assert result.code == "already_paid"
        assert result.kind == ErrorKind.STATE_CONFLICT

    @pytest.mark.asyncio
    async def test_cancelled_record_is_not_payable(self, financial_service, make_financial_record, student_id):
        record = await make_financial_record(student_id, status=FinancialStatus.CANCELLED)

        result = await financial_service.process_payment(record.id, "card", Decimal("100.00"))

        assert result.code == "payment_not_allowed"

    @pytest.mark.asyncio
    async def test_failed_record_can_be_retried(self, financial_service, make_financial_record, student_id):
        record = await make_financial_record(student_id, status=FinancialStatus.FAILED)

        result = await financial_service.process_payment(record.id, "card", Decimal("100.00"))

        assert result.success

    @pytest.mark.asyncio
    async def test_non_positive_amount(self, financial_service, make_financial_record, student_id):
        record = await make_financial_record(student_id)

        result = await financial_service.process_payment(record.id, "card", Decimal("0"))

        assert result.kind == ErrorKind.VALIDATION_FAILURE

    @pytest.mark.asyncio
    async def test_unknown_record(self, financial_service):
        result = await financial_service.process_payment(uuid4(), "card", Decimal("10.00"))

        assert result.code == "financial_record_not_found"


class TestPaymentPlans:

    @pytest.mark.asyncio
    async def test_installments_absorb_rounding(self, financial_service, student_id):
        result = await financial_service.create_payment_plan(
            student_id, "2025S", Decimal("1000.00"), 3, date(2025, 1, 31),
        )

        assert result.success, result.error
        plan = result.data
        assert plan.installment_amount == Decimal("333.33")
        assert [i.amount for i in plan.installments] == [
            Decimal("333.33"), Decimal("333.33"), Decimal("333.34"),
        ]
        assert sum(i.amount for i in plan.installments) == Decimal("1000.00")
        assert [i.due_date for i in plan.installments] == [
            date(2025, 1, 31), date(2025, 2, 28), date(2025, 3, 31),
        ]

    @pytest.mark.asyncio
    async def test_one_plan_per_semester(self, financial_service, student_id):
        await financial_service.create_payment_plan(student_id, "2025S", Decimal("900.00"), 3, date(2025, 2, 1))

        result = await financial_service.create_payment_plan(
            student_id, "2025S", Decimal("500.00"), 2, date(2025, 2, 1),
        )

        assert result.code == "payment_plan_exists"

    @pytest.mark.asyncio
    async def test_invalid_installment_count(self, financial_service, student_id):
        result = await financial_service.create_payment_plan(
            student_id, "2025S", Decimal("900.00"), 0, date(2025, 2, 1),
        )

        assert result.kind == ErrorKind.VALIDATION_FAILURE


class TestFinancialHolds:

    @pytest.mark.asyncio
    async def test_no_holds(self, financial_service, make_financial_record, student_id):
        await make_financial_record(student_id, due_date=datetime(2025, 3, 1))

        assert not await financial_service.has_financial_hold(student_id)
        result = await financial_service.check_financial_holds(student_id)
        assert result.success
        assert result.data == []

    @pytest.mark.asyncio
    async def test_overdue_record(self, financial_service, make_financial_record, student_id):
        record = await make_financial_record(student_id, due_date=datetime(2025, 1, 1, 9, 0))

        assert await financial_service.has_financial_hold(student_id)
        holds = (await financial_service.check_financial_holds(student_id)).data
        assert [(h.id, h.type, h.days_overdue) for h in holds] == [(record.id, "overdue_payment", 5)]

    @pytest.mark.asyncio
    async def test_paid_record_is_not_a_hold(self, financial_service, make_financial_record, student_id):
        await make_financial_record(
            student_id, due_date=datetime(2025, 1, 1), status=FinancialStatus.COMPLETED,
        )

        assert not await financial_service.has_financial_hold(student_id)

    @pytest.mark.asyncio
    async def test_overdue_installment_and_defaulted_plan(self, financial_service, db_session, student_id):
        await financial_service.create_payment_plan(
            student_id, "2024F", Decimal("600.00"), 3, date(2024, 12, 15),
        )
        created = await financial_service.create_payment_plan(
            student_id, "2025S", Decimal("400.00"), 2, date(2025, 2, 1),
        )
        plan = await db_session.get(PaymentPlan, created.data.id)
        plan.status = PaymentPlanStatus.DEFAULTED
        await db_session.commit()

        holds = (await financial_service.check_financial_holds(student_id)).data

        by_type = {h.type: h for h in holds}
        assert set(by_type) == {"defaulted_payment_plan", "overdue_installment"}
        assert by_type["defaulted_payment_plan"].amount == Decimal("400.00")
        assert by_type["overdue_installment"].due_date == date(2024, 12, 15)
        assert by_type["overdue_installment"].days_overdue == 22
