"""SIS core schema: courses, enrollments, waitlists, financial records, requests

Revision ID: 0001_sis_core_schema
Revises:
Create Date: 2025-01-06 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001_sis_core_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _base_columns():
    return [
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False),
    ]


def _base_indexes(table: str) -> None:
    op.create_index(f'ix_{table}_id', table, ['id'])
    op.create_index(f'ix_{table}_is_deleted', table, ['is_deleted'])


def upgrade() -> None:
    # Enums are stored as plain strings (native_enum=False)

    op.create_table('courses',
        *_base_columns(),
        sa.Column('code', sa.String(length=20), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('credits', sa.Integer(), nullable=False),
        sa.Column('semester', sa.String(length=20), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.Column('enrolled_count', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('registration_start', sa.DateTime(), nullable=True),
        sa.Column('registration_end', sa.DateTime(), nullable=True),
        sa.Column('tuition_per_credit', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('location', sa.String(length=100), nullable=True),
        sa.Column('meeting_days', sa.String(length=7), nullable=True),
        sa.Column('start_time', sa.Time(), nullable=True),
        sa.Column('end_time', sa.Time(), nullable=True),
        sa.CheckConstraint('capacity >= 0', name='ck_courses_capacity_non_negative'),
        sa.CheckConstraint(
            'enrolled_count >= 0 AND enrolled_count <= capacity',
            name='ck_courses_enrolled_within_capacity',
        ),
        sa.PrimaryKeyConstraint('id'),
    )
    _base_indexes('courses')
    op.create_index('ix_courses_code', 'courses', ['code'])
    op.create_index('ix_courses_semester', 'courses', ['semester'])

    op.create_table('course_prerequisites',
        *_base_columns(),
        sa.Column('course_id', sa.Uuid(), nullable=False),
        sa.Column('prerequisite_id', sa.Uuid(), nullable=False),
        sa.Column('min_grade', sa.String(length=2), nullable=False),
        sa.ForeignKeyConstraint(['course_id'], ['courses.id']),
        sa.ForeignKeyConstraint(['prerequisite_id'], ['courses.id']),
        sa.UniqueConstraint('course_id', 'prerequisite_id', name='uq_course_prerequisite'),
        sa.PrimaryKeyConstraint('id'),
    )
    _base_indexes('course_prerequisites')
    op.create_index('ix_course_prerequisites_course_id', 'course_prerequisites', ['course_id'])

    op.create_table('course_waitlists',
        *_base_columns(),
        sa.Column('course_id', sa.Uuid(), nullable=False),
        sa.Column('student_id', sa.Uuid(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('joined_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['course_id'], ['courses.id']),
        sa.UniqueConstraint('course_id', 'student_id', name='uq_waitlist_course_student'),
        sa.PrimaryKeyConstraint('id'),
    )
    _base_indexes('course_waitlists')
    op.create_index('ix_course_waitlists_student_id', 'course_waitlists', ['student_id'])
    op.create_index('ix_waitlist_course_position', 'course_waitlists', ['course_id', 'position'])

    op.create_table('enrollments',
        *_base_columns(),
        sa.Column('student_id', sa.Uuid(), nullable=False),
        sa.Column('course_id', sa.Uuid(), nullable=False),
        sa.Column('enrollment_date', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('grade', sa.String(length=2), nullable=True),
        sa.Column('dropped_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['course_id'], ['courses.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    _base_indexes('enrollments')
    op.create_index('ix_enrollments_student_id', 'enrollments', ['student_id'])
    op.create_index('ix_enrollments_course_id', 'enrollments', ['course_id'])
    op.create_index(
        'uq_enrollments_active_student_course', 'enrollments', ['student_id', 'course_id'],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )

    op.create_table('financial_records',
        *_base_columns(),
        sa.Column('student_id', sa.Uuid(), nullable=False),
        sa.Column('transaction_type', sa.String(length=20), nullable=False),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('reference_type', sa.String(length=50), nullable=True),
        sa.Column('reference_id', sa.Uuid(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('due_date', sa.DateTime(), nullable=True),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('payment_method', sa.String(length=30), nullable=True),
        sa.Column('transaction_id', sa.String(length=100), nullable=True),
        sa.CheckConstraint('amount >= 0', name='ck_financial_records_amount_non_negative'),
        sa.PrimaryKeyConstraint('id'),
    )
    _base_indexes('financial_records')
    op.create_index('ix_financial_records_student_id', 'financial_records', ['student_id'])
    op.create_index('ix_financial_records_status', 'financial_records', ['status'])
    op.create_index('ix_financial_records_reference_id', 'financial_records', ['reference_id'])

    op.create_table('payment_plans',
        *_base_columns(),
        sa.Column('student_id', sa.Uuid(), nullable=False),
        sa.Column('semester', sa.String(length=20), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('number_of_installments', sa.Integer(), nullable=False),
        sa.Column('installment_amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.UniqueConstraint('student_id', 'semester', name='uq_payment_plan_student_semester'),
        sa.PrimaryKeyConstraint('id'),
    )
    _base_indexes('payment_plans')
    op.create_index('ix_payment_plans_student_id', 'payment_plans', ['student_id'])

    op.create_table('payment_plan_installments',
        *_base_columns(),
        sa.Column('payment_plan_id', sa.Uuid(), nullable=False),
        sa.Column('installment_number', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('paid_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('payment_method', sa.String(length=30), nullable=True),
        sa.Column('transaction_id', sa.String(length=100), nullable=True),
        sa.ForeignKeyConstraint(['payment_plan_id'], ['payment_plans.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    _base_indexes('payment_plan_installments')
    op.create_index(
        'ix_payment_plan_installments_payment_plan_id', 'payment_plan_installments', ['payment_plan_id']
    )

    op.create_table('student_requests',
        *_base_columns(),
        sa.Column('student_id', sa.Uuid(), nullable=False),
        sa.Column('request_type', sa.String(length=30), nullable=False),
        sa.Column('reference_type', sa.String(length=50), nullable=True),
        sa.Column('reference_id', sa.Uuid(), nullable=True),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('approval_workflow', sa.JSON(), nullable=False),
        sa.Column('approval_history', sa.JSON(), nullable=False),
        sa.Column('current_approver_id', sa.Uuid(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    _base_indexes('student_requests')
    op.create_index('ix_student_requests_student_id', 'student_requests', ['student_id'])
    op.create_index('ix_student_requests_status', 'student_requests', ['status'])
    op.create_index('ix_student_requests_current_approver_id', 'student_requests', ['current_approver_id'])


def downgrade() -> None:
    op.drop_table('student_requests')
    op.drop_table('payment_plan_installments')
    op.drop_table('payment_plans')
    op.drop_table('financial_records')
    op.drop_index('uq_enrollments_active_student_course', table_name='enrollments')
    op.drop_table('enrollments')
    op.drop_table('course_waitlists')
    op.drop_table('course_prerequisites')
    op.drop_table('courses')
