"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-17 09:00:00
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "request_type",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("has_fulfillment", sa.Boolean(), nullable=False),
        sa.Column("approval_steps", sa.JSON(), nullable=True),
        sa.Column("is_published", sa.Boolean(), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("certificate_template_id", sa.Uuid(), nullable=True),
        sa.Column("created_by", sa.Uuid(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("name", name="uq_request_type_name"),
    )
    op.create_index("ix_request_type_is_published", "request_type", ["is_published"])

    op.create_table(
        "request_submission",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "request_type_id",
            sa.Uuid(),
            sa.ForeignKey("request_type.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("requester_id", sa.Uuid(), nullable=False),
        sa.Column("reference_code", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=20), server_default="pending", nullable=False),
        sa.Column("current_step_index", sa.Integer(), nullable=True),
        sa.Column("approval_state", sa.JSON(), nullable=True),
        sa.Column("answers", sa.JSON(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("fulfilled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("certificate_path", sa.String(length=500), nullable=True),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("reference_code", name="uq_submission_reference_code"),
    )
    op.create_index("ix_request_submission_request_type_id", "request_submission", ["request_type_id"])
    op.create_index("ix_request_submission_requester_id", "request_submission", ["requester_id"])
    op.create_index("ix_request_submission_status", "request_submission", ["status"])
    op.create_index("ix_submission_requester_status", "request_submission", ["requester_id", "status"])

    op.create_table(
        "request_approval_action",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "submission_id",
            sa.Uuid(),
            sa.ForeignKey("request_submission.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("step_index", sa.Integer(), nullable=False),
        sa.Column("approver_id", sa.Uuid(), nullable=False),
        sa.Column("approver_type", sa.String(length=20), nullable=False),
        sa.Column("approver_role_id", sa.Uuid(), nullable=True),
        sa.Column("approver_position_id", sa.Uuid(), nullable=True),
        sa.Column("status", sa.String(length=20), server_default="pending", nullable=False),
        sa.Column("acted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "submission_id", "step_index", "approver_id", name="uq_action_submission_step_approver"
        ),
    )
    op.create_index("ix_request_approval_action_submission_id", "request_approval_action", ["submission_id"])
    op.create_index("ix_action_approver_status", "request_approval_action", ["approver_id", "status"])

    op.create_table(
        "request_fulfillment",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "submission_id",
            sa.Uuid(),
            sa.ForeignKey("request_submission.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("fulfilled_by", sa.Uuid(), nullable=False),
        sa.Column("file_path", sa.String(length=500), nullable=False),
        sa.Column("original_filename", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("submission_id", name="uq_fulfillment_submission"),
    )

    op.create_table(
        "leave_type",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("max_days_per_request", sa.Integer(), nullable=True),
        sa.Column("max_days_per_year", sa.Integer(), nullable=True),
        sa.Column("min_notice_days", sa.Integer(), nullable=False),
        sa.Column("is_paid", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("code", name="uq_leave_type_code"),
    )
    op.create_index("ix_leave_type_is_active", "leave_type", ["is_active"])

    op.create_table(
        "leave_balance",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("employee_id", sa.Uuid(), nullable=False),
        sa.Column("leave_type_id", sa.Uuid(), sa.ForeignKey("leave_type.id", ondelete="CASCADE"), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("entitled", sa.Numeric(8, 2), nullable=False),
        sa.Column("accrued", sa.Numeric(8, 2), nullable=False),
        sa.Column("carried_over", sa.Numeric(8, 2), nullable=False),
        sa.Column("used", sa.Numeric(8, 2), nullable=False),
        sa.Column("pending", sa.Numeric(8, 2), nullable=False),
        sa.Column("balance", sa.Numeric(8, 2), nullable=False),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("employee_id", "leave_type_id", "year", name="uq_leave_balance_employee_type_year"),
    )
    op.create_index("ix_leave_balance_employee_year", "leave_balance", ["employee_id", "year"])

    op.create_table(
        "leave_request",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "request_submission_id",
            sa.Uuid(),
            sa.ForeignKey("request_submission.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("employee_id", sa.Uuid(), nullable=False),
        sa.Column("leave_type_id", sa.Uuid(), sa.ForeignKey("leave_type.id", ondelete="CASCADE"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("days", sa.Numeric(5, 2), nullable=False),
        sa.Column("reason", sa.String(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_by", sa.Uuid(), nullable=True),
        sa.Column("rejection_reason", sa.String(), nullable=True),
        sa.Column("rejected_by", sa.Uuid(), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("request_submission_id", name="uq_leave_request_submission"),
    )
    op.create_index("ix_leave_request_leave_type_id", "leave_request", ["leave_type_id"])
    op.create_index("ix_leave_request_employee_status", "leave_request", ["employee_id", "status"])
    op.create_index("ix_leave_request_dates", "leave_request", ["start_date", "end_date"])

    op.create_table(
        "leave_accrual",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("employee_id", sa.Uuid(), nullable=False),
        sa.Column("leave_type_id", sa.Uuid(), sa.ForeignKey("leave_type.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount", sa.Numeric(8, 2), nullable=False),
        sa.Column("accrual_date", sa.Date(), nullable=False),
        sa.Column("accrual_type", sa.String(length=50), nullable=False),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("created_by", sa.Uuid(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_leave_accrual_leave_type_id", "leave_accrual", ["leave_type_id"])
    op.create_index("ix_leave_accrual_employee_date", "leave_accrual", ["employee_id", "accrual_date"])

    op.create_table(
        "holiday",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("is_recurring", sa.Boolean(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.UniqueConstraint("date", "type", name="uq_holiday_date_type"),
    )
    op.create_index("ix_holiday_date", "holiday", ["date"])

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("actor_id", sa.Uuid(), nullable=True),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("field", sa.String(length=100), nullable=True),
        sa.Column("old_value", sa.JSON(), nullable=True),
        sa.Column("new_value", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_entity", "audit_log", ["entity_type", "entity_id"])
    op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"])


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("holiday")
    op.drop_table("leave_accrual")
    op.drop_table("leave_request")
    op.drop_table("leave_balance")
    op.drop_table("leave_type")
    op.drop_table("request_fulfillment")
    op.drop_table("request_approval_action")
    op.drop_table("request_submission")
    op.drop_table("request_type")
