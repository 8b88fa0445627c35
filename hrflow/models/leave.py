# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from hrflow.models.base import TimestampMixin, UUIDBase, VersionedMixin
from hrflow.models.enums import LeaveRequestStatus

_ZERO = Decimal("0")


class LeaveType(UUIDBase, TimestampMixin, table=True):
    """A kind of leave (vacation, sick, ...) with its request limits."""

    __tablename__ = "leave_type"
    __table_args__ = (sa.UniqueConstraint("code", name="uq_leave_type_code"),)

    name: str = Field(max_length=255)
    code: str = Field(max_length=20)
    description: str | None = None
    max_days_per_request: int | None = Field(default=None, ge=1)
    max_days_per_year: int | None = Field(default=None, ge=1)
    min_notice_days: int = Field(default=0, ge=0)
    is_paid: bool = True
    is_active: bool = Field(default=True, index=True)
    sort_order: int = 0


class LeaveBalance(UUIDBase, TimestampMixin, VersionedMixin, table=True):
    """Running per-year totals for one employee and leave type.

    ``balance`` is derived (entitled + accrued + carried_over - used - pending) and is
    recomputed by the ledger under the same row lock as any summand change.
    """

    __tablename__ = "leave_balance"
    __table_args__ = (
        sa.UniqueConstraint("employee_id", "leave_type_id", "year", name="uq_leave_balance_employee_type_year"),
        sa.Index("ix_leave_balance_employee_year", "employee_id", "year"),
    )

    employee_id: uuid.UUID
    leave_type_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id", ondelete="CASCADE"), nullable=False),
    )
    year: int
    entitled: Decimal = Field(default=_ZERO, sa_type=sa.Numeric(8, 2))
    accrued: Decimal = Field(default=_ZERO, sa_type=sa.Numeric(8, 2))
    carried_over: Decimal = Field(default=_ZERO, sa_type=sa.Numeric(8, 2))
    used: Decimal = Field(default=_ZERO, sa_type=sa.Numeric(8, 2))
    pending: Decimal = Field(default=_ZERO, sa_type=sa.Numeric(8, 2))
    balance: Decimal = Field(default=_ZERO, sa_type=sa.Numeric(8, 2))


class LeaveRequest(UUIDBase, TimestampMixin, table=True):
    """Historical snapshot of an approved (or later rejected) leave submission."""

    __tablename__ = "leave_request"
    __table_args__ = (
        sa.UniqueConstraint("request_submission_id", name="uq_leave_request_submission"),
        sa.Index("ix_leave_request_employee_status", "employee_id", "status"),
        sa.Index("ix_leave_request_dates", "start_date", "end_date"),
    )

    request_submission_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("request_submission.id", ondelete="CASCADE"), nullable=False),
    )
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id", ondelete="CASCADE"), nullable=False, index=True),
    )
    start_date: date
    end_date: date
    days: Decimal = Field(sa_type=sa.Numeric(5, 2))
    reason: str | None = None
    status: str = Field(default=LeaveRequestStatus.PENDING, max_length=20)
    approved_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    approved_by: uuid.UUID | None = None
    rejection_reason: str | None = None
    rejected_by: uuid.UUID | None = None
    rejected_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]


class LeaveAccrual(UUIDBase, TimestampMixin, table=True):
    """A credit of leave days posted against an employee's balance."""

    __tablename__ = "leave_accrual"
    __table_args__ = (sa.Index("ix_leave_accrual_employee_date", "employee_id", "accrual_date"),)

    employee_id: uuid.UUID
    leave_type_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id", ondelete="CASCADE"), nullable=False, index=True),
    )
    amount: Decimal = Field(sa_type=sa.Numeric(8, 2))
    accrual_date: date
    accrual_type: str = Field(max_length=50)
    notes: str | None = None
    created_by: uuid.UUID | None = None
