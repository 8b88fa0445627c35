# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from hrflow.models.enums import AccrualType, LeaveRequestStatus

# ---------------------------------------------------------------------------
# Leave types
# ---------------------------------------------------------------------------


class CreateLeaveTypePayload(BaseModel):
    """Request body for creating a leave type."""

    name: str = Field(min_length=1, max_length=255)
    code: str = Field(min_length=1, max_length=20, pattern=r"^[A-Z0-9_]+$")
    description: str | None = Field(default=None, max_length=1000)
    max_days_per_request: int | None = Field(default=None, ge=1)
    max_days_per_year: int | None = Field(default=None, ge=1)
    min_notice_days: int = Field(default=0, ge=0)
    is_paid: bool = True
    is_active: bool = True
    sort_order: int = 0


class LeaveTypeResponse(BaseModel):
    """Response schema for a leave type."""

    id: uuid.UUID
    name: str
    code: str
    description: str | None
    max_days_per_request: int | None
    max_days_per_year: int | None
    min_notice_days: int
    is_paid: bool
    is_active: bool
    sort_order: int


class LeaveTypeListResponse(BaseModel):
    """All leave types."""

    items: list[LeaveTypeResponse]
    total: int


# ---------------------------------------------------------------------------
# Balances
# ---------------------------------------------------------------------------


class LeaveBalanceResponse(BaseModel):
    """Per-year totals for one leave type."""

    leave_type_id: uuid.UUID
    leave_type_code: str
    leave_type_name: str
    year: int
    entitled: Decimal
    accrued: Decimal
    carried_over: Decimal
    used: Decimal
    pending: Decimal
    balance: Decimal


class LeaveBalanceListResponse(BaseModel):
    """All leave balances for an employee in one year."""

    employee_id: uuid.UUID
    year: int
    items: list[LeaveBalanceResponse]


class CreateAccrualPayload(BaseModel):
    """Request body for crediting leave days to an employee."""

    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    amount: Decimal = Field(gt=0, max_digits=8, decimal_places=2)
    accrual_type: AccrualType = AccrualType.MANUAL
    accrual_date: date | None = None
    notes: str | None = Field(default=None, max_length=1000)


class LeaveAccrualResponse(BaseModel):
    """A posted accrual and the balance it produced."""

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    amount: Decimal
    accrual_date: date
    accrual_type: AccrualType
    notes: str | None
    balance: LeaveBalanceResponse


# ---------------------------------------------------------------------------
# Leave requests
# ---------------------------------------------------------------------------


class LeaveRequestResponse(BaseModel):
    """Historical leave record."""

    id: uuid.UUID
    request_submission_id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    days: Decimal
    reason: str | None
    status: LeaveRequestStatus
    approved_at: datetime | None
    approved_by: uuid.UUID | None
    rejected_at: datetime | None
    rejected_by: uuid.UUID | None
    rejection_reason: str | None


class LeaveRequestListResponse(BaseModel):
    """Paginated leave history."""

    items: list[LeaveRequestResponse]
    total: int


class CalendarEntry(BaseModel):
    """Approved leave shown on the calendar."""

    leave_request_id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    leave_type_code: str
    leave_type_name: str
    start_date: date
    end_date: date
    days: Decimal
    reference_code: str | None


class CalendarResponse(BaseModel):
    """Approved leave overlapping a date window."""

    date_from: date
    date_to: date
    items: list[CalendarEntry]
