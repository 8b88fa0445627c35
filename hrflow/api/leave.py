# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Query, status

from hrflow.api.deps import AuthDep, ManagerDep
from hrflow.db import SessionDep
from hrflow.exceptions import AppError
from hrflow.models.base import now_utc
from hrflow.models.enums import LeaveRequestStatus
from hrflow.schemas.auth import AuthContext
from hrflow.schemas.leave import (
    CalendarResponse,
    CreateAccrualPayload,
    CreateLeaveTypePayload,
    LeaveAccrualResponse,
    LeaveBalanceListResponse,
    LeaveRequestListResponse,
    LeaveTypeListResponse,
    LeaveTypeResponse,
)
from hrflow.services import leave as leave_service
from hrflow.services import leave_balance
from hrflow.services.identity import get_identity_provider

leave_types_router = APIRouter(prefix="/leave-types", tags=["leave"])
employee_leave_router = APIRouter(prefix="/employees/{employee_id}", tags=["leave"])
leave_requests_router = APIRouter(prefix="/leave-requests", tags=["leave"])
accruals_router = APIRouter(prefix="/leave-accruals", tags=["leave"])


async def _require_self_or_manager(auth: AuthContext, employee_id: uuid.UUID) -> None:
    if auth.is_manager or auth.user_id == employee_id:
        return
    user = await get_identity_provider().get_user(auth.user_id)
    if user is None or user.employee_id != employee_id:
        raise AppError("Not authorized to view this employee's leave", status_code=status.HTTP_403_FORBIDDEN)


@leave_types_router.get("", response_model=LeaveTypeListResponse)
async def list_leave_types(
    session: SessionDep,
    auth: AuthDep,
    active_only: bool = Query(default=False),
) -> LeaveTypeListResponse:
    """List leave types."""
    return await leave_service.list_leave_types(session, active_only)


@leave_types_router.post("", response_model=LeaveTypeResponse, status_code=status.HTTP_201_CREATED)
async def create_leave_type(
    payload: CreateLeaveTypePayload,
    session: SessionDep,
    auth: ManagerDep,
) -> LeaveTypeResponse:
    """Create a leave type (manager only)."""
    return await leave_service.create_leave_type(session, auth, payload)


@employee_leave_router.get("/leave-balances", response_model=LeaveBalanceListResponse)
async def list_leave_balances(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    year: int | None = Query(default=None, ge=2000, le=2100),
) -> LeaveBalanceListResponse:
    """Balances for every active leave type in a year (defaults to the current year)."""
    await _require_self_or_manager(auth, employee_id)
    return await leave_balance.list_balances(session, employee_id, year or now_utc().year)


@employee_leave_router.get("/leave-requests", response_model=LeaveRequestListResponse)
async def list_leave_requests(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    status_filter: LeaveRequestStatus | None = Query(default=None, alias="status"),
    leave_type_id: uuid.UUID | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> LeaveRequestListResponse:
    """Leave history for an employee."""
    await _require_self_or_manager(auth, employee_id)
    return await leave_service.list_leave_requests(session, employee_id, status_filter, leave_type_id, offset, limit)


@leave_requests_router.get("/calendar", response_model=CalendarResponse)
async def leave_calendar(
    session: SessionDep,
    auth: AuthDep,
    date_from: date = Query(),
    date_to: date = Query(),
    leave_type_id: uuid.UUID | None = Query(default=None),
) -> CalendarResponse:
    """Approved leave overlapping a date window."""
    return await leave_service.leave_calendar(session, date_from, date_to, leave_type_id)


@accruals_router.post("", response_model=LeaveAccrualResponse, status_code=status.HTTP_201_CREATED)
async def create_accrual(
    payload: CreateAccrualPayload,
    session: SessionDep,
    auth: ManagerDep,
) -> LeaveAccrualResponse:
    """Credit leave days to an employee (manager only)."""
    return await leave_balance.add_accrual(session, auth, payload)
