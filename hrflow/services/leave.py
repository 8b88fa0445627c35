# ruff: noqa: TC003
from __future__ import annotations

import copy
import logging
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlmodel import col

from hrflow.config import get_settings
from hrflow.exceptions import AppError
from hrflow.models.enums import (
    AuditAction,
    AuditEntityType,
    LeaveLedgerStage,
    LeaveRequestStatus,
    SubmissionStatus,
)
from hrflow.models.leave import LeaveRequest, LeaveType
from hrflow.models.submission import RequestSubmission
from hrflow.schemas.leave import (
    CalendarEntry,
    CalendarResponse,
    LeaveRequestListResponse,
    LeaveRequestResponse,
    LeaveTypeListResponse,
    LeaveTypeResponse,
)
from hrflow.schemas.submission import LeaveAnswers
from hrflow.services import leave_balance
from hrflow.services.audit import AuditRecord, audit_now, model_to_audit_dict
from hrflow.services.identity import get_identity_provider
from hrflow.services.state_machine import GRANTED_STATUSES
from hrflow.services.working_days import count_working_days

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from hrflow.models.request_type import RequestType
    from hrflow.schemas.auth import AuthContext
    from hrflow.schemas.leave import CreateLeaveTypePayload

logger = logging.getLogger(__name__)


def is_leave_request_type(request_type: RequestType) -> bool:
    """Whether submissions of this type move days through the leave ledger."""
    return request_type.name == get_settings().leave_request_type_name


# ---------------------------------------------------------------------------
# Submission-time validation
# ---------------------------------------------------------------------------


async def _get_active_leave_type_by_code(session: AsyncSession, code: str) -> LeaveType:
    result = await session.execute(
        select(LeaveType).where(col(LeaveType.code) == code.upper(), col(LeaveType.is_active).is_(True))
    )
    leave_type = result.scalar_one_or_none()
    if leave_type is None:
        raise AppError(f"Unknown or inactive leave type '{code}'", status_code=422)
    return leave_type


async def _employee_id_for(requester_id: uuid.UUID) -> uuid.UUID:
    user = await get_identity_provider().get_user(requester_id)
    if user is not None and user.employee_id is not None:
        return user.employee_id
    return requester_id


async def prepare_leave(
    session: AsyncSession,
    requester_id: uuid.UUID,
    answers: dict[str, Any],
    today: date,
) -> dict[str, Any]:
    """Validate leave answers and compute the working days they cover.

    Returns the leave bookkeeping to store under ``approval_state["leave"]``.
    """
    try:
        parsed = LeaveAnswers.model_validate(answers)
    except ValidationError as exc:
        raise AppError(f"Invalid leave request answers: {exc.errors()}", status_code=422) from None

    leave_type = await _get_active_leave_type_by_code(session, parsed.leave_type)
    if parsed.start_date.year != parsed.end_date.year:
        raise AppError("A leave request cannot span two calendar years", status_code=422)

    days = await count_working_days(session, parsed.start_date, parsed.end_date)
    if days <= 0:
        raise AppError("Leave covers no working days after excluding weekends and holidays", status_code=422)

    notice = (parsed.start_date - today).days
    # Zero-notice types (sick leave) may be filed after the fact.
    if leave_type.min_notice_days > 0 and notice < leave_type.min_notice_days:
        raise AppError(
            f"{leave_type.name} requires at least {leave_type.min_notice_days} day(s) notice",
            status_code=422,
        )
    if leave_type.max_days_per_request is not None and days > leave_type.max_days_per_request:
        raise AppError(
            f"{leave_type.name} allows at most {leave_type.max_days_per_request} day(s) per request",
            status_code=422,
        )

    return {
        "employee_id": str(await _employee_id_for(requester_id)),
        "leave_type_id": str(leave_type.id),
        "start_date": parsed.start_date.isoformat(),
        "end_date": parsed.end_date.isoformat(),
        "days": str(days),
        "year": parsed.start_date.year,
        "reason": parsed.reason,
        "ledger": None,
    }


# ---------------------------------------------------------------------------
# Ledger transitions
# ---------------------------------------------------------------------------


def _ledger_args(leave: dict[str, Any]) -> tuple[uuid.UUID, uuid.UUID, int, Decimal]:
    return (
        uuid.UUID(leave["employee_id"]),
        uuid.UUID(leave["leave_type_id"]),
        int(leave["year"]),
        Decimal(leave["days"]),
    )


def _set_stage(submission: RequestSubmission, stage: LeaveLedgerStage) -> None:
    state = copy.deepcopy(submission.approval_state)
    state["leave"]["ledger"] = stage.value
    submission.approval_state = state


async def reserve_for_submission(
    session: AsyncSession,
    submission: RequestSubmission,
    actor_id: uuid.UUID,
    now: datetime,
    audit: list[AuditRecord],
) -> None:
    """Hold the submission's leave days. Runs once, when a pending leave submission is created."""
    leave = submission.approval_state.get("leave")
    if leave is None or leave.get("ledger") is not None:
        return
    employee_id, leave_type_id, year, days = _ledger_args(leave)
    await leave_balance.reserve(
        session,
        employee_id,
        leave_type_id,
        year,
        days,
        enforce=get_settings().enforce_leave_balance,
        actor_id=actor_id,
        now=now,
        audit=audit,
    )
    _set_stage(submission, LeaveLedgerStage.RESERVED)


async def _get_leave_request(session: AsyncSession, submission_id: uuid.UUID) -> LeaveRequest | None:
    result = await session.execute(
        select(LeaveRequest).where(col(LeaveRequest.request_submission_id) == submission_id)
    )
    return result.scalar_one_or_none()


async def apply_leave_transition(
    session: AsyncSession,
    submission: RequestSubmission,
    actor_id: uuid.UUID,
    now: datetime,
    audit: list[AuditRecord],
    notes: str | None = None,
) -> None:
    """Bring the leave ledger in line with the submission's current status.

    The ledger stage stored on the submission makes this safe to run again for
    the same transition: days are deducted or released at most once.
    """
    leave = submission.approval_state.get("leave")
    if leave is None:
        return
    stage = leave.get("ledger")
    employee_id, leave_type_id, year, days = _ledger_args(leave)
    status = SubmissionStatus(submission.status)

    if status in GRANTED_STATUSES:
        if stage in (LeaveLedgerStage.DEDUCTED, LeaveLedgerStage.RELEASED):
            return
        if stage is None:
            # Nothing was held (no approval steps), so hold and use in one go.
            await leave_balance.reserve(
                session,
                employee_id,
                leave_type_id,
                year,
                days,
                enforce=get_settings().enforce_leave_balance,
                actor_id=actor_id,
                now=now,
                audit=audit,
            )
        await leave_balance.deduct(
            session, employee_id, leave_type_id, year, days, actor_id=actor_id, now=now, audit=audit
        )
        _set_stage(submission, LeaveLedgerStage.DEDUCTED)

        if await _get_leave_request(session, submission.id) is None:
            leave_request = LeaveRequest(
                request_submission_id=submission.id,
                employee_id=employee_id,
                leave_type_id=leave_type_id,
                start_date=date.fromisoformat(leave["start_date"]),
                end_date=date.fromisoformat(leave["end_date"]),
                days=days,
                reason=leave.get("reason"),
                status=LeaveRequestStatus.APPROVED.value,
                approved_at=now,
                approved_by=actor_id,
                created_at=now,
                updated_at=now,
            )
            session.add(leave_request)
        logger.info("Deducted %s leave day(s) for %s", days, submission.reference_code)

    elif status == SubmissionStatus.REJECTED:
        if stage != LeaveLedgerStage.RESERVED:
            return
        await leave_balance.release(
            session, employee_id, leave_type_id, year, days, actor_id=actor_id, now=now, audit=audit
        )
        _set_stage(submission, LeaveLedgerStage.RELEASED)

        leave_request = await _get_leave_request(session, submission.id)
        if leave_request is not None:
            leave_request.status = LeaveRequestStatus.REJECTED.value
            leave_request.rejected_at = now
            leave_request.rejected_by = actor_id
            leave_request.rejection_reason = notes
            leave_request.updated_at = now
            session.add(leave_request)
        logger.info("Released %s reserved leave day(s) for %s", days, submission.reference_code)


# ---------------------------------------------------------------------------
# Leave types
# ---------------------------------------------------------------------------


def _build_leave_type_response(leave_type: LeaveType) -> LeaveTypeResponse:
    return LeaveTypeResponse(
        id=leave_type.id,
        name=leave_type.name,
        code=leave_type.code,
        description=leave_type.description,
        max_days_per_request=leave_type.max_days_per_request,
        max_days_per_year=leave_type.max_days_per_year,
        min_notice_days=leave_type.min_notice_days,
        is_paid=leave_type.is_paid,
        is_active=leave_type.is_active,
        sort_order=leave_type.sort_order,
    )


async def create_leave_type(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateLeaveTypePayload,
) -> LeaveTypeResponse:
    """Create a leave type."""
    existing = await session.execute(select(LeaveType.id).where(col(LeaveType.code) == payload.code))
    if existing.first() is not None:
        raise AppError(f"Leave type with code '{payload.code}' already exists", status_code=409)

    leave_type = LeaveType(**payload.model_dump())
    session.add(leave_type)
    await session.commit()

    await audit_now(
        session,
        entity_type=AuditEntityType.LEAVE_TYPE,
        entity_id=leave_type.id,
        action=AuditAction.CREATE,
        actor_id=auth.user_id,
        new=model_to_audit_dict(leave_type),
    )
    return _build_leave_type_response(leave_type)


async def list_leave_types(session: AsyncSession, active_only: bool = False) -> LeaveTypeListResponse:
    """List leave types in display order."""
    query = select(LeaveType).order_by(col(LeaveType.sort_order), col(LeaveType.name))
    if active_only:
        query = query.where(col(LeaveType.is_active).is_(True))
    result = await session.execute(query)
    leave_types = list(result.scalars().all())
    return LeaveTypeListResponse(
        items=[_build_leave_type_response(lt) for lt in leave_types],
        total=len(leave_types),
    )


# ---------------------------------------------------------------------------
# History and calendar
# ---------------------------------------------------------------------------


def _build_leave_request_response(leave_request: LeaveRequest) -> LeaveRequestResponse:
    return LeaveRequestResponse(
        id=leave_request.id,
        request_submission_id=leave_request.request_submission_id,
        employee_id=leave_request.employee_id,
        leave_type_id=leave_request.leave_type_id,
        start_date=leave_request.start_date,
        end_date=leave_request.end_date,
        days=leave_request.days,
        reason=leave_request.reason,
        status=LeaveRequestStatus(leave_request.status),
        approved_at=leave_request.approved_at,
        approved_by=leave_request.approved_by,
        rejected_at=leave_request.rejected_at,
        rejected_by=leave_request.rejected_by,
        rejection_reason=leave_request.rejection_reason,
    )


async def list_leave_requests(
    session: AsyncSession,
    employee_id: uuid.UUID,
    status_filter: LeaveRequestStatus | None = None,
    leave_type_id: uuid.UUID | None = None,
    offset: int = 0,
    limit: int = 50,
) -> LeaveRequestListResponse:
    """Leave history for an employee, newest first."""
    base_filters = [col(LeaveRequest.employee_id) == employee_id]
    if status_filter is not None:
        base_filters.append(col(LeaveRequest.status) == status_filter.value)
    if leave_type_id is not None:
        base_filters.append(col(LeaveRequest.leave_type_id) == leave_type_id)

    count_result = await session.execute(select(func.count()).select_from(LeaveRequest).where(*base_filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeaveRequest)
        .where(*base_filters)
        .order_by(col(LeaveRequest.start_date).desc())
        .offset(offset)
        .limit(limit)
    )
    return LeaveRequestListResponse(
        items=[_build_leave_request_response(lr) for lr in result.scalars().all()],
        total=total,
    )


async def leave_calendar(
    session: AsyncSession,
    date_from: date,
    date_to: date,
    leave_type_id: uuid.UUID | None = None,
) -> CalendarResponse:
    """Approved leave overlapping [date_from, date_to]."""
    if date_to < date_from:
        raise AppError("date_to must not be before date_from", status_code=422)

    query = (
        select(LeaveRequest, LeaveType, RequestSubmission.reference_code)
        .join(LeaveType, col(LeaveType.id) == col(LeaveRequest.leave_type_id))
        .outerjoin(RequestSubmission, col(RequestSubmission.id) == col(LeaveRequest.request_submission_id))
        .where(
            col(LeaveRequest.status) == LeaveRequestStatus.APPROVED.value,
            col(LeaveRequest.start_date) <= date_to,
            col(LeaveRequest.end_date) >= date_from,
        )
        .order_by(col(LeaveRequest.start_date))
    )
    if leave_type_id is not None:
        query = query.where(col(LeaveRequest.leave_type_id) == leave_type_id)

    result = await session.execute(query)
    items = [
        CalendarEntry(
            leave_request_id=leave_request.id,
            employee_id=leave_request.employee_id,
            leave_type_id=leave_type.id,
            leave_type_code=leave_type.code,
            leave_type_name=leave_type.name,
            start_date=leave_request.start_date,
            end_date=leave_request.end_date,
            days=leave_request.days,
            reference_code=reference_code,
        )
        for leave_request, leave_type, reference_code in result.all()
    ]
    return CalendarResponse(date_from=date_from, date_to=date_to, items=items)
