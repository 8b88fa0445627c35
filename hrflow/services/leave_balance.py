# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from hrflow.exceptions import InsufficientEntitlementError, NegativeBalanceError, NotFoundError
from hrflow.models.base import now_utc
from hrflow.models.enums import AccrualType, AuditAction, AuditEntityType
from hrflow.models.leave import LeaveAccrual, LeaveBalance, LeaveType
from hrflow.schemas.leave import (
    LeaveAccrualResponse,
    LeaveBalanceListResponse,
    LeaveBalanceResponse,
)
from hrflow.services.audit import AuditRecord, record_audit
from hrflow.services.transaction import run_with_retry

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from hrflow.schemas.auth import AuthContext
    from hrflow.schemas.leave import CreateAccrualPayload

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")
_SUMMANDS = ("entitled", "accrued", "carried_over", "used", "pending")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_balance_response(balance: LeaveBalance, leave_type: LeaveType) -> LeaveBalanceResponse:
    return LeaveBalanceResponse(
        leave_type_id=leave_type.id,
        leave_type_code=leave_type.code,
        leave_type_name=leave_type.name,
        year=balance.year,
        entitled=balance.entitled,
        accrued=balance.accrued,
        carried_over=balance.carried_over,
        used=balance.used,
        pending=balance.pending,
        balance=balance.balance,
    )


async def _get_leave_type_or_404(session: AsyncSession, leave_type_id: uuid.UUID) -> LeaveType:
    leave_type = await session.get(LeaveType, leave_type_id)
    if leave_type is None:
        raise NotFoundError("Leave type not found")
    return leave_type


def recompute(balance: LeaveBalance) -> Decimal:
    """Re-derive ``balance`` from its summands. Raises if any summand went negative."""
    for name in _SUMMANDS:
        value = getattr(balance, name)
        if value < _ZERO:
            raise NegativeBalanceError(
                f"Leave balance {balance.id} would have negative {name} ({value})"
            )
    balance.balance = balance.entitled + balance.accrued + balance.carried_over - balance.used - balance.pending
    return balance.balance


async def get_or_create_balance_for_update(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int,
) -> LeaveBalance:
    """Get the balance row with a FOR UPDATE lock, creating a zeroed row if absent.

    Two transactions racing to create the same row surface as an IntegrityError,
    which ``run_with_retry`` turns into a fresh attempt.
    """
    result = await session.execute(
        select(LeaveBalance)
        .where(
            col(LeaveBalance.employee_id) == employee_id,
            col(LeaveBalance.leave_type_id) == leave_type_id,
            col(LeaveBalance.year) == year,
        )
        .with_for_update()
    )
    balance = result.scalar_one_or_none()

    if balance is None:
        balance = LeaveBalance(
            employee_id=employee_id,
            leave_type_id=leave_type_id,
            year=year,
            entitled=_ZERO,
            accrued=_ZERO,
            carried_over=_ZERO,
            used=_ZERO,
            pending=_ZERO,
            balance=_ZERO,
            version=1,
        )
        session.add(balance)
        await session.flush()

    return balance


def _mutate(
    session: AsyncSession,
    balance: LeaveBalance,
    *,
    action: AuditAction,
    actor_id: uuid.UUID | None,
    now: datetime,
    audit: list[AuditRecord],
    pending: Decimal = _ZERO,
    used: Decimal = _ZERO,
    accrued: Decimal = _ZERO,
) -> None:
    before = {name: getattr(balance, name) for name in (*_SUMMANDS, "balance")}
    balance.pending += pending
    balance.used += used
    balance.accrued += accrued
    recompute(balance)
    balance.version += 1
    balance.updated_at = now
    session.add(balance)
    audit.append(
        AuditRecord(
            entity_type=AuditEntityType.LEAVE_BALANCE,
            entity_id=balance.id,
            action=action,
            actor_id=actor_id,
            at=now,
            old=before,
            new={name: getattr(balance, name) for name in (*_SUMMANDS, "balance")},
        )
    )


# ---------------------------------------------------------------------------
# Ledger operations (caller owns the transaction)
# ---------------------------------------------------------------------------


async def reserve(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int,
    days: Decimal,
    *,
    enforce: bool,
    actor_id: uuid.UUID | None,
    now: datetime,
    audit: list[AuditRecord],
) -> LeaveBalance:
    """Hold ``days`` against the balance while the request awaits a decision."""
    balance = await get_or_create_balance_for_update(session, employee_id, leave_type_id, year)
    if enforce and days > balance.balance:
        raise InsufficientEntitlementError(
            f"Insufficient leave balance: {balance.balance} day(s) available, {days} requested"
        )
    _mutate(session, balance, action=AuditAction.RESERVE, actor_id=actor_id, now=now, audit=audit, pending=days)
    return balance


async def deduct(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int,
    days: Decimal,
    *,
    actor_id: uuid.UUID | None,
    now: datetime,
    audit: list[AuditRecord],
) -> LeaveBalance:
    """Turn a reservation into used days."""
    balance = await get_or_create_balance_for_update(session, employee_id, leave_type_id, year)
    _mutate(
        session,
        balance,
        action=AuditAction.DEDUCT,
        actor_id=actor_id,
        now=now,
        audit=audit,
        pending=-days,
        used=days,
    )
    return balance


async def release(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int,
    days: Decimal,
    *,
    actor_id: uuid.UUID | None,
    now: datetime,
    audit: list[AuditRecord],
) -> LeaveBalance:
    """Drop a reservation without using it."""
    balance = await get_or_create_balance_for_update(session, employee_id, leave_type_id, year)
    _mutate(session, balance, action=AuditAction.RELEASE, actor_id=actor_id, now=now, audit=audit, pending=-days)
    return balance


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def add_accrual(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateAccrualPayload,
    now: datetime | None = None,
) -> LeaveAccrualResponse:
    """Credit leave days: record a LeaveAccrual and raise ``accrued`` on the year's balance."""
    now = now or now_utc()
    accrual_date: date = payload.accrual_date or now.date()
    audit: list[AuditRecord] = []

    async def _operation() -> tuple[LeaveAccrual, LeaveBalance, LeaveType]:
        audit.clear()
        leave_type = await _get_leave_type_or_404(session, payload.leave_type_id)
        balance = await get_or_create_balance_for_update(
            session, payload.employee_id, leave_type.id, accrual_date.year
        )
        accrual = LeaveAccrual(
            employee_id=payload.employee_id,
            leave_type_id=leave_type.id,
            amount=payload.amount,
            accrual_date=accrual_date,
            accrual_type=payload.accrual_type.value,
            notes=payload.notes,
            created_by=auth.user_id,
        )
        session.add(accrual)
        _mutate(
            session,
            balance,
            action=AuditAction.ACCRUE,
            actor_id=auth.user_id,
            now=now,
            audit=audit,
            accrued=payload.amount,
        )
        await session.commit()
        return accrual, balance, leave_type

    accrual, balance, leave_type = await run_with_retry(session, _operation)
    logger.info(
        "Accrued %s day(s) of %s for employee %s (%s)",
        payload.amount,
        leave_type.code,
        payload.employee_id,
        accrual_date.year,
    )

    await record_audit(session, audit)
    return LeaveAccrualResponse(
        id=accrual.id,
        employee_id=accrual.employee_id,
        leave_type_id=accrual.leave_type_id,
        amount=accrual.amount,
        accrual_date=accrual.accrual_date,
        accrual_type=AccrualType(accrual.accrual_type),
        notes=accrual.notes,
        balance=_build_balance_response(balance, leave_type),
    )


async def list_balances(
    session: AsyncSession,
    employee_id: uuid.UUID,
    year: int,
) -> LeaveBalanceListResponse:
    """Balances for every active leave type, creating zero rows where none exist yet.

    A concurrent reader creating the same rows rolls this attempt back and re-reads.
    """

    async def _operation() -> list[tuple[LeaveBalance, LeaveType]]:
        result = await session.execute(
            select(LeaveType).where(col(LeaveType.is_active).is_(True)).order_by(col(LeaveType.sort_order))
        )
        leave_types = list(result.scalars().all())

        existing_result = await session.execute(
            select(LeaveBalance).where(col(LeaveBalance.employee_id) == employee_id, col(LeaveBalance.year) == year)
        )
        existing = {b.leave_type_id: b for b in existing_result.scalars().all()}

        created = False
        items = []
        for leave_type in leave_types:
            balance = existing.get(leave_type.id)
            if balance is None:
                balance = LeaveBalance(employee_id=employee_id, leave_type_id=leave_type.id, year=year)
                session.add(balance)
                created = True
            items.append((balance, leave_type))

        if created:
            await session.commit()
        return items

    items = await run_with_retry(session, _operation)
    return LeaveBalanceListResponse(
        employee_id=employee_id,
        year=year,
        items=[_build_balance_response(b, lt) for b, lt in items],
    )
