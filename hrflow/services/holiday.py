from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import extract, func, select
from sqlmodel import col

from hrflow.exceptions import AppError, NotFoundError
from hrflow.models.enums import AuditAction, AuditEntityType, HolidayType
from hrflow.models.holiday import Holiday
from hrflow.schemas.holiday import HolidayListResponse, HolidayResponse
from hrflow.services.audit import audit_now, model_to_audit_dict

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from hrflow.schemas.auth import AuthContext
    from hrflow.schemas.holiday import CreateHolidayRequest, UpdateHolidayRequest

logger = logging.getLogger(__name__)


def _build_holiday_response(holiday: Holiday) -> HolidayResponse:
    return HolidayResponse(
        id=holiday.id,
        date=holiday.date,
        name=holiday.name,
        type=HolidayType(holiday.type),
        is_recurring=holiday.is_recurring,
        description=holiday.description,
        is_active=holiday.is_active,
    )


async def create_holiday(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateHolidayRequest,
) -> HolidayResponse:
    """Add a non-working day. One holiday per (date, type)."""
    existing = await session.execute(
        select(Holiday.id).where(col(Holiday.date) == payload.date, col(Holiday.type) == payload.type.value)
    )
    if existing.first() is not None:
        raise AppError(f"A {payload.type.value} holiday already exists on {payload.date}", status_code=409)

    holiday = Holiday(
        date=payload.date,
        name=payload.name,
        type=payload.type.value,
        is_recurring=payload.is_recurring,
        description=payload.description,
    )
    session.add(holiday)
    await session.commit()
    logger.info("Holiday %s added on %s", holiday.name, holiday.date)

    await audit_now(
        session,
        entity_type=AuditEntityType.HOLIDAY,
        entity_id=holiday.id,
        action=AuditAction.CREATE,
        actor_id=auth.user_id,
        new=model_to_audit_dict(holiday),
    )
    return _build_holiday_response(holiday)


async def list_holidays(
    session: AsyncSession,
    year: int | None = None,
    active_only: bool = False,
    offset: int = 0,
    limit: int = 50,
) -> HolidayListResponse:
    """List holidays by date. A year filter still includes every recurring holiday."""
    filters = []
    if year is not None:
        filters.append((extract("year", col(Holiday.date)) == year) | col(Holiday.is_recurring).is_(True))
    if active_only:
        filters.append(col(Holiday.is_active).is_(True))

    count_result = await session.execute(select(func.count()).select_from(Holiday).where(*filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(Holiday).where(*filters).order_by(col(Holiday.date)).offset(offset).limit(limit)
    )
    return HolidayListResponse(
        items=[_build_holiday_response(h) for h in result.scalars().all()],
        total=total,
    )


async def get_holiday(session: AsyncSession, holiday_id: uuid.UUID) -> Holiday:
    """Get a single holiday or raise 404."""
    holiday = await session.get(Holiday, holiday_id)
    if holiday is None:
        raise NotFoundError("Holiday not found")
    return holiday


async def update_holiday(
    session: AsyncSession,
    auth: AuthContext,
    holiday_id: uuid.UUID,
    payload: UpdateHolidayRequest,
) -> HolidayResponse:
    """Rename, re-describe or (de)activate a holiday.

    Only affects working-day counts for submissions created afterwards; days already
    reserved or deducted keep the count computed at submission time.
    """
    holiday = await get_holiday(session, holiday_id)
    before = model_to_audit_dict(holiday)

    for name, value in payload.model_dump(exclude_unset=True).items():
        if value is None and name != "description":
            continue
        setattr(holiday, name, value)

    session.add(holiday)
    await session.commit()

    await audit_now(
        session,
        entity_type=AuditEntityType.HOLIDAY,
        entity_id=holiday.id,
        action=AuditAction.UPDATE,
        actor_id=auth.user_id,
        old=before,
        new=model_to_audit_dict(holiday),
    )
    return _build_holiday_response(holiday)


async def delete_holiday(
    session: AsyncSession,
    auth: AuthContext,
    holiday_id: uuid.UUID,
) -> None:
    """Delete a holiday."""
    holiday = await get_holiday(session, holiday_id)
    before = model_to_audit_dict(holiday)

    await session.delete(holiday)
    await session.commit()
    logger.info("Holiday %s on %s deleted", before["name"], before["date"])

    await audit_now(
        session,
        entity_type=AuditEntityType.HOLIDAY,
        entity_id=holiday_id,
        action=AuditAction.DELETE,
        actor_id=auth.user_id,
        old=before,
    )
