# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from hrflow.api.deps import AuthDep, ManagerDep
from hrflow.db import SessionDep
from hrflow.schemas.holiday import (
    CreateHolidayRequest,
    HolidayListResponse,
    HolidayResponse,
    UpdateHolidayRequest,
)
from hrflow.services import holiday as holiday_service

holidays_router = APIRouter(prefix="/holidays", tags=["holidays"])


@holidays_router.post("", response_model=HolidayResponse, status_code=status.HTTP_201_CREATED)
async def create_holiday(
    payload: CreateHolidayRequest,
    session: SessionDep,
    auth: ManagerDep,
) -> HolidayResponse:
    """Add a non-working day (manager only)."""
    return await holiday_service.create_holiday(session, auth, payload)


@holidays_router.get("", response_model=HolidayListResponse)
async def list_holidays(
    session: SessionDep,
    auth: AuthDep,
    year: int | None = Query(default=None, ge=2000, le=2100),
    active_only: bool = Query(default=False),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> HolidayListResponse:
    """List holidays, optionally for one year."""
    return await holiday_service.list_holidays(session, year, active_only, offset, limit)


@holidays_router.patch("/{holiday_id}", response_model=HolidayResponse)
async def update_holiday(
    holiday_id: uuid.UUID,
    payload: UpdateHolidayRequest,
    session: SessionDep,
    auth: ManagerDep,
) -> HolidayResponse:
    """Edit or (de)activate a holiday (manager only)."""
    return await holiday_service.update_holiday(session, auth, holiday_id, payload)


@holidays_router.delete("/{holiday_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_holiday(
    holiday_id: uuid.UUID,
    session: SessionDep,
    auth: ManagerDep,
) -> None:
    """Delete a holiday (manager only)."""
    await holiday_service.delete_holiday(session, auth, holiday_id)
