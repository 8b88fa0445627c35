# ruff: noqa: TC003
from __future__ import annotations

import datetime
import uuid

from pydantic import BaseModel, Field

from hrflow.models.enums import HolidayType


class CreateHolidayRequest(BaseModel):
    """Request body for creating a holiday."""

    date: datetime.date
    name: str = Field(min_length=1, max_length=255)
    type: HolidayType = HolidayType.REGULAR
    is_recurring: bool = False
    description: str | None = Field(default=None, max_length=1000)


class UpdateHolidayRequest(BaseModel):
    """Partial update. Deactivating a holiday makes the date count as a working day again."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    is_recurring: bool | None = None
    description: str | None = Field(default=None, max_length=1000)
    is_active: bool | None = None


class HolidayResponse(BaseModel):
    """Response schema for a holiday."""

    id: uuid.UUID
    date: datetime.date
    name: str
    type: HolidayType
    is_recurring: bool
    description: str | None
    is_active: bool


class HolidayListResponse(BaseModel):
    """Paginated list of holidays."""

    items: list[HolidayResponse]
    total: int
