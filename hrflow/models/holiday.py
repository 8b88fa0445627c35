# ruff: noqa: TC003
from __future__ import annotations

import datetime

import sqlalchemy as sa
from sqlmodel import Field

from hrflow.models.base import UUIDBase
from hrflow.models.enums import HolidayType


class Holiday(UUIDBase, table=True):
    """A non-working day. Recurring holidays repeat on the same month/day every year."""

    __tablename__ = "holiday"
    __table_args__ = (sa.UniqueConstraint("date", "type", name="uq_holiday_date_type"),)

    name: str = Field(max_length=255)
    date: datetime.date = Field(index=True)
    type: str = Field(default=HolidayType.REGULAR, max_length=20)
    is_recurring: bool = False
    description: str | None = None
    is_active: bool = True
