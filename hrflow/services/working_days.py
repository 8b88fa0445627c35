from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import or_, select
from sqlmodel import col

from hrflow.models.holiday import Holiday

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

# Saturday and Sunday.
_WEEKEND = frozenset({5, 6})


class HolidayCalendar:
    """Working-day oracle over a fixed set of holidays.

    Fixed holidays match on the exact date; recurring ones on month and day in any year.
    """

    def __init__(self, fixed: Iterable[date] = (), recurring: Iterable[tuple[int, int]] = ()) -> None:
        self._fixed = frozenset(fixed)
        self._recurring = frozenset(recurring)

    def is_holiday(self, day: date) -> bool:
        return day in self._fixed or (day.month, day.day) in self._recurring

    def is_working_day(self, day: date) -> bool:
        return day.weekday() not in _WEEKEND and not self.is_holiday(day)

    def count_working_days(self, start_date: date, end_date: date) -> Decimal:
        """Working days in the inclusive range [start_date, end_date]."""
        total = 0
        current = start_date
        one_day = timedelta(days=1)
        while current <= end_date:
            if self.is_working_day(current):
                total += 1
            current += one_day
        return Decimal(total)


async def load_holiday_calendar(session: AsyncSession, start_date: date, end_date: date) -> HolidayCalendar:
    """Load the active holidays relevant to a date range."""
    result = await session.execute(
        select(Holiday).where(
            col(Holiday.is_active).is_(True),
            or_(
                col(Holiday.is_recurring).is_(True),
                (col(Holiday.date) >= start_date) & (col(Holiday.date) <= end_date),
            ),
        )
    )
    fixed: list[date] = []
    recurring: list[tuple[int, int]] = []
    for holiday in result.scalars().all():
        if holiday.is_recurring:
            recurring.append((holiday.date.month, holiday.date.day))
        else:
            fixed.append(holiday.date)
    return HolidayCalendar(fixed, recurring)


async def count_working_days(session: AsyncSession, start_date: date, end_date: date) -> Decimal:
    """Count working days between two dates, excluding weekends and active holidays."""
    calendar = await load_holiday_calendar(session, start_date, end_date)
    return calendar.count_working_days(start_date, end_date)
