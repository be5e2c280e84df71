from __future__ import annotations

from datetime import date, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from app.models.holiday import Holiday
from app.schemas.request import HolidayDay, WorkingDaysResponse

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.ext.asyncio import AsyncSession

# date.weekday() values for Saturday and Sunday.
_WEEKEND = frozenset({5, 6})


def _each_day(start_date: date, end_date: date) -> Iterator[date]:
    current = start_date
    while current <= end_date:
        yield current
        current += timedelta(days=1)


async def _fetch_holidays(session: AsyncSession, start_date: date, end_date: date) -> dict[date, str]:
    """Fetch active holidays in the given date range, keyed by date."""
    result = await session.execute(
        select(col(Holiday.date), col(Holiday.name)).where(
            col(Holiday.is_active).is_(True),
            col(Holiday.date) >= start_date,
            col(Holiday.date) <= end_date,
        )
    )
    return {row[0]: row[1] for row in result.all()}


def count_working_days(start_date: date, end_date: date, holidays: set[date]) -> int:
    """Count weekdays in ``[start_date, end_date]`` that are not holidays."""
    return sum(1 for day in _each_day(start_date, end_date) if day.weekday() not in _WEEKEND and day not in holidays)


async def calculate_working_days(session: AsyncSession, start_date: date, end_date: date) -> int:
    """Working days between two dates inclusive, excluding weekends and active holidays."""
    holidays = await _fetch_holidays(session, start_date, end_date)
    return count_working_days(start_date, end_date, set(holidays))


async def calculate_working_days_detailed(
    session: AsyncSession,
    start_date: date,
    end_date: date,
) -> WorkingDaysResponse:
    """Working days plus the weekend and holiday breakdown behind the count.

    Holidays falling on a weekend are listed but only counted once, as weekend days.
    """
    holidays = await _fetch_holidays(session, start_date, end_date)
    days = list(_each_day(start_date, end_date))
    weekend_days = sum(1 for day in days if day.weekday() in _WEEKEND)

    return WorkingDaysResponse(
        start_date=start_date,
        end_date=end_date,
        working_days=count_working_days(start_date, end_date, set(holidays)),
        calendar_days=len(days),
        weekend_days=weekend_days,
        holidays=[HolidayDay(date=day, name=name) for day, name in sorted(holidays.items())],
    )
