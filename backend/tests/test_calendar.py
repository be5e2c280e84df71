from __future__ import annotations

from datetime import date

from app.services.calendar import count_working_days


def test_full_week_has_five_working_days() -> None:
    assert count_working_days(date(2025, 3, 3), date(2025, 3, 9), set()) == 5


def test_weekend_only_range() -> None:
    assert count_working_days(date(2025, 3, 8), date(2025, 3, 9), set()) == 0


def test_single_day() -> None:
    assert count_working_days(date(2025, 3, 5), date(2025, 3, 5), set()) == 1


def test_holidays_are_excluded() -> None:
    holidays = {date(2025, 3, 4), date(2025, 3, 8)}
    assert count_working_days(date(2025, 3, 3), date(2025, 3, 9), holidays) == 4


def test_reversed_range_is_empty() -> None:
    assert count_working_days(date(2025, 3, 9), date(2025, 3, 3), set()) == 0
