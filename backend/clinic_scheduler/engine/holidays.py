"""Department holiday calendar.

Holidays are derived per year from their rules instead of being stored, so
any year (past or future) resolves without seeding a table.
"""
from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Optional

from clinic_scheduler.core.config import settings


@dataclass(frozen=True)
class Holiday:
    name: str
    date: date


@dataclass(frozen=True)
class HolidayProximity:
    is_near: bool
    holiday: Optional[Holiday] = None


# python weekday numbers (Monday=0)
MONDAY = 0
THURSDAY = 3


def _nth_weekday(year: int, month: int, weekday: int, n: int) -> date:
    first = date(year, month, 1)
    offset = (weekday - first.weekday()) % 7
    return first + timedelta(days=offset + (n - 1) * 7)


def _last_weekday(year: int, month: int, weekday: int) -> date:
    last = date(year, month, calendar.monthrange(year, month)[1])
    return last - timedelta(days=(last.weekday() - weekday) % 7)


def _observed(year: int, month: int, day: int) -> date:
    actual = date(year, month, day)
    if actual.weekday() == 5:
        return actual - timedelta(days=1)
    if actual.weekday() == 6:
        return actual + timedelta(days=1)
    return actual


def holidays_for_year(year: int) -> list[Holiday]:
    return [
        Holiday("New Year's Day", _observed(year, 1, 1)),
        Holiday("MLK Day", _nth_weekday(year, 1, MONDAY, 3)),
        Holiday("Presidents' Day", _nth_weekday(year, 2, MONDAY, 3)),
        Holiday("Memorial Day", _last_weekday(year, 5, MONDAY)),
        Holiday("Juneteenth", _observed(year, 6, 19)),
        Holiday("Independence Day", _observed(year, 7, 4)),
        Holiday("Labor Day", _nth_weekday(year, 9, MONDAY, 1)),
        Holiday("Thanksgiving", _nth_weekday(year, 11, THURSDAY, 4)),
        Holiday("Christmas", _observed(year, 12, 25)),
    ]


def is_holiday(value: date) -> Optional[Holiday]:
    # New Year's Day observed on Dec 31 belongs to the following year's list
    for year in (value.year, value.year + 1):
        for holiday in holidays_for_year(year):
            if holiday.date == value:
                return holiday
    return None


def holidays_in_range(start: date, end: date) -> dict[date, Holiday]:
    found: dict[date, Holiday] = {}
    for year in range(start.year, end.year + 2):
        for holiday in holidays_for_year(year):
            if start <= holiday.date <= end:
                found[holiday.date] = holiday
    return dict(sorted(found.items()))


def is_date_near_holiday(value: date, window_days: Optional[int] = None) -> HolidayProximity:
    window = settings.holiday_proximity_days if window_days is None else window_days
    for year in (value.year - 1, value.year, value.year + 1):
        for holiday in holidays_for_year(year):
            if abs((value - holiday.date).days) <= window:
                return HolidayProximity(True, holiday)
    return HolidayProximity(False, None)


def is_range_near_holiday(start: date, end: date, window_days: Optional[int] = None) -> HolidayProximity:
    current = start
    while current <= end:
        result = is_date_near_holiday(current, window_days)
        if result.is_near:
            return result
        current += timedelta(days=1)
    return HolidayProximity(False, None)


def is_inpatient_service(service_name: Optional[str], inpatient: Iterable[str] | None = None) -> bool:
    allowed = settings.inpatient_services if inpatient is None else tuple(inpatient)
    return bool(service_name) and service_name in allowed
