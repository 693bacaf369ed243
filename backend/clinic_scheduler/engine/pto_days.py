from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, Iterator, Optional

from clinic_scheduler.core.config import settings
from clinic_scheduler.engine.holidays import is_holiday, is_range_near_holiday
from clinic_scheduler.models import PTOTimeBlock, day_of_week


def iter_dates(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def _work_day_set(work_days: Optional[Iterable[int]]) -> frozenset[int]:
    if work_days is None:
        return settings.default_work_days
    return frozenset(work_days)


def get_workdays_in_range(start: date, end: date, work_days: Optional[Iterable[int]] = None) -> list[date]:
    """Dates in ``[start, end]`` that fall on a work day and are not holidays."""
    days = _work_day_set(work_days)
    return [day for day in iter_dates(start, end) if day_of_week(day) in days and not is_holiday(day)]


def calculate_pto_days(
    start: date,
    end: date,
    time_block: PTOTimeBlock | str,
    work_days: Optional[Iterable[int]] = None,
) -> float:
    weight = 1.0 if PTOTimeBlock(time_block) == PTOTimeBlock.FULL else 0.5
    return weight * len(get_workdays_in_range(start, end, work_days))


def get_weekdays_in_range(start: date, end: date, work_days: Optional[Iterable[int]] = None) -> list[date]:
    """Like :func:`get_workdays_in_range` but holidays are kept."""
    days = _work_day_set(work_days)
    return [day for day in iter_dates(start, end) if day_of_week(day) in days]


def count_holiday_adjacent_requests(requests: Iterable, year: int, window_days: Optional[int] = None) -> int:
    count = 0
    for request in requests:
        if request.start_date.year != year:
            continue
        if is_range_near_holiday(request.start_date, request.end_date, window_days).is_near:
            count += 1
    return count


def next_weekday(value: date) -> date:
    current = value + timedelta(days=1)
    while current.weekday() >= 5:
        current += timedelta(days=1)
    return current


def previous_weekday(value: date) -> date:
    current = value - timedelta(days=1)
    while current.weekday() >= 5:
        current -= timedelta(days=1)
    return current


def format_days(days: float) -> str:
    if days == int(days):
        days = int(days)
    return f"{days} day{'' if days == 1 else 's'}"
