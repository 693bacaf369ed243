from __future__ import annotations

from datetime import date

from clinic_scheduler.engine.pto_days import (
    calculate_pto_days,
    count_holiday_adjacent_requests,
    format_days,
    get_weekdays_in_range,
    get_workdays_in_range,
    next_weekday,
    previous_weekday,
)
from clinic_scheduler.models import PTORequest, PTOTimeBlock


def test_full_week():
    assert calculate_pto_days(date(2026, 3, 2), date(2026, 3, 6), PTOTimeBlock.FULL) == 5.0


def test_half_days_count_half():
    assert calculate_pto_days(date(2026, 3, 2), date(2026, 3, 6), PTOTimeBlock.AM) == 2.5
    assert calculate_pto_days(date(2026, 3, 2), date(2026, 3, 2), "PM") == 0.5


def test_holidays_and_weekends_are_free():
    # Memorial Day week, spanning the weekend after
    assert calculate_pto_days(date(2026, 5, 25), date(2026, 5, 31), PTOTimeBlock.FULL) == 4.0


def test_provider_work_days():
    mon_wed_fri = {1, 3, 5}
    days = get_workdays_in_range(date(2026, 3, 2), date(2026, 3, 8), mon_wed_fri)
    assert days == [date(2026, 3, 2), date(2026, 3, 4), date(2026, 3, 6)]
    assert calculate_pto_days(date(2026, 3, 2), date(2026, 3, 8), PTOTimeBlock.FULL, mon_wed_fri) == 3.0


def test_weekdays_keep_holidays():
    assert len(get_weekdays_in_range(date(2026, 5, 25), date(2026, 5, 29))) == 5
    assert len(get_workdays_in_range(date(2026, 5, 25), date(2026, 5, 29))) == 4


def test_empty_range():
    assert calculate_pto_days(date(2026, 3, 7), date(2026, 3, 8), PTOTimeBlock.FULL) == 0


def test_weekday_neighbours():
    assert next_weekday(date(2026, 3, 6)) == date(2026, 3, 9)
    assert next_weekday(date(2026, 3, 3)) == date(2026, 3, 4)
    assert previous_weekday(date(2026, 3, 9)) == date(2026, 3, 6)


def test_format_days():
    assert format_days(1) == "1 day"
    assert format_days(3.0) == "3 days"
    assert format_days(2.5) == "2.5 days"


def test_holiday_adjacent_requests_counts_this_year_only():
    requests = [
        PTORequest(start_date=date(2026, 5, 22), end_date=date(2026, 5, 22)),
        PTORequest(start_date=date(2026, 12, 28), end_date=date(2026, 12, 30)),
        PTORequest(start_date=date(2026, 3, 10), end_date=date(2026, 3, 11)),
        PTORequest(start_date=date(2025, 12, 22), end_date=date(2025, 12, 23)),
    ]
    assert count_holiday_adjacent_requests(requests, 2026) == 2


def test_range_across_new_year_uses_each_years_holidays():
    # Dec 31 2027 is the observed New Year's Day of 2028
    assert calculate_pto_days(date(2027, 12, 27), date(2028, 1, 4), PTOTimeBlock.FULL) == 6
    assert get_workdays_in_range(date(2027, 12, 30), date(2028, 1, 3)) == [date(2027, 12, 30), date(2028, 1, 3)]
