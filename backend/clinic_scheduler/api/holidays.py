from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, HTTPException

from clinic_scheduler.engine.holidays import Holiday, holidays_for_year, holidays_in_range
from clinic_scheduler.schemas.common import HolidayRead

router = APIRouter()


@router.get("", response_model=list[HolidayRead])
def list_holidays(
    year: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> list[Holiday]:
    if start_date and end_date:
        if start_date > end_date:
            raise HTTPException(status_code=400, detail="start_date must be on or before end_date")
        return list(holidays_in_range(start_date, end_date).values())
    return holidays_for_year(year or date.today().year)
