from __future__ import annotations

from typing import Optional

from fastapi import HTTPException
from fastapi.encoders import jsonable_encoder

from clinic_scheduler.engine.results import NOT_FOUND, Rejection


def raise_for_rejection(rejection: Optional[Rejection]) -> None:
    """Turn an engine rejection into a 400 (404 for missing records)."""
    if rejection is None:
        return
    status_code = 404 if rejection.code == NOT_FOUND else 400
    if rejection.details:
        detail = {"error": rejection.message, "type": rejection.code, **jsonable_encoder(rejection.details)}
    else:
        detail = rejection.message
    raise HTTPException(status_code=status_code, detail=detail)
