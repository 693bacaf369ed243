from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from clinic_scheduler.api.errors import raise_for_rejection
from clinic_scheduler.db.session import get_session
from clinic_scheduler.engine.balance import get_balance, get_pto_config, set_pto_config
from clinic_scheduler.models import Provider
from clinic_scheduler.schemas.common import PTOBalanceRead, PTOConfigRead, PTOConfigResponse, PTOConfigSet

router = APIRouter()


def _get_session():
    with get_session() as session:
        yield session


@router.get("/{provider_id}/pto-balance", response_model=PTOBalanceRead)
def pto_balance(provider_id: int, year: Optional[int] = None, session=Depends(_get_session)) -> PTOBalanceRead:
    result = get_balance(session, provider_id, year or date.today().year)
    if result is None:
        raise HTTPException(status_code=404, detail="Provider not found")
    return PTOBalanceRead.model_validate(result)


@router.get("/{provider_id}/pto-config", response_model=PTOConfigResponse)
def read_pto_config(provider_id: int, year: Optional[int] = None, session=Depends(_get_session)) -> PTOConfigResponse:
    if not session.get(Provider, provider_id):
        raise HTTPException(status_code=404, detail="Provider not found")
    # no row means the role or system default applies
    config = get_pto_config(session, provider_id, year or date.today().year)
    return PTOConfigResponse(config=PTOConfigRead.model_validate(config) if config else None)


@router.put("/{provider_id}/pto-config", response_model=PTOConfigResponse)
def write_pto_config(provider_id: int, payload: PTOConfigSet, session=Depends(_get_session)) -> PTOConfigResponse:
    outcome = set_pto_config(
        session,
        provider_id,
        payload.year,
        payload.annual_allowance,
        payload.carryover_days,
        payload.notes,
    )
    raise_for_rejection(outcome.rejection)
    return PTOConfigResponse(config=PTOConfigRead.model_validate(outcome.config))
