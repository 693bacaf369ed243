from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response

from clinic_scheduler.db.session import get_session
from clinic_scheduler.engine.availability import check_availability, rules_for_provider, set_rule
from clinic_scheduler.models import AvailabilityRule, Provider, Service
from clinic_scheduler.schemas.common import (
    AvailabilityCheckRequest,
    AvailabilityCheckResponse,
    AvailabilityRuleRead,
    AvailabilityRuleSet,
)

router = APIRouter()


def _get_session():
    with get_session() as session:
        yield session


@router.post("/check", response_model=AvailabilityCheckResponse)
def check(payload: AvailabilityCheckRequest, session=Depends(_get_session)) -> AvailabilityCheckResponse:
    result = check_availability(session, payload.provider_id, payload.service_id, payload.date, payload.time_block)
    return AvailabilityCheckResponse(
        allowed=result.allowed,
        enforcement=result.enforcement,
        reason=result.reason,
        rule_id=result.rule.id if result.rule else None,
    )


@router.get("/rules", response_model=list[AvailabilityRuleRead])
def list_rules(provider_id: int, session=Depends(_get_session)) -> list[AvailabilityRule]:
    return rules_for_provider(session, provider_id)


@router.post("/rules", response_model=Optional[AvailabilityRuleRead])
def save_rule(payload: AvailabilityRuleSet, session=Depends(_get_session)) -> Optional[AvailabilityRule]:
    if not session.get(Provider, payload.provider_id):
        raise HTTPException(status_code=404, detail="Provider not found")
    if not session.get(Service, payload.service_id):
        raise HTTPException(status_code=404, detail="Service not found")
    return set_rule(
        session,
        payload.provider_id,
        payload.service_id,
        payload.day_of_week,
        payload.time_block,
        payload.rule_type,
        payload.enforcement,
        payload.reason,
    )


@router.delete("/rules/{rule_id}", status_code=204)
def delete_rule(rule_id: int, session=Depends(_get_session)) -> Response:
    if not session.delete(AvailabilityRule, [rule_id]):
        raise HTTPException(status_code=404, detail="Rule not found")
    session.commit()
    return Response(status_code=204)
