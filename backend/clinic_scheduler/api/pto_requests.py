from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from clinic_scheduler.api.errors import raise_for_rejection
from clinic_scheduler.db.session import get_session
from clinic_scheduler.engine import balance
from clinic_scheduler.models import PTORequest, PTOStatus
from clinic_scheduler.schemas.common import (
    PTORequestCreate,
    PTORequestRead,
    PTORequestReview,
    PTOValidateRequest,
    PTOValidationRead,
)

router = APIRouter()


def _get_session():
    with get_session() as session:
        yield session


def _check_range(start_date, end_date) -> None:
    if start_date > end_date:
        raise HTTPException(status_code=400, detail="Start date must be before or equal to end date")


@router.post("/validate", response_model=PTOValidationRead)
def validate_request(payload: PTOValidateRequest, session=Depends(_get_session)) -> PTOValidationRead:
    _check_range(payload.start_date, payload.end_date)
    result = balance.validate_pto_request(
        session, payload.provider_id, payload.start_date, payload.end_date, payload.time_block
    )
    return PTOValidationRead.model_validate(result)


@router.get("", response_model=list[PTORequestRead])
def list_requests(
    provider_id: Optional[int] = None,
    status: Optional[PTOStatus] = None,
    session=Depends(_get_session),
) -> list[PTORequest]:
    requests = session.filter(
        PTORequest,
        lambda r: (provider_id is None or r.provider_id == provider_id) and (status is None or r.status == status),
    )
    return sorted(requests, key=lambda r: r.start_date)


@router.post("", response_model=PTORequestRead)
def submit_request(payload: PTORequestCreate, session=Depends(_get_session)) -> PTORequest:
    _check_range(payload.start_date, payload.end_date)
    outcome = balance.submit_pto_request(
        session,
        payload.provider_id,
        payload.start_date,
        payload.end_date,
        payload.time_block,
        payload.leave_type,
        payload.reason,
        payload.requested_by,
    )
    raise_for_rejection(outcome.rejection)
    return outcome.request


@router.post("/{request_id}/approve", response_model=PTORequestRead)
def approve_request(request_id: int, payload: PTORequestReview, session=Depends(_get_session)) -> PTORequest:
    outcome = balance.approve_pto_request(session, request_id, payload.admin_name, payload.admin_comment)
    raise_for_rejection(outcome.rejection)
    return outcome.request


@router.post("/{request_id}/deny", response_model=PTORequestRead)
def deny_request(request_id: int, payload: PTORequestReview, session=Depends(_get_session)) -> PTORequest:
    outcome = balance.deny_pto_request(session, request_id, payload.admin_name, payload.admin_comment)
    raise_for_rejection(outcome.rejection)
    return outcome.request


@router.delete("/{request_id}", response_model=PTORequestRead)
def cancel_request(request_id: int, session=Depends(_get_session)) -> PTORequest:
    outcome = balance.cancel_pto_request(session, request_id)
    raise_for_rejection(outcome.rejection)
    return outcome.request
