from __future__ import annotations

from fastapi import APIRouter, Depends

from clinic_scheduler.api.errors import raise_for_rejection
from clinic_scheduler.db.session import get_session
from clinic_scheduler.engine.pto_sync import create_pto, delete_pto
from clinic_scheduler.schemas.common import PTOCreate, PTOCreateResponse, PTODelete, PTODeleteResponse

router = APIRouter()


def _get_session():
    with get_session() as session:
        yield session


@router.post("", response_model=PTOCreateResponse)
def enter_pto(payload: PTOCreate, session=Depends(_get_session)) -> PTOCreateResponse:
    result = create_pto(
        session,
        payload.provider_id,
        payload.start_date,
        payload.end_date,
        payload.time_block,
        payload.leave_type,
        payload.reason,
    )
    raise_for_rejection(result.rejection)
    return PTOCreateResponse(
        pto_request_created=result.pto_request_created,
        provider_leave_created=result.provider_leave_created,
        schedule_assignments_created=result.schedule_assignments_created,
        dates_processed=result.dates_processed,
    )


@router.delete("", response_model=PTODeleteResponse)
def remove_pto(payload: PTODelete, session=Depends(_get_session)) -> PTODeleteResponse:
    result = delete_pto(session, payload.provider_id, payload.date, payload.time_block)
    return PTODeleteResponse(
        schedule_assignments_deleted=result.schedule_assignments_deleted,
        pto_requests_updated=result.pto_requests_updated,
        provider_leaves_updated=result.provider_leaves_updated,
    )
