from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from clinic_scheduler.api.errors import raise_for_rejection
from clinic_scheduler.db.session import get_session
from clinic_scheduler.engine import conflicts
from clinic_scheduler.models import Assignment
from clinic_scheduler.schemas.common import (
    AssignmentCreate,
    AssignmentDeleteResponse,
    AssignmentRead,
    AssignmentUpdate,
    AssignmentWriteResponse,
    BulkAssignmentCreate,
    BulkAssignmentCreateResponse,
    BulkAssignmentDelete,
    BulkAssignmentDeleteResponse,
)

router = APIRouter()


def _get_session():
    with get_session() as session:
        yield session


@router.get("", response_model=list[AssignmentRead])
def list_assignments(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    provider_id: Optional[int] = None,
    session=Depends(_get_session),
) -> list[Assignment]:
    def matches(a: Assignment) -> bool:
        if start_date and a.date < start_date:
            return False
        if end_date and a.date > end_date:
            return False
        return provider_id is None or a.provider_id == provider_id

    return sorted(session.filter(Assignment, matches), key=lambda a: (a.date, a.time_block.value, a.id))


@router.post("/bulk", response_model=BulkAssignmentCreateResponse)
def create_bulk(payload: BulkAssignmentCreate, session=Depends(_get_session)) -> BulkAssignmentCreateResponse:
    drafts = [Assignment(**item.model_dump()) for item in payload.assignments]
    outcome = conflicts.create_assignments_batch(
        session,
        drafts,
        force_override=payload.force_override,
        acknowledged_warnings=payload.acknowledged_warnings,
    )
    raise_for_rejection(outcome.rejection)
    return BulkAssignmentCreateResponse(
        created=len(outcome.created),
        warnings=outcome.warnings,
        data=[AssignmentRead.model_validate(a) for a in outcome.created],
    )


@router.delete("/bulk", response_model=BulkAssignmentDeleteResponse)
def delete_bulk(payload: BulkAssignmentDelete, session=Depends(_get_session)) -> BulkAssignmentDeleteResponse:
    deleted = conflicts.delete_assignments_batch(session, payload.ids)
    return BulkAssignmentDeleteResponse(deleted=deleted)


@router.get("/{assignment_id}", response_model=AssignmentRead)
def get_assignment(assignment_id: int, session=Depends(_get_session)) -> Assignment:
    assignment = session.get(Assignment, assignment_id)
    if not assignment:
        raise HTTPException(status_code=404, detail="Assignment not found")
    return assignment


@router.post("", response_model=AssignmentWriteResponse)
def create_assignment(payload: AssignmentCreate, session=Depends(_get_session)) -> AssignmentWriteResponse:
    draft = Assignment(**payload.model_dump(exclude={"force_override"}))
    outcome = conflicts.create_assignment(session, draft, force_override=payload.force_override)
    raise_for_rejection(outcome.rejection)
    return AssignmentWriteResponse(
        assignment=AssignmentRead.model_validate(outcome.assignment),
        warnings=outcome.warnings,
        pto_request_created=outcome.pto_sync.pto_request_created if outcome.pto_sync else None,
        provider_leave_created=outcome.pto_sync.provider_leave_created if outcome.pto_sync else None,
    )


def _update(assignment_id: int, payload: AssignmentUpdate, session) -> AssignmentWriteResponse:
    outcome = conflicts.update_assignment(session, assignment_id, payload.model_dump(exclude_unset=True))
    raise_for_rejection(outcome.rejection)
    return AssignmentWriteResponse(assignment=AssignmentRead.model_validate(outcome.assignment))


@router.put("/{assignment_id}", response_model=AssignmentWriteResponse)
def replace_assignment(assignment_id: int, payload: AssignmentUpdate, session=Depends(_get_session)) -> AssignmentWriteResponse:
    return _update(assignment_id, payload, session)


@router.patch("/{assignment_id}", response_model=AssignmentWriteResponse)
def update_assignment(assignment_id: int, payload: AssignmentUpdate, session=Depends(_get_session)) -> AssignmentWriteResponse:
    return _update(assignment_id, payload, session)


@router.delete("/{assignment_id}", response_model=AssignmentDeleteResponse)
def delete_assignment(assignment_id: int, session=Depends(_get_session)) -> AssignmentDeleteResponse:
    outcome = conflicts.delete_assignment(session, assignment_id)
    raise_for_rejection(outcome.rejection)
    cascade = outcome.cascade
    return AssignmentDeleteResponse(
        success=outcome.deleted,
        pto_requests_updated=cascade.pto_requests_updated if cascade else 0,
        provider_leaves_updated=cascade.provider_leaves_updated if cascade else 0,
    )
