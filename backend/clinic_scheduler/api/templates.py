from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from clinic_scheduler.api.errors import raise_for_rejection
from clinic_scheduler.db.session import get_session
from clinic_scheduler.engine import templates as engine
from clinic_scheduler.engine.templates import TemplateOutcome, apply_template, apply_templates
from clinic_scheduler.models import ScheduleTemplate, TemplateAssignment
from clinic_scheduler.schemas.common import (
    PTOConflictRead,
    TemplateApplyAlternatingRequest,
    TemplateApplyRequest,
    TemplateApplyResponse,
    TemplateCreate,
    TemplateEntriesDeleteResponse,
    TemplateEntriesReplace,
    TemplateEntriesReplaceResponse,
    TemplateEntryIn,
    TemplateEntryRead,
    TemplateFromWeekRequest,
    TemplateFromWeekResponse,
    TemplateRead,
    TemplateUpdate,
    WeekApplicationRead,
)

router = APIRouter()


def _get_session():
    with get_session() as session:
        yield session


def _response(outcome: TemplateOutcome) -> TemplateApplyResponse:
    return TemplateApplyResponse(
        created=len(outcome.created),
        skipped=len(outcome.skipped),
        cleared=outcome.cleared_count,
        holiday_conflicts=outcome.holiday_conflicts,
        pto_conflicts=[PTOConflictRead.model_validate(c) for c in outcome.pto_conflicts],
        coverage_needed=outcome.coverage_needed,
        week_applications=[WeekApplicationRead.model_validate(w) for w in outcome.week_applications],
        history_id=outcome.history_id,
        message=outcome.message,
    )


@router.post("/apply", response_model=TemplateApplyResponse)
def apply(payload: TemplateApplyRequest, session=Depends(_get_session)) -> TemplateApplyResponse:
    if payload.start_date > payload.end_date:
        raise HTTPException(status_code=400, detail="start_date must be on or before end_date")
    if not session.get(ScheduleTemplate, payload.template_id):
        raise HTTPException(status_code=404, detail="Template not found")
    outcome = apply_template(
        session,
        payload.template_id,
        payload.start_date,
        payload.end_date,
        clear_existing=payload.clear_existing,
        skip_conflicts=payload.skip_conflicts,
    )
    raise_for_rejection(outcome.rejection)
    return _response(outcome)


@router.post("/apply-alternating", response_model=TemplateApplyResponse)
def apply_alternating(payload: TemplateApplyAlternatingRequest, session=Depends(_get_session)) -> TemplateApplyResponse:
    if len(payload.template_ids) < 2:
        raise HTTPException(status_code=400, detail="At least 2 templates are required for alternating")
    if not payload.pattern:
        raise HTTPException(status_code=400, detail="Pattern array is required (e.g., [0, 1] for A-B-A-B)")
    if payload.start_date > payload.end_date:
        raise HTTPException(status_code=400, detail="start_date must be on or before end_date")
    for index in payload.pattern:
        if index < 0 or index >= len(payload.template_ids):
            raise HTTPException(
                status_code=400,
                detail=f"Pattern index {index} is out of range (0-{len(payload.template_ids) - 1})",
            )
    outcome = apply_templates(
        session,
        payload.template_ids,
        payload.pattern,
        payload.start_date,
        payload.end_date,
        clear_existing=payload.clear_existing,
        skip_conflicts=payload.skip_conflicts,
    )
    raise_for_rejection(outcome.rejection)
    return _response(outcome)


@router.post("/from-week", response_model=TemplateFromWeekResponse, status_code=201)
def create_from_week(payload: TemplateFromWeekRequest, session=Depends(_get_session)) -> TemplateFromWeekResponse:
    record = engine.create_template_from_week(
        session,
        payload.name,
        payload.week_start_date,
        description=payload.description,
        type=payload.type,
        is_global=payload.is_global,
        owner_id=payload.owner_id,
    )
    raise_for_rejection(record.rejection)
    return TemplateFromWeekResponse(
        template=TemplateRead.model_validate(record.template),
        assignments=[TemplateEntryRead.model_validate(e) for e in record.entries],
        source_week_start=record.source_week_start,
        source_week_end=record.source_week_end,
        assignment_count=record.source_count,
    )


@router.get("", response_model=list[TemplateRead])
def list_templates(
    type: Optional[str] = None,
    is_global: Optional[bool] = None,
    owner_id: Optional[int] = None,
    session=Depends(_get_session),
) -> list[ScheduleTemplate]:
    return engine.list_templates(session, type=type, is_global=is_global, owner_id=owner_id)


@router.post("", response_model=TemplateRead, status_code=201)
def create_template(payload: TemplateCreate, session=Depends(_get_session)) -> ScheduleTemplate:
    record = engine.create_template(session, **payload.model_dump())
    raise_for_rejection(record.rejection)
    return record.template


@router.put("/{template_id}", response_model=TemplateRead)
def update_template(template_id: int, payload: TemplateUpdate, session=Depends(_get_session)) -> ScheduleTemplate:
    record = engine.update_template(session, template_id, payload.model_dump(exclude_unset=True))
    raise_for_rejection(record.rejection)
    return record.template


@router.delete("/{template_id}", response_model=TemplateEntriesDeleteResponse)
def delete_template(template_id: int, session=Depends(_get_session)) -> TemplateEntriesDeleteResponse:
    record = engine.delete_template(session, template_id)
    raise_for_rejection(record.rejection)
    return TemplateEntriesDeleteResponse(deleted=len(record.entries))


@router.get("/{template_id}/assignments", response_model=list[TemplateEntryRead])
def list_entries(template_id: int, session=Depends(_get_session)) -> list[TemplateAssignment]:
    if not session.get(ScheduleTemplate, template_id):
        raise HTTPException(status_code=404, detail="Template not found")
    return engine.template_entries(session, template_id)


@router.post("/{template_id}/assignments", response_model=list[TemplateEntryRead], status_code=201)
def add_entries(template_id: int, payload: list[TemplateEntryIn], session=Depends(_get_session)) -> list[TemplateAssignment]:
    entries = [TemplateAssignment(**item.model_dump()) for item in payload]
    record = engine.add_template_entries(session, template_id, entries)
    raise_for_rejection(record.rejection)
    return record.entries


@router.put("/{template_id}/assignments", response_model=TemplateEntriesReplaceResponse)
def replace_entries(
    template_id: int, payload: TemplateEntriesReplace, session=Depends(_get_session)
) -> TemplateEntriesReplaceResponse:
    entries = [TemplateAssignment(**item.model_dump()) for item in payload.assignments]
    record = engine.replace_template_entries(session, template_id, entries)
    raise_for_rejection(record.rejection)
    return TemplateEntriesReplaceResponse(
        replaced=len(record.entries),
        data=[TemplateEntryRead.model_validate(e) for e in record.entries],
    )


@router.delete("/{template_id}/assignments", response_model=TemplateEntriesDeleteResponse)
def remove_entries(
    template_id: int, assignment_id: Optional[int] = None, session=Depends(_get_session)
) -> TemplateEntriesDeleteResponse:
    if not session.get(ScheduleTemplate, template_id):
        raise HTTPException(status_code=404, detail="Template not found")
    return TemplateEntriesDeleteResponse(deleted=engine.remove_template_entries(session, template_id, assignment_id))
