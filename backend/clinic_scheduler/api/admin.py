from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from clinic_scheduler.api.errors import raise_for_rejection
from clinic_scheduler.db.session import get_session
from clinic_scheduler.engine.bulk import BulkPattern, BulkProviderOp, plan_bulk_provider_op
from clinic_scheduler.engine.history import list_history, redo, undo
from clinic_scheduler.models import Provider, Service
from clinic_scheduler.schemas.common import (
    AffectedAssignment,
    BulkProviderRequest,
    BulkProviderResponse,
    ChangeHistoryRead,
    RedoRequest,
    RedoResponse,
    UndoConflictRead,
    UndoRequest,
    UndoResponse,
)

router = APIRouter()


def _get_session():
    with get_session() as session:
        yield session


@router.post("/bulk-provider", response_model=BulkProviderResponse)
def bulk_provider(payload: BulkProviderRequest, session=Depends(_get_session)) -> BulkProviderResponse:
    op = BulkProviderOp(
        provider_id=payload.provider_id,
        action=payload.action,
        pattern=BulkPattern(**payload.pattern.model_dump()),
        start_date=payload.start_date,
        end_date=payload.end_date,
        preview=payload.preview,
        room_count=payload.room_count,
    )
    outcome = plan_bulk_provider_op(session, op)
    raise_for_rejection(outcome.rejection)

    provider = session.get(Provider, payload.provider_id)
    services = {s.id: s.name for s in session.all(Service)}
    return BulkProviderResponse(
        preview=outcome.preview,
        action=payload.action,
        affected_count=outcome.affected_count,
        skipped_count=len(outcome.skipped),
        assignments=[
            AffectedAssignment(
                id=a.id or None,
                date=a.date,
                time_block=a.time_block,
                service_id=a.service_id,
                service_name=services.get(a.service_id),
                provider_id=a.provider_id,
                provider_name=provider.name or provider.initials,
            )
            for a in outcome.assignments
        ],
        history_id=outcome.history_id,
        message=outcome.message,
    )


@router.post("/undo", response_model=UndoResponse)
def undo_operation(payload: UndoRequest, session=Depends(_get_session)) -> UndoResponse:
    outcome = undo(session, payload.history_id, force=payload.force)
    raise_for_rejection(outcome.rejection)
    return UndoResponse(
        success=outcome.success,
        requires_confirmation=outcome.requires_confirmation,
        conflicts=[UndoConflictRead.model_validate(c) for c in outcome.conflicts],
        deleted_count=outcome.deleted_count,
        restored_count=outcome.restored_count,
        message=outcome.message,
    )


@router.post("/redo", response_model=RedoResponse)
def redo_operation(payload: RedoRequest, session=Depends(_get_session)) -> RedoResponse:
    outcome = redo(session, payload.history_id)
    raise_for_rejection(outcome.rejection)
    return RedoResponse(
        deleted_count=outcome.deleted_count,
        created_count=outcome.created_count,
        message=outcome.message,
    )


@router.get("/change-history", response_model=list[ChangeHistoryRead])
def change_history(
    limit: Optional[int] = None,
    days_back: Optional[int] = None,
    session=Depends(_get_session),
) -> list[ChangeHistoryRead]:
    return [
        ChangeHistoryRead(
            id=entry.id,
            operation_type=entry.operation_type,
            description=entry.description,
            affected_date_start=entry.affected_date_start,
            affected_date_end=entry.affected_date_end,
            created_count=len(entry.created_assignment_ids),
            deleted_count=len(entry.deleted_assignments),
            is_undone=entry.is_undone,
            undone_at=entry.undone_at,
            is_redone=entry.is_redone,
            redone_at=entry.redone_at,
            metadata=entry.metadata,
            created_at=entry.created_at,
        )
        for entry in list_history(session, limit=limit, days_back=days_back)
    ]
