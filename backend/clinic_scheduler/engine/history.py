"""Change journal for bulk schedule operations, with undo and redo."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from clinic_scheduler.core.config import settings
from clinic_scheduler.db.session import InMemorySession
from clinic_scheduler.engine.results import ALREADY_UNDONE, NOT_FOUND, NOT_UNDONE, STORAGE, Rejection
from clinic_scheduler.models import (
    Assignment,
    ChangeHistoryEntry,
    HistoryDelta,
    OperationType,
    Provider,
    Service,
    utcnow,
)

logger = logging.getLogger(__name__)


@dataclass
class UndoConflict:
    id: int
    change_type: str
    date: Optional[date] = None
    time_block: Optional[str] = None
    provider_name: Optional[str] = None
    service_name: Optional[str] = None
    details: Optional[str] = None


@dataclass
class UndoOutcome:
    success: bool = False
    requires_confirmation: bool = False
    conflicts: List[UndoConflict] = field(default_factory=list)
    deleted_count: int = 0
    restored_count: int = 0
    message: str = ""
    rejection: Optional[Rejection] = None


@dataclass
class RedoOutcome:
    success: bool = False
    deleted_count: int = 0
    created_count: int = 0
    message: str = ""
    rejection: Optional[Rejection] = None


def insert_payload(assignment: Assignment) -> Dict[str, Any]:
    """Fields needed to re-create ``assignment`` with a fresh id."""
    data = assignment.snapshot()
    data.pop("id", None)
    data.pop("created_at", None)
    return data


def record_change(
    session: InMemorySession,
    operation_type: OperationType,
    description: str,
    start: date,
    end: date,
    delta: HistoryDelta,
    metadata: Optional[Dict[str, Any]] = None,
) -> Optional[ChangeHistoryEntry]:
    entry = ChangeHistoryEntry(
        operation_type=operation_type,
        description=description,
        affected_date_start=start,
        affected_date_end=end,
        delta=delta,
        metadata=metadata or {},
    )
    try:
        session.add(entry)
        session.commit()
    except Exception:
        # the operation itself already happened; it just cannot be undone
        logger.exception(f"Error recording change history for {operation_type.value}")
        return None
    return entry


def list_history(
    session: InMemorySession,
    limit: Optional[int] = None,
    days_back: Optional[int] = None,
) -> List[ChangeHistoryEntry]:
    limit = settings.history_limit if limit is None else limit
    days_back = settings.history_days_back if days_back is None else days_back
    cutoff = utcnow() - timedelta(days=days_back)
    entries = session.filter(ChangeHistoryEntry, lambda e: e.created_at >= cutoff)
    entries.sort(key=lambda e: (e.created_at, e.id), reverse=True)
    return entries[:limit]


def _conflicts(session: InMemorySession, entry: ChangeHistoryEntry) -> List[UndoConflict]:
    created_ids = entry.created_assignment_ids
    conflicts: List[UndoConflict] = []

    wanted = set(created_ids)
    present = {a.id for a in session.filter(Assignment, lambda a: a.id in wanted)}
    for assignment_id in created_ids:
        if assignment_id not in present:
            conflicts.append(
                UndoConflict(id=assignment_id, change_type="deleted", details="Assignment was manually deleted")
            )

    known = set(created_ids) | {s["id"] for s in entry.deleted_assignments}
    in_range = session.filter(
        Assignment,
        lambda a: entry.affected_date_start <= a.date <= entry.affected_date_end and a.id not in known,
    )
    for assignment in sorted(in_range, key=lambda a: (a.date, a.id)):
        provider = session.get(Provider, assignment.provider_id)
        service = session.get(Service, assignment.service_id)
        conflicts.append(
            UndoConflict(
                id=assignment.id,
                change_type="added",
                date=assignment.date,
                time_block=assignment.time_block.value,
                provider_name=(provider.name or provider.initials) if provider else None,
                service_name=service.name if service else None,
                details="New assignment added since operation",
            )
        )
    return conflicts


def undo(session: InMemorySession, history_id: int, force: bool = False) -> UndoOutcome:
    entry = session.get(ChangeHistoryEntry, history_id)
    if entry is None:
        return UndoOutcome(rejection=Rejection(NOT_FOUND, "History record not found"))
    if entry.is_undone:
        return UndoOutcome(rejection=Rejection(ALREADY_UNDONE, "This operation has already been undone"))

    created_ids = entry.created_assignment_ids
    snapshots = entry.deleted_assignments

    if not force and created_ids:
        conflicts = _conflicts(session, entry)
        if conflicts:
            return UndoOutcome(
                requires_confirmation=True,
                conflicts=conflicts,
                message=f"{len(conflicts)} change(s) detected since this operation. Undoing will overwrite these changes.",
            )

    deleted = 0
    if created_ids:
        # ids deleted by hand since the operation are simply absent
        deleted = session.delete(Assignment, created_ids)
        session.commit()

    restored = 0
    for snapshot in snapshots:
        try:
            session.merge(Assignment.from_snapshot(snapshot))
            restored += 1
        except Exception:
            logger.exception(f"Error restoring assignment {snapshot.get('id')} for history {history_id}")
    session.commit()

    entry.is_undone = True
    entry.undone_at = utcnow()
    entry.is_redone = False
    entry.redone_at = None
    session.commit()

    logger.info(f"Undid history {history_id}: deleted {deleted}, restored {restored}")
    return UndoOutcome(
        success=True,
        deleted_count=deleted,
        restored_count=restored,
        message=f"Undo successful. Deleted {deleted} assignments, restored {restored} assignments.",
    )


def redo(session: InMemorySession, history_id: int) -> RedoOutcome:
    entry = session.get(ChangeHistoryEntry, history_id)
    if entry is None:
        return RedoOutcome(rejection=Rejection(NOT_FOUND, "History record not found"))
    if not entry.is_undone:
        return RedoOutcome(rejection=Rejection(NOT_UNDONE, "This operation has not been undone - cannot redo"))

    snapshots = entry.deleted_assignments
    deleted = 0
    if snapshots:
        deleted = session.delete(Assignment, [s["id"] for s in snapshots])
        session.commit()

    payloads = entry.redo_assignments
    created = [Assignment(**payload) for payload in payloads]
    try:
        session.add_all(created)
        session.commit()
    except Exception:
        logger.exception(f"Error re-creating assignments for history {history_id}")
        return RedoOutcome(rejection=Rejection(STORAGE, "Failed to re-create assignments"))

    entry.delta = entry.with_created_ids([a.id for a in created])
    entry.is_undone = False
    entry.is_redone = True
    entry.redone_at = utcnow()
    session.commit()

    logger.info(f"Redid history {history_id}: re-created {len(created)}")
    return RedoOutcome(
        success=True,
        deleted_count=deleted,
        created_count=len(created),
        message=f"Redo successful. Re-created {len(created)} assignments.",
    )
