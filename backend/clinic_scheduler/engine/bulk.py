"""Bulk add/remove of one provider's assignments over a date range."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from clinic_scheduler.db.session import InMemorySession
from clinic_scheduler.engine.history import insert_payload, record_change
from clinic_scheduler.engine.pto_days import iter_dates
from clinic_scheduler.engine.results import NOT_FOUND, VALIDATION, Rejection
from clinic_scheduler.models import (
    AddedDelta,
    Assignment,
    OperationType,
    Provider,
    RemovedDelta,
    Service,
    TimeBlock,
    day_of_week,
)

logger = logging.getLogger(__name__)

DAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


@dataclass
class BulkPattern:
    type: str = "all"  # all | recurring
    day_of_week: Optional[int] = None
    time_block: Optional[TimeBlock] = None
    service_id: Optional[int] = None


@dataclass
class BulkProviderOp:
    provider_id: int
    action: str  # add | remove
    pattern: BulkPattern
    start_date: date
    end_date: date
    preview: bool = False
    room_count: int = 0


@dataclass
class BulkOutcome:
    affected_count: int = 0
    assignments: List[Assignment] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    history_id: Optional[int] = None
    preview: bool = False
    message: str = ""
    rejection: Optional[Rejection] = None


def validate_op(op: BulkProviderOp) -> Optional[Rejection]:
    if op.action not in ("add", "remove"):
        return Rejection(VALIDATION, 'action must be "add" or "remove"')
    if op.pattern.type not in ("all", "recurring"):
        return Rejection(VALIDATION, 'pattern.type must be "all" or "recurring"')
    if op.pattern.type == "recurring" and op.pattern.day_of_week is None:
        return Rejection(VALIDATION, "pattern.day_of_week is required for recurring pattern")
    if op.start_date > op.end_date:
        return Rejection(VALIDATION, "start_date must be on or before end_date")
    if op.action == "add" and op.pattern.service_id is None:
        return Rejection(VALIDATION, "pattern.service_id is required for add action")
    if op.room_count < 0:
        return Rejection(VALIDATION, "room_count must be zero or more")
    return None


def _pattern_description(pattern: BulkPattern, everything: str) -> str:
    if pattern.type == "all":
        return everything
    block = pattern.time_block.value if pattern.time_block else "all"
    return f"{DAY_NAMES[pattern.day_of_week]} {block}"


def plan_bulk_provider_op(session: InMemorySession, op: BulkProviderOp) -> BulkOutcome:
    rejection = validate_op(op)
    if rejection:
        return BulkOutcome(rejection=rejection)

    provider = session.get(Provider, op.provider_id)
    if provider is None:
        return BulkOutcome(rejection=Rejection(NOT_FOUND, "Provider not found"))

    service_name = None
    if op.pattern.service_id is not None:
        service = session.get(Service, op.pattern.service_id)
        service_name = service.name if service else None

    if op.action == "remove":
        return _remove(session, op, provider, service_name)
    return _add(session, op, provider, service_name)


def _remove(session: InMemorySession, op: BulkProviderOp, provider: Provider, service_name: Optional[str]) -> BulkOutcome:
    pattern = op.pattern

    def matches(a: Assignment) -> bool:
        if a.provider_id != op.provider_id or not (op.start_date <= a.date <= op.end_date):
            return False
        if pattern.service_id is not None and a.service_id != pattern.service_id:
            return False
        if pattern.time_block is not None and a.time_block != pattern.time_block:
            return False
        return True

    matched = session.filter(Assignment, matches)
    if pattern.type == "recurring":
        matched = [a for a in matched if day_of_week(a.date) == pattern.day_of_week]
    matched.sort(key=lambda a: (a.date, a.time_block.value))

    outcome = BulkOutcome(affected_count=len(matched), assignments=matched, preview=op.preview)
    if op.preview:
        return outcome
    if not matched:
        outcome.message = "No matching assignments found to remove"
        return outcome

    snapshots = [a.snapshot() for a in matched]
    session.delete(Assignment, [a.id for a in matched])
    session.commit()

    who = provider.name or provider.initials
    suffix = f" ({service_name})" if service_name else ""
    entry = record_change(
        session,
        OperationType.BULK_REMOVE,
        f"Removed {who} from {_pattern_description(pattern, 'all assignments')}{suffix} {op.start_date} - {op.end_date}",
        op.start_date,
        op.end_date,
        RemovedDelta(snapshots=snapshots),
        {"provider_id": provider.id, "provider_name": provider.name, "action": op.action, "service_name": service_name},
    )
    outcome.history_id = entry.id if entry else None
    outcome.message = f"Removed {len(matched)} assignments for {who}"
    logger.info(outcome.message)
    return outcome


def _add(session: InMemorySession, op: BulkProviderOp, provider: Provider, service_name: Optional[str]) -> BulkOutcome:
    pattern = op.pattern
    dates = [
        d for d in iter_dates(op.start_date, op.end_date)
        if pattern.type == "all" or day_of_week(d) == pattern.day_of_week
    ]
    blocks = [pattern.time_block] if pattern.time_block else [TimeBlock.AM, TimeBlock.PM]

    taken = {
        (a.date, a.time_block)
        for a in session.filter(
            Assignment,
            lambda a: a.service_id == pattern.service_id and op.start_date <= a.date <= op.end_date,
        )
    }

    to_create: List[Assignment] = []
    skipped: List[str] = []
    for day in dates:
        for block in blocks:
            if (day, block) in taken:
                skipped.append(f"{day.isoformat()} {block.value}")
                continue
            to_create.append(
                Assignment(
                    date=day,
                    service_id=pattern.service_id,
                    provider_id=op.provider_id,
                    time_block=block,
                    room_count=op.room_count,
                    is_pto=False,
                )
            )

    outcome = BulkOutcome(affected_count=len(to_create), assignments=to_create, skipped=skipped, preview=op.preview)
    if op.preview:
        return outcome
    if not to_create:
        outcome.message = "No new assignments created (all slots already filled)"
        return outcome

    payloads = [insert_payload(a) for a in to_create]
    session.add_all(to_create)
    session.commit()

    who = provider.name or provider.initials
    entry = record_change(
        session,
        OperationType.BULK_ADD,
        f"Added {who} to {service_name} {_pattern_description(pattern, 'all dates')} {op.start_date} - {op.end_date}",
        op.start_date,
        op.end_date,
        AddedDelta(created_ids=[a.id for a in to_create], payloads=payloads),
        {
            "provider_id": provider.id,
            "provider_name": provider.name,
            "action": op.action,
            "service_id": pattern.service_id,
            "service_name": service_name,
            "room_count": op.room_count,
        },
    )
    outcome.history_id = entry.id if entry else None
    outcome.message = f"Added {len(to_create)} assignments for {who}"
    logger.info(outcome.message)
    return outcome
