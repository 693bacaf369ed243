"""Expands weekly templates into dated assignments."""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Sequence

from clinic_scheduler.db.session import InMemorySession
from clinic_scheduler.engine.availability import time_blocks_overlap
from clinic_scheduler.engine.history import insert_payload, record_change
from clinic_scheduler.engine.holidays import is_holiday, is_inpatient_service
from clinic_scheduler.engine.results import NOT_FOUND, VALIDATION, Rejection
from clinic_scheduler.models import (
    AddedDelta,
    Assignment,
    OperationType,
    Provider,
    RemovedDelta,
    ReplacedDelta,
    ScheduleTemplate,
    Service,
    TemplateAssignment,
    day_of_week,
)

logger = logging.getLogger(__name__)


@dataclass
class PTOConflict:
    provider_id: int
    provider_name: Optional[str]
    date: date
    time_block: str
    intended_service_id: int
    intended_service_name: Optional[str]
    reason: str = "Provider has PTO"


@dataclass
class WeekApplication:
    week: date
    template_id: int
    template_name: str


@dataclass
class TemplateOutcome:
    created: List[Assignment] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    cleared_count: int = 0
    holiday_conflicts: List[str] = field(default_factory=list)
    pto_conflicts: List[PTOConflict] = field(default_factory=list)
    week_applications: List[WeekApplication] = field(default_factory=list)
    history_id: Optional[int] = None
    message: str = ""
    rejection: Optional[Rejection] = None

    @property
    def coverage_needed(self) -> int:
        return len(self.pto_conflicts)


def week_start(value: date) -> date:
    return value - timedelta(days=day_of_week(value))


def weeks_between(start: date, end: date) -> List[date]:
    weeks = []
    current = week_start(start)
    while current <= end:
        weeks.append(current)
        current += timedelta(days=7)
    return weeks


def apply_templates(
    session: InMemorySession,
    template_ids: Sequence[int],
    pattern: Sequence[int],
    start: date,
    end: date,
    clear_existing: bool = False,
    skip_conflicts: bool = True,
    operation_type: OperationType = OperationType.TEMPLATE_APPLY_ALTERNATING,
) -> TemplateOutcome:
    """Apply ``template_ids`` week by week, week ``i`` using ``pattern[i % len(pattern)]``.

    Weeks start on Sunday and the first week is the one containing ``start``;
    dates outside ``[start, end]`` are dropped. Holiday slots are skipped
    unless the service is inpatient, and slots where the provider already has
    PTO are skipped and reported as needing coverage.
    """
    if not template_ids:
        return TemplateOutcome(rejection=Rejection(VALIDATION, "At least one template is required"))
    if not pattern:
        return TemplateOutcome(rejection=Rejection(VALIDATION, "Pattern array is required"))
    for index in pattern:
        if index < 0 or index >= len(template_ids):
            return TemplateOutcome(
                rejection=Rejection(VALIDATION, f"Pattern index {index} is out of range (0-{len(template_ids) - 1})")
            )
    if start > end:
        return TemplateOutcome(rejection=Rejection(VALIDATION, "start_date must be on or before end_date"))

    names: List[str] = []
    by_template: Dict[int, Dict[int, List[TemplateAssignment]]] = {}
    for template_id in template_ids:
        template = session.get(ScheduleTemplate, template_id)
        names.append(template.name if template else "Unknown")
        by_day: Dict[int, List[TemplateAssignment]] = defaultdict(list)
        for entry in session.filter(TemplateAssignment, lambda t: t.template_id == template_id):
            by_day[entry.day_of_week].append(entry)
        by_template[template_id] = by_day

    pto_slots = session.filter(Assignment, lambda a: a.is_pto and start <= a.date <= end)

    outcome = TemplateOutcome()
    removed = []
    if clear_existing:
        removed = session.delete_where(Assignment, lambda a: start <= a.date <= end)
        session.commit()
        outcome.cleared_count = len(removed)

    planned: List[Assignment] = []
    for week_index, week in enumerate(weeks_between(start, end)):
        template_index = pattern[week_index % len(pattern)]
        template_id = template_ids[template_index]
        outcome.week_applications.append(
            WeekApplication(week=week, template_id=template_id, template_name=names[template_index])
        )
        by_day = by_template[template_id]
        for offset in range(7):
            day = week + timedelta(days=offset)
            if day < start or day > end:
                continue
            holiday = is_holiday(day)
            for entry in by_day.get(day_of_week(day), []):
                service = session.get(Service, entry.service_id)
                service_name = service.name if service else None
                if holiday and not is_inpatient_service(service_name):
                    outcome.holiday_conflicts.append(f"{day.isoformat()}: {holiday.name} ({service_name or 'Unknown'})")
                    continue
                if any(
                    p.provider_id == entry.provider_id and p.date == day and time_blocks_overlap(p.time_block, entry.time_block)
                    for p in pto_slots
                ):
                    provider = session.get(Provider, entry.provider_id)
                    outcome.pto_conflicts.append(
                        PTOConflict(
                            provider_id=entry.provider_id,
                            provider_name=(provider.name or provider.initials) if provider else None,
                            date=day,
                            time_block=entry.time_block.value,
                            intended_service_id=entry.service_id,
                            intended_service_name=service_name,
                        )
                    )
                    continue
                planned.append(
                    Assignment(
                        date=day,
                        service_id=entry.service_id,
                        provider_id=entry.provider_id,
                        time_block=entry.time_block,
                        room_count=entry.room_count,
                        is_pto=entry.is_pto,
                        notes=entry.notes,
                    )
                )

    if not clear_existing and skip_conflicts:
        existing = {
            (a.date, a.service_id, a.time_block)
            for a in session.filter(Assignment, lambda a: start <= a.date <= end)
        }
        kept = []
        for assignment in planned:
            key = (assignment.date, assignment.service_id, assignment.time_block)
            if key in existing:
                outcome.skipped.append(f"{assignment.date.isoformat()}|{assignment.service_id}|{assignment.time_block.value}")
                continue
            kept.append(assignment)
        planned = kept

    if not planned and not removed:
        outcome.message = "No assignments to create"
        return outcome

    payloads = [insert_payload(a) for a in planned]
    session.add_all(planned)
    session.commit()
    outcome.created = planned

    added = AddedDelta(created_ids=[a.id for a in planned], payloads=payloads)
    delta = ReplacedDelta(removed=RemovedDelta(snapshots=[a.snapshot() for a in removed]), added=added) if clear_existing else added
    joined = " / ".join(names)
    if operation_type == OperationType.TEMPLATE_APPLY:
        description = f'Applied template "{joined}" to {start} - {end}'
    else:
        description = f'Applied alternating "{joined}" to {start} - {end}'
    entry = record_change(
        session,
        operation_type,
        description,
        start,
        end,
        delta,
        {
            "template_ids": list(template_ids),
            "template_names": names,
            "pattern": list(pattern),
            "clear_existing": clear_existing,
            "skip_conflicts": skip_conflicts,
            "pto_conflicts_count": len(outcome.pto_conflicts),
            "holiday_conflicts_count": len(outcome.holiday_conflicts),
        },
    )
    outcome.history_id = entry.id if entry else None
    outcome.message = f"Created {len(planned)} assignments"
    logger.info(f"{description}: created {len(planned)}, cleared {len(removed)}, skipped {len(outcome.skipped)}")
    return outcome


def apply_template(
    session: InMemorySession,
    template_id: int,
    start: date,
    end: date,
    clear_existing: bool = False,
    skip_conflicts: bool = True,
) -> TemplateOutcome:
    return apply_templates(
        session,
        [template_id],
        [0],
        start,
        end,
        clear_existing=clear_existing,
        skip_conflicts=skip_conflicts,
        operation_type=OperationType.TEMPLATE_APPLY,
    )


# template management ----------------------------------------------------------

TEMPLATE_FIELDS = ("name", "description", "type", "is_global", "owner_id")


@dataclass
class TemplateRecord:
    template: Optional[ScheduleTemplate] = None
    entries: List[TemplateAssignment] = field(default_factory=list)
    source_week_start: Optional[date] = None
    source_week_end: Optional[date] = None
    source_count: int = 0
    rejection: Optional[Rejection] = None


def list_templates(
    session: InMemorySession,
    type: Optional[str] = None,
    is_global: Optional[bool] = None,
    owner_id: Optional[int] = None,
) -> List[ScheduleTemplate]:
    templates = session.filter(
        ScheduleTemplate,
        lambda t: (type is None or t.type == type)
        and (is_global is None or t.is_global == is_global)
        and (owner_id is None or t.owner_id == owner_id),
    )
    templates.sort(key=lambda t: (t.created_at, t.id), reverse=True)
    return templates


def create_template(
    session: InMemorySession,
    name: str,
    description: Optional[str] = None,
    type: str = "weekly",
    is_global: bool = True,
    owner_id: Optional[int] = None,
) -> TemplateRecord:
    if not name or not name.strip():
        return TemplateRecord(rejection=Rejection(VALIDATION, "Template name is required"))
    template = ScheduleTemplate(
        name=name.strip(),
        description=description,
        type=type or "weekly",
        is_global=is_global,
        owner_id=owner_id,
    )
    session.add(template)
    session.commit()
    return TemplateRecord(template=template)


def update_template(session: InMemorySession, template_id: int, updates: Dict[str, Any]) -> TemplateRecord:
    template = session.get(ScheduleTemplate, template_id)
    if template is None:
        return TemplateRecord(rejection=Rejection(NOT_FOUND, "Template not found"))
    if "name" in updates and not (updates["name"] or "").strip():
        return TemplateRecord(rejection=Rejection(VALIDATION, "Template name is required"))
    for key, value in updates.items():
        if key in TEMPLATE_FIELDS:
            setattr(template, key, value)
    session.commit()
    return TemplateRecord(template=template, entries=template_entries(session, template_id))


def delete_template(session: InMemorySession, template_id: int) -> TemplateRecord:
    template = session.get(ScheduleTemplate, template_id)
    if template is None:
        return TemplateRecord(rejection=Rejection(NOT_FOUND, "Template not found"))
    entries = session.delete_where(TemplateAssignment, lambda e: e.template_id == template_id)
    session.delete(ScheduleTemplate, [template_id])
    session.commit()
    logger.info(f"Deleted template {template_id} ({template.name}) with {len(entries)} entries")
    return TemplateRecord(template=template, entries=entries)


def template_entries(session: InMemorySession, template_id: int) -> List[TemplateAssignment]:
    entries = session.filter(TemplateAssignment, lambda e: e.template_id == template_id)
    entries.sort(key=lambda e: (e.day_of_week, e.time_block.value, e.id))
    return entries


def add_template_entries(
    session: InMemorySession,
    template_id: int,
    entries: Sequence[TemplateAssignment],
) -> TemplateRecord:
    template = session.get(ScheduleTemplate, template_id)
    if template is None:
        return TemplateRecord(rejection=Rejection(NOT_FOUND, "Template not found"))
    for entry in entries:
        entry.template_id = template_id
    session.add_all(entries)
    session.commit()
    return TemplateRecord(template=template, entries=list(entries))


def replace_template_entries(
    session: InMemorySession,
    template_id: int,
    entries: Sequence[TemplateAssignment],
) -> TemplateRecord:
    """Swap the whole week of a template for ``entries``."""
    template = session.get(ScheduleTemplate, template_id)
    if template is None:
        return TemplateRecord(rejection=Rejection(NOT_FOUND, "Template not found"))
    session.delete_where(TemplateAssignment, lambda e: e.template_id == template_id)
    for entry in entries:
        entry.template_id = template_id
    session.add_all(entries)
    session.commit()
    return TemplateRecord(template=template, entries=list(entries))


def remove_template_entries(
    session: InMemorySession,
    template_id: int,
    entry_id: Optional[int] = None,
) -> int:
    """Delete one entry of a template, or all of them when ``entry_id`` is None."""
    removed = session.delete_where(
        TemplateAssignment,
        lambda e: e.template_id == template_id and (entry_id is None or e.id == entry_id),
    )
    session.commit()
    return len(removed)


def create_template_from_week(
    session: InMemorySession,
    name: str,
    week_of: date,
    description: Optional[str] = None,
    type: str = "weekly",
    is_global: bool = True,
    owner_id: Optional[int] = None,
) -> TemplateRecord:
    """Save the Sunday-Saturday week containing ``week_of`` as a new template."""
    start = week_start(week_of)
    end = start + timedelta(days=6)
    if not name or not name.strip():
        return TemplateRecord(rejection=Rejection(VALIDATION, "Template name is required"))
    source = session.filter(Assignment, lambda a: start <= a.date <= end)
    if not source:
        return TemplateRecord(rejection=Rejection(VALIDATION, "No assignments found for this week"))

    record = create_template(
        session,
        name,
        description or f"Created from week of {start}",
        type=type,
        is_global=is_global,
        owner_id=owner_id,
    )
    entries = [
        TemplateAssignment(
            template_id=record.template.id,
            day_of_week=day_of_week(a.date),
            service_id=a.service_id,
            provider_id=a.provider_id,
            time_block=a.time_block,
            room_count=a.room_count,
            is_pto=a.is_pto,
            notes=a.notes,
        )
        for a in sorted(source, key=lambda a: (a.date, a.time_block.value, a.id))
    ]
    session.add_all(entries)
    session.commit()
    logger.info(f"Created template {record.template.id} ({record.template.name}) from week of {start}: {len(entries)} entries")
    return TemplateRecord(
        template=record.template,
        entries=entries,
        source_week_start=start,
        source_week_end=end,
        source_count=len(source),
    )
