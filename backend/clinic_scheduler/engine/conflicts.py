"""Write-path checks for schedule assignments.

Every create goes through the same gates, in order: holiday, PTO overlap,
availability. Expected failures come back as a :class:`Rejection` on the
outcome; only storage errors raise.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from clinic_scheduler.core.config import settings
from clinic_scheduler.db.session import InMemorySession
from clinic_scheduler.engine.availability import SlotRequest, check_availability, check_bulk_availability, time_blocks_overlap
from clinic_scheduler.engine.holidays import is_holiday, is_inpatient_service
from clinic_scheduler.engine.pto_sync import CascadeResult, SyncResult, cascade_pto_deletion, create_pto_request_and_leave
from clinic_scheduler.engine.results import (
    AVAILABILITY_HARD_BLOCK,
    AVAILABILITY_WARNING,
    HOLIDAY,
    NOT_FOUND,
    PTO_CONFLICT,
    VALIDATION,
    Rejection,
)
from clinic_scheduler.models import Assignment, Enforcement, Service

logger = logging.getLogger(__name__)

PTO_OVER_WORK_WARNING = "Provider has existing work assignments in this slot; PTO was recorded and the work needs to be reassigned"

UPDATABLE_FIELDS = ("date", "service_id", "provider_id", "time_block", "room_count", "is_pto", "is_covering", "notes")


@dataclass
class AssignmentOutcome:
    assignment: Optional[Assignment] = None
    warnings: List[str] = field(default_factory=list)
    pto_sync: Optional[SyncResult] = None
    rejection: Optional[Rejection] = None


@dataclass
class DeleteOutcome:
    deleted: bool = False
    cascade: Optional[CascadeResult] = None
    rejection: Optional[Rejection] = None


@dataclass
class BatchOutcome:
    created: List[Assignment] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    rejection: Optional[Rejection] = None


def is_pto_assignment(session: InMemorySession, assignment: Assignment) -> bool:
    if assignment.is_pto:
        return True
    service = session.get(Service, assignment.service_id)
    return service is not None and service.name == settings.pto_service_name


def overlapping_assignments(session: InMemorySession, candidate: Assignment) -> List[Assignment]:
    return session.filter(
        Assignment,
        lambda a: a.provider_id == candidate.provider_id
        and a.date == candidate.date
        and a.id != candidate.id
        and time_blocks_overlap(a.time_block, candidate.time_block),
    )


def holiday_rejection(session: InMemorySession, candidate: Assignment) -> Optional[str]:
    """Return a message naming the holiday when ``candidate`` falls on one."""
    holiday = is_holiday(candidate.date)
    if holiday is None:
        return None
    service = session.get(Service, candidate.service_id)
    if service is not None and is_inpatient_service(service.name):
        return None
    service_name = service.name if service else "Unknown service"
    return f"{candidate.date.isoformat()}: {holiday.name} ({service_name})"


def pto_conflicts(session: InMemorySession, candidate: Assignment) -> tuple[bool, bool]:
    """(blocked, warn): work over PTO is blocked, PTO over work only warns."""
    existing = overlapping_assignments(session, candidate)
    new_is_pto = is_pto_assignment(session, candidate)
    has_pto = any(is_pto_assignment(session, a) for a in existing)
    has_work = any(not is_pto_assignment(session, a) for a in existing)
    return has_pto and not new_is_pto, new_is_pto and has_work


def create_assignment(
    session: InMemorySession,
    payload: Assignment,
    force_override: bool = False,
) -> AssignmentOutcome:
    holiday_message = holiday_rejection(session, payload)
    if holiday_message:
        return AssignmentOutcome(
            rejection=Rejection(HOLIDAY, f"Cannot schedule non-inpatient services on holidays. {holiday_message}")
        )

    blocked, overlap_warning = pto_conflicts(session, payload)
    if blocked:
        return AssignmentOutcome(
            rejection=Rejection(
                PTO_CONFLICT,
                f"Provider has PTO on {payload.date.isoformat()} ({payload.time_block.value}) and cannot be assigned work",
            )
        )

    warnings: List[str] = []
    if overlap_warning:
        warnings.append(PTO_OVER_WORK_WARNING)

    if not force_override:
        availability = check_availability(session, payload.provider_id, payload.service_id, payload.date, payload.time_block)
        if not availability.allowed:
            if availability.enforcement == Enforcement.HARD:
                return AssignmentOutcome(
                    rejection=Rejection(
                        AVAILABILITY_HARD_BLOCK,
                        availability.reason or "Provider is not available",
                        {"rule_id": availability.rule.id if availability.rule else None},
                    )
                )
            warnings.append(availability.reason or "Provider availability warning")

    session.add(payload)
    session.commit()
    logger.info(f"Created assignment {payload.id} for provider {payload.provider_id} on {payload.date}")

    outcome = AssignmentOutcome(assignment=payload, warnings=warnings)
    if is_pto_assignment(session, payload):
        outcome.pto_sync = create_pto_request_and_leave(
            session,
            payload.provider_id,
            payload.date,
            payload.date,
            payload.time_block,
        )
    return outcome


def update_assignment(session: InMemorySession, assignment_id: int, updates: Dict[str, Any]) -> AssignmentOutcome:
    assignment = session.get(Assignment, assignment_id)
    if assignment is None:
        return AssignmentOutcome(rejection=Rejection(NOT_FOUND, "Assignment not found"))
    for key, value in updates.items():
        if key in UPDATABLE_FIELDS:
            setattr(assignment, key, value)
    session.commit()
    return AssignmentOutcome(assignment=assignment)


def delete_assignment(session: InMemorySession, assignment_id: int) -> DeleteOutcome:
    assignment = session.get(Assignment, assignment_id)
    if assignment is None:
        return DeleteOutcome(rejection=Rejection(NOT_FOUND, "Assignment not found"))

    was_pto = is_pto_assignment(session, assignment)
    session.delete(Assignment, [assignment_id])
    session.commit()

    outcome = DeleteOutcome(deleted=True)
    if was_pto:
        outcome.cascade = cascade_pto_deletion(session, assignment.provider_id, assignment.date)
    return outcome


def create_assignments_batch(
    session: InMemorySession,
    payloads: Iterable[Assignment],
    force_override: bool = False,
    acknowledged_warnings: bool = False,
) -> BatchOutcome:
    payloads = list(payloads)
    if not payloads:
        return BatchOutcome(rejection=Rejection(VALIDATION, "Assignments array is required"))

    holiday_conflicts = [m for m in (holiday_rejection(session, p) for p in payloads) if m]
    if holiday_conflicts:
        return BatchOutcome(
            rejection=Rejection(
                HOLIDAY,
                "Cannot schedule non-inpatient services on holidays",
                {"conflicts": holiday_conflicts},
            )
        )

    conflicts: List[str] = []
    warnings: List[str] = []
    for payload in payloads:
        blocked, overlap_warning = pto_conflicts(session, payload)
        if blocked:
            conflicts.append(
                f"Provider has PTO on {payload.date.isoformat()} ({payload.time_block.value}) and cannot be assigned work"
            )
        elif overlap_warning:
            warnings.append(f"{payload.date.isoformat()} ({payload.time_block.value}): {PTO_OVER_WORK_WARNING}")
    if conflicts:
        return BatchOutcome(rejection=Rejection(PTO_CONFLICT, "PTO conflicts detected", {"conflicts": conflicts}))

    if not force_override:
        availability = check_bulk_availability(
            session,
            [SlotRequest(p.provider_id, p.service_id, p.date, p.time_block) for p in payloads],
        )
        if availability.hard_blocks:
            return BatchOutcome(
                rejection=Rejection(
                    AVAILABILITY_HARD_BLOCK,
                    "Provider availability conflicts detected",
                    {"hard_blocks": availability.hard_blocks, "warnings": availability.warnings},
                )
            )
        if availability.warnings and not acknowledged_warnings:
            return BatchOutcome(
                rejection=Rejection(
                    AVAILABILITY_WARNING,
                    "Provider availability warnings",
                    {"warnings": availability.warnings, "requires_confirmation": True},
                )
            )
        warnings.extend(
            f"{v.provider_initials} {v.date.isoformat()} {v.time_block.value}: {v.reason}" for v in availability.warnings
        )

    session.add_all(payloads)
    session.commit()
    logger.info(f"Bulk created {len(payloads)} assignments")
    return BatchOutcome(created=payloads, warnings=warnings)


def delete_assignments_batch(session: InMemorySession, ids: Iterable[int]) -> int:
    ids = list(ids)
    if not ids:
        return 0
    deleted = session.delete(Assignment, ids)
    session.commit()
    logger.info(f"Bulk deleted {deleted} assignments")
    return deleted
