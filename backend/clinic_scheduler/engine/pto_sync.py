"""Keeps PTO assignments, PTO requests and provider leaves in step.

None of these writes run in a transaction. Each step is attempted, failures
are logged and reported back as flags, and earlier steps are never undone.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from clinic_scheduler.core.config import settings
from clinic_scheduler.db.session import InMemorySession
from clinic_scheduler.engine.pto_days import get_weekdays_in_range, next_weekday, previous_weekday
from clinic_scheduler.engine.results import NOT_FOUND, VALIDATION, Rejection
from clinic_scheduler.models import (
    Assignment,
    LeaveType,
    Provider,
    ProviderLeave,
    PTORequest,
    PTOStatus,
    PTOTimeBlock,
    RequestedBy,
    Service,
    TimeBlock,
    utcnow,
)

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    pto_request_created: bool = False
    provider_leave_created: bool = False


@dataclass
class CascadeResult:
    pto_requests_updated: int = 0
    provider_leaves_updated: int = 0


@dataclass
class PTOCreateResult:
    pto_request_created: bool = False
    provider_leave_created: bool = False
    schedule_assignments_created: int = 0
    dates_processed: list[date] = field(default_factory=list)
    rejection: Optional[Rejection] = None


@dataclass
class PTODeleteResult:
    schedule_assignments_deleted: int = 0
    pto_requests_updated: int = 0
    provider_leaves_updated: int = 0


def assignment_block_for(time_block: PTOTimeBlock | str) -> TimeBlock:
    return TimeBlock.BOTH if time_block == PTOTimeBlock.FULL else TimeBlock(time_block)


def find_pto_service(session: InMemorySession) -> Optional[Service]:
    return session.first(Service, lambda s: s.name == settings.pto_service_name)


def create_pto_request_and_leave(
    session: InMemorySession,
    provider_id: int,
    start_date: date,
    end_date: date,
    time_block: TimeBlock | PTOTimeBlock | str = PTOTimeBlock.FULL,
    leave_type: LeaveType = LeaveType.VACATION,
    reason: Optional[str] = None,
    reviewer: str = "Auto-approved (system sync)",
) -> SyncResult:
    result = SyncResult()
    block = PTOTimeBlock.FULL if time_block in (TimeBlock.BOTH, PTOTimeBlock.FULL) else PTOTimeBlock(time_block)

    try:
        session.add(
            PTORequest(
                provider_id=provider_id,
                start_date=start_date,
                end_date=end_date,
                leave_type=leave_type,
                time_block=block,
                reason=reason,
                status=PTOStatus.APPROVED,
                requested_by=RequestedBy.ADMIN,
                reviewed_at=utcnow(),
                reviewed_by_admin_name=reviewer,
            )
        )
        session.commit()
        result.pto_request_created = True
    except Exception:
        logger.exception(f"Error creating pto_request for provider {provider_id} {start_date}..{end_date}")

    try:
        session.add(
            ProviderLeave(
                provider_id=provider_id,
                start_date=start_date,
                end_date=end_date,
                leave_type=leave_type,
                reason=reason,
            )
        )
        session.commit()
        result.provider_leave_created = True
    except Exception:
        logger.exception(f"Error creating provider_leave for provider {provider_id} {start_date}..{end_date}")

    return result


def _trim_ranges(session: InMemorySession, model: type, provider_id: int, on: date) -> int:
    updated = 0
    matching = session.filter(
        model,
        lambda r: r.provider_id == provider_id and r.start_date <= on <= r.end_date,
    )
    for record in matching:
        if record.start_date == record.end_date:
            session.delete(model, [record.id])
        elif record.start_date == on:
            record.start_date = next_weekday(on)
        elif record.end_date == on:
            record.end_date = previous_weekday(on)
        else:
            # removing a day from the middle would need a split
            continue
        if hasattr(record, "updated_at"):
            record.updated_at = utcnow()
        updated += 1
    session.commit()
    return updated


def cascade_pto_deletion(session: InMemorySession, provider_id: int, on: date) -> CascadeResult:
    result = CascadeResult()
    try:
        result.pto_requests_updated = _trim_ranges(session, PTORequest, provider_id, on)
    except Exception:
        logger.exception(f"Error cascading pto_requests for provider {provider_id} on {on}")
    try:
        result.provider_leaves_updated = _trim_ranges(session, ProviderLeave, provider_id, on)
    except Exception:
        logger.exception(f"Error cascading provider_leaves for provider {provider_id} on {on}")
    return result


def create_pto(
    session: InMemorySession,
    provider_id: int,
    start_date: date,
    end_date: date,
    time_block: PTOTimeBlock = PTOTimeBlock.FULL,
    leave_type: LeaveType = LeaveType.VACATION,
    reason: Optional[str] = None,
) -> PTOCreateResult:
    """Enter PTO from the calendar: request, leave and one assignment per workday."""
    if start_date > end_date:
        return PTOCreateResult(rejection=Rejection(VALIDATION, "Start date must be before or equal to end date"))

    provider = session.get(Provider, provider_id)
    if provider is None:
        return PTOCreateResult(rejection=Rejection(NOT_FOUND, "Provider not found"))

    workdays = get_weekdays_in_range(start_date, end_date, provider.work_days)
    if not workdays:
        return PTOCreateResult(rejection=Rejection(VALIDATION, "No work days in the selected date range"))

    pto_service = find_pto_service(session)
    if pto_service is None:
        return PTOCreateResult(rejection=Rejection(NOT_FOUND, "PTO service not found"))

    sync = create_pto_request_and_leave(
        session,
        provider_id,
        start_date,
        end_date,
        time_block,
        leave_type,
        reason,
        reviewer="Auto-approved (calendar entry)",
    )
    result = PTOCreateResult(
        pto_request_created=sync.pto_request_created,
        provider_leave_created=sync.provider_leave_created,
        dates_processed=workdays,
    )

    block = assignment_block_for(time_block)
    existing = {
        (a.date, a.time_block)
        for a in session.filter(
            Assignment,
            lambda a: a.provider_id == provider_id and a.service_id == pto_service.id and a.is_pto,
        )
    }
    to_create = [
        Assignment(
            date=day,
            service_id=pto_service.id,
            provider_id=provider_id,
            time_block=block,
            room_count=0,
            is_pto=True,
        )
        for day in workdays
        if (day, block) not in existing
    ]
    try:
        session.add_all(to_create)
        session.commit()
        result.schedule_assignments_created = len(to_create)
    except Exception:
        logger.exception(f"Error creating PTO schedule_assignments for provider {provider_id}")
    return result


def delete_pto(
    session: InMemorySession,
    provider_id: int,
    on: date,
    time_block: Optional[TimeBlock] = None,
) -> PTODeleteResult:
    if time_block and time_block != TimeBlock.BOTH:
        blocks = {time_block, TimeBlock.BOTH}
    else:
        blocks = {TimeBlock.AM, TimeBlock.PM, TimeBlock.BOTH}

    removed = session.delete_where(
        Assignment,
        lambda a: a.provider_id == provider_id and a.date == on and a.is_pto and a.time_block in blocks,
    )
    session.commit()
    if not removed:
        return PTODeleteResult()
    cascade = cascade_pto_deletion(session, provider_id, on)
    return PTODeleteResult(
        schedule_assignments_deleted=len(removed),
        pto_requests_updated=cascade.pto_requests_updated,
        provider_leaves_updated=cascade.provider_leaves_updated,
    )
