"""PTO allowance, balance and request workflow."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from clinic_scheduler.core.config import settings
from clinic_scheduler.db.session import InMemorySession
from clinic_scheduler.engine.holidays import Holiday, is_range_near_holiday
from clinic_scheduler.engine.pto_days import calculate_pto_days, count_holiday_adjacent_requests, format_days
from clinic_scheduler.engine.results import ALREADY_PROCESSED, NOT_FOUND, VALIDATION, Rejection
from clinic_scheduler.models import (
    Assignment,
    LeaveType,
    Provider,
    ProviderLeave,
    ProviderPTOConfig,
    PTORequest,
    PTORoleDefault,
    PTOStatus,
    PTOTimeBlock,
    RequestedBy,
    Service,
    utcnow,
)

logger = logging.getLogger(__name__)

PROVIDER_CONFIG = "provider_config"
ROLE_DEFAULT = "role_default"
SYSTEM_DEFAULT = "system_default"


@dataclass
class BalanceWarning:
    level: str = "none"
    message: Optional[str] = None


@dataclass
class PTOBalance:
    provider_id: int
    provider_name: str
    provider_initials: str
    role: str
    year: int
    annual_allowance: float
    carryover_days: float
    total_available: float
    days_used: float
    days_remaining: float
    pending_days: float
    allowance_source: str
    warning: BalanceWarning = field(default_factory=BalanceWarning)


@dataclass
class ValidationWarning:
    type: str
    severity: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PTOValidation:
    calculated_days: float
    warnings: List[ValidationWarning] = field(default_factory=list)
    can_submit: bool = True


@dataclass
class RequestOutcome:
    request: Optional[PTORequest] = None
    leave_created: bool = False
    rejection: Optional[Rejection] = None


# allowance ------------------------------------------------------------------


def resolve_allowance(session: InMemorySession, provider: Provider, year: int) -> tuple[float, float, str]:
    """Return ``(annual_allowance, carryover_days, allowance_source)``."""
    config = session.first(
        ProviderPTOConfig,
        lambda c: c.provider_id == provider.id and c.year == year,
    )
    carryover = float(config.carryover_days or 0) if config else 0.0

    if config is not None and config.annual_allowance is not None:
        return float(config.annual_allowance), carryover, PROVIDER_CONFIG

    role_default = session.first(PTORoleDefault, lambda r: r.role == provider.role)
    if role_default is not None and role_default.annual_allowance is not None:
        return float(role_default.annual_allowance), carryover, ROLE_DEFAULT

    role = getattr(provider.role, "value", provider.role)
    allowance = settings.system_default_allowances.get(role, settings.fallback_allowance)
    # carryover only travels with an explicit config or role default
    return float(allowance), 0.0, SYSTEM_DEFAULT


@dataclass
class ConfigOutcome:
    config: Optional[ProviderPTOConfig] = None
    rejection: Optional[Rejection] = None


def get_pto_config(session: InMemorySession, provider_id: int, year: int) -> Optional[ProviderPTOConfig]:
    return session.first(ProviderPTOConfig, lambda c: c.provider_id == provider_id and c.year == year)


def set_pto_config(
    session: InMemorySession,
    provider_id: int,
    year: int,
    annual_allowance: Optional[float] = None,
    carryover_days: float = 0,
    notes: Optional[str] = None,
) -> ConfigOutcome:
    """Upsert the ``(provider_id, year)`` config row.

    A ``None`` allowance keeps the row but lets the role default decide the
    allowance; the carryover still applies.
    """
    if session.get(Provider, provider_id) is None:
        return ConfigOutcome(rejection=Rejection(NOT_FOUND, "Provider not found"))
    if (annual_allowance is not None and annual_allowance < 0) or carryover_days < 0:
        return ConfigOutcome(rejection=Rejection(VALIDATION, "Allowance and carryover must be zero or more"))

    config = get_pto_config(session, provider_id, year)
    if config is None:
        config = ProviderPTOConfig(provider_id=provider_id, year=year)
        session.add(config)
    config.annual_allowance = annual_allowance
    config.carryover_days = carryover_days or 0
    config.notes = notes
    config.updated_at = utcnow()
    session.commit()
    logger.info(f"PTO config for provider {provider_id} in {year}: allowance={annual_allowance}, carryover={carryover_days}")
    return ConfigOutcome(config=config)


def _days_in_year(request: PTORequest, year: int, work_days) -> float:
    start = max(request.start_date, date(year, 1, 1))
    end = min(request.end_date, date(year, 12, 31))
    if start > end:
        return 0.0
    return calculate_pto_days(start, end, request.time_block, work_days)


def _requests_in_year(session: InMemorySession, provider_id: int, year: int, status: PTOStatus) -> List[PTORequest]:
    return session.filter(
        PTORequest,
        lambda r: r.provider_id == provider_id
        and r.status == status
        and r.start_date <= date(year, 12, 31)
        and r.end_date >= date(year, 1, 1),
    )


def balance_warning(total_available: float, days_used: float) -> BalanceWarning:
    remaining = total_available - days_used
    if remaining < 0:
        return BalanceWarning("exceeded", f"PTO balance exceeded by {format_days(abs(remaining))}")
    if total_available > 0 and days_used / total_available >= settings.balance_warning_ratio:
        percent = round(days_used / total_available * 100)
        return BalanceWarning("approaching", f"{format_days(remaining)} remaining ({percent}% used)")
    return BalanceWarning()


def get_balance(session: InMemorySession, provider_id: int, year: int) -> Optional[PTOBalance]:
    provider = session.get(Provider, provider_id)
    if provider is None:
        return None

    allowance, carryover, source = resolve_allowance(session, provider, year)
    total = allowance + carryover

    used = sum(
        _days_in_year(r, year, provider.work_days)
        for r in _requests_in_year(session, provider_id, year, PTOStatus.APPROVED)
    )
    pending = sum(
        _days_in_year(r, year, provider.work_days)
        for r in _requests_in_year(session, provider_id, year, PTOStatus.PENDING)
    )

    return PTOBalance(
        provider_id=provider.id,
        provider_name=provider.name,
        provider_initials=provider.initials,
        role=getattr(provider.role, "value", provider.role),
        year=year,
        annual_allowance=allowance,
        carryover_days=carryover,
        total_available=total,
        days_used=used,
        days_remaining=total - used,
        pending_days=pending,
        allowance_source=source,
        warning=balance_warning(total, used),
    )


# validation -----------------------------------------------------------------


def _other_providers_off(session: InMemorySession, provider_id: int, start: date, end: date) -> List[Provider]:
    ids = {
        leave.provider_id
        for leave in session.filter(
            ProviderLeave,
            lambda l: l.provider_id != provider_id and l.start_date <= end and l.end_date >= start,
        )
    }
    ids |= {
        req.provider_id
        for req in session.filter(
            PTORequest,
            lambda r: r.provider_id != provider_id
            and r.status == PTOStatus.APPROVED
            and r.start_date <= end
            and r.end_date >= start,
        )
    }
    providers = [session.get(Provider, pid) for pid in sorted(ids)]
    return [p for p in providers if p is not None]


def _work_in_window(session: InMemorySession, provider_id: int, start: date, end: date) -> List[Assignment]:
    pto_service_ids = {s.id for s in session.filter(Service, lambda s: s.name == settings.pto_service_name)}
    return sorted(
        session.filter(
            Assignment,
            lambda a: a.provider_id == provider_id
            and start <= a.date <= end
            and not a.is_pto
            and a.service_id not in pto_service_ids,
        ),
        key=lambda a: (a.date, a.time_block.value),
    )


def validate_pto_request(
    session: InMemorySession,
    provider_id: int,
    start: date,
    end: date,
    time_block: PTOTimeBlock,
) -> PTOValidation:
    """Advisory checks for a prospective request. Nothing here blocks submission."""
    provider = session.get(Provider, provider_id)
    work_days = provider.work_days if provider else None
    calculated = calculate_pto_days(start, end, time_block, work_days)
    result = PTOValidation(calculated_days=calculated)

    others = _other_providers_off(session, provider_id, start, end)
    if others:
        result.warnings.append(
            ValidationWarning(
                type="other_providers_off",
                severity="info",
                message=f"The following providers are also off during this period: {', '.join(p.initials for p in others)}",
                details={"providers": [{"initials": p.initials, "name": p.name} for p in others]},
            )
        )

    proximity = is_range_near_holiday(start, end)
    if proximity.is_near:
        approved = session.filter(
            PTORequest,
            lambda r: r.provider_id == provider_id and r.status == PTOStatus.APPROVED,
        )
        adjacent = count_holiday_adjacent_requests(approved, start.year)
        if adjacent >= settings.holiday_adjacent_threshold:
            holiday: Holiday = proximity.holiday
            result.warnings.append(
                ValidationWarning(
                    type="holiday_proximity",
                    severity="warning",
                    message=(
                        f"You have already taken {adjacent} PTO request(s) near holidays this year. "
                        f"This request is near {holiday.name} ({holiday.date.isoformat()})."
                    ),
                    details={
                        "holiday_adjacent_count": adjacent,
                        "nearby_holiday": {"name": holiday.name, "date": holiday.date.isoformat()},
                    },
                )
            )

    conflicts = _work_in_window(session, provider_id, start, end)
    if conflicts:
        result.warnings.append(
            ValidationWarning(
                type="assignment_conflict",
                severity="warning",
                message=f"Provider has {len(conflicts)} existing assignment(s) in this period that will need to be reassigned",
                details={
                    "assignments": [
                        {"id": a.id, "date": a.date.isoformat(), "service_id": a.service_id, "time_block": a.time_block.value}
                        for a in conflicts
                    ]
                },
            )
        )

    if provider is not None:
        balance = get_balance(session, provider_id, start.year)
        projected = balance_warning(balance.total_available, balance.days_used + calculated)
        if projected.level != "none":
            result.warnings.append(
                ValidationWarning(
                    type="balance_warning",
                    severity="warning" if projected.level == "approaching" else "error",
                    message=f"After this request: {projected.message}",
                    details={
                        "level": projected.level,
                        "days_remaining": balance.days_remaining,
                        "days_after_request": balance.days_remaining - calculated,
                    },
                )
            )
    return result


# request workflow -----------------------------------------------------------


def submit_pto_request(
    session: InMemorySession,
    provider_id: int,
    start: date,
    end: date,
    time_block: PTOTimeBlock = PTOTimeBlock.FULL,
    leave_type: LeaveType = LeaveType.VACATION,
    reason: Optional[str] = None,
    requested_by: RequestedBy = RequestedBy.PROVIDER,
) -> RequestOutcome:
    if start > end:
        return RequestOutcome(rejection=Rejection(VALIDATION, "Start date must be before or equal to end date"))
    if session.get(Provider, provider_id) is None:
        return RequestOutcome(rejection=Rejection(NOT_FOUND, "Provider not found"))

    request = PTORequest(
        provider_id=provider_id,
        start_date=start,
        end_date=end,
        leave_type=leave_type,
        time_block=time_block,
        reason=reason,
        status=PTOStatus.PENDING,
        requested_by=requested_by,
    )
    session.add(request)
    session.commit()
    logger.info(f"PTO request {request.id} submitted for provider {provider_id} ({start} - {end})")
    return RequestOutcome(request=request)


def _pending_request(session: InMemorySession, request_id: int) -> tuple[Optional[PTORequest], Optional[Rejection]]:
    request = session.get(PTORequest, request_id)
    if request is None:
        return None, Rejection(NOT_FOUND, "PTO request not found")
    if request.status != PTOStatus.PENDING:
        return None, Rejection(ALREADY_PROCESSED, f"Request has already been {request.status.value}")
    return request, None


def approve_pto_request(
    session: InMemorySession,
    request_id: int,
    admin_name: Optional[str] = None,
    admin_comment: Optional[str] = None,
) -> RequestOutcome:
    request, rejection = _pending_request(session, request_id)
    if rejection:
        return RequestOutcome(rejection=rejection)

    now = utcnow()
    request.status = PTOStatus.APPROVED
    request.reviewed_by_admin_name = admin_name
    request.admin_comment = admin_comment
    request.reviewed_at = now
    request.updated_at = now
    session.commit()

    outcome = RequestOutcome(request=request)
    try:
        session.add(
            ProviderLeave(
                provider_id=request.provider_id,
                start_date=request.start_date,
                end_date=request.end_date,
                leave_type=request.leave_type,
                reason=request.reason,
            )
        )
        session.commit()
        outcome.leave_created = True
    except Exception:
        # the approval stands even if the leave row is missing
        logger.exception(f"Error creating provider leave for approved request {request_id}")
    return outcome


def deny_pto_request(
    session: InMemorySession,
    request_id: int,
    admin_name: Optional[str] = None,
    admin_comment: Optional[str] = None,
) -> RequestOutcome:
    request, rejection = _pending_request(session, request_id)
    if rejection:
        return RequestOutcome(rejection=rejection)

    now = utcnow()
    request.status = PTOStatus.DENIED
    request.reviewed_by_admin_name = admin_name
    request.admin_comment = admin_comment
    request.reviewed_at = now
    request.updated_at = now
    session.commit()
    return RequestOutcome(request=request)


def cancel_pto_request(session: InMemorySession, request_id: int) -> RequestOutcome:
    """Withdraw a request that has not been reviewed yet."""
    request, rejection = _pending_request(session, request_id)
    if rejection:
        return RequestOutcome(rejection=rejection)
    session.delete(PTORequest, [request_id])
    session.commit()
    return RequestOutcome(request=request)
