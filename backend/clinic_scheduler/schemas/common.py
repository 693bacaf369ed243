from __future__ import annotations

import datetime as dt
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field

from clinic_scheduler.models import (
    Enforcement,
    LeaveType,
    OperationType,
    PTOStatus,
    PTOTimeBlock,
    RequestedBy,
    RuleType,
    TimeBlock,
)


# assignments ------------------------------------------------------------------


class AssignmentBase(BaseModel):
    date: date
    service_id: int
    provider_id: int
    time_block: TimeBlock
    room_count: int = Field(default=0, ge=0)
    is_pto: bool = False
    is_covering: bool = False
    notes: str | None = None


class AssignmentCreate(AssignmentBase):
    force_override: bool = False


class AssignmentUpdate(BaseModel):
    date: dt.date | None = None
    service_id: int | None = None
    provider_id: int | None = None
    time_block: TimeBlock | None = None
    room_count: int | None = Field(default=None, ge=0)
    is_pto: bool | None = None
    is_covering: bool | None = None
    notes: str | None = None


class AssignmentRead(AssignmentBase):
    id: int
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class AssignmentWriteResponse(BaseModel):
    assignment: AssignmentRead
    warnings: list[str] = []
    pto_request_created: bool | None = None
    provider_leave_created: bool | None = None


class AssignmentDeleteResponse(BaseModel):
    success: bool
    pto_requests_updated: int = 0
    provider_leaves_updated: int = 0


class BulkAssignmentCreate(BaseModel):
    assignments: list[AssignmentBase] = Field(min_length=1)
    force_override: bool = False
    acknowledged_warnings: bool = False


class BulkAssignmentCreateResponse(BaseModel):
    success: bool = True
    created: int
    warnings: list[str] = []
    data: list[AssignmentRead] = []


class BulkAssignmentDelete(BaseModel):
    ids: list[int] = Field(min_length=1)


class BulkAssignmentDeleteResponse(BaseModel):
    success: bool = True
    deleted: int


# availability -----------------------------------------------------------------


class AvailabilityCheckRequest(BaseModel):
    provider_id: int
    service_id: int
    date: date
    time_block: TimeBlock


class AvailabilityCheckResponse(BaseModel):
    allowed: bool
    enforcement: Enforcement | None = None
    reason: str | None = None
    rule_id: int | None = None


class AvailabilityRuleRead(BaseModel):
    id: int
    provider_id: int
    service_id: int
    day_of_week: int
    time_block: TimeBlock
    rule_type: RuleType
    enforcement: Enforcement
    reason: str | None = None

    class Config:
        from_attributes = True


class AvailabilityRuleSet(BaseModel):
    provider_id: int
    service_id: int
    day_of_week: int = Field(ge=0, le=6)
    time_block: TimeBlock
    rule_type: RuleType
    # None clears the slot
    enforcement: Enforcement | None = None
    reason: str | None = None


# holidays ---------------------------------------------------------------------


class HolidayRead(BaseModel):
    name: str
    date: date

    class Config:
        from_attributes = True


# pto --------------------------------------------------------------------------


class PTOValidateRequest(BaseModel):
    provider_id: int
    start_date: date
    end_date: date
    time_block: PTOTimeBlock = PTOTimeBlock.FULL


class PTOValidationWarningRead(BaseModel):
    type: str
    severity: str
    message: str
    details: dict[str, Any] = {}

    class Config:
        from_attributes = True


class PTOValidationRead(BaseModel):
    calculated_days: float
    warnings: list[PTOValidationWarningRead] = []
    can_submit: bool = True

    class Config:
        from_attributes = True


class PTORequestCreate(BaseModel):
    provider_id: int
    start_date: date
    end_date: date
    time_block: PTOTimeBlock = PTOTimeBlock.FULL
    leave_type: LeaveType = LeaveType.VACATION
    reason: str | None = None
    requested_by: RequestedBy = RequestedBy.PROVIDER


class PTORequestReview(BaseModel):
    admin_name: str | None = None
    admin_comment: str | None = None


class PTORequestRead(BaseModel):
    id: int
    provider_id: int
    start_date: date
    end_date: date
    time_block: PTOTimeBlock
    leave_type: LeaveType
    status: PTOStatus
    requested_by: RequestedBy
    reason: str | None = None
    reviewed_by_admin_name: str | None = None
    admin_comment: str | None = None
    reviewed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class BalanceWarningRead(BaseModel):
    level: str
    message: str | None = None

    class Config:
        from_attributes = True


class PTOBalanceRead(BaseModel):
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
    warning: BalanceWarningRead

    class Config:
        from_attributes = True


class PTOConfigSet(BaseModel):
    year: int
    annual_allowance: float | None = Field(default=None, ge=0)
    carryover_days: float = Field(default=0, ge=0)
    notes: str | None = None


class PTOConfigRead(BaseModel):
    id: int
    provider_id: int
    year: int
    annual_allowance: float | None = None
    carryover_days: float
    notes: str | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class PTOConfigResponse(BaseModel):
    success: bool = True
    config: PTOConfigRead | None = None


class PTOCreate(BaseModel):
    provider_id: int
    start_date: date
    end_date: date
    time_block: PTOTimeBlock = PTOTimeBlock.FULL
    leave_type: LeaveType = LeaveType.VACATION
    reason: str | None = None


class PTOCreateResponse(BaseModel):
    success: bool = True
    pto_request_created: bool
    provider_leave_created: bool
    schedule_assignments_created: int
    dates_processed: list[date]


class PTODelete(BaseModel):
    provider_id: int
    date: date
    time_block: TimeBlock | None = None


class PTODeleteResponse(BaseModel):
    success: bool = True
    schedule_assignments_deleted: int
    pto_requests_updated: int
    provider_leaves_updated: int


# bulk & history ---------------------------------------------------------------


class BulkPatternIn(BaseModel):
    type: str = "all"
    day_of_week: int | None = Field(default=None, ge=0, le=6)
    time_block: TimeBlock | None = None
    service_id: int | None = None


class BulkProviderRequest(BaseModel):
    provider_id: int
    action: str
    pattern: BulkPatternIn
    start_date: date
    end_date: date
    preview: bool = False
    room_count: int = Field(default=0, ge=0)


class AffectedAssignment(BaseModel):
    id: int | None = None
    date: date
    time_block: TimeBlock
    service_id: int | None = None
    service_name: str | None = None
    provider_id: int
    provider_name: str | None = None


class BulkProviderResponse(BaseModel):
    success: bool = True
    preview: bool = False
    action: str
    affected_count: int
    skipped_count: int = 0
    assignments: list[AffectedAssignment] = []
    history_id: int | None = None
    message: str = ""


class UndoRequest(BaseModel):
    history_id: int
    force: bool = False


class UndoConflictRead(BaseModel):
    id: int
    change_type: str
    date: dt.date | None = None
    time_block: str | None = None
    provider_name: str | None = None
    service_name: str | None = None
    details: str | None = None

    class Config:
        from_attributes = True


class UndoResponse(BaseModel):
    success: bool = False
    requires_confirmation: bool = False
    conflicts: list[UndoConflictRead] = []
    deleted_count: int = 0
    restored_count: int = 0
    message: str = ""


class RedoRequest(BaseModel):
    history_id: int


class RedoResponse(BaseModel):
    success: bool = True
    deleted_count: int
    created_count: int
    message: str


class ChangeHistoryRead(BaseModel):
    id: int
    operation_type: OperationType
    description: str
    affected_date_start: date
    affected_date_end: date
    created_count: int
    deleted_count: int
    is_undone: bool
    undone_at: datetime | None = None
    is_redone: bool
    redone_at: datetime | None = None
    metadata: dict[str, Any] = {}
    created_at: datetime


# templates --------------------------------------------------------------------


class TemplateApplyRequest(BaseModel):
    template_id: int
    start_date: date
    end_date: date
    clear_existing: bool = False
    skip_conflicts: bool = True


class TemplateApplyAlternatingRequest(BaseModel):
    template_ids: list[int]
    pattern: list[int]
    start_date: date
    end_date: date
    clear_existing: bool = False
    skip_conflicts: bool = True


class TemplateCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    type: str = "weekly"
    is_global: bool = True
    owner_id: int | None = None


class TemplateUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    type: str | None = None
    is_global: bool | None = None
    owner_id: int | None = None


class TemplateRead(BaseModel):
    id: int
    name: str
    description: str | None = None
    type: str
    is_global: bool
    owner_id: int | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class TemplateEntryIn(BaseModel):
    day_of_week: int = Field(ge=0, le=6)
    service_id: int
    provider_id: int
    time_block: TimeBlock
    room_count: int = Field(default=0, ge=0)
    is_pto: bool = False
    notes: str | None = None


class TemplateEntryRead(TemplateEntryIn):
    id: int
    template_id: int

    class Config:
        from_attributes = True


class TemplateEntriesReplace(BaseModel):
    assignments: list[TemplateEntryIn]


class TemplateEntriesReplaceResponse(BaseModel):
    success: bool = True
    replaced: int
    data: list[TemplateEntryRead] = []


class TemplateEntriesDeleteResponse(BaseModel):
    success: bool = True
    deleted: int


class TemplateFromWeekRequest(BaseModel):
    name: str = Field(min_length=1)
    week_start_date: date
    description: str | None = None
    type: str = "weekly"
    is_global: bool = True
    owner_id: int | None = None


class TemplateFromWeekResponse(BaseModel):
    success: bool = True
    template: TemplateRead
    assignments: list[TemplateEntryRead] = []
    source_week_start: date
    source_week_end: date
    assignment_count: int


class PTOConflictRead(BaseModel):
    provider_id: int
    provider_name: str | None = None
    date: date
    time_block: str
    intended_service_id: int
    intended_service_name: str | None = None
    reason: str

    class Config:
        from_attributes = True


class WeekApplicationRead(BaseModel):
    week: date
    template_id: int
    template_name: str

    class Config:
        from_attributes = True


class TemplateApplyResponse(BaseModel):
    success: bool = True
    created: int
    skipped: int
    cleared: int = 0
    holiday_conflicts: list[str] = []
    pto_conflicts: list[PTOConflictRead] = []
    coverage_needed: int = 0
    week_applications: list[WeekApplicationRead] = []
    history_id: int | None = None
    message: str = ""


# export -----------------------------------------------------------------------


class ExportWindow(BaseModel):
    start_date: date
    end_date: date
