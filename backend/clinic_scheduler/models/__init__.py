from .tables import (
    DEFAULT_WORK_DAYS,
    AddedDelta,
    Assignment,
    AvailabilityRule,
    ChangeHistoryEntry,
    Enforcement,
    HistoryDelta,
    LeaveType,
    OperationType,
    Provider,
    ProviderLeave,
    ProviderPTOConfig,
    PTORequest,
    PTORoleDefault,
    PTOStatus,
    PTOTimeBlock,
    RemovedDelta,
    ReplacedDelta,
    RequestedBy,
    Role,
    RuleType,
    ScheduleTemplate,
    Service,
    TemplateAssignment,
    TimeBlock,
    day_of_week,
    utcnow,
)

__all__ = [
    "DEFAULT_WORK_DAYS",
    "AddedDelta",
    "Assignment",
    "AvailabilityRule",
    "ChangeHistoryEntry",
    "Enforcement",
    "HistoryDelta",
    "LeaveType",
    "OperationType",
    "Provider",
    "ProviderLeave",
    "ProviderPTOConfig",
    "PTORequest",
    "PTORoleDefault",
    "PTOStatus",
    "PTOTimeBlock",
    "RemovedDelta",
    "ReplacedDelta",
    "RequestedBy",
    "Role",
    "RuleType",
    "ScheduleTemplate",
    "Service",
    "TemplateAssignment",
    "TimeBlock",
    "day_of_week",
    "utcnow",
]
