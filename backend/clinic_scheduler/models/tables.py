from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Union


class TimeBlock(str, Enum):
    AM = "AM"
    PM = "PM"
    BOTH = "BOTH"


class PTOTimeBlock(str, Enum):
    FULL = "FULL"
    AM = "AM"
    PM = "PM"


class Role(str, Enum):
    ATTENDING = "attending"
    FELLOW = "fellow"
    NP = "np"
    PA = "pa"


class RuleType(str, Enum):
    ALLOW = "allow"
    BLOCK = "block"


class Enforcement(str, Enum):
    """Severity of a stored rule. A slot with no rule at all is unrestricted."""

    WARN = "warn"
    HARD = "hard"


class PTOStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


class LeaveType(str, Enum):
    VACATION = "vacation"
    PERSONAL = "personal"
    MEDICAL = "medical"
    CONFERENCE = "conference"
    MATERNITY = "maternity"
    OTHER = "other"


class RequestedBy(str, Enum):
    PROVIDER = "provider"
    ADMIN = "admin"


class OperationType(str, Enum):
    BULK_ADD = "bulk_add"
    BULK_REMOVE = "bulk_remove"
    TEMPLATE_APPLY = "template_apply"
    TEMPLATE_APPLY_ALTERNATING = "template_apply_alternating"


# Sunday=0 .. Saturday=6, the convention shared by work_days, rules and templates
DEFAULT_WORK_DAYS = frozenset({1, 2, 3, 4, 5})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def day_of_week(value: date) -> int:
    return value.isoweekday() % 7


@dataclass
class Provider:
    id: int = 0
    name: str = ""
    initials: str = ""
    role: Role = Role.ATTENDING
    default_room_count: int = 0
    capabilities: Set[str] = field(default_factory=set)
    work_days: Set[int] = field(default_factory=lambda: set(DEFAULT_WORK_DAYS))
    email: Optional[str] = None


@dataclass
class Service:
    id: int = 0
    name: str = ""
    time_block: TimeBlock = TimeBlock.BOTH
    requires_rooms: bool = False
    required_capability: Optional[str] = None
    show_on_main_calendar: bool = True


@dataclass
class Assignment:
    id: int = 0
    date: date = date.today()
    service_id: int = 0
    provider_id: int = 0
    time_block: TimeBlock = TimeBlock.AM
    room_count: int = 0
    is_pto: bool = False
    is_covering: bool = False
    notes: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def snapshot(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_snapshot(cls, data: Dict[str, Any]) -> "Assignment":
        known = {key: value for key, value in data.items() if key in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class AvailabilityRule:
    id: int = 0
    provider_id: int = 0
    service_id: int = 0
    day_of_week: int = 0
    time_block: TimeBlock = TimeBlock.BOTH
    rule_type: RuleType = RuleType.BLOCK
    enforcement: Enforcement = Enforcement.WARN
    reason: Optional[str] = None


@dataclass
class PTORequest:
    id: int = 0
    provider_id: int = 0
    start_date: date = date.today()
    end_date: date = date.today()
    leave_type: LeaveType = LeaveType.VACATION
    time_block: PTOTimeBlock = PTOTimeBlock.FULL
    status: PTOStatus = PTOStatus.PENDING
    requested_by: RequestedBy = RequestedBy.PROVIDER
    reason: Optional[str] = None
    reviewed_by_admin_name: Optional[str] = None
    admin_comment: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class ProviderLeave:
    id: int = 0
    provider_id: int = 0
    start_date: date = date.today()
    end_date: date = date.today()
    leave_type: LeaveType = LeaveType.VACATION
    reason: Optional[str] = None


@dataclass
class ProviderPTOConfig:
    id: int = 0
    provider_id: int = 0
    year: int = 0
    annual_allowance: Optional[float] = None
    carryover_days: float = 0
    notes: Optional[str] = None
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class PTORoleDefault:
    id: int = 0
    role: Role = Role.ATTENDING
    annual_allowance: Optional[float] = None


@dataclass
class ScheduleTemplate:
    id: int = 0
    name: str = ""
    description: Optional[str] = None
    type: str = "weekly"
    is_global: bool = True
    owner_id: Optional[int] = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class TemplateAssignment:
    id: int = 0
    template_id: int = 0
    day_of_week: int = 1
    service_id: int = 0
    provider_id: int = 0
    time_block: TimeBlock = TimeBlock.AM
    room_count: int = 0
    is_pto: bool = False
    notes: Optional[str] = None


# change journal ----------------------------------------------------------


@dataclass
class AddedDelta:
    created_ids: List[int] = field(default_factory=list)
    # exact insert payloads, replayed by redo
    payloads: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class RemovedDelta:
    snapshots: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class ReplacedDelta:
    removed: RemovedDelta = field(default_factory=RemovedDelta)
    added: AddedDelta = field(default_factory=AddedDelta)


HistoryDelta = Union[AddedDelta, RemovedDelta, ReplacedDelta]


@dataclass
class ChangeHistoryEntry:
    id: int = 0
    operation_type: OperationType = OperationType.BULK_ADD
    description: str = ""
    affected_date_start: date = date.today()
    affected_date_end: date = date.today()
    delta: HistoryDelta = field(default_factory=AddedDelta)
    is_undone: bool = False
    undone_at: Optional[datetime] = None
    is_redone: bool = False
    redone_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)

    @property
    def created_assignment_ids(self) -> List[int]:
        if isinstance(self.delta, AddedDelta):
            return list(self.delta.created_ids)
        if isinstance(self.delta, ReplacedDelta):
            return list(self.delta.added.created_ids)
        return []

    @property
    def deleted_assignments(self) -> List[Dict[str, Any]]:
        if isinstance(self.delta, RemovedDelta):
            return list(self.delta.snapshots)
        if isinstance(self.delta, ReplacedDelta):
            return list(self.delta.removed.snapshots)
        return []

    @property
    def redo_assignments(self) -> List[Dict[str, Any]]:
        if isinstance(self.delta, AddedDelta):
            return list(self.delta.payloads)
        if isinstance(self.delta, ReplacedDelta):
            return list(self.delta.added.payloads)
        return []

    def with_created_ids(self, created_ids: List[int]) -> HistoryDelta:
        if isinstance(self.delta, AddedDelta):
            return AddedDelta(created_ids=created_ids, payloads=self.delta.payloads)
        if isinstance(self.delta, ReplacedDelta):
            return ReplacedDelta(
                removed=self.delta.removed,
                added=AddedDelta(created_ids=created_ids, payloads=self.delta.added.payloads),
            )
        return self.delta
