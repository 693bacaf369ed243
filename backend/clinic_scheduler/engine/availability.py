"""Provider availability rules.

Rules are stored per (provider, service). Two kinds exist:

* ``allow`` rules enumerate the only slots a provider may work a service.
  As soon as one allow rule exists for a pair, the pair is allow-listed and
  any ``block`` rules stored for the same pair are not consulted at all.
* ``block`` rules deny single slots of an otherwise open schedule.

A slot matches a rule when the day of week is equal and the time blocks
overlap, ``BOTH`` on either side overlapping any block.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional

from clinic_scheduler.db.session import InMemorySession
from clinic_scheduler.models import (
    AvailabilityRule,
    Enforcement,
    Provider,
    RuleType,
    Service,
    TimeBlock,
    day_of_week,
)

ALLOW_LIST_REASON = "Provider is only available on specific days/times"
BLOCKED_REASON = "Provider is blocked for this time slot"


@dataclass
class AvailabilityResult:
    allowed: bool
    enforcement: Optional[Enforcement] = None
    reason: Optional[str] = None
    rule: Optional[AvailabilityRule] = None


@dataclass
class SlotRequest:
    provider_id: int
    service_id: int
    date: date
    time_block: TimeBlock


@dataclass
class AvailabilityViolation:
    provider_id: int
    provider_initials: str
    service_id: int
    service_name: str
    date: date
    time_block: TimeBlock
    enforcement: Enforcement
    reason: str


@dataclass
class BulkAvailabilityResult:
    violations: list[AvailabilityViolation] = field(default_factory=list)

    @property
    def hard_blocks(self) -> list[AvailabilityViolation]:
        return [v for v in self.violations if v.enforcement == Enforcement.HARD]

    @property
    def warnings(self) -> list[AvailabilityViolation]:
        return [v for v in self.violations if v.enforcement == Enforcement.WARN]


def time_blocks_overlap(first: TimeBlock | str, second: TimeBlock | str) -> bool:
    if first == TimeBlock.BOTH or second == TimeBlock.BOTH:
        return True
    return first == second


def evaluate_rules(rules: Iterable[AvailabilityRule], on: date, time_block: TimeBlock) -> AvailabilityResult:
    rules = list(rules)
    if not rules:
        return AvailabilityResult(allowed=True)

    dow = day_of_week(on)

    def matches(rule: AvailabilityRule) -> bool:
        return rule.day_of_week == dow and time_blocks_overlap(rule.time_block, time_block)

    allow_rules = [r for r in rules if r.rule_type == RuleType.ALLOW]
    if allow_rules:
        matching = next((r for r in allow_rules if matches(r)), None)
        if matching is not None:
            return AvailabilityResult(allowed=True, rule=matching)
        hard = any(r.enforcement == Enforcement.HARD for r in allow_rules)
        return AvailabilityResult(
            allowed=False,
            enforcement=Enforcement.HARD if hard else Enforcement.WARN,
            reason=ALLOW_LIST_REASON,
            rule=allow_rules[0],
        )

    blocking = next((r for r in rules if r.rule_type == RuleType.BLOCK and matches(r)), None)
    if blocking is not None:
        return AvailabilityResult(
            allowed=False,
            enforcement=blocking.enforcement,
            reason=blocking.reason or BLOCKED_REASON,
            rule=blocking,
        )
    return AvailabilityResult(allowed=True)


def check_availability(
    session: InMemorySession,
    provider_id: int,
    service_id: int,
    on: date,
    time_block: TimeBlock,
) -> AvailabilityResult:
    rules = session.filter(
        AvailabilityRule,
        lambda r: r.provider_id == provider_id and r.service_id == service_id,
    )
    return evaluate_rules(rules, on, time_block)


def check_bulk_availability(session: InMemorySession, slots: Iterable[SlotRequest]) -> BulkAvailabilityResult:
    slots = list(slots)
    result = BulkAvailabilityResult()
    if not slots:
        return result

    provider_ids = {s.provider_id for s in slots}
    service_ids = {s.service_id for s in slots}
    rules = session.filter(
        AvailabilityRule,
        lambda r: r.provider_id in provider_ids and r.service_id in service_ids,
    )
    if not rules:
        return result

    rules_by_pair: dict[tuple[int, int], list[AvailabilityRule]] = defaultdict(list)
    for rule in rules:
        rules_by_pair[(rule.provider_id, rule.service_id)].append(rule)

    providers = {p.id: p for p in session.filter(Provider, lambda p: p.id in provider_ids)}
    services = {s.id: s for s in session.filter(Service, lambda s: s.id in service_ids)}

    for slot in slots:
        pair_rules = rules_by_pair.get((slot.provider_id, slot.service_id))
        if not pair_rules:
            continue
        outcome = evaluate_rules(pair_rules, slot.date, slot.time_block)
        if outcome.allowed:
            continue
        provider = providers.get(slot.provider_id)
        service = services.get(slot.service_id)
        result.violations.append(
            AvailabilityViolation(
                provider_id=slot.provider_id,
                provider_initials=provider.initials if provider else "Unknown",
                service_id=slot.service_id,
                service_name=service.name if service else "Unknown",
                date=slot.date,
                time_block=slot.time_block,
                enforcement=outcome.enforcement,
                reason=outcome.reason,
            )
        )
    return result


def rules_for_provider(session: InMemorySession, provider_id: int) -> list[AvailabilityRule]:
    rules = session.filter(AvailabilityRule, lambda r: r.provider_id == provider_id)
    return sorted(rules, key=lambda r: (r.service_id, r.day_of_week))


def set_rule(
    session: InMemorySession,
    provider_id: int,
    service_id: int,
    dow: int,
    time_block: TimeBlock,
    rule_type: RuleType,
    enforcement: Optional[Enforcement],
    reason: Optional[str] = None,
) -> Optional[AvailabilityRule]:
    """Create, update or clear the rule for one slot.

    ``enforcement=None`` is the unset state and removes the stored rule.
    """
    existing = session.first(
        AvailabilityRule,
        lambda r: r.provider_id == provider_id
        and r.service_id == service_id
        and r.day_of_week == dow
        and r.time_block == time_block
        and r.rule_type == rule_type,
    )
    if enforcement is None:
        if existing is not None:
            session.delete(AvailabilityRule, [existing.id])
            session.commit()
        return None

    if existing is not None:
        existing.enforcement = enforcement
        existing.reason = reason
        session.commit()
        return existing

    rule = AvailabilityRule(
        provider_id=provider_id,
        service_id=service_id,
        day_of_week=dow,
        time_block=time_block,
        rule_type=rule_type,
        enforcement=enforcement,
        reason=reason,
    )
    session.add(rule)
    session.commit()
    return rule
