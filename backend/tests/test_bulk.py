from __future__ import annotations

from datetime import date

from clinic_scheduler.engine.bulk import BulkPattern, BulkProviderOp, plan_bulk_provider_op
from clinic_scheduler.engine.results import NOT_FOUND, VALIDATION
from clinic_scheduler.models import (
    AddedDelta,
    Assignment,
    ChangeHistoryEntry,
    OperationType,
    RemovedDelta,
    TimeBlock,
)

MARCH_START = date(2026, 3, 1)
MARCH_END = date(2026, 3, 31)
MONDAYS = [date(2026, 3, d) for d in (2, 9, 16, 23, 30)]


def _op(provider_id, action, pattern, **kwargs) -> BulkProviderOp:
    return BulkProviderOp(provider_id=provider_id, action=action, pattern=pattern, start_date=MARCH_START, end_date=MARCH_END, **kwargs)


def test_add_recurring_monday_mornings(seeded, providers, services):
    pattern = BulkPattern(type="recurring", day_of_week=1, time_block=TimeBlock.AM, service_id=services["Clinic"])
    outcome = plan_bulk_provider_op(seeded, _op(providers["DPR"], "add", pattern, room_count=2))

    assert outcome.affected_count == 5
    created = seeded.all(Assignment)
    assert sorted(a.date for a in created) == MONDAYS
    assert {a.room_count for a in created} == {2}

    entry = seeded.get(ChangeHistoryEntry, outcome.history_id)
    assert entry.operation_type == OperationType.BULK_ADD
    assert isinstance(entry.delta, AddedDelta)
    assert sorted(entry.created_assignment_ids) == sorted(a.id for a in created)
    assert len(entry.redo_assignments) == 5
    assert entry.description == "Added Derek Porter to Clinic Mon AM 2026-03-01 - 2026-03-31"


def test_add_is_idempotent(seeded, providers, services):
    pattern = BulkPattern(type="recurring", day_of_week=1, time_block=TimeBlock.AM, service_id=services["Clinic"])
    plan_bulk_provider_op(seeded, _op(providers["DPR"], "add", pattern))
    again = plan_bulk_provider_op(seeded, _op(providers["DPR"], "add", pattern))

    assert again.affected_count == 0
    assert len(again.skipped) == 5
    assert again.history_id is None
    assert len(seeded.all(Assignment)) == 5
    assert len(seeded.all(ChangeHistoryEntry)) == 1


def test_add_without_block_fills_both_halves(seeded, providers, services):
    pattern = BulkPattern(type="recurring", day_of_week=3, service_id=services["Echo"])
    outcome = plan_bulk_provider_op(seeded, _op(providers["APZ"], "add", pattern))
    # four Wednesdays in March 2026
    assert outcome.affected_count == 8
    assert {a.time_block for a in seeded.all(Assignment)} == {TimeBlock.AM, TimeBlock.PM}


def test_preview_does_not_write(seeded, providers, services):
    pattern = BulkPattern(type="all", service_id=services["Clinic"])
    outcome = plan_bulk_provider_op(seeded, _op(providers["DPR"], "add", pattern, preview=True))
    assert outcome.preview
    assert outcome.affected_count == 62
    assert seeded.all(Assignment) == []
    assert seeded.all(ChangeHistoryEntry) == []


def test_remove_recurring(seeded, providers, services):
    dpr = providers["DPR"]
    plan_bulk_provider_op(seeded, _op(dpr, "add", BulkPattern(type="all", time_block=TimeBlock.PM, service_id=services["Clinic"])))
    plan_bulk_provider_op(seeded, _op(providers["APZ"], "add", BulkPattern(type="all", service_id=services["Echo"])))

    pattern = BulkPattern(type="recurring", day_of_week=1)
    preview = plan_bulk_provider_op(seeded, _op(dpr, "remove", pattern, preview=True))
    assert preview.affected_count == 5
    assert preview.history_id is None
    assert len(seeded.all(Assignment)) == 31 + 62

    outcome = plan_bulk_provider_op(seeded, _op(dpr, "remove", pattern))
    assert outcome.affected_count == 5
    remaining = seeded.filter(Assignment, lambda a: a.provider_id == dpr)
    assert len(remaining) == 26
    assert all(a.date not in MONDAYS for a in remaining)

    entry = seeded.get(ChangeHistoryEntry, outcome.history_id)
    assert entry.operation_type == OperationType.BULK_REMOVE
    assert isinstance(entry.delta, RemovedDelta)
    assert [s["id"] for s in entry.deleted_assignments] == [a.id for a in preview.assignments]
    assert [a.id for a in outcome.assignments] == [a.id for a in preview.assignments]
    assert entry.description == "Removed Derek Porter from Mon all 2026-03-01 - 2026-03-31"

    # nothing left to remove
    again = plan_bulk_provider_op(seeded, _op(dpr, "remove", pattern))
    assert again.affected_count == 0
    assert again.history_id is None


def test_remove_filters_by_service(seeded, providers, services):
    dpr = providers["DPR"]
    plan_bulk_provider_op(seeded, _op(dpr, "add", BulkPattern(type="recurring", day_of_week=2, service_id=services["Clinic"])))
    plan_bulk_provider_op(seeded, _op(dpr, "add", BulkPattern(type="recurring", day_of_week=2, service_id=services["Echo"])))
    outcome = plan_bulk_provider_op(seeded, _op(dpr, "remove", BulkPattern(type="all", service_id=services["Echo"])))
    assert outcome.affected_count == 10
    assert {a.service_id for a in seeded.all(Assignment)} == {services["Clinic"]}


def test_validation(seeded, providers, services):
    dpr = providers["DPR"]
    assert plan_bulk_provider_op(seeded, _op(dpr, "add", BulkPattern())).rejection.code == VALIDATION
    assert plan_bulk_provider_op(seeded, _op(dpr, "remove", BulkPattern(type="recurring"))).rejection.code == VALIDATION
    assert plan_bulk_provider_op(seeded, _op(dpr, "swap", BulkPattern())).rejection.code == VALIDATION
    assert plan_bulk_provider_op(seeded, _op(999, "remove", BulkPattern())).rejection.code == NOT_FOUND
    assert plan_bulk_provider_op(
        seeded, _op(dpr, "add", BulkPattern(service_id=services["Clinic"]), room_count=-1)
    ).rejection.code == VALIDATION
