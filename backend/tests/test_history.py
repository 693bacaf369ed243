from __future__ import annotations

from datetime import date, timedelta

from clinic_scheduler.engine import history
from clinic_scheduler.engine.bulk import BulkPattern, BulkProviderOp, plan_bulk_provider_op
from clinic_scheduler.engine.results import ALREADY_UNDONE, NOT_FOUND, NOT_UNDONE
from clinic_scheduler.engine.templates import apply_template
from clinic_scheduler.models import (
    AddedDelta,
    Assignment,
    ChangeHistoryEntry,
    OperationType,
    ScheduleTemplate,
    TimeBlock,
    utcnow,
)

START = date(2026, 3, 1)
END = date(2026, 3, 31)


def _bulk(session, provider_id, action, pattern) -> int:
    op = BulkProviderOp(provider_id=provider_id, action=action, pattern=pattern, start_date=START, end_date=END)
    return plan_bulk_provider_op(session, op).history_id


def _mondays(service_id, block=TimeBlock.AM) -> BulkPattern:
    return BulkPattern(type="recurring", day_of_week=1, time_block=block, service_id=service_id)


def test_undo_bulk_add(seeded, providers, services):
    history_id = _bulk(seeded, providers["DPR"], "add", _mondays(services["Clinic"]))
    assert len(seeded.all(Assignment)) == 5

    outcome = history.undo(seeded, history_id)
    assert outcome.success
    assert outcome.deleted_count == 5
    assert outcome.restored_count == 0
    assert outcome.message == "Undo successful. Deleted 5 assignments, restored 0 assignments."
    assert seeded.all(Assignment) == []

    entry = seeded.get(ChangeHistoryEntry, history_id)
    assert entry.is_undone
    assert entry.undone_at.tzinfo is not None

    again = history.undo(seeded, history_id)
    assert again.rejection.code == ALREADY_UNDONE


def test_undo_bulk_remove_restores_original_rows(seeded, providers, services):
    dpr = providers["DPR"]
    _bulk(seeded, dpr, "add", _mondays(services["Clinic"]))
    before = {a.id: (a.date, a.time_block, a.service_id) for a in seeded.all(Assignment)}

    history_id = _bulk(seeded, dpr, "remove", BulkPattern(type="all"))
    assert seeded.all(Assignment) == []

    outcome = history.undo(seeded, history_id)
    assert outcome.restored_count == 5
    after = {a.id: (a.date, a.time_block, a.service_id) for a in seeded.all(Assignment)}
    assert after == before


def test_rows_added_since_need_confirmation(seeded, providers, services):
    history_id = _bulk(seeded, providers["DPR"], "add", _mondays(services["Clinic"]))
    extra = Assignment(date=date(2026, 3, 3), service_id=services["Echo"], provider_id=providers["APZ"], time_block=TimeBlock.PM)
    seeded.add(extra)

    outcome = history.undo(seeded, history_id)
    assert not outcome.success
    assert outcome.requires_confirmation
    [conflict] = outcome.conflicts
    assert conflict.change_type == "added"
    assert conflict.id == extra.id
    assert conflict.service_name == "Echo"
    assert len(seeded.all(Assignment)) == 6

    forced = history.undo(seeded, history_id, force=True)
    assert forced.success
    # rows that were not part of the operation survive
    assert [a.id for a in seeded.all(Assignment)] == [extra.id]


def test_rows_deleted_since_are_reported(seeded, providers, services):
    history_id = _bulk(seeded, providers["DPR"], "add", _mondays(services["Clinic"]))
    gone = seeded.all(Assignment)[0]
    seeded.delete(Assignment, [gone.id])

    outcome = history.undo(seeded, history_id)
    assert outcome.requires_confirmation
    assert [(c.id, c.change_type) for c in outcome.conflicts] == [(gone.id, "deleted")]

    forced = history.undo(seeded, history_id, force=True)
    assert forced.success
    assert forced.deleted_count == 4
    assert forced.message == "Undo successful. Deleted 4 assignments, restored 0 assignments."
    assert seeded.all(Assignment) == []


def test_redo_replays_with_new_ids(seeded, providers, services):
    history_id = _bulk(seeded, providers["DPR"], "add", _mondays(services["Clinic"]))
    original_ids = {a.id for a in seeded.all(Assignment)}

    assert history.redo(seeded, history_id).rejection.code == NOT_UNDONE

    history.undo(seeded, history_id)
    outcome = history.redo(seeded, history_id)
    assert outcome.success
    assert outcome.created_count == 5

    rows = seeded.all(Assignment)
    assert sorted(a.date for a in rows) == [date(2026, 3, d) for d in (2, 9, 16, 23, 30)]
    assert {a.id for a in rows}.isdisjoint(original_ids)

    entry = seeded.get(ChangeHistoryEntry, history_id)
    assert entry.is_redone and not entry.is_undone
    assert isinstance(entry.delta, AddedDelta)
    assert set(entry.created_assignment_ids) == {a.id for a in rows}

    # the refreshed ids make the entry undoable again
    assert history.undo(seeded, history_id).deleted_count == 5
    assert seeded.all(Assignment) == []


def test_undo_and_redo_of_clearing_template_apply(seeded, providers, services):
    templates = {t.name: t.id for t in seeded.all(ScheduleTemplate)}
    apply_template(seeded, templates["Week A"], date(2026, 3, 1), date(2026, 3, 7))
    week_a_ids = {a.id for a in seeded.all(Assignment)}

    replaced = apply_template(seeded, templates["Week B"], date(2026, 3, 1), date(2026, 3, 7), clear_existing=True)
    outcome = history.undo(seeded, replaced.history_id)
    assert outcome.deleted_count == 20
    assert outcome.restored_count == 20
    assert {a.id for a in seeded.all(Assignment)} == week_a_ids

    redone = history.redo(seeded, replaced.history_id)
    assert redone.deleted_count == 20
    assert redone.created_count == 20
    [monday_consults] = seeded.filter(
        Assignment, lambda a: a.date == date(2026, 3, 2) and a.service_id == services["Consults"]
    )
    assert monday_consults.provider_id == providers["APZ"]


def test_list_history_is_newest_first(seeded, providers, services):
    first = _bulk(seeded, providers["DPR"], "add", _mondays(services["Clinic"]))
    second = _bulk(seeded, providers["APZ"], "add", _mondays(services["Echo"], TimeBlock.PM))
    third = _bulk(seeded, providers["DPR"], "remove", BulkPattern(type="all"))

    entries = history.list_history(seeded)
    assert [e.id for e in entries] == [third, second, first]
    assert [e.operation_type for e in entries] == [OperationType.BULK_REMOVE, OperationType.BULK_ADD, OperationType.BULK_ADD]
    assert [e.id for e in history.list_history(seeded, limit=1)] == [third]

    seeded.get(ChangeHistoryEntry, first).created_at = utcnow() - timedelta(days=45)
    assert first not in [e.id for e in history.list_history(seeded)]


def test_unknown_history_id(seeded):
    assert history.undo(seeded, 77).rejection.code == NOT_FOUND
    assert history.redo(seeded, 77).rejection.code == NOT_FOUND
