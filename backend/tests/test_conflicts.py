from __future__ import annotations

from datetime import date

from clinic_scheduler.engine import conflicts
from clinic_scheduler.engine.pto_sync import create_pto, delete_pto
from clinic_scheduler.engine.results import (
    AVAILABILITY_HARD_BLOCK,
    AVAILABILITY_WARNING,
    HOLIDAY,
    NOT_FOUND,
    PTO_CONFLICT,
)
from clinic_scheduler.models import Assignment, ProviderLeave, PTORequest, PTOStatus, PTOTimeBlock, TimeBlock

MEMORIAL_DAY = date(2026, 5, 25)


def _work(provider_id, service_id, on, block=TimeBlock.AM, **kwargs) -> Assignment:
    return Assignment(date=on, service_id=service_id, provider_id=provider_id, time_block=block, **kwargs)


def test_holiday_rejects_outpatient_service(seeded, providers, services):
    outcome = conflicts.create_assignment(seeded, _work(providers["DPR"], services["Clinic"], MEMORIAL_DAY))
    assert outcome.rejection.code == HOLIDAY
    assert "Memorial Day" in outcome.rejection.message
    assert seeded.all(Assignment) == []


def test_holiday_allows_inpatient_service(seeded, providers, services):
    outcome = conflicts.create_assignment(
        seeded, _work(providers["DPR"], services["Consults"], MEMORIAL_DAY, TimeBlock.BOTH)
    )
    assert outcome.rejection is None
    assert outcome.assignment.id


def test_work_over_pto_is_rejected(seeded, providers, services):
    dpr = providers["DPR"]
    pto = conflicts.create_assignment(seeded, _work(dpr, services["PTO"], date(2026, 3, 3), TimeBlock.BOTH, is_pto=True))
    assert pto.rejection is None

    outcome = conflicts.create_assignment(seeded, _work(dpr, services["Clinic"], date(2026, 3, 3), TimeBlock.PM))
    assert outcome.rejection.code == PTO_CONFLICT


def test_half_day_pto_leaves_other_half_open(seeded, providers, services):
    dpr = providers["DPR"]
    conflicts.create_assignment(seeded, _work(dpr, services["PTO"], date(2026, 3, 3), TimeBlock.AM, is_pto=True))
    outcome = conflicts.create_assignment(seeded, _work(dpr, services["Clinic"], date(2026, 3, 3), TimeBlock.PM))
    assert outcome.rejection is None
    whole_day = conflicts.create_assignment(seeded, _work(dpr, services["Echo"], date(2026, 3, 3), TimeBlock.BOTH))
    assert whole_day.rejection.code == PTO_CONFLICT


def test_full_day_pto_blocks_either_half(seeded, providers, services):
    dpr = providers["DPR"]
    conflicts.create_assignment(seeded, _work(dpr, services["PTO"], date(2026, 3, 3), TimeBlock.BOTH, is_pto=True))
    for block in (TimeBlock.AM, TimeBlock.PM, TimeBlock.BOTH):
        outcome = conflicts.create_assignment(seeded, _work(dpr, services["Clinic"], date(2026, 3, 3), block))
        assert outcome.rejection.code == PTO_CONFLICT
    assert len(seeded.all(Assignment)) == 1


def test_pto_over_work_warns_and_syncs(seeded, providers, services):
    dpr = providers["DPR"]
    conflicts.create_assignment(seeded, _work(dpr, services["Clinic"], date(2026, 3, 4)))

    outcome = conflicts.create_assignment(seeded, _work(dpr, services["PTO"], date(2026, 3, 4), TimeBlock.BOTH, is_pto=True))
    assert outcome.rejection is None
    assert outcome.warnings == [conflicts.PTO_OVER_WORK_WARNING]
    assert outcome.pto_sync.pto_request_created
    assert outcome.pto_sync.provider_leave_created

    [request] = seeded.all(PTORequest)
    assert request.status == PTOStatus.APPROVED
    assert request.time_block == PTOTimeBlock.FULL
    assert (request.start_date, request.end_date) == (date(2026, 3, 4), date(2026, 3, 4))
    assert len(seeded.all(ProviderLeave)) == 1


def test_pto_service_counts_as_pto_without_flag(seeded, providers, services):
    dpr = providers["DPR"]
    conflicts.create_assignment(seeded, _work(dpr, services["PTO"], date(2026, 3, 5), TimeBlock.BOTH))
    outcome = conflicts.create_assignment(seeded, _work(dpr, services["Echo"], date(2026, 3, 5)))
    assert outcome.rejection.code == PTO_CONFLICT


def test_hard_availability_block_and_override(seeded, providers, services):
    payload = _work(providers["JOO"], services["Nuclear"], date(2026, 3, 2))
    outcome = conflicts.create_assignment(seeded, payload)
    assert outcome.rejection.code == AVAILABILITY_HARD_BLOCK

    forced = conflicts.create_assignment(seeded, payload, force_override=True)
    assert forced.rejection is None
    assert forced.warnings == []


def test_availability_warning_is_attached(seeded, providers, services):
    outcome = conflicts.create_assignment(seeded, _work(providers["AML"], services["Clinic"], date(2026, 3, 6), TimeBlock.PM))
    assert outcome.rejection is None
    assert outcome.warnings == ["Protected research time"]


def test_update_passes_through(seeded, providers, services):
    created = conflicts.create_assignment(seeded, _work(providers["DPR"], services["Clinic"], date(2026, 3, 2))).assignment
    outcome = conflicts.update_assignment(seeded, created.id, {"room_count": 4, "notes": "late start", "bogus": 1})
    assert outcome.assignment.room_count == 4
    assert outcome.assignment.notes == "late start"
    assert conflicts.update_assignment(seeded, 999, {}).rejection.code == NOT_FOUND


def test_delete_missing_assignment(seeded):
    assert conflicts.delete_assignment(seeded, 42).rejection.code == NOT_FOUND


def test_deleting_single_day_pto_removes_request(seeded, providers, services):
    dpr = providers["DPR"]
    created = conflicts.create_assignment(
        seeded, _work(dpr, services["PTO"], date(2026, 3, 3), TimeBlock.BOTH, is_pto=True)
    ).assignment

    outcome = conflicts.delete_assignment(seeded, created.id)
    assert outcome.deleted
    assert outcome.cascade.pto_requests_updated == 1
    assert outcome.cascade.provider_leaves_updated == 1
    assert seeded.all(PTORequest) == []
    assert seeded.all(ProviderLeave) == []


def test_deleting_range_edges_trims_request(seeded, providers):
    dpr = providers["DPR"]
    result = create_pto(seeded, dpr, date(2026, 3, 2), date(2026, 3, 6))
    assert result.schedule_assignments_created == 5

    by_date = {a.date: a for a in seeded.all(Assignment)}
    conflicts.delete_assignment(seeded, by_date[date(2026, 3, 2)].id)
    conflicts.delete_assignment(seeded, by_date[date(2026, 3, 6)].id)
    [request] = seeded.all(PTORequest)
    [leave] = seeded.all(ProviderLeave)
    assert (request.start_date, request.end_date) == (date(2026, 3, 3), date(2026, 3, 5))
    assert (leave.start_date, leave.end_date) == (date(2026, 3, 3), date(2026, 3, 5))

    # a day in the middle of the range leaves it untouched
    outcome = conflicts.delete_assignment(seeded, by_date[date(2026, 3, 4)].id)
    assert outcome.cascade.pto_requests_updated == 0
    assert (request.start_date, request.end_date) == (date(2026, 3, 3), date(2026, 3, 5))


def test_create_pto_skips_non_work_days_and_duplicates(seeded, providers):
    mb = providers["MB"]  # Mon/Wed/Fri
    first = create_pto(seeded, mb, date(2026, 3, 2), date(2026, 3, 8))
    assert first.dates_processed == [date(2026, 3, 2), date(2026, 3, 4), date(2026, 3, 6)]
    assert first.schedule_assignments_created == 3
    again = create_pto(seeded, mb, date(2026, 3, 2), date(2026, 3, 8))
    assert again.schedule_assignments_created == 0


def test_create_pto_rejections(seeded, providers):
    assert create_pto(seeded, providers["DPR"], date(2026, 3, 6), date(2026, 3, 2)).rejection is not None
    assert create_pto(seeded, providers["DPR"], date(2026, 3, 7), date(2026, 3, 8)).rejection is not None
    assert create_pto(seeded, 999, date(2026, 3, 2), date(2026, 3, 2)).rejection.code == NOT_FOUND


def test_delete_pto_half_day(seeded, providers):
    dpr = providers["DPR"]
    create_pto(seeded, dpr, date(2026, 3, 2), date(2026, 3, 2), PTOTimeBlock.AM)
    assert [a.time_block for a in seeded.all(Assignment)] == [TimeBlock.AM]
    assert delete_pto(seeded, dpr, date(2026, 3, 2), TimeBlock.PM).schedule_assignments_deleted == 0

    result = delete_pto(seeded, dpr, date(2026, 3, 2), TimeBlock.AM)
    assert result.schedule_assignments_deleted == 1
    assert result.pto_requests_updated == 1
    assert seeded.all(PTORequest) == []


# batch ------------------------------------------------------------------------


def test_batch_rejects_holiday_slots(seeded, providers, services):
    outcome = conflicts.create_assignments_batch(
        seeded,
        [
            _work(providers["DPR"], services["Clinic"], date(2026, 5, 22)),
            _work(providers["DPR"], services["Clinic"], MEMORIAL_DAY),
        ],
    )
    assert outcome.rejection.code == HOLIDAY
    assert outcome.rejection.details["conflicts"] == ["2026-05-25: Memorial Day (Clinic)"]
    assert seeded.all(Assignment) == []


def test_batch_rejects_work_over_pto(seeded, providers, services):
    dpr = providers["DPR"]
    create_pto(seeded, dpr, date(2026, 3, 3), date(2026, 3, 3))
    outcome = conflicts.create_assignments_batch(
        seeded,
        [_work(dpr, services["Clinic"], date(2026, 3, 2)), _work(dpr, services["Clinic"], date(2026, 3, 3))],
    )
    assert outcome.rejection.code == PTO_CONFLICT
    assert len(outcome.rejection.details["conflicts"]) == 1


def test_batch_requires_acknowledged_warnings(seeded, providers, services):
    payloads = [
        _work(providers["AML"], services["Clinic"], date(2026, 3, 6), TimeBlock.PM),
        _work(providers["DPR"], services["Clinic"], date(2026, 3, 6), TimeBlock.PM),
    ]
    outcome = conflicts.create_assignments_batch(seeded, payloads)
    assert outcome.rejection.code == AVAILABILITY_WARNING
    assert outcome.rejection.details["requires_confirmation"] is True

    outcome = conflicts.create_assignments_batch(seeded, payloads, acknowledged_warnings=True)
    assert outcome.rejection is None
    assert len(outcome.created) == 2
    assert len(outcome.warnings) == 1


def test_batch_hard_blocks(seeded, providers, services):
    payloads = [_work(providers["JOO"], services["Nuclear"], date(2026, 3, 2))]
    assert conflicts.create_assignments_batch(seeded, payloads).rejection.code == AVAILABILITY_HARD_BLOCK
    assert conflicts.create_assignments_batch(seeded, payloads, force_override=True).rejection is None


def test_batch_delete(seeded, providers, services):
    outcome = conflicts.create_assignments_batch(
        seeded,
        [_work(providers["DPR"], services["Clinic"], date(2026, 3, d)) for d in (2, 3, 4)],
    )
    ids = [a.id for a in outcome.created]
    assert conflicts.delete_assignments_batch(seeded, ids[:2] + [999]) == 2
    assert [a.id for a in seeded.all(Assignment)] == ids[2:]
