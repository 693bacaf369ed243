from __future__ import annotations

import io
from collections import defaultdict
from datetime import date

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font

from clinic_scheduler.core.config import settings
from clinic_scheduler.db.session import InMemorySession
from clinic_scheduler.engine.holidays import holidays_in_range
from clinic_scheduler.engine.pto_days import iter_dates
from clinic_scheduler.models import Assignment, Provider, Service, TimeBlock

WEEKDAY_LABELS = {0: "Mon", 1: "Tue", 2: "Wed", 3: "Thu", 4: "Fri", 5: "Sat", 6: "Sun"}
BLOCK_ORDER = {TimeBlock.AM: 0, TimeBlock.PM: 1, TimeBlock.BOTH: 2}


def _cell_text(entries: list[tuple[TimeBlock, str]]) -> str:
    by_block: dict[TimeBlock, list[str]] = defaultdict(list)
    for block, initials in entries:
        by_block[block].append(initials)
    parts = []
    for block in sorted(by_block, key=BLOCK_ORDER.get):
        label = "AM/PM" if block == TimeBlock.BOTH else block.value
        parts.append(f"{label}: {', '.join(sorted(by_block[block]))}")
    return "\n".join(parts)


def export_schedule(session: InMemorySession, start: date, end: date) -> bytes:
    """Render ``[start, end]`` as a workbook: one row per date, one column per service."""
    services = sorted(
        (s for s in session.all(Service) if s.show_on_main_calendar and s.name != settings.pto_service_name),
        key=lambda s: s.name,
    )
    providers = {p.id: p for p in session.all(Provider)}
    service_names = {s.id: s.name for s in session.all(Service)}
    holidays = holidays_in_range(start, end)

    assignments = session.filter(Assignment, lambda a: start <= a.date <= end)
    cells: dict[tuple[date, int], list[tuple[TimeBlock, str]]] = defaultdict(list)
    pto_rows = []
    for assignment in assignments:
        provider = providers.get(assignment.provider_id)
        initials = provider.initials if provider else "?"
        if assignment.is_pto or service_names.get(assignment.service_id) == settings.pto_service_name:
            pto_rows.append((assignment.date, initials, assignment.time_block))
            continue
        cells[(assignment.date, assignment.service_id)].append((assignment.time_block, initials))

    wb = Workbook()
    ws = wb.active
    ws.title = settings.export_sheet_title

    header = ["Date", "Day", "Holiday"] + [s.name for s in services]
    ws.append(header)
    for cell in ws[1]:
        cell.font = Font(bold=True)

    for day in iter_dates(start, end):
        holiday = holidays.get(day)
        row = [day.isoformat(), WEEKDAY_LABELS[day.weekday()], holiday.name if holiday else ""]
        row += [_cell_text(cells.get((day, s.id), [])) for s in services]
        ws.append(row)

    for row in ws.iter_rows(min_row=2):
        for cell in row:
            cell.alignment = Alignment(wrap_text=True, vertical="top")

    pto = wb.create_sheet("PTO")
    pto.append(["Date", "Provider", "Block"])
    for cell in pto[1]:
        cell.font = Font(bold=True)
    for day, initials, block in sorted(pto_rows, key=lambda r: (r[0], r[1])):
        pto.append([day.isoformat(), initials, "Full day" if block == TimeBlock.BOTH else block.value])

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
