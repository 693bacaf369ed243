from __future__ import annotations

import os
from tempfile import NamedTemporaryFile

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse
from starlette.background import BackgroundTask

from clinic_scheduler.db.session import get_session
from clinic_scheduler.schemas.common import ExportWindow
from clinic_scheduler.services.export import export_schedule

router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _get_session():
    with get_session() as session:
        yield session


@router.post(
    "/export/xlsx",
    responses={200: {"content": {XLSX_MEDIA_TYPE: {}}, "description": "Schedule workbook for the window"}},
)
def export_xlsx(window: ExportWindow, session=Depends(_get_session)) -> FileResponse:
    if window.start_date > window.end_date:
        raise HTTPException(status_code=400, detail="start_date must be on or before end_date")
    data = export_schedule(session, window.start_date, window.end_date)
    tmp = NamedTemporaryFile(delete=False, suffix=".xlsx")
    tmp.write(data)
    tmp.close()
    return FileResponse(
        tmp.name,
        media_type=XLSX_MEDIA_TYPE,
        filename=f"SCHEDULE_{window.start_date}_{window.end_date}.xlsx",
        background=BackgroundTask(os.unlink, tmp.name),
    )
