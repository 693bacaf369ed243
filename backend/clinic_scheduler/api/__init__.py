from fastapi import APIRouter

from . import admin, assignments, availability, holidays, providers, pto, pto_requests, schedules, templates

router = APIRouter()

router.include_router(assignments.router, prefix="/assignments", tags=["assignments"])
router.include_router(availability.router, prefix="/availability", tags=["availability"])
router.include_router(holidays.router, prefix="/holidays", tags=["holidays"])
router.include_router(pto_requests.router, prefix="/pto-requests", tags=["pto"])
router.include_router(providers.router, prefix="/providers", tags=["providers"])
router.include_router(pto.router, prefix="/pto", tags=["pto"])
router.include_router(admin.router, prefix="/admin", tags=["admin"])
router.include_router(templates.router, prefix="/templates", tags=["templates"])
router.include_router(schedules.router, prefix="/schedules", tags=["schedules"])
