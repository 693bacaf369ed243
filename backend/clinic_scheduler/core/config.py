from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any


@dataclass
class Settings:
    app_name: str = "Clinic Scheduler"
    database_url: str = "memory://"
    seed_on_startup: bool = False
    # services allowed to run on holidays
    inpatient_services: tuple[str, ...] = ("Consults", "Burgundy")
    pto_service_name: str = "PTO"
    default_work_days: frozenset[int] = frozenset({1, 2, 3, 4, 5})
    holiday_proximity_days: int = 7
    holiday_adjacent_threshold: int = 2
    system_default_allowances: dict[str, float] = field(
        default_factory=lambda: {"attending": 20, "fellow": 15, "np": 15, "pa": 15}
    )
    fallback_allowance: float = 20
    balance_warning_ratio: float = 0.8
    history_limit: int = 20
    history_days_back: int = 30
    export_sheet_title: str = "Schedule"


@lru_cache
def get_settings(**overrides: Any) -> Settings:
    base = Settings()
    for key, value in overrides.items():
        setattr(base, key, value)
    return base


settings = get_settings()
