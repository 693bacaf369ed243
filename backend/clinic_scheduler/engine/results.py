from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# rejection codes
VALIDATION = "validation"
NOT_FOUND = "not_found"
HOLIDAY = "holiday"
PTO_CONFLICT = "pto_conflict"
AVAILABILITY_HARD_BLOCK = "availability_hard_block"
AVAILABILITY_WARNING = "availability_warning"
ALREADY_UNDONE = "already_undone"
NOT_UNDONE = "not_undone"
ALREADY_PROCESSED = "already_processed"
STORAGE = "storage"


@dataclass
class Rejection:
    """A named, expected failure the caller can show to the user."""

    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)
