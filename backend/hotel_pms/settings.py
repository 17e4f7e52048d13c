"""
Conflict engine settings read from the environment.

DATABASE_URL / SQL_ECHO are handled in hotel_pms.database; this module
covers the detection knobs. Values are read at call time so tests and the
scan script can override them through the environment.
"""

import os
from typing import FrozenSet, Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_ROOM_PLACEHOLDERS = "TBD"
DEFAULT_SCAN_MAX_WORKERS = 4


def room_placeholders() -> FrozenSet[str]:
    """Room numbers that mean "not assigned yet" (compared case-insensitively)."""
    raw = os.getenv("CONFLICT_ROOM_PLACEHOLDERS", DEFAULT_ROOM_PLACEHOLDERS)
    return frozenset(v.strip().upper() for v in raw.split(",") if v.strip())


def detection_timeout_seconds() -> Optional[float]:
    raw = os.getenv("CONFLICT_DETECTION_TIMEOUT_SECONDS", "").strip()
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"CONFLICT_DETECTION_TIMEOUT_SECONDS must be a number, got '{raw}'")
    return value if value > 0 else None


def scan_max_workers() -> int:
    raw = os.getenv("CONFLICT_SCAN_MAX_WORKERS", "").strip()
    if not raw:
        return DEFAULT_SCAN_MAX_WORKERS
    return max(1, int(raw))
