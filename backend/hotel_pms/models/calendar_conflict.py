"""
Calendar Conflict Model

One row per detected conflict. The primary key is the deterministic
conflict identity (see services.conflict_detectors.conflict_identity), so
re-running detection on unchanged bookings upserts the same rows instead of
inserting duplicates.

Lifecycle: detected -> resolved | ignored. Both targets are terminal; rows
are never deleted by the conflict engine.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import JSON
from sqlalchemy import Index
from sqlmodel import Column, Field, SQLModel


class ConflictType(str, Enum):
    double_booking = "double_booking"
    sync_failed = "sync_failed"
    availability_mismatch = "availability_mismatch"
    pricing_mismatch = "pricing_mismatch"


class ConflictSeverity(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class ConflictStatus(str, Enum):
    detected = "detected"
    resolved = "resolved"
    ignored = "ignored"


TERMINAL_STATUSES = frozenset({ConflictStatus.resolved.value, ConflictStatus.ignored.value})


class CalendarConflict(SQLModel, table=True):
    __tablename__ = "calendar_conflict"
    __table_args__ = (Index("ix_calendar_conflict_property_status", "property_id", "status"),)

    id: str = Field(primary_key=True, max_length=128)
    property_id: int = Field(foreign_key="property.id", index=True)
    conflict_type: str  # ConflictType value
    severity: str  # ConflictSeverity value
    status: str = Field(default=ConflictStatus.detected.value)

    conflict_date_start: date
    conflict_date_end: date  # exclusive for double bookings
    room_no: Optional[str] = None
    booking_id_1: int = Field(index=True)
    booking_id_2: Optional[int] = Field(default=None)

    description: str = Field(default="")
    details: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    suggested_resolution: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))

    resolution_action: Optional[str] = None
    resolution_notes: Optional[str] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def auto_resolvable(self) -> bool:
        return bool((self.suggested_resolution or {}).get("auto_resolvable"))
