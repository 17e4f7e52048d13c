"""Audit row for each conflict detection pass over a property."""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel


class ConflictDetectionRun(SQLModel, table=True):
    __tablename__ = "conflict_detection_run"

    id: Optional[int] = Field(default=None, primary_key=True)
    property_id: int = Field(foreign_key="property.id", index=True)
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = Field(default=None)
    status: str = Field(default="running")  # running|success|partial|failed|cancelled
    conflicts_detected: int = Field(default=0)
    conflicts_persisted: int = Field(default=0)
    failed_detectors: Optional[List[dict]] = Field(default=None, sa_column=Column(JSON))
    skipped_detectors: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
