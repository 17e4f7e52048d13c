"""
Conflict Engine Data Models

Pydantic models shared by:
- Detectors (ConflictCandidate)
- Resolution advisor (SuggestedResolution)
- Orchestrator / auto-resolver results
- Route handlers (request and response bodies)
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class SuggestedResolution(BaseModel):
    """Advisor output attached to every conflict"""

    action: str
    priority: str
    steps: List[str]
    estimated_cost: float = 0
    auto_resolvable: bool = False


class ConflictCandidate(BaseModel):
    """A conflict as emitted by a detector, before persistence"""

    id: str
    property_id: int
    conflict_type: str
    severity: str
    conflict_date_start: date
    conflict_date_end: date
    room_no: Optional[str] = None
    booking_id_1: int
    booking_id_2: Optional[int] = None
    description: str
    details: Dict[str, Any] = Field(default_factory=dict)
    suggested_resolution: Optional[SuggestedResolution] = None


class ConflictResponse(BaseModel):
    id: str
    property_id: int
    conflict_type: str
    severity: str
    status: str
    conflict_date_start: date
    conflict_date_end: date
    room_no: Optional[str] = None
    booking_id_1: int
    booking_id_2: Optional[int] = None
    description: str
    details: Optional[Dict[str, Any]] = None
    suggested_resolution: Optional[SuggestedResolution] = None
    resolution_action: Optional[str] = None
    resolution_notes: Optional[str] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ConflictStats(BaseModel):
    total: int
    by_type: Dict[str, int]
    by_severity: Dict[str, int]
    by_status: Dict[str, int]


class DetectorFailure(BaseModel):
    """One detector that did not refresh during a run"""

    detector: str
    error_type: str
    message: str


class PersistFailure(BaseModel):
    conflict_id: str
    message: str


class DetectionRunResult(BaseModel):
    """Outcome of detect_conflicts for one property"""

    property_id: int
    run_id: Optional[int] = None
    status: str = "success"  # success|partial|failed|cancelled
    conflicts: List[ConflictResponse] = Field(default_factory=list)
    failures: List[DetectorFailure] = Field(default_factory=list)
    persist_failures: List[PersistFailure] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)

    @property
    def conflict_ids(self) -> List[str]:
        return [c.id for c in self.conflicts]

    @property
    def failed_detectors(self) -> List[str]:
        return [f.detector for f in self.failures]


class DetectionRunResponse(BaseModel):
    id: int
    property_id: int
    started_at: datetime
    finished_at: Optional[datetime] = None
    status: str
    conflicts_detected: int
    conflicts_persisted: int
    failed_detectors: Optional[List[Dict[str, Any]]] = None
    skipped_detectors: Optional[List[str]] = None

    class Config:
        from_attributes = True


class ResolveConflictRequest(BaseModel):
    action: str
    notes: Optional[str] = None
    resolved_by: str

    @field_validator("resolved_by")
    @classmethod
    def validate_resolved_by(cls, v):
        if not v or not v.strip():
            raise ValueError("resolved_by is required")
        return v.strip()


class IgnoreConflictRequest(BaseModel):
    ignored_by: str
    notes: Optional[str] = None

    @field_validator("ignored_by")
    @classmethod
    def validate_ignored_by(cls, v):
        if not v or not v.strip():
            raise ValueError("ignored_by is required")
        return v.strip()


class AutoResolveFailure(BaseModel):
    conflict_id: str
    action: Optional[str] = None
    reason: str


class AutoResolveResult(BaseModel):
    property_id: int
    resolved_count: int = 0
    resolved_ids: List[str] = Field(default_factory=list)
    unsupported: List[AutoResolveFailure] = Field(default_factory=list)
    failed: List[AutoResolveFailure] = Field(default_factory=list)
