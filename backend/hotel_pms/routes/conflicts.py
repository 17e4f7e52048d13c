"""
API Routes for calendar conflicts

Detection, listing, stats and resolution of booking conflicts per property.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session

from hotel_pms.database import get_session
from hotel_pms.models.calendar_conflict import ConflictSeverity, ConflictStatus, ConflictType
from hotel_pms.models.property import Property
from hotel_pms.services.auto_resolver import AutoResolver
from hotel_pms.services.conflict_detection import ConflictDetectionService
from hotel_pms.services.conflict_errors import ConflictNotFound, DetectionFailed, InvalidConflictTransition
from hotel_pms.services.conflict_store import ConflictStore
from hotel_pms.utils.conflict_types import (
    AutoResolveResult,
    ConflictResponse,
    ConflictStats,
    DetectionRunResponse,
    DetectionRunResult,
    IgnoreConflictRequest,
    ResolveConflictRequest,
)

router = APIRouter()


def _require_property(session: Session, property_id: int) -> Property:
    prop = session.get(Property, property_id)
    if not prop:
        raise HTTPException(status_code=404, detail="Property not found")
    return prop


@router.post("/properties/{property_id}/conflicts/detect", response_model=DetectionRunResult)
def detect_conflicts(property_id: int, session: Session = Depends(get_session)):
    """
    Run every detector for the property and persist the results.

    A detector that fails is reported in `failures`; the conflicts from the
    other detectors are still returned. 503 only when all detectors failed.
    """
    _require_property(session, property_id)
    try:
        return ConflictDetectionService(session).detect_conflicts(property_id)
    except DetectionFailed as e:
        detail = {"message": str(e)}
        if e.result is not None:
            detail["failures"] = [f.model_dump() for f in e.result.failures]
        raise HTTPException(status_code=503, detail=detail)


@router.get("/properties/{property_id}/conflicts", response_model=List[ConflictResponse])
def list_conflicts(
    property_id: int,
    status: Optional[ConflictStatus] = Query(default=None),
    conflict_type: Optional[ConflictType] = Query(default=None),
    severity: Optional[ConflictSeverity] = Query(default=None),
    session: Session = Depends(get_session),
):
    """List stored conflicts, newest first"""
    _require_property(session, property_id)
    return ConflictStore(session).list_conflicts(
        property_id,
        status=status.value if status else None,
        conflict_type=conflict_type.value if conflict_type else None,
        severity=severity.value if severity else None,
    )


@router.get("/properties/{property_id}/conflicts/stats", response_model=ConflictStats)
def get_conflict_stats(property_id: int, session: Session = Depends(get_session)):
    """Counts grouped by type, severity and status"""
    _require_property(session, property_id)
    return ConflictStore(session).get_stats(property_id)


@router.get("/properties/{property_id}/conflicts/last-run", response_model=DetectionRunResponse)
def get_last_detection_run(property_id: int, session: Session = Depends(get_session)):
    """Latest detection run, including which detectors failed to refresh"""
    _require_property(session, property_id)
    run = ConflictStore(session).last_run(property_id)
    if not run:
        raise HTTPException(status_code=404, detail="No detection run recorded for this property")
    return run


@router.post("/properties/{property_id}/conflicts/auto-resolve", response_model=AutoResolveResult)
def auto_resolve_conflicts(property_id: int, session: Session = Depends(get_session)):
    """Execute safe corrective actions for auto-resolvable conflicts"""
    _require_property(session, property_id)
    return AutoResolver(session).auto_resolve_conflicts(property_id)


@router.get("/conflicts/{conflict_id}", response_model=ConflictResponse)
def get_conflict(conflict_id: str, session: Session = Depends(get_session)):
    try:
        return ConflictStore(session).get(conflict_id)
    except ConflictNotFound:
        raise HTTPException(status_code=404, detail="Conflict not found")


@router.post("/conflicts/{conflict_id}/resolve", response_model=ConflictResponse)
def resolve_conflict(conflict_id: str, request: ResolveConflictRequest, session: Session = Depends(get_session)):
    try:
        return ConflictStore(session).resolve_conflict(conflict_id, request, request.resolved_by)
    except ConflictNotFound:
        raise HTTPException(status_code=404, detail="Conflict not found")
    except InvalidConflictTransition as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/conflicts/{conflict_id}/ignore", response_model=ConflictResponse)
def ignore_conflict(conflict_id: str, request: IgnoreConflictRequest, session: Session = Depends(get_session)):
    try:
        return ConflictStore(session).ignore_conflict(conflict_id, request.ignored_by, request.notes)
    except ConflictNotFound:
        raise HTTPException(status_code=404, detail="Conflict not found")
    except InvalidConflictTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
