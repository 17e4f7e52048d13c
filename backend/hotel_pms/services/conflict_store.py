"""
Conflict Store

The only writer of calendar_conflict.

upsert() is a single INSERT ... ON CONFLICT (id) DO UPDATE statement, so
concurrent writers of the same identity are serialized by the primary key.
The update branch refreshes detail columns only: status, resolution fields
and created_at of an existing row are never touched, which keeps resolved
and ignored conflicts closed when detection sees them again.
"""

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, func, select

from hotel_pms.models.calendar_conflict import CalendarConflict, ConflictStatus
from hotel_pms.models.conflict_detection_run import ConflictDetectionRun
from hotel_pms.services.conflict_errors import ConflictNotFound, InvalidConflictTransition, PersistenceFailed
from hotel_pms.utils.conflict_types import ConflictCandidate, ConflictStats, DetectionRunResult

logger = logging.getLogger(__name__)

# Columns a re-detection may refresh
MUTABLE_FIELDS = (
    "severity",
    "conflict_date_start",
    "conflict_date_end",
    "room_no",
    "booking_id_1",
    "booking_id_2",
    "description",
    "details",
    "suggested_resolution",
    "updated_at",
)

_DIALECT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _row_values(candidate: ConflictCandidate, now: datetime) -> Dict[str, Any]:
    return {
        "id": candidate.id,
        "property_id": candidate.property_id,
        "conflict_type": candidate.conflict_type,
        "severity": candidate.severity,
        "status": ConflictStatus.detected.value,
        "conflict_date_start": candidate.conflict_date_start,
        "conflict_date_end": candidate.conflict_date_end,
        "room_no": candidate.room_no,
        "booking_id_1": candidate.booking_id_1,
        "booking_id_2": candidate.booking_id_2,
        "description": candidate.description,
        "details": candidate.details,
        "suggested_resolution": (
            candidate.suggested_resolution.model_dump() if candidate.suggested_resolution else None
        ),
        "created_at": now,
        "updated_at": now,
    }


class ConflictStore:
    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert(self, candidate: ConflictCandidate, *, commit: bool = True) -> CalendarConflict:
        """
        Insert the conflict or refresh its detail fields.

        Raises:
            PersistenceFailed: the write failed (the session is rolled back)
        """
        values = _row_values(candidate, _utcnow())
        try:
            insert_fn = _DIALECT_INSERTS.get(self.session.get_bind().dialect.name)
            if insert_fn is not None:
                stmt = insert_fn(CalendarConflict.__table__).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=["id"],
                    set_={name: stmt.excluded[name] for name in MUTABLE_FIELDS},
                )
                self.session.execute(stmt)
            else:
                self._upsert_portable(values)
            if commit:
                self.session.commit()
            else:
                self.session.flush()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("Failed to persist conflict %s: %s", candidate.id, e)
            raise PersistenceFailed(f"Failed to persist conflict {candidate.id}: {e}", candidate.id) from e

        return self.session.get(CalendarConflict, candidate.id, populate_existing=True)

    def _upsert_portable(self, values: Dict[str, Any]) -> None:
        """Fallback for dialects without ON CONFLICT: insert, update on key clash."""
        try:
            with self.session.begin_nested():
                self.session.add(CalendarConflict(**values))
        except IntegrityError:
            self.session.execute(
                update(CalendarConflict)
                .where(CalendarConflict.id == values["id"])
                .values({name: values[name] for name in MUTABLE_FIELDS})
            )

    def resolve_conflict(self, conflict_id: str, resolution, resolved_by: str) -> CalendarConflict:
        """
        detected -> resolved.

        `resolution` is anything with an `action` attribute and an optional
        `notes` attribute (SuggestedResolution, ResolveConflictRequest).
        """
        return self._close(
            conflict_id,
            ConflictStatus.resolved.value,
            actor=resolved_by,
            action=resolution.action,
            notes=getattr(resolution, "notes", None),
        )

    def ignore_conflict(self, conflict_id: str, ignored_by: str, notes: Optional[str] = None) -> CalendarConflict:
        """detected -> ignored (human decision only)."""
        return self._close(conflict_id, ConflictStatus.ignored.value, actor=ignored_by, action="ignore", notes=notes)

    def _close(self, conflict_id: str, target: str, *, actor: str, action: str, notes: Optional[str]) -> CalendarConflict:
        now = _utcnow()
        # Compare-and-set on status so two resolvers cannot both win
        result = self.session.execute(
            update(CalendarConflict)
            .where(CalendarConflict.id == conflict_id, CalendarConflict.status == ConflictStatus.detected.value)
            .values(
                status=target,
                resolution_action=action,
                resolution_notes=notes,
                resolved_by=actor,
                resolved_at=now,
                updated_at=now,
            )
        )
        if result.rowcount == 0:
            self.session.rollback()
            existing = self.session.get(CalendarConflict, conflict_id)
            if existing is None:
                raise ConflictNotFound(conflict_id)
            raise InvalidConflictTransition(conflict_id, existing.status, target)

        self.session.commit()
        logger.info("Conflict %s %s by %s with action: %s", conflict_id, target, actor, action)
        return self.session.get(CalendarConflict, conflict_id, populate_existing=True)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, conflict_id: str) -> CalendarConflict:
        conflict = self.session.get(CalendarConflict, conflict_id)
        if conflict is None:
            raise ConflictNotFound(conflict_id)
        return conflict

    def list_conflicts(
        self,
        property_id: int,
        status: Optional[str] = None,
        conflict_type: Optional[str] = None,
        severity: Optional[str] = None,
    ) -> List[CalendarConflict]:
        query = select(CalendarConflict).where(CalendarConflict.property_id == property_id)
        if status:
            query = query.where(CalendarConflict.status == status)
        if conflict_type:
            query = query.where(CalendarConflict.conflict_type == conflict_type)
        if severity:
            query = query.where(CalendarConflict.severity == severity)
        query = query.order_by(CalendarConflict.created_at.desc(), CalendarConflict.id)
        return list(self.session.exec(query).all())

    def get_stats(self, property_id: int) -> ConflictStats:
        rows = self.session.exec(
            select(
                CalendarConflict.conflict_type,
                CalendarConflict.severity,
                CalendarConflict.status,
                func.count(),
            )
            .where(CalendarConflict.property_id == property_id)
            .group_by(CalendarConflict.conflict_type, CalendarConflict.severity, CalendarConflict.status)
        ).all()

        by_type: Counter = Counter()
        by_severity: Counter = Counter()
        by_status: Counter = Counter()
        for conflict_type, severity, status, count in rows:
            by_type[conflict_type] += count
            by_severity[severity] += count
            by_status[status] += count

        return ConflictStats(
            total=sum(by_status.values()),
            by_type=dict(by_type),
            by_severity=dict(by_severity),
            by_status=dict(by_status),
        )

    # ------------------------------------------------------------------
    # Detection run audit
    # ------------------------------------------------------------------

    def start_run(self, property_id: int) -> ConflictDetectionRun:
        run = ConflictDetectionRun(property_id=property_id, status="running")
        self.session.add(run)
        self.session.commit()
        self.session.refresh(run)
        return run

    def finish_run(self, run_id: int, result: DetectionRunResult, conflicts_detected: int) -> None:
        run = self.session.get(ConflictDetectionRun, run_id)
        if run is None:
            return
        run.status = result.status
        run.finished_at = _utcnow()
        run.conflicts_detected = conflicts_detected
        run.conflicts_persisted = len(result.conflicts)
        run.failed_detectors = [f.model_dump() for f in result.failures]
        run.skipped_detectors = list(result.skipped)
        self.session.add(run)
        self.session.commit()

    def last_run(self, property_id: int) -> Optional[ConflictDetectionRun]:
        return self.session.exec(
            select(ConflictDetectionRun)
            .where(ConflictDetectionRun.property_id == property_id)
            .order_by(ConflictDetectionRun.started_at.desc(), ConflictDetectionRun.id.desc())
        ).first()
