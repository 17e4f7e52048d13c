"""
Conflict Detection Orchestrator

Runs the detectors for one property, annotates their candidates with a
suggested resolution and upserts them into the conflict store.

Execution model:
- Detectors run sequentially in DETECTOR_ORDER
- A failing detector is recorded in the run report; the others still run
- Candidates are persisted (and committed) right after their detector, so a
  cancelled or partially failed run leaves the store valid and resumable
- Cancellation (event or deadline) is checked before every detector
- Raises DetectionFailed only when every detector that ran failed
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import Callable, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from hotel_pms import settings
from hotel_pms.models.calendar_conflict import ConflictType
from hotel_pms.services.conflict_detectors import (
    AvailabilityConflictDetector,
    DoubleBookingDetector,
    PricingConflictDetector,
    SyncConflictDetector,
)
from hotel_pms.services.conflict_errors import DetectionFailed, PersistenceFailed
from hotel_pms.services.conflict_sources import (
    BookingRepository,
    PlatformRepository,
    PricingLookup,
    SqlBookingRepository,
    SqlPlatformRepository,
    SqlPricingLookup,
)
from hotel_pms.services.conflict_store import ConflictStore
from hotel_pms.services.resolution_advisor import ResolutionAdvisor
from hotel_pms.utils.conflict_types import (
    ConflictCandidate,
    ConflictResponse,
    DetectionRunResult,
    DetectorFailure,
    PersistFailure,
)

logger = logging.getLogger(__name__)

DETECTOR_ORDER = (
    ConflictType.double_booking.value,
    ConflictType.sync_failed.value,
    ConflictType.availability_mismatch.value,
    ConflictType.pricing_mismatch.value,
)


def build_default_detectors(
    bookings: BookingRepository,
    platforms: PlatformRepository,
    pricing: PricingLookup,
) -> list:
    placeholders = settings.room_placeholders()
    by_name = {
        d.name: d
        for d in (
            DoubleBookingDetector(bookings, placeholders),
            SyncConflictDetector(platforms),
            AvailabilityConflictDetector(bookings, placeholders),
            PricingConflictDetector(bookings, pricing, placeholders),
        )
    }
    return [by_name[name] for name in DETECTOR_ORDER]


def _run_status(result: DetectionRunResult, ran: int) -> str:
    if result.skipped:
        return "cancelled"
    if ran > 0 and len(result.failures) == ran:
        return "failed"
    if result.failures or result.persist_failures:
        return "partial"
    return "success"


class ConflictDetectionService:
    def __init__(
        self,
        session: Session,
        *,
        bookings: Optional[BookingRepository] = None,
        platforms: Optional[PlatformRepository] = None,
        pricing: Optional[PricingLookup] = None,
        detectors: Optional[list] = None,
        advisor: Optional[ResolutionAdvisor] = None,
        store: Optional[ConflictStore] = None,
        today: Optional[date] = None,
    ):
        self.session = session
        if detectors is None:
            detectors = build_default_detectors(
                bookings or SqlBookingRepository(session),
                platforms or SqlPlatformRepository(session),
                pricing or SqlPricingLookup(session),
            )
        self.detectors = detectors
        self.advisor = advisor or ResolutionAdvisor()
        self.store = store or ConflictStore(session)
        self._today = today

    def today(self) -> date:
        return self._today or date.today()

    def detect_conflicts(
        self,
        property_id: int,
        *,
        cancel_event: Optional[threading.Event] = None,
        timeout_seconds: Optional[float] = None,
    ) -> DetectionRunResult:
        """
        Detect, annotate and persist all conflicts for a property.

        Args:
            property_id: Property to scan
            cancel_event: Set by the caller to stop before the next detector
            timeout_seconds: Deadline for starting detectors (defaults to
                CONFLICT_DETECTION_TIMEOUT_SECONDS, None = no deadline)

        Returns:
            DetectionRunResult with persisted conflicts and the failure report

        Raises:
            DetectionFailed: every detector that ran failed, or the run
                could not be recorded at all
        """
        if timeout_seconds is None:
            timeout_seconds = settings.detection_timeout_seconds()
        deadline = time.monotonic() + timeout_seconds if timeout_seconds else None

        result = DetectionRunResult(property_id=property_id)
        try:
            run = self.store.start_run(property_id)
        except SQLAlchemyError as e:
            self.session.rollback()
            raise DetectionFailed(f"Conflict store unavailable for property {property_id}: {e}", result=result) from e
        result.run_id = run.id

        today = self.today()
        detected = 0
        ran = 0

        for index, detector in enumerate(self.detectors):
            if (cancel_event is not None and cancel_event.is_set()) or (
                deadline is not None and time.monotonic() >= deadline
            ):
                result.skipped = [d.name for d in self.detectors[index:]]
                logger.warning(
                    "Conflict detection for property %s cancelled; skipped: %s", property_id, ", ".join(result.skipped)
                )
                break

            ran += 1
            try:
                candidates = [self.advisor.annotate(c) for c in detector.detect(property_id, today)]
            except DetectionFailed as e:
                self.session.rollback()
                logger.warning("Detector %s failed for property %s: %s", detector.name, property_id, e)
                result.failures.append(DetectorFailure(detector=detector.name, error_type=type(e).__name__, message=str(e)))
                continue
            except Exception as e:
                self.session.rollback()
                logger.exception("Detector %s crashed for property %s", detector.name, property_id)
                result.failures.append(DetectorFailure(detector=detector.name, error_type=type(e).__name__, message=str(e)))
                continue

            detected += len(candidates)
            self._persist(candidates, result)

        result.status = _run_status(result, ran)
        try:
            self.store.finish_run(result.run_id, result, detected)
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("Could not record detection run %s for property %s", result.run_id, property_id)

        logger.info(
            "Conflict detection for property %s finished: status=%s persisted=%d failed_detectors=%s",
            property_id,
            result.status,
            len(result.conflicts),
            result.failed_detectors,
        )

        if result.status == "failed":
            raise DetectionFailed(
                f"All conflict detectors failed for property {property_id}: "
                + "; ".join(f"{f.detector}: {f.message}" for f in result.failures),
                result=result,
            )
        return result

    def _persist(self, candidates: List[ConflictCandidate], result: DetectionRunResult) -> None:
        for candidate in candidates:
            try:
                stored = self.store.upsert(candidate)
            except PersistenceFailed as e:
                result.persist_failures.append(PersistFailure(conflict_id=candidate.id, message=str(e)))
                continue
            result.conflicts.append(ConflictResponse.model_validate(stored))


def scan_properties(
    property_ids: Iterable[int],
    session_factory: Callable[[], Session],
    *,
    max_workers: Optional[int] = None,
    cancel_event: Optional[threading.Event] = None,
    timeout_seconds: Optional[float] = None,
    today: Optional[date] = None,
) -> Dict[int, DetectionRunResult]:
    """
    Run detection for several properties in parallel.

    Each worker opens its own session; the only shared state is the database.
    A property that fails does not affect the others: its entry carries
    status "failed" and the failure report.
    """
    property_ids = list(dict.fromkeys(property_ids))
    if max_workers is None:
        max_workers = settings.scan_max_workers()

    def scan_one(property_id: int) -> DetectionRunResult:
        with session_factory() as session:
            service = ConflictDetectionService(session, today=today)
            try:
                return service.detect_conflicts(property_id, cancel_event=cancel_event, timeout_seconds=timeout_seconds)
            except DetectionFailed as e:
                logger.error("Conflict scan failed for property %s: %s", property_id, e)
                failed = e.result or DetectionRunResult(property_id=property_id)
                failed.status = "failed"
                if not failed.failures:
                    failed.failures.append(
                        DetectorFailure(detector="orchestrator", error_type=type(e).__name__, message=str(e))
                    )
                return failed

    results: Dict[int, DetectionRunResult] = {}
    if not property_ids:
        return results

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(property_ids)))) as pool:
        futures = {pid: pool.submit(scan_one, pid) for pid in property_ids}
        for pid, future in futures.items():
            try:
                results[pid] = future.result()
            except Exception as e:
                logger.exception("Conflict scan crashed for property %s", pid)
                results[pid] = DetectionRunResult(
                    property_id=pid,
                    status="failed",
                    failures=[DetectorFailure(detector="orchestrator", error_type=type(e).__name__, message=str(e))],
                )
    return results
