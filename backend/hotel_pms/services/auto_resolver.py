"""
Auto-Resolver

Executes the narrow corrective actions the advisor marks auto_resolvable:
- retry_sync: re-queue the booking for channel sync
- update_pricing: total_amount = nights x room rate

Each handler re-reads the booking first. When the problem is already gone
(amount set by staff, sync completed, booking cancelled) nothing is written
and the conflict is closed with a note saying so.

Every other action raises UnsupportedAutoResolution and is skipped. A
failing conflict never stops the batch.
"""

import logging
from typing import Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from hotel_pms.models.calendar_conflict import CalendarConflict, ConflictStatus
from hotel_pms.services.conflict_errors import (
    AutoResolutionFailed,
    ConflictEngineError,
    UnsupportedAutoResolution,
)
from hotel_pms.services.conflict_sources import (
    SYNC_PROBLEM_STATUSES,
    BookingRecord,
    BookingRepository,
    BookingWriter,
    PricingLookup,
    SqlBookingRepository,
    SqlBookingWriter,
    SqlPricingLookup,
)
from hotel_pms.services.conflict_store import ConflictStore
from hotel_pms.services.resolution_advisor import RETRY_SYNC, UPDATE_PRICING
from hotel_pms.utils.conflict_types import (
    AutoResolveFailure,
    AutoResolveResult,
    ResolveConflictRequest,
    SuggestedResolution,
)
from hotel_pms.utils.intervals import nights

logger = logging.getLogger(__name__)

SYSTEM_RESOLVER = "system"

ALREADY_CORRECTED = "already corrected"
BOOKING_CANCELLED = "booking cancelled"


class AutoResolver:
    def __init__(
        self,
        session: Session,
        *,
        bookings: Optional[BookingRepository] = None,
        pricing: Optional[PricingLookup] = None,
        writer: Optional[BookingWriter] = None,
        store: Optional[ConflictStore] = None,
    ):
        self.session = session
        self.bookings = bookings or SqlBookingRepository(session)
        self.pricing = pricing or SqlPricingLookup(session)
        self.writer = writer or SqlBookingWriter(session)
        self.store = store or ConflictStore(session)
        # Handlers return resolution notes (None when the fix was applied)
        self._handlers: Dict[str, Callable[[CalendarConflict], Optional[str]]] = {
            RETRY_SYNC: self._retry_sync,
            UPDATE_PRICING: self._update_pricing,
        }

    def auto_resolve_conflicts(self, property_id: int) -> AutoResolveResult:
        result = AutoResolveResult(property_id=property_id)
        candidates = [
            c
            for c in self.store.list_conflicts(property_id, status=ConflictStatus.detected.value)
            if c.auto_resolvable
        ]

        for conflict in sorted(candidates, key=lambda c: c.id):
            suggestion = SuggestedResolution(**conflict.suggested_resolution)
            try:
                notes = self.execute(conflict)
                self.store.resolve_conflict(
                    conflict.id,
                    ResolveConflictRequest(action=suggestion.action, notes=notes, resolved_by=SYSTEM_RESOLVER),
                    SYSTEM_RESOLVER,
                )
            except UnsupportedAutoResolution as e:
                self.session.rollback()
                logger.warning("Skipping conflict %s: %s", conflict.id, e)
                result.unsupported.append(
                    AutoResolveFailure(conflict_id=conflict.id, action=suggestion.action, reason=str(e))
                )
                continue
            except (ConflictEngineError, SQLAlchemyError) as e:
                self.session.rollback()
                logger.error("Failed to auto-resolve conflict %s: %s", conflict.id, e)
                result.failed.append(AutoResolveFailure(conflict_id=conflict.id, action=suggestion.action, reason=str(e)))
                continue
            result.resolved_ids.append(conflict.id)

        result.resolved_count = len(result.resolved_ids)
        logger.info(
            "Auto-resolved %d of %d conflicts for property %s",
            result.resolved_count,
            len(candidates),
            property_id,
        )
        return result

    def execute(self, conflict: CalendarConflict) -> Optional[str]:
        action = (conflict.suggested_resolution or {}).get("action")
        handler = self._handlers.get(action)
        if handler is None:
            raise UnsupportedAutoResolution(action)
        return handler(conflict)

    def _load_booking(self, booking_id: int) -> BookingRecord:
        booking = self.bookings.get_booking(booking_id)
        if booking is None:
            raise AutoResolutionFailed(f"Booking {booking_id} not found")
        return booking

    def _retry_sync(self, conflict: CalendarConflict) -> Optional[str]:
        booking = self._load_booking(conflict.booking_id_1)
        if booking.cancelled:
            return BOOKING_CANCELLED
        if booking.ota_sync_status not in SYNC_PROBLEM_STATUSES:
            logger.info("Booking %s already %s; not re-queued", booking.id, booking.ota_sync_status)
            return ALREADY_CORRECTED

        self.writer.request_sync(booking.id)
        return None

    def _update_pricing(self, conflict: CalendarConflict) -> Optional[str]:
        booking = self._load_booking(conflict.booking_id_1)
        if booking.cancelled:
            return BOOKING_CANCELLED
        if booking.total_amount:
            logger.info("Booking %s already priced at %s; amount kept", booking.id, booking.total_amount)
            return ALREADY_CORRECTED

        room_no = (booking.room_no or "").strip()
        if not room_no:
            raise AutoResolutionFailed(f"Booking {booking.id} has no room; cannot price it")

        stay_nights = nights(booking.check_in, booking.check_out)
        if stay_nights <= 0:
            raise AutoResolutionFailed(f"Booking {booking.id} has an empty stay")

        room_rate = self.pricing.get_room_rate(room_no, booking.property_id)
        if not room_rate:
            raise AutoResolutionFailed(f"No room rate for room {room_no}")

        total_amount = stay_nights * room_rate
        self.writer.update_booking_amount(booking.id, total_amount)
        logger.info(
            "Booking %s repriced: %d nights x %s = %s", booking.id, stay_nights, room_rate, total_amount
        )
        return None
