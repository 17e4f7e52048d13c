"""
Conflict Detectors

Each detector reads one slice of booking state through an injected
repository and emits ConflictCandidate objects (without a suggested
resolution; the advisor annotates them afterwards).

Detectors never write. Data source errors surface as DetectionFailed so the
orchestrator can isolate them per detector.
"""

import logging
from collections import defaultdict
from datetime import date
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from hotel_pms import settings
from hotel_pms.models.calendar_conflict import ConflictSeverity, ConflictType
from hotel_pms.services.conflict_errors import DetectionFailed
from hotel_pms.services.conflict_sources import (
    SYNC_PROBLEM_STATUSES,
    BookingFilters,
    BookingRecord,
    BookingRepository,
    PlatformRepository,
    PlatformSyncRow,
    PricingLookup,
)
from hotel_pms.utils.conflict_types import ConflictCandidate
from hotel_pms.utils.intervals import overlap_window, sweep_overlaps

logger = logging.getLogger(__name__)

R = TypeVar("R")

UNASSIGNED_ROOM_LABEL = "Unassigned"

IDENTITY_PREFIXES: Dict[str, str] = {
    ConflictType.double_booking.value: "double",
    ConflictType.sync_failed.value: "sync",
    ConflictType.availability_mismatch.value: "availability",
    ConflictType.pricing_mismatch.value: "pricing",
}


def conflict_identity(conflict_type: str, participant_ids: Iterable[int]) -> str:
    """
    Deterministic conflict id: type prefix + sorted participant ids.

    Sorting makes the id independent of fetch order, so (A, B) and (B, A)
    map to the same row.
    """
    prefix = IDENTITY_PREFIXES[conflict_type]
    ordered = sorted(set(participant_ids))
    if not ordered:
        raise ValueError("conflict identity needs at least one participant")
    return "-".join([prefix] + [str(pid) for pid in ordered])


def is_unassigned_room(room_no: Optional[str], placeholders: FrozenSet[str]) -> bool:
    if room_no is None:
        return True
    value = room_no.strip()
    return value == "" or value.upper() in placeholders


def _read(detector: str, fetch: Callable[[], R]) -> R:
    try:
        return fetch()
    except SQLAlchemyError as e:
        raise DetectionFailed(f"{detector}: data source unavailable ({e.__class__.__name__}: {e})", detector) from e


class DoubleBookingDetector:
    """Same room, overlapping [check_in, check_out) stays."""

    name = ConflictType.double_booking.value

    def __init__(self, bookings: BookingRepository, placeholders: Optional[FrozenSet[str]] = None):
        self.bookings = bookings
        self.placeholders = placeholders if placeholders is not None else settings.room_placeholders()

    def detect(self, property_id: int, today: date) -> List[ConflictCandidate]:
        active = _read(
            self.name,
            lambda: self.bookings.list_active_bookings(property_id, BookingFilters(check_out_from=today)),
        )

        by_room: Dict[str, List[BookingRecord]] = defaultdict(list)
        for booking in active:
            if booking.cancelled or is_unassigned_room(booking.room_no, self.placeholders):
                continue
            if booking.check_out <= booking.check_in:
                logger.warning(
                    "Skipping booking %s with empty stay %s..%s", booking.id, booking.check_in, booking.check_out
                )
                continue
            by_room[booking.room_no.strip()].append(booking)

        conflicts: List[ConflictCandidate] = []
        for room_no in sorted(by_room.keys()):
            pairs = sweep_overlaps(
                by_room[room_no],
                start_of=lambda b: b.check_in,
                end_of=lambda b: b.check_out,
                key_of=lambda b: b.id,
            )
            for first, second in pairs:
                conflicts.append(self._candidate(property_id, room_no, first, second))
        return conflicts

    def _candidate(
        self, property_id: int, room_no: str, first: BookingRecord, second: BookingRecord
    ) -> ConflictCandidate:
        window_start, window_end = overlap_window(first.check_in, first.check_out, second.check_in, second.check_out)
        return ConflictCandidate(
            id=conflict_identity(self.name, [first.id, second.id]),
            property_id=property_id,
            conflict_type=self.name,
            severity=ConflictSeverity.high.value,
            conflict_date_start=window_start,
            conflict_date_end=window_end,
            room_no=room_no,
            booking_id_1=first.id,
            booking_id_2=second.id,
            description=f"Double booking detected for Room {room_no}",
            details={
                "booking1": _booking_summary(first),
                "booking2": _booking_summary(second),
            },
        )


def _booking_summary(booking: BookingRecord) -> dict:
    return {
        "id": booking.id,
        "guest": booking.guest_name,
        "dates": f"{booking.check_in.isoformat()} to {booking.check_out.isoformat()}",
        "platform": booking.platform_label,
        "platform_sourced": booking.is_platform_sourced,
        "booking_date": booking.booking_date.isoformat() if booking.booking_date else None,
    }


class SyncConflictDetector:
    """Bookings whose external calendar sync failed or is still pending."""

    name = ConflictType.sync_failed.value

    def __init__(self, platforms: PlatformRepository):
        self.platforms = platforms

    def detect(self, property_id: int, today: date) -> List[ConflictCandidate]:
        rows = _read(self.name, lambda: self.platforms.list_platform_sync_state(property_id))
        problem_rows = [r for r in rows if r.sync_status in SYNC_PROBLEM_STATUSES and r.check_out >= today]
        problem_rows.sort(key=lambda r: r.booking_id)
        return [self._candidate(property_id, row) for row in problem_rows]

    def _candidate(self, property_id: int, row: PlatformSyncRow) -> ConflictCandidate:
        failed = row.sync_status == "failed"
        return ConflictCandidate(
            id=conflict_identity(self.name, [row.booking_id]),
            property_id=property_id,
            conflict_type=self.name,
            severity=ConflictSeverity.medium.value if failed else ConflictSeverity.low.value,
            conflict_date_start=row.check_in,
            conflict_date_end=row.check_out,
            room_no=row.room_no,
            booking_id_1=row.booking_id,
            description=f"OTA sync {row.sync_status} for booking",
            details={
                "platform": row.platform_id,
                "platform_name": row.platform_name,
                "sync_status": row.sync_status,
                "last_sync": row.last_sync.isoformat() if row.last_sync else None,
                "error_message": row.sync_error,
            },
        )


class AvailabilityConflictDetector:
    """Upcoming bookings with no real room assigned."""

    name = ConflictType.availability_mismatch.value

    def __init__(self, bookings: BookingRepository, placeholders: Optional[FrozenSet[str]] = None):
        self.bookings = bookings
        self.placeholders = placeholders if placeholders is not None else settings.room_placeholders()

    def detect(self, property_id: int, today: date) -> List[ConflictCandidate]:
        upcoming = _read(
            self.name,
            lambda: self.bookings.list_active_bookings(property_id, BookingFilters(check_in_from=today)),
        )
        conflicts = []
        for booking in sorted(upcoming, key=lambda b: b.id):
            if booking.cancelled or not is_unassigned_room(booking.room_no, self.placeholders):
                continue
            conflicts.append(
                ConflictCandidate(
                    id=conflict_identity(self.name, [booking.id]),
                    property_id=property_id,
                    conflict_type=self.name,
                    severity=ConflictSeverity.medium.value,
                    conflict_date_start=booking.check_in,
                    conflict_date_end=booking.check_out,
                    room_no=UNASSIGNED_ROOM_LABEL,
                    booking_id_1=booking.id,
                    description="Booking without room assignment",
                    details={
                        "guest": booking.guest_name,
                        "pax": booking.no_of_pax,
                        "platform": booking.platform_label,
                        "booking_date": booking.booking_date.isoformat() if booking.booking_date else None,
                    },
                )
            )
        return conflicts


class PricingConflictDetector:
    """Upcoming bookings whose total amount is missing or zero."""

    name = ConflictType.pricing_mismatch.value

    def __init__(
        self,
        bookings: BookingRepository,
        pricing: PricingLookup,
        placeholders: Optional[FrozenSet[str]] = None,
    ):
        self.bookings = bookings
        self.pricing = pricing
        self.placeholders = placeholders if placeholders is not None else settings.room_placeholders()

    def detect(self, property_id: int, today: date) -> List[ConflictCandidate]:
        upcoming = _read(
            self.name,
            lambda: self.bookings.list_active_bookings(property_id, BookingFilters(check_in_from=today)),
        )
        conflicts = []
        for booking in sorted(upcoming, key=lambda b: b.id):
            if booking.cancelled or (booking.total_amount is not None and booking.total_amount != 0):
                continue
            room_rate = None
            if not is_unassigned_room(booking.room_no, self.placeholders):
                room_no = booking.room_no.strip()
                room_rate = _read(self.name, lambda: self.pricing.get_room_rate(room_no, property_id))
            conflicts.append(
                ConflictCandidate(
                    id=conflict_identity(self.name, [booking.id]),
                    property_id=property_id,
                    conflict_type=self.name,
                    severity=ConflictSeverity.low.value,
                    conflict_date_start=booking.check_in,
                    conflict_date_end=booking.check_out,
                    room_no=booking.room_no,
                    booking_id_1=booking.id,
                    description="Missing or zero pricing information",
                    details={
                        "guest": booking.guest_name,
                        "current_amount": booking.total_amount,
                        "room_rate": room_rate,
                        "platform": booking.platform_label,
                    },
                )
            )
        return conflicts
