"""
Resolution Advisor

Attaches a SuggestedResolution to every detected conflict.

Double-booking precedence (symmetric in the pair):
1. Mixed provenance: the booking made first keeps the room (earlier
   booking_date, ties/missing dates broken by lower booking id). If the
   later booking is the direct one -> relocate_direct, otherwise
   relocate_ota.
2. Same provenance with two known, different booking dates -> honor_first.
3. Anything else -> manual_review.

Double bookings always need a human; only retry_sync and update_pricing are
auto-resolvable.
"""

from datetime import date
from typing import Dict, List, Optional, Tuple

from hotel_pms.models.calendar_conflict import ConflictType
from hotel_pms.utils.conflict_types import ConflictCandidate, SuggestedResolution

MANUAL_REVIEW = "manual_review"
RELOCATE_DIRECT = "relocate_direct"
RELOCATE_OTA = "relocate_ota"
HONOR_FIRST = "honor_first"
RETRY_SYNC = "retry_sync"
ASSIGN_ROOM = "assign_room"
UPDATE_PRICING = "update_pricing"

RESOLUTION_STEPS: Dict[str, List[str]] = {
    MANUAL_REVIEW: [
        "Review both bookings carefully",
        "Contact guests to verify dates",
        "Check for alternative rooms",
        "Relocate one booking if possible",
        "Cancel and compensate if necessary",
    ],
    RELOCATE_DIRECT: [
        "Try to relocate direct booking",
        "Offer room upgrade if available",
        "Contact direct guest first",
        "Update OTA calendar",
    ],
    RELOCATE_OTA: [
        "Check OTA cancellation policy",
        "Try to relocate OTA booking",
        "Contact OTA support",
        "Update local calendar",
    ],
    HONOR_FIRST: [
        "Honor first booking (earlier booking date)",
        "Relocate or cancel second booking",
        "Provide compensation",
        "Update all calendars",
    ],
    RETRY_SYNC: [
        "Check OTA platform connectivity",
        "Verify booking details",
        "Retry synchronization",
        "Update booking status",
    ],
    ASSIGN_ROOM: [
        "Check room availability",
        "Assign appropriate room",
        "Update booking record",
        "Notify guest if needed",
    ],
    UPDATE_PRICING: [
        "Calculate correct pricing",
        "Update booking amount",
        "Verify payment status",
        "Send invoice if needed",
    ],
}

# Placeholder figures, not a cost model
ESTIMATED_COSTS: Dict[str, float] = {
    MANUAL_REVIEW: 0,
    RELOCATE_DIRECT: 500,
    RELOCATE_OTA: 1000,
    HONOR_FIRST: 1500,
    RETRY_SYNC: 0,
    ASSIGN_ROOM: 0,
    UPDATE_PRICING: 0,
}

AUTO_RESOLVABLE_ACTIONS = frozenset({RETRY_SYNC, UPDATE_PRICING})


def estimate_resolution_cost(action: str) -> float:
    return ESTIMATED_COSTS.get(action, 0)


def _resolution(action: str, priority: str) -> SuggestedResolution:
    return SuggestedResolution(
        action=action,
        priority=priority,
        steps=list(RESOLUTION_STEPS[action]),
        estimated_cost=estimate_resolution_cost(action),
        auto_resolvable=action in AUTO_RESOLVABLE_ACTIONS,
    )


def _parse_date(value) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def _first_booked(a: dict, b: dict) -> Tuple[dict, dict]:
    """(earlier, later) by booking_date, lower id when undecidable."""
    a_date, b_date = _parse_date(a.get("booking_date")), _parse_date(b.get("booking_date"))
    if a_date is not None and b_date is not None and a_date != b_date:
        return (a, b) if a_date < b_date else (b, a)
    return (a, b) if a["id"] <= b["id"] else (b, a)


def suggest_double_booking_resolution(booking1: dict, booking2: dict) -> Tuple[SuggestedResolution, Optional[int]]:
    """
    Returns the suggestion and the id of the booking that keeps the room
    (None for manual review).
    """
    platform1 = bool(booking1.get("platform_sourced"))
    platform2 = bool(booking2.get("platform_sourced"))

    if platform1 != platform2:
        earlier, later = _first_booked(booking1, booking2)
        action = RELOCATE_OTA if later.get("platform_sourced") else RELOCATE_DIRECT
        return _resolution(action, "high"), earlier["id"]

    date1, date2 = _parse_date(booking1.get("booking_date")), _parse_date(booking2.get("booking_date"))
    if date1 is not None and date2 is not None and date1 != date2:
        earlier, _ = _first_booked(booking1, booking2)
        return _resolution(HONOR_FIRST, "high"), earlier["id"]

    return _resolution(MANUAL_REVIEW, "high"), None


class ResolutionAdvisor:
    def suggest(self, conflict: ConflictCandidate) -> SuggestedResolution:
        return self.annotate(conflict).suggested_resolution

    def annotate(self, conflict: ConflictCandidate) -> ConflictCandidate:
        """Return a copy of the candidate carrying its suggested resolution."""
        details = dict(conflict.details)
        conflict_type = conflict.conflict_type

        if conflict_type == ConflictType.double_booking.value:
            suggestion, keep_booking_id = suggest_double_booking_resolution(details["booking1"], details["booking2"])
            details["keep_booking_id"] = keep_booking_id
        elif conflict_type == ConflictType.sync_failed.value:
            priority = "high" if details.get("sync_status") == "failed" else "medium"
            suggestion = _resolution(RETRY_SYNC, priority)
        elif conflict_type == ConflictType.availability_mismatch.value:
            suggestion = _resolution(ASSIGN_ROOM, "high")
        elif conflict_type == ConflictType.pricing_mismatch.value:
            suggestion = _resolution(UPDATE_PRICING, "medium")
        else:
            raise ValueError(f"Unknown conflict type: {conflict_type}")

        return conflict.model_copy(update={"details": details, "suggested_resolution": suggestion})
