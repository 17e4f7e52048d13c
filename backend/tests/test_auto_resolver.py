"""
Tests for auto-resolution.

Only retry_sync and update_pricing are executed; everything else is left
for a human. A failing conflict must not stop the batch.
"""

from datetime import date

import pytest

from hotel_pms.models.booking import Booking
from hotel_pms.services.auto_resolver import AutoResolver
from hotel_pms.services.conflict_detection import ConflictDetectionService
from hotel_pms.services.conflict_errors import AutoResolutionFailed
from hotel_pms.services.conflict_sources import SqlBookingWriter
from hotel_pms.services.conflict_store import ConflictStore
from hotel_pms.utils.conflict_types import ConflictCandidate, SuggestedResolution

TODAY = date(2024, 1, 1)


def detect(session, property_id):
    return ConflictDetectionService(session, today=TODAY).detect_conflicts(property_id)


def test_update_pricing_uses_nights_times_rate(session, hotel, add_booking):
    booking = add_booking(hotel.id, "101", date(2024, 1, 10), date(2024, 1, 13), total_amount=None)
    detect(session, hotel.id)

    result = AutoResolver(session).auto_resolve_conflicts(hotel.id)

    assert result.resolved_ids == [f"pricing-{booking.id}"]
    assert result.resolved_count == 1
    assert session.get(Booking, booking.id, populate_existing=True).total_amount == 6000

    conflict = ConflictStore(session).get(f"pricing-{booking.id}")
    assert conflict.status == "resolved"
    assert conflict.resolved_by == "system"
    assert conflict.resolution_action == "update_pricing"


def test_retry_sync_requeues_booking(session, hotel, add_booking):
    booking = add_booking(
        hotel.id, "101", date(2024, 1, 10), date(2024, 1, 13), ota_sync_status="failed", ota_sync_error="timeout"
    )
    detect(session, hotel.id)

    result = AutoResolver(session).auto_resolve_conflicts(hotel.id)

    assert result.resolved_ids == [f"sync-{booking.id}"]
    refreshed = session.get(Booking, booking.id, populate_existing=True)
    assert refreshed.ota_sync_status == "pending"
    assert refreshed.ota_sync_error is None

    # Still pending on the next pass: same identity, stays resolved
    detect(session, hotel.id)
    conflict = ConflictStore(session).get(f"sync-{booking.id}")
    assert conflict.status == "resolved"
    assert conflict.severity == "low"


def test_double_booking_and_unassigned_room_are_left_alone(session, hotel, add_booking):
    a = add_booking(hotel.id, "101", date(2024, 1, 10), date(2024, 1, 15))
    b = add_booking(hotel.id, "101", date(2024, 1, 12), date(2024, 1, 14))
    c = add_booking(hotel.id, "TBD", date(2024, 1, 12), date(2024, 1, 14))
    detect(session, hotel.id)

    result = AutoResolver(session).auto_resolve_conflicts(hotel.id)

    assert result.resolved_count == 0
    assert result.unsupported == []
    store = ConflictStore(session)
    assert store.get(f"double-{a.id}-{b.id}").status == "detected"
    assert store.get(f"availability-{c.id}").status == "detected"


def test_missing_rate_fails_without_stopping_batch(session, hotel, add_booking):
    no_rate = add_booking(hotel.id, "201", date(2024, 1, 10), date(2024, 1, 12), total_amount=0)
    priced = add_booking(hotel.id, "102", date(2024, 1, 10), date(2024, 1, 12), total_amount=None)
    detect(session, hotel.id)

    result = AutoResolver(session).auto_resolve_conflicts(hotel.id)

    assert result.resolved_ids == [f"pricing-{priced.id}"]
    assert [f.conflict_id for f in result.failed] == [f"pricing-{no_rate.id}"]
    assert "No room rate" in result.failed[0].reason
    assert ConflictStore(session).get(f"pricing-{no_rate.id}").status == "detected"
    assert session.get(Booking, priced.id, populate_existing=True).total_amount == 3000
    assert session.get(Booking, no_rate.id, populate_existing=True).total_amount == 0


def test_unassigned_room_cannot_be_priced(session, hotel, add_booking):
    booking = add_booking(hotel.id, None, date(2024, 1, 10), date(2024, 1, 12), total_amount=None)
    detect(session, hotel.id)

    result = AutoResolver(session).auto_resolve_conflicts(hotel.id)

    assert [f.conflict_id for f in result.failed] == [f"pricing-{booking.id}"]


def test_unsupported_action_is_skipped(session, hotel):
    store = ConflictStore(session)
    store.upsert(
        ConflictCandidate(
            id="availability-42",
            property_id=hotel.id,
            conflict_type="availability_mismatch",
            severity="medium",
            conflict_date_start=date(2024, 1, 10),
            conflict_date_end=date(2024, 1, 12),
            room_no="Unassigned",
            booking_id_1=42,
            description="Booking without room assignment",
            suggested_resolution=SuggestedResolution(
                action="assign_room", priority="high", steps=[], auto_resolvable=True
            ),
        )
    )

    result = AutoResolver(session).auto_resolve_conflicts(hotel.id)

    assert result.resolved_count == 0
    assert [(u.conflict_id, u.action) for u in result.unsupported] == [("availability-42", "assign_room")]
    assert store.get("availability-42").status == "detected"


def test_closed_conflicts_are_not_touched(session, hotel, add_booking):
    booking = add_booking(hotel.id, "101", date(2024, 1, 10), date(2024, 1, 13), total_amount=None)
    detect(session, hotel.id)
    ConflictStore(session).ignore_conflict(f"pricing-{booking.id}", "manager", "complimentary stay")

    result = AutoResolver(session).auto_resolve_conflicts(hotel.id)

    assert result.resolved_count == 0
    assert session.get(Booking, booking.id, populate_existing=True).total_amount is None


# ============================================================================
# Bookings corrected between detection and auto-resolution
# ============================================================================


def edit_booking(session, booking_id, **fields):
    booking = session.get(Booking, booking_id)
    for name, value in fields.items():
        setattr(booking, name, value)
    session.add(booking)
    session.commit()


def test_amount_set_by_staff_is_kept(session, hotel, add_booking):
    booking = add_booking(hotel.id, "101", date(2024, 1, 10), date(2024, 1, 13), total_amount=None)
    detect(session, hotel.id)
    edit_booking(session, booking.id, total_amount=5500)

    result = AutoResolver(session).auto_resolve_conflicts(hotel.id)

    assert result.resolved_ids == [f"pricing-{booking.id}"]
    assert session.get(Booking, booking.id, populate_existing=True).total_amount == 5500
    conflict = ConflictStore(session).get(f"pricing-{booking.id}")
    assert conflict.status == "resolved"
    assert conflict.resolution_notes == "already corrected"


def test_cancelled_booking_is_not_repriced(session, hotel, add_booking):
    booking = add_booking(hotel.id, "101", date(2024, 1, 10), date(2024, 1, 13), total_amount=None)
    detect(session, hotel.id)
    edit_booking(session, booking.id, cancelled=True)

    result = AutoResolver(session).auto_resolve_conflicts(hotel.id)

    assert result.resolved_ids == [f"pricing-{booking.id}"]
    assert session.get(Booking, booking.id, populate_existing=True).total_amount is None
    assert ConflictStore(session).get(f"pricing-{booking.id}").resolution_notes == "booking cancelled"


def test_completed_sync_is_not_requeued(session, hotel, add_booking):
    booking = add_booking(
        hotel.id, "101", date(2024, 1, 10), date(2024, 1, 13), ota_sync_status="failed", ota_sync_error="timeout"
    )
    detect(session, hotel.id)
    edit_booking(session, booking.id, ota_sync_status="synced")

    result = AutoResolver(session).auto_resolve_conflicts(hotel.id)

    assert result.resolved_ids == [f"sync-{booking.id}"]
    refreshed = session.get(Booking, booking.id, populate_existing=True)
    assert refreshed.ota_sync_status == "synced"
    assert refreshed.ota_sync_error == "timeout"
    assert ConflictStore(session).get(f"sync-{booking.id}").resolution_notes == "already corrected"


def test_cancelled_booking_sync_is_not_requeued(session, hotel, add_booking):
    booking = add_booking(hotel.id, "101", date(2024, 1, 10), date(2024, 1, 13), ota_sync_status="failed")
    detect(session, hotel.id)
    edit_booking(session, booking.id, ota_sync_status="synced", cancelled=True)

    result = AutoResolver(session).auto_resolve_conflicts(hotel.id)

    assert result.resolved_ids == [f"sync-{booking.id}"]
    assert session.get(Booking, booking.id, populate_existing=True).ota_sync_status == "synced"
    assert ConflictStore(session).get(f"sync-{booking.id}").resolution_notes == "booking cancelled"


def test_writer_refuses_to_requeue_synced_booking(session, hotel, add_booking):
    booking = add_booking(hotel.id, "101", date(2024, 1, 10), date(2024, 1, 13), ota_sync_status="synced")

    with pytest.raises(AutoResolutionFailed):
        SqlBookingWriter(session).request_sync(booking.id)

    assert session.get(Booking, booking.id, populate_existing=True).ota_sync_status == "synced"
