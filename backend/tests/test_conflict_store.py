"""
Tests for the conflict store.

Verifies that:
- Upserting the same identity twice leaves one row
- Re-detection refreshes details but never reopens a closed conflict
- Resolve/ignore only move a conflict out of "detected", exactly once
"""

from datetime import date

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import func, select

from hotel_pms.models.calendar_conflict import CalendarConflict
from hotel_pms.services.conflict_errors import ConflictNotFound, InvalidConflictTransition, PersistenceFailed
from hotel_pms.services.conflict_store import ConflictStore
from hotel_pms.services.resolution_advisor import ResolutionAdvisor
from hotel_pms.utils.conflict_types import (
    ConflictCandidate,
    DetectionRunResult,
    DetectorFailure,
    ResolveConflictRequest,
    SuggestedResolution,
)


def make_candidate(property_id, conflict_id="pricing-20", **overrides):
    values = dict(
        id=conflict_id,
        property_id=property_id,
        conflict_type="pricing_mismatch",
        severity="low",
        conflict_date_start=date(2024, 1, 10),
        conflict_date_end=date(2024, 1, 13),
        room_no="101",
        booking_id_1=20,
        description="Missing or zero pricing information",
        details={"current_amount": None, "room_rate": 2000},
    )
    values.update(overrides)
    return ResolutionAdvisor().annotate(ConflictCandidate(**values))


def count_rows(session):
    return session.exec(select(func.count()).select_from(CalendarConflict)).one()


def test_upsert_inserts_detected_conflict(session, hotel):
    stored = ConflictStore(session).upsert(make_candidate(hotel.id))

    assert stored.id == "pricing-20"
    assert stored.status == "detected"
    assert stored.suggested_resolution["action"] == "update_pricing"
    assert stored.auto_resolvable is True
    assert stored.is_terminal is False


def test_upsert_is_idempotent(session, hotel):
    store = ConflictStore(session)
    first = store.upsert(make_candidate(hotel.id))
    created_at = first.created_at

    second = store.upsert(make_candidate(hotel.id, details={"current_amount": 0, "room_rate": 2500}))

    assert count_rows(session) == 1
    assert second.created_at == created_at
    assert second.details == {"current_amount": 0, "room_rate": 2500}


@pytest.mark.parametrize("close", ["resolve", "ignore"])
def test_redetection_keeps_terminal_status(session, hotel, close):
    store = ConflictStore(session)
    store.upsert(make_candidate(hotel.id))
    if close == "resolve":
        store.resolve_conflict("pricing-20", SuggestedResolution(action="update_pricing", priority="medium", steps=[]), "alice")
    else:
        store.ignore_conflict("pricing-20", "alice", "rate agreed offline")

    again = store.upsert(make_candidate(hotel.id, description="Missing or zero pricing information (again)"))

    assert again.status == ("resolved" if close == "resolve" else "ignored")
    assert again.resolved_by == "alice"
    assert again.resolved_at is not None
    assert again.description.endswith("(again)")
    assert count_rows(session) == 1


def test_resolve_records_action_and_notes(session, hotel):
    store = ConflictStore(session)
    store.upsert(make_candidate(hotel.id))

    resolved = store.resolve_conflict(
        "pricing-20",
        ResolveConflictRequest(action="update_pricing", notes="Charged rack rate", resolved_by="bob"),
        "bob",
    )

    assert resolved.status == "resolved"
    assert resolved.resolution_action == "update_pricing"
    assert resolved.resolution_notes == "Charged rack rate"
    assert resolved.resolved_by == "bob"


def test_resolve_twice_fails(session, hotel):
    store = ConflictStore(session)
    store.upsert(make_candidate(hotel.id))
    resolution = SuggestedResolution(action="update_pricing", priority="medium", steps=[])
    store.resolve_conflict("pricing-20", resolution, "alice")

    with pytest.raises(InvalidConflictTransition) as exc_info:
        store.resolve_conflict("pricing-20", resolution, "bob")

    assert exc_info.value.current_status == "resolved"
    assert store.get("pricing-20").resolved_by == "alice"


def test_ignore_after_resolve_fails(session, hotel):
    store = ConflictStore(session)
    store.upsert(make_candidate(hotel.id))
    store.resolve_conflict("pricing-20", SuggestedResolution(action="update_pricing", priority="medium", steps=[]), "a")

    with pytest.raises(InvalidConflictTransition):
        store.ignore_conflict("pricing-20", "b")


def test_unknown_conflict(session, hotel):
    store = ConflictStore(session)
    with pytest.raises(ConflictNotFound):
        store.resolve_conflict("double-1-2", SuggestedResolution(action="manual_review", priority="high", steps=[]), "a")
    with pytest.raises(ConflictNotFound):
        store.ignore_conflict("double-1-2", "a")
    with pytest.raises(ConflictNotFound):
        store.get("double-1-2")


def test_write_failure_raises_persistence_failed(session, hotel, monkeypatch):
    store = ConflictStore(session)

    def broken_execute(*args, **kwargs):
        raise OperationalError("INSERT INTO calendar_conflict", {}, Exception("disk I/O error"))

    monkeypatch.setattr(session, "execute", broken_execute)

    with pytest.raises(PersistenceFailed) as exc_info:
        store.upsert(make_candidate(hotel.id))
    assert exc_info.value.conflict_id == "pricing-20"


def test_resolved_conflict_leaves_detected_list(session, hotel):
    store = ConflictStore(session)
    store.upsert(make_candidate(hotel.id))
    assert [c.id for c in store.list_conflicts(hotel.id, status="detected")] == ["pricing-20"]

    store.resolve_conflict("pricing-20", SuggestedResolution(action="update_pricing", priority="medium", steps=[]), "alice")

    assert store.list_conflicts(hotel.id, status="detected") == []
    assert [c.id for c in store.list_conflicts(hotel.id, status="resolved")] == ["pricing-20"]


def test_list_filters_and_stats(session, hotel):
    store = ConflictStore(session)
    store.upsert(make_candidate(hotel.id))
    store.upsert(
        make_candidate(
            hotel.id,
            "sync-5",
            conflict_type="sync_failed",
            severity="medium",
            booking_id_1=5,
            description="OTA sync failed for booking",
            details={"sync_status": "failed"},
        )
    )
    store.upsert(
        make_candidate(
            hotel.id,
            "availability-6",
            conflict_type="availability_mismatch",
            severity="medium",
            booking_id_1=6,
            room_no="Unassigned",
            description="Booking without room assignment",
            details={},
        )
    )
    store.upsert(make_candidate(hotel.id + 1, "pricing-99", booking_id_1=99))
    store.ignore_conflict("availability-6", "alice")

    assert {c.id for c in store.list_conflicts(hotel.id)} == {"pricing-20", "sync-5", "availability-6"}
    assert [c.id for c in store.list_conflicts(hotel.id, status="detected", severity="medium")] == ["sync-5"]
    assert [c.id for c in store.list_conflicts(hotel.id, conflict_type="pricing_mismatch")] == ["pricing-20"]

    stats = store.get_stats(hotel.id)
    assert stats.total == 3
    assert stats.by_type == {"pricing_mismatch": 1, "sync_failed": 1, "availability_mismatch": 1}
    assert stats.by_severity == {"low": 1, "medium": 2}
    assert stats.by_status == {"detected": 2, "ignored": 1}


def test_stats_for_empty_property(session, hotel):
    stats = ConflictStore(session).get_stats(hotel.id)
    assert stats.total == 0
    assert stats.by_status == {}


def test_detection_run_audit(session, hotel):
    store = ConflictStore(session)
    assert store.last_run(hotel.id) is None

    run = store.start_run(hotel.id)
    assert run.status == "running"

    result = DetectionRunResult(
        property_id=hotel.id,
        run_id=run.id,
        status="partial",
        failures=[DetectorFailure(detector="sync_failed", error_type="DetectionFailed", message="down")],
    )
    store.finish_run(run.id, result, conflicts_detected=4)

    last = store.last_run(hotel.id)
    assert last.id == run.id
    assert last.status == "partial"
    assert last.finished_at is not None
    assert last.conflicts_detected == 4
    assert last.conflicts_persisted == 0
    assert last.failed_detectors[0]["detector"] == "sync_failed"
