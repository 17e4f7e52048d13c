"""
Data sources consumed by the conflict engine.

The detectors and the auto-resolver only see the protocols below. The
Sql* classes are the production implementations over the booking tables;
tests substitute in-memory fakes.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import List, Optional, Protocol

from sqlmodel import Session, select

from hotel_pms.models.booking import Booking
from hotel_pms.models.ota_platform import OtaPlatform
from hotel_pms.models.room import Room
from hotel_pms.services.conflict_errors import AutoResolutionFailed

PLATFORM_SOURCES = ("ota", "ical_import")
SYNC_PROBLEM_STATUSES = ("failed", "pending")


@dataclass(frozen=True)
class BookingRecord:
    id: int
    property_id: int
    guest_name: str
    room_no: Optional[str]
    check_in: date
    check_out: date
    no_of_pax: int = 1
    cancelled: bool = False
    total_amount: Optional[float] = None
    booking_date: Optional[date] = None
    source: str = "direct"
    ota_platform_id: Optional[int] = None
    ota_sync_status: Optional[str] = None

    @property
    def is_platform_sourced(self) -> bool:
        return self.ota_platform_id is not None or self.source in PLATFORM_SOURCES

    @property
    def platform_label(self) -> str:
        if self.ota_platform_id is not None:
            return str(self.ota_platform_id)
        return self.source if self.source in PLATFORM_SOURCES else "direct"


@dataclass(frozen=True)
class BookingFilters:
    """Lower bounds applied by the repository (both inclusive)."""

    check_out_from: Optional[date] = None
    check_in_from: Optional[date] = None


@dataclass(frozen=True)
class PlatformSyncRow:
    booking_id: int
    property_id: int
    guest_name: str
    room_no: Optional[str]
    check_in: date
    check_out: date
    platform_id: Optional[int]
    platform_name: Optional[str]
    sync_enabled: Optional[bool]
    sync_status: Optional[str]
    last_sync: Optional[datetime] = None
    sync_error: Optional[str] = None


class BookingRepository(Protocol):
    def list_active_bookings(self, property_id: int, filters: BookingFilters) -> List[BookingRecord]:
        """Non-cancelled bookings of a property matching the filters."""
        ...

    def get_booking(self, booking_id: int) -> Optional[BookingRecord]:
        ...


class PlatformRepository(Protocol):
    def list_platform_sync_state(self, property_id: int) -> List[PlatformSyncRow]:
        """OTA sync state of every non-cancelled booking that has one."""
        ...


class PricingLookup(Protocol):
    def get_room_rate(self, room_no: str, property_id: Optional[int] = None) -> Optional[float]:
        ...


class BookingWriter(Protocol):
    def update_booking_amount(self, booking_id: int, amount: float) -> None:
        ...

    def request_sync(self, booking_id: int) -> None:
        ...


def to_booking_record(booking: Booking) -> BookingRecord:
    return BookingRecord(
        id=booking.id,
        property_id=booking.property_id,
        guest_name=booking.guest_name,
        room_no=booking.room_no,
        check_in=booking.check_in,
        check_out=booking.check_out,
        no_of_pax=booking.no_of_pax,
        cancelled=booking.cancelled,
        total_amount=booking.total_amount,
        booking_date=booking.booking_date,
        source=booking.source,
        ota_platform_id=booking.ota_platform_id,
        ota_sync_status=booking.ota_sync_status,
    )


class SqlBookingRepository:
    def __init__(self, session: Session):
        self.session = session

    def list_active_bookings(self, property_id: int, filters: BookingFilters) -> List[BookingRecord]:
        query = select(Booking).where(Booking.property_id == property_id, Booking.cancelled == False)  # noqa: E712
        if filters.check_out_from is not None:
            query = query.where(Booking.check_out >= filters.check_out_from)
        if filters.check_in_from is not None:
            query = query.where(Booking.check_in >= filters.check_in_from)
        query = query.order_by(Booking.check_in, Booking.id)
        return [to_booking_record(b) for b in self.session.exec(query).all()]

    def get_booking(self, booking_id: int) -> Optional[BookingRecord]:
        booking = self.session.get(Booking, booking_id)
        return to_booking_record(booking) if booking else None


class SqlPlatformRepository:
    def __init__(self, session: Session):
        self.session = session

    def list_platform_sync_state(self, property_id: int) -> List[PlatformSyncRow]:
        query = (
            select(Booking, OtaPlatform)
            .join(OtaPlatform, Booking.ota_platform_id == OtaPlatform.id, isouter=True)
            .where(
                Booking.property_id == property_id,
                Booking.cancelled == False,  # noqa: E712
                Booking.ota_sync_status.is_not(None),
            )
            .order_by(Booking.check_in, Booking.id)
        )
        rows = []
        for booking, platform in self.session.exec(query).all():
            rows.append(
                PlatformSyncRow(
                    booking_id=booking.id,
                    property_id=booking.property_id,
                    guest_name=booking.guest_name,
                    room_no=booking.room_no,
                    check_in=booking.check_in,
                    check_out=booking.check_out,
                    platform_id=booking.ota_platform_id,
                    platform_name=platform.name if platform else None,
                    sync_enabled=platform.sync_enabled if platform else None,
                    sync_status=booking.ota_sync_status,
                    last_sync=booking.ota_last_sync,
                    sync_error=booking.ota_sync_error,
                )
            )
        return rows


class SqlPricingLookup:
    def __init__(self, session: Session):
        self.session = session

    def get_room_rate(self, room_no: str, property_id: Optional[int] = None) -> Optional[float]:
        query = select(Room).where(Room.room_no == room_no)
        if property_id is not None:
            query = query.where(Room.property_id == property_id)
        room = self.session.exec(query.order_by(Room.id)).first()
        return room.price_per_night if room else None


class SqlBookingWriter:
    """Writes are flushed, not committed; the caller owns the transaction."""

    def __init__(self, session: Session):
        self.session = session

    def _load(self, booking_id: int) -> Booking:
        booking = self.session.get(Booking, booking_id)
        if not booking:
            raise AutoResolutionFailed(f"Booking {booking_id} not found")
        return booking

    def update_booking_amount(self, booking_id: int, amount: float) -> None:
        booking = self._load(booking_id)
        booking.total_amount = amount
        booking.updated_at = datetime.now(timezone.utc)
        self.session.add(booking)
        self.session.flush()

    def request_sync(self, booking_id: int) -> None:
        # Re-queue for the channel sync worker
        booking = self._load(booking_id)
        if booking.cancelled or booking.ota_sync_status not in SYNC_PROBLEM_STATUSES:
            raise AutoResolutionFailed(
                f"Booking {booking_id} is not awaiting sync (status={booking.ota_sync_status}, cancelled={booking.cancelled})"
            )
        booking.ota_sync_status = "pending"
        booking.ota_sync_error = None
        booking.updated_at = datetime.now(timezone.utc)
        self.session.add(booking)
        self.session.flush()
