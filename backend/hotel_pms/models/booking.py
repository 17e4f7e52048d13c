from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from hotel_pms.models.property import Property


class Booking(SQLModel, table=True):
    """
    A guest stay. The stay occupies [check_in, check_out): the checkout day
    is free for the next arrival.

    Owned by the booking CRUD layer; the conflict engine only reads it, apart
    from the auto-resolution writes (total_amount, ota_sync_status).
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    property_id: int = Field(foreign_key="property.id", index=True)
    guest_name: str
    room_no: Optional[str] = Field(default=None)  # None/""/"TBD" while unassigned
    check_in: date = Field(index=True)
    check_out: date
    no_of_pax: int = Field(default=1)
    cancelled: bool = Field(default=False)
    total_amount: Optional[float] = Field(default=None)
    booking_date: Optional[date] = Field(default=None)
    source: str = Field(default="direct")  # direct|ota|ical_import

    # OTA sync state
    ota_platform_id: Optional[int] = Field(default=None, foreign_key="ota_platform.id", index=True)
    ota_booking_id: Optional[str] = Field(default=None)
    ota_sync_status: Optional[str] = Field(default=None, index=True)  # pending|synced|failed|manual
    ota_last_sync: Optional[datetime] = Field(default=None)
    ota_sync_error: Optional[str] = Field(default=None)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column_kwargs={"onupdate": lambda: datetime.now(timezone.utc)},
    )

    # Relationships
    property: "Property" = Relationship(back_populates="bookings")
