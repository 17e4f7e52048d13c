"""
OTA Platform Model

External channels (Airbnb, Booking.com, ...) whose calendars are kept in
sync with local bookings. Only the sync-relevant columns live here; the
iCal URLs and credentials are owned by the channel integration.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Field, SQLModel


class OtaPlatform(SQLModel, table=True):
    __tablename__ = "ota_platform"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    type: str = Field(default="ical")  # ical|api|manual
    sync_enabled: bool = Field(default=True)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
