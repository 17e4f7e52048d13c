from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from hotel_pms.models.property import Property


class Room(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("property_id", "room_no", name="uq_property_room_no"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    property_id: int = Field(foreign_key="property.id", index=True)
    room_no: str
    room_type: Optional[str] = None
    price_per_night: Optional[float] = Field(default=None)  # Nightly base rate used for auto-pricing
    is_active: bool = Field(default=True)

    # Relationships
    property: "Property" = Relationship(back_populates="rooms")
