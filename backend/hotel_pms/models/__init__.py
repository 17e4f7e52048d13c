from hotel_pms.models.booking import Booking
from hotel_pms.models.calendar_conflict import (
    CalendarConflict,
    ConflictSeverity,
    ConflictStatus,
    ConflictType,
)
from hotel_pms.models.conflict_detection_run import ConflictDetectionRun
from hotel_pms.models.ota_platform import OtaPlatform
from hotel_pms.models.property import Property
from hotel_pms.models.room import Room

__all__ = [
    "Property",
    "Room",
    "OtaPlatform",
    "Booking",
    "CalendarConflict",
    "ConflictType",
    "ConflictSeverity",
    "ConflictStatus",
    "ConflictDetectionRun",
]
