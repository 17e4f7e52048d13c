# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from hotel_pms.models.booking import Booking  # noqa: F401
from hotel_pms.models.calendar_conflict import CalendarConflict  # noqa: F401
