"""
Services Layer

Conflict engine business logic:
- Detectors read bookings through injected repositories
- The store owns every write to calendar_conflict
- Nothing here depends on HTTP request/response objects
"""
