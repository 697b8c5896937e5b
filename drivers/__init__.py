"""
Drivers domain package.

Public API:
- Domain models: Driver, DriverStatus
- Availability: AvailabilityWindow, parse_availability, windows_for_days
- Storage: DriverStore
"""
from .availability import AvailabilityWindow, parse_availability, windows_for_days
from .models import Driver, DriverStatus
from .store import DriverStore

__all__ = [
    "Driver",
    "DriverStatus",
    "AvailabilityWindow",
    "parse_availability",
    "windows_for_days",
    "DriverStore",
]
