"""
Purpose: Core data models for the drivers domain.
What it does:
Defines the read-only view of a contractor Driver that the marketplace consumes:
rating, declared weekly availability and account status.
The driver account subsystem owns these records; the engine never writes them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import time
from enum import Enum
from typing import Any, FrozenSet

from .availability import AvailabilityWindow, parse_availability

MAX_RATING = 5.0


class DriverStatus(str, Enum):
    """
    Account status as far as bidding is concerned.
    """
    ACTIVE = "active"
    INACTIVE = "inactive"


@dataclass(frozen=True)
class Driver:
    """
    A stateless snapshot of a Driver at a specific point in time.

    rating: 0.0 - 5.0, where 0 means "unrated".
    availability: the weekday + time windows the driver declared they can work.
    """
    id: str
    rating: float = 0.0
    availability: FrozenSet[AvailabilityWindow] = field(default_factory=frozenset)
    status: DriverStatus = DriverStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status == DriverStatus.ACTIVE

    @property
    def is_rated(self) -> bool:
        return self.rating > 0

    def covers(self, weekday: int, start: time, end: time) -> bool:
        """
        True if one declared window covers the whole [start, end] slot on that weekday.
        """
        return any(window.covers(weekday, start, end) for window in self.availability)

    @classmethod
    def new(
        cls,
        driver_id: str,
        rating: float | str | None = 0.0,
        availability: Any = None,
        status: str | DriverStatus = DriverStatus.ACTIVE,
    ) -> Driver:
        if isinstance(status, str):
            status = DriverStatus(status)

        rating = float(rating or 0.0)
        if rating < 0 or rating > MAX_RATING:
            raise ValueError(f"Driver {driver_id} rating must be within 0-{MAX_RATING}, got {rating}")

        return cls(
            id=driver_id,
            rating=rating,
            availability=parse_availability(availability),
            status=status,
        )
