"""
Purpose: Read access to driver records.
What it does:
In-memory stand-in for the driver account subsystem's table.
The marketplace only ever reads from it; `upsert` exists so the account side
(and tests, scripts, the API layer) can load records into it.
"""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Optional

from .models import Driver


class DriverStore:
    def __init__(self, drivers: Optional[Iterable[Driver]] = None):
        self._drivers: Dict[str, Driver] = {}
        self._lock = threading.Lock()
        for driver in drivers or []:
            self.upsert(driver)

    def upsert(self, driver: Driver) -> Driver:
        with self._lock:
            self._drivers[driver.id] = driver
        return driver

    def get(self, driver_id: str) -> Optional[Driver]:
        return self._drivers.get(driver_id)

    def get_many(self, driver_ids: Iterable[str]) -> Dict[str, Driver]:
        """
        Only ids that exist are returned.
        """
        found = {}
        for driver_id in driver_ids:
            driver = self._drivers.get(driver_id)
            if driver is not None:
                found[driver_id] = driver
        return found

    def all(self) -> List[Driver]:
        return list(self._drivers.values())
