"""
Purpose: Rolling allocation history per driver (the "round-robin" memory).
What it does:
Remembers when each driver won a job and answers "how many jobs has this
driver won in the trailing window?". The allocation engine uses it to:
- cap monopolization (max_jobs_per_window)
- favour drivers with fewer recent wins among near-equal bids

The window is a fixed duration ending at `now`, not a calendar week.
Records older than now - window simply stop counting.

Consistency with allocation commits comes from the caller holding the store's
fairness_lock around snapshot -> decide -> record_win, and around retract_win
when an assigned job is cancelled.
"""

from __future__ import annotations

import bisect
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from jobs.models import Bid, BidStatus


@dataclass(frozen=True)
class AllocationRecord:
    """
    Fairness state of one driver at snapshot time. Not a billing record.
    """
    driver_id: str
    window_start: datetime
    jobs_won_in_window: int = 0
    last_won_at: Optional[datetime] = None


class FairnessTracker:
    def __init__(self, window: timedelta):
        if window <= timedelta(0):
            raise ValueError("fairness window must be positive")
        self.window = window
        self._wins: Dict[str, List[datetime]] = {}  # driver_id -> sorted win times
        self._lock = threading.Lock()

    @classmethod
    def from_accepted_bids(cls, bids: Iterable[Bid], window: timedelta) -> FairnessTracker:
        """
        Rebuilds the tracker from persisted accepted bids (decided_at = time of the win).
        """
        tracker = cls(window)
        for bid in bids:
            if bid.status == BidStatus.ACCEPTED and bid.decided_at is not None:
                tracker.record_win(bid.driver_id, bid.decided_at)
        return tracker

    def record_win(self, driver_id: str, at: datetime) -> None:
        with self._lock:
            bisect.insort(self._wins.setdefault(driver_id, []), at)

    def retract_win(self, driver_id: str, at: datetime) -> bool:
        """
        Forgets the win recorded at `at` (its assignment was cancelled).
        Returns False when no such win is held, e.g. it was already pruned.
        """
        with self._lock:
            wins = self._wins.get(driver_id)
            if not wins:
                return False
            index = bisect.bisect_left(wins, at)
            if index == len(wins) or wins[index] != at:
                return False
            del wins[index]
            if not wins:
                del self._wins[driver_id]
            return True

    def count_wins_in_window(self, driver_id: str, now: datetime, window: Optional[timedelta] = None) -> int:
        window = window or self.window
        window_start = now - window
        with self._lock:
            wins = self._wins.get(driver_id, [])
            # wins in (window_start, now]
            return bisect.bisect_right(wins, now) - bisect.bisect_right(wins, window_start)

    def last_won_at(self, driver_id: str, now: datetime) -> Optional[datetime]:
        with self._lock:
            wins = self._wins.get(driver_id, [])
            index = bisect.bisect_right(wins, now)
            return wins[index - 1] if index else None

    def snapshot(self, driver_ids: Iterable[str], now: datetime) -> Dict[str, AllocationRecord]:
        window_start = now - self.window
        return {
            driver_id: AllocationRecord(
                driver_id=driver_id,
                window_start=window_start,
                jobs_won_in_window=self.count_wins_in_window(driver_id, now),
                last_won_at=self.last_won_at(driver_id, now),
            )
            for driver_id in driver_ids
        }

    def prune(self, now: datetime) -> int:
        """
        Drops wins that can no longer count. Returns how many were dropped.
        """
        window_start = now - self.window
        dropped = 0
        with self._lock:
            for driver_id in list(self._wins):
                wins = self._wins[driver_id]
                cut = bisect.bisect_right(wins, window_start)
                if cut:
                    dropped += cut
                    del wins[:cut]
                if not wins:
                    del self._wins[driver_id]
        return dropped
