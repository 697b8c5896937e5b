"""
Purpose: One object wiring the whole marketplace together (the "one call" entry point).
What it does:
Holds the stores, policy, fairness tracker, bid intake and scheduler, and exposes
every operation the API layer needs: create / cancel / start / complete jobs,
place / withdraw bids, force allocation, sweeps, and read queries.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, List, Optional

from drivers.models import Driver
from drivers.store import DriverStore
from jobs.errors import DriverNotFound
from jobs.models import Bid, RouteJob, utcnow
from jobs.store import JobStore

from . import lifecycle
from .bid_intake import BidIntake
from .engine import AllocationResult
from .fairness import FairnessTracker
from .policy import AllocationPolicy, default_policy
from .scheduler import SchedulerLoop, SweepReport


class Marketplace:
    def __init__(
        self,
        policy: Optional[AllocationPolicy] = None,
        job_store: Optional[JobStore] = None,
        driver_store: Optional[DriverStore] = None,
        fairness: Optional[FairnessTracker] = None,
        notifier=None,
    ):
        self.policy = policy or default_policy()
        self.job_store = job_store or JobStore(default_lock_timeout=self.policy.lock_timeout_seconds)
        self.driver_store = driver_store or DriverStore()
        self.fairness = fairness or FairnessTracker.from_accepted_bids(
            self.job_store.accepted_bids(), self.policy.fairness_window
        )
        self.notifier = notifier

        self.intake = BidIntake(self.job_store, self.driver_store, self.policy, notifier)
        self.scheduler = SchedulerLoop(self.job_store, self.driver_store, self.fairness, self.policy, notifier)

    # --- Operator ---

    def create_job(self, now: Optional[datetime] = None, **fields: Any) -> RouteJob:
        return lifecycle.create_job(self.job_store, self.policy, now=now, notifier=self.notifier, **fields)

    def cancel_job(self, job_id: str, now: Optional[datetime] = None) -> List[Bid]:
        return lifecycle.cancel_job(self.job_store, job_id, self.policy, now, self.notifier, self.fairness)

    def force_allocate(self, job_id: str, now: Optional[datetime] = None) -> AllocationResult:
        return self.scheduler.force_allocate(job_id, now)

    def sweep(self, now: Optional[datetime] = None) -> SweepReport:
        return self.scheduler.run_sweep(now)

    # --- Driver ---

    def place_bid(
        self,
        job_id: str,
        driver_id: str,
        amount: Any,
        message: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Bid:
        return self.intake.place_bid(job_id, driver_id, amount, message, now)

    def withdraw_bid(self, bid_id: str, driver_id: str, now: Optional[datetime] = None) -> Bid:
        return self.intake.withdraw_bid(bid_id, driver_id, now)

    def withdraw_driver_bid(self, job_id: str, driver_id: str, now: Optional[datetime] = None) -> Bid:
        return self.intake.withdraw_driver_bid(job_id, driver_id, now)

    def start_job(self, job_id: str, driver_id: str, now: Optional[datetime] = None) -> RouteJob:
        return lifecycle.start_job(self.job_store, job_id, driver_id, self.policy, now, self.notifier)

    def complete_job(self, job_id: str, driver_id: str, now: Optional[datetime] = None) -> RouteJob:
        return lifecycle.complete_job(self.job_store, job_id, driver_id, self.policy, now, self.notifier)

    # --- Drivers (read model fed by the account subsystem) ---

    def register_driver(self, driver: Driver) -> Driver:
        return self.driver_store.upsert(driver)

    def get_driver(self, driver_id: str) -> Driver:
        driver = self.driver_store.get(driver_id)
        if driver is None:
            raise DriverNotFound(f"Driver {driver_id} not found")
        return driver

    # --- Queries ---

    def get_job(self, job_id: str) -> RouteJob:
        return self.job_store.require_job(job_id)

    def job_bids(self, job_id: str) -> List[Bid]:
        self.job_store.require_job(job_id)
        return self.job_store.bids_for_job(job_id)

    def list_open_jobs(self, start_date: Optional[date] = None, end_date: Optional[date] = None) -> List[RouteJob]:
        return self.job_store.open_jobs(start_date, end_date)

    def driver_jobs(self, driver_id: str) -> List[RouteJob]:
        return self.job_store.jobs_for_driver(driver_id)

    def wins_in_window(self, driver_id: str, now: Optional[datetime] = None) -> int:
        return self.fairness.count_wins_in_window(driver_id, now or utcnow())
