"""
Purpose: Validates and records drivers' bids (the marketplace's front door).
What it does:
- place_bid: checks the amount, the driver, the job status and deadline, and the
  one-active-bid-per-driver rule, then stores the bid with a snapshot of the
  driver's rating. The first bid moves the job OPEN -> BIDDING.
- withdraw_bid: a driver pulls their own active bid while the job is still open
  for bidding. Withdrawing the last active bid moves the job BIDDING -> OPEN.

Every check that depends on the job runs after the job lock is taken, so a bid
arriving after an allocation committed is rejected, never slipped in.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from drivers.models import Driver
from drivers.store import DriverStore
from jobs.errors import (
    BidNotFound,
    DriverNotEligible,
    DriverNotFound,
    DuplicateBid,
    InvalidAmount,
    InvalidTransition,
    JobNotBiddable,
    NotBidOwner,
)
from jobs.models import BIDDABLE_STATUSES, Bid, BidStatus, JobStatus, utcnow
from jobs.store import JobStore

from .policy import AllocationPolicy, default_policy
from .state_machines.bid_state import withdraw_bid
from .state_machines.job_state import open_bidding, revert_to_open

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def parse_amount(amount: Any) -> Decimal:
    """
    Positive currency value with at most two decimals.
    """
    if amount is None or isinstance(amount, bool):
        raise InvalidAmount("Valid bid amount is required")

    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise InvalidAmount(f"Bid amount {amount!r} is not a number")

    if not value.is_finite() or value <= 0:
        raise InvalidAmount(f"Bid amount must be positive, got {amount!r}")

    if value != value.quantize(CENT):
        raise InvalidAmount(f"Bid amount {amount!r} has more than two decimals")

    return value.quantize(CENT)


class BidIntake:
    def __init__(
        self,
        job_store: JobStore,
        driver_store: DriverStore,
        policy: Optional[AllocationPolicy] = None,
        notifier=None,
    ):
        self.job_store = job_store
        self.driver_store = driver_store
        self.policy = policy or default_policy()
        self.notifier = notifier

    def _bidding_driver(self, driver_id: str) -> Driver:
        driver = self.driver_store.get(driver_id)
        if driver is None:
            raise DriverNotFound(f"Driver {driver_id} not found")
        if not driver.is_active:
            raise DriverNotEligible(f"Driver {driver_id} is {driver.status.value} and cannot bid")
        return driver

    def place_bid(
        self,
        job_id: str,
        driver_id: str,
        amount: Any,
        message: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Bid:
        now = now or utcnow()
        bid_amount = parse_amount(amount)
        driver = self._bidding_driver(driver_id)

        with self.job_store.job_transaction(job_id, timeout=self.policy.lock_timeout_seconds) as job:
            if job.status not in BIDDABLE_STATUSES:
                raise JobNotBiddable(f"Job {job_id} is {job.status.value} and not available for bidding")

            if job.is_past_deadline(now):
                raise JobNotBiddable(f"Bidding on job {job_id} closed at {job.bidding_deadline.isoformat()}")

            if self.job_store.active_bid_for(job_id, driver_id) is not None:
                raise DuplicateBid(
                    f"Driver {driver_id} already has an active bid on job {job_id}; withdraw it to re-bid"
                )

            bid = Bid.new(
                job_id=job_id,
                driver_id=driver_id,
                bid_amount=bid_amount,
                driver_rating_at_bid=driver.rating,
                message=message or None,
                now=now,
            )
            self.job_store.add_bid(bid)
            open_bidding(job, now)

        logger.info("Driver %s bid %s on job %s (bid %s)", driver_id, bid_amount, job_id, bid.id)

        if self.notifier:
            self.notifier.bid_placed(bid)
        return bid

    def withdraw_bid(self, bid_id: str, driver_id: str, now: Optional[datetime] = None) -> Bid:
        now = now or utcnow()
        bid = self.job_store.require_bid(bid_id)
        if bid.driver_id != driver_id:
            raise NotBidOwner(f"Bid {bid_id} does not belong to driver {driver_id}")

        with self.job_store.job_transaction(bid.job_id, timeout=self.policy.lock_timeout_seconds) as job:
            # the copy this transaction will write back
            bid = self.job_store.require_bid(bid_id)
            if job.status not in BIDDABLE_STATUSES:
                raise InvalidTransition(
                    f"Job {job.id} is {job.status.value}; bids can no longer be withdrawn"
                )

            withdraw_bid(bid, now)

            if job.status == JobStatus.BIDDING and not self.job_store.bids_for_job(job.id, BidStatus.ACTIVE):
                revert_to_open(job, now)
                logger.info("Job %s has no active bids left, back to open", job.id)

        logger.info("Driver %s withdrew bid %s on job %s", driver_id, bid_id, bid.job_id)

        if self.notifier:
            self.notifier.bid_withdrawn(bid)
        return bid

    def withdraw_driver_bid(self, job_id: str, driver_id: str, now: Optional[datetime] = None) -> Bid:
        """
        Withdraw by (job, driver), the way the driver portal addresses a bid.
        """
        self.job_store.require_job(job_id)
        bid = self.job_store.active_bid_for(job_id, driver_id)
        if bid is None:
            raise BidNotFound(f"Driver {driver_id} has no active bid on job {job_id}")
        return self.withdraw_bid(bid.id, driver_id, now)
