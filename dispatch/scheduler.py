"""
Purpose: The periodic "heartbeat" that closes bidding and assigns jobs.
What it does:
Finds every BIDDING job whose deadline has passed and, for each one, runs
frozen bid set -> AllocationEngine -> JobStateMachine commit as one atomic unit
(job lock + global fairness lock). Operators can also force one job through
immediately.

Jobs are handled one at a time with respect to fairness state, so a driver who
reaches the cap on one job is already excluded from the next job of the same sweep.
A failure on one job never stops the sweep:
- LockTimeout: left for the next sweep
- InternalConsistencyError: transaction aborted, operator alerted
- anything else: logged with traceback, reported as failed
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from drivers.store import DriverStore
from jobs.errors import InternalConsistencyError, InvalidTransition, LockTimeout, MarketplaceError
from jobs.models import BidStatus, JobStatus, utcnow
from jobs.store import JobStore, check_job_invariants

from .engine import AllocationResult, allocate, no_winner
from .fairness import FairnessTracker
from .policy import AllocationPolicy, default_policy
from .state_machines.job_state import commit_assignment

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    now: datetime
    assigned: List[str] = field(default_factory=list)
    no_winner: List[str] = field(default_factory=list)
    retry_later: List[str] = field(default_factory=list)  # lock contention
    failed: List[str] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.assigned) + len(self.no_winner) + len(self.retry_later) + len(self.failed)


class SchedulerLoop:
    """
    Drives allocation for jobs that are ready for a decision.
    """
    def __init__(
        self,
        job_store: JobStore,
        driver_store: DriverStore,
        fairness: FairnessTracker,
        policy: Optional[AllocationPolicy] = None,
        notifier=None,
    ):
        self.job_store = job_store
        self.driver_store = driver_store
        self.fairness = fairness
        self.policy = policy or default_policy()
        self.notifier = notifier

    # --- Public API ---

    def run_sweep(self, now: Optional[datetime] = None) -> SweepReport:
        """
        One pass over every BIDDING job past its deadline.
        """
        now = now or utcnow()
        report = SweepReport(now=now)

        for job in self.job_store.jobs_ready_for_allocation(now):
            try:
                result = self._allocate(job.id, now, force=False)
            except LockTimeout as e:
                logger.warning("Job %s busy, retrying next sweep: %s", job.id, e)
                report.retry_later.append(job.id)
                continue
            except InternalConsistencyError as e:
                self._alert_operator(job.id, e)
                report.failed.append(job.id)
                continue
            except MarketplaceError as e:
                logger.error("Job %s allocation failed: %s", job.id, e)
                report.failed.append(job.id)
                continue
            except Exception:
                logger.exception("Unexpected error allocating job %s", job.id)
                report.failed.append(job.id)
                continue

            if result is None:
                # status or deadline changed between selection and lock
                continue
            if result.has_winner:
                report.assigned.append(job.id)
            else:
                report.no_winner.append(job.id)

        if report.processed:
            logger.info(
                "Sweep at %s: %d assigned, %d without winner, %d retry later, %d failed",
                now.isoformat(), len(report.assigned), len(report.no_winner),
                len(report.retry_later), len(report.failed),
            )
        return report

    def force_allocate(self, job_id: str, now: Optional[datetime] = None) -> AllocationResult:
        """
        Operator "allocate now": ignores the bidding deadline.
        An OPEN job has no active bids and yields NoWinner. A job that already
        left bidding raises InvalidTransition, so a second winner is impossible.
        """
        now = now or utcnow()
        try:
            return self._allocate(job_id, now, force=True)
        except InternalConsistencyError as e:
            self._alert_operator(job_id, e)
            raise

    def run(
        self,
        stop_event: Optional[threading.Event] = None,
        interval_seconds: Optional[float] = None,
        max_sweeps: Optional[int] = None,
    ) -> None:
        """
        Blocking loop: sweep, prune old fairness records, wait, repeat until stop_event is set.
        """
        stop_event = stop_event or threading.Event()
        interval = interval_seconds or self.policy.sweep_interval_seconds
        sweeps = 0

        logger.info("Scheduler started, sweeping every %ss", interval)
        while not stop_event.is_set():
            now = utcnow()
            self.run_sweep(now)
            self.fairness.prune(now)

            sweeps += 1
            if max_sweeps is not None and sweeps >= max_sweeps:
                break
            stop_event.wait(interval)
        logger.info("Scheduler stopped after %d sweeps", sweeps)

    # --- Allocation unit ---

    def _allocate(self, job_id: str, now: datetime, force: bool) -> Optional[AllocationResult]:
        with self.job_store.job_transaction(job_id, timeout=self.policy.lock_timeout_seconds) as job:
            # re-check after acquiring the lock
            if job.status == JobStatus.OPEN and force:
                return no_winner(job)

            if job.status != JobStatus.BIDDING:
                if force:
                    raise InvalidTransition(f"Job {job_id} is {job.status.value}; it cannot be allocated again")
                return None

            if not force and not job.is_past_deadline(now):
                return None

            all_bids = self.job_store.bids_for_job(job_id)
            active_bids = [bid for bid in all_bids if bid.status == BidStatus.ACTIVE]
            drivers = self.driver_store.get_many(bid.driver_id for bid in active_bids)

            with self.job_store.fairness_lock:
                snapshot = self.fairness.snapshot({bid.driver_id for bid in active_bids}, now)
                result = allocate(job, active_bids, snapshot, drivers, self.policy)

                if result.has_winner:
                    commit_assignment(job, result.winning_bid, result.rejected_bids, all_bids, now)
                    # verify before crediting the win, so an abort leaves fairness untouched
                    check_job_invariants(job, all_bids)
                    self.fairness.record_win(result.winning_bid.driver_id, now)

        if result.has_winner:
            logger.info(
                "Job %s assigned to driver %s for %s",
                job_id, result.winning_bid.driver_id, result.winning_bid.bid_amount,
            )
            if self.notifier:
                self.notifier.job_assigned(job, result.winning_bid, result.rejected_bids)
        else:
            logger.info("Job %s: no winner this cycle", job_id)
        return result

    def _alert_operator(self, job_id: str, error: Exception) -> None:
        logger.critical("Internal consistency error on job %s: %s", job_id, error)
        if self.notifier:
            self.notifier.operator_alert(job_id, str(error))
