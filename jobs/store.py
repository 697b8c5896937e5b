"""
Purpose: Transactional storage for RouteJobs and their Bids.
What it does:
- Owns the in-memory tables:
   - jobs (by id)
   - bids (by id) + per-job bid index in arrival order

- Provides the unit of mutual exclusion: one RouteJob and its bids.
   - job_transaction(job_id) acquires that job's lock (with timeout -> LockTimeout),
     snapshots the job and its bids, and restores the snapshot if the block raises,
     so a transition either commits whole or leaves nothing behind.
   - invariants are checked before the lock is released; a violation aborts
     the transaction with InternalConsistencyError.

- Owns the global fairness mutex shared by all allocation workers.

Rule: Store owns atomicity, the state machines own the rules.
"""

from __future__ import annotations

import copy
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from .errors import BidNotFound, InternalConsistencyError, JobNotFound, LockTimeout
from .models import ASSIGNED_STATUSES, Bid, BidStatus, JobStatus, RouteJob

logger = logging.getLogger(__name__)

_Snapshot = Tuple[RouteJob, Dict[str, Bid], List[str]]


def check_job_invariants(job: RouteJob, bids: Sequence[Bid]) -> None:
    """
    Raises InternalConsistencyError if the job and its bids disagree with the marketplace rules:
    - assigned_driver_id is set iff the job is assigned / in_progress / completed
    - at most one accepted bid, and it exists iff the job is in one of those statuses
    - the accepted bid belongs to the assigned driver
    - at most one active bid per driver
    """
    is_assigned = job.status in ASSIGNED_STATUSES

    if is_assigned != (job.assigned_driver_id is not None):
        raise InternalConsistencyError(
            f"Job {job.id} is {job.status.value} but assigned_driver_id={job.assigned_driver_id!r}"
        )

    accepted = [bid for bid in bids if bid.status == BidStatus.ACCEPTED]
    if len(accepted) > 1:
        raise InternalConsistencyError(f"Job {job.id} has {len(accepted)} accepted bids")

    if is_assigned != bool(accepted):
        raise InternalConsistencyError(
            f"Job {job.id} is {job.status.value} with {len(accepted)} accepted bids"
        )

    if accepted and accepted[0].driver_id != job.assigned_driver_id:
        raise InternalConsistencyError(
            f"Job {job.id} accepted bid {accepted[0].id} belongs to {accepted[0].driver_id}, "
            f"not assigned driver {job.assigned_driver_id}"
        )

    active_drivers = [bid.driver_id for bid in bids if bid.status == BidStatus.ACTIVE]
    if len(active_drivers) != len(set(active_drivers)):
        raise InternalConsistencyError(f"Job {job.id} has several active bids from one driver")


@dataclass
class JobStore:
    """
    In-memory transactional store:

    jobs + bids, serialized per job.

    Reads outside a transaction are allowed (listing, dashboards) but any
    mutation must happen inside job_transaction() for the job it touches.
    Inserts into the tables take _registry_lock, and listings iterate a copy
    taken under it.
    """
    default_lock_timeout: float = 5.0

    # storage
    _jobs: Dict[str, RouteJob] = field(default_factory=dict)
    _bids: Dict[str, Bid] = field(default_factory=dict)
    _bid_ids_by_job: Dict[str, List[str]] = field(default_factory=dict)  # arrival order

    # locking
    _job_locks: Dict[str, threading.Lock] = field(default_factory=dict)
    _registry_lock: threading.Lock = field(default_factory=threading.Lock)
    fairness_lock: threading.Lock = field(default_factory=threading.Lock)

    # --- Jobs ---

    def add_job(self, job: RouteJob) -> RouteJob:
        with self._registry_lock:
            if job.id in self._jobs:
                # idempotency : dont double insert
                return self._jobs[job.id]
            self._jobs[job.id] = job
            self._bid_ids_by_job[job.id] = []
            self._job_locks[job.id] = threading.Lock()
        return job

    def get_job(self, job_id: str) -> Optional[RouteJob]:
        return self._jobs.get(job_id)

    def require_job(self, job_id: str) -> RouteJob:
        job = self.get_job(job_id)
        if job is None:
            raise JobNotFound(f"Job {job_id} not found")
        return job

    def _all_jobs(self) -> List[RouteJob]:
        with self._registry_lock:
            return list(self._jobs.values())

    def _all_bids(self) -> List[Bid]:
        with self._registry_lock:
            return list(self._bids.values())

    def jobs(self, status: Optional[JobStatus] = None) -> List[RouteJob]:
        return [job for job in self._all_jobs() if status is None or job.status == status]

    def open_jobs(self, start_date: Optional[date] = None, end_date: Optional[date] = None) -> List[RouteJob]:
        """
        Jobs drivers can still bid on, soonest first. Dates are inclusive.
        """
        found = []
        for job in self._all_jobs():
            if job.status not in (JobStatus.OPEN, JobStatus.BIDDING):
                continue
            if start_date and job.scheduled_date < start_date:
                continue
            if end_date and job.scheduled_date > end_date:
                continue
            found.append(job)
        return sorted(found, key=lambda job: (job.scheduled_date, job.start_time, job.id))

    def jobs_ready_for_allocation(self, now: datetime) -> List[RouteJob]:
        """
        BIDDING jobs whose deadline has passed, in deterministic order (earliest deadline first).
        """
        ready = [
            job for job in self._all_jobs()
            if job.status == JobStatus.BIDDING and job.is_past_deadline(now)
        ]
        return sorted(ready, key=lambda job: (job.bidding_deadline, job.created_at, job.id))

    def jobs_for_driver(self, driver_id: str) -> List[RouteJob]:
        assigned = [job for job in self._all_jobs() if job.assigned_driver_id == driver_id]
        return sorted(assigned, key=lambda job: (job.scheduled_date, job.start_time, job.id))

    # --- Bids ---

    def add_bid(self, bid: Bid) -> Bid:
        """
        Must be called inside job_transaction(bid.job_id).
        """
        self.require_job(bid.job_id)
        with self._registry_lock:
            self._bids[bid.id] = bid
            self._bid_ids_by_job[bid.job_id].append(bid.id)
        return bid

    def get_bid(self, bid_id: str) -> Optional[Bid]:
        return self._bids.get(bid_id)

    def require_bid(self, bid_id: str) -> Bid:
        bid = self.get_bid(bid_id)
        if bid is None:
            raise BidNotFound(f"Bid {bid_id} not found")
        return bid

    def bids_for_job(self, job_id: str, status: Optional[BidStatus] = None) -> List[Bid]:
        with self._registry_lock:
            bids = [self._bids[bid_id] for bid_id in self._bid_ids_by_job.get(job_id, [])]
        if status is None:
            return bids
        return [bid for bid in bids if bid.status == status]

    def active_bid_for(self, job_id: str, driver_id: str) -> Optional[Bid]:
        for bid in self.bids_for_job(job_id, BidStatus.ACTIVE):
            if bid.driver_id == driver_id:
                return bid
        return None

    def accepted_bids(self) -> List[Bid]:
        return [bid for bid in self._all_bids() if bid.status == BidStatus.ACCEPTED]

    # --- Transactions ---

    @contextmanager
    def job_transaction(self, job_id: str, timeout: Optional[float] = None) -> Iterator[RouteJob]:
        """
        Lock one job, yield its current (re-read) record, commit or roll back.
        """
        self.require_job(job_id)
        lock = self._job_locks[job_id]
        timeout = self.default_lock_timeout if timeout is None else timeout

        if not lock.acquire(timeout=timeout):
            raise LockTimeout(f"Timed out after {timeout}s waiting for job {job_id}")

        try:
            job = self._jobs[job_id]
            snapshot = self._snapshot(job_id)
            try:
                yield job
                check_job_invariants(job, self.bids_for_job(job_id))
            except BaseException:
                self._restore(job_id, snapshot)
                raise
        finally:
            lock.release()

    def _snapshot(self, job_id: str) -> _Snapshot:
        bid_ids = list(self._bid_ids_by_job[job_id])
        return (
            copy.copy(self._jobs[job_id]),
            {bid_id: copy.copy(self._bids[bid_id]) for bid_id in bid_ids},
            bid_ids,
        )

    def _restore(self, job_id: str, snapshot: _Snapshot) -> None:
        saved_job, saved_bids, saved_bid_ids = snapshot

        # Restore in place so references held by callers see the rolled-back values
        self._jobs[job_id].__dict__.update(saved_job.__dict__)

        with self._registry_lock:
            for bid_id in self._bid_ids_by_job[job_id]:
                if bid_id in saved_bids:
                    self._bids[bid_id].__dict__.update(saved_bids[bid_id].__dict__)
                else:
                    # inserted during the failed transaction
                    self._bids.pop(bid_id, None)
            self._bid_ids_by_job[job_id] = saved_bid_ids

        logger.warning("Rolled back transaction on job %s", job_id)
