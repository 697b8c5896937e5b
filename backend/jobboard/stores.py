"""
Purpose: Database-backed versions of the marketplace stores.
What it does:
Keeps jobs, bids and driver profiles in the jobboard tables, so the API
process and the run_scheduler process work on the same marketplace.

- DatabaseJobStore: job_transaction() takes the in-process job lock, opens a
  database transaction and locks the job row with select_for_update(). The job
  and its bids are loaded into a working set that every read of that job inside
  the block sees; the set is written back when the block exits cleanly.
- FairnessGuardLock: fairness_lock across processes (row lock on FairnessGuard).
- AcceptedBidFairness: win counts read from accepted bids.
- DatabaseDriverStore: driver read model on DriverProfile.

SQLite has no row locks: it serializes writers on the whole database, and a
writer that cannot get in reports "database is locked", mapped to LockTimeout.
"""

from __future__ import annotations

import copy
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from django.db import OperationalError, transaction

from dispatch.fairness import FairnessTracker
from drivers.models import Driver
from drivers.store import DriverStore
from jobs.errors import InternalConsistencyError, JobNotFound, LockTimeout
from jobs.models import Bid, BidStatus, JobStatus, RouteJob
from jobs.store import JobStore, check_job_invariants

from .models import FAIRNESS_GUARD_ID, BidRecord, DriverProfile, FairnessGuard, RouteJobRecord

logger = logging.getLogger(__name__)


@dataclass
class _WorkingSet:
    job: RouteJob
    bids: Dict[str, Bid] = field(default_factory=dict)  # arrival order


class FairnessGuardLock:
    """
    Used as `with job_store.fairness_lock:` inside a job transaction.
    The in-process mutex is released on exit; the row lock is held until
    the job transaction commits, together with the win it protects.
    """
    def __init__(self):
        self._lock = threading.Lock()

    def __enter__(self):
        self._lock.acquire()
        try:
            FairnessGuard.objects.select_for_update().get_or_create(pk=FAIRNESS_GUARD_ID)
        except BaseException:
            self._lock.release()
            raise
        return self

    def __exit__(self, exc_type, exc, tb):
        self._lock.release()
        return False


class DatabaseJobStore(JobStore):
    def __init__(self, default_lock_timeout: float = 5.0):
        super().__init__(default_lock_timeout=default_lock_timeout)
        self.fairness_lock = FairnessGuardLock()
        self._working = threading.local()

    def _open_sets(self) -> Dict[str, _WorkingSet]:
        sets = getattr(self._working, "sets", None)
        if sets is None:
            sets = self._working.sets = {}
        return sets

    def _lock_for(self, job_id: str) -> threading.Lock:
        with self._registry_lock:
            return self._job_locks.setdefault(job_id, threading.Lock())

    # --- Jobs ---

    def add_job(self, job: RouteJob) -> RouteJob:
        record, created = RouteJobRecord.objects.get_or_create(
            id=job.id, defaults=RouteJobRecord.fields_from(job)
        )
        # idempotency : an existing row wins
        return job if created else record.to_job()

    def get_job(self, job_id: str) -> Optional[RouteJob]:
        working = self._open_sets().get(job_id)
        if working is not None:
            return working.job
        record = RouteJobRecord.objects.filter(pk=job_id).first()
        return record.to_job() if record else None

    def jobs(self, status: Optional[JobStatus] = None) -> List[RouteJob]:
        records = RouteJobRecord.objects.order_by('created_at', 'id')
        if status is not None:
            records = records.filter(status=status.value)
        return [record.to_job() for record in records]

    def open_jobs(self, start_date: Optional[date] = None, end_date: Optional[date] = None) -> List[RouteJob]:
        records = RouteJobRecord.objects.filter(status__in=[JobStatus.OPEN.value, JobStatus.BIDDING.value])
        if start_date:
            records = records.filter(scheduled_date__gte=start_date)
        if end_date:
            records = records.filter(scheduled_date__lte=end_date)
        return [record.to_job() for record in records.order_by('scheduled_date', 'start_time', 'id')]

    def jobs_ready_for_allocation(self, now: datetime) -> List[RouteJob]:
        records = RouteJobRecord.objects.filter(
            status=JobStatus.BIDDING.value, bidding_deadline__lte=now
        ).order_by('bidding_deadline', 'created_at', 'id')
        return [record.to_job() for record in records]

    def jobs_for_driver(self, driver_id: str) -> List[RouteJob]:
        records = RouteJobRecord.objects.filter(assigned_driver_id=driver_id)
        return [record.to_job() for record in records.order_by('scheduled_date', 'start_time', 'id')]

    # --- Bids ---

    def add_bid(self, bid: Bid) -> Bid:
        working = self._open_sets().get(bid.job_id)
        if working is None:
            raise InternalConsistencyError(f"Bid {bid.id} added outside a transaction on job {bid.job_id}")
        working.bids[bid.id] = bid
        return bid

    def get_bid(self, bid_id: str) -> Optional[Bid]:
        for working in self._open_sets().values():
            if bid_id in working.bids:
                return working.bids[bid_id]
        record = BidRecord.objects.filter(pk=bid_id).first()
        return record.to_bid() if record else None

    def bids_for_job(self, job_id: str, status: Optional[BidStatus] = None) -> List[Bid]:
        working = self._open_sets().get(job_id)
        if working is not None:
            bids = list(working.bids.values())
        else:
            bids = [record.to_bid() for record in BidRecord.objects.filter(job_id=job_id)]
        if status is None:
            return bids
        return [bid for bid in bids if bid.status == status]

    def accepted_bids(self) -> List[Bid]:
        return [record.to_bid() for record in BidRecord.objects.filter(status=BidStatus.ACCEPTED.value)]

    # --- Transactions ---

    @contextmanager
    def job_transaction(self, job_id: str, timeout: Optional[float] = None) -> Iterator[RouteJob]:
        timeout = self.default_lock_timeout if timeout is None else timeout
        lock = self._lock_for(job_id)

        if not lock.acquire(timeout=timeout):
            raise LockTimeout(f"Timed out after {timeout}s waiting for job {job_id}")

        sets = self._open_sets()
        try:
            with transaction.atomic():
                working = self._load_for_update(job_id)
                saved = self._copy(working)
                sets[job_id] = working
                try:
                    yield working.job
                    check_job_invariants(working.job, list(working.bids.values()))
                    self._write(working)
                except BaseException:
                    # the atomic block rolls the rows back; roll back the objects callers hold too
                    self._restore_working(working, saved)
                    raise
        except OperationalError as e:
            raise LockTimeout(f"Database busy on job {job_id}: {e}") from e
        finally:
            sets.pop(job_id, None)
            lock.release()

    def _load_for_update(self, job_id: str) -> _WorkingSet:
        try:
            record = RouteJobRecord.objects.select_for_update().get(pk=job_id)
        except RouteJobRecord.DoesNotExist:
            raise JobNotFound(f"Job {job_id} not found")
        bids = {bid_record.id: bid_record.to_bid() for bid_record in record.bids.all()}
        return _WorkingSet(record.to_job(), bids)

    @staticmethod
    def _copy(working: _WorkingSet) -> Tuple[RouteJob, Dict[str, Bid]]:
        return copy.copy(working.job), {bid_id: copy.copy(bid) for bid_id, bid in working.bids.items()}

    @staticmethod
    def _restore_working(working: _WorkingSet, saved: Tuple[RouteJob, Dict[str, Bid]]) -> None:
        saved_job, saved_bids = saved
        working.job.__dict__.update(saved_job.__dict__)
        for bid_id, bid in working.bids.items():
            if bid_id in saved_bids:
                bid.__dict__.update(saved_bids[bid_id].__dict__)
        logger.warning("Rolled back transaction on job %s", working.job.id)

    @staticmethod
    def _write(working: _WorkingSet) -> None:
        job = working.job
        RouteJobRecord.objects.filter(pk=job.id).update(**RouteJobRecord.fields_from(job))
        for bid in working.bids.values():
            BidRecord.objects.update_or_create(id=bid.id, defaults=BidRecord.fields_from(bid))


class AcceptedBidFairness(FairnessTracker):
    """
    Fairness history read from accepted bids, so every process sees the same
    counts. The accepted bid is the win record: the job transaction that
    accepts or rejects it is what records or retracts the win.
    """

    def _win_records(self, driver_id: str, now: datetime):
        return BidRecord.objects.filter(
            driver_id=driver_id, status=BidStatus.ACCEPTED.value, decided_at__lte=now
        )

    def record_win(self, driver_id: str, at: datetime) -> None:
        pass

    def retract_win(self, driver_id: str, at: datetime) -> bool:
        return True

    def count_wins_in_window(self, driver_id: str, now: datetime, window: Optional[timedelta] = None) -> int:
        window = window or self.window
        return self._win_records(driver_id, now).filter(decided_at__gt=now - window).count()

    def last_won_at(self, driver_id: str, now: datetime) -> Optional[datetime]:
        return self._win_records(driver_id, now).order_by('-decided_at').values_list('decided_at', flat=True).first()

    def prune(self, now: datetime) -> int:
        # nothing held in memory
        return 0


class DatabaseDriverStore(DriverStore):
    def upsert(self, driver: Driver) -> Driver:
        DriverProfile.objects.update_or_create(id=driver.id, defaults=DriverProfile.fields_from(driver))
        return driver

    def get(self, driver_id: str) -> Optional[Driver]:
        record = DriverProfile.objects.filter(pk=driver_id).first()
        return record.to_driver() if record else None

    def get_many(self, driver_ids: Iterable[str]) -> Dict[str, Driver]:
        records = DriverProfile.objects.filter(id__in=list(driver_ids))
        return {record.id: record.to_driver() for record in records}

    def all(self) -> List[Driver]:
        return [record.to_driver() for record in DriverProfile.objects.order_by('id')]
