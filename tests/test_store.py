import threading
from datetime import date, datetime, time, timezone
from decimal import Decimal

import pytest

import jobs
from jobs.errors import InternalConsistencyError, JobNotFound, LockTimeout
from jobs.models import Bid, BidStatus, JobStatus, RouteJob, utcnow
from jobs.store import JobStore, check_job_invariants

NOW = datetime(2026, 10, 26, 9, 0)


@pytest.fixture
def store():
    return JobStore(default_lock_timeout=0.05)


@pytest.fixture
def job(store):
    job = RouteJob.new("North", date(2026, 11, 2), time(9), time(12), cutoff_hours=12, now=NOW)
    return store.add_job(job)


def test_deadline_is_cutoff_before_the_day_starts(job):
    assert job.bidding_deadline == datetime(2026, 11, 1, 12, 0)
    assert job.title == "North route 2026-11-02"
    assert not job.is_past_deadline(datetime(2026, 11, 1, 11, 59))
    assert job.is_past_deadline(datetime(2026, 11, 1, 12, 0))


def test_job_must_end_after_it_starts():
    with pytest.raises(ValueError):
        RouteJob.new("North", date(2026, 11, 2), time(12), time(9), cutoff_hours=12)


def test_add_job_is_idempotent(store, job):
    assert store.add_job(job) is job
    assert store.jobs() == [job]


def test_failed_transaction_is_rolled_back(store, job):
    """
    Whatever happened inside the block, the job and its bids come back as they were.
    """
    with pytest.raises(RuntimeError):
        with store.job_transaction(job.id) as locked:
            locked.status = JobStatus.BIDDING
            store.add_bid(Bid.new(job.id, "A", Decimal("80"), 4.0, now=NOW))
            raise RuntimeError("crash mid-transition")

    # 1. same object, old values
    assert store.get_job(job.id) is job
    assert job.status == JobStatus.OPEN

    # 2. the inserted bid is gone
    assert store.bids_for_job(job.id) == []


def test_broken_invariant_aborts_commit(store, job):
    bid = Bid.new(job.id, "A", Decimal("80"), 4.0, now=NOW)
    with store.job_transaction(job.id):
        store.add_bid(bid)

    with pytest.raises(InternalConsistencyError):
        with store.job_transaction(job.id) as locked:
            # assigned without a driver
            locked.status = JobStatus.ASSIGNED
            bid.status = BidStatus.ACCEPTED

    assert job.status == JobStatus.OPEN
    assert bid.status == BidStatus.ACTIVE


def test_lock_timeout(store, job):
    with store.job_transaction(job.id):
        with pytest.raises(LockTimeout):
            with store.job_transaction(job.id, timeout=0.01):
                pass


def test_unknown_job(store):
    with pytest.raises(JobNotFound):
        with store.job_transaction("missing"):
            pass


def test_invariants_catch_two_active_bids_from_one_driver(job):
    bids = [Bid.new(job.id, "A", Decimal("80"), 4.0), Bid.new(job.id, "A", Decimal("75"), 4.0)]
    with pytest.raises(InternalConsistencyError):
        check_job_invariants(job, bids)


def test_invariants_catch_wrong_driver_on_accepted_bid(job):
    bid = Bid.new(job.id, "A", Decimal("80"), 4.0)
    bid.status = BidStatus.ACCEPTED
    job.status = JobStatus.ASSIGNED
    job.assigned_driver_id = "B"

    with pytest.raises(InternalConsistencyError):
        check_job_invariants(job, [bid])


def test_ready_for_allocation_ordering(store):
    later = store.add_job(RouteJob.new("B", date(2026, 11, 3), time(9), time(12), cutoff_hours=12, now=NOW))
    sooner = store.add_job(RouteJob.new("A", date(2026, 11, 2), time(9), time(12), cutoff_hours=12, now=NOW))
    for job in (later, sooner):
        job.status = JobStatus.BIDDING

    assert store.jobs_ready_for_allocation(datetime(2026, 11, 5)) == [sooner, later]
    assert store.jobs_ready_for_allocation(datetime(2026, 11, 1, 13)) == [sooner]


def test_listings_survive_concurrent_inserts(store, job):
    """
    Job and bid inserts from other threads never break a listing mid-iteration.
    """
    stop = threading.Event()
    errors = []

    def insert_jobs():
        day = date(2026, 11, 2)
        while not stop.is_set():
            new = store.add_job(RouteJob.new("South", day, time(9), time(12), cutoff_hours=12, now=NOW))
            with store.job_transaction(new.id) as locked:
                store.add_bid(Bid.new(new.id, "D", Decimal("80"), 4.0, now=NOW))
                locked.status = JobStatus.BIDDING

    writer = threading.Thread(target=insert_jobs)
    writer.start()
    try:
        while writer.is_alive() and len(store.jobs()) < 150:
            try:
                store.open_jobs()
                store.jobs_ready_for_allocation(datetime(2026, 11, 1, 13, 0))
                store.jobs(JobStatus.BIDDING)
                store.jobs_for_driver("D")
                store.accepted_bids()
            except RuntimeError as e:
                errors.append(str(e))
    finally:
        stop.set()
        writer.join()

    assert errors == []
    assert len(store.jobs()) >= 150


def test_timestamps_are_naive_utc():
    before = datetime.now(timezone.utc).replace(tzinfo=None)

    stamp = utcnow()
    job = RouteJob.new("North", date(2026, 11, 2), time(9), time(12), cutoff_hours=12)

    assert stamp.tzinfo is None
    assert before <= stamp <= job.created_at
    assert job.created_at.tzinfo is None


def test_package_exports():
    assert jobs.__all__ == ["RouteJob", "Bid", "JobStatus", "BidStatus", "JobStore", "check_job_invariants"]
    assert all(hasattr(jobs, name) for name in jobs.__all__)
