"""
Purpose: Operator and driver actions on a job outside of bidding itself.
What it does:
- create_job: operator posts a new RouteJob in OPEN
- cancel_job: operator cancels a job before it completes (cascades bids to REJECTED)
- start_job / complete_job: the assigned driver runs the job

Each action runs inside the job's transaction and goes through the job state
machine; notifications fire after the transaction has committed.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional

from drivers.availability import parse_time_of_day
from jobs.models import Bid, BidStatus, JobStatus, RouteJob, utcnow
from jobs.store import JobStore, check_job_invariants

from .fairness import FairnessTracker
from .policy import AllocationPolicy
from .state_machines import job_state

logger = logging.getLogger(__name__)


def _optional_decimal(value: Any, name: str) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"{name} must be a number, got {value!r}")
    if not parsed.is_finite() or parsed < 0:
        raise ValueError(f"{name} must be >= 0, got {value!r}")
    return parsed


def create_job(
    job_store: JobStore,
    policy: AllocationPolicy,
    *,
    area: str,
    scheduled_date: date | str,
    start_time: Any,
    end_time: Any,
    base_pay: Any = None,
    estimated_stops: Optional[int] = None,
    estimated_hours: Any = None,
    title: str = "",
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
    notifier=None,
) -> RouteJob:
    if isinstance(scheduled_date, str):
        scheduled_date = date.fromisoformat(scheduled_date)

    if estimated_stops is not None and estimated_stops < 0:
        raise ValueError("estimated_stops must be >= 0")

    job = RouteJob.new(
        area=area,
        scheduled_date=scheduled_date,
        start_time=parse_time_of_day(start_time),
        end_time=parse_time_of_day(end_time),
        cutoff_hours=policy.bidding_cutoff_hours,
        base_pay=_optional_decimal(base_pay, "base_pay"),
        estimated_stops=estimated_stops,
        estimated_hours=_optional_decimal(estimated_hours, "estimated_hours"),
        title=title,
        notes=notes,
        now=now,
    )
    job_store.add_job(job)

    logger.info(
        "Created job %s (%s, %s %s-%s), bidding closes %s",
        job.id, job.area, job.scheduled_date, job.start_time, job.end_time, job.bidding_deadline,
    )
    if notifier:
        notifier.job_created(job)
    return job


def cancel_job(
    job_store: JobStore,
    job_id: str,
    policy: AllocationPolicy,
    now: Optional[datetime] = None,
    notifier=None,
    fairness: Optional[FairnessTracker] = None,
) -> List[Bid]:
    """
    Returns the bids that were rejected by the cancellation.
    Cancelling an assigned or in-progress job also takes its win out of the
    fairness history, so the driver's count matches one rebuilt from accepted bids.
    """
    now = now or utcnow()
    with job_store.job_transaction(job_id, timeout=policy.lock_timeout_seconds) as job:
        bids = job_store.bids_for_job(job_id)
        won = None
        if job.status in (JobStatus.ASSIGNED, JobStatus.IN_PROGRESS):
            # read before the cascade overwrites decided_at
            won = next(
                ((bid.driver_id, bid.decided_at) for bid in bids if bid.status == BidStatus.ACCEPTED), None
            )

        rejected = job_state.cancel_job(job, bids, now)

        if fairness is not None and won is not None:
            check_job_invariants(job, bids)
            with job_store.fairness_lock:
                fairness.retract_win(*won)

    logger.info("Cancelled job %s, rejected %d bids", job_id, len(rejected))
    if notifier:
        notifier.job_cancelled(job, rejected)
    return rejected


def start_job(
    job_store: JobStore,
    job_id: str,
    driver_id: str,
    policy: AllocationPolicy,
    now: Optional[datetime] = None,
    notifier=None,
) -> RouteJob:
    with job_store.job_transaction(job_id, timeout=policy.lock_timeout_seconds) as job:
        job_state.start_job(job, driver_id, now)

    logger.info("Driver %s started job %s", driver_id, job_id)
    if notifier:
        notifier.job_started(job)
    return job


def complete_job(
    job_store: JobStore,
    job_id: str,
    driver_id: str,
    policy: AllocationPolicy,
    now: Optional[datetime] = None,
    notifier=None,
) -> RouteJob:
    with job_store.job_transaction(job_id, timeout=policy.lock_timeout_seconds) as job:
        job_state.complete_job(job, driver_id, now)

    logger.info("Driver %s completed job %s", driver_id, job_id)
    if notifier:
        notifier.job_completed(job)
    return job
