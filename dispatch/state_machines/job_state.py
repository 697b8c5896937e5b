"""
Purpose: The RouteJob status graph and every move along it.
What it does:

open -> bidding -> assigned -> in_progress -> completed
   bidding -> open              (last active bid withdrawn)
   any non-terminal -> cancelled (operator)

Every function validates first and mutates second: a move outside the graph
raises InvalidTransition and leaves the job and its bids untouched.
Callers must hold the job's transaction (JobStore.job_transaction).
"""

from datetime import datetime
from typing import Dict, FrozenSet, List, Optional, Sequence

from jobs.errors import InternalConsistencyError, InvalidTransition, NotAssignedDriver
from jobs.models import Bid, BidStatus, JobStatus, RouteJob, utcnow

from .bid_state import accept_bid, check_bid_transition, reject_bid

JOB_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.OPEN: frozenset({JobStatus.BIDDING, JobStatus.CANCELLED}),
    JobStatus.BIDDING: frozenset({JobStatus.OPEN, JobStatus.ASSIGNED, JobStatus.CANCELLED}),
    JobStatus.ASSIGNED: frozenset({JobStatus.IN_PROGRESS, JobStatus.CANCELLED}),
    JobStatus.IN_PROGRESS: frozenset({JobStatus.COMPLETED, JobStatus.CANCELLED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.CANCELLED: frozenset(),
}


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    return target in JOB_TRANSITIONS[current]


def check_job_transition(job: RouteJob, target: JobStatus) -> None:
    if not can_transition(job.status, target):
        raise InvalidTransition(f"Cannot move job {job.id} from {job.status.value} to {target.value}")


def transition_job(job: RouteJob, target: JobStatus, now: Optional[datetime] = None) -> RouteJob:
    check_job_transition(job, target)
    job.status = target
    job.updated_at = now or utcnow()
    return job


def open_bidding(job: RouteJob, now: Optional[datetime] = None) -> RouteJob:
    """
    Called by bid intake when a bid is accepted into the job.
    OPEN -> BIDDING on the first bid; already BIDDING stays as is.
    """
    if job.status == JobStatus.BIDDING:
        return job
    return transition_job(job, JobStatus.BIDDING, now)


def revert_to_open(job: RouteJob, now: Optional[datetime] = None) -> RouteJob:
    """
    Called by bid intake when the last active bid of a BIDDING job is withdrawn.
    """
    return transition_job(job, JobStatus.OPEN, now)


def commit_assignment(
    job: RouteJob,
    winning_bid: Bid,
    rejected_bids: Sequence[Bid],
    all_bids: Sequence[Bid],
    now: Optional[datetime] = None,
) -> RouteJob:
    """
    BIDDING -> ASSIGNED, atomically with:
    - winning bid ACTIVE -> ACCEPTED
    - every other active bid ACTIVE -> REJECTED
    - assigned_driver_id / accepted_bid_id / actual_pay set on the job
    """
    now = now or utcnow()

    # --- validate everything before touching anything ---
    check_job_transition(job, JobStatus.ASSIGNED)

    if winning_bid.job_id != job.id:
        raise InternalConsistencyError(f"Bid {winning_bid.id} does not belong to job {job.id}")

    already_accepted = [bid for bid in all_bids if bid.status == BidStatus.ACCEPTED]
    if already_accepted:
        raise InternalConsistencyError(
            f"Job {job.id} already has accepted bid {already_accepted[0].id}; refusing a second winner"
        )

    check_bid_transition(winning_bid, BidStatus.ACCEPTED)
    for bid in rejected_bids:
        if bid.job_id != job.id:
            raise InternalConsistencyError(f"Bid {bid.id} does not belong to job {job.id}")
        check_bid_transition(bid, BidStatus.REJECTED)

    decided_ids = {winning_bid.id} | {bid.id for bid in rejected_bids}
    left_over = [bid.id for bid in all_bids if bid.is_active and bid.id not in decided_ids]
    if left_over:
        raise InternalConsistencyError(f"Job {job.id} allocation left active bids undecided: {left_over}")

    # --- commit ---
    accept_bid(winning_bid, now)
    for bid in rejected_bids:
        reject_bid(bid, now)

    transition_job(job, JobStatus.ASSIGNED, now)
    job.assigned_driver_id = winning_bid.driver_id
    job.accepted_bid_id = winning_bid.id
    job.actual_pay = winning_bid.bid_amount
    job.assigned_at = now
    return job


def _check_assigned_driver(job: RouteJob, driver_id: str) -> None:
    if job.assigned_driver_id != driver_id:
        raise NotAssignedDriver(f"Driver {driver_id} is not assigned to job {job.id}")


def start_job(job: RouteJob, driver_id: str, now: Optional[datetime] = None) -> RouteJob:
    """
    ASSIGNED -> IN_PROGRESS, by the assigned driver only.
    """
    check_job_transition(job, JobStatus.IN_PROGRESS)
    _check_assigned_driver(job, driver_id)
    return transition_job(job, JobStatus.IN_PROGRESS, now)


def complete_job(job: RouteJob, driver_id: str, now: Optional[datetime] = None) -> RouteJob:
    """
    IN_PROGRESS -> COMPLETED, by the assigned driver only.
    An ASSIGNED job is started on the way, since drivers often finish without tapping "start".
    """
    if job.status != JobStatus.ASSIGNED:
        check_job_transition(job, JobStatus.COMPLETED)
    _check_assigned_driver(job, driver_id)

    if job.status == JobStatus.ASSIGNED:
        start_job(job, driver_id, now)
    return transition_job(job, JobStatus.COMPLETED, now)


def cancel_job(job: RouteJob, bids: Sequence[Bid], now: Optional[datetime] = None) -> List[Bid]:
    """
    Operator cancellation from any non-terminal status.
    Active and accepted bids become REJECTED (not WITHDRAWN, so the audit trail
    shows it was the operator). Bids the driver withdrew keep that status.
    Returns the bids that were rejected.
    """
    now = now or utcnow()
    check_job_transition(job, JobStatus.CANCELLED)

    cascaded = [bid for bid in bids if bid.status in (BidStatus.ACTIVE, BidStatus.ACCEPTED)]
    for bid in cascaded:
        check_bid_transition(bid, BidStatus.REJECTED)

    for bid in cascaded:
        reject_bid(bid, now)

    transition_job(job, JobStatus.CANCELLED, now)
    job.assigned_driver_id = None
    job.accepted_bid_id = None
    return cascaded
