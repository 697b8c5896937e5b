#Purpose: Non-scoring hard eligibility filtering (rule gates).
#Builds the base candidate set before scoring.
#Typical responsibilities:
#bid is still active
#driver record exists and is active
#availability covers the job's weekday + whole time window
#monopolization cap (max wins in the rolling fairness window)

#Output: "rule-qualified bids" (still not ranked) + why the others were dropped.
#A filtered bid is not withdrawn or rejected here; it just cannot win this cycle.

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping, Sequence

from drivers.models import Driver
from jobs.models import Bid, RouteJob

from .fairness import AllocationRecord
from .policy import AllocationPolicy


class ExclusionReason(str, Enum):
    NOT_ACTIVE = "bid_not_active"
    UNKNOWN_DRIVER = "unknown_driver"
    DRIVER_INACTIVE = "driver_inactive"
    UNAVAILABLE = "availability_mismatch"
    FAIRNESS_CAP = "fairness_cap_reached"


@dataclass(frozen=True)
class CandidateSet:
    eligible: List[Bid]
    excluded: Dict[str, ExclusionReason]  # bid_id -> reason


def exclusion_reason(
    job: RouteJob,
    bid: Bid,
    driver: Driver | None,
    record: AllocationRecord | None,
    policy: AllocationPolicy,
) -> ExclusionReason | None:
    """
    First rule the bid fails, or None if it may compete.
    """
    if not bid.is_active:
        return ExclusionReason.NOT_ACTIVE

    if driver is None:
        return ExclusionReason.UNKNOWN_DRIVER

    if not driver.is_active:
        return ExclusionReason.DRIVER_INACTIVE

    # a driver who cannot work the slot must not win it, whatever the price
    if not driver.covers(job.weekday, job.start_time, job.end_time):
        return ExclusionReason.UNAVAILABLE

    wins = record.jobs_won_in_window if record else 0
    if wins >= policy.max_jobs_per_window:
        return ExclusionReason.FAIRNESS_CAP

    return None


def build_base_candidates(
    job: RouteJob,
    bids: Sequence[Bid],
    drivers: Mapping[str, Driver],
    fairness_snapshot: Mapping[str, AllocationRecord],
    policy: AllocationPolicy,
) -> CandidateSet:
    eligible: List[Bid] = []
    excluded: Dict[str, ExclusionReason] = {}

    for bid in bids:
        reason = exclusion_reason(
            job,
            bid,
            drivers.get(bid.driver_id),
            fairness_snapshot.get(bid.driver_id),
            policy,
        )
        if reason is None:
            eligible.append(bid)
        else:
            excluded[bid.id] = reason

    return CandidateSet(eligible=eligible, excluded=excluded)
