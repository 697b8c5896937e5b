"""
Purpose: The allocation "decision" (single entry point).
What it does:

Given one job's active bids and the fairness state, decides who gets the job:

- drops bids that may not win (candidate_filter.py): availability, inactive
  drivers, drivers at the monopolization cap

- scores the rest (scoring.py): rating snapshot, price relative to the other
  candidates, recent-win fairness

- picks exactly one winner with the epsilon / fewest-wins / first-come tie-break

- returns the winner plus every other active bid as "to be rejected"

Rule: Engine is pure. It does not lock, mutate bids or record wins;
the scheduler commits its result through the job state machine.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from drivers.models import Driver
from jobs.models import Bid, RouteJob

from .candidate_filter import ExclusionReason, build_base_candidates
from .fairness import AllocationRecord
from .policy import AllocationPolicy
from .scoring import ScoredBid, pick_winner, rank_candidates, score_bids

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AllocationResult:
    """
    Output of one allocation decision. winning_bid is None for "NoWinner",
    which is a normal outcome (no bids, or nobody eligible this cycle).
    """
    job_id: str
    winning_bid: Optional[Bid]
    rejected_bids: List[Bid] = field(default_factory=list)

    # Diagnostics (audit trail / admin UI)
    ranking: List[ScoredBid] = field(default_factory=list)
    excluded: Dict[str, ExclusionReason] = field(default_factory=dict)

    @property
    def has_winner(self) -> bool:
        return self.winning_bid is not None

    @property
    def winner_score(self) -> Optional[ScoredBid]:
        if self.winning_bid is None:
            return None
        for scored in self.ranking:
            if scored.bid.id == self.winning_bid.id:
                return scored
        return None


def no_winner(job: RouteJob, excluded: Optional[Dict[str, ExclusionReason]] = None) -> AllocationResult:
    return AllocationResult(job_id=job.id, winning_bid=None, excluded=excluded or {})


def allocate(
    job: RouteJob,
    active_bids: Sequence[Bid],
    fairness_snapshot: Mapping[str, AllocationRecord],
    drivers: Mapping[str, Driver],
    policy: AllocationPolicy,
) -> AllocationResult:
    """
    Main allocation entry point (pure algorithm).

    Parameters
    ----------
    job:
        The RouteJob being decided (its weekday/time window drive the availability gate).
    active_bids:
        The job's bid set, frozen under the job lock. Non-active bids are ignored.
    fairness_snapshot:
        driver_id -> AllocationRecord, taken under the fairness lock.
    drivers:
        driver_id -> current Driver record (availability and status are read live,
        the rating comes from the bid's snapshot).
    policy:
        AllocationPolicy with weights, epsilon and the monopolization cap.

    Returns
    -------
    AllocationResult:
        winning_bid: the single winner, or None (NoWinner)
        rejected_bids: every other active bid of the job (empty on NoWinner)
    """
    if not active_bids:
        return no_winner(job)

    # 1) Hard gates
    candidates = build_base_candidates(job, active_bids, drivers, fairness_snapshot, policy)

    if not candidates.eligible:
        logger.info(
            "Job %s: no eligible candidate among %d bids (%s)",
            job.id, len(active_bids), _summarize(candidates.excluded),
        )
        return no_winner(job, candidates.excluded)

    # 2) Score and pick
    scored = score_bids(candidates.eligible, fairness_snapshot, policy)
    winner = pick_winner(scored, policy)

    # 3) Everyone else still active loses
    rejected = [bid for bid in active_bids if bid.is_active and bid.id != winner.bid.id]

    logger.info(
        "Job %s: bid %s by driver %s wins with score %.4f (%d rejected, %d filtered)",
        job.id, winner.bid.id, winner.bid.driver_id, winner.score, len(rejected), len(candidates.excluded),
    )

    return AllocationResult(
        job_id=job.id,
        winning_bid=winner.bid,
        rejected_bids=rejected,
        ranking=rank_candidates(scored),
        excluded=candidates.excluded,
    )


def _summarize(excluded: Mapping[str, ExclusionReason]) -> str:
    counts: Dict[str, int] = {}
    for reason in excluded.values():
        counts[reason.value] = counts.get(reason.value, 0) + 1
    return ", ".join(f"{reason}={count}" for reason, count in sorted(counts.items()))
