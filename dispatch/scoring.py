#Purpose: Ranking/selection model (the "who is best" layer).
#Takes candidates (already eligible) + features (price, rating snapshot, fairness)
#Produces:
#a score per bid with its components (for audit)
#the single winner, picked deterministically
#Typical responsibilities:
#weighted scoring function
#tie-breaking rules (deterministic)
#fairness (favour fewer recent wins among near-equal bids)
#Output: scored bids + winner. No state changes here.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Sequence

from drivers.models import MAX_RATING
from jobs.models import Bid

from .fairness import AllocationRecord
from .policy import AllocationPolicy

# Float noise allowance when comparing scores against the tie epsilon
_SCORE_TOLERANCE = 1e-9


@dataclass(frozen=True)
class ScoredBid:
    """
    A bid with its computed composite score and the parts it was built from.
    """
    bid: Bid
    rating_norm: float
    availability_match: float
    price_score: float
    fairness_score: float
    score: float
    wins_in_window: int = 0

    @property
    def tie_break_key(self):
        # fewest recent wins, then first come, then id for a total order
        return (self.wins_in_window, self.bid.created_at, self.bid.id)


def rating_norm(rating: float, policy: AllocationPolicy) -> float:
    """
    rating / 5, with unrated (0) drivers scored at the neutral default.
    """
    if rating <= 0:
        rating = policy.neutral_rating
    return min(rating, MAX_RATING) / MAX_RATING


def price_scores(bids: Sequence[Bid]) -> Dict[str, float]:
    """
    Lower bid => higher score, relative to the other candidates of the same job:
        clamp(1 - (amount - min) / max(1, max - min), 0, 1)
    When every amount is equal all bids score 1.
    """
    if not bids:
        return {}

    amounts = [bid.bid_amount for bid in bids]
    lowest = min(amounts)
    spread = max(Decimal(1), max(amounts) - lowest)

    scores = {}
    for bid in bids:
        raw = 1 - float((bid.bid_amount - lowest) / spread)
        scores[bid.id] = min(1.0, max(0.0, raw))
    return scores


def fairness_score(wins_in_window: int, policy: AllocationPolicy) -> float:
    """
    0 wins => 1.0, at the cap => 0.0.
    """
    cap = policy.max_jobs_per_window
    return 1.0 - min(wins_in_window, cap) / cap


def score_bids(
    bids: Sequence[Bid],
    fairness_snapshot: Mapping[str, AllocationRecord],
    policy: AllocationPolicy,
) -> List[ScoredBid]:
    """
    Scores every candidate bid. `bids` must already have passed the candidate filter:
    availability is a hard gate there, so availability_match is always 1 here.
    """
    prices = price_scores(bids)

    scored: List[ScoredBid] = []
    for bid in bids:
        record = fairness_snapshot.get(bid.driver_id)
        wins = record.jobs_won_in_window if record else 0

        rating = rating_norm(bid.driver_rating_at_bid, policy)
        availability = 1.0
        price = prices[bid.id]
        fairness = fairness_score(wins, policy)

        total = (
            policy.rating_weight * rating
            + policy.availability_weight * availability
            + policy.price_weight * price
            + policy.fairness_weight * fairness
        )
        scored.append(ScoredBid(
            bid=bid,
            rating_norm=rating,
            availability_match=availability,
            price_score=price,
            fairness_score=fairness,
            score=total,
            wins_in_window=wins,
        ))
    return scored


def rank_candidates(scored: Sequence[ScoredBid]) -> List[ScoredBid]:
    """
    Best first: score descending, then the tie-break key.
    """
    return sorted(scored, key=lambda s: (-s.score, s.tie_break_key))


def pick_winner(scored: Sequence[ScoredBid], policy: AllocationPolicy) -> Optional[ScoredBid]:
    """
    Among bids within tie_epsilon of the best score, the driver with the fewest
    wins in the window wins; still tied, the earliest bid wins.
    """
    if not scored:
        return None

    best = max(s.score for s in scored)
    threshold = best - policy.tie_epsilon - _SCORE_TOLERANCE
    contenders = [s for s in scored if s.score >= threshold]
    return min(contenders, key=lambda s: s.tie_break_key)
