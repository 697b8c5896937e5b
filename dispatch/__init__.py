#Expose the high-level pipeline pieces:
#Bid intake (validation + recording)
#Candidate filtering (hard rules)
#Scoring / ranking
#Allocation engine (the pure decision)
#Scheduler (the periodic / forced commit loop)
#Marketplace (the "one call" entry point wiring everything)

from .policy import AllocationPolicy, default_policy, policy_from_env
from .candidate_filter import build_base_candidates
from .scoring import rank_candidates
from .engine import AllocationResult, allocate
from .fairness import AllocationRecord, FairnessTracker
from .bid_intake import BidIntake
from .scheduler import SchedulerLoop, SweepReport
from .marketplace import Marketplace

__all__ = [
    "AllocationPolicy",
    "default_policy",
    "policy_from_env",
    "build_base_candidates",
    "rank_candidates",
    "AllocationResult",
    "allocate",
    "AllocationRecord",
    "FairnessTracker",
    "BidIntake",
    "SchedulerLoop",
    "SweepReport",
    "Marketplace",
]
