"""
Purpose: Central configuration for bid allocation and the scheduler.
What it does:

Stores all tunable weights/thresholds/caps:

RATING_WEIGHT = 0.3, AVAILABILITY_WEIGHT = 0.0, PRICE_WEIGHT = 0.5, FAIRNESS_WEIGHT = 0.2

TIE_EPSILON = 0.02

MAX_JOBS_PER_WINDOW = 3 per 168 hours (rolling, not calendar weeks)

BIDDING_CUTOFF_HOURS = 12 (before the scheduled day starts)

Can be overridden from the environment (.env supported) with ALLOCATION_* variables.

Rule: No logic here, just parameters so you can tune without rewriting code.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, fields
from datetime import timedelta

from dotenv import load_dotenv


@dataclass(frozen=True)
class AllocationPolicy:
    """
    Central configuration for scoring bids and running allocation cycles.

    Notes:
    - availability is a hard filter, so availability_weight only shifts every
      surviving candidate by the same amount. It stays configurable so the
      weights still add up to 1.0 if it is ever turned into a soft signal.
    - fairness_weight is the share of the score that favours drivers with
      fewer recent wins (score term: 1 - wins / max_jobs_per_window).
    """

    # --- Score weights (must sum to 1.0) ---
    rating_weight: float = 0.3
    availability_weight: float = 0.0
    price_weight: float = 0.5
    fairness_weight: float = 0.2

    # --- Rating ---
    # Unrated drivers (rating 0) are scored as if they had this many stars,
    # so new drivers are not structurally locked out.
    neutral_rating: float = 3.5

    # --- Tie-break ---
    # Candidates within this distance of the best score are "tied";
    # fewest recent wins, then earliest bid wins among them.
    tie_epsilon: float = 0.02

    # --- Monopolization cap ---
    max_jobs_per_window: int = 3
    fairness_window_hours: float = 168.0  # 7 days

    # --- Bidding window ---
    # Bidding closes this many hours before the scheduled day starts.
    bidding_cutoff_hours: float = 12.0

    # --- Scheduler ---
    sweep_interval_seconds: float = 60.0
    lock_timeout_seconds: float = 5.0

    @property
    def fairness_window(self) -> timedelta:
        return timedelta(hours=self.fairness_window_hours)

    def validate(self) -> None:
        """
        Basic sanity checks.
        """
        weights = (self.rating_weight, self.availability_weight, self.price_weight, self.fairness_weight)
        if any(weight < 0 for weight in weights):
            raise ValueError("score weights must be >= 0")

        if not math.isclose(sum(weights), 1.0, abs_tol=1e-9):
            raise ValueError(f"score weights must sum to 1.0, got {sum(weights)}")

        if not 0 < self.neutral_rating <= 5:
            raise ValueError("neutral_rating must be within (0, 5]")

        if self.tie_epsilon < 0:
            raise ValueError("tie_epsilon must be >= 0")

        if self.max_jobs_per_window < 1:
            raise ValueError("max_jobs_per_window must be >= 1")

        if self.fairness_window_hours <= 0:
            raise ValueError("fairness_window_hours must be > 0")

        if self.bidding_cutoff_hours < 0:
            raise ValueError("bidding_cutoff_hours must be >= 0")

        if self.sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be > 0")

        if self.lock_timeout_seconds <= 0:
            raise ValueError("lock_timeout_seconds must be > 0")


def default_policy() -> AllocationPolicy:
    """
    Convenience factory for the default policy.
    """
    p = AllocationPolicy()
    p.validate()
    return p


def policy_from_env() -> AllocationPolicy:
    """
    Builds a policy from ALLOCATION_<FIELD> environment variables, e.g.
    ALLOCATION_MAX_JOBS_PER_WINDOW=4 or ALLOCATION_PRICE_WEIGHT=0.4.
    Unset variables keep their defaults.
    """
    load_dotenv()

    overrides = {}
    for policy_field in fields(AllocationPolicy):
        raw = os.getenv(f"ALLOCATION_{policy_field.name.upper()}")
        if raw is None or raw == "":
            continue
        cast = int if policy_field.type in (int, "int") else float
        overrides[policy_field.name] = cast(raw)

    p = AllocationPolicy(**overrides)
    p.validate()
    return p
