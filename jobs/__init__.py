"""
Route jobs domain package.

Public API:
- Domain models: RouteJob, Bid, JobStatus, BidStatus
- Storage: JobStore (per-job transactions)
- Errors: see jobs.errors
"""
from .models import RouteJob, Bid, JobStatus, BidStatus
from .store import JobStore, check_job_invariants

__all__ = [
    "RouteJob",
    "Bid",
    "JobStatus",
    "BidStatus",
    "JobStore",
    "check_job_invariants",
]
