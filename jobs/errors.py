"""
Error taxonomy for the marketplace.

Validation errors (InvalidAmount, JobNotBiddable, DuplicateBid, ...) go straight
back to the caller and are never retried automatically.
LockTimeout is transient: the scheduler retries the job on its next sweep.
InternalConsistencyError means a stated invariant is broken; it aborts the
transaction and must reach an operator.
"""


class MarketplaceError(Exception):
    """Base class for every error the marketplace raises on purpose."""
    pass


class JobNotFound(MarketplaceError):
    pass


class BidNotFound(MarketplaceError):
    pass


class DriverNotFound(MarketplaceError):
    pass


class JobNotBiddable(MarketplaceError):
    """Raised when a job is in the wrong status or its bidding deadline passed."""
    pass


class DuplicateBid(MarketplaceError):
    """Raised when a driver already holds an active bid on the job."""
    pass


class InvalidAmount(MarketplaceError):
    pass


class DriverNotEligible(MarketplaceError):
    """Raised when an inactive driver tries to bid."""
    pass


class NotBidOwner(MarketplaceError):
    pass


class NotAssignedDriver(MarketplaceError):
    pass


class InvalidTransition(MarketplaceError):
    """Raised when a job or bid status change is not in the transition graph."""
    pass


class LockTimeout(MarketplaceError):
    """Raised when a job's lock could not be acquired in time."""
    pass


class InternalConsistencyError(MarketplaceError):
    """Raised when a marketplace invariant is found broken. Never corrected silently."""
    pass
