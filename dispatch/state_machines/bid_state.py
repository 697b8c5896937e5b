from datetime import datetime
from typing import Dict, FrozenSet, Optional

from jobs.errors import InvalidTransition
from jobs.models import Bid, BidStatus, utcnow

# ACCEPTED -> REJECTED only happens when an operator cancels an assigned job
BID_TRANSITIONS: Dict[BidStatus, FrozenSet[BidStatus]] = {
    BidStatus.ACTIVE: frozenset({BidStatus.WITHDRAWN, BidStatus.ACCEPTED, BidStatus.REJECTED}),
    BidStatus.ACCEPTED: frozenset({BidStatus.REJECTED}),
    BidStatus.WITHDRAWN: frozenset(),
    BidStatus.REJECTED: frozenset(),
}


def check_bid_transition(bid: Bid, target: BidStatus) -> None:
    if target not in BID_TRANSITIONS[bid.status]:
        raise InvalidTransition(f"Cannot move bid {bid.id} from {bid.status.value} to {target.value}")


def transition_bid(bid: Bid, target: BidStatus, now: Optional[datetime] = None) -> Bid:
    check_bid_transition(bid, target)
    bid.status = target
    bid.decided_at = now or utcnow()
    return bid


def withdraw_bid(bid: Bid, now: Optional[datetime] = None) -> Bid:
    """
    Driver self-withdrawal. Only an ACTIVE bid can be withdrawn.
    """
    return transition_bid(bid, BidStatus.WITHDRAWN, now)


def accept_bid(bid: Bid, now: Optional[datetime] = None) -> Bid:
    return transition_bid(bid, BidStatus.ACCEPTED, now)


def reject_bid(bid: Bid, now: Optional[datetime] = None) -> Bid:
    """
    Used both for losing bids and for operator cancellation, never for self-withdrawal,
    so audit trails can tell the two apart.
    """
    return transition_bid(bid, BidStatus.REJECTED, now)
