"""
Purpose: Domain models for the route job marketplace.
What it does:
- Defines core data structures:
- RouteJob (a route an operator posts for contractor drivers to bid on)
- Bid (a driver's priced offer to run one RouteJob)

Defines enums:
- JobStatus = OPEN | BIDDING | ASSIGNED | IN_PROGRESS | COMPLETED | CANCELLED
- BidStatus = ACTIVE | WITHDRAWN | ACCEPTED | REJECTED

Rule: No locking, no allocation logic. Models only.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
import uuid


class JobStatus(str, Enum):
    OPEN = "open"
    BIDDING = "bidding"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BidStatus(str, Enum):
    ACTIVE = "active"
    WITHDRAWN = "withdrawn"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


# Statuses in which a job must carry an assigned driver and an accepted bid
ASSIGNED_STATUSES = frozenset({JobStatus.ASSIGNED, JobStatus.IN_PROGRESS, JobStatus.COMPLETED})

BIDDABLE_STATUSES = frozenset({JobStatus.OPEN, JobStatus.BIDDING})

TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.CANCELLED})


def utcnow() -> datetime:
    """
    Current time as naive UTC, the form every marketplace timestamp is stored in.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass
class RouteJob:
    """
    A route posted by an operator. Drivers bid on it until bidding_deadline,
    after which the scheduler picks exactly one winner.
    """
    id: str
    area: str
    scheduled_date: date
    start_time: time
    end_time: time
    bidding_deadline: datetime

    base_pay: Optional[Decimal] = None  # reference price shown to drivers
    estimated_stops: Optional[int] = None
    estimated_hours: Optional[Decimal] = None
    title: str = ""
    notes: Optional[str] = None

    status: JobStatus = JobStatus.OPEN
    assigned_driver_id: Optional[str] = None
    accepted_bid_id: Optional[str] = None
    actual_pay: Optional[Decimal] = None  # winning bid amount

    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    assigned_at: Optional[datetime] = None

    @property
    def weekday(self) -> int:
        return self.scheduled_date.weekday()

    def is_past_deadline(self, now: datetime) -> bool:
        return now >= self.bidding_deadline

    @staticmethod
    def deadline_for(scheduled_date: date, cutoff_hours: float) -> datetime:
        """
        Bidding closes `cutoff_hours` before the start of the scheduled day.
        """
        return datetime.combine(scheduled_date, time.min) - timedelta(hours=cutoff_hours)

    @staticmethod
    def new(
        area: str,
        scheduled_date: date,
        start_time: time,
        end_time: time,
        *,
        cutoff_hours: float,
        base_pay: Optional[Decimal] = None,
        estimated_stops: Optional[int] = None,
        estimated_hours: Optional[Decimal] = None,
        title: str = "",
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> RouteJob:
        if end_time <= start_time:
            raise ValueError(f"Job must end after it starts ({start_time} - {end_time})")

        now = now or utcnow()
        return RouteJob(
            id=str(uuid.uuid4()),
            area=area,
            scheduled_date=scheduled_date,
            start_time=start_time,
            end_time=end_time,
            bidding_deadline=RouteJob.deadline_for(scheduled_date, cutoff_hours),
            base_pay=base_pay,
            estimated_stops=estimated_stops,
            estimated_hours=estimated_hours,
            title=title or f"{area} route {scheduled_date.isoformat()}",
            notes=notes,
            created_at=now,
            updated_at=now,
        )


@dataclass
class Bid:
    """
    A driver's offer to run a job.
    driver_rating_at_bid is captured when the bid is placed and never recomputed.
    """
    id: str
    job_id: str
    driver_id: str
    bid_amount: Decimal
    driver_rating_at_bid: float
    message: Optional[str] = None
    status: BidStatus = BidStatus.ACTIVE

    created_at: datetime = field(default_factory=utcnow)
    decided_at: Optional[datetime] = None  # when the bid left ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status == BidStatus.ACTIVE

    @staticmethod
    def new(
        job_id: str,
        driver_id: str,
        bid_amount: Decimal,
        driver_rating_at_bid: float,
        message: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Bid:
        return Bid(
            id=str(uuid.uuid4()),
            job_id=job_id,
            driver_id=driver_id,
            bid_amount=bid_amount,
            driver_rating_at_bid=driver_rating_at_bid,
            message=message,
            created_at=now or utcnow(),
        )
