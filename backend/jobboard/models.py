from django.db import models

from drivers.availability import parse_availability
from drivers.models import Driver, DriverStatus
from jobs.models import Bid, BidStatus, JobStatus, RouteJob

FAIRNESS_GUARD_ID = 1


class DriverProfile(models.Model):
    """
    Marketplace copy of a contractor driver, written by the account side.
    availability holds [weekday, "HH:MM:SS", "HH:MM:SS"] triples (0 = Monday).
    """
    class Status(models.TextChoices):
        ACTIVE = DriverStatus.ACTIVE.value, "Active"
        INACTIVE = DriverStatus.INACTIVE.value, "Inactive"

    id = models.CharField(max_length=64, primary_key=True)
    rating = models.FloatField(default=0.0)
    availability = models.JSONField(default=list)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Driver {self.id} ({self.status})"

    @staticmethod
    def availability_json(windows):
        return [
            [window.weekday, window.start.isoformat(), window.end.isoformat()]
            for window in sorted(windows)
        ]

    @classmethod
    def fields_from(cls, driver: Driver):
        return {
            "rating": driver.rating,
            "availability": cls.availability_json(driver.availability),
            "status": driver.status.value,
        }

    def to_driver(self) -> Driver:
        return Driver(
            id=self.id,
            rating=self.rating,
            availability=parse_availability(self.availability),
            status=DriverStatus(self.status),
        )


class RouteJobRecord(models.Model):
    """
    Central row of the marketplace. Rows are only written through
    jobboard.stores.DatabaseJobStore, inside a locked job transaction.
    """
    class Status(models.TextChoices):
        OPEN = JobStatus.OPEN.value, "Open"
        BIDDING = JobStatus.BIDDING.value, "Bidding"
        ASSIGNED = JobStatus.ASSIGNED.value, "Assigned"
        IN_PROGRESS = JobStatus.IN_PROGRESS.value, "In progress"
        COMPLETED = JobStatus.COMPLETED.value, "Completed"
        CANCELLED = JobStatus.CANCELLED.value, "Cancelled"

    id = models.CharField(max_length=36, primary_key=True)
    area = models.CharField(max_length=255)
    scheduled_date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()
    bidding_deadline = models.DateTimeField(db_index=True)

    base_pay = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    estimated_stops = models.PositiveIntegerField(null=True, blank=True)
    estimated_hours = models.DecimalField(max_digits=6, decimal_places=2, null=True, blank=True)
    title = models.CharField(max_length=255, blank=True)
    notes = models.TextField(null=True, blank=True)

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.OPEN, db_index=True)
    # Set only once a bid has been accepted
    assigned_driver_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    accepted_bid_id = models.CharField(max_length=36, null=True, blank=True)
    actual_pay = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)

    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()
    assigned_at = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return f"Job {self.id} - {self.status}"

    @staticmethod
    def fields_from(job: RouteJob):
        return {
            "area": job.area,
            "scheduled_date": job.scheduled_date,
            "start_time": job.start_time,
            "end_time": job.end_time,
            "bidding_deadline": job.bidding_deadline,
            "base_pay": job.base_pay,
            "estimated_stops": job.estimated_stops,
            "estimated_hours": job.estimated_hours,
            "title": job.title,
            "notes": job.notes,
            "status": job.status.value,
            "assigned_driver_id": job.assigned_driver_id,
            "accepted_bid_id": job.accepted_bid_id,
            "actual_pay": job.actual_pay,
            "created_at": job.created_at,
            "updated_at": job.updated_at,
            "assigned_at": job.assigned_at,
        }

    def to_job(self) -> RouteJob:
        return RouteJob(
            id=self.id,
            area=self.area,
            scheduled_date=self.scheduled_date,
            start_time=self.start_time,
            end_time=self.end_time,
            bidding_deadline=self.bidding_deadline,
            base_pay=self.base_pay,
            estimated_stops=self.estimated_stops,
            estimated_hours=self.estimated_hours,
            title=self.title,
            notes=self.notes,
            status=JobStatus(self.status),
            assigned_driver_id=self.assigned_driver_id,
            accepted_bid_id=self.accepted_bid_id,
            actual_pay=self.actual_pay,
            created_at=self.created_at,
            updated_at=self.updated_at,
            assigned_at=self.assigned_at,
        )


class BidRecord(models.Model):
    class Status(models.TextChoices):
        ACTIVE = BidStatus.ACTIVE.value, "Active"
        WITHDRAWN = BidStatus.WITHDRAWN.value, "Withdrawn"
        ACCEPTED = BidStatus.ACCEPTED.value, "Accepted"
        REJECTED = BidStatus.REJECTED.value, "Rejected"

    id = models.CharField(max_length=36, primary_key=True)
    job = models.ForeignKey(RouteJobRecord, on_delete=models.CASCADE, related_name='bids')
    driver_id = models.CharField(max_length=64, db_index=True)
    bid_amount = models.DecimalField(max_digits=10, decimal_places=2)
    # Snapshot taken when the bid was placed
    driver_rating_at_bid = models.FloatField()
    message = models.TextField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE, db_index=True)

    created_at = models.DateTimeField()
    # An accepted bid's decided_at is the time of the win the fairness window counts
    decided_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"Bid {self.id} by {self.driver_id} - {self.status}"

    @staticmethod
    def fields_from(bid: Bid):
        return {
            "job_id": bid.job_id,
            "driver_id": bid.driver_id,
            "bid_amount": bid.bid_amount,
            "driver_rating_at_bid": bid.driver_rating_at_bid,
            "message": bid.message,
            "status": bid.status.value,
            "created_at": bid.created_at,
            "decided_at": bid.decided_at,
        }

    def to_bid(self) -> Bid:
        return Bid(
            id=self.id,
            job_id=self.job_id,
            driver_id=self.driver_id,
            bid_amount=self.bid_amount,
            driver_rating_at_bid=self.driver_rating_at_bid,
            message=self.message,
            status=BidStatus(self.status),
            created_at=self.created_at,
            decided_at=self.decided_at,
        )


class FairnessGuard(models.Model):
    """
    Single row, locked with select_for_update() around every fairness
    read-decide-write so two processes cannot both give a driver their last slot.
    """
    id = models.PositiveSmallIntegerField(primary_key=True, default=FAIRNESS_GUARD_ID)

    def __str__(self):
        return "Fairness guard"
