from datetime import date, datetime, time

import pytest

from dispatch.marketplace import Marketplace
from dispatch.policy import default_policy
from drivers.availability import windows_for_days
from drivers.models import Driver, DriverStatus

# 2026-11-02 is a Monday
MONDAY = date(2026, 11, 2)
# A week before the job, well inside the bidding window
BIDDING_OPEN_AT = datetime(2026, 10, 26, 9, 0)
# Bidding closes 12h before the day starts (2026-11-01 12:00)
AFTER_DEADLINE = datetime(2026, 11, 1, 12, 30)


def make_driver(driver_id, rating=4.0, days=("Mon",), start="08:00", end="17:00", status=DriverStatus.ACTIVE):
    return Driver(
        id=driver_id,
        rating=rating,
        availability=windows_for_days(days, start, end),
        status=status,
    )


class RecordingNotifier:
    """
    Stands in for the webhook publisher and remembers what would have been sent.
    """
    def __init__(self):
        self.events = []

    def _record(self, name, *args):
        self.events.append((name, args))

    def job_created(self, job):
        self._record("job.created", job.id)

    def bid_placed(self, bid):
        self._record("bid.placed", bid.id)

    def bid_withdrawn(self, bid):
        self._record("bid.withdrawn", bid.id)

    def job_assigned(self, job, winning_bid, rejected_bids):
        self._record("job.assigned", job.id, winning_bid.id, [bid.id for bid in rejected_bids])

    def job_cancelled(self, job, rejected_bids):
        self._record("job.cancelled", job.id, [bid.id for bid in rejected_bids])

    def job_started(self, job):
        self._record("job.started", job.id)

    def job_completed(self, job):
        self._record("job.completed", job.id)

    def operator_alert(self, job_id, message):
        self._record("operator.alert", job_id, message)

    def names(self):
        return [name for name, _ in self.events]


@pytest.fixture
def policy():
    return default_policy()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def marketplace(policy, notifier):
    return Marketplace(policy=policy, notifier=notifier)


@pytest.fixture
def monday_job(marketplace):
    """
    Job J: Monday 09:00-12:00, base pay $100.
    """
    return marketplace.create_job(
        area="North",
        scheduled_date=MONDAY,
        start_time=time(9, 0),
        end_time=time(12, 0),
        base_pay="100.00",
        estimated_stops=40,
        estimated_hours="3",
        now=BIDDING_OPEN_AT,
    )
