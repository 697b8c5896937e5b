"""
End-to-end walks through the marketplace: post a job, take bids, let the scheduler decide.
"""
from datetime import datetime, time, timedelta
from decimal import Decimal

from conftest import AFTER_DEADLINE, BIDDING_OPEN_AT, MONDAY, make_driver
from jobs.models import BidStatus, JobStatus


def datetime_on_monday(hour):
    return datetime.combine(MONDAY, time(hour))


def test_job_j_cheaper_bid_wins_and_unavailable_driver_loses(marketplace, monday_job, notifier):
    marketplace.register_driver(make_driver("A", rating=4.5, start="09:00", end="12:00"))
    marketplace.register_driver(make_driver("B", rating=3.0, start="09:00", end="12:00"))
    marketplace.register_driver(make_driver("C", rating=5.0, days=("Tue", "Wed"), start="09:00", end="12:00"))

    bid_a = marketplace.place_bid(monday_job.id, "A", 90, now=BIDDING_OPEN_AT)
    bid_b = marketplace.place_bid(monday_job.id, "B", 80, now=BIDDING_OPEN_AT + timedelta(minutes=1))
    bid_c = marketplace.place_bid(monday_job.id, "C", 70, now=BIDDING_OPEN_AT + timedelta(minutes=2))

    report = marketplace.sweep(AFTER_DEADLINE)

    # 1. Sweep assigned the job
    assert report.assigned == [monday_job.id]

    # 2. B won at their price
    job = marketplace.get_job(monday_job.id)
    assert job.status == JobStatus.ASSIGNED
    assert job.assigned_driver_id == "B"
    assert job.accepted_bid_id == bid_b.id
    assert job.actual_pay == Decimal("80.00")

    # 3. Everyone else lost, in the same transaction
    assert bid_b.status == BidStatus.ACCEPTED
    assert bid_a.status == BidStatus.REJECTED
    assert bid_c.status == BidStatus.REJECTED

    # 4. One assignment event listing both losers
    [assigned] = [args for name, args in notifier.events if name == "job.assigned"]
    assert assigned[0] == job.id
    assert assigned[1] == bid_b.id
    assert sorted(assigned[2]) == sorted([bid_a.id, bid_c.id])


def test_job_k_capped_driver_is_passed_over(marketplace):
    marketplace.register_driver(make_driver("D", rating=5.0))
    marketplace.register_driver(make_driver("E", rating=4.5))
    for days_ago in (1, 2, 3):
        marketplace.fairness.record_win("D", AFTER_DEADLINE - timedelta(days=days_ago))

    job = marketplace.create_job(
        area="East", scheduled_date=MONDAY, start_time="10:00", end_time="14:00", now=BIDDING_OPEN_AT,
    )
    marketplace.place_bid(job.id, "D", 70, now=BIDDING_OPEN_AT)
    marketplace.place_bid(job.id, "E", 72, now=BIDDING_OPEN_AT)

    marketplace.sweep(AFTER_DEADLINE)

    assert marketplace.get_job(job.id).assigned_driver_id == "E"
    assert marketplace.wins_in_window("D", AFTER_DEADLINE) == 3
    assert marketplace.wins_in_window("E", AFTER_DEADLINE) == 1


def test_job_l_withdrawn_back_to_open_and_not_allocated(marketplace, monday_job, notifier):
    marketplace.register_driver(make_driver("A"))
    bid = marketplace.place_bid(monday_job.id, "A", 85, now=BIDDING_OPEN_AT)
    marketplace.withdraw_bid(bid.id, "A", now=BIDDING_OPEN_AT + timedelta(days=1))

    report = marketplace.sweep(AFTER_DEADLINE)

    # OPEN jobs are not the scheduler's business
    assert report.processed == 0
    assert marketplace.get_job(monday_job.id).status == JobStatus.OPEN
    assert "job.assigned" not in notifier.names()

    # Operator forcing it anyway gets NoWinner
    assert not marketplace.force_allocate(monday_job.id, now=AFTER_DEADLINE).has_winner


def test_exactly_one_winner_among_many(marketplace, monday_job):
    for i in range(20):
        marketplace.register_driver(make_driver(f"driver_{i}", rating=2.5 + (i % 5) * 0.5))
        marketplace.place_bid(monday_job.id, f"driver_{i}", 60 + i, now=BIDDING_OPEN_AT + timedelta(minutes=i))

    marketplace.sweep(AFTER_DEADLINE)

    statuses = [bid.status for bid in marketplace.job_bids(monday_job.id)]
    assert statuses.count(BidStatus.ACCEPTED) == 1
    assert statuses.count(BidStatus.REJECTED) == 19
    assert BidStatus.ACTIVE not in statuses


def test_full_lifecycle_to_completion(marketplace, monday_job, notifier):
    marketplace.register_driver(make_driver("A"))
    marketplace.place_bid(monday_job.id, "A", 95, now=BIDDING_OPEN_AT)
    marketplace.sweep(AFTER_DEADLINE)

    marketplace.start_job(monday_job.id, "A", now=datetime_on_monday(9))
    job = marketplace.complete_job(monday_job.id, "A", now=datetime_on_monday(12))

    assert job.status == JobStatus.COMPLETED
    assert job.actual_pay == Decimal("95.00")
    assert notifier.names() == [
        "job.created", "bid.placed", "job.assigned", "job.started", "job.completed",
    ]


def test_open_jobs_listing_follows_bidding(marketplace, monday_job):
    marketplace.register_driver(make_driver("A"))
    tuesday = marketplace.create_job(
        area="West", scheduled_date=MONDAY + timedelta(days=1), start_time="13:00", end_time="17:00",
        now=BIDDING_OPEN_AT,
    )

    assert marketplace.list_open_jobs() == [monday_job, tuesday]
    assert marketplace.list_open_jobs(start_date=MONDAY + timedelta(days=1)) == [tuesday]
    assert marketplace.list_open_jobs(end_date=MONDAY) == [monday_job]

    marketplace.place_bid(monday_job.id, "A", 90, now=BIDDING_OPEN_AT)
    marketplace.sweep(AFTER_DEADLINE)

    # assigned jobs drop out of the board
    assert marketplace.list_open_jobs() == [tuesday]
