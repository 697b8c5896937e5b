"""
Bids, forced allocations and sweeps racing on the same jobs from many threads.
"""
import threading
from collections import Counter
from datetime import timedelta

from conftest import AFTER_DEADLINE, BIDDING_OPEN_AT, MONDAY, make_driver
from dispatch.marketplace import Marketplace
from jobs.errors import InvalidTransition, MarketplaceError
from jobs.models import BidStatus, JobStatus
from jobs.store import check_job_invariants

DRIVERS = [f"D{n:02d}" for n in range(20)]


def post_job(marketplace, scheduled_date=MONDAY):
    return marketplace.create_job(
        area="North",
        scheduled_date=scheduled_date,
        start_time="09:00",
        end_time="12:00",
        base_pay="100",
        now=BIDDING_OPEN_AT,
    )


def run_together(targets):
    """
    Starts every target at the same moment and returns what they raised.
    """
    barrier = threading.Barrier(len(targets))
    raised = []

    def wrap(target):
        def run():
            barrier.wait()
            try:
                target()
            except Exception as e:
                raised.append(e)
        return run

    threads = [threading.Thread(target=wrap(target)) for target in targets]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return raised


def test_many_bidders_against_racing_allocators(policy, notifier):
    marketplace = Marketplace(policy=policy, notifier=notifier)
    for driver_id in DRIVERS:
        marketplace.register_driver(make_driver(driver_id))
    job = post_job(marketplace)
    refused = []

    def bidder(driver_id, amount):
        def place():
            try:
                marketplace.place_bid(job.id, driver_id, amount, now=BIDDING_OPEN_AT)
            except MarketplaceError as e:
                refused.append(type(e).__name__)
        return place

    def until_assigned(allocate):
        def run():
            while marketplace.get_job(job.id).status != JobStatus.ASSIGNED:
                try:
                    allocate()
                except InvalidTransition:
                    # another thread assigned it first
                    return
        return run

    targets = []
    for n, driver_id in enumerate(DRIVERS):
        # every driver tries twice
        targets.append(bidder(driver_id, 70 + n))
        targets.append(bidder(driver_id, 90 + n))
    targets.append(until_assigned(lambda: marketplace.force_allocate(job.id, now=AFTER_DEADLINE)))
    targets.append(until_assigned(lambda: marketplace.force_allocate(job.id, now=AFTER_DEADLINE)))
    targets.append(until_assigned(lambda: marketplace.sweep(AFTER_DEADLINE)))

    assert run_together(targets) == []

    final = marketplace.get_job(job.id)
    bids = marketplace.job_bids(job.id)
    accepted = [bid for bid in bids if bid.status == BidStatus.ACCEPTED]

    # 1. Exactly one winner, and the job agrees with it
    assert len(accepted) == 1
    assert final.status == JobStatus.ASSIGNED
    assert final.assigned_driver_id == accepted[0].driver_id
    assert final.accepted_bid_id == accepted[0].id
    check_job_invariants(final, bids)

    # 2. No driver got two bids in, and nothing was left active
    assert max(Counter(bid.driver_id for bid in bids).values()) == 1
    assert {bid.status for bid in bids} <= {BidStatus.ACCEPTED, BidStatus.REJECTED}
    assert set(refused) <= {"DuplicateBid", "JobNotBiddable"}

    # 3. One assignment was published
    assert notifier.names().count("job.assigned") == 1


def test_cap_holds_when_two_jobs_are_allocated_at_once(policy):
    """
    A is one win short of the cap and the best bid on two jobs decided at the
    same moment. A takes one of them, never both.
    """
    for _ in range(25):
        marketplace = Marketplace(policy=policy)
        for driver_id in ("A", "B"):
            marketplace.register_driver(make_driver(driver_id))
        for days_ago in range(1, policy.max_jobs_per_window):
            marketplace.fairness.record_win("A", AFTER_DEADLINE - timedelta(days=days_ago))

        # only the first one is past its deadline, so the sweep competes for it
        jobs = [post_job(marketplace), post_job(marketplace, MONDAY + timedelta(days=7))]
        for job in jobs:
            marketplace.place_bid(job.id, "A", 80, now=BIDDING_OPEN_AT)
            marketplace.place_bid(job.id, "B", 95, now=BIDDING_OPEN_AT)

        def force(job):
            def run():
                try:
                    marketplace.force_allocate(job.id, now=AFTER_DEADLINE)
                except InvalidTransition:
                    # the sweep got there first
                    pass
            return run

        targets = [force(job) for job in jobs] + [lambda: marketplace.sweep(AFTER_DEADLINE)]
        assert run_together(targets) == []

        assert marketplace.wins_in_window("A", AFTER_DEADLINE) == policy.max_jobs_per_window
        assert sorted(marketplace.get_job(job.id).assigned_driver_id for job in jobs) == ["A", "B"]
