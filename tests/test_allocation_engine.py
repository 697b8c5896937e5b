import random
from datetime import time, timedelta
from decimal import Decimal

import pytest

from conftest import BIDDING_OPEN_AT, MONDAY, make_driver
from dispatch.candidate_filter import ExclusionReason
from dispatch.engine import allocate
from dispatch.fairness import AllocationRecord
from dispatch.policy import AllocationPolicy
from dispatch.scoring import pick_winner, price_scores, rating_norm, score_bids
from jobs.models import Bid, BidStatus, RouteJob


def make_job():
    return RouteJob.new(
        area="North",
        scheduled_date=MONDAY,
        start_time=time(9, 0),
        end_time=time(12, 0),
        cutoff_hours=12,
        base_pay=Decimal("100"),
        now=BIDDING_OPEN_AT,
    )


def make_bid(job, driver, amount, minutes_after_open=0):
    return Bid.new(
        job_id=job.id,
        driver_id=driver.id,
        bid_amount=Decimal(str(amount)),
        driver_rating_at_bid=driver.rating,
        now=BIDDING_OPEN_AT + timedelta(minutes=minutes_after_open),
    )


def record(driver_id, wins):
    return AllocationRecord(driver_id=driver_id, window_start=BIDDING_OPEN_AT - timedelta(days=7), jobs_won_in_window=wins)


def test_price_beats_rating_under_default_weights(policy):
    """
    Job J (Mon 9-12): A $90 / 4.5, B $80 / 3.0, C $70 / 5.0 but not available Monday.
    C is filtered out, B's price edge outweighs A's rating edge, B wins.
    """
    job = make_job()
    driver_a = make_driver("A", rating=4.5, days=["Mon"], start="09:00", end="12:00")
    driver_b = make_driver("B", rating=3.0, days=["Mon"], start="09:00", end="12:00")
    driver_c = make_driver("C", rating=5.0, days=["Tue", "Wed"], start="09:00", end="12:00")
    drivers = {d.id: d for d in (driver_a, driver_b, driver_c)}

    bid_a = make_bid(job, driver_a, 90, 1)
    bid_b = make_bid(job, driver_b, 80, 2)
    bid_c = make_bid(job, driver_c, 70, 3)

    result = allocate(job, [bid_a, bid_b, bid_c], {}, drivers, policy)

    # 1. B wins
    assert result.winning_bid is bid_b

    # 2. C never competed, A lost on score
    assert result.excluded == {bid_c.id: ExclusionReason.UNAVAILABLE}
    assert [scored.bid.id for scored in result.ranking] == [bid_b.id, bid_a.id]

    # 3. Every other active bid is handed back for rejection
    assert {bid.id for bid in result.rejected_bids} == {bid_a.id, bid_c.id}

    # 4. The engine is pure: nothing was mutated
    assert all(bid.status == BidStatus.ACTIVE for bid in (bid_a, bid_b, bid_c))


def test_availability_is_a_hard_filter_not_a_penalty(policy):
    """
    The cheapest, best-rated bid still loses when the driver cannot cover the whole slot.
    """
    job = make_job()
    # covers Monday but only until 11:00, job runs until 12:00
    partial = make_driver("partial", rating=5.0, days=["Mon"], start="08:00", end="11:00")
    full = make_driver("full", rating=1.0, days=["Mon"], start="08:00", end="17:00")

    cheap = make_bid(job, partial, 10)
    pricey = make_bid(job, full, 500)

    result = allocate(job, [cheap, pricey], {}, {d.id: d for d in (partial, full)}, policy)

    assert result.winning_bid is pricey
    assert result.excluded[cheap.id] == ExclusionReason.UNAVAILABLE


def test_driver_at_cap_is_skipped_for_next_best(policy):
    """
    Driver D already won max_jobs_per_window jobs and has the top bid on Job K;
    Driver E scores slightly lower with zero wins. E wins.
    """
    job = make_job()
    driver_d = make_driver("D", rating=5.0)
    driver_e = make_driver("E", rating=4.5)
    bid_d = make_bid(job, driver_d, 70)
    bid_e = make_bid(job, driver_e, 75)

    snapshot = {"D": record("D", policy.max_jobs_per_window), "E": record("E", 0)}
    result = allocate(job, [bid_d, bid_e], snapshot, {"D": driver_d, "E": driver_e}, policy)

    assert result.winning_bid is bid_e
    assert result.excluded[bid_d.id] == ExclusionReason.FAIRNESS_CAP
    assert result.rejected_bids == [bid_d]


def test_cap_emptying_the_candidate_set_means_no_winner(policy):
    job = make_job()
    driver = make_driver("solo")
    bid = make_bid(job, driver, 60)

    result = allocate(job, [bid], {"solo": record("solo", 3)}, {"solo": driver}, policy)

    assert not result.has_winner
    # bids stay in play for the next cycle
    assert result.rejected_bids == []
    assert result.excluded == {bid.id: ExclusionReason.FAIRNESS_CAP}


def test_no_bids_means_no_winner(policy):
    result = allocate(make_job(), [], {}, {}, policy)
    assert result.winning_bid is None
    assert result.rejected_bids == []


def test_inactive_and_unknown_drivers_cannot_win(policy):
    job = make_job()
    inactive = make_driver("inactive", status="inactive")
    ghost_bid = Bid.new(job.id, "ghost", Decimal("50"), 4.0, now=BIDDING_OPEN_AT)
    inactive_bid = make_bid(job, inactive, 55)

    result = allocate(job, [ghost_bid, inactive_bid], {}, {"inactive": inactive}, policy)

    assert not result.has_winner
    assert result.excluded == {
        ghost_bid.id: ExclusionReason.UNKNOWN_DRIVER,
        inactive_bid.id: ExclusionReason.DRIVER_INACTIVE,
    }


def test_near_tie_goes_to_driver_with_fewer_wins():
    """
    Within epsilon of the best score, fewest wins in the window beats a slightly better score.
    """
    policy = AllocationPolicy(rating_weight=0.5, price_weight=0.5, fairness_weight=0.0)
    job = make_job()
    busy = make_driver("busy", rating=4.0)
    fresh = make_driver("fresh", rating=4.0)

    busy_bid = make_bid(job, busy, "80.00", 0)
    fresh_bid = make_bid(job, fresh, "80.02", 5)
    snapshot = {"busy": record("busy", 1), "fresh": record("fresh", 0)}

    result = allocate(job, [busy_bid, fresh_bid], snapshot, {"busy": busy, "fresh": fresh}, policy)

    # busy scores 0.90, fresh 0.89: tied within 0.02
    assert result.ranking[0].bid is busy_bid
    assert result.winning_bid is fresh_bid


def test_clear_score_gap_is_not_a_tie():
    policy = AllocationPolicy(rating_weight=0.5, price_weight=0.5, fairness_weight=0.0)
    job = make_job()
    busy = make_driver("busy", rating=4.0)
    fresh = make_driver("fresh", rating=4.0)

    busy_bid = make_bid(job, busy, "80.00")
    fresh_bid = make_bid(job, fresh, "80.10")
    snapshot = {"busy": record("busy", 1), "fresh": record("fresh", 0)}

    result = allocate(job, [busy_bid, fresh_bid], snapshot, {"busy": busy, "fresh": fresh}, policy)

    assert result.winning_bid is busy_bid


def test_full_tie_goes_to_earliest_bid(policy):
    job = make_job()
    drivers = [make_driver(f"driver_{i}", rating=4.0) for i in range(4)]
    # identical amounts and ratings, driver_2 bid first
    bids = [make_bid(job, driver, 85, minutes_after_open=10 - i if i == 2 else 20 + i) for i, driver in enumerate(drivers)]

    result = allocate(job, bids, {}, {d.id: d for d in drivers}, policy)

    assert result.winning_bid.driver_id == "driver_2"


def test_same_inputs_always_pick_same_winner(policy):
    """
    No randomness: shuffling the input order never changes the decision.
    """
    job = make_job()
    drivers = [make_driver(f"driver_{i}", rating=3.0 + (i % 3) * 0.5) for i in range(12)]
    bids = [make_bid(job, driver, 70 + (i * 7) % 15, i % 4) for i, driver in enumerate(drivers)]
    by_id = {d.id: d for d in drivers}
    snapshot = {d.id: record(d.id, i % 3) for i, d in enumerate(drivers)}

    expected = allocate(job, bids, snapshot, by_id, policy).winning_bid.id

    shuffler = random.Random(7)
    for _ in range(20):
        shuffled = list(bids)
        shuffler.shuffle(shuffled)
        assert allocate(job, shuffled, snapshot, by_id, policy).winning_bid.id == expected


def test_price_scores_are_relative_to_candidates():
    job = make_job()
    driver = make_driver("x")
    low, mid, high = make_bid(job, driver, 80), make_bid(job, driver, 85), make_bid(job, driver, 90)

    scores = price_scores([low, mid, high])

    assert scores[low.id] == pytest.approx(1.0)
    assert scores[mid.id] == pytest.approx(0.5)
    assert scores[high.id] == pytest.approx(0.0)


def test_equal_amounts_all_score_one():
    job = make_job()
    driver = make_driver("x")
    bids = [make_bid(job, driver, 42) for _ in range(3)]
    assert set(price_scores(bids).values()) == {1.0}


def test_small_spread_uses_one_dollar_floor():
    job = make_job()
    driver = make_driver("x")
    low, high = make_bid(job, driver, "80.00"), make_bid(job, driver, "80.50")

    scores = price_scores([low, high])

    # max(1, 0.50) = 1 -> 1 - 0.5
    assert scores[high.id] == pytest.approx(0.5)


def test_unrated_driver_gets_neutral_rating(policy):
    assert rating_norm(0.0, policy) == pytest.approx(policy.neutral_rating / 5.0)
    assert rating_norm(4.5, policy) == pytest.approx(0.9)


def test_score_uses_rating_snapshot_not_live_rating(policy):
    job = make_job()
    driver = make_driver("snap", rating=5.0)
    bid = Bid.new(job.id, driver.id, Decimal("80"), driver_rating_at_bid=2.5, now=BIDDING_OPEN_AT)

    [scored] = score_bids([bid], {}, policy)

    assert scored.rating_norm == pytest.approx(0.5)
    assert scored.score == pytest.approx(0.3 * 0.5 + 0.5 * 1.0 + 0.2 * 1.0)


def test_pick_winner_of_nothing_is_none(policy):
    assert pick_winner([], policy) is None
