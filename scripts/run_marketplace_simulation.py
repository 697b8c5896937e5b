import csv
import logging
import os
import random
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import List

import pandas as pd

from dispatch.marketplace import Marketplace
from dispatch.policy import policy_from_env
from drivers.models import Driver
from jobs.errors import MarketplaceError
from jobs.models import JobStatus

from generate_mock_drivers import generate_mock_drivers
from generate_mock_jobs import generate_mock_jobs

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

CENT = Decimal("0.01")


def load_drivers(filepath) -> List[Driver]:
    drivers = []
    with open(filepath, 'r') as file:
        reader = csv.DictReader(file)
        for row in reader:
            drivers.append(
                Driver.new(
                    row['driver_id'],
                    rating=row['rating'],
                    availability={
                        "days": row['days'].split("|"),
                        "start_time": row['start_time'],
                        "end_time": row['end_time'],
                    },
                    status=row['status'],
                )
            )
    return drivers


def load_jobs(filepath) -> pd.DataFrame:
    return pd.read_csv(filepath, dtype={"job_ref": str, "scheduled_date": str, "start_time": str, "end_time": str})


def run_simulation(bid_probability=0.35, withdraw_probability=0.05, seed=7):
    print("=== STARTING ROUTE JOB MARKETPLACE SIMULATION ===")
    logging.basicConfig(level=logging.WARNING)
    rng = random.Random(seed)

    # 1. Load (or create) data
    drivers_path = os.path.join(BASE_DIR, "mock_drivers.csv")
    jobs_path = os.path.join(BASE_DIR, "mock_jobs.csv")
    if not os.path.exists(drivers_path):
        generate_mock_drivers(drivers_path, seed=seed)
    if not os.path.exists(jobs_path):
        generate_mock_jobs(output_file=jobs_path, seed=seed)

    drivers = load_drivers(drivers_path)
    jobs_df = load_jobs(jobs_path)
    print(f"Loaded {len(jobs_df)} route jobs and {len(drivers)} drivers.\n")

    # 2. Post every job a week ahead of the first service day (simulated clock)
    marketplace = Marketplace(policy=policy_from_env())
    for driver in drivers:
        marketplace.register_driver(driver)

    first_day = date.fromisoformat(jobs_df['scheduled_date'].min())
    opened_at = datetime.combine(first_day - timedelta(days=7), time(9, 0))

    job_refs = {}
    for row in jobs_df.itertuples(index=False):
        job = marketplace.create_job(
            area=row.area,
            scheduled_date=row.scheduled_date,
            start_time=row.start_time,
            end_time=row.end_time,
            base_pay=round(row.base_pay, 2),
            estimated_stops=int(row.estimated_stops),
            estimated_hours=row.estimated_hours,
            title=f"{row.job_ref} {row.area}",
            now=opened_at,
        )
        job_refs[job.id] = row.job_ref

    # 3. Drivers bid (some on jobs they can't actually cover, like in real life)
    placed = rejected_at_intake = withdrawn = 0
    for job in marketplace.list_open_jobs():
        for driver in drivers:
            if rng.random() > bid_probability:
                continue

            amount = (job.base_pay * Decimal(str(rng.uniform(0.8, 1.15)))).quantize(CENT)
            bid_time = opened_at + timedelta(minutes=rng.randint(0, 60 * 24 * 3))
            try:
                bid = marketplace.place_bid(job.id, driver.id, amount, now=bid_time)
            except MarketplaceError:
                rejected_at_intake += 1
                continue
            placed += 1

            if rng.random() < withdraw_probability:
                marketplace.withdraw_bid(bid.id, driver.id, now=bid_time + timedelta(hours=1))
                withdrawn += 1

    print(f"Bids placed: {placed} (withdrawn: {withdrawn}, refused at intake: {rejected_at_intake})")

    # 4. Sweep right after each bidding deadline, in order, so the fairness window rolls
    deadlines = sorted({job.bidding_deadline for job in marketplace.job_store.jobs()})
    print(f"Running {len(deadlines)} scheduler sweeps...")
    for deadline in deadlines:
        report = marketplace.sweep(deadline + timedelta(minutes=1))
        if report.processed:
            print(
                f"  [{report.now.isoformat()}] assigned={len(report.assigned)} "
                f"no_winner={len(report.no_winner)} failed={len(report.failed)}"
            )

    # 5. Report
    rows = []
    for job in marketplace.job_store.jobs():
        bids = marketplace.job_bids(job.id)
        rows.append({
            "job_ref": job_refs[job.id],
            "job_id": job.id,
            "scheduled_date": job.scheduled_date.isoformat(),
            "area": job.area,
            "status": job.status.value,
            "bids": len(bids),
            "base_pay": job.base_pay,
            "assigned_driver_id": job.assigned_driver_id or "NONE",
            "actual_pay": job.actual_pay,
        })

    results = pd.DataFrame(rows).sort_values(["scheduled_date", "job_ref"])
    output_path = os.path.join(BASE_DIR, "allocation_results.csv")
    results.to_csv(output_path, index=False)

    assigned = results[results['status'] == JobStatus.ASSIGNED.value]
    print("\n=== SIMULATION COMPLETE ===")
    print(f"Jobs assigned: {len(assigned)} / {len(results)}")
    if len(assigned):
        savings = (assigned['base_pay'].astype(float) - assigned['actual_pay'].astype(float)).sum()
        print(f"Paid vs. base pay: {savings:+.2f} saved across assigned jobs")
        print("\nWins per driver (top 10):")
        for driver_id, count in assigned['assigned_driver_id'].value_counts().head(10).items():
            print(f"  {driver_id}: {count}")
    print(f"Results written to '{output_path}'.")


if __name__ == "__main__":
    run_simulation()
