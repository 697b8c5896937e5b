import pandas as pd
import numpy as np
from datetime import date, timedelta

AREAS = ["North", "South", "East", "West", "Downtown", "Airport"]

# (start, end, typical stops) per route type
ROUTE_SHAPES = [("07:00", "11:00", 35), ("09:00", "12:00", 40), ("13:00", "17:00", 45), ("08:00", "16:00", 90)]


def generate_mock_jobs(num_jobs=60, first_day=None, days=14, output_file="mock_jobs.csv", seed=None):
    """
    Generates route jobs spread over the next `days` days (Sundays skipped), with
    base pay roughly proportional to the number of stops.
    """
    rng = np.random.default_rng(seed)
    first_day = first_day or date.today() + timedelta(days=2)

    service_days = [first_day + timedelta(days=offset) for offset in range(days)]
    service_days = [day for day in service_days if day.weekday() != 6]

    data = []
    for job_index in range(num_jobs):
        start_time, end_time, stops = ROUTE_SHAPES[rng.integers(len(ROUTE_SHAPES))]
        stops = int(stops + rng.integers(-5, 6))
        hours = (pd.Timestamp(end_time) - pd.Timestamp(start_time)).seconds / 3600

        data.append({
            "job_ref": f"RJ-{str(job_index+1).zfill(4)}",
            "area": AREAS[rng.integers(len(AREAS))],
            "scheduled_date": service_days[rng.integers(len(service_days))].isoformat(),
            "start_time": start_time,
            "end_time": end_time,
            "estimated_stops": stops,
            "estimated_hours": round(hours, 2),
            "base_pay": np.round(stops * rng.uniform(1.8, 2.4), 2),
        })

    df = pd.DataFrame(data).sort_values(["scheduled_date", "start_time"])
    df.to_csv(output_file, index=False)
    print(f"Generated {num_jobs} route jobs and saved to '{output_file}'")

    print("\nJobs per area:")
    for area, count in df['area'].value_counts().items():
        print(f"  {area}: {count} jobs")
    return df


if __name__ == "__main__":
    generate_mock_jobs()
