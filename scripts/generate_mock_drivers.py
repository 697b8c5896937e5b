import csv
import random

WEEKDAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]

# Shift patterns drivers commonly declare on the team portal
SHIFTS = [("06:00", "14:00"), ("08:00", "17:00"), ("12:00", "20:00"), ("07:00", "19:00")]


def generate_mock_drivers(filename="mock_drivers.csv", count=40, seed=None):
    rng = random.Random(seed)

    with open(filename, mode='w', newline='') as file:
        writer = csv.writer(file)
        writer.writerow(["driver_id", "rating", "status", "days", "start_time", "end_time"])

        for i in range(count):
            driver_id = f"DRV-{str(i+1).zfill(3)}"

            # ~10% of drivers are new and have no rating yet
            rating = 0.0 if rng.random() < 0.1 else round(rng.uniform(2.5, 5.0), 1)

            # 90% active, 10% paused their account
            status = "active" if rng.random() < 0.9 else "inactive"

            days = sorted(rng.sample(WEEKDAYS, rng.randint(2, 5)), key=WEEKDAYS.index)
            start_time, end_time = rng.choice(SHIFTS)

            writer.writerow([driver_id, rating, status, "|".join(days), start_time, end_time])

    print(f"Successfully generated {count} mock drivers into '{filename}'.")


if __name__ == "__main__":
    generate_mock_drivers()
