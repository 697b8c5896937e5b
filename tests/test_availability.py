from datetime import time

import pytest

from drivers.availability import AvailabilityWindow, parse_availability, parse_time_of_day, parse_weekday
from drivers.models import Driver, DriverStatus


def test_portal_json_shape():
    windows = parse_availability('{"days": ["Mon", "Wed"], "start_time": "09:00", "end_time": "12:00"}')

    assert windows == frozenset({
        AvailabilityWindow(0, time(9), time(12)),
        AvailabilityWindow(2, time(9), time(12)),
    })


def test_missing_hours_use_portal_defaults():
    [window] = parse_availability({"days": ["friday"]})
    assert (window.weekday, window.start, window.end) == (4, time(8), time(17))


def test_triples_and_windows_mix():
    existing = AvailabilityWindow(6, time(10), time(14))
    windows = parse_availability([("Tue", "07:30", "15:00:00"), existing])
    assert windows == frozenset({AvailabilityWindow(1, time(7, 30), time(15)), existing})


def test_nothing_declared():
    assert parse_availability(None) == frozenset()
    assert parse_availability([]) == frozenset()


def test_window_must_contain_the_whole_slot():
    window = AvailabilityWindow(0, time(8), time(12))

    assert window.covers(0, time(9), time(12))
    assert window.covers(0, time(8), time(12))
    assert not window.covers(0, time(9), time(12, 30))
    assert not window.covers(1, time(9), time(11))


@pytest.mark.parametrize("bad", ["Funday", 7, -1])
def test_bad_weekday(bad):
    with pytest.raises(ValueError):
        parse_weekday(bad)


def test_bad_time():
    with pytest.raises(ValueError):
        parse_time_of_day("25:00")


def test_empty_window_is_invalid():
    with pytest.raises(ValueError):
        AvailabilityWindow(0, time(12), time(12))


def test_driver_factory():
    driver = Driver.new("d1", rating="4.2", availability={"days": ["Mon"]}, status="inactive")

    assert driver.rating == 4.2
    assert driver.status == DriverStatus.INACTIVE
    assert not driver.is_active
    assert driver.covers(0, time(9), time(10))

    assert not Driver.new("d2").is_rated

    with pytest.raises(ValueError):
        Driver.new("d3", rating=5.5)
