"""
Unit tests for the interval index.

Bookings are half-open: [09:00, 10:00) and [10:00, 11:00) touch but do not overlap.
"""

import pytest
from datetime import datetime, timezone

from evfleet.app.services.interval_index import Interval, IntervalIndex, ResourceKey


def at(hour, minute=0):
    return datetime(2030, 1, 7, hour, minute, tzinfo=timezone.utc)


VEHICLE = ResourceKey.vehicle(1)
OTHER_VEHICLE = ResourceKey.vehicle(2)
DRIVER = ResourceKey.driver(1)
OTHER_DRIVER = ResourceKey.driver(2)


@pytest.fixture
def index():
    idx = IntervalIndex()
    idx.insert(VEHICLE, Interval(at(9), at(10)), trip_id=1)
    idx.insert(VEHICLE, Interval(at(12), at(14)), trip_id=2)
    return idx


def test_touching_intervals_do_not_overlap(index):
    assert not index.overlaps(VEHICLE, Interval(at(10), at(11)))
    assert not index.overlaps(VEHICLE, Interval(at(8), at(9)))
    assert not index.overlaps(VEHICLE, Interval(at(10), at(12)))


def test_overlap_returns_conflicting_trip(index):
    assert index.find_overlap(VEHICLE, Interval(at(9, 30), at(11))) == 1
    assert index.find_overlap(VEHICLE, Interval(at(13), at(13, 30))) == 2
    assert index.find_overlap(VEHICLE, Interval(at(11), at(15))) == 2


def test_query_enclosing_a_stored_interval(index):
    assert index.find_overlap(VEHICLE, Interval(at(8), at(11))) == 1


def test_same_start_overlaps(index):
    assert index.find_overlap(VEHICLE, Interval(at(12), at(12, 15))) == 2


def test_exclusion_ignores_own_interval(index):
    assert not index.overlaps(VEHICLE, Interval(at(9), at(10, 30)), excluding_trip_id=1)
    # Excluding trip 2 must still see trip 1 behind it
    assert index.find_overlap(VEHICLE, Interval(at(9, 30), at(13)), excluding_trip_id=2) == 1


def test_resources_are_independent(index):
    assert not index.overlaps(OTHER_VEHICLE, Interval(at(9), at(10)))
    assert not index.overlaps(DRIVER, Interval(at(9), at(10)))


def test_remove_frees_slot(index):
    removed = index.remove(VEHICLE, 1)
    assert removed == Interval(at(9), at(10))
    assert not index.overlaps(VEHICLE, Interval(at(9), at(10)))
    assert index.remove(VEHICLE, 1) is None


def test_remove_last_interval_drops_resource():
    idx = IntervalIndex()
    idx.insert(DRIVER, Interval(at(9), at(10)), trip_id=5)
    assert DRIVER in idx
    idx.remove(DRIVER, 5)
    assert DRIVER not in idx
    assert len(idx) == 0


def test_insert_same_trip_replaces_interval(index):
    index.insert(VEHICLE, Interval(at(15), at(16)), trip_id=1)
    assert index.interval_of(VEHICLE, 1) == Interval(at(15), at(16))
    assert not index.overlaps(VEHICLE, Interval(at(9), at(10)))
    assert [trip_id for trip_id, _ in index.intervals(VEHICLE)] == [2, 1]


def test_empty_interval_rejected():
    idx = IntervalIndex()
    with pytest.raises(ValueError):
        idx.insert(VEHICLE, Interval(at(10), at(10)), trip_id=1)


def test_rebuild_replaces_contents(index):
    loaded = index.rebuild([
        (7, [OTHER_VEHICLE, DRIVER], Interval(at(8), at(9))),
    ])
    assert loaded == 1
    assert VEHICLE not in index
    assert index.find_overlap(DRIVER, Interval(at(8, 30), at(10))) == 7
    assert len(index) == 2


def test_rebuild_skips_overlapping_booking(index):
    loaded = index.rebuild([
        (1, [VEHICLE, DRIVER], Interval(at(9), at(11))),
        (2, [VEHICLE, OTHER_DRIVER], Interval(at(10), at(12))),
        (3, [OTHER_VEHICLE, DRIVER], Interval(at(10), at(10, 30))),
    ])

    assert loaded == 1
    assert index.intervals(VEHICLE) == [(1, Interval(at(9), at(11)))]
    assert OTHER_DRIVER not in index
    assert OTHER_VEHICLE not in index
    assert index.find_overlap(VEHICLE, Interval(at(10, 30), at(10, 45))) == 1


def test_many_intervals_in_order():
    idx = IntervalIndex()
    # Inserted out of order
    for trip_id, hour in [(3, 15), (1, 9), (4, 18), (2, 12)]:
        idx.insert(VEHICLE, Interval(at(hour), at(hour + 1)), trip_id=trip_id)

    assert [trip_id for trip_id, _ in idx.intervals(VEHICLE)] == [1, 2, 3, 4]
    for hour in (10, 11, 13, 14, 16, 17, 19):
        assert not idx.overlaps(VEHICLE, Interval(at(hour), at(hour + 1)))
    assert idx.find_overlap(VEHICLE, Interval(at(15, 30), at(16, 30))) == 3


def test_resource_keys_sort_by_kind_then_id():
    keys = [ResourceKey.vehicle(2), ResourceKey.driver(9), ResourceKey.vehicle(1)]
    assert sorted(keys) == [ResourceKey.driver(9), ResourceKey.vehicle(1), ResourceKey.vehicle(2)]
    assert str(ResourceKey.vehicle(3)) == "vehicle:3"
