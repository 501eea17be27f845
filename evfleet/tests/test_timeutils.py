"""
Tests for time helpers.
"""

import pytest
from datetime import date, datetime, timedelta, timezone

from evfleet.app.core.timeutils import day_bounds, ensure_utc, resolve_zone


def test_naive_values_are_taken_as_utc():
    naive = datetime(2030, 1, 7, 9, 0)
    assert ensure_utc(naive) == datetime(2030, 1, 7, 9, 0, tzinfo=timezone.utc)
    assert ensure_utc(None) is None


def test_aware_values_are_converted():
    plus_two = timezone(timedelta(hours=2))
    assert ensure_utc(datetime(2030, 1, 7, 11, 0, tzinfo=plus_two)) == datetime(2030, 1, 7, 9, 0, tzinfo=timezone.utc)


def test_day_bounds_in_zone():
    start, end = day_bounds(date(2030, 1, 7), "Europe/Berlin")
    assert start == datetime(2030, 1, 6, 23, 0, tzinfo=timezone.utc)
    assert end == datetime(2030, 1, 7, 23, 0, tzinfo=timezone.utc)


def test_dst_day_is_23_hours():
    start, end = day_bounds(date(2030, 3, 31), "Europe/Berlin")
    assert end - start == timedelta(hours=23)


def test_unknown_zone():
    with pytest.raises(ValueError):
        resolve_zone("Nowhere/Special")
