"""
Interval index for vehicle and driver bookings.

Keeps, per resource key, the half-open ``[start, end)`` intervals of trips
that are still PLANNED or IN_PROGRESS, and answers "does this slot collide
with an existing booking?".

Each resource timeline is a list of ``(start, trip_id, end)`` tuples kept
sorted with ``bisect``. The scheduler never lets two stored intervals of the
same resource overlap, so the entries are also sorted by end time. An overlap
query therefore bisects to the last entry starting before the query end and
only has to inspect the nearest non-excluded predecessor: O(log n).
Insert/remove are O(log n) to locate plus a list shift.
"""

import bisect
import logging
from datetime import datetime
from typing import Dict, Iterable, List, NamedTuple, Optional, Tuple

from evfleet.app.models.enums import ResourceKind

logger = logging.getLogger("evfleet.interval_index")


class ResourceKey(NamedTuple):
    """``(kind, id)`` of a schedulable resource. Sorts by kind, then id."""
    kind: ResourceKind
    id: int

    @classmethod
    def vehicle(cls, vehicle_id: int) -> "ResourceKey":
        return cls(ResourceKind.VEHICLE, vehicle_id)

    @classmethod
    def driver(cls, driver_id: int) -> "ResourceKey":
        return cls(ResourceKind.DRIVER, driver_id)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


class Interval(NamedTuple):
    """Half-open time interval ``[start, end)``."""
    start: datetime
    end: datetime

    def overlaps(self, other: "Interval") -> bool:
        return self.start < other.end and other.start < self.end


class _Timeline:
    """Sorted bookings of a single resource."""

    __slots__ = ("entries", "by_trip")

    def __init__(self):
        self.entries: List[Tuple[datetime, int, datetime]] = []
        self.by_trip: Dict[int, Interval] = {}

    def insert(self, interval: Interval, trip_id: int) -> None:
        bisect.insort(self.entries, (interval.start, trip_id, interval.end))
        self.by_trip[trip_id] = interval

    def remove(self, trip_id: int) -> Optional[Interval]:
        interval = self.by_trip.pop(trip_id, None)
        if interval is None:
            return None
        entry = (interval.start, trip_id, interval.end)
        pos = bisect.bisect_left(self.entries, entry)
        if pos < len(self.entries) and self.entries[pos] == entry:
            del self.entries[pos]
        return interval

    def find_overlap(self, interval: Interval, excluding_trip_id: Optional[int]) -> Optional[int]:
        # (end,) sorts after every (start, ...) with start < end and before start == end
        pos = bisect.bisect_left(self.entries, (interval.end,))
        for start, trip_id, end in reversed(self.entries[max(0, pos - 2):pos]):
            if trip_id == excluding_trip_id:
                continue
            return trip_id if end > interval.start else None
        return None


class IntervalIndex:
    """
    In-memory index of active trip intervals keyed by resource.

    Not thread-safe on its own: callers serialize writers per resource
    (see ``ResourceLockManager``). ``insert`` does not re-check for overlap.
    """

    def __init__(self):
        self._timelines: Dict[ResourceKey, _Timeline] = {}

    def insert(self, resource_key: ResourceKey, interval: Interval, trip_id: int) -> None:
        if not interval.end > interval.start:
            raise ValueError(f"Empty or inverted interval for trip {trip_id}: {interval}")
        timeline = self._timelines.setdefault(resource_key, _Timeline())
        if trip_id in timeline.by_trip:
            timeline.remove(trip_id)
        timeline.insert(interval, trip_id)

    def remove(self, resource_key: ResourceKey, trip_id: int) -> Optional[Interval]:
        """Drop the interval registered for ``trip_id``; returns it, or None if absent."""
        timeline = self._timelines.get(resource_key)
        if timeline is None:
            return None
        interval = timeline.remove(trip_id)
        if not timeline.entries:
            del self._timelines[resource_key]
        return interval

    def find_overlap(
        self,
        resource_key: ResourceKey,
        interval: Interval,
        excluding_trip_id: Optional[int] = None
    ) -> Optional[int]:
        """Id of a stored trip whose interval intersects ``interval``, or None."""
        timeline = self._timelines.get(resource_key)
        if timeline is None:
            return None
        return timeline.find_overlap(interval, excluding_trip_id)

    def overlaps(
        self,
        resource_key: ResourceKey,
        interval: Interval,
        excluding_trip_id: Optional[int] = None
    ) -> bool:
        return self.find_overlap(resource_key, interval, excluding_trip_id) is not None

    def intervals(self, resource_key: ResourceKey) -> List[Tuple[int, Interval]]:
        """``(trip_id, interval)`` pairs for a resource in start order."""
        timeline = self._timelines.get(resource_key)
        if timeline is None:
            return []
        return [(trip_id, Interval(start, end)) for start, trip_id, end in timeline.entries]

    def interval_of(self, resource_key: ResourceKey, trip_id: int) -> Optional[Interval]:
        timeline = self._timelines.get(resource_key)
        if timeline is None:
            return None
        return timeline.by_trip.get(trip_id)

    def clear(self) -> None:
        self._timelines.clear()

    def rebuild(self, bookings: Iterable[Tuple[int, Iterable[ResourceKey], Interval]]) -> int:
        """
        Replace the index contents with ``(trip_id, resource_keys, interval)`` bookings.

        Returns the number of trips loaded. A booking that overlaps one already
        loaded on any of its resources is skipped and logged, so every timeline
        stays disjoint.
        """
        self.clear()
        loaded = 0
        for trip_id, resource_keys, interval in bookings:
            resource_keys = list(resource_keys)
            clashes = [
                (key, self.find_overlap(key, interval, excluding_trip_id=trip_id))
                for key in resource_keys
            ]
            clashes = [(key, clash) for key, clash in clashes if clash is not None]
            if clashes:
                for key, clash in clashes:
                    logger.warning(
                        "Stored trip %s overlaps trip %s on %s; not indexed", trip_id, clash, key
                    )
                continue
            for key in resource_keys:
                self.insert(key, interval, trip_id)
            loaded += 1
        return loaded

    def __len__(self) -> int:
        return sum(len(t.entries) for t in self._timelines.values())

    def __contains__(self, resource_key: ResourceKey) -> bool:
        return resource_key in self._timelines
