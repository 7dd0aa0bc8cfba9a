"""
Calendar Index

Per-property ordered set of the date intervals currently occupying a
property. Only PENDING and CONFIRMED bookings are indexed; a cancelled
booking is removed.

Each property keeps its intervals in a list sorted by
(start_date, end_date, booking id). Overlap queries bisect into that list:
an interval can only overlap [start, end) if it starts before ``end`` and
no earlier than ``start - max_span`` where max_span is the longest stay
ever indexed for the property. A query therefore touches O(log n + k)
entries instead of the whole history.

The index knows nothing about persistence. Each property's calendar
remembers the storage version it was built from so the owner can tell
when it has gone stale.
"""

from __future__ import annotations

import bisect
import threading
from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Any, Dict, Hashable, Iterable, List, Optional

from shared.domain.value_objects import DateRange
from apps.bookings.domain.entities import BookingStatus

INDEXED_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


@dataclass(frozen=True)
class CalendarInterval:
    booking_id: Any
    dates: DateRange
    status: BookingStatus

    def __post_init__(self):
        if self.status not in INDEXED_STATUSES:
            raise ValueError(f"Only pending or confirmed bookings are indexed, got {self.status.value}")

    @property
    def start_date(self) -> date:
        return self.dates.start_date

    @property
    def end_date(self) -> date:
        return self.dates.end_date

    @property
    def sort_key(self) -> tuple:
        return (self.start_date, self.end_date, str(self.booking_id))


class PropertyCalendar:
    """Sorted intervals of a single property"""

    def __init__(self, version: Optional[int] = None):
        self.version = version
        self._keys: List[tuple] = []
        self._intervals: List[CalendarInterval] = []
        self._by_booking: Dict[Any, CalendarInterval] = {}
        self._max_span = 0

    def __len__(self) -> int:
        return len(self._intervals)

    def __contains__(self, booking_id) -> bool:
        return booking_id in self._by_booking

    def intervals(self) -> List[CalendarInterval]:
        return list(self._intervals)

    def get(self, booking_id) -> Optional[CalendarInterval]:
        return self._by_booking.get(booking_id)

    def insert(self, interval: CalendarInterval):
        if interval.booking_id in self._by_booking:
            raise ValueError(f"Booking {interval.booking_id} is already indexed")
        key = interval.sort_key
        position = bisect.bisect_left(self._keys, key)
        self._keys.insert(position, key)
        self._intervals.insert(position, interval)
        self._by_booking[interval.booking_id] = interval
        self._max_span = max(self._max_span, len(interval.dates))

    def remove(self, booking_id) -> CalendarInterval:
        interval = self._by_booking.pop(booking_id, None)
        if interval is None:
            raise KeyError(booking_id)
        position = bisect.bisect_left(self._keys, interval.sort_key)
        del self._keys[position]
        del self._intervals[position]
        return interval

    def update_status(self, booking_id, status: BookingStatus) -> CalendarInterval:
        current = self._by_booking.get(booking_id)
        if current is None:
            raise KeyError(booking_id)
        updated = replace(current, status=status)
        position = bisect.bisect_left(self._keys, current.sort_key)
        self._intervals[position] = updated
        self._by_booking[booking_id] = updated
        return updated

    def overlapping(self, dates: DateRange, statuses: Iterable[BookingStatus] = INDEXED_STATUSES) -> List[CalendarInterval]:
        wanted = frozenset(statuses)
        earliest = dates.start_date - timedelta(days=self._max_span)
        lo = bisect.bisect_left(self._keys, (earliest,))
        hi = bisect.bisect_left(self._keys, (dates.end_date,))
        return [
            interval for interval in self._intervals[lo:hi]
            if interval.status in wanted and interval.end_date > dates.start_date
        ]


class CalendarIndex:
    """
    Calendar index for all properties

    Callers serialize access per property (see BookingService); the
    registry of calendars itself is guarded so properties can be added
    from different threads.
    """

    def __init__(self):
        self._calendars: Dict[Hashable, PropertyCalendar] = {}
        self._lock = threading.Lock()

    def _calendar(self, property_id) -> PropertyCalendar:
        with self._lock:
            calendar = self._calendars.get(property_id)
            if calendar is None:
                calendar = self._calendars[property_id] = PropertyCalendar()
            return calendar

    def intervals_for(self, property_id) -> List[CalendarInterval]:
        """All indexed intervals of a property ordered by start date"""
        calendar = self._calendars.get(property_id)
        return calendar.intervals() if calendar else []

    def overlapping(
        self,
        property_id,
        start: date,
        end: date,
        statuses: Iterable[BookingStatus] = INDEXED_STATUSES,
    ) -> List[CalendarInterval]:
        calendar = self._calendars.get(property_id)
        if calendar is None:
            return []
        return calendar.overlapping(DateRange(start, end), statuses)

    def is_free(
        self,
        property_id,
        start: date,
        end: date,
        excluding_statuses: Iterable[BookingStatus] = (),
    ) -> bool:
        """True if no interval outside ``excluding_statuses`` overlaps [start, end)"""
        statuses = INDEXED_STATUSES - frozenset(excluding_statuses)
        if not statuses:
            return True
        return not self.overlapping(property_id, start, end, statuses)

    def get(self, property_id, booking_id) -> Optional[CalendarInterval]:
        calendar = self._calendars.get(property_id)
        return calendar.get(booking_id) if calendar else None

    def insert(self, property_id, interval: CalendarInterval):
        self._calendar(property_id).insert(interval)

    def remove(self, property_id, booking_id) -> CalendarInterval:
        return self._calendar(property_id).remove(booking_id)

    def update_status(self, property_id, booking_id, status: BookingStatus) -> CalendarInterval:
        return self._calendar(property_id).update_status(booking_id, status)

    def version(self, property_id) -> Optional[int]:
        calendar = self._calendars.get(property_id)
        return calendar.version if calendar else None

    def set_version(self, property_id, version: int):
        self._calendar(property_id).version = version

    def rebuild(self, property_id, intervals: Iterable[CalendarInterval], version: int):
        calendar = PropertyCalendar(version=version)
        for interval in intervals:
            calendar.insert(interval)
        with self._lock:
            self._calendars[property_id] = calendar

    def invalidate(self, property_id):
        """Forget a property's calendar; it is rebuilt on next use"""
        with self._lock:
            self._calendars.pop(property_id, None)

    def __contains__(self, property_id) -> bool:
        return property_id in self._calendars
