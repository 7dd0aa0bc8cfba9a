"""
Conflict Checker

Decides whether a candidate stay may be accepted for a property given the
current calendar. Pure: the result depends only on the arguments, so the
caller must hold the property's guard between this check and its write.

Pending requests never block each other; only a confirmed stay does.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Tuple

from apps.bookings.domain.calendar import CalendarIndex
from apps.bookings.domain.entities import BookingStatus
from apps.bookings.domain.exceptions import BookingError, InvalidRange, OverlapsConfirmed


class RejectReason(Enum):
    INVALID_RANGE = 'invalid_range'
    OVERLAPS_CONFIRMED = 'overlaps_confirmed'


@dataclass(frozen=True)
class Decision:
    reason: RejectReason | None = None
    message: str = ''
    conflicting_ids: Tuple[Any, ...] = field(default_factory=tuple)

    @property
    def accepted(self) -> bool:
        return self.reason is None

    def to_error(self) -> BookingError:
        if self.reason is RejectReason.INVALID_RANGE:
            return InvalidRange(self.message)
        return OverlapsConfirmed(self.message, self.conflicting_ids)

    def raise_if_rejected(self):
        if not self.accepted:
            raise self.to_error()


ACCEPT = Decision()


def check_availability(
    property_id,
    start: date,
    end: date,
    index: CalendarIndex,
    today: date,
    *,
    ignore_booking_id=None,
) -> Decision:
    """
    Accept, or reject with INVALID_RANGE / OVERLAPS_CONFIRMED

    ``ignore_booking_id`` lets a booking being confirmed skip its own interval.
    """
    if start >= end:
        return Decision(RejectReason.INVALID_RANGE, "End date must be after start date")
    if start < today:
        return Decision(RejectReason.INVALID_RANGE, f"Start date {start} is in the past")

    blocking = [
        interval for interval in index.overlapping(property_id, start, end, {BookingStatus.CONFIRMED})
        if interval.booking_id != ignore_booking_id
    ]
    if blocking:
        return Decision(
            RejectReason.OVERLAPS_CONFIRMED,
            f"Property {property_id} is already booked between {start} and {end}",
            tuple(interval.booking_id for interval in blocking),
        )
    return ACCEPT
