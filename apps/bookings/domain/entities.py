"""
Booking Domain Entities

Core business entities for the booking domain:
- Booking: Aggregate representing a stay request and its decision
- BookingStatus: FSM states for the booking lifecycle
- Actor / ActorRole: who is asking for a change
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any

from django.utils import timezone

from shared.domain.base import Aggregate
from shared.domain.value_objects import Money, DateRange
from apps.bookings.domain.events import (
    BookingAutoRejected,
    BookingCancelled,
    BookingConfirmed,
    BookingCreated,
    BookingExpired,
    BookingRejected,
)
from apps.bookings.domain.exceptions import InvalidTransition


class BookingStatus(Enum):
    """
    Booking Status Finite State Machine

    State transitions:
    - PENDING -> CONFIRMED (landlord confirms)
    - PENDING -> CANCELLED (landlord rejects, either party cancels,
      auto-rejected by an overlapping confirmation, or expired)
    - CONFIRMED -> CANCELLED (either party cancels before the stay starts)

    CANCELLED is terminal.
    """
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    CANCELLED = 'cancelled'

    @property
    def blocks_calendar(self) -> bool:
        return self is not BookingStatus.CANCELLED


class ActorRole(Enum):
    TENANT = 'tenant'
    LANDLORD = 'landlord'
    ADMIN = 'admin'
    SYSTEM = 'system'


class CancellationSource(Enum):
    TENANT = 'tenant'
    LANDLORD = 'landlord'
    ADMIN = 'admin'
    SYSTEM = 'system'


@dataclass(frozen=True)
class Actor:
    """The user (or the platform itself) requesting a change"""
    user_id: Any
    role: ActorRole

    @classmethod
    def system(cls) -> 'Actor':
        return cls(user_id=None, role=ActorRole.SYSTEM)


AUTO_REJECT_REASON = 'auto-rejected'
EXPIRED_REASON = 'expired'


@dataclass(kw_only=True, eq=False)
class Booking(Aggregate):
    """
    Booking Aggregate Root

    Key invariants:
    - dates is a valid half-open range (start < end)
    - total_price is fixed at creation
    - CANCELLED bookings never change again

    The aggregate only enforces state rules. Who may trigger a transition
    is decided by apps.bookings.domain.lifecycle.
    """

    property_id: Any
    tenant_id: Any
    landlord_id: Any
    dates: DateRange
    total_price: Money

    status: BookingStatus = BookingStatus.PENDING
    confirmed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_source: CancellationSource | None = None
    cancellation_reason: str = ''

    @classmethod
    def request(cls, *, property_id, tenant_id, landlord_id, dates: DateRange, total_price: Money) -> 'Booking':
        """Create a new PENDING booking and record BookingCreated"""
        booking = cls(
            property_id=property_id,
            tenant_id=tenant_id,
            landlord_id=landlord_id,
            dates=dates,
            total_price=total_price,
        )
        booking.add_event(BookingCreated(
            aggregate_id=booking.id,
            booking_id=booking.id,
            property_id=property_id,
            tenant_id=tenant_id,
            landlord_id=landlord_id,
            dates=dates,
            total_price=total_price,
        ))
        return booking

    @property
    def start_date(self) -> date:
        return self.dates.start_date

    @property
    def end_date(self) -> date:
        return self.dates.end_date

    def start_date_passed(self, today: date) -> bool:
        return today > self.start_date

    def _require(self, *allowed: BookingStatus, action: str):
        if self.status not in allowed:
            raise InvalidTransition(
                f"Cannot {action} booking {self.id}: status is {self.status.value}"
            )

    def _close(self, source: CancellationSource, reason: str, now: datetime | None):
        self.status = BookingStatus.CANCELLED
        self.cancellation_source = source
        self.cancellation_reason = reason
        self.cancelled_at = now or timezone.now()
        self.updated_at = self.cancelled_at

    def confirm(self, now: datetime | None = None):
        """PENDING -> CONFIRMED"""
        self._require(BookingStatus.PENDING, action='confirm')

        self.status = BookingStatus.CONFIRMED
        self.confirmed_at = now or timezone.now()
        self.updated_at = self.confirmed_at

        self.add_event(BookingConfirmed(
            aggregate_id=self.id,
            booking_id=self.id,
            property_id=self.property_id,
            tenant_id=self.tenant_id,
            dates=self.dates,
        ))

    def reject(self, reason: str = '', now: datetime | None = None):
        """PENDING -> CANCELLED, decided by the landlord"""
        self._require(BookingStatus.PENDING, action='reject')
        self._close(CancellationSource.LANDLORD, reason, now)

        self.add_event(BookingRejected(
            aggregate_id=self.id,
            booking_id=self.id,
            property_id=self.property_id,
            tenant_id=self.tenant_id,
            reason=reason,
        ))

    def cancel(self, source: CancellationSource, reason: str = '', now: datetime | None = None):
        """PENDING/CONFIRMED -> CANCELLED, requested by a party of the booking"""
        self._require(BookingStatus.PENDING, BookingStatus.CONFIRMED, action='cancel')
        old_status = self.status
        self._close(source, reason, now)

        self.add_event(BookingCancelled(
            aggregate_id=self.id,
            booking_id=self.id,
            property_id=self.property_id,
            cancelled_by=source.value,
            reason=reason,
            old_status=old_status.value,
        ))

    def auto_reject(self, confirmed_booking_id, now: datetime | None = None):
        """PENDING -> CANCELLED because an overlapping booking was confirmed"""
        self._require(BookingStatus.PENDING, action='auto-reject')
        self._close(CancellationSource.SYSTEM, AUTO_REJECT_REASON, now)

        self.add_event(BookingAutoRejected(
            aggregate_id=self.id,
            booking_id=self.id,
            property_id=self.property_id,
            tenant_id=self.tenant_id,
            confirmed_booking_id=confirmed_booking_id,
        ))

    def expire(self, now: datetime | None = None):
        """PENDING -> CANCELLED because the stay began without a decision"""
        self._require(BookingStatus.PENDING, action='expire')
        self._close(CancellationSource.SYSTEM, EXPIRED_REASON, now)

        self.add_event(BookingExpired(
            aggregate_id=self.id,
            booking_id=self.id,
            property_id=self.property_id,
            tenant_id=self.tenant_id,
        ))

    @property
    def nights(self) -> int:
        return len(self.dates)

    def __str__(self):
        return f"Booking {self.id} ({self.status.value})"

    def __repr__(self):
        return (
            f"Booking(id={self.id}, property_id={self.property_id}, "
            f"status={self.status.value}, dates={self.dates!r})"
        )
