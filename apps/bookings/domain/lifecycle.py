"""
Reservation Lifecycle

Decides which transition a status-change request maps to and whether the
requesting actor may trigger it:

    | From              | Event       | To        | Who                              |
    |-------------------|-------------|-----------|----------------------------------|
    | PENDING           | CONFIRM     | CONFIRMED | landlord of the property         |
    | PENDING           | REJECT      | CANCELLED | landlord of the property         |
    | PENDING/CONFIRMED | CANCEL      | CANCELLED | tenant, landlord or admin        |
    | PENDING           | AUTO_REJECT | CANCELLED | system, on overlapping confirm   |
    | PENDING           | EXPIRE      | CANCELLED | system, once the start date passed |

Authorization failures raise NotAuthorized, state failures raise
InvalidTransition; in both cases the booking is left untouched.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from apps.bookings.domain.entities import (
    Actor,
    ActorRole,
    Booking,
    BookingStatus,
    CancellationSource,
)
from apps.bookings.domain.exceptions import InvalidTransition, NotAuthorized


class BookingEvent(Enum):
    CONFIRM = 'confirm'
    REJECT = 'reject'
    CANCEL = 'cancel'
    AUTO_REJECT = 'auto_reject'
    EXPIRE = 'expire'


TRANSITIONS = {
    (BookingStatus.PENDING, BookingEvent.CONFIRM): BookingStatus.CONFIRMED,
    (BookingStatus.PENDING, BookingEvent.REJECT): BookingStatus.CANCELLED,
    (BookingStatus.PENDING, BookingEvent.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.CONFIRMED, BookingEvent.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.PENDING, BookingEvent.AUTO_REJECT): BookingStatus.CANCELLED,
    (BookingStatus.PENDING, BookingEvent.EXPIRE): BookingStatus.CANCELLED,
}

SOURCE_BY_ROLE = {
    ActorRole.TENANT: CancellationSource.TENANT,
    ActorRole.LANDLORD: CancellationSource.LANDLORD,
    ActorRole.ADMIN: CancellationSource.ADMIN,
    ActorRole.SYSTEM: CancellationSource.SYSTEM,
}


def is_tenant_of(actor: Actor, booking: Booking) -> bool:
    return actor.role is ActorRole.TENANT and actor.user_id == booking.tenant_id


def is_landlord_of(actor: Actor, booking: Booking) -> bool:
    return actor.role is ActorRole.LANDLORD and actor.user_id == booking.landlord_id


def is_stakeholder(actor: Actor, booking: Booking) -> bool:
    """Tenant, owning landlord, or a platform admin"""
    return actor.role is ActorRole.ADMIN or is_tenant_of(actor, booking) or is_landlord_of(actor, booking)


def resolve_event(booking: Booking, actor: Actor, new_status: BookingStatus) -> BookingEvent:
    """
    Map a requested status to the lifecycle event for this actor

    Raises NotAuthorized when the actor has no say over the booking or the
    requested change is reserved for another role.
    """
    if not is_stakeholder(actor, booking):
        raise NotAuthorized(f"Booking {booking.id} does not belong to you")

    if new_status is BookingStatus.CONFIRMED:
        if not is_landlord_of(actor, booking):
            raise NotAuthorized("Only the property's landlord can confirm a booking")
        return BookingEvent.CONFIRM

    if new_status is BookingStatus.CANCELLED:
        if is_landlord_of(actor, booking) and booking.status is BookingStatus.PENDING:
            return BookingEvent.REJECT
        return BookingEvent.CANCEL

    raise InvalidTransition(f"Booking {booking.id} cannot be moved to {new_status.value}")


def ensure_allowed(booking: Booking, event: BookingEvent, today: date):
    """State guards; raises InvalidTransition"""
    if (booking.status, event) not in TRANSITIONS:
        raise InvalidTransition(
            f"Cannot {event.value.replace('_', '-')} booking {booking.id}: "
            f"status is {booking.status.value}"
        )
    if event in (BookingEvent.CONFIRM, BookingEvent.CANCEL) and booking.start_date_passed(today):
        raise InvalidTransition(
            f"Cannot {event.value} booking {booking.id}: its start date {booking.start_date} has passed"
        )
    if event is BookingEvent.EXPIRE and not booking.start_date_passed(today):
        raise InvalidTransition(f"Booking {booking.id} has not lapsed yet")


def apply(
    booking: Booking,
    event: BookingEvent,
    actor: Actor,
    today: date,
    *,
    reason: str = '',
    now: datetime | None = None,
    confirmed_booking_id=None,
) -> BookingStatus:
    """Check the guards and move the booking; returns the new status"""
    ensure_allowed(booking, event, today)

    if event is BookingEvent.CONFIRM:
        booking.confirm(now=now)
    elif event is BookingEvent.REJECT:
        booking.reject(reason, now=now)
    elif event is BookingEvent.CANCEL:
        booking.cancel(SOURCE_BY_ROLE[actor.role], reason, now=now)
    elif event is BookingEvent.AUTO_REJECT:
        booking.auto_reject(confirmed_booking_id, now=now)
    elif event is BookingEvent.EXPIRE:
        booking.expire(now=now)

    return booking.status
