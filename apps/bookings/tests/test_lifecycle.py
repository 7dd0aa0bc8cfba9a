"""Unit tests for the reservation lifecycle rules."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from apps.bookings.domain import lifecycle
from apps.bookings.domain.entities import (
    AUTO_REJECT_REASON,
    EXPIRED_REASON,
    Actor,
    ActorRole,
    Booking,
    BookingStatus,
    CancellationSource,
)
from apps.bookings.domain.events import (
    BookingAutoRejected,
    BookingCancelled,
    BookingConfirmed,
    BookingCreated,
    BookingExpired,
    BookingRejected,
)
from apps.bookings.domain.exceptions import InvalidTransition, NotAuthorized
from apps.bookings.domain.lifecycle import BookingEvent
from shared.domain.value_objects import DateRange, Money

TENANT = Actor(user_id=1, role=ActorRole.TENANT)
LANDLORD = Actor(user_id=2, role=ActorRole.LANDLORD)
OTHER_TENANT = Actor(user_id=3, role=ActorRole.TENANT)
OTHER_LANDLORD = Actor(user_id=4, role=ActorRole.LANDLORD)
ADMIN = Actor(user_id=5, role=ActorRole.ADMIN)

TODAY = date(2024, 5, 1)
START = date(2024, 5, 10)


@pytest.fixture
def booking() -> Booking:
    return Booking.request(
        property_id=10,
        tenant_id=TENANT.user_id,
        landlord_id=LANDLORD.user_id,
        dates=DateRange(START, date(2024, 5, 13)),
        total_price=Money(Decimal("300.00")),
    )


def test_request_starts_pending_and_records_creation(booking):
    assert booking.status is BookingStatus.PENDING
    assert booking.nights == 3
    assert [type(e) for e in booking.events] == [BookingCreated]


@pytest.mark.parametrize(
    "actor, new_status, expected",
    [
        (LANDLORD, BookingStatus.CONFIRMED, BookingEvent.CONFIRM),
        (LANDLORD, BookingStatus.CANCELLED, BookingEvent.REJECT),
        (TENANT, BookingStatus.CANCELLED, BookingEvent.CANCEL),
        (ADMIN, BookingStatus.CANCELLED, BookingEvent.CANCEL),
    ],
)
def test_resolve_event(booking, actor, new_status, expected):
    assert lifecycle.resolve_event(booking, actor, new_status) is expected


def test_landlord_cancelling_confirmed_is_a_cancel(booking):
    booking.confirm()

    assert lifecycle.resolve_event(booking, LANDLORD, BookingStatus.CANCELLED) is BookingEvent.CANCEL


@pytest.mark.parametrize("actor", [TENANT, ADMIN, OTHER_LANDLORD, OTHER_TENANT])
def test_only_owning_landlord_confirms(booking, actor):
    with pytest.raises(NotAuthorized):
        lifecycle.resolve_event(booking, actor, BookingStatus.CONFIRMED)


@pytest.mark.parametrize("actor", [OTHER_LANDLORD, OTHER_TENANT])
def test_strangers_cannot_cancel(booking, actor):
    with pytest.raises(NotAuthorized):
        lifecycle.resolve_event(booking, actor, BookingStatus.CANCELLED)


def test_pending_is_not_a_target(booking):
    with pytest.raises(InvalidTransition):
        lifecycle.resolve_event(booking, LANDLORD, BookingStatus.PENDING)


def test_confirm_allowed_on_start_day(booking):
    lifecycle.apply(booking, BookingEvent.CONFIRM, LANDLORD, START)

    assert booking.status is BookingStatus.CONFIRMED
    assert booking.confirmed_at is not None
    assert isinstance(booking.events[-1], BookingConfirmed)


def test_confirm_after_start_date_is_rejected(booking):
    with pytest.raises(InvalidTransition):
        lifecycle.apply(booking, BookingEvent.CONFIRM, LANDLORD, date(2024, 5, 11))

    assert booking.status is BookingStatus.PENDING


def test_cancel_after_start_date_is_rejected(booking):
    booking.confirm()

    with pytest.raises(InvalidTransition):
        lifecycle.apply(booking, BookingEvent.CANCEL, TENANT, date(2024, 5, 11))

    assert booking.status is BookingStatus.CONFIRMED


def test_tenant_cancel_records_source(booking):
    lifecycle.apply(booking, BookingEvent.CANCEL, TENANT, TODAY, reason="plans changed")

    assert booking.status is BookingStatus.CANCELLED
    assert booking.cancellation_source is CancellationSource.TENANT
    assert booking.cancellation_reason == "plans changed"
    event = booking.events[-1]
    assert isinstance(event, BookingCancelled)
    assert event.old_status == "pending"


def test_admin_cancel_records_source(booking):
    booking.confirm()

    lifecycle.apply(booking, BookingEvent.CANCEL, ADMIN, TODAY)

    assert booking.cancellation_source is CancellationSource.ADMIN


def test_reject_is_attributed_to_landlord(booking):
    lifecycle.apply(booking, BookingEvent.REJECT, LANDLORD, TODAY, reason="maintenance")

    assert booking.cancellation_source is CancellationSource.LANDLORD
    assert isinstance(booking.events[-1], BookingRejected)


def test_auto_reject(booking):
    lifecycle.apply(booking, BookingEvent.AUTO_REJECT, Actor.system(), TODAY, confirmed_booking_id="other")

    assert booking.status is BookingStatus.CANCELLED
    assert booking.cancellation_source is CancellationSource.SYSTEM
    assert booking.cancellation_reason == AUTO_REJECT_REASON
    event = booking.events[-1]
    assert isinstance(event, BookingAutoRejected)
    assert event.confirmed_booking_id == "other"


def test_expire_requires_lapsed_start(booking):
    with pytest.raises(InvalidTransition):
        lifecycle.apply(booking, BookingEvent.EXPIRE, Actor.system(), START)

    lifecycle.apply(booking, BookingEvent.EXPIRE, Actor.system(), date(2024, 5, 11))

    assert booking.cancellation_reason == EXPIRED_REASON
    assert isinstance(booking.events[-1], BookingExpired)


@pytest.mark.parametrize(
    "event, actor",
    [
        (BookingEvent.CONFIRM, LANDLORD),
        (BookingEvent.REJECT, LANDLORD),
        (BookingEvent.CANCEL, TENANT),
        (BookingEvent.AUTO_REJECT, Actor.system()),
    ],
)
def test_cancelled_is_terminal(booking, event, actor):
    lifecycle.apply(booking, BookingEvent.CANCEL, TENANT, TODAY)
    cancelled_at = booking.cancelled_at

    with pytest.raises(InvalidTransition):
        lifecycle.apply(booking, event, actor, TODAY)

    assert booking.status is BookingStatus.CANCELLED
    assert booking.cancelled_at == cancelled_at
