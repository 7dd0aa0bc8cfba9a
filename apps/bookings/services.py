"""Booking Service.

Orchestrates the booking engine: the only component with side effects.

Every operation that reads a property's calendar and then writes to it runs
as one unit per property:

1. acquire the in-process lock for the property (bounded wait)
2. open a unit of work and row-lock the property
3. rebuild the cached calendar if another process changed it
4. check (conflict checker / lifecycle guards) and write
5. bump the property's calendar version and commit
6. apply the same change to the cached calendar
7. release the lock, then publish domain events

Properties never share a lock, so unrelated properties do not contend.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from functools import lru_cache
from typing import Callable, Iterable, List

from django.conf import settings  # type: ignore
from django.utils import timezone  # type: ignore

from shared.application.locks import KeyedLockRegistry, LockTimeout
from shared.application.uow import AbstractUnitOfWork, DjangoUnitOfWork
from shared.domain.value_objects import DateRange, Money
from apps.bookings.domain import lifecycle
from apps.bookings.domain.calendar import CalendarIndex, CalendarInterval
from apps.bookings.domain.conflicts import check_availability
from apps.bookings.domain.entities import Actor, ActorRole, Booking, BookingStatus
from apps.bookings.domain.exceptions import (
    BookingError,
    CalendarBusy,
    InvalidPrice,
    InvalidTransition,
    NotAuthorized,
    NotFound,
)
from apps.bookings.domain.lifecycle import BookingEvent
from apps.bookings.repositories import AbstractBookingRepository, DjangoBookingRepository, PropertyRef

logger = logging.getLogger(__name__)


class BookingService:
    """
    Usage:
        service = BookingService(DjangoBookingRepository(), DjangoUnitOfWork)
        booking = service.create(property_id, tenant_id, start, end)
        service.update_status(booking.id, landlord.as_actor(), BookingStatus.CONFIRMED)
    """

    def __init__(
        self,
        repository: AbstractBookingRepository,
        unit_of_work: Callable[..., AbstractUnitOfWork] = DjangoUnitOfWork,
        *,
        calendar: CalendarIndex | None = None,
        locks: KeyedLockRegistry | None = None,
        today: Callable[[], date] | None = None,
        expose_pending_dates: bool = False,
    ):
        self._repository = repository
        self._unit_of_work = unit_of_work
        self._calendar = calendar if calendar is not None else CalendarIndex()
        self._locks = locks if locks is not None else KeyedLockRegistry()
        self._today = today or timezone.localdate
        self.expose_pending_dates = expose_pending_dates

    @property
    def calendar(self) -> CalendarIndex:
        return self._calendar

    @property
    def locks(self) -> KeyedLockRegistry:
        return self._locks

    # --- guards --------------------------------------------------------

    @contextmanager
    def _guard(self, property_id):
        try:
            with self._locks.hold(property_id):
                yield
        except LockTimeout as exc:
            raise CalendarBusy(
                f"Calendar of property {property_id} is busy, retry shortly"
            ) from exc

    def _sync_calendar(self, prop: PropertyRef):
        """Rebuild the cached calendar if storage moved on; call under the guard"""
        if self._calendar.version(prop.id) == prop.calendar_version:
            return
        bookings = self._repository.active_for_property(prop.id)
        self._calendar.rebuild(
            prop.id,
            (CalendarInterval(b.id, b.dates, b.status) for b in bookings),
            prop.calendar_version,
        )
        logger.info(
            f"Rebuilt calendar for property {prop.id} "
            f"({len(bookings)} intervals, version {prop.calendar_version})"
        )

    def _commit_to_calendar(self, property_id, version: int, bookings: Iterable[Booking]):
        """Mirror committed status changes into the cached calendar; call under the guard"""
        try:
            for booking in bookings:
                indexed = self._calendar.get(property_id, booking.id) is not None
                if not booking.status.blocks_calendar:
                    if indexed:
                        self._calendar.remove(property_id, booking.id)
                elif indexed:
                    self._calendar.update_status(property_id, booking.id, booking.status)
                else:
                    self._calendar.insert(property_id, CalendarInterval(booking.id, booking.dates, booking.status))
        except (KeyError, ValueError):
            # storage already holds the committed state; rebuild from it on next access
            logger.exception(f"Calendar of property {property_id} diverged, invalidating")
            self._calendar.invalidate(property_id)
            return
        self._calendar.set_version(property_id, version)

    def _load_property(self, property_id, lock: bool = False) -> PropertyRef:
        prop = self._repository.get_property(property_id, lock=lock)
        if prop is None:
            raise NotFound(f"Property {property_id} not found")
        return prop

    def _load_booking(self, booking_id, lock: bool = False) -> Booking:
        booking = self._repository.get(booking_id, lock=lock)
        if booking is None:
            raise NotFound(f"Booking {booking_id} not found")
        return booking

    @staticmethod
    def _follow_owner(booking: Booking, prop: PropertyRef):
        # the property's current owner decides, even after a transfer
        booking.landlord_id = prop.landlord_id

    @staticmethod
    def _price(prop: PropertyRef, dates: DateRange, total_price) -> Money:
        if total_price is None:
            return prop.price_per_night * len(dates)
        amount = Decimal(str(total_price))
        if amount < 0:
            raise InvalidPrice("Total price cannot be negative")
        return Money(amount, prop.price_per_night.currency)

    # --- commands ------------------------------------------------------

    def create(self, property_id, tenant_id, start: date, end: date, total_price=None) -> Booking:
        """
        Request a stay; the booking starts PENDING

        Raises:
            NotFound: unknown or inactive property
            NotAuthorized: the landlord tried to book their own property
            InvalidRange: start >= end, or start before today
            OverlapsConfirmed: the dates overlap a confirmed booking
        """
        prop = self._load_property(property_id)
        if not prop.accepts_bookings:
            raise NotFound(f"Property {property_id} is not available for booking")
        if prop.landlord_id == tenant_id:
            raise NotAuthorized("Landlords cannot book their own property")

        with self._guard(prop.id):
            with self._unit_of_work(defer_publish=True) as uow:
                prop = self._load_property(prop.id, lock=True)
                if not prop.accepts_bookings:
                    raise NotFound(f"Property {prop.id} is not available for booking")
                self._sync_calendar(prop)

                decision = check_availability(prop.id, start, end, self._calendar, self._today())
                if not decision.accepted:
                    logger.warning(
                        f"Rejected booking request for property {prop.id} "
                        f"{start} - {end}: {decision.reason.value}"
                    )
                    raise decision.to_error()

                dates = DateRange(start, end)
                booking = Booking.request(
                    property_id=prop.id,
                    tenant_id=tenant_id,
                    landlord_id=prop.landlord_id,
                    dates=dates,
                    total_price=self._price(prop, dates, total_price),
                )
                self._repository.add(booking)
                version = self._repository.bump_calendar_version(prop.id)
                uow.collect_events(booking)

            self._commit_to_calendar(prop.id, version, [booking])

        uow.publish_committed()
        logger.info(f"Booking {booking.id} requested for property {prop.id}, dates {booking.dates}")
        return booking

    def update_status(self, booking_id, actor: Actor, new_status, reason: str = '') -> Booking:
        """
        Confirm, reject or cancel a booking on behalf of ``actor``

        Confirming auto-rejects every other PENDING booking of the property
        whose dates overlap; the confirmation and the cascade commit together.

        Raises:
            NotFound, NotAuthorized, InvalidTransition, OverlapsConfirmed
        """
        try:
            new_status = BookingStatus(new_status)
        except ValueError:
            raise InvalidTransition(f"Unknown booking status: {new_status}") from None
        property_id = self._load_booking(booking_id).property_id
        changed: List[Booking] = []

        with self._guard(property_id):
            with self._unit_of_work(defer_publish=True) as uow:
                prop = self._load_property(property_id, lock=True)
                booking = self._load_booking(booking_id, lock=True)
                self._follow_owner(booking, prop)
                self._sync_calendar(prop)
                today = self._today()

                event = lifecycle.resolve_event(booking, actor, new_status)
                lifecycle.ensure_allowed(booking, event, today)

                if event is BookingEvent.CONFIRM:
                    check_availability(
                        prop.id, booking.start_date, booking.end_date, self._calendar, today,
                        ignore_booking_id=booking.id,
                    ).raise_if_rejected()

                lifecycle.apply(booking, event, actor, today, reason=reason)
                self._repository.save(booking)
                uow.collect_events(booking)
                changed.append(booking)

                if event is BookingEvent.CONFIRM:
                    changed.extend(self._auto_reject_overlapping(uow, prop, booking, today))

                version = self._repository.bump_calendar_version(prop.id)

            self._commit_to_calendar(prop.id, version, changed)

        uow.publish_committed()
        logger.info(
            f"Booking {booking.id} {event.value} by {actor.role.value} {actor.user_id}: "
            f"now {booking.status.value}"
        )
        if len(changed) > 1:
            logger.info(f"Confirming booking {booking.id} auto-rejected {len(changed) - 1} overlapping request(s)")
        return booking

    def _auto_reject_overlapping(self, uow, prop: PropertyRef, confirmed: Booking, today: date) -> List[Booking]:
        rejected = []
        overlapping = self._calendar.overlapping(
            prop.id, confirmed.start_date, confirmed.end_date, {BookingStatus.PENDING}
        )
        for interval in overlapping:
            if interval.booking_id == confirmed.id:
                continue
            other = self._load_booking(interval.booking_id, lock=True)
            lifecycle.apply(
                other, BookingEvent.AUTO_REJECT, Actor.system(), today,
                confirmed_booking_id=confirmed.id,
            )
            self._repository.save(other)
            uow.collect_events(other)
            rejected.append(other)
        return rejected

    def expire_stale_pending(self, today: date | None = None) -> int:
        """Cancel PENDING bookings whose start date passed without a decision"""
        today = today or self._today()
        by_property = defaultdict(list)
        for booking in self._repository.lapsed_pending(today):
            by_property[booking.property_id].append(booking.id)

        expired = 0
        for property_id, booking_ids in by_property.items():
            try:
                expired += self._expire_for_property(property_id, booking_ids, today)
            except BookingError as exc:
                logger.warning(f"Could not expire bookings of property {property_id}: {exc}")
        if expired:
            logger.info(f"Expired {expired} pending booking(s)")
        return expired

    def _expire_for_property(self, property_id, booking_ids, today: date) -> int:
        changed: List[Booking] = []
        with self._guard(property_id):
            with self._unit_of_work(defer_publish=True) as uow:
                prop = self._load_property(property_id, lock=True)
                self._sync_calendar(prop)
                for booking_id in booking_ids:
                    booking = self._load_booking(booking_id, lock=True)
                    if booking.status is not BookingStatus.PENDING:
                        continue
                    lifecycle.apply(booking, BookingEvent.EXPIRE, Actor.system(), today)
                    self._repository.save(booking)
                    uow.collect_events(booking)
                    changed.append(booking)
                version = self._repository.bump_calendar_version(prop.id) if changed else prop.calendar_version
            if changed:
                self._commit_to_calendar(prop.id, version, changed)
        uow.publish_committed()
        return len(changed)

    # --- queries -------------------------------------------------------

    def booked_dates_for(self, property_id) -> List[CalendarInterval]:
        """
        Intervals another tenant cannot book

        Confirmed stays only, unless ``expose_pending_dates`` also surfaces
        undecided requests as tentatively unavailable.
        """
        prop = self._load_property(property_id)
        visible = {BookingStatus.CONFIRMED}
        if self.expose_pending_dates:
            visible.add(BookingStatus.PENDING)
        with self._guard(prop.id):
            self._sync_calendar(prop)
            return [i for i in self._calendar.intervals_for(prop.id) if i.status in visible]

    def my_bookings(self, tenant_id) -> List[Booking]:
        return self._repository.for_tenant(tenant_id)

    def bookings_for_property(self, property_id, actor: Actor) -> List[Booking]:
        prop = self._load_property(property_id)
        is_owner = actor.role is ActorRole.LANDLORD and actor.user_id == prop.landlord_id
        if not (is_owner or actor.role is ActorRole.ADMIN):
            raise NotAuthorized(f"Property {property_id} does not belong to you")
        return self._repository.for_property(prop.id)

    def get(self, booking_id, actor: Actor) -> Booking:
        booking = self._load_booking(booking_id)
        prop = self._repository.get_property(booking.property_id)
        if prop is not None:
            self._follow_owner(booking, prop)
        if not lifecycle.is_stakeholder(actor, booking):
            raise NotAuthorized(f"Booking {booking_id} does not belong to you")
        return booking


@lru_cache(maxsize=1)
def get_booking_service() -> BookingService:
    """Process-wide service used by the API and Celery tasks."""
    return BookingService(
        DjangoBookingRepository(),
        DjangoUnitOfWork,
        locks=KeyedLockRegistry(timeout=settings.BOOKINGS_LOCK_TIMEOUT),
        expose_pending_dates=settings.BOOKINGS_EXPOSE_PENDING_DATES,
    )
