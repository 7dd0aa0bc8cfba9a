"""Booking repositories.

``DjangoBookingRepository`` persists aggregates through the ORM and is what
the API uses. ``InMemoryBookingRepository`` keeps everything in process
memory; paired with ``InMemoryUnitOfWork`` it gives the same
all-or-nothing semantics and backs the engine in tests and embedded use.
"""

from __future__ import annotations

import copy
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from django.core.exceptions import ValidationError  # type: ignore

from shared.application.uow import AbstractUnitOfWork
from shared.domain.value_objects import DateRange, Money
from apps.bookings.domain.entities import Booking, BookingStatus, CancellationSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PropertyRef:
    """What the booking engine knows about a property"""
    id: Any
    landlord_id: Any
    price_per_night: Money
    accepts_bookings: bool = True
    calendar_version: int = 0


class AbstractBookingRepository(ABC):

    @abstractmethod
    def get_property(self, property_id, lock: bool = False) -> Optional[PropertyRef]:
        """Property by id; ``lock`` row-locks it for the current transaction"""

    @abstractmethod
    def bump_calendar_version(self, property_id) -> int:
        """Increment and return the property's calendar version"""

    @abstractmethod
    def get(self, booking_id, lock: bool = False) -> Optional[Booking]:
        pass

    @abstractmethod
    def add(self, booking: Booking):
        pass

    @abstractmethod
    def save(self, booking: Booking):
        pass

    @abstractmethod
    def active_for_property(self, property_id) -> List[Booking]:
        """PENDING and CONFIRMED bookings of a property"""

    @abstractmethod
    def for_property(self, property_id) -> List[Booking]:
        pass

    @abstractmethod
    def for_tenant(self, tenant_id) -> List[Booking]:
        pass

    @abstractmethod
    def lapsed_pending(self, today: date) -> List[Booking]:
        """PENDING bookings whose start date is before ``today``"""


# ===== Django =====


class DjangoBookingRepository(AbstractBookingRepository):
    """ORM-backed repository; call mutating methods inside DjangoUnitOfWork"""

    @staticmethod
    def _property_model():
        from apps.properties.models import Property

        return Property

    @staticmethod
    def _booking_model():
        from apps.bookings.models import Booking as BookingModel

        return BookingModel

    @staticmethod
    def _to_property_ref(row) -> PropertyRef:
        return PropertyRef(
            id=row.pk,
            landlord_id=row.owner_id,
            price_per_night=Money(row.price_per_night, row.currency),
            accepts_bookings=row.accepts_bookings,
            calendar_version=row.calendar_version,
        )

    @staticmethod
    def _to_domain(row) -> Booking:
        return Booking(
            id=row.pk,
            created_at=row.created_at,
            updated_at=row.updated_at,
            property_id=row.property_id,
            tenant_id=row.tenant_id,
            landlord_id=row.landlord_id,
            dates=DateRange(row.start_date, row.end_date),
            total_price=Money(row.total_price, row.currency),
            status=BookingStatus(row.status),
            confirmed_at=row.confirmed_at,
            cancelled_at=row.cancelled_at,
            cancellation_source=(
                CancellationSource(row.cancellation_source) if row.cancellation_source else None
            ),
            cancellation_reason=row.cancellation_reason,
        )

    @staticmethod
    def _fields(booking: Booking) -> dict:
        return {
            "property_id": booking.property_id,
            "tenant_id": booking.tenant_id,
            "landlord_id": booking.landlord_id,
            "start_date": booking.start_date,
            "end_date": booking.end_date,
            "total_price": booking.total_price.amount,
            "currency": booking.total_price.currency,
            "status": booking.status.value,
            "confirmed_at": booking.confirmed_at,
            "cancelled_at": booking.cancelled_at,
            "cancellation_source": booking.cancellation_source.value if booking.cancellation_source else "",
            "cancellation_reason": booking.cancellation_reason,
            "created_at": booking.created_at,
            "updated_at": booking.updated_at,
        }

    def get_property(self, property_id, lock: bool = False) -> Optional[PropertyRef]:
        queryset = self._property_model().objects.all()
        if lock:
            queryset = queryset.select_for_update()
        try:
            row = queryset.get(pk=property_id)
        except (self._property_model().DoesNotExist, ValueError, TypeError, ValidationError):
            return None
        return self._to_property_ref(row)

    def bump_calendar_version(self, property_id) -> int:
        return self._property_model()(pk=property_id).bump_calendar_version()

    def get(self, booking_id, lock: bool = False) -> Optional[Booking]:
        BookingModel = self._booking_model()
        queryset = BookingModel.objects.all()
        if lock:
            queryset = queryset.select_for_update()
        try:
            row = queryset.get(pk=booking_id)
        except (BookingModel.DoesNotExist, ValueError, TypeError, ValidationError):
            return None
        return self._to_domain(row)

    def add(self, booking: Booking):
        self._booking_model().objects.create(id=booking.id, **self._fields(booking))

    def save(self, booking: Booking):
        fields = self._fields(booking)
        updated = self._booking_model().objects.filter(pk=booking.id).update(**fields)
        if not updated:
            raise LookupError(f"Booking {booking.id} does not exist")

    def _list(self, **filters) -> List[Booking]:
        rows = self._booking_model().objects.filter(**filters).order_by("start_date", "created_at")
        return [self._to_domain(row) for row in rows]

    def active_for_property(self, property_id) -> List[Booking]:
        return self._list(
            property_id=property_id,
            status__in=[BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value],
        )

    def for_property(self, property_id) -> List[Booking]:
        return self._list(property_id=property_id)

    def for_tenant(self, tenant_id) -> List[Booking]:
        return self._list(tenant_id=tenant_id)

    def lapsed_pending(self, today: date) -> List[Booking]:
        return self._list(status=BookingStatus.PENDING.value, start_date__lt=today)


# ===== In memory =====


class InMemoryBookingRepository(AbstractBookingRepository):
    """
    Thread-safe dictionary-backed repository

    Every write made inside an InMemoryUnitOfWork is journalled for the
    current thread so that a rollback restores exactly what that unit of
    work touched.
    """

    def __init__(self):
        self._properties: Dict[Any, PropertyRef] = {}
        self._bookings: Dict[Any, Booking] = {}
        self._lock = threading.RLock()
        self._local = threading.local()

    # --- journal -------------------------------------------------------
    def begin(self):
        self._local.journal = []

    def end(self) -> List[Callable[[], None]]:
        journal = getattr(self._local, "journal", None) or []
        self._local.journal = None
        return journal

    def _record(self, undo: Callable[[], None]):
        journal = getattr(self._local, "journal", None)
        if journal is not None:
            journal.append(undo)

    # --- properties ----------------------------------------------------
    def add_property(self, property_id, landlord_id, price_per_night="0", currency="INR", accepts_bookings=True) -> PropertyRef:
        ref = PropertyRef(
            id=property_id,
            landlord_id=landlord_id,
            price_per_night=Money(Decimal(str(price_per_night)), currency),
            accepts_bookings=accepts_bookings,
        )
        with self._lock:
            self._properties[property_id] = ref
        return ref

    def get_property(self, property_id, lock: bool = False) -> Optional[PropertyRef]:
        with self._lock:
            return self._properties.get(property_id)

    def bump_calendar_version(self, property_id) -> int:
        with self._lock:
            current = self._properties[property_id]
            self._properties[property_id] = replace(current, calendar_version=current.calendar_version + 1)
            self._record(lambda: self._restore_property(current))
            return current.calendar_version + 1

    def _restore_property(self, ref: PropertyRef):
        with self._lock:
            self._properties[ref.id] = ref

    # --- bookings ------------------------------------------------------
    def get(self, booking_id, lock: bool = False) -> Optional[Booking]:
        with self._lock:
            booking = self._bookings.get(booking_id)
            return copy.deepcopy(booking) if booking else None

    def _put(self, booking: Booking):
        stored = copy.deepcopy(booking)
        stored.clear_events()
        with self._lock:
            previous = self._bookings.get(booking.id)
            self._bookings[booking.id] = stored
        self._record(lambda: self._restore_booking(booking.id, previous))

    def _restore_booking(self, booking_id, previous: Optional[Booking]):
        with self._lock:
            if previous is None:
                self._bookings.pop(booking_id, None)
            else:
                self._bookings[booking_id] = previous

    def add(self, booking: Booking):
        with self._lock:
            if booking.id in self._bookings:
                raise ValueError(f"Booking {booking.id} already exists")
            self._put(booking)

    def save(self, booking: Booking):
        with self._lock:
            if booking.id not in self._bookings:
                raise LookupError(f"Booking {booking.id} does not exist")
            self._put(booking)

    def _list(self, predicate) -> List[Booking]:
        with self._lock:
            found = [copy.deepcopy(b) for b in self._bookings.values() if predicate(b)]
        return sorted(found, key=lambda b: (b.start_date, b.created_at))

    def active_for_property(self, property_id) -> List[Booking]:
        return self._list(lambda b: b.property_id == property_id and b.status.blocks_calendar)

    def for_property(self, property_id) -> List[Booking]:
        return self._list(lambda b: b.property_id == property_id)

    def for_tenant(self, tenant_id) -> List[Booking]:
        return self._list(lambda b: b.tenant_id == tenant_id)

    def lapsed_pending(self, today: date) -> List[Booking]:
        return self._list(lambda b: b.status is BookingStatus.PENDING and b.start_date < today)


class InMemoryUnitOfWork(AbstractUnitOfWork):
    """Unit of work over an InMemoryBookingRepository"""

    def __init__(self, repository: InMemoryBookingRepository, defer_publish: bool = False):
        super().__init__(defer_publish)
        self._repository = repository

    def __enter__(self):
        self._repository.begin()
        return self

    def commit(self):
        self._repository.end()
        self._finish_commit()

    def rollback(self):
        journal = self._repository.end()
        for undo in reversed(journal):
            undo()
        logger.warning(f"Rolled back {len(journal)} in-memory writes, discarding {len(self._events)} events")
        self._events.clear()

    def _schedule_publish(self, events):
        self._publish_events(events)
