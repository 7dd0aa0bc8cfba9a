"""
Booking Domain Events

Events that represent things that have happened in the booking domain.
These are published after successful transaction commits.
"""

from dataclasses import dataclass
from typing import Any

from shared.domain.base import DomainEvent
from shared.domain.value_objects import Money, DateRange


@dataclass(kw_only=True)
class BookingCreated(DomainEvent):
    """
    Event: A tenant requested a stay (-> PENDING)

    Triggers:
    - Notify the landlord that a decision is needed
    """
    booking_id: Any
    property_id: Any
    tenant_id: Any
    landlord_id: Any
    dates: DateRange
    total_price: Money


@dataclass(kw_only=True)
class BookingConfirmed(DomainEvent):
    """
    Event: Landlord accepted the request (PENDING -> CONFIRMED)

    Triggers:
    - Notify the tenant
    - Booked dates become visible to other tenants
    """
    booking_id: Any
    property_id: Any
    tenant_id: Any
    dates: DateRange


@dataclass(kw_only=True)
class BookingRejected(DomainEvent):
    """Event: Landlord declined the request (PENDING -> CANCELLED)"""
    booking_id: Any
    property_id: Any
    tenant_id: Any
    reason: str


@dataclass(kw_only=True)
class BookingCancelled(DomainEvent):
    """
    Event: Booking was cancelled by one of its parties

    Triggers:
    - Notify the other party
    - Free up property dates
    """
    booking_id: Any
    property_id: Any
    cancelled_by: str
    reason: str
    old_status: str


@dataclass(kw_only=True)
class BookingAutoRejected(DomainEvent):
    """Event: A pending request lost its dates to an overlapping confirmation"""
    booking_id: Any
    property_id: Any
    tenant_id: Any
    confirmed_booking_id: Any


@dataclass(kw_only=True)
class BookingExpired(DomainEvent):
    """Event: A request was never decided before its stay began"""
    booking_id: Any
    property_id: Any
    tenant_id: Any
