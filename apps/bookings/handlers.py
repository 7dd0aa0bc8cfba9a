"""Domain event handlers for bookings.

Notification hooks: each handler records who should hear about a change.
Delivery (email, push, messenger) is handled by other services reading
these log lines, so handlers stay side-effect free apart from logging.
"""

from __future__ import annotations

import structlog

from shared.application.message_bus import MessageBus, message_bus

from .domain.events import (
    BookingAutoRejected,
    BookingCancelled,
    BookingConfirmed,
    BookingCreated,
    BookingExpired,
    BookingRejected,
)

logger = structlog.get_logger(__name__)


def notify_landlord_of_request(event: BookingCreated) -> None:
    logger.info(
        "booking.requested",
        booking_id=str(event.booking_id),
        property_id=event.property_id,
        recipient=event.landlord_id,
        dates=str(event.dates),
        total_price=str(event.total_price),
    )


def notify_tenant_of_confirmation(event: BookingConfirmed) -> None:
    logger.info(
        "booking.confirmed",
        booking_id=str(event.booking_id),
        property_id=event.property_id,
        recipient=event.tenant_id,
        dates=str(event.dates),
    )


def notify_tenant_of_rejection(event: BookingRejected) -> None:
    logger.info(
        "booking.rejected",
        booking_id=str(event.booking_id),
        property_id=event.property_id,
        recipient=event.tenant_id,
        reason=event.reason,
    )


def notify_cancellation(event: BookingCancelled) -> None:
    logger.info(
        "booking.cancelled",
        booking_id=str(event.booking_id),
        property_id=event.property_id,
        cancelled_by=event.cancelled_by,
        previous_status=event.old_status,
        reason=event.reason,
    )


def notify_tenant_of_auto_rejection(event: BookingAutoRejected) -> None:
    logger.info(
        "booking.auto_rejected",
        booking_id=str(event.booking_id),
        property_id=event.property_id,
        recipient=event.tenant_id,
        confirmed_booking_id=str(event.confirmed_booking_id),
    )


def notify_tenant_of_expiry(event: BookingExpired) -> None:
    logger.info(
        "booking.expired",
        booking_id=str(event.booking_id),
        property_id=event.property_id,
        recipient=event.tenant_id,
    )


HANDLERS = {
    BookingCreated: [notify_landlord_of_request],
    BookingConfirmed: [notify_tenant_of_confirmation],
    BookingRejected: [notify_tenant_of_rejection],
    BookingCancelled: [notify_cancellation],
    BookingAutoRejected: [notify_tenant_of_auto_rejection],
    BookingExpired: [notify_tenant_of_expiry],
}


def register_handlers(bus: MessageBus = message_bus) -> None:
    for event_type, handlers in HANDLERS.items():
        for handler in handlers:
            bus.register_event_handler(event_type, handler)
