"""Celery tasks for the booking domain."""

from __future__ import annotations

import logging

from celery import shared_task  # type: ignore

from .services import get_booking_service

logger = logging.getLogger(__name__)


# ============================================================================
# PERIODIC TASKS (run by Celery Beat, see config/celery.py)
# ============================================================================

@shared_task(name="bookings.expire_stale_pending")
def expire_stale_pending() -> dict[str, int]:
    """
    Cancel pending bookings whose stay began without a landlord decision.

    A lapsed request can no longer be confirmed; expiring it frees the
    tenant and keeps the landlord's property list tidy.

    Returns:
        dict: {"expired": number of cancelled bookings}
    """
    expired = get_booking_service().expire_stale_pending()
    logger.info(f"Expire stale pending bookings task finished: {expired} expired")
    return {"expired": expired}
