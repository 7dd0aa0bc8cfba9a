"""Bookings app package.

The reservation and availability engine: tenants request stays, landlords
confirm or reject them, and confirmed stays of a property never overlap.
``apps.bookings.domain`` holds the pure rules, ``services.BookingService``
orchestrates them under a per-property lock and the DRF views expose them.
"""
