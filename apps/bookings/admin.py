"""Admin registration for bookings.

Read-only: status changes must go through BookingService so the calendar
stays consistent.
"""

from __future__ import annotations

from django.contrib import admin

from .models import Booking


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "property",
        "tenant",
        "status",
        "start_date",
        "end_date",
        "total_price",
        "created_at",
    )
    list_filter = ("status", "cancellation_source", "start_date")
    search_fields = ("property__title", "tenant__email", "landlord__email")
    readonly_fields = [field.name for field in Booking._meta.fields]

    def has_add_permission(self, request):  # type: ignore
        return False

    def has_delete_permission(self, request, obj=None):  # type: ignore
        return False
