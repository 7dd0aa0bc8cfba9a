"""Admin registrations for properties domain."""

from __future__ import annotations

from django.contrib import admin

from .models import Property


@admin.register(Property)
class PropertyAdmin(admin.ModelAdmin):
    list_display = (
        "title",
        "owner",
        "status",
        "price_per_night",
        "currency",
        "calendar_version",
        "created_at",
    )
    list_filter = ("status", "currency")
    search_fields = ("title", "address", "owner__email")
    readonly_fields = ("calendar_version", "created_at", "updated_at")
