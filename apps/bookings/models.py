"""Booking persistence model.

Rows are never deleted: cancelled and confirmed bookings stay for history
and so the calendar can always be rebuilt from storage. Domain logic lives
in ``apps.bookings.domain``; ``apps.bookings.repositories`` maps between
these rows and the ``Booking`` aggregate.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Booking(models.Model):
    """Бронирование объекта недвижимости."""

    class Status(models.TextChoices):
        PENDING = "pending", _("Ожидает подтверждения")
        CONFIRMED = "confirmed", _("Подтверждено")
        CANCELLED = "cancelled", _("Отменено")

    class CancellationSource(models.TextChoices):
        TENANT = "tenant", _("Арендатор")
        LANDLORD = "landlord", _("Арендодатель")
        ADMIN = "admin", _("Администратор")
        SYSTEM = "system", _("Система")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    property = models.ForeignKey(
        "properties.Property",
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    tenant = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    landlord = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="landlord_bookings",
        help_text=_("Владелец объекта на момент бронирования."),
    )
    start_date = models.DateField()
    end_date = models.DateField()
    total_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    currency = models.CharField(max_length=3, default="INR")
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
    )
    confirmed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_source = models.CharField(
        max_length=20,
        choices=CancellationSource.choices,
        blank=True,
    )
    cancellation_reason = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(default=timezone.now, editable=False)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        verbose_name = _("Бронирование")
        verbose_name_plural = _("Бронирования")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(end_date__gt=models.F("start_date")),
                name="booking_valid_dates",
            ),
            models.CheckConstraint(
                condition=models.Q(total_price__gte=0),
                name="booking_non_negative_price",
            ),
        ]
        indexes = [
            models.Index(fields=["property", "start_date", "end_date"], name="booking_property_dates_idx"),
            models.Index(fields=["property", "status"], name="booking_property_status_idx"),
            models.Index(fields=["tenant", "created_at"], name="booking_tenant_created_idx"),
        ]

    def __str__(self) -> str:
        return f"Booking {self.id} for {self.property_id} ({self.status})"
