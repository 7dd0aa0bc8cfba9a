"""Property models.

Listing management lives outside this service; the booking engine only
needs a property's owner, its nightly price and whether it accepts
bookings. ``calendar_version`` is bumped inside every transaction that
changes the property's booking calendar, so any process holding a cached
calendar can tell it is stale.
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings  # type: ignore
from django.core.validators import MinValueValidator  # type: ignore
from django.db import models  # type: ignore
from django.db.models import F  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


def default_currency() -> str:
    return settings.BOOKINGS_DEFAULT_CURRENCY


class Property(models.Model):
    """Объект недвижимости, сдаваемый в аренду."""

    class Status(models.TextChoices):
        DRAFT = "draft", _("Черновик")
        ACTIVE = "active", _("Активен")
        INACTIVE = "inactive", _("Неактивен")

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="properties",
    )
    title = models.CharField(max_length=255)
    address = models.CharField(max_length=255, blank=True)
    image = models.CharField(
        max_length=255,
        blank=True,
        help_text=_("Имя файла обложки, отдаётся клиенту как есть."),
    )
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)
    price_per_night = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    currency = models.CharField(max_length=3, default=default_currency)
    calendar_version = models.PositiveBigIntegerField(default=0, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Объект недвижимости")
        verbose_name_plural = _("Объекты недвижимости")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["owner", "status"], name="property_owner_status_idx"),
        ]

    def __str__(self) -> str:
        return self.title

    @property
    def accepts_bookings(self) -> bool:
        return self.status == self.Status.ACTIVE

    def bump_calendar_version(self) -> int:
        """Increment the calendar version in the database and return the new value."""
        type(self).objects.filter(pk=self.pk).update(calendar_version=F("calendar_version") + 1)
        self.refresh_from_db(fields=["calendar_version"])
        return self.calendar_version
