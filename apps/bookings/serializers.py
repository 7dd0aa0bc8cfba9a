"""Serializers for the booking domain.

Requests and responses use the browser client's camelCase field names.
Output serializers read from ``Booking`` aggregates and calendar intervals
produced by ``BookingService``; they never touch the ORM model directly.
"""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from apps.bookings.domain.entities import BookingStatus
from apps.properties.models import Property


class BookingCreateSerializer(serializers.Serializer):
    """Запрос арендатора на бронирование."""

    propertyId = serializers.IntegerField(min_value=1)
    startDate = serializers.DateField()
    endDate = serializers.DateField()
    # sign is checked by the service so a negative amount reports invalid_price
    totalPrice = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        required=False,
        allow_null=True,
    )


class BookingStatusSerializer(serializers.Serializer):
    """Решение по бронированию: подтверждение или отмена."""

    status = serializers.ChoiceField(choices=[s.value for s in BookingStatus])
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class PropertySummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Property
        fields = ["id", "title", "address", "image"]
        read_only_fields = fields


class BookingSerializer(serializers.Serializer):
    """
    Booking aggregate as returned by the API

    Pass ``properties`` (a mapping of property id to ``Property``) in the
    serializer context to embed a ``property`` summary in each item.
    """

    id = serializers.UUIDField(read_only=True)
    propertyId = serializers.ReadOnlyField(source="property_id")
    tenantId = serializers.ReadOnlyField(source="tenant_id")
    landlordId = serializers.ReadOnlyField(source="landlord_id")
    startDate = serializers.DateField(source="start_date", read_only=True)
    endDate = serializers.DateField(source="end_date", read_only=True)
    nights = serializers.IntegerField(read_only=True)
    totalPrice = serializers.DecimalField(
        source="total_price.amount",
        max_digits=12,
        decimal_places=2,
        coerce_to_string=False,
        read_only=True,
    )
    currency = serializers.CharField(source="total_price.currency", read_only=True)
    status = serializers.SerializerMethodField()
    cancellationSource = serializers.SerializerMethodField()
    cancellationReason = serializers.CharField(source="cancellation_reason", read_only=True)
    confirmedAt = serializers.DateTimeField(source="confirmed_at", read_only=True)
    cancelledAt = serializers.DateTimeField(source="cancelled_at", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    def get_status(self, booking) -> str:
        return booking.status.value

    def get_cancellationSource(self, booking) -> str | None:
        source = booking.cancellation_source
        return source.value if source else None

    def to_representation(self, booking):
        data = super().to_representation(booking)
        properties = self.context.get("properties")
        if properties is not None:
            prop = properties.get(booking.property_id)
            data["property"] = PropertySummarySerializer(prop).data if prop else None
        return data


class BookedDatesSerializer(serializers.Serializer):
    """Занятый интервал календаря объекта."""

    startDate = serializers.DateField(source="start_date", read_only=True)
    endDate = serializers.DateField(source="end_date", read_only=True)
    status = serializers.SerializerMethodField()

    def get_status(self, interval) -> str:
        return interval.status.value
